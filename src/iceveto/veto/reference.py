# src/iceveto/veto/reference.py
"""
Event reference point and times for the veto residuals.

Two independent anchors are derived from the (interior) hits of an event:

- the amplitude-weighted centre of gravity together with the central hit time,
- the start of the event: the earliest time-ordered run of hits whose summed
  amplitude crosses a threshold within a bounded time window.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Literal, NamedTuple, Sequence, Tuple

import numpy as np

from iceveto.physics.hits import Hit

CentralValue = Literal["median", "mean"]


@dataclass(frozen=True)
class ReferenceSettings:
    window_ns: float = 3000.0
    threshold_fraction: float = 0.05
    threshold_floor: float = 3.0
    central_value: CentralValue = "median"
    weighted: bool = True

    def threshold(self, total_amplitude: float) -> float:
        return max(self.threshold_fraction * total_amplitude, self.threshold_floor)


class WindowResult(NamedTuple):
    start_time: float
    i1: int
    i2: int


class ReferenceEstimate(NamedTuple):
    position: np.ndarray        # (3,) centre of gravity [m]
    time: float                 # central hit time [ns]
    total_amplitude: float
    start_time: float           # [ns]
    start_position: np.ndarray  # (3,) [m]
    window: Tuple[int, int]     # (i1, i2) in the time-ordered hits
    n_hits: int


def _amplitudes(hits: Sequence[Hit]) -> np.ndarray:
    return np.array([h.amplitude for h in hits], dtype=np.float64)


def _times(hits: Sequence[Hit]) -> np.ndarray:
    return np.array([h.t_ns for h in hits], dtype=np.float64)


def center_of_gravity(hits: Sequence[Hit]) -> np.ndarray:
    """Amplitude-weighted centroid of the hit positions; zero vector without signal."""
    if not hits:
        return np.zeros(3)
    w = _amplitudes(hits)
    wsum = w.sum()
    if wsum <= 0:
        return np.zeros(3)
    r = np.stack([np.asarray(h.r, dtype=np.float64) for h in hits], axis=0)
    return (w[:, None] * r).sum(axis=0) / wsum


def weighted_median(values: np.ndarray, weights: np.ndarray) -> float:
    """First value (in ascending order) at which the cumulative weight reaches half the total."""
    order = np.argsort(values, kind="stable")
    v = values[order]
    cw = np.cumsum(weights[order])
    k = int(np.searchsorted(cw, 0.5 * cw[-1], side="left"))
    return float(v[min(k, len(v) - 1)])


def central_time(hits: Sequence[Hit], mode: CentralValue = "median", weighted: bool = True) -> float:
    """
    Central leading-edge time of the hits.

    Weighted by amplitude unless `weighted` is False or there is no signal.
    Returns 0.0 for an empty selection.
    """
    if not hits:
        return 0.0
    t = _times(hits)
    w = _amplitudes(hits)
    if not weighted or w.sum() <= 0:
        w = np.ones_like(t)
    if mode == "mean":
        return float(np.average(t, weights=w))
    if mode == "median":
        return weighted_median(t, w)
    raise ValueError(f"Unknown central value mode {mode!r}")


def sort_by_time(hits: Sequence[Hit]) -> list[Hit]:
    # sorted() is stable: equal times keep their input order
    return sorted(hits, key=lambda h: h.t_ns)


def slide_window(
    times: Sequence[float],
    amplitudes: Sequence[float],
    threshold: float,
    window_ns: float,
) -> WindowResult:
    """
    Earliest window [i1, i2] of time-ordered entries with t[i2]-t[i1] <= window_ns
    whose summed amplitude reaches `threshold`.

    The right edge advances one entry at a time; the left edge follows so the
    window never exceeds window_ns. Returns (0.0, -1, -1) if no window qualifies.
    """
    t = np.asarray(times, dtype=np.float64)
    a = np.asarray(amplitudes, dtype=np.float64)
    i1 = 0
    running = 0.0
    for i2 in range(len(t)):
        running += a[i2]
        while i1 < i2 and t[i2] - t[i1] > window_ns:
            running -= a[i1]
            i1 += 1
        if running >= threshold:
            return WindowResult(float(t[i1]), i1, i2)
    return WindowResult(0.0, -1, -1)


def estimate_reference(hits: Sequence[Hit], settings: ReferenceSettings | None = None) -> ReferenceEstimate:
    """
    Compute all reference quantities for one hit selection.

    The start position is the position of the sensor that recorded the hit
    closing the start window (index i2).
    """
    if settings is None:
        settings = ReferenceSettings()

    position = center_of_gravity(hits)
    t0 = central_time(hits, settings.central_value, settings.weighted)
    total = float(_amplitudes(hits).sum()) if hits else 0.0

    ordered = sort_by_time(hits)
    win = slide_window(
        _times(ordered),
        _amplitudes(ordered),
        settings.threshold(total),
        settings.window_ns,
    )

    start_position = np.zeros(3)
    if win.i2 >= 0:
        start_position = np.asarray(ordered[win.i2].r, dtype=np.float64)

    return ReferenceEstimate(
        position=position,
        time=t0,
        total_amplitude=total,
        start_time=win.start_time,
        start_position=start_position,
        window=(win.i1, win.i2),
        n_hits=len(hits),
    )
