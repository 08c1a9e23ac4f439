# src/iceveto/veto/residuals.py
"""
Per-region scan of the veto sensors of one event.

Every hit of a fired member sensor is tested against the region's hit
criteria. The time residual w.r.t. the event reference (centre of gravity
and central time) decides acceptance; the residuals w.r.t. the event
start and the depth-only variants are computed for diagnostics and are
passed to the optional trace hook.
"""
from __future__ import annotations
from dataclasses import dataclass
from functools import reduce
from typing import Callable, NamedTuple, Optional, Tuple

import numpy as np

from iceveto.geometry.sensors import Sensor
from iceveto.physics.events import EventView
from iceveto.physics.hits import Hit
from .reference import ReferenceEstimate
from .regions import VetoParameters, VetoRegion


class SensorDistances(NamedTuple):
    dist0: float       # |r - COG| [m]
    dist_start: float  # |r - start position| [m]
    dz0: float         # depth difference w.r.t. COG [m]
    dz_start: float    # depth difference w.r.t. start position [m]


class HitResiduals(NamedTuple):
    tres0: float
    tres_start: float
    tresz0: float
    tresz_start: float


@dataclass(frozen=True)
class ResidualTrace:
    """Everything known about one hit at the moment it is accepted or rejected on its residual."""
    region_name: str
    hit: Hit
    distances: SensorDistances
    residuals: HitResiduals
    accepted: bool


ResidualHook = Callable[[ResidualTrace], None]


@dataclass(frozen=True)
class RegionAggregate:
    firing_sensors: int = 0
    hits: int = 0
    total_amplitude: float = 0.0
    evidence: Tuple[Hit, ...] = ()

    def __add__(self, other: "RegionAggregate") -> "RegionAggregate":
        return RegionAggregate(
            firing_sensors=self.firing_sensors + other.firing_sensors,
            hits=self.hits + other.hits,
            total_amplitude=self.total_amplitude + other.total_amplitude,
            evidence=self.evidence + other.evidence,
        )


def sensor_distances(r: np.ndarray, reference: ReferenceEstimate) -> SensorDistances:
    r = np.asarray(r, dtype=np.float64)
    return SensorDistances(
        dist0=float(np.linalg.norm(r - reference.position)),
        dist_start=float(np.linalg.norm(r - reference.start_position)),
        dz0=float(r[2] - reference.position[2]),
        dz_start=float(r[2] - reference.start_position[2]),
    )


def hit_residuals(t_ns: float, d: SensorDistances, reference: ReferenceEstimate, c: float) -> HitResiduals:
    """Observed time minus expected light travel time, for each reference."""
    dt0 = t_ns - reference.time
    dt_start = t_ns - reference.start_time
    return HitResiduals(
        tres0=dt0 - d.dist0 / c,
        tres_start=dt_start - d.dist_start / c,
        tresz0=dt0 - d.dz0 / c,
        # measured from the start time like tres_start, not from the central time
        tresz_start=dt_start - d.dz_start / c,
    )


def in_residual_window(tres: float, params: VetoParameters) -> bool:
    if not params.residual_filtering:
        return True
    return params.min_time_residual <= tres <= params.max_time_residual


def evaluate_sensor(
    sensor: Sensor,
    params: VetoParameters,
    reference: ReferenceEstimate,
    c: float,
    *,
    region_name: str = "",
    hook: Optional[ResidualHook] = None,
) -> RegionAggregate:
    """Veto hits of a single sensor; counts as one firing sensor if any hit survives."""
    d = sensor_distances(sensor.r, reference)
    accepted = []
    for h in sensor.hits:
        if h.slc and not params.allow_slc:
            continue
        if h.amplitude < params.min_hit_amplitude:
            continue
        res = hit_residuals(h.t_ns, d, reference, c)
        ok = in_residual_window(res.tres0, params)
        if hook is not None:
            hook(ResidualTrace(region_name, h, d, res, ok))
        if ok:
            accepted.append(h)

    if not accepted:
        return RegionAggregate()
    return RegionAggregate(
        firing_sensors=1,
        hits=len(accepted),
        total_amplitude=float(sum(h.amplitude for h in accepted)),
        evidence=tuple(accepted),
    )


def evaluate_region(
    region: VetoRegion,
    event: EventView,
    reference: ReferenceEstimate,
    c: float,
    hook: Optional[ResidualHook] = None,
) -> RegionAggregate:
    """
    Aggregate the veto hits of all member sensors of `region` in `event`.

    Member sensors without recorded hits do not contribute.
    """
    sensors = (event.get_sensor(sid) for sid in sorted(region.members))
    parts = (
        evaluate_sensor(s, region.params, reference, c, region_name=region.name, hook=hook)
        for s in sensors
        if s is not None
    )
    return reduce(lambda a, b: a + b, parts, RegionAggregate())
