from __future__ import annotations
import numpy as np
from typing import Dict
from ..geometry.sensors import encode_sensor_id, DEEPCORE_STRINGS
from ..physics.constants import C_M_PER_NS
from ..physics.events import DetectorEvent
from ..physics.hits import Hit

# Group refractive index of deep ice
N_GROUP_ICE = 1.32
C_ICE_M_PER_NS = C_M_PER_NS / N_GROUP_ICE

STRING_SPACING_M = 125.0
MODULE_SPACING_M = 17.0
TOP_MODULE_Z_M = 500.0
SURFACE_Z_M = 1950.0

def toy_geometry(n_strings: int = 86) -> Dict[int, np.ndarray]:
    """
    IC86-like sensor positions (not the real survey geometry).

    Standard strings sit on a 9x9 grid with 125 m spacing, DeepCore strings
    (79-86) are packed near the centre with 40 m spacing. Modules 1-60 are
    in-ice, 17 m apart, module 1 at the top; modules 61-64 are surface tanks.
    """
    geo: Dict[int, np.ndarray] = {}
    n_std = min(n_strings, DEEPCORE_STRINGS[0] - 1)
    for s in range(1, n_strings + 1):
        if s <= n_std:
            k = s - 1
            x = (k % 9 - 4) * STRING_SPACING_M
            y = (k // 9 - 4) * STRING_SPACING_M
        else:
            k = s - DEEPCORE_STRINGS[0]
            phi = 2 * np.pi * k / 8
            x = 40.0 * np.cos(phi) + 20.0
            y = 40.0 * np.sin(phi) + 20.0
        for m in range(1, 61):
            geo[encode_sensor_id(s, m)] = np.array([x, y, TOP_MODULE_Z_M - MODULE_SPACING_M * (m - 1)])
        if s <= n_std:
            for j, m in enumerate(range(61, 65)):
                geo[encode_sensor_id(s, m)] = np.array([x + 5.0 * (j % 2), y + 5.0 * (j // 2), SURFACE_Z_M])
    return geo

def _light(
    rng: np.random.Generator,
    sid: int,
    r: np.ndarray,
    mean_pe: float,
    t_hit: float,
    slc_prob: float,
) -> list[Hit]:
    n_pe = int(rng.poisson(mean_pe))
    if n_pe <= 0:
        return []
    # split large charges into a few pulses spread by scattering delay
    n_pulses = 1 + min(3, n_pe // 20)
    q = np.full(n_pulses, n_pe / n_pulses)
    dt = np.sort(rng.exponential(15.0, size=n_pulses))
    hits = []
    for i in range(n_pulses):
        slc = bool(n_pe == 1 and rng.random() < slc_prob)
        hits.append(Hit(sensor_id=sid, r=r, t_ns=float(t_hit + dt[i]), amplitude=float(q[i]), slc=slc))
    return hits

def synth_cascade(
    event_id: int,
    geometry: Dict[int, np.ndarray],
    rng: np.random.Generator,
    energy_pe: float = 400.0,
    t0_ns: float = 10000.0,
    slc_prob: float = 0.3,
) -> DetectorEvent:
    """Contained point-like light source somewhere in the inner detector."""
    vtx = np.array([rng.uniform(-250, 250), rng.uniform(-250, 250), rng.uniform(-300, 300)])
    hits: list[Hit] = []
    for sid, r in geometry.items():
        if r[2] > TOP_MODULE_Z_M + 1.0:
            continue
        d = float(np.linalg.norm(r - vtx))
        mean_pe = energy_pe * np.exp(-d / 35.0) / max(1.0, d / 10.0)
        if mean_pe < 1e-3:
            continue
        hits.extend(_light(rng, sid, r, mean_pe, t0_ns + d / C_ICE_M_PER_NS, slc_prob))
    return DetectorEvent.from_hits(event_id, hits, meta={"kind": "cascade", "vertex": vtx})

def synth_muon(
    event_id: int,
    geometry: Dict[int, np.ndarray],
    rng: np.random.Generator,
    pe_per_sensor: float = 30.0,
    t0_ns: float = 10000.0,
    slc_prob: float = 0.3,
) -> DetectorEvent:
    """
    Vertical downgoing muon: light along the whole track from the surface
    through the top of the in-ice array.
    """
    x0, y0 = rng.uniform(-450, 450, size=2)
    hits: list[Hit] = []
    for sid, r in geometry.items():
        rho = float(np.hypot(r[0] - x0, r[1] - y0))
        mean_pe = pe_per_sensor * np.exp(-rho / 25.0)
        if mean_pe < 1e-3:
            continue
        t_hit = t0_ns + (SURFACE_Z_M - r[2]) / C_M_PER_NS + rho / C_ICE_M_PER_NS
        hits.extend(_light(rng, sid, r, mean_pe, t_hit, slc_prob))
    return DetectorEvent.from_hits(event_id, hits, meta={"kind": "muon", "x0": x0, "y0": y0})

def synth_events(
    n_events: int,
    geometry: Dict[int, np.ndarray] | None = None,
    rng: np.random.Generator | None = None,
    muon_fraction: float = 0.5,
) -> list[DetectorEvent]:
    """Mix of contained cascades and downgoing muons with causal hit times."""
    rng = rng or np.random.default_rng()
    geometry = geometry if geometry is not None else toy_geometry()
    events: list[DetectorEvent] = []
    for i in range(n_events):
        if rng.random() < muon_fraction:
            events.append(synth_muon(i, geometry, rng))
        else:
            events.append(synth_cascade(i, geometry, rng))
    return events
