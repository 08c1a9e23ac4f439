"""
iceveto.io.event_store

HDF5 layout for detector events (input) and veto results (output).

Input
-----
/geometry/sensor_id   (M,)   int32
/geometry/r_m         (M,3)  float64   sensor positions [m]
/events/event_id      (N,)   int64
/events/selection     (N,)   float32   optional upstream selection signal, NaN = none
/hits/event_ptr       (N+1,) int64     CSR pointers into the flat hit columns
/hits/sensor_id       (K,)   int32
/hits/t_ns            (K,)   float64
/hits/amplitude       (K,)   float32
/hits/slc             (K,)   uint8

Output
------
/veto/level                          (N,) float32  NaN for skipped events
/veto/regions/<name>/fired           (N,) int8     -1 for skipped events
/veto/regions/<name>/firing_sensors  (N,) int32
/veto/regions/<name>/hits            (N,) int32
/veto/regions/<name>/total_amplitude (N,) float32
/veto/regions/<name>/evidence_ptr    (N+1,) int64  CSR pointers into evidence_hit_index
/veto/regions/<name>/evidence_hit_index  flat row indices into /hits/*
/veto/regions/<name>/members         sorted member sensor ids
Region parameters, id and title are stored as group attributes.
"""
from __future__ import annotations
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Mapping, NamedTuple, Optional, Sequence, Union

import h5py
import numpy as np

from iceveto.physics.events import DetectorEvent
from iceveto.physics.hits import Hit
from iceveto.veto.decision import VetoOutcome
from iceveto.veto.regions import VetoRegion

FORMAT_VERSION = "1.0"
SOFTWARE = "iceveto 0.1.0"


def _replace_or_create(grp: h5py.Group, name: str, data: np.ndarray, **kw) -> None:
    if name in grp:
        del grp[name]
    grp.create_dataset(name, data=data, **kw)


# ---------------------------------------------------------------------------
# Events (input)
# ---------------------------------------------------------------------------

def write_events(
    path: str | Path,
    events: Sequence[DetectorEvent],
    geometry: Mapping[int, np.ndarray],
) -> Path:
    """Write events and sensor geometry in the input layout."""
    path = Path(path)
    n = len(events)
    ptr = np.zeros(n + 1, dtype=np.int64)
    for i, ev in enumerate(events):
        ptr[i + 1] = ptr[i] + sum(len(s.hits) for s in ev.sensors.values())
    k = int(ptr[-1])

    sid = np.empty(k, dtype=np.int32)
    t = np.empty(k, dtype=np.float64)
    amp = np.empty(k, dtype=np.float32)
    slc = np.empty(k, dtype=np.uint8)
    ev_ids = np.empty(n, dtype=np.int64)
    sel = np.full(n, np.nan, dtype=np.float32)

    w = 0
    for i, ev in enumerate(events):
        ev_ids[i] = int(ev.event_id)
        if ev.selection is not None:
            sel[i] = float(ev.selection)
        for s in ev.sensors.values():
            for h in s.hits:
                sid[w] = h.sensor_id
                t[w] = h.t_ns
                amp[w] = h.amplitude
                slc[w] = 1 if h.slc else 0
                w += 1

    geo_ids = np.array(sorted(geometry), dtype=np.int32)
    geo_r = np.array([np.asarray(geometry[s], dtype=np.float64) for s in geo_ids]).reshape(-1, 3)

    with h5py.File(path, "w") as f:
        f.attrs["format_version"] = FORMAT_VERSION
        f.attrs["software"] = SOFTWARE
        g = f.require_group("geometry")
        g.create_dataset("sensor_id", data=geo_ids)
        g.create_dataset("r_m", data=geo_r)
        e = f.require_group("events")
        e.create_dataset("event_id", data=ev_ids)
        e.create_dataset("selection", data=sel)
        h = f.require_group("hits")
        h.create_dataset("event_ptr", data=ptr)
        h.create_dataset("sensor_id", data=sid, compression="gzip")
        h.create_dataset("t_ns", data=t, compression="gzip")
        h.create_dataset("amplitude", data=amp, compression="gzip")
        h.create_dataset("slc", data=slc, compression="gzip")
    return path


def read_geometry(f: h5py.File) -> Dict[int, np.ndarray]:
    ids = np.asarray(f["geometry/sensor_id"][:], dtype=np.int64)
    r = np.asarray(f["geometry/r_m"][:], dtype=np.float64)
    return {int(s): r[i] for i, s in enumerate(ids)}


def count_events(path: str | Path) -> int:
    with h5py.File(str(path), "r") as f:
        return int(f["events/event_id"].shape[0])


def iter_events(path: str | Path, max_events: Optional[int] = None) -> Iterator[DetectorEvent]:
    """
    Stream DetectorEvents from an input file.

    Each hit keeps its flat row index in extras["hit_index"] so that veto
    evidence can point back into /hits.
    """
    with h5py.File(str(path), "r") as f:
        geometry = read_geometry(f)
        ev_ids = f["events/event_id"][:]
        sel = f["events/selection"][:] if "selection" in f["events"] else None
        ptr = f["hits/event_ptr"][:]
        sid = f["hits/sensor_id"][:]
        t = f["hits/t_ns"][:]
        amp = f["hits/amplitude"][:]
        slc = f["hits/slc"][:]

        n = len(ev_ids) if max_events is None else min(len(ev_ids), int(max_events))
        for i in range(n):
            hits = []
            for k in range(int(ptr[i]), int(ptr[i + 1])):
                s = int(sid[k])
                r = geometry.get(s)
                if r is None:
                    raise ValueError(f"Hit {k} refers to sensor {s} missing from /geometry")
                hits.append(Hit(
                    sensor_id=s,
                    r=r,
                    t_ns=float(t[k]),
                    amplitude=float(amp[k]),
                    slc=bool(slc[k]),
                    extras={"hit_index": k},
                ))
            selection = None
            if sel is not None and not np.isnan(sel[i]):
                selection = float(sel[i])
            yield DetectorEvent.from_hits(int(ev_ids[i]), hits, selection=selection, meta={"row": i})


# ---------------------------------------------------------------------------
# Veto results (output)
# ---------------------------------------------------------------------------

class RegionRow(NamedTuple):
    fired: bool
    firing_sensors: int
    hits: int
    total_amplitude: float
    evidence_hit_index: np.ndarray  # flat rows into /hits/*


class OutcomeRow(NamedTuple):
    level: float
    regions: Dict[str, RegionRow]


def outcome_row(outcome: Optional[VetoOutcome]) -> Optional[OutcomeRow]:
    """
    Reduce an outcome to what write_veto_results stores.

    The evidence Hit objects are replaced by their flat hit indices, so a
    run can hold one row per event without keeping the events alive.
    """
    if outcome is None:
        return None
    regions = {
        ev.region_name: RegionRow(
            fired=ev.fired,
            firing_sensors=ev.aggregate.firing_sensors,
            hits=ev.aggregate.hits,
            total_amplitude=ev.aggregate.total_amplitude,
            evidence_hit_index=np.array(
                [int(h.extras.get("hit_index", -1)) for h in ev.aggregate.evidence], dtype=np.int64
            ),
        )
        for ev in outcome.evaluations
    }
    return OutcomeRow(level=float(outcome.level), regions=regions)


def write_init(path: str | Path, config_text: str = "") -> h5py.File:
    f = h5py.File(str(path), "w")
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = SOFTWARE
    f.attrs["config_text"] = config_text
    return f


def write_veto_results(
    f: h5py.File,
    outcomes: Sequence[Union[VetoOutcome, OutcomeRow, None]],
    regions: Sequence[VetoRegion],
) -> None:
    """
    Store per-event veto levels and per-region records.

    `outcomes` is aligned with the input event rows; None marks a skipped event.
    Entries may be full VetoOutcomes or rows from outcome_row().
    """
    rows = [outcome_row(o) if isinstance(o, VetoOutcome) else o for o in outcomes]
    n = len(rows)
    veto = f.require_group("veto")
    level = np.full(n, np.nan, dtype=np.float32)
    for i, row in enumerate(rows):
        if row is not None:
            level[i] = row.level
    _replace_or_create(veto, "level", level)

    rgrp = veto.require_group("regions")
    for region in regions:
        fired = np.full(n, -1, dtype=np.int8)
        nsens = np.zeros(n, dtype=np.int32)
        nhits = np.zeros(n, dtype=np.int32)
        qtot = np.full(n, np.nan, dtype=np.float32)
        ev_ptr = np.zeros(n + 1, dtype=np.int64)
        evidence: list[np.ndarray] = []

        for i, row in enumerate(rows):
            rr = row.regions.get(region.name) if row is not None else None
            if rr is not None:
                fired[i] = 1 if rr.fired else 0
                nsens[i] = rr.firing_sensors
                nhits[i] = rr.hits
                qtot[i] = rr.total_amplitude
                evidence.append(rr.evidence_hit_index)
                ev_ptr[i + 1] = ev_ptr[i] + len(rr.evidence_hit_index)
            else:
                ev_ptr[i + 1] = ev_ptr[i]

        flat = np.concatenate(evidence) if evidence else np.zeros(0, dtype=np.int64)

        g = rgrp.require_group(region.name)
        _replace_or_create(g, "fired", fired)
        _replace_or_create(g, "firing_sensors", nsens)
        _replace_or_create(g, "hits", nhits)
        _replace_or_create(g, "total_amplitude", qtot)
        _replace_or_create(g, "evidence_ptr", ev_ptr)
        _replace_or_create(g, "evidence_hit_index", flat.astype(np.int64))
        _replace_or_create(g, "members", np.array(sorted(region.members), dtype=np.int32))

        g.attrs["region_id"] = region.region_id
        g.attrs["title"] = region.title
        g.attrs["reference_class"] = region.reference_class
        g.attrs["reference_include_slc"] = region.reference_include_slc
        for k, v in region.params.as_dict().items():
            g.attrs[k] = v


def read_veto_levels(path: str | Path) -> np.ndarray:
    with h5py.File(str(path), "r") as f:
        if "veto" not in f or "level" not in f["veto"]:
            raise KeyError(f"/veto/level not found in {path}")
        return np.array(f["veto/level"], dtype=np.float32)


def read_region_fired(path: str | Path, region_name: str) -> np.ndarray:
    with h5py.File(str(path), "r") as f:
        grp = f["veto"]["regions"]
        if region_name not in grp:
            raise KeyError(f"{region_name} not found in /veto/regions of {path}")
        return np.array(grp[region_name]["fired"], dtype=np.int8)
