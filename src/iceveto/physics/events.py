# src/iceveto/physics/events.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

import numpy as np

from iceveto.geometry.sensors import Sensor, check_sensor_class
from .hits import Hit


class EventView(Protocol):
    """
    What the veto processor needs from an event store.

    The processor never looks events up itself; callers hand it an object
    satisfying this protocol.
    """

    def has_prior_rejection(self, threshold: float = 0.1) -> bool:
        ...

    def get_hits(self, sensor_class: str = "all", include_slc: bool = True) -> List[Hit]:
        ...

    def get_sensor(self, sensor_id: int, sensor_class: str = "all") -> Optional[Sensor]:
        ...

    def attach_result(self, region_name: str, record: Any) -> None:
        ...

    def set_veto_level(self, value: float) -> None:
        ...


@dataclass(slots=True)
class DetectorEvent:
    """
    One triggered detector readout.

    Only sensors that recorded at least one hit are kept in `sensors`.
    `selection` is the signal of an upstream event selector (None if no
    selector ran); values below the selection threshold mean "rejected".
    """
    event_id: int
    sensors: Dict[int, Sensor] = field(default_factory=dict)
    selection: Optional[float] = None
    veto_records: Dict[str, Any] = field(default_factory=dict)
    veto_level: Optional[float] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_hits(
        cls,
        event_id: int,
        hits: Iterable[Hit],
        selection: Optional[float] = None,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> "DetectorEvent":
        """Group hits by sensor; the sensor position is taken from the first hit."""
        sensors: Dict[int, Sensor] = {}
        for h in hits:
            s = sensors.get(h.sensor_id)
            if s is None:
                s = Sensor(sensor_id=h.sensor_id, r=np.asarray(h.r, dtype=float))
                sensors[h.sensor_id] = s
            s.hits.append(h)
        return cls(event_id=event_id, sensors=sensors, selection=selection, meta=dict(meta or {}))

    @property
    def n_sensors(self) -> int:
        return len(self.sensors)

    def has_prior_rejection(self, threshold: float = 0.1) -> bool:
        if self.selection is None:
            return False
        return float(self.selection) < threshold

    def get_hits(self, sensor_class: str = "all", include_slc: bool = True) -> List[Hit]:
        check_sensor_class(sensor_class)
        out: List[Hit] = []
        for s in self.sensors.values():
            if not s.in_class(sensor_class):
                continue
            for h in s.hits:
                if h.slc and not include_slc:
                    continue
                out.append(h)
        return out

    def get_sensor(self, sensor_id: int, sensor_class: str = "all") -> Optional[Sensor]:
        s = self.sensors.get(int(sensor_id))
        if s is None or not s.hits:
            return None
        if sensor_class != "all" and not s.in_class(sensor_class):
            return None
        return s

    def attach_result(self, region_name: str, record: Any) -> None:
        self.veto_records[region_name] = record

    def set_veto_level(self, value: float) -> None:
        self.veto_level = float(value)
