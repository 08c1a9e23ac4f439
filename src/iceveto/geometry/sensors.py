from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Literal, Tuple, get_args

import numpy as np

from iceveto.physics.hits import Hit

SensorClass = Literal["all", "inice", "icecube", "deepcore", "icetop"]
SENSOR_CLASSES: Tuple[str, ...] = get_args(SensorClass)

# IC86 layout
ICETOP_MODULES = (61, 64)
INICE_MODULES = (1, 60)
DEEPCORE_STRINGS = (79, 86)


def encode_sensor_id(string: int, module: int) -> int:
    """
    Encode (string, module) as a single signed integer.

    id = sign(string) * (100*|string| + module); negative strings are a
    separate namespace (e.g. surface detectors).
    """
    string = int(string)
    module = int(module)
    if string == 0:
        raise ValueError("String number 0 has no sensor id")
    if not 1 <= module <= 99:
        raise ValueError(f"Module number must be within [1,99], got {module}")
    sid = 100 * abs(string) + module
    return -sid if string < 0 else sid


def decode_sensor_id(sensor_id: int) -> tuple[int, int]:
    """Inverse of encode_sensor_id: return (string, module)."""
    sensor_id = int(sensor_id)
    a = abs(sensor_id)
    string, module = divmod(a, 100)
    if string == 0 or module == 0:
        raise ValueError(f"Not a valid sensor id: {sensor_id}")
    return (-string if sensor_id < 0 else string), module


def classify(string: int, module: int) -> set[str]:
    """All sensor classes a (string, module) position belongs to."""
    out = {"all"}
    if string <= 0:
        return out
    if ICETOP_MODULES[0] <= module <= ICETOP_MODULES[1]:
        out.add("icetop")
    elif INICE_MODULES[0] <= module <= INICE_MODULES[1]:
        out.add("inice")
        if DEEPCORE_STRINGS[0] <= string <= DEEPCORE_STRINGS[1]:
            out.add("deepcore")
        else:
            out.add("icecube")
    return out


def check_sensor_class(sensor_class: str) -> str:
    if sensor_class not in SENSOR_CLASSES:
        raise ValueError(
            f"Unknown sensor class {sensor_class!r}; expected one of {SENSOR_CLASSES}"
        )
    return sensor_class


def sensor_in_class(sensor_id: int, sensor_class: str) -> bool:
    check_sensor_class(sensor_class)
    return sensor_class in classify(*decode_sensor_id(sensor_id))


@dataclass(slots=True)
class Sensor:
    """
    A light-detecting module at a fixed position.

    r: position [m]
    hits: pulses recorded in the current event (empty if the sensor did not fire)
    """
    sensor_id: int
    r: np.ndarray  # shape (3,)
    hits: List[Hit] = field(default_factory=list)

    @property
    def string(self) -> int:
        return decode_sensor_id(self.sensor_id)[0]

    @property
    def module(self) -> int:
        return decode_sensor_id(self.sensor_id)[1]

    def in_class(self, sensor_class: str) -> bool:
        return sensor_in_class(self.sensor_id, sensor_class)
