# src/iceveto/physics/constants.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol

from scipy import constants as _sc

# Vacuum speed of light in m/ns
C_M_PER_NS = _sc.c * 1e-9


class ConstantProvider(Protocol):
    def speed_of_light(self) -> float:
        """Signal speed in m/ns, consistent with hit positions [m] and times [ns]."""


@dataclass(frozen=True)
class VacuumConstants:
    def speed_of_light(self) -> float:
        return C_M_PER_NS


@dataclass(frozen=True)
class FixedConstants:
    """Inject an arbitrary signal speed (e.g. a group velocity in ice, or c=1 in tests)."""
    c: float

    def __post_init__(self):
        if self.c <= 0:
            raise ValueError("Speed of light must be positive")

    def speed_of_light(self) -> float:
        return float(self.c)


def make_constants(speed_of_light_m_per_ns: Optional[float] = None) -> ConstantProvider:
    if speed_of_light_m_per_ns is None:
        return VacuumConstants()
    return FixedConstants(float(speed_of_light_m_per_ns))
