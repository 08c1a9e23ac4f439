# src/iceveto/config/presets.py
"""
Standard IC86 veto-region recipes.

Each recipe is a list of inclusive (string, module) range operations plus
the default parameter values used when the caller leaves a parameter unset.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Literal, Tuple

RangeOp = Tuple[Literal["add", "remove"], int, int, int, int]

COMMON_DEFAULTS: Dict[str, float] = {
    "min_total_amplitude": 0.0,
    "min_hit_amplitude": 0.0,
    "min_firing_sensors": 1,
    "min_hits": 1,
    "allow_slc": True,
}

@dataclass(frozen=True)
class PresetRecipe:
    name: str
    description: str
    operations: Tuple[RangeOp, ...]
    defaults: Dict[str, float] = field(default_factory=lambda: dict(COMMON_DEFAULTS))
    reference_class: str = "inice"


def _defaults(**overrides) -> Dict[str, float]:
    d = dict(COMMON_DEFAULTS)
    d.update(overrides)
    return d


UPPER: Tuple[RangeOp, ...] = (("add", 1, 79, 1, 6),)
BOTTOM: Tuple[RangeOp, ...] = (("add", 1, 79, 60, 60),)
DUST_LAYER: Tuple[RangeOp, ...] = (("add", 1, 79, 39, 43),)
SIDES: Tuple[RangeOp, ...] = (
    ("add", 1, 7, 1, 60),
    ("add", 13, 14, 1, 60),
    ("add", 21, 22, 1, 60),
    ("add", 30, 31, 1, 60),
    ("add", 40, 41, 1, 60),
    ("add", 50, 51, 1, 60),
    ("add", 59, 60, 1, 60),
    ("add", 67, 68, 1, 60),
    ("add", 72, 78, 1, 60),
)
START: Tuple[RangeOp, ...] = UPPER + BOTTOM + DUST_LAYER + SIDES

# Per-string corrections of the HESE veto w.r.t. Start86
HESE_CORRECTIONS: Tuple[RangeOp, ...] = (
    ("remove", 8, 8, 43, 43),
    ("remove", 10, 10, 43, 43),
    ("remove", 11, 11, 43, 43),
    ("remove", 12, 12, 43, 43),
    ("remove", 15, 15, 60, 60),
    ("remove", 16, 16, 43, 43),
    ("remove", 18, 18, 43, 43),
    ("remove", 19, 19, 43, 43),
    ("remove", 20, 20, 43, 43),
    ("remove", 24, 24, 60, 60),
    ("remove", 25, 25, 60, 60),
    ("remove", 26, 26, 43, 43),
    ("add", 27, 27, 38, 38),
    ("remove", 27, 27, 43, 43),
    ("remove", 28, 28, 43, 43),
    ("remove", 29, 29, 60, 60),
    ("add", 34, 34, 7, 8),
    ("remove", 34, 34, 39, 39),
    ("add", 34, 34, 44, 44),
    ("remove", 34, 34, 60, 60),
    ("remove", 35, 35, 60, 60),
    ("add", 37, 37, 7, 7),
    ("remove", 37, 37, 60, 60),
    ("add", 38, 38, 38, 38),
    ("remove", 38, 38, 43, 43),
    ("remove", 39, 39, 60, 60),
    ("remove", 42, 42, 60, 60),
    ("remove", 45, 45, 43, 43),
    ("remove", 46, 46, 60, 60),
    ("remove", 47, 47, 60, 60),
    ("add", 49, 49, 7, 7),
    ("remove", 49, 49, 60, 60),
    ("remove", 52, 52, 43, 43),
    ("remove", 55, 55, 60, 60),
    ("remove", 56, 56, 60, 60),
    ("add", 57, 57, 7, 7),
    ("remove", 57, 57, 60, 60),
    ("remove", 58, 58, 43, 43),
    ("remove", 63, 63, 43, 43),
    ("add", 64, 64, 7, 8),
    ("remove", 64, 64, 39, 39),
    ("add", 64, 64, 44, 44),
    ("remove", 64, 64, 60, 60),
    ("add", 65, 65, 7, 7),
    ("remove", 65, 65, 39, 39),
    ("remove", 65, 65, 60, 60),
    ("add", 66, 66, 7, 7),
    ("remove", 66, 66, 39, 39),
    ("remove", 66, 66, 60, 60),
    ("remove", 71, 71, 43, 43),
)

PRESETS: Dict[str, PresetRecipe] = {
    "IceTop86": PresetRecipe(
        "IceTop86",
        "Downgoing charged particle veto using all IC86 IceTop tanks",
        (("add", 1, 86, 61, 64),),
        _defaults(allow_slc=False),
    ),
    "Upper86": PresetRecipe(
        "Upper86",
        "Downgoing charged particle veto using the 6 upper in-ice modules",
        UPPER,
    ),
    "DustLayer86": PresetRecipe(
        "DustLayer86",
        "Veto for charged particles sneaking in via the dust layer (modules 39-43)",
        DUST_LAYER,
    ),
    "Bottom86": PresetRecipe(
        "Bottom86",
        "Veto for light entering from below (bottom module 60)",
        BOTTOM,
    ),
    "Sides86": PresetRecipe(
        "Sides86",
        "Veto for charged particles entering from the side (outer strings)",
        SIDES,
    ),
    "Start86": PresetRecipe(
        "Start86",
        "Starting-event veto: Upper86 + DustLayer86 + Bottom86 + Sides86",
        START,
    ),
    "HESE86": PresetRecipe(
        "HESE86",
        "The veto used for the IC86 high-energy starting events",
        START + HESE_CORRECTIONS,
        _defaults(min_total_amplitude=3.0, min_firing_sensors=3, allow_slc=False),
        reference_class="icecube",
    ),
}


def preset_names() -> Tuple[str, ...]:
    return tuple(PRESETS)
