from __future__ import annotations
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, Optional, List, Union

from iceveto.config.presets import PRESETS
from iceveto.geometry.sensors import SensorClass

PRESET_FIXED_KEYS = frozenset({"name", "title", "reference_class", "reference_include_slc"})

class RunCfg(BaseModel):
    """
    Global run controls.

    TOML:

    [run]
    diagnostics_level   = 1      # 0=warnings only, 1=summary, 2=per-event debug
    workers             = 0      # threads per event for the region pass
    selection_threshold = 0.1    # upstream selection signal below this = rejected
    """

    diagnostics_level: int = 1
    workers: Union[int, Literal["auto"]] = 0
    selection_threshold: float = 0.1
    progress: bool = False
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("workers")
    def _workers_nonneg(cls, v):
        if isinstance(v, int) and v < 0:
            raise ValueError("workers must be >= 0 or 'auto'")
        return v

class IOCfg(BaseModel):
    """
    I/O paths.

    [io]
    input_path  = "events.h5"     # HDF5 event file (see iceveto.io.event_store)
    output_path = "veto.h5"
    """

    input_path: str
    output_path: str

class ReferenceCfg(BaseModel):
    """Event reference (COG, central time, sliding-window start) settings."""

    window_ns: float = 3000.0
    threshold_fraction: float = 0.05
    threshold_floor: float = 3.0
    central_value: Literal["median", "mean"] = "median"
    weighted: bool = True

class PhysicsCfg(BaseModel):
    # None -> vacuum speed of light
    speed_of_light_m_per_ns: Optional[float] = None

    @field_validator("speed_of_light_m_per_ns")
    def _positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("speed_of_light_m_per_ns must be positive")
        return v

class RegionCfg(BaseModel):
    """
    One veto region, either a preset or an explicit definition.

    [[regions]]
    preset = "HESE86"
    min_total_amplitude = 6        # override; omitted parameters use the preset defaults
                                   # name, title and reference_* are fixed by the preset

    [[regions]]
    name = "TopLayer"
    min_hits = 2
    add = [[1, 78, 1, 3]]          # [string_lo, string_hi, module_lo, module_hi]
    remove = [[36, 36, 1, 3]]
    """

    name: Optional[str] = None
    preset: Optional[str] = None
    title: Optional[str] = None

    min_total_amplitude: Optional[float] = None
    min_hit_amplitude: Optional[float] = None
    min_firing_sensors: Optional[int] = None
    min_hits: Optional[int] = None
    allow_slc: Optional[bool] = None
    min_time_residual: Optional[float] = None
    max_time_residual: Optional[float] = None

    add: List[List[int]] = Field(default_factory=list)
    remove: List[List[int]] = Field(default_factory=list)

    reference_class: SensorClass = "inice"
    reference_include_slc: bool = False

    @field_validator("add", "remove")
    def _four_ints(cls, v: List[List[int]]) -> List[List[int]]:
        for rng in v:
            if len(rng) != 4:
                raise ValueError(f"Range must be [string_lo, string_hi, module_lo, module_hi], got {rng}")
        return v

    @field_validator("preset")
    def _known_preset(cls, v):
        if v is not None and v not in PRESETS:
            raise ValueError(f"Unknown preset {v!r}; available: {', '.join(PRESETS)}")
        return v

    @model_validator(mode="after")
    def _named(self):
        if self.preset is None and not self.name:
            raise ValueError("An explicit veto region needs a name")
        if self.preset is not None:
            # presets fix their own name, title and reference selection
            fixed = sorted(PRESET_FIXED_KEYS & self.model_fields_set)
            if fixed:
                raise ValueError(
                    f"Preset {self.preset!r} does not accept {', '.join(fixed)}; "
                    "define an explicit region to change them"
                )
        return self


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    reference: ReferenceCfg = Field(default_factory=ReferenceCfg)
    physics: PhysicsCfg = Field(default_factory=PhysicsCfg)
    regions: List[RegionCfg] = Field(default_factory=list)
