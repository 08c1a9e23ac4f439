from __future__ import annotations
from pathlib import Path

from .schemas import Config, ReferenceCfg
from iceveto.physics.constants import ConstantProvider, make_constants
from iceveto.veto.reference import ReferenceSettings
from iceveto.veto.regions import VetoRegionRegistry, build_registry

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path) -> Config:
    return parse_config(Path(path).read_text())

def parse_config(text: str) -> Config:
    return Config(**tomllib.loads(text))

def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()

def reference_settings(cfg: ReferenceCfg) -> ReferenceSettings:
    return ReferenceSettings(
        window_ns=cfg.window_ns,
        threshold_fraction=cfg.threshold_fraction,
        threshold_floor=cfg.threshold_floor,
        central_value=cfg.central_value,
        weighted=cfg.weighted,
    )

def registry_from_config(cfg: Config) -> VetoRegionRegistry:
    return build_registry(cfg.regions)

def constants_from_config(cfg: Config) -> ConstantProvider:
    return make_constants(cfg.physics.speed_of_light_m_per_ns)

