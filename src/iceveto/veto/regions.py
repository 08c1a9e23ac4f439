# src/iceveto/veto/regions.py
"""
Veto-region definitions and the registry that owns them.

A veto region is a named set of sensors plus a fixed parameter vector.
All registry edits are configuration-time operations: invalid requests
(duplicate names, unknown regions, empty ranges, unknown presets) are
logged and ignored, and the method returns False.
"""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from iceveto.config.presets import PRESETS, PresetRecipe
from iceveto.geometry.sensors import SENSOR_CLASSES, encode_sensor_id

logger = logging.getLogger(__name__)

PREDEFINED_PREFIX = "Pre-defined "
DEFAULT_TITLE = "IceVeto system"

# min > max switches the time residual cut off
NO_RESIDUAL_FILTER: Tuple[float, float] = (1.0, 0.0)


def _as_count(value) -> int:
    v = float(value)
    if not math.isfinite(v):
        raise ValueError(f"count must be finite, got {value!r}")
    n = int(v)
    return n if n >= 1 else 1


def _as_float(value) -> float:
    v = float(value)
    if math.isnan(v):
        raise ValueError("NaN is not a valid veto parameter")
    return v


def _as_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    v = float(value)
    if math.isnan(v):
        raise ValueError("NaN is not a valid SLC flag")
    return abs(v) > 0.1


@dataclass(frozen=True)
class VetoParameters:
    """
    Firing criteria of one veto region.

    min_total_amplitude : minimal summed amplitude of all veto hits
    min_hit_amplitude   : minimal amplitude of a single veto hit
    min_firing_sensors  : minimal number of different sensors with a veto hit (>=1)
    min_hits            : minimal total number of veto hits (>=1)
    allow_slc           : whether SLC hits may count as veto hits
    min_time_residual   : lower bound of the accepted time residual [ns]
    max_time_residual   : upper bound of the accepted time residual [ns]

    If min_time_residual > max_time_residual the residual is not used.
    """
    min_total_amplitude: float = 0.0
    min_hit_amplitude: float = 0.0
    min_firing_sensors: int = 1
    min_hits: int = 1
    allow_slc: bool = True
    min_time_residual: float = NO_RESIDUAL_FILTER[0]
    max_time_residual: float = NO_RESIDUAL_FILTER[1]

    def __post_init__(self):
        object.__setattr__(self, "min_total_amplitude", _as_float(self.min_total_amplitude))
        object.__setattr__(self, "min_hit_amplitude", _as_float(self.min_hit_amplitude))
        object.__setattr__(self, "min_firing_sensors", _as_count(self.min_firing_sensors))
        object.__setattr__(self, "min_hits", _as_count(self.min_hits))
        object.__setattr__(self, "allow_slc", _as_flag(self.allow_slc))
        object.__setattr__(self, "min_time_residual", _as_float(self.min_time_residual))
        object.__setattr__(self, "max_time_residual", _as_float(self.max_time_residual))

    @property
    def residual_filtering(self) -> bool:
        return self.min_time_residual <= self.max_time_residual

    def with_value(self, name: str, value) -> "VetoParameters":
        if name not in PARAMETER_NAMES:
            raise KeyError(name)
        return replace(self, **{name: value})

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


PARAMETER_NAMES: Tuple[str, ...] = tuple(f.name for f in fields(VetoParameters))


@dataclass
class VetoRegion:
    name: str
    region_id: int
    title: str = DEFAULT_TITLE
    params: VetoParameters = field(default_factory=VetoParameters)
    members: set[int] = field(default_factory=set)
    # which hits define the event reference (COG, central time, start)
    reference_class: str = "inice"
    reference_include_slc: bool = False

    def add(self, sensor_ids: Iterable[int]) -> None:
        self.members.update(int(s) for s in sensor_ids)

    def discard(self, sensor_ids: Iterable[int]) -> None:
        self.members.difference_update(int(s) for s in sensor_ids)

    def copy(self) -> "VetoRegion":
        return replace(self, members=set(self.members))

    @property
    def n_members(self) -> int:
        return len(self.members)


def _range_ids(string_lo: int, string_hi: int, module_lo: int, module_hi: int) -> List[int]:
    # string 0 has no sensors; it only shows up in ranges crossing from surface to in-ice ids
    return [
        encode_sensor_id(s, m)
        for s in range(string_lo, string_hi + 1)
        if s != 0
        for m in range(module_lo, module_hi + 1)
    ]


class VetoRegionRegistry:
    """Ordered collection of uniquely named veto regions."""

    def __init__(self):
        self._regions: Dict[str, VetoRegion] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[VetoRegion]:
        return iter(self.snapshot())

    def __contains__(self, name: str) -> bool:
        return name in self._regions

    def names(self) -> List[str]:
        with self._lock:
            return list(self._regions)

    def lookup(self, name: str) -> Optional[VetoRegion]:
        """Copy of the region `name`; edits go through the registry methods."""
        with self._lock:
            region = self._regions.get(name)
            return None if region is None else region.copy()

    def snapshot(self) -> Tuple[VetoRegion, ...]:
        """Independent copies of all regions, in definition order."""
        with self._lock:
            return tuple(r.copy() for r in self._regions.values())

    # ---- definition -------------------------------------------------------

    def define(
        self,
        name: str,
        min_total_amplitude: float = 0.0,
        min_hit_amplitude: float = 0.0,
        min_firing_sensors: int = 1,
        min_hits: int = 1,
        allow_slc: bool = True,
        min_time_residual: float = NO_RESIDUAL_FILTER[0],
        max_time_residual: float = NO_RESIDUAL_FILTER[1],
        *,
        title: str = DEFAULT_TITLE,
        reference_class: str = "inice",
        reference_include_slc: bool = False,
    ) -> bool:
        """
        Define a new veto region with an empty sensor set.

        Counts below 1 are raised to 1 and the SLC flag is reduced to a bool.
        Individual parameters can be changed later via set_parameter().
        """
        with self._lock:
            if name in self._regions:
                logger.warning(
                    "Veto region name already exists: %s. Please specify another (unique) name.",
                    name,
                )
                return False
            if reference_class not in SENSOR_CLASSES:
                logger.warning("Unknown reference sensor class %r for veto region %s", reference_class, name)
                return False

            try:
                params = VetoParameters(
                    min_total_amplitude=min_total_amplitude,
                    min_hit_amplitude=min_hit_amplitude,
                    min_firing_sensors=min_firing_sensors,
                    min_hits=min_hits,
                    allow_slc=allow_slc,
                    min_time_residual=min_time_residual,
                    max_time_residual=max_time_residual,
                )
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning("Invalid parameters for veto region %s: %s", name, e)
                return False
            self._regions[name] = VetoRegion(
                name=name,
                region_id=self._next_id,
                title=title,
                params=params,
                reference_class=reference_class,
                reference_include_slc=bool(reference_include_slc),
            )
            self._next_id += 1
            return True

    def add_range(self, name: str, string_lo: int, string_hi: int, module_lo: int, module_hi: int) -> bool:
        """
        Add the modules [module_lo, module_hi] of strings [string_lo, string_hi] (inclusive).

        Example: (25, 64, 1, 8) registers modules 1-8 of strings 25-64.
        """
        return self._edit_range("add", name, string_lo, string_hi, module_lo, module_hi)

    def remove_range(self, name: str, string_lo: int, string_hi: int, module_lo: int, module_hi: int) -> bool:
        return self._edit_range("remove", name, string_lo, string_hi, module_lo, module_hi)

    def _edit_range(self, op: str, name: str, string_lo: int, string_hi: int, module_lo: int, module_hi: int) -> bool:
        with self._lock:
            region = self._regions.get(name)
            if region is None:
                logger.warning("No veto region found with name: %s", name)
                return False
            if string_hi < string_lo or module_hi < module_lo:
                logger.warning(
                    "Empty range strings=[%d,%d] modules=[%d,%d] for veto region %s",
                    string_lo, string_hi, module_lo, module_hi, name,
                )
                return False
            if module_lo < 1 or module_hi > 99:
                logger.warning(
                    "Module range [%d,%d] outside [1,99] for veto region %s", module_lo, module_hi, name
                )
                return False

            ids = _range_ids(string_lo, string_hi, module_lo, module_hi)
            if op == "add":
                region.add(ids)
            else:
                region.discard(ids)

            # edited by hand: no longer identical to its preset
            region.title = region.title.replace(PREDEFINED_PREFIX, "")
            return True

    def set_parameter(self, name: str, param_name: str, value) -> bool:
        """Set or modify one parameter (see VetoParameters) of the region `name`."""
        with self._lock:
            region = self._regions.get(name)
            if region is None:
                logger.warning("No veto region found with name: %s", name)
                return False
            try:
                region.params = region.params.with_value(param_name, value)
            except KeyError:
                logger.warning(
                    "Unknown veto parameter %r; supported parameters are %s", param_name, PARAMETER_NAMES
                )
                return False
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning("Invalid value %r for veto parameter %s of %s: %s", value, param_name, name, e)
                return False
            return True

    # ---- presets ------------------------------------------------------------

    def activate_preset(
        self,
        preset_name: str,
        min_total_amplitude: float = -1,
        min_hit_amplitude: float = -1,
        min_firing_sensors: int = -1,
        min_hits: int = -1,
        allow_slc: int = -1,
        min_time_residual: float = 0.0,
        max_time_residual: float = 0.0,
    ) -> bool:
        """
        Define and populate one of the standard regions (see config.presets.PRESETS).

        Negative arguments take the preset's own default. Equal residual bounds
        switch the residual cut off.
        """
        recipe = PRESETS.get(preset_name)
        if recipe is None:
            logger.warning(
                "Unknown pre-defined veto system: %s (available: %s)", preset_name, ", ".join(PRESETS)
            )
            return False

        d = recipe.defaults
        if min_time_residual == max_time_residual:
            min_time_residual, max_time_residual = NO_RESIDUAL_FILTER

        with self._lock:
            ok = self.define(
                recipe.name,
                min_total_amplitude=_or_default(min_total_amplitude, d["min_total_amplitude"]),
                min_hit_amplitude=_or_default(min_hit_amplitude, d["min_hit_amplitude"]),
                min_firing_sensors=_or_default(min_firing_sensors, d["min_firing_sensors"]),
                min_hits=_or_default(min_hits, d["min_hits"]),
                allow_slc=_or_default(allow_slc, d["allow_slc"]),
                min_time_residual=min_time_residual,
                max_time_residual=max_time_residual,
                reference_class=recipe.reference_class,
            )
            if not ok:
                return False
            _apply_recipe(self, recipe)
            region = self._regions[recipe.name]
            region.title = PREDEFINED_PREFIX + region.title
            logger.debug("Activated preset %s with %d sensors", recipe.name, region.n_members)
            return True

    # ---- reporting --------------------------------------------------------

    def describe(self, mode: int = 0) -> List[str]:
        """
        Text listing of the registered regions.

        mode 0: id, title, name and number of sensors
        mode 1: also the parameter settings
        mode 2: also the ids of all member sensors
        """
        regions = self.snapshot()
        lines = [f"Number of registered veto systems : {len(regions)}"]
        for r in regions:
            lines.append(f"Veto system {r.region_id} : ({r.title}) name={r.name} nDOMs={r.n_members}")
            if mode > 0:
                for k, v in r.params.as_dict().items():
                    lines.append(f"  {k} = {v}")
                lines.append(f"  reference = {r.reference_class} (slc={r.reference_include_slc})")
            if mode == 2:
                lines.append("  sensors: " + " ".join(str(s) for s in sorted(r.members)))
        return lines


def _or_default(value, default):
    try:
        return default if value < 0 else value
    except TypeError:
        # not comparable; define() reports and refuses it
        return value


def _apply_recipe(registry: VetoRegionRegistry, recipe: PresetRecipe) -> None:
    for op, s_lo, s_hi, m_lo, m_hi in recipe.operations:
        if op == "add":
            registry.add_range(recipe.name, s_lo, s_hi, m_lo, m_hi)
        else:
            registry.remove_range(recipe.name, s_lo, s_hi, m_lo, m_hi)


def build_registry(region_cfgs: Iterable) -> VetoRegionRegistry:
    """
    Build a registry from config.schemas.RegionCfg entries.

    Preset regions use activate_preset() with the configured overrides
    (None -> preset default); explicit regions use define() + ranges.
    """
    reg = VetoRegionRegistry()
    for rc in region_cfgs:
        if rc.preset is not None:
            ok = reg.activate_preset(
                rc.preset,
                min_total_amplitude=_unset(rc.min_total_amplitude),
                min_hit_amplitude=_unset(rc.min_hit_amplitude),
                min_firing_sensors=_unset(rc.min_firing_sensors),
                min_hits=_unset(rc.min_hits),
                allow_slc=_unset(None if rc.allow_slc is None else int(rc.allow_slc)),
                min_time_residual=rc.min_time_residual if rc.min_time_residual is not None else 0.0,
                max_time_residual=rc.max_time_residual if rc.max_time_residual is not None else 0.0,
            )
            name = rc.preset
        else:
            kwargs = {
                k: getattr(rc, k)
                for k in PARAMETER_NAMES
                if getattr(rc, k) is not None
            }
            ok = reg.define(
                rc.name,
                title=rc.title or DEFAULT_TITLE,
                reference_class=rc.reference_class,
                reference_include_slc=rc.reference_include_slc,
                **kwargs,
            )
            name = rc.name
        if not ok:
            continue

        for s_lo, s_hi, m_lo, m_hi in rc.add:
            reg.add_range(name, s_lo, s_hi, m_lo, m_hi)
        for s_lo, s_hi, m_lo, m_hi in rc.remove:
            reg.remove_range(name, s_lo, s_hi, m_lo, m_hi)
    return reg


def _unset(value):
    return -1 if value is None else value
