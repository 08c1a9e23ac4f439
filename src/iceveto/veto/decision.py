# src/iceveto/veto/decision.py
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from iceveto.physics.constants import ConstantProvider, VacuumConstants
from iceveto.physics.events import EventView
from .reference import ReferenceEstimate, ReferenceSettings, estimate_reference
from .regions import VetoParameters, VetoRegion, VetoRegionRegistry
from .residuals import RegionAggregate, ResidualHook, evaluate_region

logger = logging.getLogger(__name__)


def is_fired(params: VetoParameters, agg: RegionAggregate) -> bool:
    return (
        agg.total_amplitude >= params.min_total_amplitude
        and agg.firing_sensors >= params.min_firing_sensors
        and agg.hits >= params.min_hits
    )


@dataclass(frozen=True)
class VetoEvaluation:
    """Auditable outcome of one veto region for one event."""
    region_name: str
    region_id: int
    title: str
    params: VetoParameters
    aggregate: RegionAggregate
    fired: bool

    @property
    def level(self) -> int:
        return 1 if self.fired else 0

    def as_record(self) -> Dict[str, Any]:
        rec: Dict[str, Any] = dict(self.params.as_dict())
        rec.update(
            firing_sensors=self.aggregate.firing_sensors,
            hits=self.aggregate.hits,
            total_amplitude=self.aggregate.total_amplitude,
            veto_level=self.level,
        )
        return rec


def decide(region: VetoRegion, agg: RegionAggregate) -> VetoEvaluation:
    return VetoEvaluation(
        region_name=region.name,
        region_id=region.region_id,
        title=region.title,
        params=region.params,
        aggregate=agg,
        fired=is_fired(region.params, agg),
    )


def veto_level(evaluations: Iterable[VetoEvaluation]) -> float:
    """Number of fired regions (not clamped)."""
    return float(sum(ev.level for ev in evaluations))


@dataclass(frozen=True)
class VetoOutcome:
    event_id: Any
    evaluations: Tuple[VetoEvaluation, ...]
    level: float

    @property
    def fired_regions(self) -> List[str]:
        return [ev.region_name for ev in self.evaluations if ev.fired]


class VetoProcessor:
    """
    Evaluate every registered veto region on one event at a time.

    workers: 0/1 evaluates regions sequentially, >1 (or "auto") spreads the
    regions of an event over a thread pool. Regions only read a snapshot of
    the registry, so the order of the results is always the definition order.
    """

    def __init__(
        self,
        registry: VetoRegionRegistry,
        constants: Optional[ConstantProvider] = None,
        settings: Optional[ReferenceSettings] = None,
        *,
        selection_threshold: float = 0.1,
        workers: Union[int, str] = 0,
        hook: Optional[ResidualHook] = None,
    ):
        self.registry = registry
        self.constants = constants or VacuumConstants()
        self.settings = settings or ReferenceSettings()
        self.selection_threshold = float(selection_threshold)
        if workers == "auto":
            workers = max(1, os.cpu_count() or 1)
        elif isinstance(workers, int):
            workers = max(0, workers)
        else:
            raise ValueError("workers must be int or 'auto'")
        self.workers = workers
        self.hook = hook

    def _references(self, event: EventView, regions: Sequence[VetoRegion]) -> Dict[Tuple[str, bool], ReferenceEstimate]:
        refs: Dict[Tuple[str, bool], ReferenceEstimate] = {}
        for r in regions:
            key = (r.reference_class, r.reference_include_slc)
            if key not in refs:
                hits = event.get_hits(r.reference_class, include_slc=r.reference_include_slc)
                refs[key] = estimate_reference(hits, self.settings)
        return refs

    def evaluate(self, event: EventView) -> Tuple[VetoEvaluation, ...]:
        """All region evaluations for `event`, without touching the event."""
        regions = self.registry.snapshot()
        if not regions:
            return ()
        refs = self._references(event, regions)
        c = self.constants.speed_of_light()

        def _one(region: VetoRegion) -> VetoEvaluation:
            ref = refs[(region.reference_class, region.reference_include_slc)]
            return decide(region, evaluate_region(region, event, ref, c, hook=self.hook))

        if self.workers > 1 and len(regions) > 1:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(regions))) as ex:
                return tuple(ex.map(_one, regions))
        return tuple(_one(r) for r in regions)

    def process(self, event: EventView) -> Optional[VetoOutcome]:
        """
        Run the veto on `event` and write the per-region records and the
        overall veto level into it.

        Events rejected by an upstream selector and events without any
        recorded sensor are skipped (None is returned, nothing is written).
        """
        event_id = getattr(event, "event_id", None)
        if event.has_prior_rejection(self.selection_threshold):
            logger.debug("Event %s rejected upstream; veto not evaluated", event_id)
            return None
        if not event.get_hits("all", include_slc=True):
            logger.debug("Event %s has no hits; veto not evaluated", event_id)
            return None

        evaluations = self.evaluate(event)
        for ev in evaluations:
            event.attach_result(ev.region_name, ev)
        level = veto_level(evaluations)
        event.set_veto_level(level)
        return VetoOutcome(event_id=event_id, evaluations=evaluations, level=level)
