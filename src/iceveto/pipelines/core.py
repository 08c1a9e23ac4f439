from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union
import typer

from tqdm import tqdm

from iceveto.config.load import (
    load_config,
    snapshot_config_toml,
    reference_settings,
    registry_from_config,
    constants_from_config,
)
from iceveto.io.event_store import (
    OutcomeRow,
    count_events,
    iter_events,
    outcome_row,
    write_init,
    write_veto_results,
)
from iceveto.veto.decision import VetoProcessor

logger = logging.getLogger(__name__)

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO, 2: logging.DEBUG}


def configure_logging(diagnostics_level: int) -> None:
    logging.basicConfig(
        level=_LOG_LEVELS.get(diagnostics_level, logging.INFO),
        format="[%(name)s] %(levelname)s: %(message)s",
    )


def run_pipeline(
    cfg_path: str,
    *,
    workers: Optional[Union[int, str]] = None,
    max_events: Optional[int] = None,
) -> Path:
    """
    Run the veto regions of a TOML config over an HDF5 event file.

    CLI flags (--workers/--max-events) override the corresponding [run]
    fields when not None.

    Returns
    -------
    Path to the written HDF5 result file.
    """
    cfg = load_config(cfg_path)

    # ---- apply CLI overrides on top of TOML ----
    if workers is not None:
        cfg.run.workers = workers
    if max_events is not None:
        cfg.run.max_events = max_events

    registry = registry_from_config(cfg)
    if not len(registry):
        logger.warning("No veto regions configured; every processed event gets veto level 0")

    logger.info("config = %s", cfg_path)
    logger.info("input=%s -> output=%s", cfg.io.input_path, cfg.io.output_path)
    for line in registry.describe(mode=0):
        logger.info(line)

    processor = VetoProcessor(
        registry,
        constants=constants_from_config(cfg),
        settings=reference_settings(cfg.reference),
        selection_threshold=cfg.run.selection_threshold,
        workers=cfg.run.workers,
    )

    n_total = count_events(cfg.io.input_path)
    if cfg.run.max_events is not None:
        n_total = min(n_total, cfg.run.max_events)

    events = iter_events(cfg.io.input_path, max_events=cfg.run.max_events)
    if cfg.run.progress:
        events = tqdm(events, total=n_total, desc="veto", unit="evt")

    # one compact row per event; the events and their hits are not kept
    outcomes: List[Optional[OutcomeRow]] = []
    n_skipped = 0
    n_vetoed = 0
    for ev in events:
        out = processor.process(ev)
        outcomes.append(outcome_row(out))
        if out is None:
            n_skipped += 1
        elif out.level > 0:
            n_vetoed += 1
            logger.debug("event %s vetoed by %s", out.event_id, ", ".join(out.fired_regions))

    logger.info(
        "processed=%d skipped=%d vetoed=%d accepted=%d",
        len(outcomes), n_skipped, n_vetoed, len(outcomes) - n_skipped - n_vetoed,
    )

    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with write_init(out_path, snapshot_config_toml(cfg_path)) as f:
        write_veto_results(f, outcomes, registry.snapshot())

    return out_path


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Evaluate veto regions on detector events (iceveto.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        help="Override [run].workers (threads for the per-event region pass)",
    ),
    max_events: Optional[int] = typer.Option(
        None,
        "--max-events",
        "-n",
        help="Override [run].max_events (process only the first N events)",
    ),
):
    """
    Run the veto pipeline for a single config.
    """
    configure_logging(load_config(cfg_path).run.diagnostics_level)
    out_path = run_pipeline(cfg_path, workers=workers, max_events=max_events)
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
