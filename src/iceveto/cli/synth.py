from __future__ import annotations

from pathlib import Path

import numpy as np
import typer

from iceveto.io.event_store import write_events
from iceveto.sim.synth import synth_events, toy_geometry

app = typer.Typer(help="Synthetic veto test data")

@app.command()
def main(
    out: Path = typer.Argument(..., help="Output HDF5 event file"),
    events: int = typer.Option(100, "--events", "-n", min=1, help="Number of events"),
    seed: int = typer.Option(0, "--seed", help="RNG seed"),
    muon_fraction: float = typer.Option(0.5, "--muon-fraction", min=0.0, max=1.0,
                                        help="Fraction of downgoing muons (rest are contained cascades)"),
):
    """Write toy cascades and downgoing muons on an IC86-like geometry."""
    geometry = toy_geometry()
    evs = synth_events(events, geometry, np.random.default_rng(seed), muon_fraction=muon_fraction)
    n_muons = sum(1 for e in evs if e.meta.get("kind") == "muon")
    write_events(out, evs, geometry)
    typer.echo(f"Wrote {len(evs)} events ({n_muons} muons) to {out}")

if __name__ == "__main__":
    app()
