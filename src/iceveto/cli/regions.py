from __future__ import annotations

import typer

from iceveto.config.load import load_config, registry_from_config
from iceveto.config.presets import PRESETS

app = typer.Typer(help="Inspect veto-region definitions")

@app.command("show")
def show(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    mode: int = typer.Option(0, "--mode", "-m", min=0, max=2,
                             help="0: names and sizes, 1: + parameters, 2: + sensor ids"),
):
    """List the veto regions a config defines."""
    registry = registry_from_config(load_config(cfg_path))
    for line in registry.describe(mode=mode):
        typer.echo(line)

@app.command("presets")
def presets():
    """List the pre-defined veto systems."""
    for name, recipe in PRESETS.items():
        typer.echo(f"{name:12s} {recipe.description}")

if __name__ == "__main__":
    app()
