import numpy as np
from typer.testing import CliRunner

from iceveto.cli.regions import app as regions_app
from iceveto.io.event_store import read_region_fired, read_veto_levels, write_events
from iceveto.pipelines.core import run_pipeline
from iceveto.sim.synth import synth_events, toy_geometry


def _setup(tmp_path, n_events=20):
    geometry = toy_geometry()
    events = synth_events(n_events, geometry, np.random.default_rng(1))
    write_events(tmp_path / "events.h5", events, geometry)

    cfg = tmp_path / "veto.toml"
    cfg.write_text(f"""
[run]
diagnostics_level = 0
progress = false

[io]
input_path = "{(tmp_path / 'events.h5').as_posix()}"
output_path = "{(tmp_path / 'out' / 'veto.h5').as_posix()}"

[[regions]]
preset = "Upper86"

[[regions]]
preset = "IceTop86"
""")
    return cfg, events


def test_pipeline_writes_one_row_per_event(tmp_path):
    cfg, events = _setup(tmp_path)
    out = run_pipeline(str(cfg))
    assert out.exists()

    levels = read_veto_levels(out)
    assert levels.shape == (20,)
    # only events without any hit are skipped
    skipped = [ev.n_sensors == 0 for ev in events]
    np.testing.assert_array_equal(np.isnan(levels), skipped)
    assert np.all(levels[~np.isnan(levels)] >= 0)
    assert np.all(levels[~np.isnan(levels)] <= 2)

    fired = read_region_fired(out, "Upper86").astype(float) + read_region_fired(out, "IceTop86")
    np.testing.assert_array_equal(fired[~np.isnan(levels)], levels[~np.isnan(levels)])


def test_pipeline_overrides(tmp_path):
    cfg, _ = _setup(tmp_path)
    out = run_pipeline(str(cfg), workers=2, max_events=5)
    assert read_veto_levels(out).shape == (5,)


def test_regions_cli(tmp_path):
    cfg, _ = _setup(tmp_path, n_events=1)
    runner = CliRunner()

    res = runner.invoke(regions_app, ["show", str(cfg)])
    assert res.exit_code == 0
    assert "Number of registered veto systems : 2" in res.output
    assert "name=Upper86" in res.output

    res = runner.invoke(regions_app, ["presets"])
    assert res.exit_code == 0
    assert "HESE86" in res.output
