import logging

import pytest

from iceveto.geometry.sensors import encode_sensor_id
from iceveto.veto.regions import (
    NO_RESIDUAL_FILTER,
    VetoParameters,
    VetoRegionRegistry,
)


def _reg_with(name="Veto", **kw):
    reg = VetoRegionRegistry()
    assert reg.define(name, **kw)
    return reg


def test_define_creates_empty_region():
    reg = _reg_with("A", min_total_amplitude=2.5, min_hit_amplitude=0.3)
    r = reg.lookup("A")
    assert r is not None
    assert r.members == set()
    assert r.region_id == 1
    assert r.params.min_total_amplitude == 2.5
    assert r.params.min_hit_amplitude == 0.3
    assert (r.params.min_time_residual, r.params.max_time_residual) == NO_RESIDUAL_FILTER
    assert not r.params.residual_filtering


def test_define_duplicate_is_refused(caplog):
    reg = _reg_with("A", min_hits=4)
    reg.add_range("A", 1, 2, 1, 2)
    before = reg.lookup("A").copy()

    with caplog.at_level(logging.WARNING, logger="iceveto.veto.regions"):
        assert not reg.define("A", min_hits=9)
    assert "already exists" in caplog.text

    after = reg.lookup("A")
    assert after.params == before.params
    assert after.members == before.members
    assert len(reg) == 1


def test_region_ids_follow_definition_order():
    reg = VetoRegionRegistry()
    for name in ("x", "y", "z"):
        reg.define(name)
    assert [r.region_id for r in reg] == [1, 2, 3]
    assert reg.names() == ["x", "y", "z"]


def test_define_clamps_counts_and_flag():
    reg = _reg_with("A", min_firing_sensors=0, min_hits=-3, allow_slc=5)
    p = reg.lookup("A").params
    assert p.min_firing_sensors == 1
    assert p.min_hits == 1
    assert p.allow_slc is True

    reg.define("B", allow_slc=0)
    assert reg.lookup("B").params.allow_slc is False


def test_parameters_clamp_on_construction():
    p = VetoParameters(min_firing_sensors=-1, min_hits=0, allow_slc=0.05)
    assert p.min_firing_sensors == 1
    assert p.min_hits == 1
    assert p.allow_slc is False


def test_add_range_membership():
    reg = _reg_with()
    assert reg.add_range("Veto", 25, 26, 1, 3)
    assert reg.lookup("Veto").members == {2501, 2502, 2503, 2601, 2602, 2603}


def test_add_range_is_idempotent():
    reg = _reg_with()
    reg.add_range("Veto", 1, 5, 1, 8)
    once = set(reg.lookup("Veto").members)
    reg.add_range("Veto", 1, 5, 1, 8)
    assert reg.lookup("Veto").members == once


def test_add_then_remove_restores_membership():
    reg = _reg_with()
    reg.add_range("Veto", 10, 12, 20, 25)
    before = set(reg.lookup("Veto").members)

    reg.add_range("Veto", 40, 41, 1, 60)
    reg.remove_range("Veto", 40, 41, 1, 60)
    assert reg.lookup("Veto").members == before

    reg2 = _reg_with()
    reg2.add_range("Veto", 3, 3, 1, 1)
    reg2.remove_range("Veto", 3, 3, 1, 1)
    assert reg2.lookup("Veto").members == set()


def test_remove_non_member_is_noop():
    reg = _reg_with()
    reg.add_range("Veto", 1, 1, 1, 2)
    assert reg.remove_range("Veto", 50, 50, 1, 60)
    assert reg.lookup("Veto").members == {101, 102}


def test_negative_strings_are_a_separate_namespace():
    reg = _reg_with()
    reg.add_range("Veto", -2, -1, 1, 2)
    assert reg.lookup("Veto").members == {-101, -102, -201, -202}

    # string 0 is skipped when a range crosses it
    reg.add_range("Veto", -1, 1, 5, 5)
    assert {-105, 105} <= reg.lookup("Veto").members
    assert 5 not in reg.lookup("Veto").members


def test_range_errors_are_noops(caplog):
    reg = _reg_with()
    with caplog.at_level(logging.WARNING, logger="iceveto.veto.regions"):
        assert not reg.add_range("Nope", 1, 1, 1, 1)
        assert not reg.remove_range("Nope", 1, 1, 1, 1)
        assert not reg.add_range("Veto", 5, 4, 1, 1)   # inverted strings
        assert not reg.add_range("Veto", 1, 1, 9, 3)   # inverted modules
        assert not reg.add_range("Veto", 1, 1, 0, 3)   # module 0 does not exist
    assert reg.lookup("Veto").members == set()
    assert "No veto region found" in caplog.text


def test_set_parameter_updates_and_clamps():
    reg = _reg_with()
    assert reg.set_parameter("Veto", "min_total_amplitude", 12.0)
    assert reg.set_parameter("Veto", "min_hits", 0)
    assert reg.set_parameter("Veto", "min_firing_sensors", -4)
    assert reg.set_parameter("Veto", "allow_slc", 0.05)
    assert reg.set_parameter("Veto", "min_time_residual", -100)
    assert reg.set_parameter("Veto", "max_time_residual", 250)

    p = reg.lookup("Veto").params
    assert p.min_total_amplitude == 12.0
    assert p.min_hits == 1
    assert p.min_firing_sensors == 1
    assert p.allow_slc is False
    assert p.residual_filtering
    assert (p.min_time_residual, p.max_time_residual) == (-100.0, 250.0)


def test_set_parameter_errors_are_noops():
    reg = _reg_with(min_hits=3)
    assert not reg.set_parameter("Nope", "min_hits", 5)
    assert not reg.set_parameter("Veto", "NhitVetoMin", 5)
    assert reg.lookup("Veto").params.min_hits == 3


@pytest.mark.parametrize(
    "param,value",
    [
        ("min_hits", "abc"),
        ("min_hits", None),
        ("min_firing_sensors", float("nan")),
        ("min_hits", float("inf")),
        ("min_total_amplitude", "abc"),
        ("min_hit_amplitude", None),
        ("max_time_residual", float("nan")),
        ("allow_slc", "yes"),
    ],
)
def test_set_parameter_bad_values_are_noops(caplog, param, value):
    reg = _reg_with(min_hits=3, min_total_amplitude=2.0)
    before = reg.lookup("Veto").params
    with caplog.at_level(logging.WARNING, logger="iceveto.veto.regions"):
        assert not reg.set_parameter("Veto", param, value)
    assert "Invalid value" in caplog.text
    assert reg.lookup("Veto").params == before


def test_define_with_bad_values_is_refused(caplog):
    reg = VetoRegionRegistry()
    with caplog.at_level(logging.WARNING, logger="iceveto.veto.regions"):
        assert not reg.define("A", min_hits="many")
        assert not reg.define("B", min_total_amplitude=float("nan"))
        assert not reg.activate_preset("Upper86", min_hits=None)
        assert not reg.activate_preset("Bottom86", min_firing_sensors=float("inf"))
    assert len(reg) == 0
    assert "Invalid parameters" in caplog.text


def test_lookup_returns_a_copy():
    reg = _reg_with()
    reg.add_range("Veto", 1, 1, 1, 2)
    r = reg.lookup("Veto")
    r.add([encode_sensor_id(5, 5)])
    r.params = r.params.with_value("min_hits", 7)
    assert reg.lookup("Veto").members == {101, 102}
    assert reg.lookup("Veto").params.min_hits == 1


def test_lookup_unknown_returns_none():
    assert VetoRegionRegistry().lookup("missing") is None


def test_unknown_reference_class_is_refused():
    reg = VetoRegionRegistry()
    assert not reg.define("A", reference_class="outer-space")
    assert "A" not in reg


def test_snapshot_is_independent():
    reg = _reg_with()
    reg.add_range("Veto", 1, 1, 1, 3)
    snap = reg.snapshot()
    snap[0].members.add(encode_sensor_id(9, 9))
    snap[0].title = "changed"
    assert encode_sensor_id(9, 9) not in reg.lookup("Veto").members
    assert reg.lookup("Veto").title == "IceVeto system"


def test_describe_modes():
    reg = _reg_with()
    reg.add_range("Veto", 1, 1, 1, 2)

    lines0 = reg.describe(0)
    assert lines0[0] == "Number of registered veto systems : 1"
    assert "name=Veto nDOMs=2" in lines0[1]

    lines1 = reg.describe(1)
    assert any("min_hits = 1" in ln for ln in lines1)

    lines2 = reg.describe(2)
    assert lines2[-1].strip() == "sensors: 101 102"
