import pytest

from iceveto.config.presets import PRESETS
from iceveto.geometry.sensors import encode_sensor_id
from iceveto.veto.regions import NO_RESIDUAL_FILTER, VetoRegionRegistry


def _activate(name, **kw):
    reg = VetoRegionRegistry()
    assert reg.activate_preset(name, **kw)
    return reg, reg.lookup(name)


def test_unknown_preset_is_refused():
    reg = VetoRegionRegistry()
    assert not reg.activate_preset("IC40Magic")
    assert len(reg) == 0


@pytest.mark.parametrize(
    "name,n_members",
    [
        ("IceTop86", 86 * 4),
        ("Upper86", 79 * 6),
        ("DustLayer86", 79 * 5),
        ("Bottom86", 79),
        ("Sides86", 28 * 60),
        # 28 outer strings fully, 51 inner strings with 6 top + 5 dust + 1 bottom
        ("Start86", 28 * 60 + 51 * 12),
    ],
)
def test_preset_sizes(name, n_members):
    _, r = _activate(name)
    assert r.n_members == n_members


def test_preset_common_defaults():
    _, r = _activate("Upper86")
    p = r.params
    assert p.min_total_amplitude == 0.0
    assert p.min_hit_amplitude == 0.0
    assert p.min_firing_sensors == 1
    assert p.min_hits == 1
    assert p.allow_slc is True
    assert not p.residual_filtering
    assert r.reference_class == "inice"


def test_hese_defaults_differ_from_common():
    _, r = _activate("HESE86")
    p = r.params
    assert p.min_total_amplitude == 3.0
    assert p.min_firing_sensors == 3
    assert p.allow_slc is False
    assert r.reference_class == "icecube"


def test_icetop_excludes_slc_by_default():
    _, r = _activate("IceTop86")
    assert r.params.allow_slc is False
    assert encode_sensor_id(86, 64) in r.members
    assert encode_sensor_id(86, 60) not in r.members


def test_hese_corrections_applied():
    _, r = _activate("HESE86")
    assert encode_sensor_id(27, 38) in r.members
    assert encode_sensor_id(34, 7) in r.members
    assert encode_sensor_id(8, 43) not in r.members
    assert encode_sensor_id(15, 60) not in r.members
    # untouched Start86 members remain
    assert encode_sensor_id(9, 43) in r.members
    assert encode_sensor_id(1, 30) in r.members


def test_negative_override_uses_preset_default():
    _, r = _activate("HESE86", min_total_amplitude=6.0, min_firing_sensors=-1)
    assert r.params.min_total_amplitude == 6.0
    assert r.params.min_firing_sensors == 3


def test_explicit_override_wins():
    _, r = _activate("Upper86", min_hits=4, allow_slc=0, min_hit_amplitude=0.25)
    assert r.params.min_hits == 4
    assert r.params.allow_slc is False
    assert r.params.min_hit_amplitude == 0.25


def test_equal_residual_bounds_disable_filtering():
    _, r = _activate("Upper86", min_time_residual=5.0, max_time_residual=5.0)
    assert (r.params.min_time_residual, r.params.max_time_residual) == NO_RESIDUAL_FILTER

    _, r = _activate("Upper86", min_time_residual=-100.0, max_time_residual=100.0)
    assert r.params.residual_filtering
    assert (r.params.min_time_residual, r.params.max_time_residual) == (-100.0, 100.0)


def test_preset_title_and_manual_edit():
    reg, r = _activate("Bottom86")
    assert r.title == "Pre-defined IceVeto system"
    reg.remove_range("Bottom86", 1, 1, 60, 60)
    assert reg.lookup("Bottom86").title == "IceVeto system"


def test_preset_activated_twice_is_refused():
    reg, r = _activate("Upper86")
    assert not reg.activate_preset("Upper86")
    assert len(reg) == 1


def test_all_presets_activate():
    reg = VetoRegionRegistry()
    for name in PRESETS:
        assert reg.activate_preset(name)
    assert reg.names() == list(PRESETS)
