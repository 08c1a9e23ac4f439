import numpy as np
import pytest

from iceveto.geometry.sensors import (
    Sensor,
    classify,
    decode_sensor_id,
    encode_sensor_id,
    sensor_in_class,
)


def test_encode_examples():
    assert encode_sensor_id(38, 4) == 3804
    assert encode_sensor_id(1, 61) == 161
    assert encode_sensor_id(-2, 7) == -207


def test_encode_decode_bijection():
    seen = set()
    for s in list(range(-5, 0)) + list(range(1, 87)):
        for m in range(1, 100):
            sid = encode_sensor_id(s, m)
            assert decode_sensor_id(sid) == (s, m)
            seen.add(sid)
    # no two (string, module) pairs collide
    assert len(seen) == 91 * 99


@pytest.mark.parametrize("string,module", [(0, 1), (5, 0), (5, 100), (-3, 0)])
def test_encode_rejects_invalid(string, module):
    with pytest.raises(ValueError):
        encode_sensor_id(string, module)


def test_decode_rejects_invalid():
    with pytest.raises(ValueError):
        decode_sensor_id(100)  # module 0
    with pytest.raises(ValueError):
        decode_sensor_id(42)   # string 0


def test_sensor_classes():
    assert classify(1, 61) == {"all", "icetop"}
    assert classify(10, 10) == {"all", "inice", "icecube"}
    assert classify(80, 10) == {"all", "inice", "deepcore"}
    assert classify(-1, 5) == {"all"}
    assert sensor_in_class(encode_sensor_id(80, 30), "inice")
    assert not sensor_in_class(encode_sensor_id(80, 30), "icecube")
    with pytest.raises(ValueError):
        sensor_in_class(101, "nonsense")


def test_sensor_properties():
    s = Sensor(sensor_id=encode_sensor_id(-4, 12), r=np.zeros(3))
    assert s.string == -4
    assert s.module == 12
    assert s.in_class("all")
    assert not s.in_class("inice")
