import pytest

from torrentkit.bitfield import Bitfield, num_bytes


def test_from_bytes_full_byte():
    v = Bitfield.from_bytes(bytearray([0x0F]), 8)
    assert v.hex() == "0f"


def test_from_bytes_clears_unused_bits():
    buf = bytearray([0x0F])
    v = Bitfield.from_bytes(buf, 7)
    assert v.hex() == "0e"
    # bytearray is used in place
    assert buf == bytearray([0x0E])


def test_from_bytes_invalid_length():
    with pytest.raises(ValueError):
        Bitfield.from_bytes(bytearray([0x0F]), 9)


def test_set():
    v = Bitfield(10)
    assert v.hex() == "0000"
    v.set(0)
    assert v.hex() == "8000"
    v.set(9)
    assert v.hex() == "8040"
    with pytest.raises(IndexError):
        v.set(10)


def test_clear_and_test():
    v = Bitfield(10)
    v.set(0)
    v.set(9)
    v.clear(0)
    assert v.hex() == "0040"
    assert v.test(2) is False
    assert v.test(9) is True


def test_test_out_of_bounds():
    v = Bitfield(3)
    with pytest.raises(IndexError):
        v.test(3)
    with pytest.raises(IndexError):
        v.clear(-1)


def test_count_and_all():
    v = Bitfield(3)
    assert v.count() == 0
    assert v.all() is False
    for i in range(3):
        v.set(i)
    assert v.count() == 3
    assert v.all() is True
    assert len(v) == 3


def test_copy_is_independent():
    v = Bitfield(16)
    v.set(1)
    c = v.copy()
    c.set(2)
    assert v.hex() == "4000"
    assert c.hex() == "6000"
    assert len(c) == 16


@pytest.mark.parametrize("length,expected", [(0, 0), (1, 1), (8, 1), (9, 2), (64, 8)])
def test_num_bytes(length, expected):
    assert num_bytes(length) == expected