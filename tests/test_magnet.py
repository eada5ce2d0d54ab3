import base64

import pytest

from torrentkit.magnet import Magnet, MagnetError

HASH_HEX = "F60CC95E3566AF84C1AB223FD4CE80FA88E6438A"


def test_parse():
    u = "magnet:?xt=urn:btih:F60CC95E3566AF84C1AB223FD4CE80FA88E6438A&dn=sample_torrent&tr=udp%3a%2f%2ftracker.rain%3a2710"
    m = Magnet.parse(u)
    assert m.info_hash.hex() == HASH_HEX.lower()
    assert m.name == "sample_torrent"
    assert len(m.trackers) == 1
    assert m.trackers[0][0] == "udp://tracker.rain:2710"
    assert str(m).lower() == u.lower()


def test_base32_hash():
    raw = bytes.fromhex(HASH_HEX)
    m = Magnet.parse("magnet:?xt=urn:btih:" + base64.b32encode(raw).decode())
    assert m.info_hash == raw
    assert m.name == ""
    assert m.trackers == []
    assert m.peers == []


def test_tracker_tiers_ordering():
    u = f"magnet:?xt=urn:btih:{HASH_HEX}&tr.1=b1&tr.1=b2&tr.0=a&tr=x&tr=y&x.pe=peer1&x.pe=peer2"
    m = Magnet.parse(u)
    assert m.trackers == [["x"], ["y"], ["a"], ["b1", "b2"]]
    assert m.peers == ["peer1", "peer2"]


def test_negative_tier_index_ignored():
    m = Magnet.parse(f"magnet:?xt=urn:btih:{HASH_HEX}&tr.-1=a&tr.foo=b")
    assert m.trackers == []


def test_string_round_trip_multi_tier():
    m = Magnet(info_hash=bytes.fromhex(HASH_HEX), name="a b/c",
               trackers=[["http://t1/ann"], ["http://t2/a", "http://t3/a"]], peers=["1.2.3.4:5"])
    s = str(m)
    assert "&tr.1=" in s
    assert "&dn=a+b%2Fc" in s
    assert Magnet.parse(s) == m


def test_btmh_valid_20_bytes():
    digest = bytes(range(18))
    mh = bytes([0x12, 0x12]) + digest
    m = Magnet.parse("magnet:?xt=urn:btmh:" + mh.hex())
    assert m.info_hash == mh


def test_btmh_wrong_length():
    mh = bytes([0x12, 0x20]) + bytes(32)
    with pytest.raises(MagnetError, match="len != 20"):
        Magnet.parse("magnet:?xt=urn:btmh:" + mh.hex())


@pytest.mark.parametrize(
    "link, message",
    [
        ("http://example.com/", "not a magnet link"),
        ("magnet:?dn=foo", "missing xt param"),
        ("magnet:?xt=urn:btih:abcd", "32 or 40"),
        ("magnet:?xt=urn:sha1:abcd", "invalid xt param"),
    ],
)
def test_errors(link, message):
    with pytest.raises(MagnetError, match=message):
        Magnet.parse(link)


def test_invalid_hex():
    with pytest.raises(MagnetError):
        Magnet.parse("magnet:?xt=urn:btih:" + "z" * 40)