import hashlib
import io

import pytest

from torrentkit.bencode import BencodeError, decode, encode
from torrentkit.info import InfoError
from torrentkit.metainfo import MetaInfo, is_tracker_supported, is_webseed_supported, new_bytes

UBUNTU_NAME = "ubuntu-14.04.1-server-amd64.iso"
UBUNTU_LENGTH = 599785472
PIECE_LENGTH = 524288


def ubuntu_info():
    num_pieces = -(-UBUNTU_LENGTH // PIECE_LENGTH)
    return encode({
        "name": UBUNTU_NAME,
        "length": UBUNTU_LENGTH,
        "piece length": PIECE_LENGTH,
        "pieces": b"\xaa" * (20 * num_pieces),
    })


def load(torrent: dict) -> MetaInfo:
    return MetaInfo.load(io.BytesIO(encode(torrent)))


def test_torrent():
    info = ubuntu_info()
    mi = load({
        "info": decode(info),
        "announce": "http://torrent.ubuntu.com:6969/announce",
        "announce-list": [
            ["http://torrent.ubuntu.com:6969/announce"],
            ["http://ipv6.torrent.ubuntu.com:6969/announce"],
            ["wss://unsupported.example.com/announce"],
        ],
    })
    assert mi.info.name == UBUNTU_NAME
    assert mi.info.length == UBUNTU_LENGTH
    assert mi.info.hash == hashlib.sha1(info).digest()
    assert mi.announce_list == [
        ["http://torrent.ubuntu.com:6969/announce"],
        ["http://ipv6.torrent.ubuntu.com:6969/announce"],
    ]


def test_info_hash_uses_raw_bytes():
    # keys out of order: re-encoding would change the hash
    info_raw = b"d6:lengthi10e4:name1:x12:piece lengthi16384e6:pieces20:" + b"\x00" * 20 + b"e"
    unsorted = b"d4:name1:x6:lengthi10e12:piece lengthi16384e6:pieces20:" + b"\x00" * 20 + b"e"
    assert decode(info_raw) == decode(unsorted)
    mi = MetaInfo.load(io.BytesIO(b"d4:info" + unsorted + b"e"))
    assert mi.info.hash == hashlib.sha1(unsorted).digest()
    assert mi.info.hash != hashlib.sha1(info_raw).digest()


def test_announce_fallback():
    mi = load({"info": decode(ubuntu_info()), "announce": "udp://t.example.com:80/announce"})
    assert mi.announce_list == [["udp://t.example.com:80/announce"]]
    mi = load({"info": decode(ubuntu_info()), "announce": "wss://t.example.com/announce"})
    assert mi.announce_list == []


def test_url_list_variants():
    mi = load({"info": decode(ubuntu_info()), "url-list": ["http://a.example.com/", "ftp://b.example.com/"]})
    assert mi.url_list == ["http://a.example.com/"]
    mi = load({"info": decode(ubuntu_info()), "url-list": "https://c.example.com/"})
    assert mi.url_list == ["https://c.example.com/"]
    mi = load({"info": decode(ubuntu_info()), "url-list": 5})
    assert mi.url_list == []


def test_malformed_announce_list_is_ignored():
    mi = load({"info": decode(ubuntu_info()), "announce-list": [1, 2]})
    assert mi.announce_list == []


def test_missing_info():
    with pytest.raises(InfoError, match="no info dict"):
        load({"announce": "http://t.example.com/announce"})


def test_not_a_dictionary():
    with pytest.raises(BencodeError):
        MetaInfo.load(io.BytesIO(b"l1:ae"))


def test_supported_urls():
    assert is_tracker_supported("udp://x")
    assert is_tracker_supported("https://x")
    assert not is_tracker_supported("wss://x")
    assert is_webseed_supported("http://x")
    assert not is_webseed_supported("udp://x")


def test_new_bytes_round_trip():
    info = ubuntu_info()
    data = new_bytes(info, [["http://t.example.com/announce"]], ["http://w.example.com/"], "a comment", "creator")
    assert info in data
    raw = decode(data)
    assert raw[b"announce"] == b"http://t.example.com/announce"
    assert b"announce-list" not in raw
    assert raw[b"comment"] == b"a comment"
    assert raw[b"created by"] == b"creator"
    assert raw[b"creation date"] > 0
    mi = MetaInfo.load(io.BytesIO(data))
    assert mi.info.hash == hashlib.sha1(info).digest()
    assert mi.announce_list == [["http://t.example.com/announce"]]
    assert mi.url_list == ["http://w.example.com/"]


def test_new_bytes_tiers_and_webseeds():
    info = ubuntu_info()
    tiers = [["http://a.example.com/announce"], ["udp://b.example.com:80", "http://c.example.com/announce"]]
    seeds = ["http://w1.example.com/", "http://w2.example.com/"]
    data = new_bytes(info, tiers, seeds)
    raw = decode(data)
    assert b"announce" not in raw
    assert b"comment" not in raw
    assert b"created by" not in raw
    mi = MetaInfo.load(io.BytesIO(data))
    assert mi.announce_list == tiers
    assert mi.url_list == seeds


def test_new_bytes_single_tier_with_several_trackers_is_dropped():
    raw = decode(new_bytes(ubuntu_info(), [["http://a.example.com/", "http://b.example.com/"]], []))
    assert b"announce" not in raw
    assert b"announce-list" not in raw
    assert b"url-list" not in raw