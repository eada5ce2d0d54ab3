import hashlib
import os

import pytest

from torrentkit.bencode import decode, encode
from torrentkit.info import (
    File,
    Info,
    InfoError,
    calculate_piece_length,
    clean_name,
    clean_name_n,
    new_info_bytes,
)


def make_info(**fields):
    d = {"piece length": 16384, "pieces": b"\x01" * 20, "name": b"file.bin", "length": 10000}
    d.update(fields)
    return encode({k: v for k, v in d.items() if v is not None})


def test_calculate_piece_length():
    assert calculate_piece_length(1) == 32 << 10
    assert calculate_piece_length(1 << 40) == 16 << 20
    assert calculate_piece_length(500 << 20) == 256 << 10
    assert calculate_piece_length(5 << 30) == 4 << 20


@pytest.mark.parametrize(
    "name, cleaned, max_len",
    [
        ("foo.bar", "foo.bar", 10),
        ("foo.bar", "foo.bar", 7),
        ("foo.bar", "fo.bar", 6),
        ("foo.bar", ".bar", 4),
        ("foo.bar", "foo", 3),
        ("foobar", "foobar", 10),
        ("foobar", "fo", 2),
        ("ğğğğ", "ğğğğ", 9),
        ("ğğğğ", "ğğğğ", 8),
        ("ğğğğ", "ğğğ", 7),
        ("ğğğğ", "ğğğ", 6),
    ],
)
def test_clean_name_n(name, cleaned, max_len):
    assert clean_name_n(name, max_len) == cleaned


def test_clean_name_replaces_separator():
    assert clean_name("a/b") == "a_b"
    assert len(clean_name("x" * 300).encode()) == 255


def test_single_file_info():
    data = make_info()
    info = Info.from_bytes(data)
    assert info.hash == hashlib.sha1(data).digest()
    assert info.name == "file.bin"
    assert info.length == 10000
    assert info.num_pieces == 1
    assert info.piece_length == 16384
    assert info.data == data
    assert info.files == [File(length=10000, path="file.bin")]
    assert info.piece_hash(0) == b"\x01" * 20
    assert info.private is False


def test_multi_file_info():
    data = make_info(
        name=b"dir",
        length=None,
        files=[
            {"length": 6000, "path": [b"a", b"b.txt"]},
            {"length": 4000, "path": [b"c/d"]},
        ],
    )
    info = Info.from_bytes(data)
    assert info.length == 10000
    assert [f.path for f in info.files] == [
        os.path.join("dir", "a", "b.txt"),
        os.path.join("dir", "c_d"),
    ]
    assert [f.length for f in info.files] == [6000, 4000]


def test_missing_name_uses_hash():
    data = make_info(name=None)
    info = Info.from_bytes(data)
    assert info.name == info.hash.hex()
    assert info.files[0].path == info.hash.hex()


@pytest.mark.parametrize(
    "private, expected",
    [(None, False), (1, True), (0, False), (b"0", False), (b"", False), (b"yes", True), ([1], True)],
)
def test_private_field(private, expected):
    assert Info.from_bytes(make_info(private=private)).private is expected


@pytest.mark.parametrize(
    "fields, message",
    [
        ({"piece length": 0}, "zero piece length"),
        ({"pieces": b"\x00" * 19}, "invalid piece data"),
        ({"pieces": b""}, "zero pieces"),
        ({"length": 20000}, "invalid piece data"),
        ({"length": 0}, "invalid piece data"),
        ({"length": None, "files": [{"length": 10, "path": [b" .. ", b"x"]}]}, "invalid file name"),
    ],
)
def test_invalid_info(fields, message):
    with pytest.raises(InfoError, match=message):
        Info.from_bytes(make_info(**fields))


def test_piece_hash_out_of_range():
    info = Info.from_bytes(make_info())
    with pytest.raises(IndexError):
        info.piece_hash(1)


def test_new_info_bytes_single_file(tmp_path):
    content = bytes(range(256)) * 160  # 40960 bytes
    p = tmp_path / "data.bin"
    p.write_bytes(content)
    info = Info.from_bytes(new_info_bytes(str(p), True, 32768))
    assert info.name == "data.bin"
    assert info.length == len(content)
    assert info.num_pieces == 2
    assert info.private is True
    assert info.piece_hash(0) == hashlib.sha1(content[:32768]).digest()
    assert info.piece_hash(1) == hashlib.sha1(content[32768:]).digest()


def test_new_info_bytes_directory(tmp_path):
    root = tmp_path / "root"
    (root / "sub").mkdir(parents=True)
    (root / "b.txt").write_bytes(b"b" * 20000)
    (root / "sub" / "a.txt").write_bytes(b"a" * 30000)
    data = new_info_bytes(str(root), False, 16384)
    raw = decode(data)
    assert b"length" not in raw
    info = Info.from_bytes(data)
    assert info.length == 50000
    assert info.num_pieces == 4
    assert [f.path for f in info.files] == [
        os.path.join("root", "b.txt"),
        os.path.join("root", "sub", "a.txt"),
    ]
    joined = b"b" * 20000 + b"a" * 30000
    assert info.piece_hash(1) == hashlib.sha1(joined[16384:32768]).digest()
    assert info.piece_hash(3) == hashlib.sha1(joined[49152:]).digest()


def test_new_info_bytes_default_piece_length(tmp_path):
    p = tmp_path / "small"
    p.write_bytes(b"x" * 100)
    info = Info.from_bytes(new_info_bytes(str(p)))
    assert info.piece_length == 32 << 10
    assert info.num_pieces == 1


def test_new_info_bytes_errors(tmp_path):
    empty = tmp_path / "empty"
    empty.write_bytes(b"")
    with pytest.raises(InfoError, match="no files"):
        new_info_bytes(str(empty))
    full = tmp_path / "full"
    full.write_bytes(b"x")
    with pytest.raises(InfoError, match="multiple of 16K"):
        new_info_bytes(str(full), False, 1000)