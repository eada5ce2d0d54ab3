"""The info dictionary of a torrent: names, lengths and piece hashes."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Union

from .bencode import decode, encode

_HASH_SIZE = 20


class InfoError(ValueError):
    """Raised when an info dictionary is invalid or cannot be created."""


@dataclass
class File:
    """A file inside a torrent."""

    length: int
    path: str


@dataclass
class Info:
    """A parsed info dictionary."""

    piece_length: int
    name: str
    hash: bytes
    length: int
    num_pieces: int
    data: bytes
    private: bool
    files: List[File]
    pieces: bytes = field(repr=False, default=b"")

    @classmethod
    def from_bytes(cls, data) -> "Info":
        """Parse a bencoded info dictionary."""
        data = bytes(data)
        ib = decode(data)
        if not isinstance(ib, dict):
            raise InfoError("info is not a dictionary")

        piece_length = _get_int(ib, b"piece length")
        if piece_length < 0 or piece_length > 0xFFFFFFFF:
            raise InfoError("invalid piece length field")
        pieces = _get_bytes(ib, b"pieces")
        raw_name = _get_bytes(ib, b"name")
        raw_files = _get_files(ib)

        if piece_length == 0:
            raise InfoError("torrent has zero piece length")
        if len(pieces) % _HASH_SIZE != 0:
            raise InfoError("invalid piece data")
        num_pieces = len(pieces) // _HASH_SIZE
        if num_pieces == 0:
            raise InfoError("torrent has zero pieces")
        for _, parts in raw_files:
            if any(p.strip() == ".." for p in parts):
                raise InfoError(f"invalid file name: {os.path.join(*parts)!r}")

        multi_file = bool(raw_files)
        if multi_file:
            length = sum(flen for flen, _ in raw_files)
        else:
            length = _get_int(ib, b"length")
        delta = piece_length * num_pieces - length
        if delta >= piece_length or delta < 0:
            raise InfoError("invalid piece data")

        info_hash = hashlib.sha1(data).digest()  # nosec - defined by the protocol
        name = raw_name.decode("utf-8", errors="replace") or info_hash.hex()

        if multi_file:
            files = [
                File(length=flen, path=_join([clean_name(name)] + [clean_name(p) for p in parts]))
                for flen, parts in raw_files
            ]
        else:
            files = [File(length=length, path=clean_name(name))]

        return cls(
            piece_length=piece_length,
            name=name,
            hash=info_hash,
            length=length,
            num_pieces=num_pieces,
            data=data,
            private=_parse_private(ib.get(b"private")),
            files=files,
            pieces=pieces,
        )

    def piece_hash(self, index: int) -> bytes:
        """Return the SHA-1 hash of the piece at ``index``."""
        if not 0 <= index < self.num_pieces:
            raise IndexError("piece index out of range")
        begin = index * _HASH_SIZE
        return self.pieces[begin:begin + _HASH_SIZE]


def _join(parts: List[str]) -> str:
    parts = [p for p in parts if p]
    if not parts:
        return ""
    return os.path.normpath(os.path.join(*parts))


def _get_int(d: dict, key: bytes) -> int:
    v = d.get(key, 0)
    if not isinstance(v, int):
        raise InfoError(f"invalid {key.decode()} field")
    return v


def _get_bytes(d: dict, key: bytes) -> bytes:
    v = d.get(key, b"")
    if not isinstance(v, bytes):
        raise InfoError(f"invalid {key.decode()} field")
    return v


def _get_files(d: dict) -> List[tuple]:
    raw = d.get(b"files", [])
    if not isinstance(raw, list):
        raise InfoError("invalid files field")
    files = []
    for f in raw:
        if not isinstance(f, dict):
            raise InfoError("invalid files field")
        flen = _get_int(f, b"length")
        path = f.get(b"path", [])
        if not isinstance(path, list) or not all(isinstance(p, bytes) for p in path):
            raise InfoError("invalid path field")
        files.append((flen, [p.decode("utf-8", errors="replace") for p in path]))
    return files


def _parse_private(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, int):
        return value != 0
    if isinstance(value, bytes):
        return value not in (b"", b"0")
    return True


def clean_name(s: Union[str, bytes]) -> str:
    """Make ``s`` usable as a file name of at most 255 bytes."""
    return clean_name_n(s, 255)


def clean_name_n(s: Union[str, bytes], max_len: int) -> str:
    """Trim ``s`` to ``max_len`` UTF-8 bytes keeping its extension, and replace '/' with '_'."""
    if isinstance(s, (bytes, bytearray)):
        s = bytes(s).decode("utf-8", errors="replace")
    raw = s.encode("utf-8", errors="replace")
    raw = _trim_name(raw, max_len)
    return raw.decode("utf-8", errors="ignore").replace("/", "_")


def _trim_name(s: bytes, max_len: int) -> bytes:
    if len(s) <= max_len:
        return s
    dot = s.rfind(b".")
    ext = s[dot:] if dot != -1 and b"/" not in s[dot:] else b""
    if len(ext) > max_len:
        return s[:max_len]
    return s[:max_len - len(ext)] + ext


def calculate_piece_length(total_length: int) -> int:
    """Choose a piece length giving about 2000 pieces, between 32 KiB and 16 MiB."""
    piece_length = total_length // 2000
    if piece_length < 32 << 10:
        return 32 << 10
    if piece_length > 16 << 20:
        return 16 << 20
    return 1 << (piece_length - 1).bit_length()


def _walk_files(root: str) -> Iterator[str]:
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_files(entry.path)
        else:
            yield entry.path


def new_info_bytes(path: str, private: bool = False, piece_length: int = 0) -> bytes:
    """Create a bencoded info dictionary by reading and hashing the files at ``path``."""
    root_is_dir = os.path.isdir(path)
    if root_is_dir:
        file_paths = list(_walk_files(path))
        total_length = sum(os.stat(p).st_size for p in file_paths)
    else:
        file_paths = [path]
        total_length = os.stat(path).st_size
    if total_length == 0:
        raise InfoError("no files")
    if piece_length == 0:
        piece_length = calculate_piece_length(total_length)
    elif piece_length % (16 << 10) != 0:
        raise InfoError("piece length must be multiple of 16K")

    files = []
    pieces = bytearray()
    buf = bytearray()
    for fp in file_paths:
        with open(fp, "rb") as f:
            size = os.fstat(f.fileno()).st_size
            rel = os.path.relpath(fp, path)
            files.append({"length": size, "path": [p for p in rel.split(os.sep) if p]})
            while True:
                need = piece_length - len(buf)
                chunk = f.read(need)
                buf += chunk
                if len(chunk) < need:
                    break
                pieces += hashlib.sha1(buf).digest()  # nosec - defined by the protocol
                buf.clear()
    if buf:
        pieces += hashlib.sha1(buf).digest()  # nosec - defined by the protocol

    info = {
        "name": os.path.basename(os.path.normpath(path)),
        "private": bool(private),
        "piece length": piece_length,
        "pieces": bytes(pieces),
    }
    if root_is_dir:
        info["files"] = files
    else:
        info["length"] = total_length
    return encode(info)