"""Bencoding, the serialisation format of torrent files."""

from __future__ import annotations

import re
from typing import Any, Tuple

_INT = re.compile(rb"-?(0|[1-9][0-9]*)")
_LEN = re.compile(rb"[0-9]+")


class BencodeError(ValueError):
    """Raised when data cannot be encoded or decoded."""


def encode(value: Any) -> bytes:
    """Encode ints, bools, strings, bytes, lists and dicts.

    Strings are encoded as UTF-8 and dictionary keys are sorted as bytes.
    """
    out = bytearray()
    _encode_into(value, out)
    return bytes(out)


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    raise BencodeError(f"dictionary key must be str or bytes, not {type(key).__name__}")


def _encode_into(value: Any, out: bytearray) -> None:
    if isinstance(value, bool):
        out += b"i1e" if value else b"i0e"
    elif isinstance(value, int):
        out += b"i%de" % value
    elif isinstance(value, str):
        raw = value.encode("utf-8")
        out += b"%d:" % len(raw) + raw
    elif isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        out += b"%d:" % len(raw) + raw
    elif isinstance(value, (list, tuple)):
        out += b"l"
        for item in value:
            _encode_into(item, out)
        out += b"e"
    elif isinstance(value, dict):
        items = {}
        for key, item in value.items():
            kb = _key_bytes(key)
            if kb in items:
                raise BencodeError(f"duplicate dictionary key: {kb!r}")
            items[kb] = item
        out += b"d"
        for kb in sorted(items):
            out += b"%d:" % len(kb) + kb
            _encode_into(items[kb], out)
        out += b"e"
    else:
        raise BencodeError(f"cannot encode value of type {type(value).__name__}")


def _decode_at(data: bytes, pos: int) -> Tuple[Any, int]:
    """Decode one value starting at ``pos``; return it with the position after it."""
    if pos >= len(data):
        raise BencodeError("unexpected end of data")
    c = data[pos]
    if c == ord("i"):
        end = data.find(b"e", pos + 1)
        if end == -1:
            raise BencodeError("unterminated integer")
        digits = data[pos + 1:end]
        if not _INT.fullmatch(digits) or digits == b"-0":
            raise BencodeError(f"invalid integer: {digits!r}")
        return int(digits), end + 1
    if c == ord("l"):
        pos += 1
        items = []
        while True:
            if pos >= len(data):
                raise BencodeError("unterminated list")
            if data[pos] == ord("e"):
                return items, pos + 1
            item, pos = _decode_at(data, pos)
            items.append(item)
    if c == ord("d"):
        pos += 1
        result = {}
        while True:
            if pos >= len(data):
                raise BencodeError("unterminated dictionary")
            if data[pos] == ord("e"):
                return result, pos + 1
            if not chr(data[pos]).isdigit():
                raise BencodeError("dictionary key must be a string")
            key, pos = _decode_at(data, pos)
            value, pos = _decode_at(data, pos)
            result[key] = value
    if ord("0") <= c <= ord("9"):
        colon = data.find(b":", pos)
        if colon == -1:
            raise BencodeError("unterminated string length")
        length = data[pos:colon]
        if not _LEN.fullmatch(length):
            raise BencodeError(f"invalid string length: {length!r}")
        start = colon + 1
        end = start + int(length)
        if end > len(data):
            raise BencodeError("string exceeds data")
        return data[start:end], end
    raise BencodeError(f"invalid token at offset {pos}: {chr(c)!r}")


def decode(data) -> Any:
    """Decode a complete bencoded value.

    Strings come back as bytes and dictionary keys as bytes. Trailing data
    is an error.
    """
    data = bytes(data)
    value, end = _decode_at(data, 0)
    if end != len(data):
        raise BencodeError("trailing data after value")
    return value