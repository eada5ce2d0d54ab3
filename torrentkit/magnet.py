"""Magnet link parsing and formatting."""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
from urllib.parse import parse_qsl, quote_plus, urlsplit


class MagnetError(ValueError):
    """Raised when a magnet link cannot be parsed."""


_INT = re.compile(r"[+-]?[0-9]+")


def _uvarint(buf: bytes, pos: int) -> Tuple[int, int]:
    value = 0
    shift = 0
    while pos < len(buf):
        b = buf[pos]
        pos += 1
        value |= (b & 0x7F) << shift
        if not b & 0x80:
            return value, pos
        shift += 7
        if shift > 63:
            break
    raise MagnetError("invalid multihash varint")


def _decode_multihash_hex(s: str) -> bytes:
    try:
        buf = binascii.unhexlify(s)
    except (binascii.Error, ValueError) as exc:
        raise MagnetError(str(exc)) from exc
    if len(buf) < 2:
        raise MagnetError("multihash too short")
    _, pos = _uvarint(buf, 0)
    length, pos = _uvarint(buf, pos)
    if len(buf) - pos != length:
        raise MagnetError("multihash length inconsistent")
    return buf


def _info_hash(xt: str) -> bytes:
    if xt.startswith("urn:btih:"):
        xt = xt[9:]
        try:
            if len(xt) == 40:
                return binascii.unhexlify(xt)
            if len(xt) == 32:
                return base64.b32decode(xt)
        except (binascii.Error, ValueError) as exc:
            raise MagnetError(str(exc)) from exc
        raise MagnetError("info hash must be 32 or 40 characters")
    if xt.startswith("urn:btmh:"):
        b = _decode_multihash_hex(xt[9:])
        if len(b) != 20:
            raise MagnetError("invalid multihash (len != 20)")
        return b
    raise MagnetError('invalid xt param: must start with "urn:btih:" or "urn:btmh"')


@dataclass
class Magnet:
    """The information in a magnet link needed to fetch torrent metadata."""

    info_hash: bytes
    name: str = ""
    trackers: List[List[str]] = field(default_factory=list)
    peers: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, s: str) -> "Magnet":
        """Parse a magnet link; raises ``MagnetError`` if it is invalid."""
        try:
            u = urlsplit(s)
        except ValueError as exc:
            raise MagnetError(str(exc)) from exc
        if u.scheme != "magnet":
            raise MagnetError("not a magnet link")

        params: Dict[str, List[str]] = {}
        for key, value in parse_qsl(u.query, keep_blank_values=True):
            params.setdefault(key, []).append(value)

        if "xt" not in params:
            raise MagnetError("missing xt param")
        xts = params["xt"]
        if not xts:
            raise MagnetError("empty xt param")
        info_hash = _info_hash(xts[0])

        names = params.get("dn", [])
        name = names[0] if names else ""

        tiers: List[Tuple[int, List[str]]] = []
        for key, values in params.items():
            if key == "tr":
                tiers.extend((i - len(values), [tr]) for i, tr in enumerate(values))
            elif key.startswith("tr.") and _INT.fullmatch(key[3:]):
                index = int(key[3:])
                if index >= 0:
                    tiers.append((index, values))
        tiers.sort(key=lambda t: t[0])

        return cls(
            info_hash=info_hash,
            name=name,
            trackers=[list(t) for _, t in tiers],
            peers=list(params.get("x.pe", [])),
        )

    def __str__(self) -> str:
        parts = ["magnet:?xt=urn:btih:", self.info_hash.hex()]
        if self.name:
            parts += ["&dn=", quote_plus(self.name, safe="")]
        for i, tier in enumerate(self.trackers):
            if len(tier) == 1:
                parts += ["&tr=", quote_plus(tier[0], safe="")]
            else:
                for t in tier:
                    parts += [f"&tr.{i}=", quote_plus(t, safe="")]
        for p in self.peers:
            parts += ["&x.pe=", p]
        return "".join(parts)