"""Reading and writing torrent files."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .bencode import BencodeError, _decode_at, decode, encode
from .info import Info, InfoError


def is_tracker_supported(url: str) -> bool:
    """Return True for HTTP, HTTPS and UDP tracker URLs."""
    return url.startswith(("http://", "https://", "udp://"))


def is_webseed_supported(url: str) -> bool:
    """Return True for HTTP and HTTPS web seed URLs."""
    return url.startswith(("http://", "https://"))


def _top_level_raw(data: bytes) -> Dict[bytes, bytes]:
    if not data.startswith(b"d"):
        raise BencodeError("torrent is not a dictionary")
    raw: Dict[bytes, bytes] = {}
    pos = 1
    while True:
        if pos >= len(data):
            raise BencodeError("unterminated dictionary")
        if data[pos] == ord("e"):
            return raw
        key, pos = _decode_at(data, pos)
        if not isinstance(key, bytes):
            raise BencodeError("dictionary key must be a string")
        start = pos
        _, pos = _decode_at(data, pos)
        raw[key] = data[start:pos]


def _try_decode(raw: bytes):
    try:
        return decode(raw)
    except BencodeError:
        return None


def _as_str(value) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return None


@dataclass
class MetaInfo:
    """A parsed torrent file."""

    info: Info
    announce_list: List[List[str]] = field(default_factory=list)
    url_list: List[str] = field(default_factory=list)

    @classmethod
    def load(cls, stream) -> "MetaInfo":
        """Read a torrent from a binary stream.

        Unsupported tracker and web seed URLs are dropped, and malformed
        announce or url lists are ignored.
        """
        raw = _top_level_raw(bytes(stream.read()))
        info_raw = raw.get(b"info", b"")
        if not info_raw:
            raise InfoError("no info dict in torrent file")
        mi = cls(info=Info.from_bytes(info_raw))

        announce_list_raw = raw.get(b"announce-list", b"")
        if announce_list_raw:
            tiers = _try_decode(announce_list_raw)
            if isinstance(tiers, list) and all(
                isinstance(t, list) and all(isinstance(u, bytes) for u in t) for t in tiers
            ):
                for tier in tiers:
                    urls = [s for s in map(_as_str, tier) if is_tracker_supported(s)]
                    if urls:
                        mi.announce_list.append(urls)
        else:
            s = _as_str(_try_decode(raw.get(b"announce", b"")))
            if s is not None and is_tracker_supported(s):
                mi.announce_list.append([s])

        url_list_raw = raw.get(b"url-list", b"")
        if url_list_raw:
            value = _try_decode(url_list_raw)
            if url_list_raw.startswith(b"l"):
                if isinstance(value, list) and all(isinstance(u, bytes) for u in value):
                    mi.url_list.extend(s for s in map(_as_str, value) if is_webseed_supported(s))
            else:
                s = _as_str(value)
                if s is not None and is_webseed_supported(s):
                    mi.url_list.append(s)
        return mi


def new_bytes(
    info: bytes,
    trackers: Sequence[Sequence[str]] = (),
    webseeds: Sequence[str] = (),
    comment: str = "",
    creator: str = "",
) -> bytes:
    """Create a bencoded torrent file around the raw info dictionary ``info``."""
    fields: Dict[bytes, bytes] = {
        b"info": bytes(info),
        b"creation date": encode(int(time.time())),
    }
    if len(trackers) == 1 and len(trackers[0]) == 1:
        fields[b"announce"] = encode(trackers[0][0])
    elif len(trackers) > 1:
        fields[b"announce-list"] = encode([list(t) for t in trackers])
    if len(webseeds) == 1:
        fields[b"url-list"] = encode(webseeds[0])
    elif len(webseeds) > 1:
        fields[b"url-list"] = encode(list(webseeds))
    if comment:
        fields[b"comment"] = encode(comment)
    if creator:
        fields[b"created by"] = encode(creator)
    out = bytearray(b"d")
    for key in sorted(fields):
        out += b"%d:" % len(key) + key + fields[key]
    out += b"e"
    return bytes(out)