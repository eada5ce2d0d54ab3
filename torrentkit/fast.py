"""Allowed-fast set generation (BEP 6)."""

from __future__ import annotations

import hashlib
import ipaddress
from typing import List, Optional


def _ipv4_bytes(ip) -> Optional[bytes]:
    if isinstance(ip, (bytes, bytearray)):
        if len(ip) == 4:
            return bytes(ip)
        if len(ip) != 16:
            return None
        ip = ipaddress.IPv6Address(bytes(ip))
    elif isinstance(ip, str):
        try:
            ip = ipaddress.ip_address(ip)
        except ValueError:
            return None
    if isinstance(ip, ipaddress.IPv4Address):
        return ip.packed
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped.packed
    return None


def generate_fast_set(k: int, num_pieces: int, info_hash: bytes, ip) -> List[int]:
    """Return up to ``k`` piece indexes allowed fast for a peer at ``ip``.

    Returns an empty list if ``ip`` is not an IPv4 address.
    """
    ip4 = _ipv4_bytes(ip)
    if ip4 is None:
        return []
    x = ip4[:3] + b"\x00" + bytes(info_hash[:20])
    result: List[int] = []
    for _ in range(k):
        if len(result) >= k:
            break
        x = hashlib.sha1(x).digest()  # nosec - defined by the protocol
        for i in range(0, 20, 4):
            if len(result) >= k:
                break
            index = int.from_bytes(x[i:i + 4], "big") % num_pieces
            if index not in result:
                result.append(index)
    return result