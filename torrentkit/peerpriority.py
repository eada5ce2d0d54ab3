"""Canonical peer priority (BEP 40)."""

from __future__ import annotations

import ipaddress
from typing import Optional, Tuple


def _make_table() -> tuple:
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            crc = (crc >> 1) ^ 0x82F63B78 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _make_table()


def crc32c(data: bytes) -> int:
    """Return the CRC-32 of ``data`` using the Castagnoli polynomial."""
    crc = 0xFFFFFFFF
    for b in data:
        crc = _TABLE[(crc ^ b) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def _parse(ip):
    if isinstance(ip, (bytes, bytearray)):
        ip = ipaddress.ip_address(bytes(ip))
    elif isinstance(ip, str):
        ip = ipaddress.ip_address(ip)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def _to4(ip) -> bytes:
    return ip.packed if isinstance(ip, ipaddress.IPv4Address) else b""


def _mask(ip4: bytes, mask: bytes) -> bytes:
    if len(ip4) != len(mask):
        return b""
    return bytes(a & m for a, m in zip(ip4, mask))


def _same_subnet(ones: int, a: bytes, b: bytes) -> bool:
    mask = ((0xFFFFFFFF << (32 - ones)) & 0xFFFFFFFF).to_bytes(4, "big")
    return _mask(a, mask) == _mask(b, mask)


def _ipv4_mask(a: bytes, b: bytes) -> bytes:
    if not _same_subnet(16, a, b):
        return bytes([0xFF, 0xFF, 0x55, 0x55])
    if not _same_subnet(24, a, b):
        return bytes([0xFF, 0xFF, 0xFF, 0x55])
    return bytes([0xFF, 0xFF, 0xFF, 0xFF])


def _calculate_bytes(a: Tuple, b: Tuple) -> Tuple[bytes, bytes]:
    ip_a, port_a = _parse(a[0]), a[1]
    ip_b, port_b = _parse(b[0]), b[1]
    if ip_a == ip_b:
        return (port_a & 0xFFFF).to_bytes(2, "big"), (port_b & 0xFFFF).to_bytes(2, "big")
    a4, b4 = _to4(ip_a), _to4(ip_b)
    mask = _ipv4_mask(a4, b4)
    return _mask(a4, mask), _mask(b4, mask)


def calculate(a: Tuple, b: Tuple) -> int:
    """Return the priority of peer ``a`` relative to client ``b``.

    Each address is an ``(ip, port)`` pair; the result is symmetric.
    """
    x, y = _calculate_bytes(a, b)
    first, second = (x, y) if x < y else (y, x)
    return crc32c(first + second)