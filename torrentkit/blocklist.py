"""IPv4 block lists loaded from CIDR rule files."""

from __future__ import annotations

import ipaddress
import threading
from typing import Callable, Iterable, Optional, Tuple, Union

from .stree import SegmentTree

Logger = Callable[[str], None]


class BlocklistError(ValueError):
    """Raised for an unparsable rule or a list with no valid rules."""


def parse_cidr(line: Union[str, bytes]) -> Tuple[int, int]:
    """Return the first and last address of an IPv4 CIDR range as integers."""
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="replace")
    addr, sep, prefix = line.partition("/")
    if not sep or not prefix.isascii() or not prefix.isdigit():
        raise BlocklistError(f"invalid CIDR address: {line}")
    try:
        ip = ipaddress.ip_address(addr)
    except ValueError as exc:
        raise BlocklistError(f"invalid CIDR address: {line}") from exc
    if ip.version != 4:
        raise BlocklistError("address is not ipv4")
    bits = int(prefix)
    if bits > 32:
        raise BlocklistError(f"invalid CIDR address: {line}")
    net = ipaddress.IPv4Network((ip, bits), strict=False)
    return int(net.network_address), int(net.broadcast_address)


def _ipv4_int(ip) -> Optional[int]:
    if isinstance(ip, (bytes, bytearray)):
        if len(ip) == 4:
            return int.from_bytes(ip, "big")
        if len(ip) == 16:
            ip = ipaddress.IPv6Address(bytes(ip))
        else:
            return None
    elif isinstance(ip, str):
        try:
            ip = ipaddress.ip_address(ip)
        except ValueError:
            return None
    if isinstance(ip, ipaddress.IPv4Address):
        return int(ip)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return int(ip.ipv4_mapped)
    return None


def _load(stream: Iterable, logger: Optional[Logger]) -> Tuple[SegmentTree, int]:
    tree = SegmentTree()
    count = 0
    has_error = False
    for raw in stream:
        if isinstance(raw, (bytes, bytearray)):
            line = bytes(raw).strip().decode("utf-8", errors="replace")
        else:
            line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            first, last = parse_cidr(line)
        except BlocklistError as exc:
            has_error = True
            if logger is not None:
                logger(f"cannot parse blocklist line ({line!r}): {str(exc)!r}")
            continue
        tree.add_range(first, last)
        count += 1
    if count == 0 and has_error:
        # At least one line must parse before the stream is trusted.
        raise BlocklistError("no valid rules")
    tree.build()
    return tree, count


class Blocklist:
    """A thread-safe set of blocked IPv4 ranges."""

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger
        self._tree = SegmentTree()
        self._count = 0
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def blocked(self, ip) -> bool:
        """Return True if ``ip`` falls inside a rule. Non-IPv4 addresses are never blocked."""
        value = _ipv4_int(ip)
        if value is None:
            return False
        with self._lock:
            return self._tree.contains(value)

    def reload(self, stream: Iterable) -> int:
        """Replace the rules with those read line by line from ``stream``.

        Returns the number of rules loaded. Lines that fail to parse are
        reported to the logger; if none parse, ``BlocklistError`` is raised
        and the current rules are kept.
        """
        with self._lock:
            tree, count = _load(stream, self.logger)
            self._tree = tree
            self._count = count
            return count