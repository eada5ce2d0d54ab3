"""A bounded list of peer addresses waiting to be connected, ordered by priority."""

from __future__ import annotations

import ipaddress
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, List, Optional, Tuple

from .externalip import is_external
from .peerpriority import calculate


def _normalize_ip(ip):
    if isinstance(ip, (bytes, bytearray)):
        ip = ipaddress.ip_address(bytes(ip))
    elif isinstance(ip, str):
        ip = ipaddress.ip_address(ip)
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


@dataclass(eq=False)
class _PeerAddr:
    addr: Tuple[Any, int]
    timestamp: float
    source: Hashable
    priority: int
    index: int = 0


class AddrList:
    """Peer addresses ready to be connected; the highest priority is popped first.

    Addresses are ``(ip, port)`` pairs. When more than ``max_items`` are held,
    the oldest ones are dropped.
    """

    def __init__(self, max_items: int, blocklist=None, listen_port: int = 0, client_ip=None) -> None:
        self.max_items = max_items
        self.blocklist = blocklist
        self.listen_port = listen_port
        self.client_ip = _normalize_ip(client_ip) if client_ip is not None else None
        self.reset()

    def reset(self) -> None:
        """Empty the list."""
        self._by_time: List[Optional[_PeerAddr]] = []
        self._by_priority: dict = {}
        self._count_by_source: Counter = Counter()

    def __len__(self) -> int:
        return len(self._by_priority)

    def len_source(self, source: Hashable) -> int:
        """Return the number of addresses that came from ``source``."""
        return self._count_by_source[source]

    def pop(self) -> Tuple[Tuple[Any, int], Hashable]:
        """Remove and return ``(addr, source)`` of the highest-priority address.

        Raises ``IndexError`` when the list is empty.
        """
        if not self._by_priority:
            raise IndexError("pop from empty address list")
        p = self._by_priority.pop(max(self._by_priority))
        self._by_time[p.index] = None
        self._count_by_source[p.source] -= 1
        return p.addr, p.source

    def _client_addr(self) -> Tuple[Any, int]:
        ip = self.client_ip if self.client_ip is not None else ipaddress.IPv4Address(0)
        return ip, self.listen_port

    def _compact(self) -> None:
        self._by_time = sorted((p for p in self._by_time if p is not None), key=lambda p: p.timestamp)
        for i, p in enumerate(self._by_time):
            p.index = i

    def push(self, addrs: Iterable[Tuple[Any, int]], source: Hashable) -> None:
        """Add addresses; one already in the list is replaced by the new entry."""
        now = time.monotonic()
        client_addr = self._client_addr()
        added = 0
        for ip, port in addrs:
            if port == 0:
                continue
            ip = _normalize_ip(ip)
            if ip.is_loopback and port == self.listen_port:
                continue
            if self.client_ip is not None and ip == self.client_ip:
                continue
            if is_external(ip):
                continue
            if self.blocklist is not None and self.blocklist.blocked(ip):
                continue
            p = _PeerAddr(addr=(ip, port), timestamp=now, source=source,
                          priority=calculate((ip, port), client_addr))
            prev = self._by_priority.get(p.priority)
            self._by_priority[p.priority] = p
            if prev is not None:
                self._by_time[prev.index] = p
                p.index = prev.index
                self._count_by_source[prev.source] -= 1
            else:
                self._by_time.append(p)
                p.index = len(self._by_time) - 1
            added += 1
        self._compact()
        self._count_by_source[source] += added

        delta = len(self._by_priority) - self.max_items
        if delta > 0:
            for i in range(delta):
                old = self._by_time[i]
                del self._by_priority[old.priority]
                self._by_time[i] = None
            self._compact()
            self._count_by_source[source] -= delta
        if len(self._by_time) != len(self._by_priority):
            raise RuntimeError("addr list data structures not in sync")