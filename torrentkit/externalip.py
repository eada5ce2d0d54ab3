"""Public IPv4 addresses of this host's own network interfaces."""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import List, Optional

_log = logging.getLogger(__name__)

_LINK_LOCAL_MULTICAST = ipaddress.IPv4Network("224.0.0.0/24")


def _to_ipv4(ip) -> Optional[ipaddress.IPv4Address]:
    if isinstance(ip, (bytes, bytearray)):
        try:
            ip = ipaddress.ip_address(bytes(ip))
        except ValueError:
            return None
    elif isinstance(ip, str):
        try:
            ip = ipaddress.ip_address(ip)
        except ValueError:
            return None
    if isinstance(ip, ipaddress.IPv4Address):
        return ip
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return None


def is_public_ip(ip) -> bool:
    """Return True if ``ip`` is an IPv4 address outside the private and local ranges."""
    ip4 = _to_ipv4(ip)
    if ip4 is None:
        return False
    if ip4.is_loopback or ip4.is_link_local or ip4 in _LINK_LOCAL_MULTICAST:
        return False
    first, second = ip4.packed[0], ip4.packed[1]
    if first == 10:
        return False
    if first == 172 and 16 <= second <= 31:
        return False
    if first == 192 and second == 168:
        return False
    return True


def _discover() -> List[ipaddress.IPv4Address]:
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError as exc:
        _log.warning("cannot get interface addresses: %s", exc)
        return []
    found: List[ipaddress.IPv4Address] = []
    for info in infos:
        ip4 = _to_ipv4(info[4][0])
        if ip4 is not None and is_public_ip(ip4) and ip4 not in found:
            found.append(ip4)
    return found


_ips: List[ipaddress.IPv4Address] = _discover()


def is_external(ip) -> bool:
    """Return True if ``ip`` is one of this host's public interface addresses."""
    ip4 = _to_ipv4(ip)
    if ip4 is None:
        return False
    return ip4 in _ips


def first_external_ip() -> Optional[ipaddress.IPv4Address]:
    """Return the first public interface address, or None if there is none."""
    return _ips[0] if _ips else None