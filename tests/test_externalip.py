import ipaddress

import pytest

from torrentkit import externalip
from torrentkit.externalip import first_external_ip, is_external, is_public_ip


@pytest.mark.parametrize(
    "ip",
    [
        "10.1.2.3",
        "172.16.0.1",
        "172.31.255.255",
        "192.168.1.1",
        "127.0.0.1",
        "169.254.1.1",
        "224.0.0.5",
        "::1",
        "not an ip",
    ],
)
def test_not_public(ip):
    assert not is_public_ip(ip)


@pytest.mark.parametrize("ip", ["8.8.8.8", "172.32.0.1", "172.15.0.1", "192.169.0.1", "::ffff:8.8.4.4"])
def test_public(ip):
    assert is_public_ip(ip)


def test_public_accepts_packed_bytes():
    assert is_public_ip(ipaddress.IPv4Address("8.8.8.8").packed)
    assert not is_public_ip(ipaddress.IPv4Address("10.0.0.1").packed)


def test_discovered_addresses_are_public():
    ip = first_external_ip()
    assert ip is None or (is_public_ip(ip) and is_external(ip))


def test_loopback_never_external():
    assert not is_external("127.0.0.1")


def test_with_known_addresses(monkeypatch):
    addr = ipaddress.IPv4Address("203.0.113.5")
    monkeypatch.setattr(externalip, "_ips", [addr])
    assert is_external("203.0.113.5")
    assert is_external("::ffff:203.0.113.5")
    assert not is_external("203.0.113.6")
    assert first_external_ip() == addr


def test_no_known_addresses(monkeypatch):
    monkeypatch.setattr(externalip, "_ips", [])
    assert first_external_ip() is None
    assert not is_external("203.0.113.5")