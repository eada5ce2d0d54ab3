"""Extracting the client identifier from a peer ID."""

from __future__ import annotations

from typing import Union

PeerID = Union[str, bytes]


def client_id(peer_id: PeerID) -> PeerID:
    """Return the client part of a peer ID, or the whole ID if no convention matches."""
    if len(peer_id) < 8:
        raise ValueError("peer id is too short")
    dash = b"-" if isinstance(peer_id, (bytes, bytearray)) else "-"

    # BEP 20 style: "-XXNNNN-"
    if peer_id[7:8] == dash:
        return peer_id[:8]

    # "-RN<version>-" style with a variable-length version
    if peer_id.startswith(dash + (b"RN" if isinstance(dash, bytes) else "RN")):
        i = peer_id[1:].find(dash)
        if i != -1:
            return peer_id[:i + 2]

    return peer_id