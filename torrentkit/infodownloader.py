"""Downloading torrent metadata (the info dictionary) block by block from one peer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Protocol

BLOCK_SIZE = 16 * 1024


class MetadataError(ValueError):
    """Raised when a peer sends an invalid metadata block."""


class MetadataPeer(Protocol):
    def metadata_size(self) -> int: ...

    def request_metadata_piece(self, index: int) -> None: ...


@dataclass
class _Block:
    size: int
    requested: bool = False


class InfoDownloader:
    """Tracks the metadata blocks requested from and received from a peer."""

    def __init__(self, peer: MetadataPeer) -> None:
        self.peer = peer
        size = peer.metadata_size()
        self.data = bytearray(size)
        self.pending = 0
        self._next_block = 0
        num_blocks, mod = divmod(size, BLOCK_SIZE)
        self._blocks: List[_Block] = [_Block(BLOCK_SIZE) for _ in range(num_blocks)]
        if mod:
            self._blocks.append(_Block(mod))

    @property
    def num_blocks(self) -> int:
        return len(self._blocks)

    def got_block(self, index: int, data: bytes) -> None:
        """Store a metadata block received from the peer."""
        if not 0 <= index < len(self._blocks):
            raise MetadataError(f"peer sent invalid metadata piece index: {index}")
        block = self._blocks[index]
        if not block.requested:
            raise MetadataError(f"peer sent unrequested index for metadata message: {index}")
        if len(data) != block.size:
            raise MetadataError(f"peer sent invalid size for metadata message: {len(data)}")
        self.pending -= 1
        begin = index * BLOCK_SIZE
        self.data[begin:begin + block.size] = data

    def request_blocks(self, queue_length: int) -> None:
        """Request further blocks until ``queue_length`` are in flight."""
        while self._next_block < len(self._blocks) and self.pending < queue_length:
            self.peer.request_metadata_piece(self._next_block)
            self._blocks[self._next_block].requested = True
            self.pending += 1
            self._next_block += 1

    def done(self) -> bool:
        """Return True once every block has been requested and received."""
        return self._next_block == len(self._blocks) and self.pending == 0