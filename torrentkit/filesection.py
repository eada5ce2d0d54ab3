"""Pieces that span sections of several files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List


@dataclass
class FileSection:
    """``length`` bytes of a seekable binary ``file`` starting at ``offset``."""

    file: Any
    offset: int
    length: int
    name: str = ""


class Piece:
    """Contiguous file sections that together hold one piece of a torrent."""

    def __init__(self, sections: Iterable[FileSection]) -> None:
        self.sections: List[FileSection] = list(sections)

    def __len__(self) -> int:
        return sum(sec.length for sec in self.sections)

    def read_at(self, offset: int, size: int) -> bytes:
        """Read ``size`` bytes starting ``offset`` bytes into the piece.

        Raises ``EOFError`` if the files hold fewer bytes than requested.
        """
        if offset < 0 or size < 0:
            raise ValueError("negative offset or size")
        if offset > len(self):
            raise ValueError("offset out of range")
        out = bytearray()
        pos = 0
        for sec in self.sections:
            if len(out) >= size:
                break
            end = pos + sec.length
            if end > offset:
                skip = max(0, offset - pos)
                want = min(size - len(out), sec.length - skip)
                if want > 0:
                    sec.file.seek(sec.offset + skip)
                    out += sec.file.read(want)
            pos = end
        if len(out) < size:
            raise EOFError("unexpected end of file")
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Write ``data`` over all sections in order and return the bytes written.

        ``data`` must be at least as long as the piece.
        """
        if len(data) < len(self):
            raise ValueError("data is shorter than the piece")
        view = memoryview(data)
        written = 0
        for sec in self.sections:
            sec.file.seek(sec.offset)
            m = sec.file.write(view[:sec.length])
            if hasattr(sec.file, "flush"):
                sec.file.flush()
            written += m
            view = view[m:]
        return written