"""Fixed-length bit fields as used by the BitTorrent peer protocol (BEP 3)."""

from __future__ import annotations


def num_bytes(length: int) -> int:
    """Return the number of bytes needed to hold ``length`` bits."""
    return (length + 7) // 8


class Bitfield:
    """A sequence of ``length`` bits stored most significant bit first."""

    def __init__(self, length: int) -> None:
        if length < 0:
            raise ValueError("length must not be negative")
        self._bytes = bytearray(num_bytes(length))
        self._length = length

    @classmethod
    def from_bytes(cls, data, length: int) -> "Bitfield":
        """Build a bitfield over ``data``.

        A ``bytearray`` is used in place, other byte sequences are copied.
        Unused bits of the last byte are cleared. Raises ``ValueError`` when
        ``data`` does not have exactly the number of bytes ``length`` needs.
        """
        div, mod = divmod(length, 8)
        required = div + (1 if mod else 0)
        if len(data) != required:
            raise ValueError("invalid length")
        buf = data if isinstance(data, bytearray) else bytearray(data)
        if mod:
            buf[-1] &= ~(0xFF >> mod) & 0xFF
        bf = cls(0)
        bf._bytes = buf
        bf._length = length
        return bf

    @property
    def data(self) -> bytearray:
        """The underlying bytes; modifying them modifies the bitfield."""
        return self._bytes

    def __bytes__(self) -> bytes:
        return bytes(self._bytes)

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"Bitfield(length={self._length}, hex={self.hex()!r})"

    def copy(self) -> "Bitfield":
        """Return an independent copy."""
        bf = Bitfield(0)
        bf._bytes = bytearray(self._bytes)
        bf._length = self._length
        return bf

    def hex(self) -> str:
        """Return the bytes as a lower-case hex string."""
        return self._bytes.hex()

    def _check_index(self, i: int) -> None:
        if not 0 <= i < self._length:
            raise IndexError("index out of bound")

    def set(self, i: int) -> None:
        """Set bit ``i``; bit 0 is the most significant bit."""
        self._check_index(i)
        div, mod = divmod(i, 8)
        self._bytes[div] |= 1 << (7 - mod)

    def clear(self, i: int) -> None:
        """Clear bit ``i``."""
        self._check_index(i)
        div, mod = divmod(i, 8)
        self._bytes[div] &= ~(1 << (7 - mod)) & 0xFF

    def test(self, i: int) -> bool:
        """Return whether bit ``i`` is set."""
        self._check_index(i)
        div, mod = divmod(i, 8)
        return bool(self._bytes[div] & (1 << (7 - mod)))

    def count(self) -> int:
        """Return the number of set bits."""
        return int.from_bytes(self._bytes, "big").bit_count()

    def all(self) -> bool:
        """Return True if every bit is set."""
        return self.count() == self._length