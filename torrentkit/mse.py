"""Message Stream Encryption for BitTorrent connections.

A Diffie-Hellman key exchange followed by RC4 obfuscation of the payload
stream. It hides the protocol from passive observers and requires a weak
shared secret (usually the info hash) to complete. It does not
authenticate peers or protect the integrity of data.
"""

from __future__ import annotations

import enum
import hashlib
import os
import secrets
import struct
from typing import Callable, Optional, Protocol

_P_BYTES = bytes([
    255, 255, 255, 255, 255, 255, 255, 255, 201, 15, 218, 162, 33, 104, 194, 52,
    196, 198, 98, 139, 128, 220, 28, 209, 41, 2, 78, 8, 138, 103, 204, 116,
    2, 11, 190, 166, 59, 19, 155, 34, 81, 74, 8, 121, 142, 52, 4, 221,
    239, 149, 25, 179, 205, 58, 67, 27, 48, 43, 10, 109, 242, 95, 20, 55,
    79, 225, 53, 109, 109, 81, 194, 69, 228, 133, 181, 118, 98, 94, 126, 198,
    244, 76, 66, 233, 166, 58, 54, 33, 0, 0, 0, 0, 0, 9, 5, 99,
])
_P = int.from_bytes(_P_BYTES, "big")
_G = 2
_VC = bytes(8)
_KEY_LEN = 96
_MAX_PAD = 512


class MSEError(Exception):
    """Raised when the encryption handshake fails."""


class CryptoMethod(enum.IntFlag):
    """Bit flags for the crypto methods a side provides or selects."""

    PLAIN_TEXT = 1
    RC4 = 2

    def __str__(self) -> str:
        return {1: "PlainText", 2: "RC4"}.get(int(self), "unknown")


class RC4:
    """The RC4 stream cipher; encryption and decryption are the same operation."""

    def __init__(self, key: bytes) -> None:
        key = bytes(key)
        if not 1 <= len(key) <= 256:
            raise ValueError(f"invalid RC4 key size {len(key)}")
        s = list(range(256))
        j = 0
        for i in range(256):
            j = (j + s[i] + key[i % len(key)]) & 0xFF
            s[i], s[j] = s[j], s[i]
        self._s = s
        self._i = 0
        self._j = 0

    def process(self, data: bytes) -> bytes:
        """XOR ``data`` with the next bytes of the key stream."""
        s = self._s
        i, j = self._i, self._j
        out = bytearray(len(data))
        for n, c in enumerate(data):
            i = (i + 1) & 0xFF
            si = s[i]
            j = (j + si) & 0xFF
            sj = s[j]
            s[i] = sj
            s[j] = si
            out[n] = c ^ s[(si + sj) & 0xFF]
        self._i, self._j = i, j
        return bytes(out)


class _PlainText:
    def process(self, data: bytes) -> bytes:
        return bytes(data)


class RawIO(Protocol):
    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> object: ...


def _read_full(raw: RawIO, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = raw.read(size - len(buf))
        if not chunk:
            raise EOFError("unexpected end of stream")
        buf += chunk
    return bytes(buf)


def _read_at_least(raw: RawIO, size: int, minimum: int) -> bytes:
    buf = bytearray()
    while len(buf) < minimum:
        chunk = raw.read(size - len(buf))
        if not chunk:
            raise EOFError("unexpected end of stream")
        buf += chunk
    return bytes(buf)


def _bytes_with_pad(key: int) -> bytes:
    return key.to_bytes(max(_KEY_LEN, (key.bit_length() + 7) // 8), "big")


def _key_pair():
    private = int.from_bytes(os.urandom(20), "big")
    return private, pow(_G, private, _P)


def _is_power_of_two(x: int) -> bool:
    return x != 0 and (x & (x - 1)) == 0


def _sha1(*parts: bytes) -> bytes:
    h = hashlib.sha1()  # nosec - defined by the protocol
    for part in parts:
        h.update(part)
    return h.digest()


def _hash_int(prefix: bytes, value: int) -> bytes:
    return _sha1(prefix, _bytes_with_pad(value))


def hash_skey(key: bytes) -> bytes:
    """Return the hash of the stream identifier ``key`` sent in the handshake."""
    return _sha1(b"req2", bytes(key))


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def _rc4_key(prefix: bytes, secret: int, skey: bytes) -> bytes:
    return _sha1(prefix, _bytes_with_pad(secret), skey)


def _pad_zero() -> bytes:
    return bytes(secrets.randbelow(_MAX_PAD))


def _pad_random() -> bytes:
    return os.urandom(secrets.randbelow(_MAX_PAD))


class Stream:
    """Wraps a raw byte stream and encrypts writes and decrypts reads.

    ``raw`` must have ``read(size)``, returning up to ``size`` bytes and
    ``b""`` at end of stream, and ``write(data)``. A handshake must finish
    before :meth:`read` and :meth:`write` are used.
    """

    def __init__(self, raw: RawIO) -> None:
        self.raw = raw
        self._enc = None
        self._dec = None
        self._pending = b""
        self._ready = False

    def _init_rc4(self, enc_key: bytes, dec_key: bytes, secret: int, skey: bytes) -> None:
        enc = RC4(_rc4_key(enc_key, secret, skey))
        dec = RC4(_rc4_key(dec_key, secret, skey))
        discard = bytes(1024)
        enc.process(discard)
        dec.process(discard)
        self._enc = enc
        self._dec = dec

    def _update_cipher(self, selected: int) -> None:
        if selected == CryptoMethod.PLAIN_TEXT:
            self._enc = _PlainText()
            self._dec = _PlainText()

    def _read_dec(self, size: int) -> bytes:
        return self._dec.process(_read_full(self.raw, size))

    def _read_sync(self, key: bytes, limit: int) -> None:
        buf = bytearray(_read_full(self.raw, len(key)))
        limit -= len(key)
        while True:
            if buf == key:
                return
            if limit <= 0:
                raise MSEError("sync point is not found")
            buf += _read_full(self.raw, 1)
            limit -= 1
            del buf[0]

    @staticmethod
    def _check_selected(selected: int, provided: int, message: str) -> None:
        if selected == 0:
            raise MSEError("none of the provided methods are accepted")
        if not _is_power_of_two(selected):
            raise MSEError(f"invalid crypto selected: {selected}")
        if selected & provided == 0:
            raise MSEError(f"{message}: {selected}")

    def handshake_outgoing(
        self, skey: bytes, crypto_provide: int, initial_payload: bytes = b""
    ) -> CryptoMethod:
        """Run the initiating side of the handshake and return the selected method.

        ``skey`` must match the key the other side knows. ``initial_payload``
        is sent along with the handshake.
        """
        skey = bytes(skey)
        initial_payload = bytes(initial_payload or b"")
        if crypto_provide == 0:
            raise MSEError("no crypto methods are provided")
        if len(initial_payload) > 0xFFFF:
            raise MSEError("initial payload is too big")

        xa, ya = _key_pair()

        # Step 1 | A->B: Diffie Hellman Ya, PadA
        self.raw.write(_bytes_with_pad(ya) + _pad_random())

        # Step 2 | B->A: Diffie Hellman Yb, PadB
        first = _read_at_least(self.raw, _KEY_LEN + _MAX_PAD, _KEY_LEN)
        yb = int.from_bytes(first[:_KEY_LEN], "big")
        secret = pow(yb, xa, _P)
        self._init_rc4(b"keyA", b"keyB", secret, skey)

        # Step 3 | A->B: HASH('req1', S), HASH('req2', SKEY) xor HASH('req3', S),
        # ENCRYPT(VC, crypto_provide, len(PadC), PadC, len(IA)), ENCRYPT(IA)
        hash_s = _hash_int(b"req1", secret)
        hash_skey_xor = _xor(_hash_int(b"req3", secret), hash_skey(skey))
        pad_c = _pad_zero()
        plain = (
            _VC
            + struct.pack(">IH", int(crypto_provide), len(pad_c))
            + pad_c
            + struct.pack(">H", len(initial_payload))
            + initial_payload
        )
        self.raw.write(hash_s + hash_skey_xor + self._enc.process(plain))

        # Step 4 | B->A: ENCRYPT(VC, crypto_select, len(padD), padD)
        vc_enc = self._dec.process(_VC)
        self._read_sync(vc_enc, 616 - len(first))
        (selected,) = struct.unpack(">I", self._read_dec(4))
        self._check_selected(selected, int(crypto_provide), "selected crypto was not provided")
        (len_pad_d,) = struct.unpack(">H", self._read_dec(2))
        self._read_dec(len_pad_d)
        self._update_cipher(selected)
        self._ready = True
        return CryptoMethod(selected)

    def handshake_incoming(
        self,
        get_skey: Callable[[bytes], Optional[bytes]],
        crypto_select: Callable[[CryptoMethod], int],
    ) -> None:
        """Run the receiving side of the handshake.

        ``get_skey`` gets the hash of the stream key and returns the key, or
        None if it is unknown. ``crypto_select`` gets the provided methods
        and returns the selected one, or 0 to refuse them all.
        """
        xb, yb = _key_pair()

        # Step 1 | A->B: Diffie Hellman Ya, PadA
        first = _read_at_least(self.raw, _KEY_LEN + _MAX_PAD, _KEY_LEN)
        ya = int.from_bytes(first[:_KEY_LEN], "big")
        secret = pow(ya, xb, _P)

        # Step 2 | B->A: Diffie Hellman Yb, PadB
        self.raw.write(_bytes_with_pad(yb) + _pad_random())

        # Step 3 | A->B: HASH('req1', S), HASH('req2', SKEY) xor HASH('req3', S), ...
        self._read_sync(_hash_int(b"req1", secret), 628 - len(first))
        skey_hash = _xor(_read_full(self.raw, 20), _hash_int(b"req3", secret))
        skey = get_skey(skey_hash)
        if skey is None:
            raise MSEError("invalid SKEY hash")
        self._init_rc4(b"keyB", b"keyA", secret, bytes(skey))

        vc_read = self._read_dec(8)
        if vc_read != _VC:
            raise MSEError(f"invalid VC: {vc_read.hex()}")
        (provided,) = struct.unpack(">I", self._read_dec(4))
        if provided == 0:
            raise MSEError("no crypto methods are provided")
        selected = int(crypto_select(CryptoMethod(provided)))
        self._check_selected(selected, provided, "selected crypto is not provided")
        (len_pad_c,) = struct.unpack(">H", self._read_dec(2))
        self._read_dec(len_pad_c)
        (len_ia,) = struct.unpack(">H", self._read_dec(2))
        initial_payload = self._read_dec(len_ia)

        # Step 4 | B->A: ENCRYPT(VC, crypto_select, len(padD), padD)
        pad_d = _pad_zero()
        self.raw.write(self._enc.process(_VC + struct.pack(">IH", selected, len(pad_d)) + pad_d))

        self._update_cipher(selected)
        self._pending = initial_payload
        self._ready = True

    def read(self, size: int) -> bytes:
        """Read and decrypt up to ``size`` bytes; ``b""`` means end of stream."""
        if not self._ready:
            raise MSEError("handshake is not done")
        if self._pending:
            data, self._pending = self._pending[:size], self._pending[size:]
            return data
        data = self.raw.read(size)
        if not data:
            return b""
        return self._dec.process(data)

    def write(self, data: bytes) -> int:
        """Encrypt and write all of ``data``; return its length."""
        if not self._ready:
            raise MSEError("handshake is not done")
        self.raw.write(self._enc.process(bytes(data)))
        return len(data)


class _SocketIO:
    def __init__(self, sock) -> None:
        self._sock = sock

    def read(self, size: int) -> bytes:
        return self._sock.recv(size)

    def write(self, data: bytes) -> None:
        self._sock.sendall(data)


class Conn(Stream):
    """An encrypted stream over a socket; other socket methods pass through."""

    def __init__(self, sock) -> None:
        self.sock = sock
        super().__init__(_SocketIO(sock))

    def close(self) -> None:
        """Close the underlying socket."""
        self.sock.close()

    def __getattr__(self, name: str):
        if name == "sock":
            raise AttributeError(name)
        return getattr(self.sock, name)

    def __enter__(self) -> "Conn":
        return self

    def __exit__(self, *exc) -> None:
        self.close()