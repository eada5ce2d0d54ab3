"""Dialing and accepting BitTorrent peer connections, with optional stream encryption."""

from __future__ import annotations

import socket
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .logger import new_logger
from .mse import CryptoMethod, MSEError, Stream

PROTOCOL = b"\x13BitTorrent protocol"


class HandshakeError(Exception):
    """Raised when the peer protocol handshake fails."""


class _InvalidProtocolError(HandshakeError):
    pass


def _invalid_info_hash() -> HandshakeError:
    return HandshakeError("invalid info hash")


def _own_connection() -> HandshakeError:
    return HandshakeError("dropped own connection")


def _not_encrypted() -> HandshakeError:
    return HandshakeError("connection is not encrypted")


@dataclass
class AcceptResult:
    """The outcome of an accepted handshake."""

    conn: "_Connection"
    cipher: CryptoMethod
    peer_extensions: bytes
    peer_id: bytes
    info_hash: bytes


@dataclass
class DialResult:
    """The outcome of a dialed handshake."""

    conn: "_Connection"
    cipher: CryptoMethod
    peer_extensions: bytes
    peer_id: bytes


def _read_full(reader, size: int) -> bytes:
    buf = bytearray()
    while len(buf) < size:
        chunk = reader.read(size - len(buf))
        if not chunk:
            raise EOFError("unexpected EOF" if buf else "EOF")
        buf += chunk
    return bytes(buf)


def write_handshake(info_hash: bytes, peer_id: bytes, extensions: bytes) -> bytes:
    """Return the 68-byte handshake message."""
    info_hash, peer_id, extensions = bytes(info_hash), bytes(peer_id), bytes(extensions)
    if len(info_hash) != 20 or len(peer_id) != 20 or len(extensions) != 8:
        raise ValueError("info hash and peer id must be 20 bytes, extensions 8 bytes")
    return PROTOCOL + extensions + info_hash + peer_id


def read_handshake1(reader) -> Tuple[bytes, bytes]:
    """Read the protocol string, extensions and info hash; return (extensions, info_hash)."""
    if _read_full(reader, 20) != PROTOCOL:
        raise _InvalidProtocolError("invalid protocol")
    extensions = _read_full(reader, 8)
    info_hash = _read_full(reader, 20)
    return extensions, info_hash


def read_handshake2(reader) -> bytes:
    """Read the peer ID that ends the handshake."""
    return _read_full(reader, 20)


class _SocketIO:
    """Raw socket reads and writes bound by an absolute deadline."""

    def __init__(self, sock, deadline: Optional[float] = None, prefix: bytes = b"") -> None:
        self.sock = sock
        self.deadline = deadline
        self._prefix = bytes(prefix)

    def _apply_deadline(self) -> None:
        if self.deadline is None:
            self.sock.settimeout(None)
            return
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("i/o timeout")
        self.sock.settimeout(remaining)

    def read(self, size: int) -> bytes:
        if self._prefix:
            data, self._prefix = self._prefix[:size], self._prefix[size:]
            return data
        self._apply_deadline()
        return self.sock.recv(size)

    def write(self, data: bytes) -> int:
        self._apply_deadline()
        self.sock.sendall(data)
        return len(data)


class _Tee:
    def __init__(self, reader) -> None:
        self.reader = reader
        self.data = bytearray()

    def read(self, size: int) -> bytes:
        chunk = self.reader.read(size)
        self.data += chunk
        return chunk


class _Connection:
    """A connection ready for peer protocol messages, encrypted or not."""

    def __init__(self, sock, io: _SocketIO, stream) -> None:
        self.sock = sock
        self._io = io
        self._stream = stream

    def read(self, size: int) -> bytes:
        return self._stream.read(size)

    def write(self, data: bytes) -> int:
        return self._stream.write(data)

    def set_deadline(self, deadline: Optional[float]) -> None:
        """Set the monotonic time after which reads and writes fail, or None for no limit."""
        self._io.deadline = deadline

    def getpeername(self):
        return self.sock.getpeername()

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "_Connection":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _peer_str(sock) -> str:
    try:
        host, port = sock.getpeername()[:2]
    except OSError:
        return "?"
    return f"{host}:{port}"


def _abort(sock) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    sock.close()


def accept(
    conn,
    handshake_timeout: float,
    get_skey: Optional[Callable[[bytes], Optional[bytes]]],
    force_encryption: bool,
    has_info_hash: Callable[[bytes], bool],
    our_extensions: bytes,
    our_id: bytes,
) -> AcceptResult:
    """Do the handshake on an accepted socket, decrypting it if the peer starts one.

    Tries the plain handshake first; if the protocol string is wrong and
    ``get_skey`` is given, the same bytes are used to start an encryption handshake.
    """
    if force_encryption and get_skey is None:
        raise ValueError("force_encryption requires get_skey")
    log = new_logger("conn <- " + _peer_str(conn))
    io = _SocketIO(conn, time.monotonic() + handshake_timeout)
    stream = io
    cipher = CryptoMethod(0)
    encrypted = False

    tee = _Tee(io)
    try:
        peer_extensions, info_hash = read_handshake1(tee)
    except _InvalidProtocolError:
        if get_skey is None:
            raise
        io = _SocketIO(conn, io.deadline, prefix=bytes(tee.data))
        mse_stream = Stream(io)

        def select(provided: CryptoMethod) -> CryptoMethod:
            nonlocal cipher, encrypted
            selected = CryptoMethod(0)
            if provided & CryptoMethod.RC4:
                selected = CryptoMethod.RC4
                encrypted = True
            elif provided & CryptoMethod.PLAIN_TEXT and not force_encryption:
                selected = CryptoMethod.PLAIN_TEXT
            cipher = selected
            return selected

        mse_stream.handshake_incoming(get_skey, select)
        log.debug("Encryption handshake is successful. Selected cipher: %s", cipher)
        stream = mse_stream
        peer_extensions, info_hash = read_handshake1(stream)

    if force_encryption and not encrypted:
        raise _not_encrypted()
    if not has_info_hash(info_hash):
        raise _invalid_info_hash()
    stream.write(write_handshake(info_hash, our_id, our_extensions))
    peer_id = read_handshake2(stream)
    if peer_id == bytes(our_id):
        raise _own_connection()
    return AcceptResult(
        conn=_Connection(conn, io, stream),
        cipher=cipher,
        peer_extensions=peer_extensions,
        peer_id=peer_id,
        info_hash=info_hash,
    )


def _close_on_stop(sock, stop_event: Optional[threading.Event], done: threading.Event) -> None:
    if stop_event is None:
        return

    def watch() -> None:
        while not done.is_set():
            if stop_event.wait(0.05):
                if not done.is_set():
                    _abort(sock)
                return

    threading.Thread(target=watch, daemon=True).start()


def _connect(addr, timeout: float, stop_event, done: threading.Event):
    if stop_event is not None and stop_event.is_set():
        raise ConnectionAbortedError("dial cancelled")
    sock = socket.create_connection(tuple(addr), timeout=timeout or None)
    _close_on_stop(sock, stop_event, done)
    return sock


def dial(
    addr,
    dial_timeout: float,
    handshake_timeout: float,
    enable_encryption: bool,
    force_encryption: bool,
    our_extensions: bytes,
    info_hash: bytes,
    our_id: bytes,
    stop_event: Optional[threading.Event] = None,
) -> DialResult:
    """Connect to ``addr`` (a ``(host, port)`` pair) and do the handshake.

    With encryption enabled but not forced, a failed encryption handshake is
    retried once over a new plain connection. Setting ``stop_event`` aborts.
    """
    host, port = addr[0], addr[1]
    log = new_logger(f"conn -> {host}:{port}")
    done = threading.Event()
    try:
        log.debug("Connecting to peer...")
        sock = _connect(addr, dial_timeout, stop_event, done)
        log.debug("Connected")
        try:
            out = write_handshake(info_hash, our_id, our_extensions)
            io = _SocketIO(sock, time.monotonic() + handshake_timeout)
            stream = io
            cipher = CryptoMethod(0)
            if enable_encryption:
                provide = CryptoMethod.RC4
                if not force_encryption:
                    provide |= CryptoMethod.PLAIN_TEXT
                enc = Stream(io)
                try:
                    cipher = enc.handshake_outgoing(bytes(info_hash), provide, out)
                except (MSEError, OSError, EOFError) as exc:
                    if stop_event is not None and stop_event.is_set():
                        raise
                    log.debug("Encryption handshake has failed: %s", exc)
                    if force_encryption:
                        log.debug("Will not try again because outgoing encryption is forced.")
                        raise _not_encrypted() from exc
                    sock.close()
                    log.debug("Connecting again without encryption...")
                    sock = _connect(addr, dial_timeout, stop_event, done)
                    log.debug("Connected")
                    io = _SocketIO(sock, time.monotonic() + handshake_timeout)
                    stream = io
                    io.write(out)
                else:
                    log.debug("Encryption handshake is successful. Selected cipher: %s", cipher)
                    stream = enc
            else:
                io.write(out)

            peer_extensions, ih_read = read_handshake1(stream)
            if ih_read != bytes(info_hash):
                raise _invalid_info_hash()
            peer_id = read_handshake2(stream)
            if peer_id == bytes(our_id):
                raise _own_connection()
            return DialResult(
                conn=_Connection(sock, io, stream),
                cipher=cipher,
                peer_extensions=peer_extensions,
                peer_id=peer_id,
            )
        except BaseException:
            sock.close()
            raise
    finally:
        done.set()