"""Running peer handshakes in the background and reporting the result on a queue."""

from __future__ import annotations

import socket
import threading
from typing import Any, Callable, Optional

from .btconn import HandshakeError, accept, dial
from .logger import new_logger
from .mse import CryptoMethod


def _describe(log, exc: BaseException, unknown_level: str) -> None:
    if isinstance(exc, EOFError) and str(exc) == "EOF":
        log.debug("peer has closed the connection: EOF")
    elif isinstance(exc, EOFError):
        log.debug("peer has closed the connection: Unexpected EOF")
    elif isinstance(exc, HandshakeError):
        log.debug("protocol error: %s", exc)
    elif isinstance(exc, OSError):
        log.debug("net operation error: %s", exc)
    else:
        getattr(log, unknown_level)("cannot complete %s handshake: %s",
                                    "incoming" if unknown_level == "debug" else "outgoing", exc)


def _peer_str(sock) -> str:
    try:
        host, port = sock.getpeername()[:2]
    except OSError:
        return "?"
    return f"{host}:{port}"


class IncomingHandshaker:
    """Does the handshake on an accepted connection."""

    def __init__(self, conn) -> None:
        self.conn = conn
        self.peer_id: bytes = b""
        self.extensions: bytes = b""
        self.cipher = CryptoMethod(0)
        self.error: Optional[BaseException] = None
        self._sock = conn
        self._closed = threading.Event()
        self._started = threading.Event()
        self._done = threading.Event()

    def close(self) -> None:
        """Stop the handshaker, closing its connection if the handshake is still going on."""
        self._closed.set()
        if self._started.is_set() and not self._done.is_set():
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._done.wait()

    def run(
        self,
        peer_id: bytes,
        get_skey: Optional[Callable[[bytes], Optional[bytes]]],
        check_info_hash: Callable[[bytes], bool],
        result_queue,
        timeout: float,
        our_extensions: bytes,
        force_encryption: bool,
    ) -> None:
        """Do the handshake and put this handshaker on ``result_queue`` unless closed."""
        self._started.set()
        try:
            log = new_logger("conn <- " + _peer_str(self._sock))
            try:
                res = accept(self._sock, timeout, get_skey, force_encryption,
                             check_info_hash, our_extensions, peer_id)
            except Exception as exc:  # noqa: BLE001
                _describe(log, exc, "debug")
                self.error = exc
            else:
                log.debug("Connection accepted. (cipher=%s extensions=%s client=%r)",
                          res.cipher, res.peer_extensions.hex(), res.peer_id[:8])
                self.conn = res.conn
                self.peer_id = res.peer_id
                self.extensions = res.peer_extensions
                self.cipher = res.cipher
            if self._closed.is_set():
                self._sock.close()
            else:
                result_queue.put(self)
        finally:
            self._done.set()


class OutgoingHandshaker:
    """Dials an address and does the handshake."""

    def __init__(self, addr, source: Any = None) -> None:
        self.addr = addr
        self.source = source
        self.conn = None
        self.peer_id: bytes = b""
        self.extensions: bytes = b""
        self.cipher = CryptoMethod(0)
        self.error: Optional[BaseException] = None
        self._closed = threading.Event()
        self._started = threading.Event()
        self._done = threading.Event()

    def close(self) -> None:
        """Stop the handshaker, aborting a dial or handshake in progress."""
        self._closed.set()
        if self._started.is_set():
            self._done.wait()

    def run(
        self,
        dial_timeout: float,
        handshake_timeout: float,
        peer_id: bytes,
        info_hash: bytes,
        result_queue,
        our_extensions: bytes,
        disable_encryption: bool,
        force_encryption: bool,
    ) -> None:
        """Dial and handshake, then put this handshaker on ``result_queue`` unless closed."""
        self._started.set()
        try:
            log = new_logger(f"peer -> {self.addr[0]}:{self.addr[1]}")
            try:
                res = dial(self.addr, dial_timeout, handshake_timeout, not disable_encryption,
                           force_encryption, our_extensions, info_hash, peer_id, self._closed)
            except Exception as exc:  # noqa: BLE001
                _describe(log, exc, "error")
                self.error = exc
                if not self._closed.is_set():
                    result_queue.put(self)
                return
            log.debug("Connected to peer. (cipher=%s extensions=%s client=%r)",
                      res.cipher, res.peer_extensions.hex(), res.peer_id[:8])
            self.conn = res.conn
            self.peer_id = res.peer_id
            self.extensions = res.peer_extensions
            self.cipher = res.cipher
            if self._closed.is_set():
                res.conn.close()
            else:
                result_queue.put(self)
        finally:
            self._done.set()