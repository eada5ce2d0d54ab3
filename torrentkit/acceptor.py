"""Accepting connections from a listening socket and handing them over on a queue."""

from __future__ import annotations

import logging
import queue
import select
import threading
from typing import Optional

_POLL = 0.1


class Acceptor:
    """Accepts sockets from ``listener`` and puts them on ``new_conns``.

    ``new_conns`` is a :class:`queue.Queue`. When the queue stays full, the
    acceptor keeps waiting until there is room or it is closed; a connection
    accepted while closing is closed.
    """

    def __init__(self, listener, new_conns: "queue.Queue", log: Optional[logging.Logger] = None) -> None:
        self.listener = listener
        self.new_conns = new_conns
        self.log = log if log is not None else logging.getLogger(__name__)
        self._closed = threading.Event()
        self._started = threading.Event()
        self._done = threading.Event()

    def close(self) -> None:
        """Stop accepting, wait for :meth:`run` to return and close the listener."""
        self._closed.set()
        if self._started.is_set():
            self._done.wait()
        self.listener.close()

    def _hand_over(self, conn) -> bool:
        while True:
            try:
                self.new_conns.put(conn, timeout=_POLL)
                return True
            except queue.Full:
                if self._closed.is_set():
                    conn.close()
                    return False

    def run(self) -> None:
        """Accept connections until closed or the listener fails."""
        self._started.set()
        try:
            while not self._closed.is_set():
                try:
                    readable, _, _ = select.select([self.listener], [], [], _POLL)
                    if not readable:
                        continue
                    if self._closed.is_set():
                        return
                    conn, _ = self.listener.accept()
                except (OSError, ValueError) as exc:
                    if not self._closed.is_set():
                        self.log.error("%s", exc)
                    return
                if not self._hand_over(conn):
                    return
        finally:
            self._done.set()