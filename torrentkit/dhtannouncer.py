"""Announcing a torrent to the DHT network at regular intervals."""

from __future__ import annotations

import threading
import time
from typing import Callable


class DHTAnnouncer:
    """Calls an announce function periodically.

    While more peers are needed the function is called every
    ``min_interval`` seconds, otherwise every ``interval`` seconds.
    """

    def __init__(self) -> None:
        self.last_announce = 0.0
        self._need_more_peers = True
        self._changed = False
        self._closed = False
        self._cond = threading.Condition()
        self._started = threading.Event()
        self._done = threading.Event()

    def close(self) -> None:
        """Stop the announcer and wait for :meth:`run` to return."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        if self._started.is_set():
            self._done.wait()

    def need_more_peers(self, val: bool) -> None:
        """Tell the announcer whether more peers are wanted."""
        with self._cond:
            if self._done.is_set():
                return
            self._need_more_peers = bool(val)
            self._changed = True
            self._cond.notify_all()

    def run(self, announce_func: Callable[[], None], interval: float, min_interval: float) -> None:
        """Announce now and then repeatedly until closed."""
        self._started.set()
        try:
            while True:
                announce_func()
                with self._cond:
                    self.last_announce = time.monotonic()
                    while True:
                        if self._closed:
                            return
                        self._changed = False
                        wait = min_interval if self._need_more_peers else interval
                        remaining = self.last_announce + wait - time.monotonic()
                        if remaining <= 0:
                            break
                        self._cond.wait(remaining)
        finally:
            self._done.set()