"""Logging with a single, swappable output handler shared by all loggers."""

from __future__ import annotations

import logging
import time
from typing import Optional, Union


class LogFormatter(logging.Formatter):
    """Formats records like ``2014-02-28 18:15:57 INFO     [name] file.py:12 message``."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.created))
        location = f"{record.filename}:{record.lineno}"
        return f"{stamp} {record.levelname:<8} [{record.name}] {location:<8} {record.getMessage()}"


_handler: Optional[logging.Handler] = None


def set_handler(handler: logging.Handler) -> Optional[logging.Handler]:
    """Send the output of every logger to ``handler``; return the previous handler."""
    global _handler
    previous = _handler
    handler.setFormatter(LogFormatter())
    _handler = handler
    return previous


def set_level(level: Union[int, str]) -> None:
    """Set the minimum level written by the current handler."""
    if _handler is not None:
        _handler.setLevel(level)


class _Forwarder(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        target = _handler
        if target is not None and record.levelno >= target.level:
            target.handle(record)


_FORWARDER = _Forwarder()


def new_logger(name: str) -> logging.Logger:
    """Return a logger whose messages carry ``name`` and go to the shared handler."""
    log = logging.Logger(name, logging.DEBUG)
    log.propagate = False
    log.addHandler(_FORWARDER)
    return log


_default = logging.StreamHandler()
_default.setLevel(logging.INFO)
set_handler(_default)