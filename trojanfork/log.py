"""Process-wide logging front end that forwards to a pluggable logger."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional, Protocol


class LogLevel(IntEnum):
    """How much to log: everything up to nothing at all."""

    ALL = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4
    OFF = 5


class _Logger(Protocol):
    def fatal(self, *args: Any) -> None: ...
    def fatalf(self, format: str, *args: Any) -> None: ...
    def error(self, *args: Any) -> None: ...
    def errorf(self, format: str, *args: Any) -> None: ...
    def warn(self, *args: Any) -> None: ...
    def warnf(self, format: str, *args: Any) -> None: ...
    def info(self, *args: Any) -> None: ...
    def infof(self, format: str, *args: Any) -> None: ...
    def debug(self, *args: Any) -> None: ...
    def debugf(self, format: str, *args: Any) -> None: ...
    def trace(self, *args: Any) -> None: ...
    def tracef(self, format: str, *args: Any) -> None: ...
    def set_log_level(self, level: LogLevel) -> None: ...
    def set_output(self, writer: Any) -> None: ...


class EmptyLogger:
    """Logger that prints nothing; fatal calls still end the process.

    It remembers the level and writer it was given and counts the
    messages it has dropped.
    """

    level: LogLevel = LogLevel.ALL
    output: Optional[Any] = None
    discarded: int = 0

    def _discard(self) -> None:
        self.discarded += 1

    def set_log_level(self, level: LogLevel) -> None:
        self.level = LogLevel(level)

    def set_output(self, writer: Any) -> None:
        self.output = writer

    def fatal(self, *args: Any) -> None:
        self._discard()
        raise SystemExit(1)

    def fatalf(self, format: str, *args: Any) -> None:
        self._discard()
        raise SystemExit(1)

    def error(self, *args: Any) -> None:
        self._discard()

    def errorf(self, format: str, *args: Any) -> None:
        self._discard()

    def warn(self, *args: Any) -> None:
        self._discard()

    def warnf(self, format: str, *args: Any) -> None:
        self._discard()

    def info(self, *args: Any) -> None:
        self._discard()

    def infof(self, format: str, *args: Any) -> None:
        self._discard()

    def debug(self, *args: Any) -> None:
        self._discard()

    def debugf(self, format: str, *args: Any) -> None:
        self._discard()

    def trace(self, *args: Any) -> None:
        self._discard()

    def tracef(self, format: str, *args: Any) -> None:
        self._discard()


_logger: _Logger = EmptyLogger()


def register_logger(logger: _Logger) -> None:
    """Make ``logger`` the target of all module-level log calls."""
    global _logger
    _logger = logger


def set_log_level(level: LogLevel) -> None:
    _logger.set_log_level(level)


def set_output(writer: Any) -> None:
    _logger.set_output(writer)


def fatal(*args: Any) -> None:
    _logger.fatal(*args)


def fatalf(format: str, *args: Any) -> None:
    _logger.fatalf(format, *args)


def error(*args: Any) -> None:
    _logger.error(*args)


def errorf(format: str, *args: Any) -> None:
    _logger.errorf(format, *args)


def warn(*args: Any) -> None:
    _logger.warn(*args)


def warnf(format: str, *args: Any) -> None:
    _logger.warnf(format, *args)


def info(*args: Any) -> None:
    _logger.info(*args)


def infof(format: str, *args: Any) -> None:
    _logger.infof(format, *args)


def debug(*args: Any) -> None:
    _logger.debug(*args)


def debugf(format: str, *args: Any) -> None:
    _logger.debugf(format, *args)


def trace(*args: Any) -> None:
    _logger.trace(*args)


def tracef(format: str, *args: Any) -> None:
    _logger.tracef(format, *args)