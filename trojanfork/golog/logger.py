"""Coloured, timestamped logger with per-level prefixes."""

from __future__ import annotations

import io
import os
import sys
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from trojanfork import log
from trojanfork.golog import colorful
from trojanfork.golog.colorful import ColorBuffer


@dataclass(frozen=True)
class Prefix:
    """Plain and coloured forms of a level tag, and whether to show the caller."""

    plain: bytes
    color: bytes
    file: bool = False


_PLAIN_FATAL = b"[FATAL] "
_PLAIN_ERROR = b"[ERROR] "
_PLAIN_WARN = b"[WARN]  "
_PLAIN_INFO = b"[INFO]  "
_PLAIN_DEBUG = b"[DEBUG] "
_PLAIN_TRACE = b"[TRACE] "

FATAL_PREFIX = Prefix(_PLAIN_FATAL, colorful.red(_PLAIN_FATAL), True)
ERROR_PREFIX = Prefix(_PLAIN_ERROR, colorful.red(_PLAIN_ERROR), True)
WARN_PREFIX = Prefix(_PLAIN_WARN, colorful.orange(_PLAIN_WARN))
INFO_PREFIX = Prefix(_PLAIN_INFO, colorful.green(_PLAIN_INFO))
DEBUG_PREFIX = Prefix(_PLAIN_DEBUG, colorful.purple(_PLAIN_DEBUG), True)
TRACE_PREFIX = Prefix(_PLAIN_TRACE, colorful.cyan(_PLAIN_TRACE))


def _is_terminal(writer: Any) -> bool:
    isatty = getattr(writer, "isatty", None)
    if isatty is not None:
        try:
            return bool(isatty())
        except (OSError, ValueError):
            return False
    fileno = getattr(writer, "fileno", None)
    if fileno is not None:
        try:
            return os.isatty(fileno())
        except (OSError, ValueError):
            return False
    return False


def _sprintln(args: tuple) -> str:
    return " ".join(str(a) for a in args) + "\n"


def _sprintf(format: str, args: tuple) -> str:
    return format % args if args else format


def _write(writer: Any, data: bytes) -> None:
    if isinstance(writer, io.TextIOBase):
        writer.write(data.decode("utf-8", errors="replace"))
        writer.flush()
    else:
        writer.write(data)


class Logger:
    """Logger writing level-tagged lines to a stream."""

    def __init__(self, out: Any) -> None:
        self._lock = threading.RLock()
        self._color = _is_terminal(out)
        self._out = out
        self._debug = False
        self._timestamp = True
        self._quiet = False
        self._buf = ColorBuffer()
        self._level = int(log.LogLevel.ALL)

    def set_log_level(self, level: log.LogLevel) -> None:
        with self._lock:
            self._level = int(level)

    def set_output(self, writer: Any) -> None:
        """Write to ``writer``; colour only if it is a terminal."""
        with self._lock:
            self._color = _is_terminal(writer)
            self._out = writer

    def with_color(self) -> "Logger":
        with self._lock:
            self._color = True
        return self

    def without_color(self) -> "Logger":
        with self._lock:
            self._color = False
        return self

    def with_debug(self) -> "Logger":
        with self._lock:
            self._debug = True
        return self

    def without_debug(self) -> "Logger":
        with self._lock:
            self._debug = False
        return self

    def is_debug(self) -> bool:
        with self._lock:
            return self._debug

    def with_timestamp(self) -> "Logger":
        with self._lock:
            self._timestamp = True
        return self

    def without_timestamp(self) -> "Logger":
        with self._lock:
            self._timestamp = False
        return self

    def quiet(self) -> "Logger":
        with self._lock:
            self._quiet = True
        return self

    def no_quiet(self) -> "Logger":
        with self._lock:
            self._quiet = False
        return self

    def is_quiet(self) -> bool:
        with self._lock:
            return self._quiet

    def output(self, depth: int, prefix: Prefix, data: str) -> None:
        """Format one line and write it; ``depth`` selects the reported caller."""
        if self.is_quiet():
            return
        now = datetime.now()
        fn = file = ""
        line = 0
        if prefix.file:
            try:
                frame = sys._getframe(depth + 2)
            except ValueError:
                file, fn = "<unknown file>", "<unknown function>"
            else:
                file = os.path.basename(frame.f_code.co_filename)
                module = os.path.splitext(file)[0]
                fn = f"{module}.{frame.f_code.co_name}"
                line = frame.f_lineno

        with self._lock:
            buf = self._buf
            buf.reset()
            buf.append(prefix.color if self._color else prefix.plain)
            if self._timestamp:
                if self._color:
                    buf.blue()
                buf.append(now.strftime("%Y/%m/%d %H:%M:%S ").encode("ascii"))
                if self._color:
                    buf.off()
            if prefix.file:
                if self._color:
                    buf.orange()
                buf.append(f"{fn}:{file}:{line} ".encode())
                if self._color:
                    buf.off()
            buf.append(data.encode())
            if not data.endswith("\n"):
                buf.append_byte(ord("\n"))
            _write(self._out, buf.bytes())

    def fatal(self, *args: Any) -> None:
        """Log at fatal level and exit with status 1."""
        if self._level <= log.LogLevel.FATAL:
            self.output(1, FATAL_PREFIX, _sprintln(args))
        raise SystemExit(1)

    def fatalf(self, format: str, *args: Any) -> None:
        """Log a formatted fatal message and exit with status 1."""
        if self._level <= log.LogLevel.FATAL:
            self.output(1, FATAL_PREFIX, _sprintf(format, args))
        raise SystemExit(1)

    def error(self, *args: Any) -> None:
        if self._level <= log.LogLevel.ERROR:
            self.output(1, ERROR_PREFIX, _sprintln(args))

    def errorf(self, format: str, *args: Any) -> None:
        if self._level <= log.LogLevel.ERROR:
            self.output(1, ERROR_PREFIX, _sprintf(format, args))

    def warn(self, *args: Any) -> None:
        if self._level <= log.LogLevel.WARN:
            self.output(1, WARN_PREFIX, _sprintln(args))

    def warnf(self, format: str, *args: Any) -> None:
        if self._level <= log.LogLevel.WARN:
            self.output(1, WARN_PREFIX, _sprintf(format, args))

    def info(self, *args: Any) -> None:
        if self._level <= log.LogLevel.INFO:
            self.output(1, INFO_PREFIX, _sprintln(args))

    def infof(self, format: str, *args: Any) -> None:
        if self._level <= log.LogLevel.INFO:
            self.output(1, INFO_PREFIX, _sprintf(format, args))

    def debug(self, *args: Any) -> None:
        if self._level == log.LogLevel.ALL:
            self.output(1, DEBUG_PREFIX, _sprintln(args))

    def debugf(self, format: str, *args: Any) -> None:
        if self._level == log.LogLevel.ALL:
            self.output(1, DEBUG_PREFIX, _sprintf(format, args))

    def trace(self, *args: Any) -> None:
        if self._level == log.LogLevel.ALL:
            self.output(1, TRACE_PREFIX, _sprintln(args))

    def tracef(self, format: str, *args: Any) -> None:
        if self._level == log.LogLevel.ALL:
            self.output(1, TRACE_PREFIX, _sprintf(format, args))


def install(out: Optional[Any] = None) -> Logger:
    """Create a logger on ``out`` (standard output by default) and register it."""
    logger = Logger(sys.stdout if out is None else out)
    log.register_logger(logger)
    return logger