"""Minimal logger writing timestamped lines to standard error."""

from __future__ import annotations

import sys
from datetime import datetime
from typing import Any, Optional, TextIO

from trojanfork.log import LogLevel


class SimpleLogger:
    """Logger without prefixes or colour; its output cannot be redirected."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._level = LogLevel.ALL
        self._stream = stream
        self.requested_output: Optional[Any] = None

    def _emit(self, text: str) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        if not text.endswith("\n"):
            text += "\n"
        stream.write(datetime.now().strftime("%Y/%m/%d %H:%M:%S ") + text)
        stream.flush()

    def _println(self, args: tuple) -> None:
        self._emit(" ".join(str(a) for a in args) + "\n")

    def _printf(self, format: str, args: tuple) -> None:
        self._emit(format % args if args else format)

    def set_log_level(self, level: LogLevel) -> None:
        self._level = LogLevel(level)

    def set_output(self, writer: Any) -> None:
        """Remember the writer; lines still go to this logger's own stream."""
        self.requested_output = writer

    def fatal(self, *args: Any) -> None:
        """Log and exit with status 1."""
        if self._level <= LogLevel.FATAL:
            self._println(args)
        raise SystemExit(1)

    def fatalf(self, format: str, *args: Any) -> None:
        """Log a formatted message and exit with status 1."""
        if self._level <= LogLevel.FATAL:
            self._printf(format, args)
        raise SystemExit(1)

    def error(self, *args: Any) -> None:
        if self._level <= LogLevel.ERROR:
            self._println(args)

    def errorf(self, format: str, *args: Any) -> None:
        if self._level <= LogLevel.ERROR:
            self._printf(format, args)

    def warn(self, *args: Any) -> None:
        if self._level <= LogLevel.WARN:
            self._println(args)

    def warnf(self, format: str, *args: Any) -> None:
        if self._level <= LogLevel.WARN:
            self._printf(format, args)

    def info(self, *args: Any) -> None:
        if self._level <= LogLevel.INFO:
            self._println(args)

    def infof(self, format: str, *args: Any) -> None:
        if self._level <= LogLevel.INFO:
            self._printf(format, args)

    def debug(self, *args: Any) -> None:
        if self._level <= LogLevel.ALL:
            self._println(args)

    def debugf(self, format: str, *args: Any) -> None:
        if self._level <= LogLevel.ALL:
            self._printf(format, args)

    def trace(self, *args: Any) -> None:
        if self._level <= LogLevel.ALL:
            self._println(args)

    def tracef(self, format: str, *args: Any) -> None:
        if self._level <= LogLevel.ALL:
            self._printf(format, args)