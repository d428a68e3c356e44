"""Readers that can replay buffered input, and a write-coalescing writer."""

from __future__ import annotations

import socket
import threading
from typing import Any

from trojanfork import log


class RewindReader:
    """Reader that records what it reads so the data can be read again."""

    def __init__(self, raw_reader: Any) -> None:
        self._raw = raw_reader
        self._lock = threading.Lock()
        self._buf = bytearray()
        self._read_idx = 0
        self._rewound = False
        self._buffering = False
        self._buffer_size = 0

    def _read_raw(self, size: int) -> bytes:
        return self._raw.read(size)

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes, replaying buffered data after a rewind."""
        with self._lock:
            if self._rewound:
                if len(self._buf) > self._read_idx:
                    chunk = bytes(self._buf[self._read_idx:self._read_idx + size])
                    self._read_idx += len(chunk)
                    return chunk
                self._rewound = False
            data = self._read_raw(size)
            if self._buffering:
                self._buf += data
                if len(self._buf) > self._buffer_size * 2:
                    log.debug("read too many bytes!")
            return data

    def read_byte(self) -> int:
        """Read a single byte; raise EOFError at end of input."""
        data = self.read(1)
        if not data:
            raise EOFError("no more data")
        return data[0]

    def discard(self, n: int) -> int:
        """Skip up to ``n`` bytes and return how many were skipped."""
        discarded = 0
        while discarded < n:
            chunk = self.read(min(128, n - discarded))
            if not chunk:
                break
            discarded += len(chunk)
        return discarded

    def rewind(self) -> None:
        """Restart reading from the beginning of the buffered data."""
        with self._lock:
            if self._buffer_size == 0:
                raise RuntimeError("no buffer")
            self._rewound = True
            self._read_idx = 0

    def stop_buffering(self) -> None:
        """Stop recording new input; already buffered data stays."""
        with self._lock:
            self._buffering = False

    def set_buffer_size(self, size: int) -> None:
        """Start buffering with the given size, or disable it with 0."""
        with self._lock:
            if size == 0:
                if not self._buffering:
                    raise RuntimeError("reader is disabled")
                self._buffering = False
                self._buf = bytearray()
                self._read_idx = 0
                self._buffer_size = 0
            else:
                if self._buffering:
                    raise RuntimeError("reader is buffering")
                self._buffering = True
                self._read_idx = 0
                self._buffer_size = size
                self._buf = bytearray()


class RewindConn(RewindReader):
    """A socket whose incoming data can be rewound."""

    def __init__(self, conn: socket.socket) -> None:
        super().__init__(conn)
        self.conn = conn

    def _read_raw(self, size: int) -> bytes:
        return self.conn.recv(size)

    def read(self, size: int) -> bytes:
        """Read from the connection, honouring rewinds."""
        return super().read(size)

    def write(self, data: bytes) -> int:
        """Send all of ``data`` and return its length."""
        self.conn.sendall(data)
        return len(data)

    def close(self) -> None:
        """Close the underlying connection."""
        self.conn.close()

    def __enter__(self) -> "RewindConn":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class StickyWriter:
    """Writer that gathers the first ``max_buffered`` writes into one."""

    def __init__(self, raw_writer: Any, max_buffered: int = 0) -> None:
        self.raw_writer = raw_writer
        self.max_buffered = max_buffered
        self._pending = bytearray()

    def write(self, data: bytes) -> int:
        """Write ``data``, buffering while writes remain to be gathered."""
        if self.max_buffered > 0:
            self.max_buffered -= 1
            self._pending += data
            if self.max_buffered != 0:
                return len(data)
            pending, self._pending = bytes(self._pending), bytearray()
            self.raw_writer.write(pending)
            return len(data)
        return self.raw_writer.write(data)