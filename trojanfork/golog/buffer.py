"""A growable byte buffer used to assemble log lines."""

from __future__ import annotations


class Buffer:
    """Byte buffer with helpers for appending bytes and padded integers."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def reset(self) -> None:
        """Empty the buffer."""
        self._data.clear()

    def append(self, data: bytes) -> None:
        """Append a byte string."""
        self._data += data

    def append_byte(self, data: int | bytes) -> None:
        """Append a single byte, given as an int or a one-byte string."""
        if isinstance(data, (bytes, bytearray)):
            if len(data) != 1:
                raise ValueError("expected exactly one byte")
            self._data += data
        else:
            self._data.append(data)

    def append_int(self, val: int, width: int) -> None:
        """Append a non-negative integer, zero-padded to ``width`` digits."""
        if val < 0:
            raise ValueError("value must not be negative")
        self._data += str(val).zfill(max(width, 1)).encode("ascii")

    def bytes(self) -> bytes:
        """Return the buffered data."""
        return bytes(self._data)