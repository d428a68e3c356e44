"""Find one GeoIP or GeoSite entry by code in a geodata list file.

Entries are length-delimited messages in field 1 of the list; each entry's
code is a length-delimited string in its own field 1.
"""

from __future__ import annotations

from typing import BinaryIO

FAILED_TO_READ_BYTES = "failed to read bytes"
FAILED_TO_READ_EXPECTED_LEN_BYTES = "failed to read expected length of bytes"
INVALID_GEODATA_FILE = "invalid geodata file"
INVALID_GEODATA_VARINT_LENGTH = "invalid geodata varint length"
CODE_NOT_FOUND = "code not found"

_TAG = 0x0A
_MAX_VARINT_BYTES = 10


class GeodataError(Exception):
    """Decoding failed; ``reason`` is one of the module's reason strings."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _consume_varint(buf: bytes) -> tuple[int, int]:
    value = 0
    for index, byte in enumerate(buf):
        if index >= _MAX_VARINT_BYTES:
            break
        value |= (byte & 0x7F) << (7 * index)
        if byte < 0x80:
            if index == _MAX_VARINT_BYTES - 1 and byte > 1:
                break
            return value, index + 1
    raise GeodataError(INVALID_GEODATA_VARINT_LENGTH)


def _read_exactly(f: BinaryIO, n: int) -> bytes:
    try:
        data = f.read(n)
    except OSError as exc:
        raise GeodataError(FAILED_TO_READ_BYTES) from exc
    if n > 0 and not data:
        raise GeodataError(CODE_NOT_FOUND)
    if len(data) != n:
        raise GeodataError(FAILED_TO_READ_EXPECTED_LEN_BYTES)
    return data


def _skip(f: BinaryIO, offset: int) -> None:
    try:
        f.seek(offset, 1)
    except (OSError, ValueError):
        pass


def emit_bytes(f: BinaryIO, code: str) -> bytes:
    """Return the raw entry whose code equals ``code``, ignoring case."""
    wanted = code.casefold()
    step = 1
    advance = 1
    inner = False
    pending = bytearray()
    entry_len = code_len = code_len_bytes = 0

    while True:
        chunk = _read_exactly(f, advance)
        if step in (1, 3):
            if chunk[0] != _TAG:
                raise GeodataError(INVALID_GEODATA_FILE)
            advance = 1
            step += 1
        elif step in (2, 4):
            pending += chunk
            if chunk[0] > 0x7F:
                advance = 1
                continue
            length, used = _consume_varint(bytes(pending))
            pending.clear()
            if not inner:
                inner = True
                entry_len = length
                advance = 1
            else:
                inner = False
                code_len = length
                code_len_bytes = used
                advance = code_len
            step += 1
        elif step == 5:
            if chunk.decode("utf-8", errors="replace").casefold() == wanted:
                step += 1
                _skip(f, -(1 + code_len_bytes + code_len))
                advance = entry_len
            else:
                step = 1
                _skip(f, entry_len - code_len - code_len_bytes - 1)
                advance = 1
        else:
            return chunk


def decode(filename: str, code: str) -> bytes:
    """Open ``filename`` and return the raw entry for ``code``."""
    with open(filename, "rb") as f:
        return emit_bytes(f, code)