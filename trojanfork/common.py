"""Shared helpers: hashing, errors, asset paths, traffic formatting and I/O."""

from __future__ import annotations

import hashlib
import os
import socket
import struct
import sys
import threading
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Optional

from trojanfork import log

VERSION = "Custom Version"
COMMIT = "Unknown Git Commit ID"

KIB = 1024
MIB = KIB * 1024
GIB = MIB * 1024

ASSET_LOCATION_ENV = "TROJAN_GO_LOCATION_ASSET"


class TrojanError(Exception):
    """Error carrying a message that can be extended with a cause."""

    def __init__(self, info: str) -> None:
        super().__init__(info)
        self.info = info

    def __str__(self) -> str:
        return self.info

    def base(self, err: Optional[BaseException]) -> "TrojanError":
        """Append the text of ``err`` to this error and return it."""
        if err is not None:
            self.info += " | " + str(err)
        return self


class Notifier:
    """Coalescing change notifier: many signals, one pending wake-up."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = False

    def signal(self) -> None:
        """Record a change; never blocks."""
        with self._cond:
            self._pending = True
            self._cond.notify()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for a change and consume it; False if the timeout passed."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._pending, timeout):
                return False
            self._pending = False
            return True


def sha224_string(password: str) -> str:
    """Return the lower-case hex SHA-224 digest of ``password``."""
    return hashlib.sha224(password.encode()).hexdigest()


def get_program_dir() -> str:
    """Return the absolute directory of the running program."""
    return os.path.abspath(os.path.dirname(sys.argv[0]))


def get_asset_location(file: str) -> str:
    """Resolve an asset file name to a path."""
    if os.path.isabs(file):
        return file
    location = os.environ.get(ASSET_LOCATION_ENV, "")
    if location:
        abs_path = os.path.abspath(location)
        log.debugf("env set: %s=%s", ASSET_LOCATION_ENV, abs_path)
        return os.path.join(abs_path, file)
    return os.path.join(get_program_dir(), file)


def _float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", float(value)))[0]


def human_friendly_traffic(num_bytes: int) -> str:
    """Format a byte count with a binary unit."""
    if num_bytes < 0:
        raise ValueError("byte count must not be negative")
    if num_bytes <= KIB:
        return f"{num_bytes} B"
    if num_bytes <= MIB:
        return f"{_float32(num_bytes) / KIB:.2f} KiB"
    if num_bytes <= GIB:
        return f"{_float32(num_bytes) / MIB:.2f} MiB"
    return f"{_float32(num_bytes) / GIB:.2f} GiB"


def pick_port(network: str, host: str) -> int:
    """Return a free port on ``host`` for "tcp" or "udp", or 0."""
    kinds = {"tcp": socket.SOCK_STREAM, "udp": socket.SOCK_DGRAM}
    kind = kinds.get(network)
    if kind is None:
        return 0
    for _ in range(16):
        try:
            family, _, _, _, address = socket.getaddrinfo(
                host or None, 0, type=kind, flags=socket.AI_PASSIVE
            )[0]
            with socket.socket(family, kind) as sock:
                sock.bind(address)
                return sock.getsockname()[1]
        except OSError:
            continue
    return 0


def write_all_bytes(writer: Any, payload: bytes) -> None:
    """Write the whole payload, looping over short writes."""
    view = memoryview(payload)
    while view:
        written = writer.write(view)
        if written is None:
            written = len(view)
        if written <= 0:
            raise OSError("short write")
        view = view[written:]


def write_file(path: str, payload: bytes) -> None:
    """Create or truncate ``path`` and write ``payload`` to it."""
    with open(path, "wb") as writer:
        write_all_bytes(writer, payload)


def fetch_http_content(target: str) -> bytes:
    """GET ``target`` over HTTP(S) and return the body of a 200 response."""
    try:
        parsed = urllib.parse.urlsplit(target)
    except ValueError as exc:
        raise TrojanError(f"invalid URL: {target}") from exc
    if parsed.scheme.lower() not in ("http", "https"):
        raise TrojanError(f"invalid scheme: {parsed.scheme}")

    request = urllib.request.Request(
        target, method="GET", headers={"Connection": "close"}
    )
    try:
        with urllib.request.urlopen(request, timeout=30) as response:
            if response.status != 200:
                raise TrojanError(
                    f"unexpected HTTP status code: {response.status}"
                )
            try:
                return response.read()
            except OSError as exc:
                raise TrojanError("failed to read HTTP response") from exc
    except urllib.error.HTTPError as exc:
        raise TrojanError(f"unexpected HTTP status code: {exc.code}") from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise TrojanError(f"failed to dial to {target}") from exc