"""Hand incoming connections over to another address and relay both ways."""

from __future__ import annotations

import queue
import socket
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from trojanfork import log
from trojanfork.common import TrojanError

Dial = Callable[[Any], Any]

_CHUNK = 32 * 1024
_POLL = 0.1


def _to_address(addr: Any) -> tuple[str, int]:
    if isinstance(addr, (tuple, list)):
        return str(addr[0]), int(addr[1])
    host, sep, port = str(addr).rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    return host.strip("[]"), int(port)


def _default_dial(addr: Any) -> socket.socket:
    return socket.create_connection(_to_address(addr))


def _addr_text(addr: Any) -> str:
    if isinstance(addr, (tuple, list)):
        return f"{addr[0]}:{addr[1]}"
    return str(addr)


def _peer(conn: Any) -> str:
    try:
        return _addr_text(conn.getpeername())
    except (AttributeError, OSError):
        return "unknown"


def _close(conn: Any) -> None:
    shutdown = getattr(conn, "shutdown", None)
    if shutdown is not None:
        try:
            shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
    try:
        conn.close()
    except OSError:
        pass


def _recv(conn: Any, size: int) -> bytes:
    recv = getattr(conn, "recv", None)
    return recv(size) if recv is not None else conn.read(size)


def _send(conn: Any, data: bytes) -> None:
    sendall = getattr(conn, "sendall", None)
    if sendall is not None:
        sendall(data)
    else:
        conn.write(data)


def _copy(dst: Any, src: Any, results: "queue.Queue[Optional[BaseException]]") -> None:
    try:
        while True:
            chunk = _recv(src, _CHUNK)
            if not chunk:
                break
            _send(dst, chunk)
    except OSError as exc:
        results.put(exc)
        return
    results.put(None)


@dataclass
class Redirection:
    """A connection to hand over, where to, and how to dial there."""

    dial: Optional[Dial] = None
    redirect_to: Any = None
    inbound_conn: Any = None


class Redirector:
    """Background worker that relays redirected connections until closed."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[Redirection]" = queue.Queue(maxsize=64)
        self._closed = threading.Event()
        self._worker = threading.Thread(target=self._run, daemon=True)
        self._worker.start()

    def __enter__(self) -> "Redirector":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def redirect(self, redirection: Redirection) -> None:
        """Queue a redirection; gives up once the redirector is closed."""
        while not self._closed.is_set():
            try:
                self._queue.put(redirection, timeout=_POLL)
            except queue.Full:
                continue
            log.debug("redirect request")
            return
        log.debug("exiting")

    def close(self) -> None:
        """Stop accepting work and end relays in progress."""
        self._closed.set()

    def _run(self) -> None:
        while not self._closed.is_set():
            try:
                redirection = self._queue.get(timeout=_POLL)
            except queue.Empty:
                continue
            threading.Thread(target=self._handle, args=(redirection,), daemon=True).start()
        log.debug("shutting down redirector")

    def _handle(self, redirection: Redirection) -> None:
        inbound = redirection.inbound_conn
        if inbound is None:
            log.error("nil inbound conn")
            return
        try:
            self._relay(inbound, redirection)
        finally:
            _close(inbound)

    def _relay(self, inbound: Any, redirection: Redirection) -> None:
        if redirection.redirect_to is None:
            log.error("nil redirection addr")
            return
        dial = redirection.dial or _default_dial
        log.warn("redirecting connection from", _peer(inbound), "to", _addr_text(redirection.redirect_to))
        try:
            outbound = dial(redirection.redirect_to)
        except Exception as exc:  # a custom dial may fail in its own way
            log.error(TrojanError("failed to redirect to target address").base(exc))
            return
        try:
            results: "queue.Queue[Optional[BaseException]]" = queue.Queue()
            for dst, src in ((outbound, inbound), (inbound, outbound)):
                threading.Thread(target=_copy, args=(dst, src, results), daemon=True).start()
            while True:
                try:
                    err = results.get(timeout=_POLL)
                except queue.Empty:
                    if self._closed.is_set():
                        log.debug("exiting")
                        return
                    continue
                if err is not None:
                    log.error(TrojanError("failed to redirect").base(err))
                log.info("redirection done")
                return
        finally:
            _close(outbound)