"""Relay connections and packets from inbound tunnel servers to an outbound client.

Tunnel objects are duck-typed. A source offers ``accept_conn(overlay)``,
``accept_packet(overlay)`` and ``close()``. A sink offers
``dial_conn(address, overlay)``, ``dial_packet(overlay)`` and ``close()``.
Stream connections have ``read(size)``, ``write(data)``, ``close()`` and a
``metadata`` attribute with an ``address``. Packet connections have
``read_with_metadata(size)`` returning ``(data, metadata)``,
``write_with_metadata(data, metadata)`` and ``close()``.
"""

from __future__ import annotations

import queue
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from trojanfork import log
from trojanfork.common import TrojanError, write_all_bytes
from trojanfork.config import (
    Context,
    from_context,
    register_config_creator,
    with_json_config,
    with_yaml_config,
)
from trojanfork.log import LogLevel

NAME = "PROXY"
MAX_PACKET_SIZE = 8 * 1024

_RELAY_TIMEOUT = 30.0
_POLL = 0.1
_STAGGER = 0.01


@dataclass
class ProxyConfig:
    """Settings shared by every kind of proxy."""

    run_type: str = field(default="", metadata={"json": "run_type", "yaml": "run-type"})
    log_level: int = field(default=1, metadata={"json": "log_level", "yaml": "log-level"})
    log_file: str = field(default="", metadata={"json": "log_file", "yaml": "log-file"})
    relay_buffer_size: int = field(
        default=8 * 1024,
        metadata={"json": "relay_buffer_size", "yaml": "relay_buffer_size"},
    )


register_config_creator(NAME, ProxyConfig)


def _spawn(target: Callable[..., None], *args: Any) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


def _copy_conn(dst: Any, src: Any, results: "queue.Queue[Optional[BaseException]]") -> None:
    try:
        while True:
            chunk = src.read(MAX_PACKET_SIZE)
            if not chunk:
                break
            write_all_bytes(dst, chunk)
    except Exception as exc:  # tunnel implementations raise their own errors
        results.put(exc)
        return
    results.put(None)


def _copy_packets(src: Any, dst: Any, results: "queue.Queue[Optional[BaseException]]") -> None:
    try:
        while True:
            data, metadata = src.read_with_metadata(MAX_PACKET_SIZE)
            if not data:
                break
            dst.write_with_metadata(data, metadata)
    except Exception as exc:  # tunnel implementations raise their own errors
        results.put(exc)
        return
    results.put(None)


class Proxy:
    """Accepts from every source and relays each stream and packet flow to the sink."""

    def __init__(
        self,
        ctx: Context,
        sources: Iterable[Any],
        sink: Any,
        cancel: Optional[Callable[[], None]] = None,
    ) -> None:
        self.ctx = ctx
        self.sources = list(sources)
        self.sink = sink
        self._cancel = cancel
        self._done = threading.Event()

    @property
    def closed(self) -> bool:
        """Whether the proxy has been closed."""
        return self._done.is_set()

    def run(self) -> None:
        """Start relaying and block until the proxy is closed."""
        for source in self.sources:
            _spawn(self._conn_loop, source)
        for source in self.sources:
            _spawn(self._packet_loop, source)
        self._done.wait()

    def close(self) -> None:
        """Stop relaying and close the sink and every source."""
        self._done.set()
        if self._cancel is not None:
            self._cancel()
        self.sink.close()
        for source in self.sources:
            source.close()

    def __enter__(self) -> "Proxy":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _conn_loop(self, source: Any) -> None:
        while True:
            try:
                inbound = source.accept_conn(None)
            except Exception as exc:  # tunnel implementations raise their own errors
                if self._done.is_set():
                    log.debug("exiting")
                    return
                log.error(TrojanError("failed to accept connection").base(exc))
                continue
            _spawn(self._relay_conn, inbound)

    def _packet_loop(self, source: Any) -> None:
        while True:
            try:
                inbound = source.accept_packet(None)
            except Exception as exc:  # tunnel implementations raise their own errors
                if self._done.is_set():
                    log.debug("exiting")
                    return
                log.error(TrojanError("failed to accept packet").base(exc))
                continue
            _spawn(self._relay_packets, inbound)

    def _relay_conn(self, inbound: Any) -> None:
        try:
            try:
                outbound = self.sink.dial_conn(inbound.metadata.address, None)
            except Exception as exc:  # tunnel implementations raise their own errors
                log.error(TrojanError("proxy failed to dial connection").base(exc))
                return
            try:
                results: "queue.Queue[Optional[BaseException]]" = queue.Queue()
                _spawn(_copy_conn, inbound, outbound, results)
                time.sleep(_STAGGER)
                _spawn(_copy_conn, outbound, inbound, results)
                self._await_relay(results, "conn")
            finally:
                outbound.close()
        finally:
            inbound.close()

    def _relay_packets(self, inbound: Any) -> None:
        try:
            try:
                outbound = self.sink.dial_packet(None)
            except Exception as exc:  # tunnel implementations raise their own errors
                log.error(TrojanError("proxy failed to dial packet").base(exc))
                return
            try:
                results: "queue.Queue[Optional[BaseException]]" = queue.Queue()
                _spawn(_copy_packets, inbound, outbound, results)
                time.sleep(_STAGGER)
                _spawn(_copy_packets, outbound, inbound, results)
                self._await_relay(results, "packet")
            finally:
                outbound.close()
        finally:
            inbound.close()

    def _await_relay(self, results: "queue.Queue[Optional[BaseException]]", kind: str) -> None:
        deadline = time.monotonic() + _RELAY_TIMEOUT
        while True:
            try:
                err = results.get(timeout=_POLL)
            except queue.Empty:
                if self._done.is_set():
                    log.debug(f"shutting down {kind} relay")
                    return
                if time.monotonic() >= deadline:
                    log.debug(f"timeout {kind} relay")
                    return
                continue
            if err is not None:
                log.error(err)
            log.debug(f"{kind} relay ends")
            return


Creator = Callable[[Context], Proxy]

_creators: dict[str, Creator] = {}


def register_proxy_creator(name: str, creator: Creator) -> None:
    """Register the factory that builds proxies whose run type is ``name``."""
    _creators[name] = creator


def new_proxy_from_config_data(data: bytes | str, is_json: bool) -> Proxy:
    """Parse a JSON or YAML config and build the proxy its run type names."""
    ctx = Context().with_value(NAME + "_ID", random.getrandbits(63))
    ctx = with_json_config(ctx, data) if is_json else with_yaml_config(ctx, data)
    cfg = from_context(ctx, NAME)
    if cfg is None:
        raise TrojanError("missing proxy config")
    creator = _creators.get(cfg.run_type.upper())
    if creator is None:
        raise TrojanError("unknown proxy type: " + cfg.run_type)
    try:
        level = LogLevel(cfg.log_level)
    except ValueError as exc:
        raise TrojanError(f"invalid log level: {cfg.log_level}") from exc
    log.set_log_level(level)
    if cfg.log_file:
        try:
            stream = open(cfg.log_file, "a", encoding="utf-8")
        except OSError as exc:
            raise TrojanError("failed to open log file").base(exc) from exc
        log.set_output(stream)
    return creator(ctx)