"""Command-line entry: choose how to obtain a config and start the proxy."""

from __future__ import annotations

import argparse
import json
import platform
import re
import sys
from typing import Any, NoReturn, Optional, Sequence

from trojanfork import log, option
from trojanfork.common import VERSION, TrojanError
from trojanfork.golog import logger as golog
from trojanfork.option import OptionHandler
from trojanfork.proxy import NAME, new_proxy_from_config_data

DEFAULT_CONFIG_PATHS = ("config.json", "config.yml", "config.yaml")

_PORT = re.compile(r"[+-]?\d+")


def _fatal(*args: Any) -> NoReturn:
    log.fatal(*args)
    raise SystemExit(1)


def _run(data: bytes, is_json: bool) -> None:
    try:
        proxy = new_proxy_from_config_data(data, is_json)
    except (TrojanError, OSError) as exc:
        _fatal(exc)
    proxy.run()


def detect_and_read_config(file: str) -> tuple[bytes, bool]:
    """Read ``file`` and tell whether it is JSON (by its extension)."""
    if file.endswith(".json"):
        is_json = True
    elif file.endswith((".yaml", ".yml")):
        is_json = False
    else:
        log.fatalf("unsupported config format: %s. use .yaml or .json instead.", file)
        raise SystemExit(1)
    with open(file, "rb") as stream:
        return stream.read(), is_json


class ConfigOption(OptionHandler):
    """Start a proxy from a config file, or from a default file name."""

    def __init__(self, path: str = "") -> None:
        self.path = path

    def name(self) -> str:
        return NAME

    def priority(self) -> int:
        return -1

    def handle(self) -> None:
        data: Optional[bytes] = None
        is_json = False
        if not self.path:
            log.warn("no specified config file, use default path to detect config file")
            for candidate in DEFAULT_CONFIG_PATHS:
                log.warn("try to load config from default path:", candidate)
                try:
                    data, is_json = detect_and_read_config(candidate)
                except OSError as exc:
                    log.warn(exc)
                    continue
                break
        else:
            try:
                data, is_json = detect_and_read_config(self.path)
            except OSError as exc:
                _fatal(exc)

        if data is not None:
            log.info("trojan-go", VERSION, "initializing")
            _run(data, is_json)
        _fatal("no valid config")


class StdinOption(OptionHandler):
    """Start a proxy from a config read from standard input."""

    def __init__(
        self,
        stdin_format: Optional[str] = "disabled",
        suppress_hint: bool = False,
        stdin: Any = None,
        stdout: Any = None,
    ) -> None:
        self.stdin_format = stdin_format
        self.suppress_hint = suppress_hint
        self._stdin = stdin
        self._stdout = stdout

    def name(self) -> str:
        return NAME + "_STDIN"

    def priority(self) -> int:
        return 0

    def _is_format_json(self) -> bool:
        if self.stdin_format is None:
            raise TrojanError("format specifier is nil")
        if self.stdin_format == "disabled":
            raise TrojanError("reading from stdin is disabled")
        return self.stdin_format.lower() == "json"

    def handle(self) -> None:
        is_json = self._is_format_json()
        out = self._stdout if self._stdout is not None else sys.stdout
        if not self.suppress_hint:
            print(f"Trojan-Go {VERSION} ({sys.platform}/{platform.machine()})", file=out)
            kind = "JSON" if is_json else "YAML"
            print(f"Reading {kind} configuration from stdin.", file=out)
        source = self._stdin if self._stdin is not None else sys.stdin.buffer
        try:
            data = source.read()
        except OSError as exc:
            log.fatalf("Failed to read from stdin: %s", exc)
            raise SystemExit(1) from exc
        _run(data, is_json)


def _split_host_port(addr: str) -> tuple[str, str]:
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {addr}")
        if addr[end + 1:end + 2] != ":":
            raise ValueError(f"missing port in address {addr}")
        return addr[1:end], addr[end + 2:]
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr}")
    if ":" in host:
        raise ValueError(f"too many colons in address {addr}")
    return host, port


def _parse_addr(addr: str, role: str) -> tuple[str, int]:
    try:
        host, port = _split_host_port(addr)
    except ValueError as exc:
        _fatal(TrojanError(f"invalid {role} addr format:" + addr).base(exc))
    if not _PORT.fullmatch(port):
        _fatal(f'strconv.Atoi: parsing "{port}": invalid syntax')
    return host, int(port)


class EasyOption(OptionHandler):
    """Start a client or server from a few command-line values, without a config file."""

    def __init__(
        self,
        server: bool = False,
        client: bool = False,
        password: str = "",
        local: str = "",
        remote: str = "",
        key: str = "server.key",
        cert: str = "server.crt",
    ) -> None:
        self.server = server
        self.client = client
        self.password = password
        self.local = local
        self.remote = remote
        self.key = key
        self.cert = cert

    def name(self) -> str:
        return "easy"

    def priority(self) -> int:
        return 50

    def handle(self) -> None:
        if not self.server and not self.client:
            raise TrojanError("empty")
        if not self.password:
            _fatal("empty password is not allowed")
        log.info("easy mode enabled, trojan-go will NOT use the config file")
        if self.client:
            if not self.local:
                log.warn("client local addr is unspecified, using 127.0.0.1:1080")
                self.local = "127.0.0.1:1080"
            document = self._document("client")
            log.info("generated config:")
        else:
            if not self.remote:
                log.warn("server remote addr is unspecified, using 127.0.0.1:80")
                self.remote = "127.0.0.1:80"
            if not self.local:
                log.warn("server local addr is unspecified, using 0.0.0.0:443")
                self.local = "0.0.0.0:443"
            document = self._document("server")
            document["ssl"] = {"sni": "", "cert": self.cert, "key": self.key}
            log.info("generated json config:")
        data = json.dumps(document, separators=(",", ":"))
        log.info(data)
        _run(data.encode(), True)

    def _document(self, run_type: str) -> dict[str, Any]:
        local_host, local_port = _parse_addr(self.local, "local")
        remote_host, remote_port = _parse_addr(self.remote, "remote")
        return {
            "run_type": run_type,
            "local_addr": local_host,
            "local_port": local_port,
            "remote_addr": remote_host,
            "remote_port": remote_port,
            "password": [self.password],
        }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trojan-go", allow_abbrev=False)
    parser.add_argument("-config", "--config", default="",
                        help="Trojan-Go config filename (.yaml/.yml/.json)")
    parser.add_argument("-stdin-format", "--stdin-format", default="disabled",
                        help="Read from standard input (yaml/json)")
    parser.add_argument("-stdin-suppress-hint", "--stdin-suppress-hint", action="store_true",
                        help="Suppress hint text")
    parser.add_argument("-server", "--server", action="store_true", help="Run a trojan-go server")
    parser.add_argument("-client", "--client", action="store_true", help="Run a trojan-go client")
    parser.add_argument("-password", "--password", default="", help="Password for authentication")
    parser.add_argument("-remote", "--remote", default="",
                        help="Remote address, e.g. 127.0.0.1:12345")
    parser.add_argument("-local", "--local", default="",
                        help="Local address, e.g. 127.0.0.1:12345")
    parser.add_argument("-key", "--key", default="server.key", help="Key of the server")
    parser.add_argument("-cert", "--cert", default="server.crt",
                        help="Certificates of the server")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse the command line and run option handlers until one succeeds."""
    args = _build_parser().parse_args(argv)
    golog.install()
    option.register_handler(ConfigOption(args.config))
    option.register_handler(StdinOption(args.stdin_format, args.stdin_suppress_hint))
    option.register_handler(EasyOption(
        server=args.server,
        client=args.client,
        password=args.password,
        local=args.local,
        remote=args.remote,
        key=args.key,
        cert=args.cert,
    ))
    while True:
        try:
            handler = option.pop_option_handler()
        except TrojanError:
            _fatal("invalid options")
        try:
            handler.handle()
        except TrojanError as exc:
            log.debug(handler.name(), "skipped:", exc)
            continue
        return 0


if __name__ == "__main__":
    sys.exit(main())