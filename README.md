# trojanfork

The core of a Trojan-style proxy: the pieces that load configuration, decide
how the program was asked to start, relay traffic between tunnel objects,
record connections and log. The tunnels themselves (TLS, WebSocket, SOCKS,
HTTP and so on) are not part of this package; see "What this package does not
do" below.

## Installation

```
pip install .
```

For the tests:

```
pip install .[test]
pytest
```

## Modules

- `trojanfork.common` - `TrojanError` (an exception whose `base(err)` appends
  the text of a cause), `Notifier`, `sha224_string`, `human_friendly_traffic`,
  `pick_port`, `write_all_bytes`, `write_file`, `fetch_http_content`,
  `get_program_dir` and `get_asset_location`, plus `VERSION` and `COMMIT`.
- `trojanfork.rewind` - `RewindReader`, which records what it reads so it can
  be read again after `rewind()`; `RewindConn`, the same over a socket; and
  `StickyWriter`, which gathers the first `max_buffered` writes into one.
- `trojanfork.log` - the process-wide logging front end (`info`, `warnf`,
  `fatal`, ...) with `LogLevel`, `register_logger`, `set_log_level` and
  `set_output`. Until a logger is registered, `EmptyLogger` drops every message;
  `fatal` and `fatalf` always end the process with `SystemExit(1)`.
- `trojanfork.golog` - `logger.Logger`, which writes level-tagged,
  timestamped lines and colours them when writing to a terminal;
  `logger.install(out)` creates one and registers it. `buffer.Buffer` and
  `colorful.ColorBuffer` with the colour helpers `red`, `green`, `orange`,
  `blue`, `purple`, `cyan` and `gray` (colour codes are only emitted on Linux).
- `trojanfork.simplelog` - `SimpleLogger`, a plain logger that writes
  timestamped lines to standard error.
- `trojanfork.config` - `Context`, an immutable set of bindings, and
  `register_config_creator`, `with_json_config`, `with_yaml_config`,
  `with_config` and `from_context`. Every registered creator produces a
  dataclass or dict that is filled from the same document.
- `trojanfork.option` - `OptionHandler` and the priority-ordered registry
  `register_handler` / `pop_option_handler`.
- `trojanfork.api` - a registry of API services: `register_handler` and
  `run_service` (which returns None when no service has that name).
- `trojanfork.proxy` - `ProxyConfig`, `Proxy` (relays stream connections and
  packets from every source to a sink until closed),
  `register_proxy_creator` and `new_proxy_from_config_data`.
- `trojanfork.recorder` - `Record`, `add`, `subscribe` and `unsubscribe`.
  Each subscriber gets a bounded queue (10 records) and may filter by
  transport and target port; records that do not fit are dropped.
- `trojanfork.redirector` - `Redirection` and `Redirector`, a background
  worker that dials the target address and relays both directions until
  either side ends or the redirector is closed. It is a context manager.
- `trojanfork.geodata` - `decode(filename, code)` and `emit_bytes(f, code)`
  pull a single GeoIP or GeoSite entry out of a geodata list file by its code
  (case-insensitive) without reading the whole file; failures raise
  `GeodataError`, whose `reason` says what went wrong.
- `trojanfork.cli` - the `trojanfork` command and its option handlers
  `EasyOption`, `StdinOption` and `ConfigOption`, plus
  `detect_and_read_config`.

## Running

The package installs one command, `trojanfork`. It installs the coloured
logger on standard output and tries its option handlers by priority: easy
mode first, then reading the configuration from standard input, then a
configuration file. Flags may be written with one or two dashes.

Run with a configuration file (`.json`, `.yaml` or `.yml`):

```
trojanfork --config config.json
```

Without `--config` the command looks for `config.json`, `config.yml` and
`config.yaml` in the current directory, and stops with "no valid config" if
none can be read.

Read the configuration from standard input (`json` or `yaml`):

```
trojanfork --stdin-format json < config.json
```

`--stdin-suppress-hint` leaves out the two lines of hint text.

Easy mode builds a JSON configuration from a few flags instead of a file:

```
trojanfork --client --remote 203.0.113.10:443 --local 127.0.0.1:1080 --password password
trojanfork --server --local 0.0.0.0:443 --remote 127.0.0.1:80 --password password --cert server.crt --key server.key
```

A client's local address defaults to `127.0.0.1:1080`; a server's local and
remote addresses default to `0.0.0.0:443` and `127.0.0.1:80`, and its
`--cert` and `--key` to `server.crt` and `server.key`. An empty password is
refused.

The `run_type` field of the configuration selects which proxy is built, by a
creator registered with `trojanfork.proxy.register_proxy_creator`. The
configuration's `log_level` (0 to 5, default 1) sets the log level, and
`log_file`, when given, sends the log to that file.

## Library use

```python
from trojanfork.common import sha224_string, human_friendly_traffic
from trojanfork.config import Context, register_config_creator, with_json_config, from_context

print(sha224_string("password"))
print(human_friendly_traffic(3 * 1024 * 1024))   # "3.00 MiB"

register_config_creator("example", dict)
ctx = with_json_config(Context(), b'{"field": 1}')
print(from_context(ctx, "example"))              # {'field': 1}
```

Pull a single entry out of a geodata file:

```python
from trojanfork.geodata import decode

entry = decode("geoip.dat", "private")
```

Relative asset names given to `get_asset_location` are resolved against the
directory named by the `TROJAN_GO_LOCATION_ASSET` environment variable when it
is set, and otherwise against the directory of the running program.

## What this package does not do

- It registers no proxy creators. Client, server, forward, NAT and custom
  proxies are not included, so until your code calls
  `register_proxy_creator` for the configured `run_type`, the `trojanfork`
  command stops with "unknown proxy type".
- It has no tunnel implementations. `Proxy` relays between objects you supply
  that offer `accept_conn`, `accept_packet`, `dial_conn`, `dial_packet` and
  `close`; it does not speak TLS, WebSocket, SOCKS, HTTP or the Trojan
  protocol itself.
- It has no user authentication or traffic accounting, and no API service is
  registered: `trojanfork.api.run_service` only runs handlers you register.
- It does not parse geodata entries into IP ranges or domain lists;
  `trojanfork.geodata` returns the raw bytes of the entry.