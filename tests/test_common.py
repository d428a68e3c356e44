import http.server
import os
import socket
import sys
import threading

import pytest

from trojanfork.common import (
    ASSET_LOCATION_ENV,
    GIB,
    KIB,
    MIB,
    Notifier,
    TrojanError,
    fetch_http_content,
    get_asset_location,
    get_program_dir,
    human_friendly_traffic,
    pick_port,
    sha224_string,
    write_all_bytes,
    write_file,
)


def test_sha224_of_empty_string():
    assert (
        sha224_string("")
        == "d14a028c2a3a2bc9476102bb288234c415a2b01f828ea62ac5b3e42f"
    )


def test_sha224_shape_and_determinism():
    digest = sha224_string("password")
    assert len(digest) == 56
    assert set(digest) <= set("0123456789abcdef")
    assert digest == sha224_string("password")
    assert digest != sha224_string("secret")


def test_error_base_appends_cause():
    err = TrojanError("failed").base(ValueError("boom"))
    assert str(err) == "failed | boom"


def test_error_base_none_keeps_message():
    err = TrojanError("failed")
    assert err.base(None) is err
    assert str(err) == "failed"


def test_error_chains_trojan_errors():
    err = TrojanError("outer").base(TrojanError("inner"))
    assert isinstance(err, Exception)
    assert str(err) == "outer | inner"


def test_notifier_coalesces_signals():
    n = Notifier()
    n.signal()
    n.signal()
    assert n.wait(0) is True
    assert n.wait(0) is False


def test_notifier_wakes_waiting_thread():
    n = Notifier()
    timer = threading.Timer(0.05, n.signal)
    timer.start()
    woke = n.wait(5)
    timer.join(5)
    assert woke is True
    assert n.wait(0) is False


def test_traffic_bytes_boundary():
    assert human_friendly_traffic(KIB) == f"{KIB} B"
    assert human_friendly_traffic(0) == "0 B"


def test_traffic_units():
    assert human_friendly_traffic(KIB + 1).endswith(" KiB")
    assert human_friendly_traffic(MIB).endswith(" KiB")
    assert human_friendly_traffic(MIB + 1).endswith(" MiB")
    assert human_friendly_traffic(GIB).endswith(" MiB")
    assert human_friendly_traffic(GIB + 1).endswith(" GiB")


def test_traffic_value():
    assert human_friendly_traffic(KIB + KIB // 2) == "1.50 KiB"


def test_traffic_negative_rejected():
    with pytest.raises(ValueError):
        human_friendly_traffic(-1)


def test_program_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "prog")])
    assert get_program_dir() == str(tmp_path)


def test_asset_location_absolute(tmp_path):
    path = str(tmp_path / "geoip.dat")
    assert get_asset_location(path) == path


def test_asset_location_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv(ASSET_LOCATION_ENV, str(tmp_path))
    assert get_asset_location("geoip.dat") == os.path.join(
        str(tmp_path), "geoip.dat"
    )


def test_asset_location_program_dir(monkeypatch, tmp_path):
    monkeypatch.delenv(ASSET_LOCATION_ENV, raising=False)
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "prog")])
    assert get_asset_location("geosite.dat") == os.path.join(
        str(tmp_path), "geosite.dat"
    )


@pytest.mark.parametrize("network", ["tcp", "udp"])
def test_pick_port_returns_usable_port(network):
    port = pick_port(network, "127.0.0.1")
    assert 0 < port < 65536
    kind = socket.SOCK_STREAM if network == "tcp" else socket.SOCK_DGRAM
    with socket.socket(socket.AF_INET, kind) as sock:
        sock.bind(("127.0.0.1", port))
        assert sock.getsockname()[1] == port


def test_pick_port_unknown_network():
    assert pick_port("sctp", "127.0.0.1") == 0


class _ChunkWriter:
    def __init__(self):
        self.data = bytearray()
        self.calls = 0

    def write(self, data):
        self.calls += 1
        chunk = bytes(data[:3])
        self.data += chunk
        return len(chunk)


def test_write_all_bytes_loops_short_writes():
    writer = _ChunkWriter()
    payload = b"0123456789"
    write_all_bytes(writer, payload)
    assert bytes(writer.data) == payload
    assert writer.calls == 4


def test_write_file_round_trip(tmp_path):
    path = tmp_path / "out.bin"
    write_file(str(path), b"payload")
    assert path.read_bytes() == b"payload"


class _Handler(http.server.BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/ok":
            body = b"content"
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        else:
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()

    def log_message(self, format, *args):
        pass


@pytest.fixture
def http_base(monkeypatch):
    for name in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY"):
        monkeypatch.delenv(name, raising=False)
    server = http.server.HTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_fetch_http_content_ok(http_base):
    assert fetch_http_content(http_base + "/ok") == b"content"


def test_fetch_http_content_bad_status(http_base):
    with pytest.raises(TrojanError, match="unexpected HTTP status code: 404"):
        fetch_http_content(http_base + "/missing")


def test_fetch_http_content_bad_scheme():
    with pytest.raises(TrojanError, match="invalid scheme: ftp"):
        fetch_http_content("ftp://localhost/file")


def test_fetch_http_content_dial_failure():
    port = pick_port("tcp", "127.0.0.1")
    target = f"http://127.0.0.1:{port}/"
    with pytest.raises(TrojanError, match="failed to dial to"):
        fetch_http_content(target)