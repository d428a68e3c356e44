import io

import pytest

from trojanfork import log
from trojanfork.cli import (
    ConfigOption,
    EasyOption,
    StdinOption,
    detect_and_read_config,
    main,
)
from trojanfork.common import VERSION, TrojanError
from trojanfork.config import from_context, register_config_creator
from trojanfork.log import EmptyLogger
from trojanfork.proxy import NAME, Proxy, register_proxy_creator


class _Sink:
    def close(self):
        pass


@pytest.fixture(autouse=True)
def quiet_logger():
    log.register_logger(EmptyLogger())
    yield
    log.register_logger(EmptyLogger())


@pytest.fixture
def created():
    seen = []

    def creator(ctx):
        seen.append(ctx)
        proxy = Proxy(ctx, [], _Sink())
        proxy.close()
        return proxy

    register_config_creator("TESTCAPTURE", dict)
    for name in ("TESTRUN", "CLIENT", "SERVER"):
        register_proxy_creator(name, creator)
    return seen


def _document(ctx):
    return from_context(ctx, "TESTCAPTURE")


@pytest.mark.parametrize(
    "name, is_json",
    [("config.json", True), ("config.yml", False), ("config.yaml", False)],
)
def test_detect_and_read_config(tmp_path, name, is_json):
    path = tmp_path / name
    path.write_bytes(b"run_type: x\n")
    assert detect_and_read_config(str(path)) == (b"run_type: x\n", is_json)


def test_detect_rejects_unknown_extension(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("x")
    with pytest.raises(SystemExit) as excinfo:
        detect_and_read_config(str(path))
    assert excinfo.value.code == 1


def test_detect_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        detect_and_read_config(str(tmp_path / "missing.json"))


def test_option_names_and_priorities():
    assert (ConfigOption().name(), ConfigOption().priority()) == (NAME, -1)
    assert (StdinOption().name(), StdinOption().priority()) == (NAME + "_STDIN", 0)
    assert (EasyOption().name(), EasyOption().priority()) == ("easy", 50)


def test_stdin_disabled_raises():
    with pytest.raises(TrojanError, match="reading from stdin is disabled"):
        StdinOption().handle()


def test_stdin_without_format_raises():
    with pytest.raises(TrojanError, match="format specifier is nil"):
        StdinOption(None).handle()


def test_stdin_json_prints_hint_and_runs(created):
    out = io.StringIO()
    StdinOption("JSON", stdin=io.BytesIO(b'{"run_type": "testrun"}'), stdout=out).handle()
    text = out.getvalue()
    assert "Reading JSON configuration from stdin." in text
    assert f"Trojan-Go {VERSION}" in text
    assert from_context(created[0], NAME).run_type == "testrun"


def test_stdin_yaml_with_suppressed_hint(created):
    out = io.StringIO()
    StdinOption("yaml", True, stdin=io.BytesIO(b"run-type: testrun\n"), stdout=out).handle()
    assert out.getvalue() == ""
    assert len(created) == 1


def test_stdin_yaml_hint(created):
    out = io.StringIO()
    StdinOption("yaml", stdin=io.BytesIO(b"run-type: testrun\n"), stdout=out).handle()
    assert "Reading YAML configuration from stdin." in out.getvalue()


def test_config_option_runs_then_exits(created, tmp_path):
    path = tmp_path / "proxy.json"
    path.write_text('{"run_type": "testrun"}')
    with pytest.raises(SystemExit) as excinfo:
        ConfigOption(str(path)).handle()
    assert excinfo.value.code == 1
    assert len(created) == 1


def test_config_option_missing_file_exits(created, tmp_path):
    with pytest.raises(SystemExit):
        ConfigOption(str(tmp_path / "absent.json")).handle()
    assert created == []


def test_config_option_finds_default_file(created, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config.yml").write_text("run-type: testrun\n")
    with pytest.raises(SystemExit):
        ConfigOption().handle()
    assert _document(created[0])["run-type"] == "testrun"


def test_easy_without_mode_raises():
    with pytest.raises(TrojanError, match="empty"):
        EasyOption().handle()


def test_easy_requires_password():
    with pytest.raises(SystemExit):
        EasyOption(client=True, remote="example.com:443").handle()


def test_easy_client_config(created):
    password = "password"
    EasyOption(client=True, password=password, remote="example.com:443").handle()
    assert _document(created[0]) == {
        "run_type": "client",
        "local_addr": "127.0.0.1",
        "local_port": 1080,
        "remote_addr": "example.com",
        "remote_port": 443,
        "password": [password],
    }


def test_easy_server_defaults(created):
    password = "password"
    EasyOption(server=True, password=password).handle()
    assert _document(created[0]) == {
        "run_type": "server",
        "local_addr": "0.0.0.0",
        "local_port": 443,
        "remote_addr": "127.0.0.1",
        "remote_port": 80,
        "password": [password],
        "ssl": {"sni": "", "cert": "server.crt", "key": "server.key"},
    }


def test_easy_ipv6_local_address(created):
    password = "password"
    EasyOption(client=True, password=password, local="[::1]:1080",
               remote="example.com:443").handle()
    assert _document(created[0])["local_addr"] == "::1"


@pytest.mark.parametrize("local", ["nope", "127.0.0.1:abc", "a:b:c"])
def test_easy_invalid_local_addr_exits(created, local):
    password = "password"
    with pytest.raises(SystemExit):
        EasyOption(client=True, password=password, local=local,
                   remote="example.com:443").handle()
    assert created == []


def test_main_without_config_exits(created, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1
    out = capsys.readouterr().out
    assert "no valid config" in out
    assert created == []


def test_main_easy_client(created, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    password = "password"
    assert main(["-client", "-password", password, "-remote", "example.com:443"]) == 0
    assert _document(created[0])["remote_port"] == 443
    assert _document(created[0])["run_type"] == "client"