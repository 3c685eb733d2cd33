"""Tests for configuration loading."""

from pathlib import Path

import pytest

from monerod_exporter.config import (
    Config,
    load_config,
    parse_duration,
    parse_listen_address,
)
from monerod_exporter.errors import ConfigError


@pytest.fixture
def config_file(tmp_path: Path):
    def _write(content: str) -> Path:
        path = tmp_path / "monerod-exporter.toml"
        path.write_text(content)
        return path

    return _write


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path / "missing.toml", environ={})

    assert config == Config()
    assert config.block_spans == (30, 180, 720)
    assert config.block_window == 720
    assert config.server.host == "[::]:8080"
    assert config.server.bind == ("::", 8080)
    assert config.monerod.base_url == "http://localhost:18081"
    assert config.monerod.timeout == 1.0


def test_file_values(config_file):
    path = config_file(
        'block_window = 720\n'
        'log_level = "debug"\n'
        '[server]\nhost = "127.0.0.1:9100"\n'
        '[monerod]\nbase_url = "http://node:18089/"\ntimeout = "5s"\nskip_tls_verification = true\n'
    )

    config = load_config(path, environ={})

    assert config.block_window == 720
    assert config.log_level == "debug"
    assert config.server.bind == ("127.0.0.1", 9100)
    assert config.monerod.base_url == "http://node:18089"
    assert config.monerod.timeout == 5.0
    assert config.monerod.skip_tls_verification is True


def test_environment_overrides_file(config_file):
    path = config_file('block_window = 720\n[monerod]\nbase_url = "http://file:18081"\ntimeout = "5s"\n')
    environ = {
        "MONEROD_EXPORTER_BLOCK_WINDOW": "3",
        "MONEROD_EXPORTER_MONEROD__BASE_URL": "http://env:18081",
        "MONEROD_EXPORTER_SERVER__HOST": "[::1]:9000",
        "UNRELATED": "x",
    }

    config = load_config(path, environ=environ)

    assert config.block_window == 3
    assert config.monerod.base_url == "http://env:18081"
    assert config.monerod.timeout == 5.0
    assert config.server.bind == ("::1", 9000)


def test_block_spans_from_file(config_file):
    config = load_config(config_file("block_spans = [720, 30, 180, 30]\n"), environ={})

    assert config.block_spans == (30, 180, 720)
    assert config.block_window == 720


def test_block_spans_from_environment(config_file):
    path = config_file("block_spans = [30]\n")

    config = load_config(path, environ={"MONEROD_EXPORTER_BLOCK_SPANS": "10, 100"})

    assert config.block_spans == (10, 100)
    assert config.block_window == 100


def test_block_spans_win_over_block_window(config_file):
    config = load_config(config_file("block_window = 5\nblock_spans = [2, 4]\n"), environ={})

    assert config.block_spans == (2, 4)


@pytest.mark.parametrize("content", ["block_spans = []\n", "block_window = 0\n", "block_window = -3\n"])
def test_block_window_disabled(config_file, content):
    config = load_config(config_file(content), environ={})

    assert config.block_spans == ()
    assert config.block_window == 0


def test_block_spans_must_be_a_list(config_file):
    with pytest.raises(ConfigError, match="block_spans"):
        load_config(config_file("block_spans = 30\n"), environ={})


def test_config_is_immutable(tmp_path):
    config = load_config(tmp_path / "missing.toml", environ={})

    with pytest.raises(AttributeError):
        config.block_spans = (1,)


def test_tls_paths_must_exist(tmp_path):
    with pytest.raises(ConfigError, match="tls_cert_path"):
        load_config(None, environ={"MONEROD_EXPORTER_MONEROD__TLS_CERT_PATH": str(tmp_path / "nope.pem")})


def test_server_tls_needs_key_and_cert(tmp_path):
    cert = tmp_path / "cert.pem"
    cert.write_text("cert")

    with pytest.raises(ConfigError, match="together"):
        load_config(None, environ={"MONEROD_EXPORTER_SERVER__TLS_CERT_PATH": str(cert)})


@pytest.mark.parametrize("environ", [
    {"MONEROD_EXPORTER_BLOCK_WINDOW": "many"},
    {"MONEROD_EXPORTER_BLOCK_SPANS": "30,many"},
    {"MONEROD_EXPORTER_BLOCK_SPANS": "30,0"},
    {"MONEROD_EXPORTER_MONEROD__TIMEOUT": "soon"},
    {"MONEROD_EXPORTER_MONEROD__SKIP_TLS_VERIFICATION": "maybe"},
    {"MONEROD_EXPORTER_SERVER__HOST": "nowhere"},
    {"MONEROD_EXPORTER_LOG_LEVEL": "loud"},
])
def test_invalid_values(environ):
    with pytest.raises(ConfigError):
        load_config(None, environ=environ)


def test_unparsable_file(config_file):
    with pytest.raises(ConfigError, match="failed to read"):
        load_config(config_file("block_window = [unclosed"), environ={})


@pytest.mark.parametrize("value,seconds", [
    ("1s", 1.0),
    ("500ms", 0.5),
    ("1.5s", 1.5),
    ("2m", 120.0),
    ("1h", 3600.0),
    (3, 3.0),
    ("10", 10.0),
])
def test_parse_duration(value, seconds):
    assert parse_duration(value) == seconds


@pytest.mark.parametrize("value", ["", "0s", "-1s", "1d", True])
def test_parse_duration_invalid(value):
    with pytest.raises(ConfigError):
        parse_duration(value)


@pytest.mark.parametrize("value,expected", [
    ("[::]:8080", ("::", 8080)),
    ("0.0.0.0:80", ("0.0.0.0", 80)),
    ("localhost:9100", ("localhost", 9100)),
])
def test_parse_listen_address(value, expected):
    assert parse_listen_address(value) == expected


@pytest.mark.parametrize("value", ["8080", ":8080", "host:", "host:99999", "::1:8080"])
def test_parse_listen_address_invalid(value):
    with pytest.raises(ConfigError):
        parse_listen_address(value)
