"""
Exporter configuration.

Values come from built-in defaults, then an optional TOML file, then
environment variables named ``MONEROD_EXPORTER_<KEY>`` (top-level keys) or
``MONEROD_EXPORTER_<SECTION>__<KEY>`` (keys inside a section), e.g.::

    MONEROD_EXPORTER_BLOCK_SPANS=30,180,720
    MONEROD_EXPORTER_MONEROD__BASE_URL=http://node:18081
    MONEROD_EXPORTER_SERVER__HOST=127.0.0.1:9100

The result is a frozen ``Config`` that is built once at startup and handed to
every component that needs it.
"""

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from monerod_exporter.errors import ConfigError

ENV_PREFIX = "MONEROD_EXPORTER_"
ENV_SEPARATOR = "__"
CONFIG_FILE_NAME = "monerod-exporter.toml"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|sec|m|min|h)?\s*$")
_DURATION_UNITS = {
    None: 1.0,
    "ms": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "m": 60.0,
    "min": 60.0,
    "h": 3600.0,
}


# ------------------------
# CONFIG VALUES
# ------------------------
@dataclass(frozen=True)
class ServerConfig:
    """Listen address and optional TLS material for the HTTP server"""

    host: str = "[::]:8080"
    tls_key_path: Optional[Path] = None
    tls_cert_path: Optional[Path] = None

    @property
    def bind(self) -> Tuple[str, int]:
        return parse_listen_address(self.host)


@dataclass(frozen=True)
class MonerodConfig:
    """How to reach the daemon RPC interface"""

    base_url: str = "http://localhost:18081"
    timeout: float = 1.0
    tls_cert_path: Optional[Path] = None
    skip_tls_verification: bool = False


@dataclass(frozen=True)
class Config:
    block_spans: Tuple[int, ...] = (30, 180, 720)
    log_level: str = "info"
    server: ServerConfig = field(default_factory=ServerConfig)
    monerod: MonerodConfig = field(default_factory=MonerodConfig)

    @property
    def block_window(self) -> int:
        """Blocks fetched per scrape; the largest span, 0 when none is configured"""
        return max(self.block_spans, default=0)


# ------------------------
# PARSERS
# ------------------------
def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers (seconds) and strings such as ``"500ms"``, ``"1s"``,
    ``"1.5s"``, ``"2m"`` or ``"1h"``.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value).lower())
        if not match:
            raise ConfigError(f"invalid duration: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ConfigError(f"duration must be positive: {value!r}")
    return seconds


def parse_listen_address(value: str) -> Tuple[str, int]:
    """Split ``host:port`` (IPv6 hosts in brackets) into its parts"""
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ConfigError(f"invalid listen address: {value!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError(f"IPv6 listen address must be bracketed: {value!r}")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ConfigError(f"invalid listen port: {value!r}")
    return host, port_number


def _parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{key}: invalid boolean {value!r}")


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key}: invalid integer {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{key}: invalid integer {value!r}") from None


def _parse_path(value: Any, key: str) -> Optional[Path]:
    # An empty string means "not set" so an env var can clear a file setting
    if value is None or value == "":
        return None
    path = Path(str(value)).expanduser()
    if not path.is_file():
        raise ConfigError(f"{key}: file not found: {path}")
    return path


def _parse_log_level(value: Any) -> str:
    level = str(value).strip().lower()
    if level not in ("critical", "error", "warning", "info", "debug"):
        raise ConfigError(f"log_level: unknown level {value!r}")
    return level


def _parse_block_spans(settings: Mapping[str, Any], default: Tuple[int, ...]) -> Tuple[int, ...]:
    """
    Block counts to aggregate over, ascending and each listed once.

    ``block_spans`` takes a list, or a comma separated string when it comes
    from the environment; an empty value disables the block window. Without
    it, a single ``block_window`` value is used as the only span, with zero
    or less disabling the window.
    """
    if "block_spans" in settings:
        value = settings["block_spans"]
        if isinstance(value, str):
            value = [part for part in value.split(",") if part.strip()]
        elif not isinstance(value, list):
            raise ConfigError(f"block_spans: expected a list, got {value!r}")
        spans = [_parse_int(span, "block_spans") for span in value]
        if any(span <= 0 for span in spans):
            raise ConfigError(f"block_spans: spans must be positive: {value!r}")
        return tuple(sorted(set(spans)))
    if "block_window" in settings:
        window = _parse_int(settings["block_window"], "block_window")
        return (window,) if window > 0 else ()
    return default


# ------------------------
# LOADING
# ------------------------
def default_config_path() -> Path:
    """``$XDG_CONFIG_HOME/monerod-exporter.toml``, falling back to ``~/.config``"""
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base) / CONFIG_FILE_NAME


def _read_file(path: Optional[Path]) -> Dict[str, Any]:
    if path is None or not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"failed to read {path}: {e}") from e


def _overlay_env(settings: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Merge ``MONEROD_EXPORTER_*`` variables over the file settings"""
    merged: Dict[str, Any] = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in settings.items()
    }
    for name, value in environ.items():
        if not name.upper().startswith(ENV_PREFIX):
            continue
        key = name[len(ENV_PREFIX):].lower()
        if ENV_SEPARATOR in key:
            section, _, sub_key = key.partition(ENV_SEPARATOR)
            target = merged.setdefault(section, {})
            if not isinstance(target, dict):
                raise ConfigError(f"{name}: {section} is not a section")
            target[sub_key] = value
        else:
            merged[key] = value
    return merged


def _section(settings: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = settings.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"{name} must be a table")
    return section


def build_config(settings: Mapping[str, Any]) -> Config:
    """Validate merged raw settings and turn them into a ``Config``"""
    defaults = Config()
    server = _section(settings, "server")
    monerod = _section(settings, "monerod")

    server_config = ServerConfig(
        host=str(server.get("host") or defaults.server.host),
        tls_key_path=_parse_path(server.get("tls_key_path"), "server.tls_key_path"),
        tls_cert_path=_parse_path(server.get("tls_cert_path"), "server.tls_cert_path"),
    )
    # Fail at load time rather than when the server starts
    parse_listen_address(server_config.host)
    if bool(server_config.tls_cert_path) != bool(server_config.tls_key_path):
        raise ConfigError("server.tls_key_path and server.tls_cert_path must be set together")

    timeout = monerod.get("timeout")
    monerod_config = MonerodConfig(
        base_url=str(monerod.get("base_url") or defaults.monerod.base_url).rstrip("/"),
        timeout=defaults.monerod.timeout if timeout in (None, "") else parse_duration(timeout),
        tls_cert_path=_parse_path(monerod.get("tls_cert_path"), "monerod.tls_cert_path"),
        skip_tls_verification=_parse_bool(
            monerod.get("skip_tls_verification", defaults.monerod.skip_tls_verification),
            "monerod.skip_tls_verification",
        ),
    )

    return Config(
        block_spans=_parse_block_spans(settings, defaults.block_spans),
        log_level=_parse_log_level(settings.get("log_level", defaults.log_level)),
        server=server_config,
        monerod=monerod_config,
    )


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Load the configuration.

    Args:
        path: TOML file to read; a missing file is not an error
        environ: Environment to overlay, defaults to ``os.environ``

    Returns:
        The validated, immutable configuration

    Raises:
        ConfigError: when any source holds an invalid value
    """
    settings = _read_file(path)
    settings = _overlay_env(settings, os.environ if environ is None else environ)
    return build_config(settings)
