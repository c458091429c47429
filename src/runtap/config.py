"""Configuration management for runtap.

Reads the [session] and [files] tables from runtap.toml, found in the current
directory or any parent.

PUBLIC API:
  - RunTapConfig: Resolved configuration with defaults
  - load_config: Load and validate configuration from a file
  - get_config: Get or create the global configuration
  - derive_endpoint: Map a page origin to its terminal WebSocket endpoint
  - derive_files_url: Map an endpoint to the backend file API base URL
"""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from runtap.errors import ConfigError

__all__ = ["RunTapConfig", "load_config", "get_config", "derive_endpoint", "derive_files_url", "CONFIG_FILENAME"]

CONFIG_FILENAME = "runtap.toml"
TERMINAL_PATH = "/terminal"
FILES_PATH = "/api/files"

_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def derive_endpoint(origin: str, path: str = TERMINAL_PATH) -> str:
    """Derive the terminal endpoint from a page origin.

    Same host and port, ws for http and wss for https.

    Args:
        origin: Origin like "https://example.com:8443". A path, if any, is
            discarded.
        path: Endpoint path suffix.

    Returns:
        WebSocket endpoint, e.g. "wss://example.com:8443/terminal".

    Raises:
        ConfigError: If the origin has no host or an unsupported scheme.
    """
    parts = urlsplit(origin)
    scheme = _SCHEMES.get(parts.scheme.lower())
    if not scheme or not parts.netloc:
        raise ConfigError(f"Cannot derive endpoint from origin: {origin!r}")
    return f"{scheme}://{parts.netloc}{path}"


def derive_files_url(endpoint: str) -> str:
    """Derive the file API base URL from a WebSocket endpoint."""
    parts = urlsplit(endpoint)
    scheme = "https" if parts.scheme == "wss" else "http"
    return f"{scheme}://{parts.netloc}{FILES_PATH}"


@dataclass
class RunTapConfig:
    """Resolved runtap configuration.

    Attributes:
        endpoint: Backend WebSocket address.
        reconnect_delay: Seconds between stop() and the automatic reconnect.
        connect_timeout: Seconds to wait for the WebSocket handshake.
        ping_interval: Keepalive ping interval in seconds, 0 disables.
        ping_timeout: Seconds to wait for a pong.
        files_url: Backend file API base URL.
        files_timeout: File API request timeout in seconds.
        buffer_size: Maximum entries kept per console buffer.
        source: Config file the values came from, if any.
    """

    endpoint: str = "ws://localhost:8080/terminal"
    reconnect_delay: float = 0.5
    connect_timeout: float = 5.0
    ping_interval: float = 30
    ping_timeout: float = 10
    files_url: str = ""
    files_timeout: float = 30.0
    buffer_size: int = 5000
    source: Optional[Path] = None

    def __post_init__(self):
        if not self.files_url:
            self.files_url = derive_files_url(self.endpoint)

    def validate(self) -> "RunTapConfig":
        """Check value ranges.

        Returns:
            self, for chaining.

        Raises:
            ConfigError: On the first invalid value.
        """
        if urlsplit(self.endpoint).scheme not in ("ws", "wss"):
            raise ConfigError(f"endpoint must be a ws:// or wss:// address, got {self.endpoint!r}")
        if self.reconnect_delay < 0:
            raise ConfigError("reconnect_delay must not be negative")
        if self.connect_timeout <= 0:
            raise ConfigError("connect_timeout must be positive")
        if self.ping_interval < 0 or self.ping_timeout <= 0:
            raise ConfigError("ping_interval must not be negative and ping_timeout must be positive")
        if self.ping_interval and self.ping_timeout >= self.ping_interval:
            raise ConfigError("ping_timeout must be less than ping_interval")
        if self.files_timeout <= 0:
            raise ConfigError("files_timeout must be positive")
        if self.buffer_size <= 0:
            raise ConfigError("buffer_size must be positive")
        return self


def _find_config_file() -> Optional[Path]:
    """Find runtap.toml in current or parent directories."""
    current = Path.cwd()

    for parent in [current] + list(current.parents):
        config_file = parent / CONFIG_FILENAME
        if config_file.exists():
            return config_file

    return None


def _load_raw(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e


def _number(table: dict, key: str, default: float) -> float:
    value = table.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    return value


def _integer(table: dict, key: str, default: int) -> int:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    return value


def _string(table: dict, key: str, default: str) -> str:
    value = table.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string, got {value!r}")
    return value


def _table(data: dict, name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return value


def load_config(path: Optional[Path] = None) -> RunTapConfig:
    """Load configuration.

    Args:
        path: Explicit config file. Searches the current and parent
            directories for runtap.toml when omitted.

    Returns:
        Validated RunTapConfig. Defaults when no file is found.

    Raises:
        ConfigError: If the file is unreadable or holds invalid values.
    """
    if path is None:
        path = _find_config_file()

    if path is None:
        return RunTapConfig().validate()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    data = _load_raw(path)
    session = _table(data, "session")
    files = _table(data, "files")
    defaults = RunTapConfig()

    endpoint = _string(session, "endpoint", "")
    origin = _string(session, "origin", "")
    if not endpoint:
        endpoint = derive_endpoint(origin) if origin else defaults.endpoint

    config = RunTapConfig(
        endpoint=endpoint,
        reconnect_delay=_number(session, "reconnect_delay", defaults.reconnect_delay),
        connect_timeout=_number(session, "connect_timeout", defaults.connect_timeout),
        ping_interval=_number(session, "ping_interval", defaults.ping_interval),
        ping_timeout=_number(session, "ping_timeout", defaults.ping_timeout),
        buffer_size=_integer(session, "buffer_size", defaults.buffer_size),
        files_url=_string(files, "base_url", ""),
        files_timeout=_number(files, "timeout", defaults.files_timeout),
        source=path,
    )
    return config.validate()


# Global instance
_config: Optional[RunTapConfig] = None


def get_config() -> RunTapConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
