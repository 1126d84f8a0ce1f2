"""Configuration management for lintd.

Loads settings from ~/.config/lintd/config.cfg and ~/.config/lintd/.env,
with LINTD_* environment variables taking precedence.
Provides DaemonSettings (socket address, retry policy, linter module).
"""

import configparser
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

CONFIG_DIR = Path.home() / ".config" / "lintd"
CONFIG_PATH = CONFIG_DIR / "config.cfg"
ENV_PATH = CONFIG_DIR / ".env"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 48126

# Environment variable -> config key
ENV_OVERRIDES = {
    "LINTD_HOST": "host",
    "LINTD_PORT": "port",
    "LINTD_CONNECT_TIMEOUT_S": "connect_timeout",
    "LINTD_LINTER": "linter_module",
    "LINTD_LOG_FILE": "log_file",
}


@dataclass
class DaemonSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    chunk_size: int = 512
    # Seconds to keep retrying discovery; 0 retries forever
    connect_timeout: float = 10.0
    retry_interval: float = 0.05
    max_retry_interval: float = 0.5
    # Seconds to wait for stop/restart to take effect
    verify_timeout: float = 2.0
    # Seconds of inactivity before the daemon exits; 0 never
    idle_timeout: float = 0.0
    linter_module: str = "pycodestyle"
    log_file: Path = field(default_factory=lambda: CONFIG_DIR / "daemon.log")


def load_raw_config(path: Path = CONFIG_PATH) -> Dict[str, str]:
    """
    Load configuration values from the standard config path.
    Values are returned with lowercase keys for convenience.
    """
    cfg = configparser.ConfigParser()
    data: Dict[str, str] = {}

    if path.exists():
        cfg.read(path)
        if "DEFAULT" in cfg:
            data.update({k.lower(): v for k, v in cfg["DEFAULT"].items()})
        if "DAEMON" in cfg:
            data.update({k.lower(): v for k, v in cfg["DAEMON"].items()})

    return data


def load_env_config(path: Path = ENV_PATH) -> Dict[str, str]:
    """Load LINTD_* values from a .env file, mapped to config keys."""
    if not path.exists():
        return {}

    values = dotenv_values(path)
    return {
        ENV_OVERRIDES[key]: value
        for key, value in values.items()
        if key in ENV_OVERRIDES and value is not None
    }


def _get_float(raw: Dict[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for '{key}': {value!r}") from None


def _get_int(raw: Dict[str, str], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValueError(f"Invalid integer for '{key}': {value!r}") from None


def get_daemon_settings(raw: Optional[Dict[str, str]] = None) -> DaemonSettings:
    """
    Build DaemonSettings from raw configuration values.

    Precedence: process environment > .env file > config.cfg > defaults.
    Raises ValueError if a numeric value cannot be parsed.
    """
    if raw is None:
        raw = {**load_raw_config(), **load_env_config()}
    else:
        raw = dict(raw)

    for env_name, key in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value is not None and env_value.strip() != "":
            raw[key] = env_value

    defaults = DaemonSettings()

    port = _get_int(raw, "port", defaults.port)
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")

    chunk_size = _get_int(raw, "chunk_size", defaults.chunk_size)
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    log_file = raw.get("log_file", "").strip()

    return DaemonSettings(
        host=raw.get("host", "").strip() or defaults.host,
        port=port,
        chunk_size=chunk_size,
        connect_timeout=_get_float(raw, "connect_timeout", defaults.connect_timeout),
        retry_interval=_get_float(raw, "retry_interval", defaults.retry_interval),
        max_retry_interval=_get_float(raw, "max_retry_interval", defaults.max_retry_interval),
        verify_timeout=_get_float(raw, "verify_timeout", defaults.verify_timeout),
        idle_timeout=_get_float(raw, "idle_timeout", defaults.idle_timeout),
        linter_module=raw.get("linter_module", "").strip() or defaults.linter_module,
        log_file=Path(log_file).expanduser() if log_file else defaults.log_file,
    )


def is_daemon_enabled() -> bool:
    """
    Check if daemon mode is enabled.

    Daemon is DISABLED if LINTD_NO_DAEMON=1 (or true/yes) is set; the CLI
    then lints in-process.
    """
    return os.environ.get("LINTD_NO_DAEMON", "").lower() not in ("1", "true", "yes")
