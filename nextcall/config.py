"""NextCall configuration."""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

# Paths
TEMP_DIR = Path("/tmp/nextcall")
CONFIG_FILENAME = "nextcall.toml"

# Logging
LOG_FILE = Path(os.getenv("NEXTCALL_LOG_FILE", str(TEMP_DIR / "monitor.log")))
LOG_LEVEL = os.getenv("NEXTCALL_LOG_LEVEL", "INFO")

# Polling
DEFAULT_INTERVAL_SECS = int(os.getenv("NEXTCALL_DEFAULT_INTERVAL", "180"))  # 3 minutes
HTTP_TIMEOUT_SECS = float(os.getenv("NEXTCALL_HTTP_TIMEOUT", "30"))

# Speech
DEFAULT_VOICE = "Moira"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """User settings from nextcall.toml, overridden by NEXTCALL_* env vars."""

    ical_url: str | None = None
    eleven_labs_key: str | None = None
    voice: str = DEFAULT_VOICE
    presence_command: str | None = None
    start_alert_respects_presence: bool = False
    default_interval_seconds: int = DEFAULT_INTERVAL_SECS


def get_config_path() -> Path | None:
    """
    Find nextcall.toml.

    Checks the current working directory first, then the home directory.
    """
    cwd_config = Path(CONFIG_FILENAME)
    if cwd_config.exists():
        return cwd_config

    home_config = Path.home() / CONFIG_FILENAME
    if home_config.exists():
        return home_config

    return None


def _parse_flag(value) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY if value.strip() else None
    raise ValueError(f"Expected true or false, got {value!r}")


def _env_flag(name: str) -> bool | None:
    return _parse_flag(os.getenv(name))


def load_config(path: Path | None = None) -> Config:
    """
    Load settings from nextcall.toml and the environment.

    Args:
        path: Explicit config file; defaults to the first nextcall.toml found

    Returns:
        Config with environment overrides applied

    Raises:
        ValueError: If the config file cannot be parsed or a value is invalid
    """
    path = path or get_config_path()
    data = {}

    if path is not None:
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

    config = Config(
        ical_url=data.get("ical_url"),
        eleven_labs_key=data.get("eleven_labs_key"),
        voice=data.get("voice", DEFAULT_VOICE),
        presence_command=data.get("presence_command"),
        start_alert_respects_presence=bool(
            _parse_flag(data.get("start_alert_respects_presence"))),
        default_interval_seconds=int(
            data.get("default_interval_seconds", DEFAULT_INTERVAL_SECS)),
    )

    # Environment wins over the file
    config.ical_url = os.getenv("NEXTCALL_ICAL_URL", "").strip() or config.ical_url
    config.eleven_labs_key = (
        os.getenv("NEXTCALL_ELEVEN_LABS_KEY", "").strip() or config.eleven_labs_key
    )
    config.voice = os.getenv("NEXTCALL_VOICE", "").strip() or config.voice
    config.presence_command = (
        os.getenv("NEXTCALL_PRESENCE_CMD", "").strip() or config.presence_command
    )
    flag = _env_flag("NEXTCALL_START_ALERT_RESPECTS_PRESENCE")
    if flag is not None:
        config.start_alert_respects_presence = flag

    if config.default_interval_seconds <= 0:
        raise ValueError("default_interval_seconds must be positive")

    return config
