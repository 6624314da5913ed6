"""Settings management - saves and loads user IPC preferences."""
import json
import logging
import os
from pathlib import Path

from .constants import DEFAULT_CONNECT_TIMEOUT_MS

logger = logging.getLogger(__name__)

# Default settings
DEFAULT_SETTINGS = {
    "connect_timeout_ms": DEFAULT_CONNECT_TIMEOUT_MS,
    "log_level": "INFO",
}


def get_settings_dir() -> Path:
    """Settings directory, overridable with TURNLINK_HOME."""
    override = os.environ.get("TURNLINK_HOME")
    if override:
        return Path(override)
    return Path.home() / ".turnlink"


def get_settings_file() -> Path:
    return get_settings_dir() / "settings.json"


def ensure_settings_dir():
    """Create settings directory if it doesn't exist."""
    get_settings_dir().mkdir(parents=True, exist_ok=True)


def load_settings() -> dict:
    """Load settings from file, or return defaults if file doesn't exist."""
    settings_file = get_settings_file()
    try:
        if settings_file.exists():
            with open(settings_file, 'r', encoding='utf-8') as f:
                saved = json.load(f)
                # Merge with defaults (in case new settings were added)
                settings = DEFAULT_SETTINGS.copy()
                settings.update(saved)
                logger.debug(f"Settings loaded from {settings_file}: {settings}")
                return settings
        else:
            logger.debug(f"Settings file not found at {settings_file}, using defaults")
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Failed to load settings: {e}")
    return DEFAULT_SETTINGS.copy()


def save_settings(settings: dict):
    """Save settings to file."""
    settings_file = get_settings_file()
    try:
        ensure_settings_dir()
        with open(settings_file, 'w', encoding='utf-8') as f:
            json.dump(settings, f, indent=2)
        logger.info(f"Settings saved to {settings_file}")
    except OSError as e:
        logger.warning(f"Failed to save settings: {e}")


def get_connect_timeout_ms() -> int:
    """Get saved connect timeout in milliseconds."""
    settings = load_settings()
    try:
        return int(settings.get("connect_timeout_ms", DEFAULT_CONNECT_TIMEOUT_MS))
    except (TypeError, ValueError):
        return DEFAULT_CONNECT_TIMEOUT_MS


def set_connect_timeout_ms(timeout_ms: int):
    """Save connect timeout setting."""
    settings = load_settings()
    settings["connect_timeout_ms"] = timeout_ms
    save_settings(settings)


def get_log_level() -> int:
    """Get saved log level as a logging constant."""
    settings = load_settings()
    name = str(settings.get("log_level", "INFO")).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO
