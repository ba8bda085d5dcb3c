"""Persisted preferences for the tmpupload CLI.

Values are resolved with the precedence: command-line flag, then the
saved preference, then the built-in default.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: dict[str, Any] = {"token": "", "model": 0, "mr_id": "0"}


def get_config_dir() -> Path:
    """Get the configuration directory for tmpupload.

    Returns:
        Path to ~/.tmpupload.
    """
    return Path.home() / ".tmpupload"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load preferences, falling back to defaults for a missing or corrupt file."""
    config = dict(DEFAULT_PREFERENCES)
    config_file = get_config_file()
    if not config_file.exists():
        return config
    try:
        saved = json.loads(config_file.read_text())
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring unreadable config {config_file}: {e}")
        return config
    if isinstance(saved, dict):
        config.update({k: v for k, v in saved.items() if v not in (None, "")})
    return config


def save_config(config: dict[str, Any]) -> None:
    """Save preferences to the config file, readable by the owner only."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))
    config_file.chmod(0o600)


def resolve(flag_value: Any, key: str, config: dict[str, Any] | None = None) -> Any:
    """Pick the flag value if given, else the saved preference, else the default."""
    if flag_value is not None and flag_value != "":
        return flag_value
    config = config if config is not None else load_config()
    return config.get(key, DEFAULT_PREFERENCES.get(key))
