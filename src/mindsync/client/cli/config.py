"""Configuration utilities for the mindsync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from mindsync.core.config import SyncSettings


def get_config_dir() -> Path:
    """Get the configuration directory for mindsync.

    Returns:
        Path to ~/.mindsync or equivalent.
    """
    return Path.home() / ".mindsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_db_path() -> Path:
    """Get the path to the local SQLite store."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_settings() -> SyncSettings:
    """Build sync settings from the config file.

    Raises:
        ValueError: If a stored value is invalid.
    """
    return SyncSettings.from_dict(load_config())


def parse_setting(key: str, value: str) -> Any:
    """Convert a command-line value to the type of a SyncSettings field.

    Raises:
        KeyError: If key is not a setting.
        ValueError: If value cannot be converted.
    """
    defaults = SyncSettings().to_dict()
    if key not in defaults:
        raise KeyError(key)

    current = defaults[key]
    if isinstance(current, bool):
        param_type = click.BOOL
    elif isinstance(current, int):
        param_type = click.INT
    elif isinstance(current, float):
        param_type = click.FLOAT
    else:
        return value

    try:
        return param_type.convert(value, None, None)
    except click.BadParameter as e:
        raise ValueError(f"Invalid value for {key}: {e.format_message()}") from e
