"""Bundled configuration files and loaders.

Defaults for the analytics options and the merchant standardization rules
are stored as JSON next to this module so they can be changed without
code changes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

CONFIG_DIR = Path(__file__).parent


def load_config(config_name: str) -> Dict[str, Any]:
    """Load a bundled configuration file by name.

    Args:
        config_name: Name of the config file (without the .json extension)

    Returns:
        Dictionary containing the configuration

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        json.JSONDecodeError: If the configuration file is invalid JSON

    Example:
        >>> load_config('analytics')['flow_graph']['top_categories_count']
        8
    """
    config_path = CONFIG_DIR / f"{config_name}.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def get_config_value(config_name: str, *keys: str, default: Any = None) -> Any:
    """Get a nested configuration value by key path.

    Example:
        >>> get_config_value('analytics', 'alerts', 'budget_usage_threshold_pct')
        80.0
    """
    try:
        value = load_config(config_name)
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError, FileNotFoundError):
        return default


__all__ = ['CONFIG_DIR', 'load_config', 'get_config_value']
