"""YAML settings for the widget and dev proxy, with dot-notation access."""

from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

import yaml

_SENTINEL = object()

_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
DEFAULT_SETTINGS_PATH = _PROJECT_ROOT / "config" / "settings.yaml"

DEFAULT_SETTINGS: dict = {
    "logging": {"level": "INFO"},
    "widget": {
        "symbol": "510050",
        "window_size": 100,
        "api_origin": None,
        "request_timeout": None,
    },
    "chart": {
        "main_height": 600,
        "brush_height": 50,
        "default_container_width": 1280,
    },
    "dev_proxy": {
        "enabled": False,
        "context": "/api",
        "target": "http://127.0.0.1:9222",
        "change_origin": True,
        "path_rewrite": {"^/api": ""},
    },
}


def load_config(path: str) -> dict:
    """Load YAML config file. Raises FileNotFoundError if missing."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict, override: dict) -> dict:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Optional[str] = None) -> dict:
    """Built-in defaults overlaid with the settings file, if one exists.

    An explicit ``path`` must exist; the default location is optional.
    """
    if path is not None:
        return _merge(DEFAULT_SETTINGS, load_config(path))
    if DEFAULT_SETTINGS_PATH.exists():
        return _merge(DEFAULT_SETTINGS, load_config(str(DEFAULT_SETTINGS_PATH)))
    return deepcopy(DEFAULT_SETTINGS)


def get_setting(config: dict, key: str, default: Any = _SENTINEL) -> Any:
    """Access nested config with dot notation: 'widget.window_size'.

    Args:
        config: Loaded config dict.
        key: Dot-separated key path.
        default: Default value if key missing. Raises KeyError if not provided.
    """
    current = config
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif default is not _SENTINEL:
            return default
        else:
            raise KeyError(f"Config key not found: {key}")
    return current
