"""
Local client configuration.

Scene-wide settings live in the scene state; this file only holds
preferences for this client, stored as JSON.
"""

import json
from pathlib import Path
from typing import TypedDict


class Config(TypedDict, total=False):
    """Client configuration."""
    log_level: str  # DEBUG, INFO, WARNING, ...
    add_hidden: bool  # Include hidden entities in "add all"


DEFAULT_CONFIG: Config = {
    "log_level": "INFO",
    "add_hidden": True,
}


def get_config_path(config_dir: Path | str = ".") -> Path:
    """Get path to config file."""
    return Path(config_dir) / ".initiative_sync.json"


def load_config(config_dir: Path | str = ".") -> Config:
    """Load config from file, or return defaults if not found."""
    path = get_config_path(config_dir)

    if not path.exists():
        return DEFAULT_CONFIG.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        # Defaults fill missing keys; keys this client does not know are dropped
        config = DEFAULT_CONFIG.copy()
        if isinstance(saved, dict):
            config.update({k: v for k, v in saved.items() if k in DEFAULT_CONFIG})
        return config
    except (json.JSONDecodeError, IOError):
        return DEFAULT_CONFIG.copy()


def save_config(config: Config, config_dir: Path | str = ".") -> bool:
    """Save config to file. Returns True on success."""
    path = get_config_path(config_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except IOError:
        return False
