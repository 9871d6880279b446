"""
Configuration management for Muddle.

Uses XDG base directories:
- Config: ~/.config/muddle/config.toml
- Data: ~/.local/share/muddle/ (notes.json lives here)
"""

from pathlib import Path
from typing import Any
import os

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / ".local" / "share"

DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_POLL_INTERVAL = 6.0


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/muddle)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "muddle"


def get_muddle_home() -> Path:
    """Get the muddle data directory (XDG_DATA_HOME/muddle or MUDDLE_HOME)."""
    if env_home := os.environ.get("MUDDLE_HOME"):
        return Path(env_home)
    base = Path(os.environ.get("XDG_DATA_HOME", DEFAULT_DATA_HOME))
    return base / "muddle"


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_notes_path() -> Path:
    """Get the path to notes.json."""
    return get_muddle_home() / "notes.json"


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Returns default config if file doesn't exist. Tables present in the
    file are layered over the defaults, so a partial file is fine.
    """
    config = get_default_config()
    config_path = get_config_path()

    if not config_path.exists():
        return config

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        user_config = tomli.load(f)

    for section, values in user_config.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "llm": {
            "model": DEFAULT_MODEL,
            "base_url": DEFAULT_BASE_URL,
            "max_tokens": 512,
            "timeout": 30.0,
        },
        "watcher": {
            "poll_interval": DEFAULT_POLL_INTERVAL,
        },
    }
