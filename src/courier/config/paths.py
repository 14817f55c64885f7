"""Centralized path management for Courier.

All state (config, persisted scheduler blobs, logs) lives under a single base
directory, overridable with the COURIER_HOME environment variable.

Default location: ~/.courier
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "COURIER_HOME"


@lru_cache(maxsize=1)
def get_courier_home() -> Path:
    """Get the base directory for all Courier data.

    Resolution order:
    1. COURIER_HOME environment variable (if set)
    2. ~/.courier
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".courier"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_courier_home() / "config.toml"


def get_state_path() -> Path:
    """Get the directory holding persisted queues, deferrals and mailbox."""
    return get_courier_home() / "state"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_courier_home() / "logs"


def get_all_paths() -> dict[str, Path]:
    """Get all standard paths for display."""
    return {
        "home": get_courier_home(),
        "config": get_config_path(),
        "state": get_state_path(),
        "logs": get_logs_path(),
    }
