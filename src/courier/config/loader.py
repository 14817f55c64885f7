"""Load ``CourierConfig`` from TOML, filling secrets from the environment."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from courier.config.models import CourierConfig
from courier.config.paths import get_config_path

logger = logging.getLogger(__name__)

SYSTEM_CONFIG_PATH = Path("/etc/courier/config.toml")

# (section, key, environment variable)
ENV_SECRETS = [("delivery", "token", "COURIER_WEBHOOK_TOKEN")]


def _candidate_paths() -> list[Path]:
    # Working directory first, then COURIER_HOME, then the system file.
    return [Path("config.toml"), get_config_path(), SYSTEM_CONFIG_PATH]


def _apply_env_secrets(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill unset secrets from the environment. Values in the file win."""
    for section_name, key, env_var in ENV_SECRETS:
        value = os.environ.get(env_var)
        if not value:
            continue
        section = raw.setdefault(section_name, {})
        if section.get(key) is None:
            section[key] = SecretStr(value)
    return raw


def find_config_path(path: Path | None = None) -> Path | None:
    """Return the config file to load, or None when there is none.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
    """
    if path is not None:
        explicit = Path(path).expanduser()
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return explicit

    return next(
        (p.expanduser() for p in _candidate_paths() if p.expanduser().exists()),
        None,
    )


def load_config(path: Path | None = None) -> CourierConfig:
    """Load and validate the configuration.

    Without an explicit path the default locations are searched; if none
    exists the built-in defaults are used.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
        pydantic.ValidationError: If a value is rejected.
    """
    config_path = find_config_path(path)
    if config_path is None:
        logger.info("config_defaults_used")
        raw: dict[str, Any] = {}
    else:
        logger.debug("config_loading", extra={"config.path": str(config_path)})
        raw = tomllib.loads(config_path.read_text())

    return CourierConfig.model_validate(_apply_env_secrets(raw))

