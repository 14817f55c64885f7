"""Configuration module."""

from courier.config.loader import find_config_path, load_config
from courier.config.models import (
    CourierConfig,
    DeliveryConfig,
    SchedulingConfig,
    ServerConfig,
    StorageConfig,
)
from courier.config.paths import (
    get_config_path,
    get_courier_home,
    get_logs_path,
    get_state_path,
)

__all__ = [
    "CourierConfig",
    "DeliveryConfig",
    "SchedulingConfig",
    "ServerConfig",
    "StorageConfig",
    "find_config_path",
    "get_config_path",
    "get_courier_home",
    "get_logs_path",
    "get_state_path",
    "load_config",
]
