"""Configuration models using Pydantic."""

from datetime import timedelta
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, SecretStr, field_validator

from courier.config.paths import get_state_path


class SchedulingConfig(BaseModel):
    """Configuration for cron evaluation and timers.

    Cron expressions are evaluated in ``timezone``. ``min_rearm_seconds``
    bounds how soon a queue may tick again after a tick.
    """

    timezone: str = "UTC"
    min_rearm_seconds: float = Field(default=1.0, gt=0)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def min_rearm_delay(self) -> timedelta:
        return timedelta(seconds=self.min_rearm_seconds)


class StorageConfig(BaseModel):
    """Where the scheduler state blobs are written."""

    path: Path = Field(default_factory=get_state_path)


class DeliveryConfig(BaseModel):
    """Configuration for post delivery.

    Without a webhook URL posts are only logged.
    """

    webhook_url: str | None = None
    token: SecretStr | None = None
    timeout: float = Field(default=10.0, gt=0)


class ServerConfig(BaseModel):
    """Configuration for HTTP server."""

    host: str = "127.0.0.1"
    port: int = 8080


class CourierConfig(BaseModel):
    """Root configuration model."""

    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    # User IDs allowed to administer queues
    admin_users: list[str] = Field(default_factory=list)

    def is_admin(self, user_id: str | None) -> bool:
        return bool(user_id) and user_id in self.admin_users
