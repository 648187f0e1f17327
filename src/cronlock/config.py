from __future__ import annotations

from uuid import uuid4

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CRONLOCK_", env_file=".env", extra="ignore")

    # Default lock prefix for schedules that do not set one
    app_name: str = "cronlock"

    # Instance ID stored as the lock value so owners can be identified
    instance_id: str = Field(default_factory=lambda: str(uuid4())[:8])

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")

    # Scheduling
    default_lock_ttl: float = 10.0
    timezone: str = "UTC"
    schedules_file: str | None = None

    # Observability
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    metrics_port: int | None = None
    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()
