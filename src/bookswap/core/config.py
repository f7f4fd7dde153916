"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class DBConfig(BaseSettings):
    """Database configuration. Without a URL the in-memory stores are used."""

    model_config = {"env_prefix": "BOOKSWAP_DB_"}

    database_url: str | None = None
    echo: bool = False
    pool_size: int = 5
    create_schema: bool = False


class NotificationConfig(BaseSettings):
    """Notification engine configuration."""

    model_config = {"env_prefix": "BOOKSWAP_NOTIFICATION_"}

    templates_path: str | None = None
    default_page_size: int = 20
    max_page_size: int = 100
    persist_max_retries: int = 2
    persist_retry_delay_seconds: float = 0.1
    persist_recovery_max_delay_seconds: float = 30.0


class RealtimeConfig(BaseSettings):
    """Live channel configuration."""

    model_config = {"env_prefix": "BOOKSWAP_REALTIME_"}

    send_timeout_seconds: float = 2.0


class PushConfig(BaseSettings):
    """Deferred (out-of-band) push configuration."""

    model_config = {"env_prefix": "BOOKSWAP_PUSH_"}

    webhook_url: str | None = None
    timeout_seconds: float = 5.0


class SchedulerConfig(BaseSettings):
    """Due-date scheduler collaborator configuration."""

    model_config = {"env_prefix": "BOOKSWAP_SCHEDULER_"}

    token: str | None = None


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "BOOKSWAP_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )

    db: DBConfig = Field(default_factory=DBConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
