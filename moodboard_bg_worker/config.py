from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerSettings(BaseSettings):
    celery_broker_url: str = Field(
        "redis://localhost:6379/0",
        env="CELERY_BROKER_URL",
    )
    celery_timezone: str = Field("UTC", env="CELERY_TIMEZONE")

    # Daily repair run, worker-local time.
    repairs_schedule_hour: int = Field(3, env="REPAIRS_SCHEDULE_HOUR")
    repairs_schedule_minute: int = Field(15, env="REPAIRS_SCHEDULE_MINUTE")
    worker_embed_beat: bool = Field(True, env="WORKER_EMBED_BEAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = WorkerSettings()


__all__ = ["settings", "WorkerSettings"]
