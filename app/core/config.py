from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str | None = Field(None, env="DATABASE_URL")

    stripe_secret_key: str | None = Field(None, env="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str | None = Field(None, env="STRIPE_WEBHOOK_SECRET")
    stripe_webhook_tolerance_seconds: int = Field(
        300,
        env="STRIPE_WEBHOOK_TOLERANCE_SECONDS",
    )
    stripe_price_id_basic: str | None = Field(None, env="STRIPE_PRICE_ID_BASIC")
    stripe_price_id_pro: str | None = Field(None, env="STRIPE_PRICE_ID_PRO")
    stripe_price_id_yearly: str | None = Field(None, env="STRIPE_PRICE_ID_YEARLY")
    checkout_success_url: str = Field(
        "https://www.moodboardgenerator.com/payment-success?session_id={CHECKOUT_SESSION_ID}",
        env="CHECKOUT_SUCCESS_URL",
    )
    checkout_cancel_url: str = Field(
        "https://www.moodboardgenerator.com/pricing",
        env="CHECKOUT_CANCEL_URL",
    )

    celery_broker_url: str = Field(
        "redis://localhost:6379/0",
        env="CELERY_BROKER_URL",
    )
    redis_socket_timeout_seconds: float = Field(
        2.0,
        env="REDIS_SOCKET_TIMEOUT_SECONDS",
    )
    webhook_failures_max: int = Field(100, env="WEBHOOK_FAILURES_MAX")

    ai_proxy_url: str = Field(
        "http://localhost:8787/v1/chat",
        env="AI_PROXY_URL",
    )
    ai_proxy_image_url: str = Field(
        "http://localhost:8787/v1/images",
        env="AI_PROXY_IMAGE_URL",
    )
    ai_proxy_timeout_seconds: int = Field(
        60,
        env="AI_PROXY_TIMEOUT_SECONDS",
    )
    ai_proxy_model: str = Field(
        "gpt-4o-mini",
        env="AI_PROXY_MODEL",
    )
    ai_proxy_image_model: str = Field(
        "dall-e-3",
        env="AI_PROXY_IMAGE_MODEL",
    )
    uploads_dir: str = Field("uploads", env="UPLOADS_DIR")

    admin_api_key: str | None = Field(None, env="ADMIN_API_KEY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


__all__ = ["settings", "Settings"]
