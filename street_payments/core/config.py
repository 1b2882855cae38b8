"""Configuration management for the payments service."""
from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="StreetPerformersMap Payments")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://streetmap:streetmap@db:5432/streetmap")

    stripe_secret_key: str | None = Field(default=None)
    stripe_webhook_secret: str | None = Field(default=None)
    stripe_webhook_tolerance_seconds: int = Field(default=300)
    stripe_statement_descriptor_suffix: str = Field(default="Street Music")

    currency: str = Field(default="EUR")
    tip_min_amount: Decimal = Field(default=Decimal("0.50"))
    tip_max_amount: Decimal = Field(default=Decimal("100.00"))
    tip_suggested_amounts: list[int] = Field(default_factory=lambda: [1, 3, 5, 10])
    processing_fee_rate: Decimal = Field(default=Decimal("0.029"))
    processing_fee_fixed: Decimal = Field(default=Decimal("0.30"))
    default_country: str = Field(default="ES")

    identity_jwt_key: str = Field(default="dev-identity-signing-key")
    identity_jwt_algorithm: str = Field(default="HS256")
    identity_jwt_audience: str | None = Field(default=None)

    kafka_bootstrap_servers: str = Field(default="kafka:9092")
    notification_topic: str = Field(default="tip-notifications")

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    reconciliation_interval_seconds: int = Field(default=600)
    reconciliation_pending_age_minutes: int = Field(default=30)
    reconciliation_batch_size: int = Field(default=100)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_webhook_secret)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
