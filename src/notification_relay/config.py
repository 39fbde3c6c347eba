"""Relay settings loaded from the environment (prefix ``RELAY_``)."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ERROR_ROUTES = "ci.failure,deploy.failure,dlq,polling.failure"


class RelaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Broker connection and topology names.
    rabbitmq_url: str
    exchange: str = "notifications"
    delay_exchange: str = "notifications.delay"
    dlq_exchange: str = "notifications.dlq"
    github_exchange: str = "github"
    queue: str = "notifications"
    dlq_queue: str = "notifications.dlq"
    prefetch_count: int = Field(default=10, ge=1)
    # Topology is normally provisioned out of band.
    declare_topology: bool = False

    # Discord destinations. Webhooks and routes are JSON objects in the environment.
    discord_default_webhook: str
    discord_webhooks: dict[str, str] = Field(default_factory=dict)
    discord_routes: dict[str, str] = Field(default_factory=dict)
    discord_error_routes: str = DEFAULT_ERROR_ROUTES

    # Queue-level retry schedule.
    max_retries: int = Field(default=20, ge=0)
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=16 * 60 * 60 * 1000, ge=0)

    # In-process HTTP retry loop.
    http_timeout_s: float = Field(default=10.0, gt=0)
    http_max_attempts: int = Field(default=3, ge=1)
    rate_limit_default_ms: int = Field(default=5000, ge=0)

    # Dead-letter alerting.
    service_name: str = "notification-service"
    dlq_original_max_chars: int = Field(default=500, ge=0)
    suppress_nested_alerts: bool = True

    shutdown_grace_s: float = Field(default=15.0, ge=0)

    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("discord_webhooks", mode="after")
    @classmethod
    def _normalize_webhooks(cls, value: dict[str, str]) -> dict[str, str]:
        return {k.strip().lower(): v.strip() for k, v in value.items() if v and v.strip()}

    @field_validator("discord_routes", mode="after")
    @classmethod
    def _normalize_routes(cls, value: dict[str, str]) -> dict[str, str]:
        return {
            k.strip().lower(): v.strip().lower()
            for k, v in value.items()
            if v and v.strip()
        }

    @property
    def error_routes(self) -> list[str]:
        return [r.strip() for r in self.discord_error_routes.split(",") if r.strip()]


@lru_cache(maxsize=1)
def get_settings() -> RelaySettings:
    return RelaySettings()  # type: ignore[call-arg]
