from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from devkit.timezone import configure_service_timezone


class ServiceSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    SERVICE_NAME: str = "service"
    SERVICE_TIMEZONE: str = "UTC"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str | None = None
    REPORT_INDEX_DSN: str | None = None
    KAFKA_BOOTSTRAP_SERVERS: str | None = None
    REPORT_EVENTS_TOPIC: str = "safety.reports.v1"
    JWT_SECRET_KEY: str = "dev-only-secret"
    DIRECTIONS_BASE_URL: str = "https://maps.googleapis.com/maps/api"
    DIRECTIONS_API_KEY: str | None = None
    DIRECTIONS_MODE: str = "driving"
    DIRECTIONS_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)
    SCORING_MAX_CONCURRENCY: int = Field(default=8, ge=1)
    SCORING_TIMEOUT_SECONDS: float | None = Field(default=10.0, gt=0)
    ROUTE_MAX_PARALLEL: int = Field(default=4, ge=1)


def load_settings(service_name: str) -> ServiceSettings:
    settings = ServiceSettings(SERVICE_NAME=service_name)
    configure_service_timezone(settings.SERVICE_TIMEZONE)
    return settings
