"""Common runtime devkit for service infrastructure concerns."""

from devkit.config import ServiceSettings, load_settings
from devkit.db import (
    AsyncDatabaseManager,
    Base,
    create_all_tables,
    create_async_engine,
    create_session_factory,
    is_transient_db_error,
    normalize_postgres_dsn,
)
from devkit.kafka import AsyncKafkaProducerManager, create_producer, run_with_retry
from devkit.observability import configure_logging, configure_otel, configure_probe_access_log_filter
from devkit.timezone import configure_service_timezone, now_iso, now_local

__all__ = [
    "AsyncDatabaseManager",
    "AsyncKafkaProducerManager",
    "Base",
    "ServiceSettings",
    "configure_logging",
    "configure_otel",
    "configure_probe_access_log_filter",
    "configure_service_timezone",
    "create_all_tables",
    "create_async_engine",
    "create_producer",
    "create_session_factory",
    "is_transient_db_error",
    "load_settings",
    "normalize_postgres_dsn",
    "now_iso",
    "now_local",
    "run_with_retry",
]
