"""Shared Postgres substrate primitives for rowtrail."""

from resources.substrates.postgres.config import (
    SUBSTRATE_COMPONENT_ID,
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import PostgresHealthStatus, check_health, ping
from resources.substrates.postgres.session import transactional_connection

__all__ = [
    "SUBSTRATE_COMPONENT_ID",
    "PostgresHealthStatus",
    "PostgresSettings",
    "check_health",
    "create_postgres_engine",
    "normalize_postgres_error",
    "ping",
    "resolve_postgres_settings",
    "transactional_connection",
]
