"""Build the SQLAlchemy engine that capturing transactions run on."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Engine, create_engine

from resources.substrates.postgres.config import PostgresSettings


def connect_args_for(config: PostgresSettings) -> dict[str, Any]:
    """Return libpq connection options passed through psycopg."""
    args: dict[str, Any] = {
        "connect_timeout": int(config.connect_timeout_seconds),
        "sslmode": config.sslmode,
    }
    if config.application_name:
        args["application_name"] = config.application_name
    return args


def create_postgres_engine(config: PostgresSettings) -> Engine:
    """Construct a pooled psycopg engine.

    With ``hide_parameters`` on, bound values (row contents, redacted or not)
    stay out of SQLAlchemy log lines and exception messages.
    """
    return create_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_pre_ping=config.pool_pre_ping,
        hide_parameters=config.hide_parameters,
        connect_args=connect_args_for(config),
    )
