"""Shared fixtures for real-Postgres integration test modules."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import Engine, text

from packages.rowtrail_shared.config import load_settings
from packages.rowtrail.ident import quote
from resources.substrates.postgres import create_postgres_engine, resolve_postgres_settings
from tests.integration.helpers import real_postgres_tests_enabled, unique_schema_name

_ORDERS_DDL = """
CREATE TABLE {schema}.orders (
    id          UUID PRIMARY KEY,
    customer_id UUID           NOT NULL,
    amount      NUMERIC(10, 2) NOT NULL,
    status      TEXT           NOT NULL,
    updated_at  TIMESTAMPTZ    NOT NULL DEFAULT now()
)
"""


@pytest.fixture(scope="session")
def postgres_engine() -> Iterator[Engine]:
    """Return SQLAlchemy engine for real-Postgres tests or skip if unavailable."""
    if not real_postgres_tests_enabled():
        pytest.skip("real-postgres integration tests disabled")

    engine = create_postgres_engine(resolve_postgres_settings(load_settings()))
    try:
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except Exception as exc:  # noqa: BLE001
        engine.dispose()
        pytest.skip(f"postgres unavailable for integration tests: {exc}")
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def audit_schema(postgres_engine: Engine) -> Iterator[str]:
    """Create an isolated schema holding an ``orders`` table; drop it afterwards."""
    schema = unique_schema_name()
    with postgres_engine.begin() as conn:
        conn.execute(text(f"CREATE SCHEMA {quote(schema)}"))
        conn.execute(text(_ORDERS_DDL.format(schema=quote(schema))))
    try:
        yield schema
    finally:
        with postgres_engine.begin() as conn:
            conn.execute(text(f"DROP SCHEMA {quote(schema)} CASCADE"))
