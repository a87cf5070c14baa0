"""Shared helpers for integration tests."""

from __future__ import annotations

import os
from uuid import uuid4


def real_postgres_tests_enabled() -> bool:
    """Return True when real-Postgres integration tests are explicitly enabled."""
    raw = os.getenv("ROWTRAIL_RUN_INTEGRATION_REAL", "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def unique_schema_name(prefix: str = "rowtrail_it") -> str:
    """Return a schema name that will not collide across test runs."""
    return f"{prefix}_{uuid4().hex[:10]}"
