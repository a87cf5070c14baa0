"""Health-check utilities for the Postgres shared substrate."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine, text


@dataclass(frozen=True)
class PostgresHealthStatus:
    """Readiness payload returned by ``check_health``."""

    ready: bool
    detail: str
    server_version: str | None = None


def check_health(engine: Engine, *, timeout_seconds: float = 1.0) -> PostgresHealthStatus:
    """Run a bounded readiness query and report the server version."""
    timeout_ms = max(1, int(timeout_seconds * 1000))
    try:
        with engine.connect() as conn:
            conn.execute(
                text("SELECT set_config('statement_timeout', :timeout_value, true)"),
                {"timeout_value": f"{timeout_ms}ms"},
            )
            version = conn.execute(
                text("SELECT current_setting('server_version')")
            ).scalar_one()
    except Exception as exc:  # noqa: BLE001
        return PostgresHealthStatus(
            ready=False,
            detail=f"postgres health check failed: {type(exc).__name__}",
        )
    return PostgresHealthStatus(ready=True, detail="ok", server_version=str(version))


def ping(engine: Engine, *, timeout_seconds: float = 1.0) -> bool:
    """Return True when the database can answer a trivial query quickly."""
    return check_health(engine, timeout_seconds=timeout_seconds).ready
