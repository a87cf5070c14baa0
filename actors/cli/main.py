"""Rowtrail operator CLI implemented with Typer."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable
from uuid import UUID, uuid4

import typer
from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from packages.rowtrail import (
    CaptureMeta,
    HistoryRecorder,
    RowtrailError,
    migrate,
    parse_dml,
    resolve_capture_settings,
    resolve_schema_settings,
)
from packages.rowtrail.ident import history_parts, quote_qualified
from packages.rowtrail_shared.config import RowtrailSettings, load_settings
from packages.rowtrail_shared.errors import ErrorDetail, exception_to_error
from packages.rowtrail_shared.logging import configure_logging
from resources.substrates.postgres import (
    PostgresHealthStatus,
    check_health,
    create_postgres_engine,
    normalize_postgres_error,
    resolve_postgres_settings,
)

SUCCESS_EXIT_CODE = 0
ROWTRAIL_ERROR_EXIT_CODE = 3
DATABASE_ERROR_EXIT_CODE = 4

_DEMO_TABLE = "orders"
_DEMO_ORDERS_DDL = """
CREATE TABLE IF NOT EXISTS orders (
    id          UUID PRIMARY KEY,
    customer_id UUID           NOT NULL,
    amount      NUMERIC(10, 2) NOT NULL,
    status      TEXT           NOT NULL,
    updated_at  TIMESTAMPTZ    NOT NULL DEFAULT now()
)
"""


@dataclass(frozen=True)
class CliConfig:
    """Global CLI runtime options shared by every command."""

    config_path: Path | None
    as_json: bool


def _serialize(value: Any) -> Any:
    """Convert result objects to JSON-serializable structures."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _serialize(value.value)
    if isinstance(value, (datetime, date, Decimal, Path, UUID)):
        return str(value)
    if dataclasses.is_dataclass(value):
        return _serialize(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(key): _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize(item) for item in value]
    if hasattr(value, "model_dump"):
        return _serialize(value.model_dump(mode="python"))
    return str(value)


def _emit_output(result: Any, as_json: bool) -> None:
    """Render command output in requested format."""

    data = _serialize(result)
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
        return
    if data is None:
        typer.echo("ok")
        return
    if isinstance(data, (dict, list)):
        typer.echo(json.dumps(data, indent=2, sort_keys=True))
        return
    typer.echo(str(data))


def _emit_error(detail: ErrorDetail, as_json: bool) -> None:
    """Render one structured error to stderr."""

    if as_json:
        typer.echo(json.dumps({"error": detail.as_payload()}, sort_keys=True), err=True)
        return
    typer.echo(f"error: {detail.message} [{detail.code}]", err=True)


def _load_runtime_settings(cfg: CliConfig) -> RowtrailSettings:
    """Load settings and configure process logging from them."""
    settings = load_settings(config_path=cfg.config_path)
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
        sql_echo=settings.logging.sql_echo,
    )
    return settings


def _build_engine(settings: RowtrailSettings) -> Engine:
    """Return one SQLAlchemy engine for the configured Postgres substrate."""
    return create_postgres_engine(resolve_postgres_settings(settings))


def _run_command(
    cfg: CliConfig,
    invoke: Callable[[], Any],
    *,
    exit_code: Callable[[Any], int] | None = None,
) -> None:
    """Execute one command body and map outputs/errors to process semantics."""
    try:
        result = invoke()
    except RowtrailError as exc:
        _emit_error(exc.detail, cfg.as_json)
        raise typer.Exit(code=ROWTRAIL_ERROR_EXIT_CODE) from exc
    except ValueError as exc:
        _emit_error(exception_to_error(exc), cfg.as_json)
        raise typer.Exit(code=ROWTRAIL_ERROR_EXIT_CODE) from exc
    except SQLAlchemyError as exc:
        _emit_error(normalize_postgres_error(exc), cfg.as_json)
        raise typer.Exit(code=DATABASE_ERROR_EXIT_CODE) from exc

    _emit_output(result, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE if exit_code is None else exit_code(result))


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""

    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


def _classify(sql: str) -> dict[str, Any]:
    """Describe how ``sql`` would be treated by a capturing transaction."""
    statement = parse_dml(sql)
    if statement is None:
        return {"recognized": False}
    return {
        "recognized": True,
        "operation": statement.operation,
        "table": statement.table,
        "has_returning": statement.has_returning,
    }


def _run_demo(engine: Engine, settings: RowtrailSettings, setup: bool) -> dict[str, Any]:
    """Insert, update and delete one order under capture; count history rows."""
    capture_settings = resolve_capture_settings(settings)
    if setup:
        with engine.begin() as connection:
            connection.execute(text(_DEMO_ORDERS_DDL))
        migrate(engine, resolve_schema_settings(settings), _DEMO_TABLE)

    recorder = HistoryRecorder(capture_settings)
    meta = CaptureMeta(operator="demo-user", trace_id="trace-demo-001", reason="demo run")
    order_id = uuid4()
    with recorder.wrap(engine).begin(meta=meta) as tx:
        tx.execute(
            "INSERT INTO orders (id, customer_id, amount, status) "
            "VALUES (:id, :customer_id, :amount, :status) RETURNING *",
            {
                "id": order_id,
                "customer_id": uuid4(),
                "amount": Decimal("1200.00"),
                "status": "new",
            },
        )
        tx.execute(
            "UPDATE orders SET status = :status, amount = :amount, updated_at = now() "
            "WHERE id = :id RETURNING *",
            {"status": "paid", "amount": Decimal("1500.00"), "id": order_id},
        )
        tx.execute("DELETE FROM orders WHERE id = :id RETURNING *", {"id": order_id})
        captured = tx.pending

    history = quote_qualified(history_parts(_DEMO_TABLE, capture_settings.history_suffix))
    with engine.connect() as connection:
        history_rows = connection.execute(
            text(f"SELECT COUNT(*) FROM {history}")
        ).scalar_one()
    return {
        "order_id": order_id,
        "captured": captured,
        "history_table": history,
        "history_rows": history_rows,
    }


app = typer.Typer(no_args_is_help=True, help="Rowtrail history capture tooling")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        "--config",
        envvar="ROWTRAIL_CONFIG_PATH",
        help="Path to rowtrail.yaml",
    ),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Store global options for all commands."""

    ctx.obj = CliConfig(config_path=config, as_json=as_json)


@app.command("classify")
def classify_command(
    ctx: typer.Context,
    sql: str = typer.Argument(..., help="SQL statement to classify"),
) -> None:
    """Show the DML descriptor captured for one statement."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda: _classify(sql))


@app.command("migrate")
def migrate_command(
    ctx: typer.Context,
    tables: list[str] = typer.Argument(..., help="Base tables to create history tables for"),
) -> None:
    """Create history tables for existing base tables."""
    cfg = _require_config(ctx)

    def invoke() -> list[str]:
        settings = _load_runtime_settings(cfg)
        engine = _build_engine(settings)
        try:
            return migrate(engine, resolve_schema_settings(settings), *tables)
        finally:
            engine.dispose()

    _run_command(cfg, invoke)


@app.command("demo")
def demo_command(
    ctx: typer.Context,
    setup: bool = typer.Option(
        False, "--setup", help="Create the orders table and its history table first"
    ),
) -> None:
    """Run a captured insert/update/delete against the orders table."""
    cfg = _require_config(ctx)

    def invoke() -> dict[str, Any]:
        settings = _load_runtime_settings(cfg)
        engine = _build_engine(settings)
        try:
            return _run_demo(engine, settings, setup)
        finally:
            engine.dispose()

    _run_command(cfg, invoke)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Check the configured Postgres database."""
    cfg = _require_config(ctx)

    def invoke() -> PostgresHealthStatus:
        settings = _load_runtime_settings(cfg)
        postgres = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres)
        try:
            return check_health(engine, timeout_seconds=postgres.health_timeout_seconds)
        finally:
            engine.dispose()

    _run_command(
        cfg,
        invoke,
        exit_code=lambda status: (
            SUCCESS_EXIT_CODE if status.ready else DATABASE_ERROR_EXIT_CODE
        ),
    )


if __name__ == "__main__":
    app()
