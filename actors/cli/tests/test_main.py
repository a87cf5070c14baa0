"""CLI tests for rowtrail Typer commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

import pytest
from sqlalchemy.exc import OperationalError
from typer.testing import CliRunner

import actors.cli.main as cli_module
from packages.rowtrail import Operation, SchemaSettings, TableNotFoundError
from resources.substrates.postgres import PostgresHealthStatus


class _DisposableEngine:
    """Engine double that records disposal."""

    def __init__(self) -> None:
        self.disposed = False

    def dispose(self) -> None:
        self.disposed = True


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch) -> _DisposableEngine:
    """Replace engine construction and logging setup with inert doubles."""
    fake = _DisposableEngine()
    monkeypatch.setattr(cli_module, "create_postgres_engine", lambda _config: fake)
    monkeypatch.setattr(cli_module, "configure_logging", lambda **_: None)
    return fake


def _base_args(tmp_path: Path) -> list[str]:
    """Return global flags pointing at an isolated config file."""
    return ["--config", str(tmp_path / "rowtrail.yaml")]


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


def test_classify_json_output(tmp_path: Path) -> None:
    """`--json classify` should emit the compact DML descriptor."""
    runner = CliRunner()

    result = runner.invoke(
        cli_module.app,
        [*_base_args(tmp_path), "--json", "classify", "UPDATE orders o SET x = 1 RETURNING *"],
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "has_returning": True,
        "operation": "UPDATE",
        "recognized": True,
        "table": "orders",
    }


def test_classify_reports_pass_through_statements(tmp_path: Path) -> None:
    """Statements that are not DML are reported as unrecognized."""
    runner = CliRunner()

    result = runner.invoke(cli_module.app, [*_base_args(tmp_path), "classify", "SELECT 1"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"recognized": False}


# ---------------------------------------------------------------------------
# migrate
# ---------------------------------------------------------------------------


def test_migrate_passes_schema_settings_and_tables(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, engine: _DisposableEngine
) -> None:
    """Tables and the history_schema section are forwarded to migrate."""
    (tmp_path / "rowtrail.yaml").write_text(
        "components:\n  history_schema:\n    create_id_index: true\n",
        encoding="utf-8",
    )
    captured: dict[str, Any] = {}

    def fake_migrate(bind: Any, settings: SchemaSettings, *targets: Any) -> list[str]:
        captured["bind"] = bind
        captured["settings"] = settings
        captured["targets"] = targets
        return ['"public"."orders_history"']

    monkeypatch.setattr(cli_module, "migrate", fake_migrate)
    runner = CliRunner()

    result = runner.invoke(
        cli_module.app, [*_base_args(tmp_path), "--json", "migrate", "orders", "public.payments"]
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == ['"public"."orders_history"']
    assert captured["bind"] is engine
    assert captured["settings"].create_id_index is True
    assert captured["targets"] == ("orders", "public.payments")
    assert engine.disposed is True


def test_rowtrail_error_maps_to_exit_code_3(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, engine: _DisposableEngine
) -> None:
    """Rowtrail errors should map to exit code 3 with their code."""

    def fail(*_: Any) -> list[str]:
        raise TableNotFoundError("table public.ghosts not found")

    monkeypatch.setattr(cli_module, "migrate", fail)
    runner = CliRunner()

    result = runner.invoke(cli_module.app, [*_base_args(tmp_path), "migrate", "ghosts"])

    assert result.exit_code == 3
    assert "table public.ghosts not found [TABLE_NOT_FOUND]" in result.stderr
    assert engine.disposed is True


def test_database_error_maps_to_exit_code_4(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, engine: _DisposableEngine
) -> None:
    """Driver failures should map to exit code 4 with normalized JSON errors."""

    def fail(*_: Any) -> list[str]:
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(cli_module, "migrate", fail)
    runner = CliRunner()

    result = runner.invoke(
        cli_module.app, [*_base_args(tmp_path), "--json", "migrate", "orders"]
    )

    assert result.exit_code == 4
    error = json.loads(result.stderr)["error"]
    assert error["category"] == "dependency"
    assert error["message"] == "postgres unavailable"
    assert error["retryable"] is True


def test_invalid_configuration_maps_to_exit_code_3(
    tmp_path: Path, engine: _DisposableEngine
) -> None:
    """Config validation failures are reported, not raised."""
    del engine
    (tmp_path / "rowtrail.yaml").write_text("logging:\n  level: LOUD\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli_module.app, [*_base_args(tmp_path), "migrate", "orders"])

    assert result.exit_code == 3
    assert "INVALID_ARGUMENT" in result.stderr


def test_typer_usage_errors_are_unchanged(tmp_path: Path) -> None:
    """Typer validation/usage behavior should remain default."""
    runner = CliRunner()

    result = runner.invoke(cli_module.app, [*_base_args(tmp_path), "migrate"])

    assert result.exit_code == 2
    assert "Missing argument" in result.stderr


# ---------------------------------------------------------------------------
# demo and health
# ---------------------------------------------------------------------------


def test_demo_reports_capture_summary(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, engine: _DisposableEngine
) -> None:
    """Demo output includes the captured and stored history counts."""
    captured: dict[str, Any] = {}

    def fake_run_demo(bind: Any, settings: Any, setup: bool) -> dict[str, Any]:
        captured["bind"] = bind
        captured["setup"] = setup
        return {
            "order_id": UUID("12345678-1234-5678-1234-567812345678"),
            "captured": 3,
            "history_table": '"orders_history"',
            "history_rows": 3,
        }

    monkeypatch.setattr(cli_module, "_run_demo", fake_run_demo)
    runner = CliRunner()

    result = runner.invoke(cli_module.app, [*_base_args(tmp_path), "--json", "demo", "--setup"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["captured"] == 3
    assert payload["order_id"] == "12345678-1234-5678-1234-567812345678"
    assert captured == {"bind": engine, "setup": True}
    assert engine.disposed is True


def test_health_exit_code_follows_readiness(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, engine: _DisposableEngine
) -> None:
    """Healthy checks exit 0 and degraded checks exit 4."""
    statuses = iter(
        [
            PostgresHealthStatus(ready=True, detail="ok", server_version="16.2"),
            PostgresHealthStatus(ready=False, detail="postgres health check failed"),
        ]
    )
    timeouts: list[float] = []

    def fake_check_health(bind: Any, *, timeout_seconds: float) -> PostgresHealthStatus:
        assert bind is engine
        timeouts.append(timeout_seconds)
        return next(statuses)

    monkeypatch.setattr(cli_module, "check_health", fake_check_health)
    runner = CliRunner()

    healthy = runner.invoke(cli_module.app, [*_base_args(tmp_path), "--json", "health"])
    degraded = runner.invoke(cli_module.app, [*_base_args(tmp_path), "health"])

    assert healthy.exit_code == 0
    assert json.loads(healthy.stdout)["server_version"] == "16.2"
    assert degraded.exit_code == 4
    assert "postgres health check failed" in degraded.stdout
    assert timeouts == [1.0, 1.0]


# ---------------------------------------------------------------------------
# _serialize
# ---------------------------------------------------------------------------


def test_serialize_primitives_and_enums() -> None:
    """Primitives pass through; enums serialize to their value."""
    serialize = cli_module._serialize
    assert serialize(None) is None
    assert serialize(True) is True
    assert serialize(42) == 42
    assert serialize("hello") == "hello"
    assert serialize(Operation.DELETE) == "DELETE"


def test_serialize_database_scalars() -> None:
    """datetime, date, Decimal, UUID and Path are converted to strings."""
    serialize = cli_module._serialize
    dt = datetime(2024, 1, 15, 12, 0, 0)
    assert serialize(dt) == str(dt)
    assert serialize(date(2024, 1, 15)) == "2024-01-15"
    assert serialize(Decimal("3.14")) == "3.14"
    assert serialize(Path("/tmp/file.txt")) == "/tmp/file.txt"
    assert serialize(UUID(int=1)) == "00000000-0000-0000-0000-000000000001"


def test_serialize_dataclass() -> None:
    """Dataclass instances are serialized to dicts recursively."""

    @dataclass
    class Inner:
        value: int

    @dataclass
    class Outer:
        name: str
        inner: Inner

    assert cli_module._serialize(Outer(name="x", inner=Inner(value=7))) == {
        "name": "x",
        "inner": {"value": 7},
    }
