"""Create ``<table><suffix>`` history tables for existing base tables."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Connection, Engine, text

from packages.rowtrail.config import SchemaSettings
from packages.rowtrail.errors import InvalidIdentifierError, TableNotFoundError
from packages.rowtrail.ident import (
    escape_colons,
    history_parts,
    quote,
    quote_qualified,
    split_qualified,
)
from packages.rowtrail.naming import resolve_table_name
from packages.rowtrail_shared.logging import fields, get_logger
from resources.substrates.postgres import transactional_connection

_LOGGER = get_logger(__name__)

DEFAULT_SCHEMA = "public"
FALLBACK_ID_TYPE = "UUID"

_SELECT_BASE_TABLE_SQL = """
SELECT
    n.nspname AS schema_name,
    r.relname AS table_name,
    pg_catalog.format_type(a.atttypid, a.atttypmod) AS id_type
FROM pg_catalog.pg_class r
JOIN pg_catalog.pg_namespace n ON n.oid = r.relnamespace
LEFT JOIN (
    SELECT attrelid, atttypid, atttypmod
    FROM pg_catalog.pg_attribute
    WHERE attname = 'id'
      AND attnum > 0
      AND NOT attisdropped
) AS a ON a.attrelid = r.oid
WHERE n.nspname = :schema_name AND r.relname = :table_name
"""


@dataclass(frozen=True, slots=True)
class TableInfo:
    """A base table located in the catalog."""

    schema: str
    table: str
    id_type: str | None = None

    @property
    def ident(self) -> str:
        return quote_qualified([self.schema, self.table])


def migrate(
    bind: Engine | Connection,
    settings: SchemaSettings | None = None,
    *targets: Any,
) -> list[str]:
    """Create a history table for every target and return their identifiers.

    Targets are resolved with ``resolve_table_name``. With an ``Engine`` the
    whole migration runs in one transaction; with a ``Connection`` the
    statements join whatever transaction the caller holds.
    """
    settings = SchemaSettings() if settings is None else settings
    if not targets:
        return []
    names = [resolve_table_name(target) for target in targets]

    created: list[str] = []
    with _connection_scope(bind) as connection:
        for name in names:
            info = select_base_table(connection, name)
            statements = history_table_ddl(info, settings)
            for statement in statements:
                connection.execute(text(escape_colons(statement)))
            history = quote_qualified(history_parts(info.ident, settings.history_suffix))
            _LOGGER.info(
                "History table ensured: table=%s history_table=%s",
                info.ident,
                history,
                extra={fields.TABLE: info.ident, fields.HISTORY_TABLE: history},
            )
            created.append(history)
    return created


def select_base_table(connection: Connection, name: str) -> TableInfo:
    """Look up ``name`` in ``pg_catalog`` along with its ``id`` column type."""
    parts = split_qualified(name)
    if len(parts) == 1:
        schema_name, table_name = DEFAULT_SCHEMA, parts[0]
    elif len(parts) == 2:
        schema_name, table_name = parts
    else:
        raise InvalidIdentifierError(f"unsupported table identifier {name!r}")
    if not table_name:
        raise InvalidIdentifierError(f"unsupported table identifier {name!r}")

    row = connection.execute(
        text(_SELECT_BASE_TABLE_SQL),
        {"schema_name": schema_name, "table_name": table_name},
    ).first()
    if row is None:
        raise TableNotFoundError(f"table {schema_name}.{table_name} not found")
    return TableInfo(schema=row[0], table=row[1], id_type=row[2] or None)


def history_table_ddl(info: TableInfo, settings: SchemaSettings) -> list[str]:
    """Render the DDL creating the history table for ``info``."""
    parts = history_parts(info.ident, settings.history_suffix)
    history = quote_qualified(parts)
    if not history:
        raise InvalidIdentifierError(f"invalid history identifier for {info.ident}")

    columns = [
        "history_id BIGSERIAL PRIMARY KEY",
        f"id {info.id_type or FALLBACK_ID_TYPE}",
        "operation TEXT NOT NULL",
        "operated_at TIMESTAMPTZ NOT NULL",
        "operated_by TEXT",
        "trace_id TEXT",
        "reason TEXT",
        "before JSONB",
        "after JSONB",
    ]
    statements = [
        f"CREATE TABLE IF NOT EXISTS {history} (\n    "
        + ",\n    ".join(columns)
        + "\n)"
    ]
    if settings.create_id_index:
        index_name = quote(f"idx_{parts[-1]}_id")
        statements.append(f"CREATE INDEX IF NOT EXISTS {index_name} ON {history} (id)")
    return statements


@contextmanager
def _connection_scope(bind: Engine | Connection) -> Iterator[Connection]:
    if isinstance(bind, Engine):
        with transactional_connection(bind) as connection:
            yield connection
        return
    yield bind
