"""Capturing transactions: buffer DML row images and flush them on commit.

Usage::

    recorder = HistoryRecorder(CaptureSettings(), redactions={"email": mask()})
    db = recorder.wrap(engine)
    with db.begin(meta=CaptureMeta(operator="alice", reason="refund")) as tx:
        tx.execute("UPDATE orders SET status = :s WHERE id = :id RETURNING *", {...})

Statements are classified by ``parse_dml``. Unrecognized statements pass
through untouched. Recognized statements without RETURNING are executed
normally and leave a statement-level entry (SQL and parameters only). With
RETURNING, the returned rows are materialized and each becomes one entry with
a ``before`` (DELETE) or ``after`` (INSERT/UPDATE) image.

On commit the buffer is drained once and every entry is written, in order, to
``<table><suffix>`` inside the same transaction, then the transaction commits.
A failed history write leaves the transaction uncommittable; the caller rolls
it back. Rollback discards the buffer.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from types import TracebackType
from typing import Any
from uuid import UUID

from sqlalchemy import Connection, Engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ClauseElement, TextClause

from packages.rowtrail.buffer import CaptureBuffer
from packages.rowtrail.config import CaptureSettings
from packages.rowtrail.dml import append_returning_all, parse_dml
from packages.rowtrail.entry import CaptureEntry, CaptureMeta, RowImage
from packages.rowtrail.errors import (
    EncodingError,
    FlushError,
    InvalidIdentifierError,
    NoRowsError,
    TransactionClosedError,
)
from packages.rowtrail.ident import (
    base_table_name,
    escape_colons,
    history_parts,
    quote_qualified,
    regclass_literal,
)
from packages.rowtrail.naming import singular
from packages.rowtrail.redaction import RedactFunc, RedactionMap
from packages.rowtrail.rows import AffectedRows, scan_all
from packages.rowtrail_shared.logging import fields, get_logger, log_context

_LOGGER = get_logger(__name__)

_HISTORY_INSERT_SQL = """
INSERT INTO {history} (id, operation, operated_at, operated_by, trace_id, reason, before, after)
VALUES (:id, :operation, now(), :operated_by, :trace_id, :reason, CAST(:before AS JSONB), CAST(:after AS JSONB))
"""

_REGCLASS_EXISTS_SQL = "SELECT to_regclass({literal}) IS NOT NULL"

Statement = str | ClauseElement
Parameters = Mapping[str, Any] | Sequence[Mapping[str, Any]] | None


class TransactionState(StrEnum):
    """Lifecycle of one capturing transaction."""

    OPEN = "open"
    BUFFERING = "buffering"
    FLUSHING = "flushing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class HistoryRecorder:
    """Capture configuration shared by every transaction it begins."""

    def __init__(
        self,
        settings: CaptureSettings | None = None,
        *,
        redactions: RedactionMap | Mapping[str, RedactFunc] | None = None,
    ) -> None:
        self._settings = CaptureSettings() if settings is None else settings
        self._redactions = (
            redactions
            if isinstance(redactions, RedactionMap)
            else RedactionMap(redactions)
        )

    @property
    def settings(self) -> CaptureSettings:
        return self._settings

    @property
    def redactions(self) -> RedactionMap:
        return self._redactions

    def history_table_name(self, base: str) -> str:
        """Return the unquoted, dotted history-table name for ``base``."""
        return ".".join(history_parts(base, self._settings.history_suffix))

    def wrap(self, engine: Engine) -> "CapturingEngine":
        """Attach this recorder to an engine."""
        return CapturingEngine(engine=engine, recorder=self)

    def begin(
        self,
        connection: Connection,
        *,
        meta: CaptureMeta | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> "CapturingTransaction":
        """Begin a capturing transaction on an open connection."""
        return CapturingTransaction(
            connection=connection,
            recorder=self,
            meta=meta,
            execution_options=execution_options,
        )


class CapturingEngine:
    """An engine whose transactions record history."""

    def __init__(self, *, engine: Engine, recorder: HistoryRecorder) -> None:
        self._engine = engine
        self._recorder = recorder

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def recorder(self) -> HistoryRecorder:
        return self._recorder

    @contextmanager
    def begin(
        self,
        *,
        meta: CaptureMeta | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> Iterator["CapturingTransaction"]:
        """Yield a capturing transaction on a fresh connection.

        Commits on clean exit, rolls back on exception, and always returns the
        connection to the pool.
        """
        with self._engine.connect() as connection:
            with self._recorder.begin(
                connection, meta=meta, execution_options=execution_options
            ) as transaction:
                yield transaction


class CapturingTransaction:
    """One database transaction with statement capture and history flush."""

    def __init__(
        self,
        *,
        connection: Connection,
        recorder: HistoryRecorder,
        meta: CaptureMeta | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> None:
        self._connection = connection
        self._recorder = recorder
        self._meta = CaptureMeta() if meta is None else meta
        self._execution_options = dict(execution_options or {})
        self._buffer: CaptureBuffer[CaptureEntry] = CaptureBuffer()
        self._transaction = connection.begin()
        self._state = TransactionState.OPEN

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def meta(self) -> CaptureMeta:
        return self._meta

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of entries buffered and not yet flushed."""
        return len(self._buffer)

    def __enter__(self) -> "CapturingTransaction":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            if self._is_active():
                self.rollback()
            return
        if self._state in (TransactionState.OPEN, TransactionState.BUFFERING):
            try:
                self.commit()
            except BaseException:
                self.rollback()
                raise
        elif self._state is TransactionState.FAILED:
            self.rollback()

    def execute(
        self,
        statement: Statement,
        parameters: Parameters = None,
        *,
        meta: CaptureMeta | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Execute ``statement`` and buffer what it changed.

        Returns the driver result for pass-through and statement-level
        captures, and an ``AffectedRows`` when row images were materialized.
        With RETURNING, a sequence of parameter sets runs one set per call so
        the rows of every set are captured.
        ``meta`` overrides the transaction metadata for this call only.
        """
        self._require_state(TransactionState.OPEN, TransactionState.BUFFERING)
        options = self._options(execution_options)
        sql = self._statement_sql(statement)
        dml = parse_dml(sql)
        if dml is None:
            return self._connection.execute(
                _executable(statement), parameters, execution_options=options
            )

        entry_meta = self._meta if meta is None else meta
        has_returning = dml.has_returning
        augmented = False
        if (
            not has_returning
            and self._recorder.settings.augment_returning
            and isinstance(statement, (str, TextClause))
        ):
            rewritten, ok = append_returning_all(sql)
            if ok:
                statement = _with_sql(statement, rewritten)
                sql, has_returning, augmented = rewritten, True, True

        if not has_returning:
            result = self._connection.execute(
                _executable(statement), parameters, execution_options=options
            )
            self._record(
                CaptureEntry(
                    table=dml.table,
                    operation=dml.operation,
                    meta=entry_meta,
                    sql=sql,
                    parameters=parameters,
                )
            )
            return result

        # Drivers return no row set for executemany, so each parameter set
        # runs on its own to keep its RETURNING rows.
        images: list[RowImage] = []
        for parameter_set in _parameter_sets(parameters):
            result = self._connection.execute(
                _executable(statement), parameter_set, execution_options=options
            )
            images.extend(_scan_optional(result))
        if not images:
            # Only statements we rewrote may legitimately touch zero rows.
            if not augmented:
                raise NoRowsError()
            return AffectedRows([])
        for image in images:
            self._record(
                CaptureEntry.for_row(
                    table=dml.table,
                    operation=dml.operation,
                    row=image,
                    meta=entry_meta,
                )
            )
        _LOGGER.debug(
            "Captured row images: table=%s operation=%s rows=%d",
            dml.table,
            dml.operation,
            len(images),
            extra={
                fields.TABLE: dml.table,
                fields.OPERATION: dml.operation,
                fields.ROW_COUNT: len(images),
            },
        )
        return AffectedRows(images)

    def commit(self) -> None:
        """Flush buffered entries into history tables, then commit."""
        self._require_state(TransactionState.OPEN, TransactionState.BUFFERING)
        self._state = TransactionState.FLUSHING
        try:
            self._flush()
        except BaseException:
            self._state = TransactionState.FAILED
            raise
        self._transaction.commit()
        self._state = TransactionState.COMMITTED

    def rollback(self) -> None:
        """Discard buffered entries and roll back."""
        if self._state is TransactionState.ROLLED_BACK:
            return
        if self._state is TransactionState.COMMITTED:
            raise TransactionClosedError("transaction already committed")
        self._buffer.reset()
        self._state = TransactionState.ROLLED_BACK
        self._transaction.rollback()

    def _record(self, entry: CaptureEntry) -> None:
        self._buffer.add(entry)
        if self._state is TransactionState.OPEN:
            self._state = TransactionState.BUFFERING

    def _flush(self) -> None:
        entries = self._buffer.drain()
        if not entries:
            return
        existence: dict[str, bool] = {}
        for entry in entries:
            # Per-call meta overrides decide the audit context of each write.
            with log_context(
                {
                    fields.TRACE_ID: entry.meta.trace_id,
                    fields.OPERATOR: entry.meta.operator,
                }
            ):
                self._write_history(entry, existence)
        _LOGGER.debug(
            "Flushed history entries: count=%d",
            len(entries),
            extra={fields.ENTRY_COUNT: len(entries)},
        )

    def _write_history(self, entry: CaptureEntry, existence: dict[str, bool]) -> None:
        redactions = self._recorder.redactions
        before = redactions.apply(entry.before)
        after = redactions.apply(entry.after)
        record_id = pick_id(entry.table, before, after)
        before_json = encode_image(before, direction="before")
        after_json = encode_image(after, direction="after")

        parts = history_parts(entry.table, self._recorder.settings.history_suffix)
        history = quote_qualified(parts)
        if not history:
            raise InvalidIdentifierError(
                f"invalid history table identifier for {entry.table!r}"
            )

        if self._recorder.settings.skip_if_missing:
            if history not in existence:
                existence[history] = self._history_table_exists(parts)
            if not existence[history]:
                _LOGGER.debug(
                    "History table missing, entry skipped: history_table=%s",
                    history,
                    extra={fields.HISTORY_TABLE: history},
                )
                return

        try:
            self._connection.execute(
                text(_HISTORY_INSERT_SQL.format(history=escape_colons(history))),
                {
                    "id": record_id,
                    "operation": str(entry.operation),
                    "operated_by": entry.meta.operator,
                    "trace_id": entry.meta.trace_id,
                    "reason": entry.meta.reason,
                    "before": before_json,
                    "after": after_json,
                },
                execution_options=self._options(None),
            )
        except SQLAlchemyError as exc:
            raise FlushError(history, str(exc)) from exc

    def _history_table_exists(self, parts: Sequence[str]) -> bool:
        statement = text(
            _REGCLASS_EXISTS_SQL.format(literal=escape_colons(regclass_literal(parts)))
        )
        try:
            result = self._connection.execute(
                statement, execution_options=self._options(None)
            )
            return bool(result.scalar())
        except SQLAlchemyError as exc:
            raise FlushError(quote_qualified(parts), str(exc)) from exc

    def _statement_sql(self, statement: Statement) -> str:
        if isinstance(statement, str):
            return statement
        if isinstance(statement, TextClause):
            return statement.text
        return str(statement.compile(dialect=self._connection.dialect))

    def _options(self, overrides: Mapping[str, Any] | None) -> dict[str, Any]:
        if not overrides:
            return dict(self._execution_options)
        return {**self._execution_options, **overrides}

    def _is_active(self) -> bool:
        return self._state not in (
            TransactionState.COMMITTED,
            TransactionState.ROLLED_BACK,
        )

    def _require_state(self, *allowed: TransactionState) -> None:
        if self._state in allowed:
            return
        if self._state is TransactionState.FAILED:
            raise TransactionClosedError("history flush failed; roll back the transaction")
        raise TransactionClosedError(f"transaction is {self._state.value}")


def pick_id(
    table: str, before: Mapping[str, Any] | None, after: Mapping[str, Any] | None
) -> Any:
    """Choose the audited row id: ``id`` first, then ``<singular table>_id``."""
    before = before or {}
    after = after or {}
    if "id" in before:
        return before["id"]
    if "id" in after:
        return after["id"]
    singular_id = f"{singular(base_table_name(table))}_id"
    if singular_id in before:
        return before[singular_id]
    if singular_id in after:
        return after[singular_id]
    return None


def encode_image(image: RowImage | None, *, direction: str) -> str:
    """JSON-encode one row image; ``None`` encodes as JSON ``null``."""
    try:
        return json.dumps(image, default=_json_default, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise EncodingError(direction, str(exc)) from exc


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _with_sql(statement: Statement, sql: str) -> Statement:
    """Return ``statement`` with its SQL replaced, keeping values bound on a clause."""
    if isinstance(statement, TextClause):
        return text(sql).bindparams(*statement._bindparams.values())
    return sql


def _parameter_sets(parameters: Parameters) -> list[Mapping[str, Any] | None]:
    if parameters is None or isinstance(parameters, Mapping):
        return [parameters]
    return list(parameters) or [None]


def _scan_optional(result: Any) -> list[RowImage]:
    try:
        return scan_all(result)
    except NoRowsError:
        return []


def _executable(statement: Statement) -> ClauseElement:
    if isinstance(statement, str):
        return text(statement)
    return statement
