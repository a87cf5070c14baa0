"""Reduce row-returning results into column-name keyed row images."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Any, Protocol

from packages.rowtrail.entry import RowImage
from packages.rowtrail.errors import MaterializationError, NoRowsError, UnsupportedOperationError


class RowSource(Protocol):
    """The slice of ``sqlalchemy.CursorResult`` the materializer relies on."""

    def keys(self) -> Iterable[str]: ...

    def __iter__(self) -> Any: ...

    def close(self) -> None: ...


def coerce_value(value: Any) -> Any:
    """Decode byte-like values as JSON, falling back to text."""
    if isinstance(value, memoryview):
        value = value.tobytes()
    if not isinstance(value, (bytes, bytearray)):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return bytes(value).decode("utf-8", errors="replace")


def row_to_image(columns: Sequence[str], values: Sequence[Any]) -> RowImage:
    """Pair column names with values for one row."""
    return {column: coerce_value(value) for column, value in zip(columns, values)}


def scan_all(result: RowSource) -> list[RowImage]:
    """Consume every row of ``result``; raise ``NoRowsError`` when empty.

    The result is closed on every exit path. A result that carries no row set
    at all (a plain command status) counts as empty.
    """
    try:
        if not getattr(result, "returns_rows", True):
            raise NoRowsError()
        try:
            columns = [str(key) for key in result.keys()]
            images = [row_to_image(columns, tuple(row)) for row in result]
        except Exception as exc:
            raise MaterializationError(f"failed to scan rows: {exc}") from exc
    finally:
        result.close()
    if not images:
        raise NoRowsError()
    return images


def scan_one(result: RowSource) -> RowImage:
    """Return the first row image of ``result``; raise ``NoRowsError`` when empty."""
    return scan_all(result)[0]


class AffectedRows:
    """Caller-visible result of a statement executed under row capture.

    Mirrors the parts of ``CursorResult`` that make sense once rows were
    consumed for auditing: the affected-row count and the captured images.
    Generated-key accessors fail loudly instead of guessing.
    """

    def __init__(self, rows: Sequence[RowImage]) -> None:
        self._rows = list(rows)

    @property
    def rowcount(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> list[RowImage]:
        return [dict(row) for row in self._rows]

    @property
    def returns_rows(self) -> bool:
        return False

    @property
    def lastrowid(self) -> int:
        raise UnsupportedOperationError(
            "lastrowid is not supported for captured statements"
        )

    @property
    def inserted_primary_key(self) -> Any:
        raise UnsupportedOperationError(
            "inserted_primary_key is not supported for captured statements"
        )

    def __repr__(self) -> str:
        return f"AffectedRows(rowcount={self.rowcount})"
