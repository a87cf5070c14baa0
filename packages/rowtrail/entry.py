"""Capture entries and the audit metadata attached to them."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from packages.rowtrail.dml import Operation

RowImage = dict[str, Any]


@dataclass(frozen=True, slots=True)
class CaptureMeta:
    """Who did it, under which trace, and why.

    Passed explicitly to ``begin()`` or per ``execute()`` call; all fields are
    optional and default to empty strings.
    """

    operator: str = ""
    trace_id: str = ""
    reason: str = ""

    def with_operator(self, operator: str) -> "CaptureMeta":
        return replace(self, operator=operator)

    def with_trace_id(self, trace_id: str) -> "CaptureMeta":
        return replace(self, trace_id=trace_id)

    def with_reason(self, reason: str) -> "CaptureMeta":
        return replace(self, reason=reason)


@dataclass(frozen=True, slots=True)
class CaptureEntry:
    """One row-level or statement-level audit fact awaiting flush.

    Row-level entries carry exactly one image: ``before`` for DELETE, ``after``
    for INSERT/UPDATE. Statement-level entries carry ``sql`` and
    ``parameters`` instead.
    """

    table: str
    operation: Operation
    meta: CaptureMeta
    sql: str | None = None
    parameters: Mapping[str, Any] | Sequence[Any] | None = None
    before: RowImage | None = None
    after: RowImage | None = None

    @classmethod
    def for_row(
        cls,
        *,
        table: str,
        operation: Operation,
        row: RowImage,
        meta: CaptureMeta,
    ) -> "CaptureEntry":
        """Build a row-level entry, placing ``row`` on the correct side."""
        if operation is Operation.DELETE:
            return cls(table=table, operation=operation, meta=meta, before=row)
        return cls(table=table, operation=operation, meta=meta, after=row)

    @property
    def has_image(self) -> bool:
        return self.before is not None or self.after is not None
