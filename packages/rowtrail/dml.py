"""Text-level recognition of INSERT/UPDATE/DELETE statements.

This is deliberately not a SQL parser. Each statement shape is matched by one
anchored pattern, optionally behind a ``WITH ... )`` prologue, and the target
text is trimmed down to a table identifier with ``strip_alias``.

RETURNING detection is a word search over the whole statement. A ``returning``
inside a string literal or comment (``note = 'returning soon'``) therefore
counts as a RETURNING clause; the statement is then executed as a
row-returning statement and materialization fails if it yields no rows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from packages.rowtrail.ident import strip_alias

_CTE_PROLOGUE = r"^\s*(?:with\b.*?\)\s*)?"

_INSERT_RE = re.compile(_CTE_PROLOGUE + r"insert\s+into\s+([^\s(]+)", re.I | re.S)
_UPDATE_RE = re.compile(
    _CTE_PROLOGUE + r"update\s+(\S+(?:\s+(?:as\s+)?\S+)?)\s+set\b", re.I | re.S
)
_DELETE_RE = re.compile(
    _CTE_PROLOGUE + r"delete\s+from\s+(\S+(?:\s+(?:as\s+)?\S+)?)", re.I | re.S
)
_RETURNING_RE = re.compile(r"\breturning\b", re.I)


class Operation(StrEnum):
    """Data-mutating statement kinds recognized by the classifier."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True, slots=True)
class DmlStatement:
    """Classifier output for one recognized statement."""

    operation: Operation
    table: str
    has_returning: bool


_PATTERNS: tuple[tuple[Operation, re.Pattern[str]], ...] = (
    (Operation.INSERT, _INSERT_RE),
    (Operation.UPDATE, _UPDATE_RE),
    (Operation.DELETE, _DELETE_RE),
)


def parse_dml(sql: str) -> DmlStatement | None:
    """Classify ``sql``; return ``None`` when it is not a recognized DML."""
    statement = sql.strip()
    for operation, pattern in _PATTERNS:
        match = pattern.match(statement)
        if match is None:
            continue
        return DmlStatement(
            operation=operation,
            table=strip_alias(match.group(1)),
            has_returning=has_returning(statement),
        )
    return None


def has_returning(sql: str) -> bool:
    """Return True when the word ``returning`` appears anywhere in ``sql``."""
    return _RETURNING_RE.search(sql) is not None


def append_returning_all(sql: str) -> tuple[str, bool]:
    """Rewrite ``sql`` to end with ``RETURNING *``.

    Trailing semicolons are stripped and a single one is restored after the
    clause. A blank statement is returned unchanged with ``False``.
    """
    statement = sql.strip()
    if not statement:
        return sql, False

    had_semicolon = False
    while statement.endswith(";"):
        had_semicolon = True
        statement = statement[:-1].rstrip()

    rewritten = statement + "\nRETURNING *"
    if had_semicolon:
        rewritten += ";"
    return rewritten, True
