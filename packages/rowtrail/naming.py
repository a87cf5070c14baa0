"""Table-name resolution for history migration targets.

A target is one of three variants, checked in order:

* a string naming the table (optionally schema-qualified);
* an object that names itself: ``table_name()``, a SQLAlchemy ``Table``, or
  a declarative class carrying ``__tablename__``;
* a class, or an instance of one, whose snake_cased name is pluralized
  (``OrderItem`` -> ``order_items``).
"""

from __future__ import annotations

import inspect
import re
from functools import lru_cache
from typing import Any, Protocol, runtime_checkable

import inflect
from sqlalchemy import Table

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


@runtime_checkable
class TableNamed(Protocol):
    """Anything that can report its own table name."""

    def table_name(self) -> str: ...


@lru_cache(maxsize=1)
def _engine() -> inflect.engine:
    return inflect.engine()


def resolve_table_name(target: Any) -> str:
    """Resolve ``target`` to a table name; raise ``ValueError`` if impossible."""
    if target is None:
        raise ValueError("table target is None")

    if isinstance(target, str):
        return _non_empty(target, source="table name")

    if isinstance(target, TableNamed) and not isinstance(target, type):
        return _non_empty(target.table_name(), source=f"{type(target).__name__}.table_name()")

    if isinstance(target, type) and isinstance(
        inspect.getattr_static(target, "table_name", None), (classmethod, staticmethod)
    ):
        return _non_empty(target.table_name(), source=f"{target.__name__}.table_name()")

    if isinstance(target, Table):
        return target.fullname

    declared = getattr(target, "__tablename__", None)
    if isinstance(declared, str):
        return _non_empty(declared, source=f"{_type_name(target)}.__tablename__")

    cls = target if isinstance(target, type) else type(target)
    if cls.__module__ == "builtins":
        raise ValueError(f"unsupported table target {cls.__name__}")
    return plural(snake_case(cls.__name__))


def snake_case(name: str) -> str:
    """Convert ``CamelCase`` (including acronyms) to ``snake_case``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def plural(name: str) -> str:
    """Pluralize the last underscore-separated word of ``name``."""
    head, sep, word = name.rpartition("_")
    if not word:
        return name
    return f"{head}{sep}{_engine().plural_noun(word)}"


def singular(name: str) -> str:
    """Singularize the last underscore-separated word of ``name``.

    Words that are already singular are returned unchanged.
    """
    head, sep, word = name.rpartition("_")
    if not word:
        return name
    converted = _engine().singular_noun(word)
    if converted is False:
        return name
    return f"{head}{sep}{converted}"


def _non_empty(name: str, *, source: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValueError(f"{source} is empty")
    return cleaned


def _type_name(target: Any) -> str:
    return target.__name__ if isinstance(target, type) else type(target).__name__
