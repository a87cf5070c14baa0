"""Audit context attached to log records.

A capturing transaction binds its trace id and operator here while it
flushes, so every history-write log line carries them. Values live in a
``ContextVar`` and are stored as strings.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Iterator, Mapping

_EMPTY: Mapping[str, str] = MappingProxyType({})
_AUDIT_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar(
    "rowtrail_audit_context", default=_EMPTY
)


def _stringify(values: Mapping[str, object]) -> dict[str, str]:
    # None and "" mean "not provided" for audit metadata.
    return {
        str(key): str(value)
        for key, value in values.items()
        if value is not None and value != ""
    }


def get_context() -> dict[str, str]:
    """Return a copy of the bound context."""
    return dict(_AUDIT_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Merge non-empty ``values`` into the bound context."""
    merged = {**_AUDIT_CONTEXT.get(), **_stringify(values)}
    _AUDIT_CONTEXT.set(MappingProxyType(merged))


def clear_context(*keys: str) -> None:
    """Drop ``keys`` from the bound context, or everything when none are given."""
    if not keys:
        _AUDIT_CONTEXT.set(_EMPTY)
        return
    remaining = {k: v for k, v in _AUDIT_CONTEXT.get().items() if k not in keys}
    _AUDIT_CONTEXT.set(MappingProxyType(remaining))


@contextmanager
def log_context(
    values: Mapping[str, object] | None = None, **extra: object
) -> Iterator[None]:
    """Bind context for the duration of a block, then restore the previous one."""
    scoped = _stringify({**(values or {}), **extra})
    token = _AUDIT_CONTEXT.set(MappingProxyType({**_AUDIT_CONTEXT.get(), **scoped}))
    try:
        yield
    finally:
        _AUDIT_CONTEXT.reset(token)
