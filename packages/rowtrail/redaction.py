"""Per-column value redaction applied before history rows are written."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

RedactFunc = Callable[[str, Any], Any]


class RedactionMap(Mapping[str, RedactFunc]):
    """Read-only mapping from column name to a redaction function.

    Columns without a registered function pass through unchanged.
    """

    def __init__(self, functions: Mapping[str, RedactFunc] | None = None) -> None:
        validated: dict[str, RedactFunc] = {}
        for key, func in (functions or {}).items():
            if not isinstance(key, str) or key.strip() == "":
                raise ValueError("redaction keys must be non-empty column names")
            if not callable(func):
                raise ValueError(f"redaction for {key!r} must be callable")
            validated[key] = func
        self._functions = validated

    def __getitem__(self, key: str) -> RedactFunc:
        return self._functions[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def apply(self, row: Mapping[str, Any] | None) -> dict[str, Any] | None:
        """Return a redacted copy of ``row``; ``None`` stays ``None``."""
        if row is None:
            return None
        if not self._functions:
            return dict(row)
        return {
            key: self._functions[key](key, value) if key in self._functions else value
            for key, value in row.items()
        }


def mask(replacement: Any = "***") -> RedactFunc:
    """Build a redaction function that replaces any value with ``replacement``."""

    def _mask(key: str, value: Any) -> Any:
        del key
        return None if value is None else replacement

    return _mask
