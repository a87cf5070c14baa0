"""Map arbitrary exceptions onto ``ErrorDetail``."""

from __future__ import annotations

from . import codes
from .factories import make_error
from .types import ErrorCategory, ErrorDetail

# (exception type, category, code, retryable, fallback message); first match wins.
_BUILTIN_RULES: tuple[tuple[type[BaseException], ErrorCategory, str, bool, str], ...] = (
    (ValueError, ErrorCategory.VALIDATION, codes.INVALID_ARGUMENT, False, "invalid argument"),
    (LookupError, ErrorCategory.NOT_FOUND, codes.NOT_FOUND, False, "not found"),
    (TimeoutError, ErrorCategory.DEPENDENCY, codes.DEPENDENCY_TIMEOUT, True, "dependency timeout"),
    (
        ConnectionError,
        ErrorCategory.DEPENDENCY,
        codes.DEPENDENCY_UNAVAILABLE,
        True,
        "dependency unavailable",
    ),
)


def exception_to_error(exc: BaseException) -> ErrorDetail:
    """Return the detail ``exc`` already carries, or classify it by type."""
    detail = getattr(exc, "detail", None)
    if isinstance(detail, ErrorDetail):
        return detail

    metadata = {"exception_type": type(exc).__name__}
    for exc_type, category, code, retryable, fallback in _BUILTIN_RULES:
        if isinstance(exc, exc_type):
            return make_error(
                category,
                str(exc) or fallback,
                code=code,
                retryable=retryable,
                metadata=metadata,
            )
    return make_error(
        ErrorCategory.INTERNAL,
        str(exc) or "unexpected exception",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
