"""Classify psycopg/SQLAlchemy failures into the shared error taxonomy.

Classification prefers the SQLSTATE reported by the driver and falls back to
exception type names and message fragments when no SQLSTATE is available
(connection failures, synthetic exceptions in tests).
"""

from __future__ import annotations

from packages.rowtrail_shared.errors import ErrorCategory, ErrorDetail, codes, make_error

# SQLSTATE -> (category, code, retryable, message)
_SQLSTATE_RULES: dict[str, tuple[ErrorCategory, str, bool, str]] = {
    "23505": (ErrorCategory.CONFLICT, codes.ALREADY_EXISTS, False, "resource already exists"),
    "42P01": (ErrorCategory.NOT_FOUND, codes.TABLE_NOT_FOUND, False, "relation does not exist"),
    "40001": (
        ErrorCategory.CONFLICT,
        codes.SERIALIZATION_FAILURE,
        True,
        "transaction serialization failure",
    ),
    "40P01": (ErrorCategory.CONFLICT, codes.SERIALIZATION_FAILURE, True, "deadlock detected"),
    "42501": (
        ErrorCategory.DEPENDENCY,
        codes.PERMISSION_DENIED,
        False,
        "insufficient privilege",
    ),
    "57014": (ErrorCategory.DEPENDENCY, codes.DEPENDENCY_TIMEOUT, True, "statement timed out"),
}

_TYPE_NAME_TO_SQLSTATE = {
    "UniqueViolation": "23505",
    "UndefinedTable": "42P01",
    "SerializationFailure": "40001",
    "DeadlockDetected": "40P01",
    "InsufficientPrivilege": "42501",
    "QueryCanceled": "57014",
}


def normalize_postgres_error(exc: BaseException) -> ErrorDetail:
    """Map one database exception (or its chained driver cause) to an ErrorDetail."""
    cause = _driver_cause(exc)
    type_name = type(cause).__name__
    message = str(cause)
    metadata = {"exception_type": type_name}

    sqlstate = getattr(cause, "sqlstate", None) or _TYPE_NAME_TO_SQLSTATE.get(type_name)
    if sqlstate is None:
        sqlstate = _sqlstate_from_message(message)
    rule = _SQLSTATE_RULES.get(sqlstate) if sqlstate else None
    if rule is not None:
        category, code, retryable, summary = rule
        return make_error(
            category, summary, code=code, retryable=retryable, metadata=metadata
        )

    if "OperationalError" in type_name or "timeout" in message.lower():
        return make_error(
            ErrorCategory.DEPENDENCY,
            "postgres unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            retryable=True,
            metadata=metadata,
        )
    if type_name in {"InterfaceError", "ProgrammingError", "DataError"}:
        return make_error(
            ErrorCategory.DEPENDENCY,
            "postgres request failed",
            code=codes.DEPENDENCY_FAILURE,
            metadata=metadata,
        )
    return make_error(
        ErrorCategory.INTERNAL,
        "unexpected postgres failure",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )


def _driver_cause(exc: BaseException) -> BaseException:
    # SQLAlchemy DBAPIError wraps the psycopg exception in ``.orig``.
    orig = getattr(exc, "orig", None)
    if isinstance(orig, BaseException) and getattr(orig, "sqlstate", None):
        return orig
    return exc.__cause__ if exc.__cause__ is not None else exc


def _sqlstate_from_message(message: str) -> str | None:
    if "duplicate key value" in message:
        return "23505"
    if "relation" in message and "does not exist" in message:
        return "42P01"
    return None
