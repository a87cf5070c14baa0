"""Exceptions raised by the capture core.

Every exception carries an ``ErrorDetail`` so callers and the CLI can render
failures with the shared taxonomy. Nothing in the core catches these to log
them; they propagate to the caller of the capturing transaction.
"""

from __future__ import annotations

from packages.rowtrail_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    not_found_error,
    validation_error,
)


class RowtrailError(Exception):
    """Base class for rowtrail failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> ErrorDetail:
        """Structured form of this error."""
        return dependency_error(self.message, retryable=False)


class NoRowsError(RowtrailError):
    """A row-returning statement produced no rows."""

    def __init__(self, message: str = "no rows in result set") -> None:
        super().__init__(message)

    @property
    def detail(self) -> ErrorDetail:
        return not_found_error(self.message, code=codes.NO_ROWS)


class MaterializationError(RowtrailError):
    """Reading returned rows from a cursor failed."""

    @property
    def detail(self) -> ErrorDetail:
        return dependency_error(
            self.message, code=codes.MATERIALIZATION_FAILED, retryable=False
        )


class EncodingError(RowtrailError):
    """A row image could not be JSON-encoded for the history table."""

    def __init__(self, direction: str, message: str) -> None:
        super().__init__(f"failed to encode {direction}: {message}")
        self.direction = direction

    @property
    def detail(self) -> ErrorDetail:
        return validation_error(
            self.message,
            code=codes.ENCODING_FAILED,
            metadata={"direction": self.direction},
        )


class FlushError(RowtrailError):
    """Writing a history row failed; the transaction must be rolled back."""

    def __init__(self, history_table: str, message: str) -> None:
        super().__init__(f"failed to insert into {history_table}: {message}")
        self.history_table = history_table

    @property
    def detail(self) -> ErrorDetail:
        return dependency_error(
            self.message,
            code=codes.HISTORY_WRITE_FAILED,
            retryable=False,
            metadata={"history_table": self.history_table},
        )


class UnsupportedOperationError(RowtrailError):
    """The requested capability is not available on a captured result."""

    @property
    def detail(self) -> ErrorDetail:
        return validation_error(self.message, code=codes.UNSUPPORTED_OPERATION)


class InvalidIdentifierError(RowtrailError):
    """An identifier could not be turned into a usable table reference."""

    @property
    def detail(self) -> ErrorDetail:
        return validation_error(self.message, code=codes.INVALID_IDENTIFIER)


class TableNotFoundError(RowtrailError):
    """A base table named for history migration does not exist."""

    @property
    def detail(self) -> ErrorDetail:
        return not_found_error(self.message, code=codes.TABLE_NOT_FOUND)


class TransactionClosedError(RowtrailError):
    """The capturing transaction was already committed or rolled back."""

    @property
    def detail(self) -> ErrorDetail:
        return conflict_error(self.message, code=codes.TRANSACTION_CLOSED)
