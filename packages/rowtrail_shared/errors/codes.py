"""Machine-readable error codes printed by the CLI and carried on exceptions."""

# Caller mistakes
VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ARGUMENT = "INVALID_ARGUMENT"
INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
ENCODING_FAILED = "ENCODING_FAILED"
UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"

# Missing things
NOT_FOUND = "NOT_FOUND"
NO_ROWS = "NO_ROWS"
TABLE_NOT_FOUND = "TABLE_NOT_FOUND"

# State clashes
CONFLICT = "CONFLICT"
ALREADY_EXISTS = "ALREADY_EXISTS"
TRANSACTION_CLOSED = "TRANSACTION_CLOSED"
SERIALIZATION_FAILURE = "SERIALIZATION_FAILURE"

# Database side
DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"
DEPENDENCY_TIMEOUT = "DEPENDENCY_TIMEOUT"
DEPENDENCY_UNAVAILABLE = "DEPENDENCY_UNAVAILABLE"
PERMISSION_DENIED = "PERMISSION_DENIED"
MATERIALIZATION_FAILED = "MATERIALIZATION_FAILED"
HISTORY_WRITE_FAILED = "HISTORY_WRITE_FAILED"

# Bugs
INTERNAL_ERROR = "INTERNAL_ERROR"
UNEXPECTED_EXCEPTION = "UNEXPECTED_EXCEPTION"
