"""Canonical logging field names shared by rowtrail modules.

Keeping names centralized prevents drift between the capture core, the
Postgres substrate and the CLI.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Audit metadata carried by capturing transactions.
TRACE_ID = "trace_id"
OPERATOR = "operator"
REASON = "reason"

# Capture/flush fields.
TABLE = "table"
HISTORY_TABLE = "history_table"
OPERATION = "operation"
ENTRY_COUNT = "entry_count"
ROW_COUNT = "row_count"

# Common process-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
