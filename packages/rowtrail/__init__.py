"""Public rowtrail interface: capturing transactions and history migration."""

from packages.rowtrail.capture import (
    CapturingEngine,
    CapturingTransaction,
    HistoryRecorder,
    TransactionState,
    encode_image,
    pick_id,
)
from packages.rowtrail.config import (
    CaptureSettings,
    SchemaSettings,
    resolve_capture_settings,
    resolve_schema_settings,
)
from packages.rowtrail.dml import DmlStatement, Operation, append_returning_all, parse_dml
from packages.rowtrail.entry import CaptureEntry, CaptureMeta, RowImage
from packages.rowtrail.errors import (
    EncodingError,
    FlushError,
    InvalidIdentifierError,
    MaterializationError,
    NoRowsError,
    RowtrailError,
    TableNotFoundError,
    TransactionClosedError,
    UnsupportedOperationError,
)
from packages.rowtrail.naming import TableNamed, resolve_table_name
from packages.rowtrail.redaction import RedactFunc, RedactionMap, mask
from packages.rowtrail.rows import AffectedRows
from packages.rowtrail.schema import TableInfo, history_table_ddl, migrate

__all__ = [
    "AffectedRows",
    "CaptureEntry",
    "CaptureMeta",
    "CaptureSettings",
    "CapturingEngine",
    "CapturingTransaction",
    "DmlStatement",
    "EncodingError",
    "FlushError",
    "HistoryRecorder",
    "InvalidIdentifierError",
    "MaterializationError",
    "NoRowsError",
    "Operation",
    "RedactFunc",
    "RedactionMap",
    "RowImage",
    "RowtrailError",
    "SchemaSettings",
    "TableInfo",
    "TableNamed",
    "TableNotFoundError",
    "TransactionClosedError",
    "TransactionState",
    "UnsupportedOperationError",
    "append_returning_all",
    "encode_image",
    "history_table_ddl",
    "migrate",
    "mask",
    "parse_dml",
    "pick_id",
    "resolve_capture_settings",
    "resolve_schema_settings",
    "resolve_table_name",
]
