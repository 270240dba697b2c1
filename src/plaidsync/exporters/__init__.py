"""Exporters package — render rows as SQL and persist them."""
from plaidsync.exporters.sql import quote_identifier, quote_value, serialize
from plaidsync.exporters.writer import (
    BaseTableWriter,
    FileTableWriter,
    StreamTableWriter,
    write_table,
)

__all__ = [
    "BaseTableWriter",
    "FileTableWriter",
    "StreamTableWriter",
    "quote_identifier",
    "quote_value",
    "serialize",
    "write_table",
]
