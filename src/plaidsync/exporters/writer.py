"""
Table writers — persist rendered SQL, one artifact per table.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TextIO

from plaidsync.exporters.sql import serialize

logger = logging.getLogger("plaidsync.exporters.writer")


class BaseTableWriter(ABC):
    """Abstract destination for serialized tables.

    Subclasses implement :meth:`write`. Errors (disk full, permissions,
    closed stream) propagate to the caller; writers never retry.
    """

    name: str = "base"

    @abstractmethod
    def write(self, table_name: str, sql_text: str) -> Any:
        """Persist ``sql_text`` under ``table_name``, replacing prior content."""
        ...


class FileTableWriter(BaseTableWriter):
    """Write each table to ``<output_dir>/<table_name>.sql``."""

    name = "file"

    def __init__(self, output_dir: str | Path = "tables") -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, table_name: str) -> Path:
        return self.output_dir / f"{table_name}.sql"

    def write(self, table_name: str, sql_text: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(table_name)
        path.write_text(sql_text, encoding="utf-8")
        logger.debug("Wrote %d bytes to %s", len(sql_text), path)
        return path


class StreamTableWriter(BaseTableWriter):
    """Write tables to a text stream, each preceded by a comment header."""

    name = "stream"

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write(self, table_name: str, sql_text: str) -> None:
        self.stream.write(f"-- {table_name}\n")
        if sql_text:
            self.stream.write(sql_text)
            self.stream.write("\n")
        self.stream.flush()


def write_table(writer: BaseTableWriter, table_name: str, rows: Sequence[Mapping[str, Any]]) -> Any:
    """Serialize ``rows`` and hand the statement to ``writer``."""
    sql_text = serialize(table_name, rows)
    result = writer.write(table_name, sql_text)
    logger.info("Wrote table %s (%d rows)", table_name, len(rows))
    return result
