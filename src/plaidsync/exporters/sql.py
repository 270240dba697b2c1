"""
SQL exporter — render row batches as MySQL upsert statements.

One batch becomes exactly one statement::

    INSERT INTO `widgets` (`id`, `name`) VALUES
    (1, "a"),
    (2, "b")
    ON DUPLICATE KEY UPDATE `name`=VALUES(`name`);

Every non-key column is overwritten with the incoming value on a primary
key conflict, so replaying the same file is a no-op unless the source
data changed. Output is byte-for-byte deterministic for the same input.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

PRIMARY_KEY = "id"

# MySQL string-literal escapes (backslash must stay first)
_STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\0": "\\0",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
    "\x1a": "\\Z",
}
_STRING_TABLE = str.maketrans(_STRING_ESCAPES)


def quote_identifier(name: str) -> str:
    """Backtick-quote a table or column name."""
    return "`" + str(name).replace("`", "``") + "`"


def quote_string(value: str) -> str:
    return '"' + value.translate(_STRING_TABLE) + '"'


def quote_value(value: Any) -> str:
    """Render a scalar as a MySQL literal.

    ``None`` and non-finite floats become ``NULL``. Anything that is not a
    scalar raises ``TypeError`` rather than being stringified.
    """
    if value is None:
        return "NULL"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return "NULL"
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return "NULL"
        return format(value, "f")
    if isinstance(value, (date, datetime)):
        return quote_string(value.isoformat())
    if isinstance(value, str):
        return quote_string(value)
    raise TypeError(f"Cannot render {type(value).__name__} as a SQL literal: {value!r}")


def serialize(table_name: str, rows: Sequence[Mapping[str, Any]]) -> str:
    """Serialize ``rows`` into a single upsert statement for ``table_name``.

    Returns an empty string for an empty batch. Columns come from the first
    row; later rows are expected to carry the same keys, and any key they
    lack renders as ``NULL``.
    """
    if not rows:
        return ""

    columns = list(rows[0].keys())
    lines = [f"INSERT INTO {quote_identifier(table_name)} ({', '.join(quote_identifier(c) for c in columns)}) VALUES"]

    values = [f"({', '.join(quote_value(row.get(col)) for col in columns)})" for row in rows]
    lines.append(",\n".join(values))

    updates = [f"{quote_identifier(c)}=VALUES({quote_identifier(c)})" for c in columns if c != PRIMARY_KEY]
    if not updates:
        # id-only tables: keep the statement valid and the conflict a no-op
        pk = quote_identifier(PRIMARY_KEY)
        updates = [f"{pk}={pk}"]
    lines.append(f"ON DUPLICATE KEY UPDATE {', '.join(updates)};")

    return "\n".join(lines)
