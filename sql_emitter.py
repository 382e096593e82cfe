"""Serialize extracted records into a single-transaction SQL script."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from metamodel_schema import KIND_ORDER, Column, EntityKind
from reference_resolver import DeferredLookup, resolve_reference

TARGET_DIALECT = "PostgreSQL"
_ESCAPE_TOKEN = re.compile(r"''|\\[\\nr]")
_UNESCAPED = {"''": "'", "\\\\": "\\", "\\n": "\n", "\\r": "\r"}


def sql_literal(value: Optional[str]) -> str:
    """Quote ``value`` as a SQL string literal; blank values become NULL.

    Backslashes are doubled so the ``\\n``/``\\r`` sequences standing in for
    line breaks can always be told apart from text that contained them.
    """

    if value is None or value == "":
        return "NULL"
    escaped = (
        str(value)
        .replace("\\", "\\\\")
        .replace("'", "''")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
    )
    return f"'{escaped}'"


def unescape_sql_literal(literal: str) -> Optional[str]:
    """Inverse of :func:`sql_literal`."""

    text = literal.strip()
    if text.upper() == "NULL":
        return None
    if len(text) < 2 or not (text.startswith("'") and text.endswith("'")):
        raise ValueError(f"Not a quoted SQL literal: {literal!r}")
    return _ESCAPE_TOKEN.sub(lambda match: _UNESCAPED[match.group(0)], text[1:-1])


def sql_integer(value: Any) -> str:
    if value is None or value == "":
        return "0"
    return str(int(value))


def render_lookup(lookup: Optional[DeferredLookup]) -> str:
    if lookup is None:
        return "NULL"
    return (
        f"(SELECT {lookup.key_column} FROM {lookup.table} "
        f"WHERE {lookup.name_column} = {sql_literal(lookup.name)})"
    )


def render_value(column: Column, record: Any) -> str:
    value = getattr(record, column.attribute)
    if column.references:
        return render_lookup(resolve_reference(column.references, value))
    if column.numeric:
        return sql_integer(value)
    return sql_literal(value)


def render_insert(kind: EntityKind, record: Any) -> str:
    columns = ", ".join(kind.column_names)
    values = ", ".join(render_value(column, record) for column in kind.columns)
    return f"INSERT INTO {kind.table} ({columns}) VALUES ({values});"


def verification_query() -> str:
    """Row count per table, one UNION ALL branch per kind."""

    first, *rest = KIND_ORDER
    lines = [f"SELECT '{first.table}' AS table_name, COUNT(*) AS count FROM {first.table}"]
    lines.extend(f"UNION ALL SELECT '{kind.table}', COUNT(*) FROM {kind.table}" for kind in rest)
    return "\n".join(lines) + ";"


def emit_script(
    records_by_kind: Mapping[str, Sequence[Any]],
    generated_at: Optional[datetime] = None,
    source_label: Optional[str] = None,
) -> str:
    """Build the full export script.

    Kinds are always written in ``KIND_ORDER`` regardless of the mapping's
    own order; records keep the order they were extracted in.
    """

    generated_at = generated_at or datetime.now(timezone.utc)
    lines: List[str] = ["-- Metamodel SQL Export", f"-- Generated: {generated_at.isoformat()}"]
    if source_label:
        lines.append(f"-- Source: {source_label}")
    lines.extend([f"-- Target: {TARGET_DIALECT}", "", "BEGIN;", ""])

    for kind in KIND_ORDER:
        records = records_by_kind.get(kind.name, ())
        if not records:
            continue
        lines.append(f"-- {kind.name}")
        lines.extend(render_insert(kind, record) for record in records)
        lines.append("")

    lines.extend(["COMMIT;", "", "-- Verify counts", verification_query(), ""])
    return "\n".join(lines)
