"""SQL building and result-parsing helpers shared by SQL storage backends."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

from domainops.core.errors import QueryError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


def identifier(name: str) -> str:
    """Return `name` if it is a plain (optionally dotted) SQL identifier."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise QueryError(f"Refusing to use unsafe SQL identifier: {name!r}")
    return name


def literal(value: str) -> str:
    """Quote a string literal."""
    return "'" + value.replace("'", "''") + "'"


def parse_count(value: Any) -> int | None:
    """Parse a count cell that may come back as a number or a string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return None


def parse_date(value: Any) -> date | None:
    """Coerce a date/timestamp cell to a date (first 10 characters for strings)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def table_exists_sql(table: str, *, schema: str | None = None, catalog: str | None = None) -> str:
    prefix = f"{identifier(catalog)}." if catalog else ""
    sql = (
        f"SELECT COUNT(*) AS cnt FROM {prefix}information_schema.tables "
        f"WHERE table_name = {literal(table)}"
    )
    if schema:
        sql += f" AND table_schema = {literal(schema)}"
    return sql


def columns_sql(table: str, *, schema: str | None = None, catalog: str | None = None) -> str:
    prefix = f"{identifier(catalog)}." if catalog else ""
    sql = (
        f"SELECT column_name, ordinal_position FROM {prefix}information_schema.columns "
        f"WHERE table_name = {literal(table)}"
    )
    if schema:
        sql += f" AND table_schema = {literal(schema)}"
    return sql + " ORDER BY ordinal_position"


def row_count_sql(qualified_table: str) -> str:
    return f"SELECT COUNT(*) AS cnt FROM {identifier(qualified_table)}"


def date_range_sql(qualified_table: str, column: str) -> str:
    col = identifier(column)
    return (
        f"SELECT MIN({col}) AS first_record, MAX({col}) AS latest_record "
        f"FROM {identifier(qualified_table)}"
    )


def categorical_sql(qualified_table: str, column: str, limit: int) -> str:
    col = identifier(column)
    return (
        f"SELECT {col} AS val, COUNT(*) AS cnt FROM {identifier(qualified_table)} "
        f"WHERE {col} IS NOT NULL GROUP BY {col} "
        f"ORDER BY cnt DESC, val ASC LIMIT {int(limit)}"
    )
