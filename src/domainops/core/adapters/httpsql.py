from __future__ import annotations

import logging
import os
import re
from datetime import date
from typing import Any

import httpx

from domainops.core import sql
from domainops.core.errors import (
    ConnectivityError,
    QueryError,
    ScanTimeoutError,
    TableNotFoundError,
)
from domainops.core.models import DomainRef

logger = logging.getLogger(__name__)

_EXECUTE_PATH = "/api/v1/sqls/execute"


class HttpSqlStorage:
    """Storage backend for domains exposing a SQL execute endpoint over HTTP.

    Each domain accepts `POST <base_url>/api/v1/sqls/execute?token=...` with a
    JSON body `{"sql": "..."}` and answers `{"data": [{...row...}, ...]}`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        column_regex: str | None = None,
        timeout_seconds: float = 60.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.column_rx = re.compile(column_regex) if column_regex else None
        self._client = client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_domain(cls, ref: DomainRef, timeout_seconds: float) -> HttpSqlStorage:
        """Build a backend from a registry entry (`baseUrl`, `tokenEnv`, `columnRegex`)."""
        opts = ref.options
        base_url = opts.get("baseUrl")
        if not base_url:
            template = opts.get("baseUrlTemplate")
            if not template:
                raise ConnectivityError(
                    f"Domain `{ref.domain}` has no `baseUrl` for the http backend"
                )
            base_url = str(template).format(domain=ref.effective_api_domain)

        token = None
        token_env = opts.get("tokenEnv")
        if token_env:
            token = os.environ.get(str(token_env))
            if not token:
                raise ConnectivityError(
                    f"Token env var `{token_env}` for domain `{ref.domain}` is not set"
                )

        try:
            return cls(
                str(base_url),
                token=token,
                column_regex=opts.get("columnRegex"),
                timeout_seconds=timeout_seconds,
            )
        except re.error as exc:
            raise ConnectivityError(
                f"Invalid `columnRegex` for domain `{ref.domain}`: {exc}"
            ) from exc

    def close(self) -> None:
        self._client.close()

    def _execute(self, statement: str) -> list[dict[str, Any]]:
        """Run one SQL statement and return its rows."""
        params = {"token": self.token} if self.token else None
        try:
            response = self._client.post(
                f"{self.base_url}{_EXECUTE_PATH}",
                params=params,
                json={"sql": statement},
            )
        except httpx.TimeoutException as exc:
            raise ScanTimeoutError(f"SQL request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise ConnectivityError(f"SQL request failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise ConnectivityError(
                f"Not authorized ({response.status_code}) at {self.base_url}"
            )
        if response.is_error:
            raise QueryError(f"SQL error ({response.status_code}): {response.text[:500]}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise QueryError("Failed to parse SQL response", cause=exc) from exc

        rows = payload.get("data") if isinstance(payload, dict) else None
        return [r for r in rows or [] if isinstance(r, dict)]

    def _table_exists(self, table: str) -> bool:
        rows = self._execute(sql.table_exists_sql(table))
        count = sql.parse_count(rows[0].get("cnt")) if rows else None
        return bool(count)

    def list_columns(self, table: str) -> list[str]:
        if not self._table_exists(table):
            raise TableNotFoundError(f"table `{table}` does not exist")
        rows = self._execute(sql.columns_sql(table))
        columns = [str(r.get("column_name") or "") for r in rows]
        columns = [c for c in columns if c]
        if self.column_rx:
            columns = [c for c in columns if self.column_rx.search(c)]
        return columns

    def row_count(self, table: str) -> int:
        rows = self._execute(sql.row_count_sql(table))
        count = sql.parse_count(rows[0].get("cnt")) if rows else None
        if count is None:
            raise QueryError(f"Row count query for `{table}` returned no count")
        return count

    def date_range(self, table: str, column: str) -> tuple[date | None, date | None]:
        rows = self._execute(sql.date_range_sql(table, column))
        if not rows:
            return None, None
        row = rows[0]
        return sql.parse_date(row.get("first_record")), sql.parse_date(row.get("latest_record"))

    def sample_categorical(
        self, table: str, column: str, limit: int
    ) -> list[tuple[Any, int]]:
        rows = self._execute(sql.categorical_sql(table, column, limit))
        return [(r.get("val"), sql.parse_count(r.get("cnt")) or 0) for r in rows]
