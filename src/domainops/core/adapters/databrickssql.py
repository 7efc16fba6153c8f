from __future__ import annotations

import logging
from datetime import date
from typing import Any

from databricks.sdk import WorkspaceClient
from databricks.sdk.errors import DatabricksError, NotFound, PermissionDenied
from databricks.sdk.service.sql import (
    ExecuteStatementRequestOnWaitTimeout,
    StatementState,
)

from domainops.core import sql
from domainops.core.auth import get_client
from domainops.core.errors import (
    ConnectivityError,
    QueryError,
    ScanTimeoutError,
    TableNotFoundError,
)
from domainops.core.models import DomainRef

logger = logging.getLogger(__name__)

# Statement Execution API accepts wait timeouts between 5 and 50 seconds.
_MIN_WAIT_SECONDS = 5
_MAX_WAIT_SECONDS = 50


class DatabricksSqlStorage:
    """Storage backend for domains hosted as Unity Catalog schemas.

    Statements run on a SQL warehouse through the Databricks SDK
    Statement Execution API. The domain's table lives at
    `<catalog>.<schema>.<table>`.
    """

    def __init__(
        self,
        client: WorkspaceClient,
        *,
        warehouse_id: str,
        catalog: str,
        schema: str,
        timeout_seconds: float = 50.0,
    ):
        self.client = client
        self.warehouse_id = warehouse_id
        self.catalog = sql.identifier(catalog)
        self.schema = sql.identifier(schema)
        wait = int(min(max(timeout_seconds, _MIN_WAIT_SECONDS), _MAX_WAIT_SECONDS))
        self._wait_timeout = f"{wait}s"

    @classmethod
    def from_domain(cls, ref: DomainRef, timeout_seconds: float) -> DatabricksSqlStorage:
        """Build a backend from a registry entry (`warehouseId`, `catalog`, `schema`, `profile`)."""
        opts = ref.options
        missing = [k for k in ("warehouseId", "catalog", "schema") if not opts.get(k)]
        if missing:
            raise ConnectivityError(
                f"Domain `{ref.domain}` is missing {', '.join(missing)} "
                "for the databricks backend"
            )
        client = get_client(opts.get("profile"))
        try:
            return cls(
                client,
                warehouse_id=str(opts["warehouseId"]),
                catalog=str(opts["catalog"]),
                schema=str(opts["schema"]),
                timeout_seconds=timeout_seconds,
            )
        except QueryError as exc:
            raise ConnectivityError(f"Domain `{ref.domain}`: {exc}") from exc

    def _qualified(self, table: str) -> str:
        return f"{self.catalog}.{self.schema}.{sql.identifier(table)}"

    def _execute(self, statement: str) -> list[dict[str, Any]]:
        """Run one statement on the warehouse and return rows keyed by column name."""
        try:
            resp = self.client.statement_execution.execute_statement(
                statement=statement,
                warehouse_id=self.warehouse_id,
                wait_timeout=self._wait_timeout,
                on_wait_timeout=ExecuteStatementRequestOnWaitTimeout.CANCEL,
            )
        except NotFound as exc:
            raise TableNotFoundError(str(exc)) from exc
        except PermissionDenied as exc:
            raise ConnectivityError(f"No permission on warehouse: {exc}") from exc
        except DatabricksError as exc:
            raise QueryError(f"Statement failed: {exc}", cause=exc) from exc

        state = resp.status.state if resp.status else None
        if state == StatementState.CANCELED:
            raise ScanTimeoutError(f"Statement exceeded {self._wait_timeout}")
        if state != StatementState.SUCCEEDED:
            err = getattr(getattr(resp.status, "error", None), "message", None)
            raise QueryError(f"Statement {getattr(state, 'value', state)}: {err or 'no details'}")

        columns = [
            c.name
            for c in (getattr(getattr(resp.manifest, "schema", None), "columns", None) or [])
        ]
        data = getattr(resp.result, "data_array", None) or []
        return [dict(zip(columns, row)) for row in data]

    def list_columns(self, table: str) -> list[str]:
        rows = self._execute(
            sql.columns_sql(table, schema=self.schema, catalog=self.catalog)
        )
        if not rows:
            raise TableNotFoundError(f"table `{self._qualified(table)}` does not exist")
        return [str(r["column_name"]) for r in rows if r.get("column_name")]

    def row_count(self, table: str) -> int:
        rows = self._execute(sql.row_count_sql(self._qualified(table)))
        count = sql.parse_count(rows[0].get("cnt")) if rows else None
        if count is None:
            raise QueryError(f"Row count query for `{table}` returned no count")
        return count

    def date_range(self, table: str, column: str) -> tuple[date | None, date | None]:
        rows = self._execute(sql.date_range_sql(self._qualified(table), column))
        if not rows:
            return None, None
        row = rows[0]
        return sql.parse_date(row.get("first_record")), sql.parse_date(row.get("latest_record"))

    def sample_categorical(
        self, table: str, column: str, limit: int
    ) -> list[tuple[Any, int]]:
        rows = self._execute(sql.categorical_sql(self._qualified(table), column, limit))
        return [(r.get("val"), sql.parse_count(r.get("cnt")) or 0) for r in rows]
