from datetime import date
from types import SimpleNamespace

import pytest
from databricks.sdk.errors import NotFound, PermissionDenied
from databricks.sdk.service.sql import StatementState

from domainops.core.adapters import databrickssql
from domainops.core.adapters.databrickssql import DatabricksSqlStorage
from domainops.core.errors import (
    ConnectivityError,
    QueryError,
    ScanTimeoutError,
    TableNotFoundError,
)
from domainops.core.models import DomainRef


def _response(columns, rows, state=StatementState.SUCCEEDED, error=None):
    return SimpleNamespace(
        status=SimpleNamespace(
            state=state, error=SimpleNamespace(message=error) if error else None
        ),
        manifest=SimpleNamespace(
            schema=SimpleNamespace(columns=[SimpleNamespace(name=c) for c in columns])
        ),
        result=SimpleNamespace(data_array=rows),
    )


class _StatementExecution:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def execute_statement(self, **kwargs):
        self.calls.append(kwargs)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _storage(*responses, timeout_seconds=30.0):
    client = SimpleNamespace(statement_execution=_StatementExecution(responses))
    storage = DatabricksSqlStorage(
        client,
        warehouse_id="wh-1",
        catalog="main",
        schema="acme",
        timeout_seconds=timeout_seconds,
    )
    return storage, client.statement_execution


def test_list_columns_queries_information_schema_of_the_catalog():
    storage, api = _storage(
        _response(["column_name", "ordinal_position"], [["id", "1"], ["brand", "2"]])
    )

    assert storage.list_columns("udt_sales") == ["id", "brand"]
    call = api.calls[0]
    assert call["warehouse_id"] == "wh-1"
    assert call["wait_timeout"] == "30s"
    assert "main.information_schema.columns" in call["statement"]
    assert "table_schema = 'acme'" in call["statement"]


def test_list_columns_without_rows_means_missing_table():
    storage, _ = _storage(_response(["column_name", "ordinal_position"], []))

    with pytest.raises(TableNotFoundError):
        storage.list_columns("udt_sales")


def test_row_count_date_range_and_samples_use_qualified_table():
    storage, api = _storage(
        _response(["cnt"], [["1200"]]),
        _response(["first_record", "latest_record"], [["2023-04-01", "2025-01-09T08:00:00Z"]]),
        _response(["val", "cnt"], [["crm", "800"], ["pos", "400"]]),
    )

    assert storage.row_count("udt_sales") == 1200
    assert storage.date_range("udt_sales", "created_date") == (date(2023, 4, 1), date(2025, 1, 9))
    assert storage.sample_categorical("udt_sales", "source_system", 10) == [
        ("crm", 800),
        ("pos", 400),
    ]
    assert all("main.acme.udt_sales" in c["statement"] for c in api.calls)


def test_wait_timeout_is_clamped_to_api_limits():
    assert _storage(timeout_seconds=1)[0]._wait_timeout == "5s"
    assert _storage(timeout_seconds=600)[0]._wait_timeout == "50s"


@pytest.mark.parametrize(
    ("item", "error"),
    [
        (NotFound("TABLE_OR_VIEW_NOT_FOUND"), TableNotFoundError),
        (PermissionDenied("no access"), ConnectivityError),
        (_response([], [], state=StatementState.CANCELED), ScanTimeoutError),
        (_response([], [], state=StatementState.FAILED, error="syntax"), QueryError),
    ],
)
def test_statement_failures_are_mapped(item, error):
    storage, _ = _storage(item)

    with pytest.raises(error):
        storage.row_count("udt_sales")


def test_from_domain_requires_warehouse_settings():
    with pytest.raises(ConnectivityError, match="warehouseId"):
        DatabricksSqlStorage.from_domain(
            DomainRef(domain="acme", backend="databricks", options={"catalog": "main"}), 10.0
        )


def test_from_domain_uses_profile_client(monkeypatch):
    profiles: list[str | None] = []
    fake_client = SimpleNamespace(statement_execution=_StatementExecution([]))

    def _get_client(profile=None):
        profiles.append(profile)
        return fake_client

    monkeypatch.setattr(databrickssql, "get_client", _get_client)
    ref = DomainRef(
        domain="acme",
        backend="databricks",
        options={"warehouseId": "wh", "catalog": "main", "schema": "acme", "profile": "prod"},
    )

    storage = DatabricksSqlStorage.from_domain(ref, 10.0)

    assert profiles == ["prod"]
    assert storage.client is fake_client
    assert storage._qualified("t") == "main.acme.t"


def test_from_domain_rejects_unsafe_catalog(monkeypatch):
    monkeypatch.setattr(databrickssql, "get_client", lambda profile=None: SimpleNamespace())
    ref = DomainRef(
        domain="acme",
        backend="databricks",
        options={"warehouseId": "wh", "catalog": "main;--", "schema": "acme"},
    )

    with pytest.raises(ConnectivityError, match="unsafe"):
        DatabricksSqlStorage.from_domain(ref, 10.0)
