import json
from datetime import date

import httpx
import pytest

from domainops.core.adapters.httpsql import HttpSqlStorage
from domainops.core.errors import (
    ConnectivityError,
    QueryError,
    ScanTimeoutError,
    TableNotFoundError,
)
from domainops.core.models import DomainRef


def _storage(handler, **kw) -> HttpSqlStorage:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpSqlStorage("https://acme.example.io/", client=client, **kw)


def _sql_router(responses: dict[str, list[dict]], seen: list[str] | None = None):
    """Answer each statement with the rows of the first matching key."""

    def handler(request: httpx.Request) -> httpx.Response:
        statement = json.loads(request.content)["sql"]
        if seen is not None:
            seen.append(statement)
        for needle, rows in responses.items():
            if needle in statement:
                return httpx.Response(200, json={"data": rows})
        return httpx.Response(200, json={"data": []})

    return handler


def test_requests_go_to_execute_endpoint_with_token():
    captured: list[httpx.Request] = []

    def handler(request):
        captured.append(request)
        return httpx.Response(200, json={"data": [{"cnt": "42"}]})

    storage = _storage(handler, token="s3cret")

    assert storage.row_count("udt_sales") == 42
    request = captured[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/sqls/execute"
    assert request.url.params["token"] == "s3cret"
    assert json.loads(request.content) == {"sql": "SELECT COUNT(*) AS cnt FROM udt_sales"}


def test_list_columns_checks_existence_and_applies_regex():
    storage = _storage(
        _sql_router(
            {
                "information_schema.tables": [{"cnt": 1}],
                "information_schema.columns": [
                    {"column_name": "id"},
                    {"column_name": "_tenant"},
                    {"column_name": "brand"},
                ],
            }
        ),
        column_regex=r"^[a-z]",
    )

    assert storage.list_columns("udt_sales") == ["id", "brand"]


def test_list_columns_raises_when_table_is_absent():
    storage = _storage(_sql_router({"information_schema.tables": [{"cnt": 0}]}))

    with pytest.raises(TableNotFoundError):
        storage.list_columns("udt_sales")


def test_date_range_and_categorical_parsing():
    seen: list[str] = []
    storage = _storage(
        _sql_router(
            {
                "MIN(created_date)": [
                    {"first_record": "2024-01-05T10:00:00", "latest_record": "2025-02-01 23:59:59"}
                ],
                "GROUP BY brand": [{"val": "Acme", "cnt": "9"}, {"val": "Zeta", "cnt": 2}],
            },
            seen,
        )
    )

    assert storage.date_range("udt_sales", "created_date") == (date(2024, 1, 5), date(2025, 2, 1))
    assert storage.sample_categorical("udt_sales", "brand", 5) == [("Acme", 9), ("Zeta", 2)]
    assert seen[-1].endswith("LIMIT 5")


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(401), ConnectivityError),
        (httpx.Response(500, text="boom"), QueryError),
        (httpx.Response(200, text="<html>"), QueryError),
    ],
)
def test_http_errors_are_mapped(response, error):
    storage = _storage(lambda request: response)

    with pytest.raises(error):
        storage.row_count("udt_sales")


def test_transport_failures_are_mapped():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ScanTimeoutError):
        _storage(timeout).row_count("udt_sales")
    with pytest.raises(ConnectivityError):
        _storage(refused).row_count("udt_sales")


def test_unsafe_identifiers_are_refused():
    storage = _storage(_sql_router({}))

    with pytest.raises(QueryError, match="unsafe"):
        storage.row_count("udt_sales; DROP TABLE x")


def test_from_domain_resolves_url_template_and_token(monkeypatch):
    monkeypatch.setenv("ACME_TOKEN", "t0k")
    ref = DomainRef(
        domain="acme",
        api_domain="acme-eu",
        options={"baseUrlTemplate": "https://{domain}.example.io", "tokenEnv": "ACME_TOKEN"},
    )

    storage = HttpSqlStorage.from_domain(ref, 5.0)

    assert storage.base_url == "https://acme-eu.example.io"
    assert storage.token == "t0k"
    storage.close()


def test_from_domain_rejects_incomplete_entries(monkeypatch):
    monkeypatch.delenv("MISSING_TOKEN", raising=False)

    with pytest.raises(ConnectivityError, match="baseUrl"):
        HttpSqlStorage.from_domain(DomainRef(domain="acme"), 5.0)
    with pytest.raises(ConnectivityError, match="MISSING_TOKEN"):
        HttpSqlStorage.from_domain(
            DomainRef(domain="acme", options={"baseUrl": "https://x", "tokenEnv": "MISSING_TOKEN"}),
            5.0,
        )
    with pytest.raises(ConnectivityError, match="columnRegex"):
        HttpSqlStorage.from_domain(
            DomainRef(domain="acme", options={"baseUrl": "https://x", "columnRegex": "("}),
            5.0,
        )
