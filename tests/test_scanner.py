from datetime import date

import pytest

from domainops.core.errors import (
    ConnectivityError,
    QueryError,
    TableEmptyError,
    TableNotFoundError,
)
from domainops.core.models import (
    CategoricalValue,
    DomainRef,
    ReferenceSchema,
    SchemaField,
)
from domainops.core.scanner import TableScanner, dedupe_columns, rank_categorical_values


def _schema(freshness_column: str | None = None) -> ReferenceSchema:
    return ReferenceSchema(
        table_name="udt_sales",
        display_name="Sales",
        freshness_column=freshness_column,
        fields=(
            SchemaField(name="Id", column="id", type="int"),
            SchemaField(name="Brand", column="brand", type="text", is_categorical=True),
            SchemaField(name="Region", column="region", type="text", is_categorical=True),
            SchemaField(name="Created", column="created_date", type="date"),
        ),
    )


class _Storage:
    def __init__(
        self,
        columns=("id", "brand", "region", "created_date"),
        rows=12,
        samples=None,
        fail_on=(),
    ):
        self.columns = list(columns)
        self.rows = rows
        self.samples = samples or {}
        self.fail_on = set(fail_on)
        self.calls: list[str] = []
        self.closed = False

    def list_columns(self, table: str) -> list[str]:
        self.calls.append("list_columns")
        if "list_columns" in self.fail_on:
            raise TableNotFoundError(f"{table} missing")
        return self.columns

    def row_count(self, table: str) -> int:
        self.calls.append("row_count")
        if "row_count" in self.fail_on:
            raise QueryError("count failed")
        return self.rows

    def date_range(self, table: str, column: str):
        self.calls.append(f"date_range:{column}")
        if "date_range" in self.fail_on:
            raise QueryError("bad dates")
        return date(2024, 1, 2), date(2025, 6, 30)

    def sample_categorical(self, table: str, column: str, limit: int):
        self.calls.append(f"sample:{column}:{limit}")
        if f"sample:{column}" in self.fail_on:
            raise ConnectivityError("dropped")
        return self.samples.get(column, [])

    def close(self) -> None:
        self.closed = True


class _Provider:
    def __init__(self, storage):
        self.storage = storage

    def for_domain(self, ref: DomainRef):
        return self.storage


def test_dedupe_columns_keeps_first_occurrence():
    kept, dupes = dedupe_columns("acme", ["id", "name", "id", "email", "name"])

    assert kept == ["id", "name", "email"]
    assert dupes == ["id", "name"]


def test_rank_categorical_values_drops_empty_sorts_and_truncates():
    raw = [("b", 5), (None, 100), ("", 50), ("a", 5), ("c", 9), ("d", 1)]

    ranked = rank_categorical_values(raw, limit=3)

    assert ranked == (
        CategoricalValue("c", 9),
        CategoricalValue("a", 5),
        CategoricalValue("b", 5),
    )


def test_rank_categorical_values_merges_repeated_values():
    assert rank_categorical_values([(1, 2), ("1", 3)], limit=5) == (CategoricalValue("1", 5),)


def test_scan_builds_snapshot_and_closes_storage():
    storage = _Storage(samples={"brand": [("Zeta", 4), ("Alpha", 8)]})
    scanner = TableScanner(_Provider(storage), sample_limit=10)

    snap = scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())

    assert snap.domain == "acme"
    assert snap.columns == ("id", "brand", "region", "created_date")
    assert snap.row_count == 12
    assert snap.first_record == date(2024, 1, 2)
    assert snap.last_record == date(2025, 6, 30)
    assert snap.categorical_samples == {
        "brand": (CategoricalValue("Alpha", 8), CategoricalValue("Zeta", 4))
    }
    assert snap.warnings == ()
    assert "date_range:created_date" in storage.calls
    assert "sample:brand:10" in storage.calls
    assert storage.closed is True


def test_scan_uses_freshness_column_for_date_range():
    storage = _Storage(columns=("id", "updated_at"))
    scanner = TableScanner(_Provider(storage))

    scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema(freshness_column="updated_at"))

    assert "date_range:updated_at" in storage.calls


def test_scan_skips_date_range_and_samples_for_absent_columns():
    storage = _Storage(columns=("id", "brand"))
    scanner = TableScanner(_Provider(storage))

    snap = scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())

    assert snap.first_record is None
    assert not any(c.startswith("date_range") for c in storage.calls)
    assert not any(c.startswith("sample:region") for c in storage.calls)


def test_scan_records_duplicate_columns_as_warning():
    storage = _Storage(columns=("id", "brand", "id"))
    scanner = TableScanner(_Provider(storage))

    snap = scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())

    assert snap.columns == ("id", "brand")
    assert any("duplicate" in w for w in snap.warnings)


def test_scan_raises_empty_with_snapshot_columns():
    storage = _Storage(rows=0)
    scanner = TableScanner(_Provider(storage))

    with pytest.raises(TableEmptyError) as excinfo:
        scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())

    assert excinfo.value.snapshot.columns == ("id", "brand", "region", "created_date")
    assert excinfo.value.snapshot.row_count == 0
    assert not any(c.startswith("sample") for c in storage.calls)
    assert storage.closed is True


def test_scan_propagates_missing_table_and_count_failures():
    scanner = TableScanner(_Provider(_Storage(fail_on={"list_columns"})))
    with pytest.raises(TableNotFoundError):
        scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())

    scanner = TableScanner(_Provider(_Storage(fail_on={"row_count"})))
    with pytest.raises(QueryError):
        scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())


def test_scan_turns_optional_query_failures_into_warnings():
    storage = _Storage(
        samples={"region": [("emea", 3)]},
        fail_on={"date_range", "sample:brand"},
    )
    scanner = TableScanner(_Provider(storage))

    snap = scanner.scan(DomainRef(domain="acme"), "udt_sales", _schema())

    assert snap.first_record is None
    assert snap.categorical_samples == {"region": (CategoricalValue("emea", 3),)}
    assert len(snap.warnings) == 2
    assert any("Brand" in w for w in snap.warnings)


def test_scanner_rejects_non_positive_sample_limit():
    with pytest.raises(ValueError, match="sample_limit"):
        TableScanner(_Provider(_Storage()), sample_limit=0)
