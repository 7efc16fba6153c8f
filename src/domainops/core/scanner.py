"""Per-domain table scanning.

The scanner performs the read-only queries needed to describe one domain's
copy of a table: its column layout, row count, record date range and
categorical value samples. It talks to the domain through a storage
capability and never writes anything.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol

from domainops.core.errors import DomainScanError, TableEmptyError
from domainops.core.models import (
    CategoricalValue,
    DomainRef,
    ReferenceSchema,
    TableSnapshot,
)
from domainops.core.storage import DomainStorage

logger = logging.getLogger(__name__)

DEFAULT_DATE_COLUMN = "created_date"
DEFAULT_SAMPLE_LIMIT = 50


class StorageProvider(Protocol):
    """Interface for resolving a domain's storage capability."""

    def for_domain(self, ref: DomainRef) -> DomainStorage:
        ...


def dedupe_columns(domain: str, columns: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Drop repeated column names, keeping the first occurrence.

    Returns:
        The deduplicated columns and the names that were repeated.
    """
    kept: list[str] = []
    seen: set[str] = set()
    duplicates: list[str] = []
    for col in columns:
        if col in seen:
            duplicates.append(col)
            continue
        seen.add(col)
        kept.append(col)
    if duplicates:
        logger.warning(
            "Domain %s returned duplicate column(s) %s; keeping first occurrence",
            domain,
            ", ".join(sorted(set(duplicates))),
        )
    return kept, duplicates


def rank_categorical_values(
    raw: Iterable[tuple[Any, int]], limit: int
) -> tuple[CategoricalValue, ...]:
    """
    Normalize (value, count) pairs: drop empty values, merge repeats, sort by
    count descending then value ascending, and keep at most `limit` entries.
    """
    counts: dict[str, int] = {}
    for value, count in raw:
        if value is None:
            continue
        text = str(value)
        if not text:
            continue
        counts[text] = counts.get(text, 0) + int(count or 0)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return tuple(CategoricalValue(value=v, count=c) for v, c in ranked[:limit])


class TableScanner:
    """Scan one domain's copy of a table through its storage capability."""

    def __init__(
        self,
        storage_provider: StorageProvider,
        *,
        sample_limit: int = DEFAULT_SAMPLE_LIMIT,
    ):
        if sample_limit < 1:
            raise ValueError("sample_limit must be >= 1")
        self.storage_provider = storage_provider
        self.sample_limit = sample_limit

    def scan(
        self, domain: DomainRef, table_name: str, schema: ReferenceSchema
    ) -> TableSnapshot:
        """
        Describe the table as it exists in one domain.

        Returns:
            A TableSnapshot for a table holding rows.

        Raises:
            TableNotFoundError: The domain does not host the table.
            TableEmptyError: The table holds zero rows (carries the snapshot).
            ConnectivityError, QueryError, ScanTimeoutError: The columns or
                row count could not be read.
        """
        storage = self.storage_provider.for_domain(domain)
        try:
            return self._scan(storage, domain.domain, table_name, schema)
        finally:
            close = getattr(storage, "close", None)
            if callable(close):
                close()

    def _scan(
        self,
        storage: DomainStorage,
        domain: str,
        table_name: str,
        schema: ReferenceSchema,
    ) -> TableSnapshot:
        warnings: list[str] = []

        columns, duplicates = dedupe_columns(domain, storage.list_columns(table_name))
        if duplicates:
            warnings.append(
                f"duplicate columns dropped: {', '.join(sorted(set(duplicates)))}"
            )
        present = set(columns)

        row_count = storage.row_count(table_name)
        logger.debug("Domain %s: %d column(s), %d row(s)", domain, len(columns), row_count)

        if row_count <= 0:
            raise TableEmptyError(
                TableSnapshot(
                    domain=domain,
                    columns=tuple(columns),
                    row_count=0,
                    warnings=tuple(warnings),
                )
            )

        first_record = last_record = None
        date_column = schema.freshness_column or DEFAULT_DATE_COLUMN
        if date_column in present:
            try:
                first_record, last_record = storage.date_range(table_name, date_column)
            except DomainScanError as exc:
                logger.warning("Domain %s: date range query failed: %s", domain, exc)
                warnings.append(f"date range on {date_column} failed: {exc}")

        samples: dict[str, tuple[CategoricalValue, ...]] = {}
        for field in schema.categorical_fields:
            if field.column not in present:
                continue
            try:
                raw = storage.sample_categorical(table_name, field.column, self.sample_limit)
            except DomainScanError as exc:
                logger.warning(
                    "Domain %s: categorical query for %s failed: %s", domain, field.name, exc
                )
                warnings.append(f"categorical query for {field.name} failed: {exc}")
                continue
            values = rank_categorical_values(raw, self.sample_limit)
            if values:
                samples[field.column] = values

        return TableSnapshot(
            domain=domain,
            columns=tuple(columns),
            row_count=row_count,
            first_record=first_record,
            last_record=last_record,
            categorical_samples=samples,
            warnings=tuple(warnings),
        )
