"""Core domain models for schema conformance scans.

These models describe the reference schema, per-domain scan snapshots and
the aggregate report files. They are immutable, free of backend SDK types
and of CLI concerns, and serialize to the JSON layout of `domains.json` and
`categoricals.json` through explicit `to_dict()` methods.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping


class DomainStatus(str, Enum):
    """
    Presence status of the table in one domain.

    Values:
        ACTIVE: The table exists and holds rows.
        TEST: The table holds rows in a domain registered as a test domain.
        EMPTY: The table exists but holds no rows.
        NOT_FOUND: The domain does not host the table.
        UNKNOWN: The domain could not be scanned.
    """

    ACTIVE = "active"
    TEST = "test"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ConformanceStatus(str, Enum):
    """Structural verdict for one domain's table against the reference."""

    REFERENCE = "reference"
    ALIGNED = "aligned"
    DIVERGED = "diverged"


class ScanState(str, Enum):
    """
    Lifecycle of a scan run.

    IDLE -> SCANNING -> AGGREGATING -> WRITING -> DONE | PARTIAL_FAILURE.
    FAILED and CANCELLED are terminal states reached without writing.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    AGGREGATING = "aggregating"
    WRITING = "writing"
    DONE = "done"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DomainScanState(str, Enum):
    """Lifecycle of a single domain scan within a run."""

    PENDING = "pending"
    SUCCESS = "success"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class SchemaField:
    """
    One field of a reference schema.

    Attributes:
        name: Human-readable field name (also the key in categoricals.json).
        column: Physical column name in the domain table.
        type: Declared data type.
        field_id: Optional platform field identifier.
        group: Optional grouping used for documentation.
        is_key: True for the record key column.
        is_categorical: True when distinct values are worth cataloguing.
        description: Optional free-text description.
        tags: Optional free-form tags.
    """

    name: str
    column: str
    type: str
    field_id: int | None = None
    group: str | None = None
    is_key: bool = False
    is_categorical: bool = False
    description: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReferenceSchema:
    """Canonical table definition loaded from schema.json (read-only)."""

    table_name: str
    display_name: str
    fields: tuple[SchemaField, ...]
    freshness_column: str | None = None
    ai_package: bool = False
    fuel_stage: str | None = None
    model: str | None = None
    description: str | None = None
    status: str | None = None
    resource_url: str | None = None

    @property
    def columns(self) -> list[str]:
        """Column names in declared order."""
        return [f.column for f in self.fields]

    @property
    def categorical_fields(self) -> list[SchemaField]:
        """Fields flagged as categorical, in declared order."""
        return [f for f in self.fields if f.is_categorical]

    def display_names(self) -> dict[str, str]:
        """Return a column -> field name mapping."""
        return {f.column: f.name for f in self.fields}


@dataclass(frozen=True)
class DomainRef:
    """
    A domain registry entry: where a copy of the table is expected to live.

    Attributes:
        domain: Domain slug.
        domain_type: Optional type (for example `production` or `test`).
        backend: Name of the storage backend used to reach the domain.
        api_domain: Optional host alias used for API calls.
        options: Backend-specific settings from the registry entry.
    """

    domain: str
    domain_type: str | None = None
    backend: str = "http"
    api_domain: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def effective_api_domain(self) -> str:
        """Return the domain used for API calls."""
        return self.api_domain or self.domain


@dataclass(frozen=True)
class CategoricalValue:
    """An observed categorical value and its row count."""

    value: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "count": self.count}


@dataclass(frozen=True)
class CategoricalField:
    """Observed values of one categorical field, per domain."""

    column: str
    field_id: int | None = None
    group: str | None = None
    by_domain: Mapping[str, tuple[CategoricalValue, ...]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "field_id": self.field_id,
            "group": self.group,
            "by_domain": {
                domain: [v.to_dict() for v in values]
                for domain, values in self.by_domain.items()
            },
        }


@dataclass(frozen=True)
class TableSnapshot:
    """What one domain reported for the table during a scan."""

    domain: str
    columns: tuple[str, ...]
    row_count: int
    first_record: date | None = None
    last_record: date | None = None
    categorical_samples: Mapping[str, tuple[CategoricalValue, ...]] = field(
        default_factory=dict
    )
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ColumnDiff:
    """One column-level difference between the reference and a domain."""

    column: str
    display_name: str | None = None
    ref_position: int | None = None
    domain_position: int | None = None
    ref_index: int | None = None
    domain_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"column": self.column}
        for key in (
            "display_name",
            "ref_position",
            "domain_position",
            "ref_index",
            "domain_index",
        ):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class StructuralConformance:
    """Structural diff of a domain's column layout against the reference."""

    status: ConformanceStatus
    ref_columns: int
    domain_columns: int
    missing: tuple[ColumnDiff, ...] = ()
    extra: tuple[ColumnDiff, ...] = ()
    order_mismatches: tuple[ColumnDiff, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "ref_columns": self.ref_columns,
            "domain_columns": self.domain_columns,
            "missing": [d.to_dict() for d in self.missing],
            "extra": [d.to_dict() for d in self.extra],
            "order_mismatches": [d.to_dict() for d in self.order_mismatches],
        }


@dataclass(frozen=True)
class DomainRecord:
    """Per-domain entry of domains.json."""

    domain: str
    status: DomainStatus
    records: int | None = None
    first_record: date | None = None
    latest_record: date | None = None
    source_systems: tuple[str, ...] = ()
    brands: tuple[str, ...] = ()
    notes: str | None = None
    conformance: StructuralConformance | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "domain": self.domain,
            "status": self.status.value,
            "records": self.records,
            "first_record": _iso(self.first_record),
            "latest_record": _iso(self.latest_record),
            "source_systems": list(self.source_systems),
            "brands": list(self.brands),
        }
        if self.notes:
            out["notes"] = self.notes
        out["conformance"] = self.conformance.to_dict() if self.conformance else None
        return out


@dataclass(frozen=True)
class DomainsSummary:
    """Roll-up counts over all domain records of a scan."""

    total_domains: int
    active_domains: int
    empty_domains: int
    unknown_domains: int
    total_records: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_domains": self.total_domains,
            "active_domains": self.active_domains,
            "empty_domains": self.empty_domains,
            "unknown_domains": self.unknown_domains,
            "total_records": self.total_records,
        }


@dataclass(frozen=True)
class DomainsFile:
    """Aggregate root persisted as domains.json."""

    table_name: str
    display_name: str
    last_scanned: date
    summary: DomainsSummary
    domains: tuple[DomainRecord, ...]
    fuel_stage: str | None = None
    model: str | None = None
    reference_domain: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "display_name": self.display_name,
            "fuel_stage": self.fuel_stage,
            "model": self.model,
            "last_scanned": self.last_scanned.isoformat(),
            "reference_domain": self.reference_domain,
            "summary": self.summary.to_dict(),
            "domains": [d.to_dict() for d in self.domains],
        }


@dataclass(frozen=True)
class CategoricalsFile:
    """Aggregate root persisted as categoricals.json."""

    table_name: str
    display_name: str
    last_scanned: date
    fields: Mapping[str, CategoricalField]

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "display_name": self.display_name,
            "last_scanned": self.last_scanned.isoformat(),
            "fields": {name: f.to_dict() for name, f in self.fields.items()},
        }


@dataclass(frozen=True)
class ScanError:
    """A per-domain problem reported by a scan run."""

    domain: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.domain}: {self.kind} - {self.message}"


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a scan run as returned to callers."""

    domains_found: int
    active_domains: int
    total_records: int
    duration_ms: int
    state: ScanState
    errors: tuple[ScanError, ...] = ()

    @property
    def error_count(self) -> int:
        return len(self.errors)


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None
