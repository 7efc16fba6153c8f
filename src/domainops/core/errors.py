"""Error taxonomy for schema conformance scans.

Errors fall into two families. Per-domain errors (table missing or empty,
connectivity, query, timeout) are recorded on that domain's result and never
abort a scan run. Run-level errors (missing or malformed reference schema,
unavailable domain registry, persistence failure, cancellation) abort the
run before anything is written.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from domainops.core.models import TableSnapshot


class DomainOpsError(RuntimeError):
    """Base class for all domainops errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


# -- run-level (fatal) -----------------------------------------------------


class SchemaNotFoundError(DomainOpsError):
    """Raised when no schema.json exists for an (entity, model) pair."""


class MalformedSchemaError(DomainOpsError):
    """Raised when schema.json cannot be parsed or fails validation."""


class DiscoveryUnavailableError(DomainOpsError):
    """Raised when the domain registry cannot produce any domain to scan."""


class PersistenceError(DomainOpsError):
    """Raised when scan results cannot be written."""


class ScanCancelledError(DomainOpsError):
    """Raised when a scan run is cancelled before results are persisted."""


# -- per-domain (non-fatal) ------------------------------------------------


class DomainScanError(DomainOpsError):
    """Base class for failures scoped to a single domain."""

    kind = "error"


class TableNotFoundError(DomainScanError):
    """Raised when the domain does not host the table."""

    kind = "not_found"


class TableEmptyError(DomainScanError):
    """Raised when the table exists but holds zero rows.

    The snapshot (columns included) is still available on the exception.
    """

    kind = "empty"

    def __init__(self, snapshot: TableSnapshot, message: str = "table is empty"):
        super().__init__(message)
        self.snapshot = snapshot


class ConnectivityError(DomainScanError):
    """Raised when a domain backend cannot be reached or authenticated."""

    kind = "connectivity"


class QueryError(DomainScanError):
    """Raised when a query against a domain backend fails."""

    kind = "query_error"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ScanTimeoutError(DomainScanError):
    """Raised when a domain does not answer within its deadline."""

    kind = "timeout"
