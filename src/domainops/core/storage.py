"""Per-domain storage capability.

A domain's table is reached through a `DomainStorage` implementation, one
per backend technology. Implementations translate their own failures into
the per-domain errors of `domainops.core.errors`:

- `TableNotFoundError` when the table does not exist in the domain
- `ConnectivityError` when the backend cannot be reached or authenticated
- `ScanTimeoutError` when the backend does not answer in time
- `QueryError` for any other failed query
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Mapping, Protocol

from domainops.core.errors import ConnectivityError
from domainops.core.models import DomainRef

logger = logging.getLogger(__name__)


class DomainStorage(Protocol):
    """Interface for reading table metadata and samples from one domain."""

    def list_columns(self, table: str) -> list[str]:
        """Return the table's column names in physical order."""
        ...

    def row_count(self, table: str) -> int:
        """Return the number of rows in the table."""
        ...

    def date_range(self, table: str, column: str) -> tuple[date | None, date | None]:
        """Return the earliest and latest values of a date column."""
        ...

    def sample_categorical(
        self, table: str, column: str, limit: int
    ) -> list[tuple[Any, int]]:
        """Return up to `limit` (value, count) pairs for a column."""
        ...


StorageBuilder = Callable[[DomainRef, float], DomainStorage]


class StorageFactory:
    """
    Resolve the storage implementation for a domain.

    Backends are registered by name; the registry entry's `backend` key picks
    one. An unknown backend is a connectivity problem for that domain only.
    """

    def __init__(
        self,
        builders: Mapping[str, StorageBuilder] | None = None,
        *,
        timeout_seconds: float = 60.0,
    ):
        self._builders: dict[str, StorageBuilder] = dict(
            default_builders() if builders is None else builders
        )
        self.timeout_seconds = timeout_seconds

    @property
    def backends(self) -> list[str]:
        return sorted(self._builders)

    def for_domain(self, ref: DomainRef) -> DomainStorage:
        builder = self._builders.get(ref.backend)
        if builder is None:
            raise ConnectivityError(
                f"Unknown storage backend `{ref.backend}` "
                f"(available: {', '.join(self.backends) or 'none'})"
            )
        logger.debug("Using %s backend for domain %s", ref.backend, ref.domain)
        return builder(ref, self.timeout_seconds)


def default_builders() -> dict[str, StorageBuilder]:
    """Return the built-in backends keyed by registry name."""
    from domainops.core.adapters.databrickssql import DatabricksSqlStorage
    from domainops.core.adapters.httpsql import HttpSqlStorage

    return {
        "http": HttpSqlStorage.from_domain,
        "databricks": DatabricksSqlStorage.from_domain,
    }
