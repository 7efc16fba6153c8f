"""Domain discovery.

The domain registry is owned outside this package; the engine only consumes
its listing. `FileDomainRegistry` reads the registry from a JSON file:

    {
      "domains": [
        {"domain": "lab", "domainType": "production", "backend": "http",
         "baseUrl": "https://lab.example.io", "tokenEnv": "LAB_TOKEN"},
        {"domain": "acme", "actualDomain": "acme-eu", "entities": ["sales"]}
      ]
    }

Keys other than `domain`, `domainType`, `actualDomain`, `backend` and
`entities` are passed through to the storage backend as options.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Protocol

from domainops.core.errors import DiscoveryUnavailableError
from domainops.core.models import DomainRef

logger = logging.getLogger(__name__)

_RESERVED_KEYS = {"domain", "domainType", "actualDomain", "backend", "entities"}


class DomainDiscovery(Protocol):
    """Interface for listing the domains expected to host a table."""

    def list_domains(self, entity: str, model: str) -> list[DomainRef]:
        """Return the domains to scan for an (entity, model) table."""
        ...


def _parse_entry(raw: Any, index: int) -> tuple[DomainRef, tuple[str, ...]]:
    if not isinstance(raw, dict):
        raise DiscoveryUnavailableError(f"Registry entry #{index} must be an object")
    domain = raw.get("domain")
    if not isinstance(domain, str) or not domain.strip():
        raise DiscoveryUnavailableError(f"Registry entry #{index} is missing `domain`")
    entities = raw.get("entities") or []
    if not isinstance(entities, list):
        raise DiscoveryUnavailableError(f"Registry entry `{domain}` has invalid `entities`")

    ref = DomainRef(
        domain=domain.strip(),
        domain_type=raw.get("domainType") or None,
        backend=str(raw.get("backend") or "http"),
        api_domain=raw.get("actualDomain") or None,
        options={k: v for k, v in raw.items() if k not in _RESERVED_KEYS},
    )
    return ref, tuple(str(e) for e in entities)


class FileDomainRegistry:
    """Domain registry backed by a JSON file."""

    def __init__(self, path: Path, *, domain_types: Iterable[str] = ()):
        self.path = Path(path)
        self.domain_types = tuple(domain_types)

    def _load(self) -> list[tuple[DomainRef, tuple[str, ...]]]:
        if not self.path.is_file():
            raise DiscoveryUnavailableError(f"Domain registry not found: {self.path}")
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise DiscoveryUnavailableError(
                f"Failed to read domain registry {self.path}: {exc}"
            ) from exc

        raw_domains = payload.get("domains") if isinstance(payload, dict) else None
        if not isinstance(raw_domains, list):
            raise DiscoveryUnavailableError(
                f"Domain registry {self.path} has no `domains` list"
            )
        return [_parse_entry(raw, i) for i, raw in enumerate(raw_domains)]

    def all_domains(self) -> list[DomainRef]:
        """Return every registered domain, unfiltered."""
        return [ref for ref, _ in self._load()]

    def accepts(self, ref: DomainRef) -> bool:
        """Return True when the domain passes the domain type filter."""
        if not self.domain_types or ref.domain_type is None:
            return True
        return ref.domain_type in self.domain_types

    def list_domains(self, entity: str, model: str) -> list[DomainRef]:
        """
        Return the domains expected to host the (entity, model) table.

        Raises:
            DiscoveryUnavailableError: If the registry cannot be read or no
                domain matches.
        """
        selected: list[DomainRef] = []
        seen: set[str] = set()
        for ref, entities in self._load():
            if entities and entity not in entities:
                continue
            if not self.accepts(ref):
                continue
            if ref.domain in seen:
                logger.warning("Domain %s is registered twice; keeping the first entry", ref.domain)
                continue
            seen.add(ref.domain)
            selected.append(ref)

        if not selected:
            raise DiscoveryUnavailableError(
                f"No domains registered for {entity}/{model}",
                details={"domain_types": list(self.domain_types)},
            )
        logger.info("Discovered %d domain(s) for %s/%s", len(selected), entity, model)
        return selected


class StaticDomainList:
    """A fixed selection of domains, for example picked interactively."""

    def __init__(self, domains: Iterable[DomainRef]):
        self.domains = list(domains)

    def list_domains(self, entity: str, model: str) -> list[DomainRef]:
        if not self.domains:
            raise DiscoveryUnavailableError(f"No domains selected for {entity}/{model}")
        return list(self.domains)
