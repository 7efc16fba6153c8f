"""Scan configuration.

Settings come from environment variables and may be overridden per call
(for example by CLI options). Invalid environment values fall back to the
defaults instead of failing; explicit overrides are validated.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

CONCURRENCY_ENV = "DOMAINOPS_CONCURRENCY"
TIMEOUT_ENV = "DOMAINOPS_TIMEOUT"
SAMPLE_LIMIT_ENV = "DOMAINOPS_SAMPLE_LIMIT"
REFERENCE_DOMAIN_ENV = "DOMAINOPS_REFERENCE_DOMAIN"
DOMAIN_TYPES_ENV = "DOMAINOPS_DOMAIN_TYPES"
REGISTRY_ENV = "DOMAINOPS_REGISTRY"

DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_SAMPLE_LIMIT = 50
DEFAULT_REFERENCE_DOMAIN = "lab"


def default_registry_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the registry path, honoring env override and XDG config home."""
    env = os.environ if environ is None else environ
    explicit = env.get(REGISTRY_ENV)
    if explicit:
        return Path(explicit).expanduser()
    xdg = env.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "domainops" / "domains.json"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 1 else default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_list(env: Mapping[str, str], name: str) -> tuple[str, ...]:
    raw = env.get(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ScanConfig:
    """
    Parameters of a scan run.

    Attributes:
        concurrency: Maximum number of domains scanned at the same time.
        timeout_seconds: Deadline for a single domain scan.
        sample_limit: Maximum distinct values kept per categorical field.
        reference_domain: Domain whose conformance is reported as `reference`.
        domain_types: Restrict discovery to these domain types (empty = all).
        registry_path: Location of the domain registry file.
    """

    concurrency: int = DEFAULT_CONCURRENCY
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    sample_limit: int = DEFAULT_SAMPLE_LIMIT
    reference_domain: str = DEFAULT_REFERENCE_DOMAIN
    domain_types: tuple[str, ...] = ()
    registry_path: Path | None = None

    def validate(self) -> None:
        """Raise `ValueError` if any field is out of range."""
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be > 0, got {self.timeout_seconds}"
            )
        if self.sample_limit < 1:
            raise ValueError(f"sample_limit must be >= 1, got {self.sample_limit}")
        if not self.reference_domain.strip():
            raise ValueError("reference_domain must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ScanConfig:
        """Build a config from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            concurrency=_env_int(env, CONCURRENCY_ENV, DEFAULT_CONCURRENCY),
            timeout_seconds=_env_float(env, TIMEOUT_ENV, DEFAULT_TIMEOUT_SECONDS),
            sample_limit=_env_int(env, SAMPLE_LIMIT_ENV, DEFAULT_SAMPLE_LIMIT),
            reference_domain=(
                env.get(REFERENCE_DOMAIN_ENV, "").strip() or DEFAULT_REFERENCE_DOMAIN
            ),
            domain_types=_env_list(env, DOMAIN_TYPES_ENV),
            registry_path=default_registry_path(env),
        )

    def with_overrides(self, **overrides: Any) -> ScanConfig:
        """Return a validated copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "domain_types" in changes:
            changes["domain_types"] = tuple(changes["domain_types"])
        if "registry_path" in changes:
            changes["registry_path"] = Path(changes["registry_path"])
        updated = replace(self, **changes)
        updated.validate()
        return updated
