"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from domainops.cli.common.exits import die
from domainops.core.config import ScanConfig, default_registry_path
from domainops.core.discovery import FileDomainRegistry


@dataclass
class ScanAppContext:
    """Application context holding the effective scan config and domain registry."""

    config: ScanConfig
    registry: FileDomainRegistry


def build_scan_context(
    *,
    registry: Path | None = None,
    reference_domain: str | None = None,
    domain_types: list[str] | None = None,
    concurrency: int | None = None,
    timeout: float | None = None,
    sample_limit: int | None = None,
) -> ScanAppContext:
    """Build the scan context from the environment and command-line overrides.

    Options given on the command line win over `DOMAINOPS_*` variables.
    Invalid values exit with code 2.
    """
    try:
        config = ScanConfig.from_env().with_overrides(
            registry_path=registry,
            reference_domain=reference_domain,
            domain_types=domain_types or None,
            concurrency=concurrency,
            timeout_seconds=timeout,
            sample_limit=sample_limit,
        )
    except ValueError as exc:
        die(f"Invalid configuration: {exc}", code=2)

    registry_file = FileDomainRegistry(
        config.registry_path or default_registry_path(),
        domain_types=config.domain_types,
    )
    return ScanAppContext(config=config, registry=registry_file)
