"""Commands for listing entities, registered domains and persisted reports."""

from pathlib import Path

import typer

from domainops.cli.common.context import build_scan_context
from domainops.cli.common.exits import exit_from_exc, warn_exit
from domainops.cli.common.options import (
    DivergencesOpt,
    DomainTypeOpt,
    EntityOpt,
    RegistryOpt,
)
from domainops.cli.common.output import out
from domainops.core.errors import DomainOpsError
from domainops.core.registry import DOMAINS_FILE, list_entities
from domainops.core.report import read_report


def entities(
    entities_path: Path = typer.Argument(
        ..., help="Root folder holding <entity>/<model>/schema.json", file_okay=False
    ),
):
    """
    List entities and models with their documentation and scan status.
    """
    try:
        found = list_entities(entities_path)
    except DomainOpsError as e:
        exit_from_exc(e)

    if not found:
        warn_exit("No entities found", code=0)

    out.entities_table(found)


def domains(
    registry: Path | None = RegistryOpt,
    entity: str | None = EntityOpt,
    domain_type: list[str] = DomainTypeOpt,
):
    """
    List registered domains.
    """
    appctx = build_scan_context(registry=registry, domain_types=domain_type)

    try:
        if entity:
            refs = appctx.registry.list_domains(entity, "")
        else:
            refs = [r for r in appctx.registry.all_domains() if appctx.registry.accepts(r)]
    except DomainOpsError as e:
        exit_from_exc(e)

    if not refs:
        warn_exit("No domains registered", code=0)

    out.registry_table(refs, title=f"Registered domains ({appctx.registry.path})")


def report(
    path: Path = typer.Argument(..., help="domains.json, or the folder holding it"),
    divergences: bool = DivergencesOpt,
):
    """
    Show a persisted conformance report.
    """
    if path.is_dir():
        path = path / DOMAINS_FILE

    try:
        data = read_report(path)
    except DomainOpsError as e:
        exit_from_exc(e)

    out.header(f"{data.get('display_name')} ({data.get('table_name')})")
    summary = data.get("summary") or {}
    out.kv(
        {
            "Last scanned": data.get("last_scanned", "-"),
            "Reference domain": data.get("reference_domain") or "-",
            "Domains": summary.get("total_domains", 0),
            "Active": summary.get("active_domains", 0),
            "Empty": summary.get("empty_domains", 0),
            "Unknown": summary.get("unknown_domains", 0),
            "Total records": f"{summary.get('total_records', 0):,}",
        }
    )

    records = data.get("domains") or []
    out.domains_table(records)
    if divergences:
        out.divergence_table(records)
