"""Commands for scanning tables and generating schema docs."""

from pathlib import Path

import typer

from domainops.cli.common.context import build_scan_context
from domainops.cli.common.exits import exit_from_exc, warn_exit
from domainops.cli.common.options import (
    ConcurrencyOpt,
    DocOpt,
    DomainTypeOpt,
    ReferenceDomainOpt,
    RegistryOpt,
    SampleLimitOpt,
    SchemaPathArg,
    SelectOpt,
    StrictOpt,
    TimeoutOpt,
)
from domainops.cli.common.output import out
from domainops.cli.common.progress import ScanProgress
from domainops.cli.tui import select_domains as tui_select_domains
from domainops.core.discovery import StaticDomainList
from domainops.core.errors import DomainOpsError, ScanCancelledError
from domainops.core.models import ScanState
from domainops.core.registry import DOMAINS_FILE, split_schema_path
from domainops.core.report import read_report
from domainops.core.scan import generate_schema_doc, scan_table

CANCELLED_EXIT_CODE = 130


def scan(
    schema_path: Path = SchemaPathArg,
    registry: Path | None = RegistryOpt,
    reference_domain: str | None = ReferenceDomainOpt,
    domain_type: list[str] = DomainTypeOpt,
    concurrency: int | None = ConcurrencyOpt,
    timeout: float | None = TimeoutOpt,
    sample_limit: int | None = SampleLimitOpt,
    select: bool = SelectOpt,
    doc: bool = DocOpt,
    strict: bool = StrictOpt,
):
    """
    Scan a table across its domains and write domains.json and categoricals.json.
    """
    appctx = build_scan_context(
        registry=registry,
        reference_domain=reference_domain,
        domain_types=domain_type,
        concurrency=concurrency,
        timeout=timeout,
        sample_limit=sample_limit,
    )

    try:
        _, entity, model = split_schema_path(schema_path)
        with out.status("Discovering domains..."):
            domains = appctx.registry.list_domains(entity, model)
    except DomainOpsError as e:
        exit_from_exc(e)

    if select:
        domains = tui_select_domains(domains)
        if not domains:
            warn_exit("No domains selected", code=0)

    out.header(f"Scanning {entity}/{model} across {len(domains)} domain(s)")

    try:
        with ScanProgress(domain_types={d.domain: d.domain_type for d in domains}) as progress:
            result = scan_table(
                schema_path,
                config=appctx.config,
                discovery=StaticDomainList(domains),
                on_progress=progress,
            )
    except (KeyboardInterrupt, ScanCancelledError) as e:
        exit_from_exc(e, message="Scan cancelled; nothing was written", code=CANCELLED_EXIT_CODE)
    except DomainOpsError as e:
        exit_from_exc(e)

    out.scan_summary(result)
    report = read_report(schema_path.parent / DOMAINS_FILE)
    out.domains_table(report.get("domains") or [], title=f"{report.get('display_name')} domains")
    if result.errors:
        out.scan_errors_table(result.errors)

    if doc:
        try:
            path = generate_schema_doc(schema_path)
        except DomainOpsError as e:
            exit_from_exc(e)
        out.success(f"Wrote {path}")

    if result.state == ScanState.PARTIAL_FAILURE:
        out.warn(f"{result.error_count} domain problem(s) reported")
        if strict:
            raise typer.Exit(1)
    else:
        out.success("Scan complete")


def doc(schema_path: Path = SchemaPathArg):
    """
    Generate schema.md next to schema.json.
    """
    try:
        path = generate_schema_doc(schema_path)
    except DomainOpsError as e:
        exit_from_exc(e)
    out.success(f"Wrote {path}")
