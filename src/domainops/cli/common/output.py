"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from domainops.core.models import DomainRef, ScanError, ScanResult, ScanState
from domainops.core.registry import EntityInfo

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)

_STATUS_STYLE = {
    "active": "ok",
    "test": "ok",
    "empty": "warn",
    "not_found": "meta",
    "unknown": "err",
}

_CONFORMANCE_STYLE = {
    "reference": "title",
    "aligned": "ok",
    "diverged": "warn",
}


def _styled(value: str, styles: Mapping[str, str]) -> str:
    style = styles.get(value)
    return f"[{style}]{value}[/{style}]" if style else value


def _count(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def scan_summary(self, result: ScanResult) -> None:
        """Print the headline numbers of a scan run."""
        state_style = "ok" if result.state == ScanState.DONE else "warn"
        self.kv(
            {
                "State": f"[{state_style}]{result.state.value}[/{state_style}]",
                "Domains found": result.domains_found,
                "Active domains": result.active_domains,
                "Total records": _count(result.total_records),
                "Errors": result.error_count,
                "Duration": f"{result.duration_ms / 1000:.1f}s",
            }
        )

    def scan_errors_table(
        self, errors: Iterable[ScanError], title: str = "Domain errors"
    ) -> None:
        """Render per-domain errors and warnings of a scan run."""
        t = Table(title=title, show_lines=False)
        t.add_column("Domain", style="ok", no_wrap=True)
        t.add_column("Kind")
        t.add_column("Message", style="meta")

        for e in errors:
            style = "warn" if e.kind == "warning" else "err"
            t.add_row(e.domain, f"[{style}]{e.kind}[/{style}]", e.message)

        console.print(t)

    def domains_table(
        self, domains: Iterable[Mapping[str, Any]], title: str = "Domains"
    ) -> None:
        """
        Render domain records as persisted in domains.json.

        Expects mappings with `domain`, `status`, `records`, `latest_record`
        and an optional `conformance` object.
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Domain", style="ok", no_wrap=True)
        t.add_column("Status")
        t.add_column("Records", justify="right")
        t.add_column("Latest", style="meta")
        t.add_column("Conformance")
        t.add_column("Missing", justify="right")
        t.add_column("Extra", justify="right")
        t.add_column("Order", justify="right")

        for d in domains:
            conf = d.get("conformance") or {}
            t.add_row(
                str(d.get("domain", "")),
                _styled(str(d.get("status", "")), _STATUS_STYLE),
                _count(d.get("records")),
                str(d.get("latest_record") or "-"),
                _styled(str(conf.get("status", "-")), _CONFORMANCE_STYLE),
                str(len(conf.get("missing") or [])) if conf else "-",
                str(len(conf.get("extra") or [])) if conf else "-",
                str(len(conf.get("order_mismatches") or [])) if conf else "-",
            )

        console.print(t)

    def divergence_table(
        self, domains: Iterable[Mapping[str, Any]], title: str = "Divergences"
    ) -> None:
        """Render column-level differences of every diverged domain."""
        t = Table(title=title, show_lines=False)
        t.add_column("Domain", style="ok", no_wrap=True)
        t.add_column("Kind")
        t.add_column("Column")
        t.add_column("Field", style="meta")
        t.add_column("Position", justify="right")

        for d in domains:
            conf = d.get("conformance") or {}
            if conf.get("status") != "diverged":
                continue
            domain = str(d.get("domain", ""))
            for diff in conf.get("missing") or []:
                t.add_row(
                    domain, "[err]missing[/]", diff["column"],
                    diff.get("display_name", ""), str(diff.get("ref_position", "")),
                )
            for diff in conf.get("extra") or []:
                t.add_row(
                    domain, "[warn]extra[/]", diff["column"],
                    diff.get("display_name", ""), str(diff.get("domain_position", "")),
                )
            for diff in conf.get("order_mismatches") or []:
                t.add_row(
                    domain,
                    "order",
                    diff["column"],
                    diff.get("display_name", ""),
                    f"{diff.get('ref_position')} → {diff.get('domain_position')}",
                )

        if t.row_count:
            console.print(t)

    def entities_table(self, entities: Iterable[EntityInfo], title: str = "Entities") -> None:
        """Render the entity/model inventory of an entities tree."""
        t = Table(title=title, show_lines=False)
        t.add_column("Entity", style="ok", no_wrap=True)
        t.add_column("Model", no_wrap=True)
        t.add_column("Table")
        t.add_column("Fields", justify="right")
        t.add_column("Cat", justify="right")
        t.add_column("Domains", justify="right")
        t.add_column("Records", justify="right")
        t.add_column("Docs", style="meta")

        for entity in entities:
            for m in entity.models:
                docs = [
                    name
                    for name, present in (
                        ("json", m.has_schema_json),
                        ("md", m.has_schema_md),
                        ("domains", m.has_domains),
                        ("cat", m.has_categoricals),
                    )
                    if present
                ]
                domains = (
                    f"{m.active_domain_count}/{m.domain_count}"
                    if m.domain_count is not None
                    else "-"
                )
                t.add_row(
                    entity.name,
                    m.name,
                    m.table_name or "-",
                    _count(m.field_count),
                    _count(m.categorical_count),
                    domains,
                    _count(m.total_records),
                    ", ".join(docs),
                )

        console.print(t)

    def registry_table(self, refs: Iterable[DomainRef], title: str = "Registered domains") -> None:
        """Render domain registry entries."""
        t = Table(title=title, show_lines=False)
        t.add_column("Domain", style="ok", no_wrap=True)
        t.add_column("Type")
        t.add_column("Backend", style="meta")
        t.add_column("API domain", style="meta")

        for r in refs:
            t.add_row(
                r.domain,
                r.domain_type or "-",
                r.backend,
                r.api_domain or "",
            )

        console.print(t)


out = Out()
