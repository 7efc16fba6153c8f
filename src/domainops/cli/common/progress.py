"""Progress formatting utilities for the CLI."""

from __future__ import annotations

from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from domainops.core.models import DomainScanState

console = Console(stderr=True)
_MAX_DOMAIN_WIDTH = 32
_MAX_DETAIL_WIDTH = 60


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _display_domain_label(
    domain: str,
    domain_type: str | None = None,
    *,
    name_width: int = _MAX_DOMAIN_WIDTH,
) -> str:
    """
    Render a domain label for the live progress list.

    - With a type: `<domain>  (test)` with aligned type column.
    - Without a type: just `<domain>`, padded to the column width.
    """
    short = _truncate(domain, _MAX_DOMAIN_WIDTH)
    if not domain_type:
        return short.ljust(name_width)
    return f"{short.ljust(name_width)}  ({domain_type})"


def _style_for(state: DomainScanState) -> str:
    if state == DomainScanState.SUCCESS:
        return "green"
    if state == DomainScanState.ERROR:
        return "red"
    if state in (DomainScanState.EMPTY, DomainScanState.NOT_FOUND):
        return "dim"
    return "yellow"


class ScanProgress:
    """
    Live per-domain progress for a scan run.

    Use as a context manager and pass the instance as the scan's progress
    callback. Shows:
      - an overall progress bar (x/y scanned + failures)
      - per-domain spinner rows with elapsed timers (stopped per domain when
        its result arrives)
    """

    def __init__(
        self,
        *,
        domain_types: dict[str, str | None] | None = None,
        console_: Console | None = None,
    ):
        self.console = console_ or console
        self.domain_types = domain_types or {}
        self.failures = 0
        self.states: dict[str, DomainScanState] = {}
        self._name_width = min(
            max((len(d) for d in self.domain_types), default=0), _MAX_DOMAIN_WIDTH
        )

        self.overall = Progress(
            TextColumn("[bold]Overall[/]"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("failures=[bold red]{task.fields[failures]}[/]"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self.per_domain = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.fields[label]}[/]"),
            TextColumn(
                "[{task.fields[style]}]{task.fields[status]}[/{task.fields[style]}]"
            ),
            TextColumn("[dim]{task.fields[detail]}[/]"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self._overall_task = self.overall.add_task("overall", total=None, failures=0)
        self._tasks: dict[str, TaskID] = {}
        self._live = Live(
            Group(self.overall, self.per_domain),
            console=self.console,
            refresh_per_second=10,
            transient=True,
        )

    def __enter__(self) -> ScanProgress:
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        self._live.__exit__(*exc_info)

    def __call__(self, domain: str, state: DomainScanState, detail: str = "") -> None:
        self.states[domain] = state
        style = _style_for(state)

        if state == DomainScanState.PENDING:
            label = _display_domain_label(
                domain, self.domain_types.get(domain), name_width=self._name_width
            )
            self._tasks[domain] = self.per_domain.add_task(
                "", total=1, label=label, status="PENDING", style=style, detail=""
            )
            self.overall.update(self._overall_task, total=len(self._tasks))
            return

        if state == DomainScanState.ERROR:
            self.failures += 1
            self.overall.update(self._overall_task, failures=self.failures)

        task = self._tasks.get(domain)
        if task is not None:
            self.per_domain.update(
                task,
                status=state.value.upper(),
                style=style,
                detail=_truncate(detail, _MAX_DETAIL_WIDTH),
                completed=1,
            )
        self.overall.advance(self._overall_task, 1)
