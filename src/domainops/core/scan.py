"""Scan run orchestration.

A scan run loads the reference schema, discovers the domains expected to
host the table, scans them concurrently with bounded parallelism and, once
every domain has produced a result, aggregates and persists the report
files. The functionality here is synchronous from the caller's point of
view; concurrency and deadlines are explicit and owned by `ScanRun`.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, wait
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

from domainops.core.categoricals import aggregate_categoricals
from domainops.core.config import ScanConfig, default_registry_path
from domainops.core.discovery import DomainDiscovery, FileDomainRegistry
from domainops.core.errors import (
    DiscoveryUnavailableError,
    DomainOpsError,
    DomainScanError,
    ScanCancelledError,
    ScanTimeoutError,
    TableEmptyError,
    TableNotFoundError,
)
from domainops.core.models import (
    CategoricalField,
    DomainRecord,
    DomainRef,
    DomainScanState,
    ReferenceSchema,
    ScanError,
    ScanResult,
    ScanState,
)
from domainops.core.registry import SchemaRegistry, split_schema_path
from domainops.core.report import (
    ReportWriter,
    build_categoricals_file,
    build_domain_record,
    build_domains_file,
    empty_record,
    generate_schema_markdown,
    not_found_record,
    unknown_record,
)
from domainops.core.scanner import StorageProvider, TableScanner
from domainops.core.storage import StorageFactory

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, DomainScanState, str], None]

WARNING_KIND = "warning"
POLL_INTERVAL_SECONDS = 0.1


@dataclass
class DomainOutcome:
    """Result of scanning one domain, as seen by the orchestrator."""

    ref: DomainRef
    state: DomainScanState
    record: DomainRecord
    categoricals: dict[str, CategoricalField] = field(default_factory=dict)
    errors: list[ScanError] = field(default_factory=list)

    @property
    def detail(self) -> str:
        if self.state == DomainScanState.SUCCESS:
            conformance = self.record.conformance
            verdict = conformance.status.value if conformance else "-"
            return f"{self.record.records} rows, {verdict}"
        if self.state == DomainScanState.ERROR:
            return self.record.notes or "error"
        return self.state.value


class _Slot:
    """One unit of the run's concurrency semaphore, released at most once."""

    def __init__(self, semaphore: threading.Semaphore):
        self._semaphore = semaphore
        self._lock = threading.Lock()
        self._held = False

    def acquire(self, stop: threading.Event, poll_interval: float) -> bool:
        """Wait for a free slot; give up and return False once `stop` is set."""
        while not self._semaphore.acquire(timeout=poll_interval):
            if stop.is_set():
                return False
        with self._lock:
            self._held = True
        return True

    def release(self) -> None:
        with self._lock:
            if not self._held:
                return
            self._held = False
        self._semaphore.release()


class ScanRun:
    """
    One scan of one table across all of its domains.

    State moves idle -> scanning -> aggregating -> writing and ends in
    `done` or `partial_failure`. Fatal problems end the run in `failed`;
    `cancel()` ends it in `cancelled`. Nothing is written unless the run
    reaches the writing step.
    """

    def __init__(
        self,
        schema_path: Path,
        *,
        config: ScanConfig | None = None,
        discovery: DomainDiscovery | None = None,
        storage_provider: StorageProvider | None = None,
        writer: ReportWriter | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ):
        self.schema_path = Path(schema_path)
        self.config = config or ScanConfig.from_env()
        self.config.validate()
        self.entities_root, self.entity, self.model = split_schema_path(self.schema_path)
        self.discovery = discovery or FileDomainRegistry(
            self.config.registry_path or default_registry_path(),
            domain_types=self.config.domain_types,
        )
        self.storage_provider = storage_provider or StorageFactory(
            timeout_seconds=self.config.timeout_seconds
        )
        self.writer = writer or ReportWriter(self.entities_root)
        self.on_progress = on_progress
        self.cancel_event = cancel_event or threading.Event()
        self.poll_interval = poll_interval
        self._clock = clock
        self._today = today
        self._started: dict[str, float] = {}
        self.state = ScanState.IDLE

    def cancel(self) -> None:
        """Request cancellation; the run stops at its next checkpoint."""
        self.cancel_event.set()

    def _set_state(self, state: ScanState) -> None:
        logger.debug("Scan %s/%s: %s -> %s", self.entity, self.model, self.state.value, state.value)
        self.state = state

    def _report(self, domain: str, state: DomainScanState, detail: str = "") -> None:
        if self.on_progress is not None:
            self.on_progress(domain, state, detail)

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise ScanCancelledError(
                f"Scan of {self.entity}/{self.model} cancelled; nothing was written"
            )

    def run(self) -> ScanResult:
        """
        Execute the scan run.

        Returns:
            A ScanResult summarizing the persisted report.

        Raises:
            SchemaNotFoundError, MalformedSchemaError: Reference schema problems.
            DiscoveryUnavailableError: No domain could be discovered.
            PersistenceError: The report files could not be written.
            ScanCancelledError: The run was cancelled before writing.
        """
        started = self._clock()
        try:
            result = self._run(started)
        except ScanCancelledError:
            self._set_state(ScanState.CANCELLED)
            raise
        except DomainOpsError:
            self._set_state(ScanState.FAILED)
            raise
        logger.info(
            "Scan of %s/%s finished: %s (%d domains, %d errors, %d ms)",
            self.entity,
            self.model,
            result.state.value,
            result.domains_found,
            result.error_count,
            result.duration_ms,
        )
        return result

    def _run(self, started: float) -> ScanResult:
        schema = SchemaRegistry(self.entities_root).load(self.entity, self.model)
        domains = self.discovery.list_domains(self.entity, self.model)
        if not domains:
            raise DiscoveryUnavailableError(
                f"No domains registered for {self.entity}/{self.model}"
            )
        self._check_cancelled()

        self._set_state(ScanState.SCANNING)
        outcomes = self._scan_all(schema, domains)

        self._set_state(ScanState.AGGREGATING)
        scanned_on = self._today()
        domains_file = build_domains_file(
            schema,
            [o.record for o in outcomes],
            model=self.model,
            reference_domain=self.config.reference_domain,
            scanned_on=scanned_on,
        )
        categoricals_file = build_categoricals_file(
            schema, [o.categoricals for o in outcomes], scanned_on=scanned_on
        )
        self._check_cancelled()

        self._set_state(ScanState.WRITING)
        self.writer.persist(self.entity, self.model, domains_file, categoricals_file)

        errors = [e for o in outcomes for e in o.errors]
        failed = any(e.kind != WARNING_KIND for e in errors)
        self._set_state(ScanState.PARTIAL_FAILURE if failed else ScanState.DONE)
        return ScanResult(
            domains_found=domains_file.summary.total_domains,
            active_domains=domains_file.summary.active_domains,
            total_records=domains_file.summary.total_records,
            duration_ms=int((self._clock() - started) * 1000),
            state=self.state,
            errors=tuple(errors),
        )

    def _worker(
        self,
        fut: Future,
        slot: _Slot,
        stop: threading.Event,
        scanner: TableScanner,
        ref: DomainRef,
        schema: ReferenceSchema,
    ) -> None:
        if not slot.acquire(stop, self.poll_interval):
            fut.cancel()
            return
        try:
            if stop.is_set() or not fut.set_running_or_notify_cancel():
                return
            self._started[ref.domain] = self._clock()
            try:
                fut.set_result(scanner.scan(ref, schema.table_name, schema))
            except Exception as e:  # noqa: BLE001
                fut.set_exception(e)
        finally:
            slot.release()

    def _scan_all(
        self, schema: ReferenceSchema, domains: list[DomainRef]
    ) -> list[DomainOutcome]:
        """
        Scan every domain, honoring per-domain deadlines and cancellation.

        Each domain runs on its own daemon thread and must take one of
        `concurrency` slots first. An abandoned domain gives its slot back
        right away, so a hung backend call never holds up queued domains.
        """
        scanner = TableScanner(self.storage_provider, sample_limit=self.config.sample_limit)
        timeout = self.config.timeout_seconds
        outcomes: dict[str, DomainOutcome] = {}
        semaphore = threading.Semaphore(self.config.concurrency)
        stop = threading.Event()

        pending: dict[Future, tuple[DomainRef, _Slot]] = {}
        try:
            for ref in domains:
                fut: Future = Future()
                slot = _Slot(semaphore)
                pending[fut] = (ref, slot)
                threading.Thread(
                    target=self._worker,
                    args=(fut, slot, stop, scanner, ref, schema),
                    name=f"domainops-scan-{ref.domain}",
                    daemon=True,
                ).start()
                self._report(ref.domain, DomainScanState.PENDING)

            while pending:
                self._check_cancelled()
                done, _ = wait(
                    list(pending), timeout=self.poll_interval, return_when=FIRST_COMPLETED
                )
                for fut in done:
                    ref, _ = pending.pop(fut)
                    outcomes[ref.domain] = self._outcome(ref, schema, fut)
                    self._report(ref.domain, outcomes[ref.domain].state, outcomes[ref.domain].detail)

                now = self._clock()
                for fut, (ref, slot) in list(pending.items()):
                    begun = self._started.get(ref.domain)
                    if begun is None or now - begun < timeout:
                        continue
                    del pending[fut]
                    slot.release()
                    logger.warning("Domain %s exceeded %.1fs; abandoning", ref.domain, timeout)
                    outcomes[ref.domain] = self._failure(
                        ref, ScanTimeoutError(f"no answer within {timeout:g}s")
                    )
                    self._report(ref.domain, DomainScanState.ERROR, outcomes[ref.domain].detail)
        finally:
            stop.set()
            for fut in pending:
                fut.cancel()

        return [outcomes[ref.domain] for ref in domains]

    def _failure(self, ref: DomainRef, exc: BaseException) -> DomainOutcome:
        kind = exc.kind if isinstance(exc, DomainScanError) else "error"
        message = str(exc) or type(exc).__name__
        return DomainOutcome(
            ref=ref,
            state=DomainScanState.ERROR,
            record=unknown_record(ref.domain, f"{kind}: {message}"),
            errors=[ScanError(domain=ref.domain, kind=kind, message=message)],
        )

    def _outcome(
        self, ref: DomainRef, schema: ReferenceSchema, fut: Future
    ) -> DomainOutcome:
        """Map a finished domain scan to its record, catalog and errors."""
        try:
            snapshot = fut.result()
        except TableEmptyError as exc:
            return DomainOutcome(
                ref=ref,
                state=DomainScanState.EMPTY,
                record=empty_record(ref.domain),
                errors=[
                    ScanError(domain=ref.domain, kind=WARNING_KIND, message=w)
                    for w in exc.snapshot.warnings
                ],
            )
        except TableNotFoundError:
            return DomainOutcome(
                ref=ref, state=DomainScanState.NOT_FOUND, record=not_found_record(ref.domain)
            )
        except Exception as e:  # noqa: BLE001
            logger.warning("Domain %s failed: %s", ref.domain, e)
            return self._failure(ref, e)

        return DomainOutcome(
            ref=ref,
            state=DomainScanState.SUCCESS,
            record=build_domain_record(
                schema,
                snapshot,
                is_reference=ref.domain == self.config.reference_domain,
                domain_type=ref.domain_type,
            ),
            categoricals=aggregate_categoricals(schema, snapshot),
            errors=[
                ScanError(domain=ref.domain, kind=WARNING_KIND, message=w)
                for w in snapshot.warnings
            ],
        )


def scan_table(
    schema_path: Path,
    *,
    config: ScanConfig | None = None,
    discovery: DomainDiscovery | None = None,
    storage_provider: StorageProvider | None = None,
    writer: ReportWriter | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
) -> ScanResult:
    """Scan one table across its domains and persist domains.json and categoricals.json."""
    return ScanRun(
        schema_path,
        config=config,
        discovery=discovery,
        storage_provider=storage_provider,
        writer=writer,
        on_progress=on_progress,
        cancel_event=cancel_event,
    ).run()


def generate_schema_doc(
    schema_path: Path,
    *,
    writer: ReportWriter | None = None,
    updated: date | None = None,
) -> Path:
    """Render schema.md next to schema.json and return its path."""
    root, entity, model = split_schema_path(Path(schema_path))
    schema = SchemaRegistry(root).load(entity, model)
    markdown = generate_schema_markdown(schema, updated=updated or date.today())
    return (writer or ReportWriter(root)).write_schema_doc(entity, model, markdown)
