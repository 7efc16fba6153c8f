"""Report building and persistence.

Per-domain results are folded into the two aggregate files of a table,
`domains.json` and `categoricals.json`. Both are rebuilt from scratch on
every scan run and written atomically: each file is staged as a temp file in
the target directory and renamed into place, under a per-(entity, model)
lock so concurrent runs for the same table serialize at the write step.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Generator, Iterable, Mapping

from domainops.core.categoricals import merge_categoricals
from domainops.core.conformance import compute_conformance
from domainops.core.errors import DomainOpsError, PersistenceError
from domainops.core.models import (
    CategoricalField,
    CategoricalsFile,
    DomainRecord,
    DomainsFile,
    DomainsSummary,
    DomainStatus,
    ReferenceSchema,
    TableSnapshot,
)
from domainops.core.registry import CATEGORICALS_FILE, DOMAINS_FILE, SCHEMA_DOC_FILE

try:
    import fcntl as _fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False
    logging.getLogger(__name__).warning(
        "fcntl not available (non-POSIX). Cross-process write locking is disabled."
    )

logger = logging.getLogger(__name__)

SOURCE_SYSTEM_FIELD = "Source System"
BRAND_FIELD = "Brand"
DEFAULT_FUEL_STAGE = "unify"
LOCK_FILE = ".domainops.lock"

_STATUS_ORDER = {
    DomainStatus.ACTIVE: 0,
    DomainStatus.TEST: 1,
    DomainStatus.EMPTY: 2,
    DomainStatus.NOT_FOUND: 3,
    DomainStatus.UNKNOWN: 4,
}


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


def _observed_values(
    ref: ReferenceSchema, snapshot: TableSnapshot, field_name: str
) -> tuple[str, ...]:
    for field in ref.categorical_fields:
        if field.name == field_name:
            return tuple(v.value for v in snapshot.categorical_samples.get(field.column, ()))
    return ()


def build_domain_record(
    ref: ReferenceSchema,
    snapshot: TableSnapshot,
    *,
    is_reference: bool,
    domain_type: str | None = None,
) -> DomainRecord:
    """Build the record of a domain whose table holds rows."""
    status = DomainStatus.TEST if domain_type == "test" else DomainStatus.ACTIVE
    return DomainRecord(
        domain=snapshot.domain,
        status=status,
        records=snapshot.row_count,
        first_record=snapshot.first_record,
        latest_record=snapshot.last_record,
        source_systems=_observed_values(ref, snapshot, SOURCE_SYSTEM_FIELD),
        brands=_observed_values(ref, snapshot, BRAND_FIELD),
        notes="; ".join(snapshot.warnings) or None,
        conformance=compute_conformance(ref, snapshot, is_reference),
    )


def empty_record(domain: str) -> DomainRecord:
    return DomainRecord(domain=domain, status=DomainStatus.EMPTY, records=0)


def not_found_record(domain: str) -> DomainRecord:
    return DomainRecord(domain=domain, status=DomainStatus.NOT_FOUND)


def unknown_record(domain: str, message: str) -> DomainRecord:
    return DomainRecord(domain=domain, status=DomainStatus.UNKNOWN, notes=message)


def sort_records(
    records: Iterable[DomainRecord], reference_domain: str | None
) -> list[DomainRecord]:
    """Reference domain first, then by status, records (desc) and name."""
    return sorted(
        records,
        key=lambda r: (
            r.domain != reference_domain,
            _STATUS_ORDER[r.status],
            -(r.records or 0),
            r.domain,
        ),
    )


def summarize(records: Iterable[DomainRecord]) -> DomainsSummary:
    records = list(records)
    return DomainsSummary(
        total_domains=len(records),
        active_domains=sum(1 for r in records if r.status == DomainStatus.ACTIVE),
        empty_domains=sum(1 for r in records if r.status == DomainStatus.EMPTY),
        unknown_domains=sum(1 for r in records if r.status == DomainStatus.UNKNOWN),
        total_records=sum(
            r.records or 0
            for r in records
            if r.status in (DomainStatus.ACTIVE, DomainStatus.TEST)
        ),
    )


def build_domains_file(
    ref: ReferenceSchema,
    records: Iterable[DomainRecord],
    *,
    model: str | None,
    reference_domain: str | None,
    scanned_on: date,
) -> DomainsFile:
    ordered = sort_records(records, reference_domain)
    return DomainsFile(
        table_name=ref.table_name,
        display_name=ref.display_name,
        fuel_stage=ref.fuel_stage or DEFAULT_FUEL_STAGE,
        model=ref.model or model,
        last_scanned=scanned_on,
        reference_domain=reference_domain,
        summary=summarize(ordered),
        domains=tuple(ordered),
    )


def build_categoricals_file(
    ref: ReferenceSchema,
    per_domain: Iterable[Mapping[str, CategoricalField]],
    *,
    scanned_on: date,
) -> CategoricalsFile:
    return CategoricalsFile(
        table_name=ref.table_name,
        display_name=ref.display_name,
        last_scanned=scanned_on,
        fields=merge_categoricals(ref, per_domain),
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

_WRITE_LOCKS: dict[tuple[str, str], threading.Lock] = {}
_WRITE_LOCKS_GUARD = threading.Lock()


def _write_lock(key: tuple[str, str]) -> threading.Lock:
    with _WRITE_LOCKS_GUARD:
        return _WRITE_LOCKS.setdefault(key, threading.Lock())


@contextmanager
def _directory_lock(directory: Path) -> Generator[None, None, None]:
    """Hold an exclusive flock on the directory's lock file (POSIX only)."""
    with open(directory / LOCK_FILE, "a", encoding="utf-8") as fh:
        if _HAS_FCNTL:
            _fcntl.flock(fh, _fcntl.LOCK_EX)
        try:
            yield
        finally:
            if _HAS_FCNTL:
                _fcntl.flock(fh, _fcntl.LOCK_UN)


def _dump(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def _stage(target: Path, content: str) -> Path:
    """Write content to a temp file next to `target` and return its path."""
    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return tmp


def _backup(target: Path) -> Path:
    """Copy `target` to a temp file next to it and return the copy's path."""
    fd, backup_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".bak"
    )
    os.close(fd)
    backup = Path(backup_name)
    try:
        shutil.copy2(target, backup)
    except BaseException:
        backup.unlink(missing_ok=True)
        raise
    return backup


def _restore(replaced: list[Path], backups: Mapping[Path, Path]) -> None:
    """Undo renames: put back each backup, drop targets that did not exist."""
    for target in reversed(replaced):
        backup = backups.get(target)
        try:
            if backup is None:
                target.unlink(missing_ok=True)
            else:
                os.replace(backup, target)
        except OSError as exc:
            logger.error("Could not restore %s after a failed write: %s", target, exc)


class ReportWriter:
    """Write scan outputs into the entities tree."""

    def __init__(self, entities_root: Path):
        self.entities_root = Path(entities_root)

    def output_dir(self, entity: str, model: str) -> Path:
        return self.entities_root / entity / model

    def _write_all(
        self, entity: str, model: str, documents: list[tuple[str, str]]
    ) -> list[Path]:
        """
        Stage every document first, then rename them all into place.

        Existing targets are backed up before the first rename. If any rename
        fails, every target already replaced is restored, so the documents
        are either all new or all previous.
        """
        directory = self.output_dir(entity, model)
        staged: list[tuple[Path, Path]] = []
        backups: dict[Path, Path] = {}
        replaced: list[Path] = []
        with _write_lock((entity, model)):
            try:
                directory.mkdir(parents=True, exist_ok=True)
                with _directory_lock(directory):
                    for name, content in documents:
                        target = directory / name
                        staged.append((_stage(target, content), target))
                    for _, target in staged:
                        if target.exists():
                            backups[target] = _backup(target)
                    try:
                        for tmp, target in staged:
                            os.replace(tmp, target)
                            replaced.append(target)
                    except OSError:
                        _restore(replaced, backups)
                        raise
            except OSError as exc:
                raise PersistenceError(
                    f"Failed to write results for {entity}/{model}: {exc}",
                    details={"directory": str(directory)},
                ) from exc
            finally:
                for tmp, _ in staged:
                    tmp.unlink(missing_ok=True)
                for backup in backups.values():
                    backup.unlink(missing_ok=True)
        return [target for _, target in staged]

    def persist(
        self,
        entity: str,
        model: str,
        domains_file: DomainsFile,
        categoricals_file: CategoricalsFile,
    ) -> tuple[Path, Path]:
        """
        Atomically replace domains.json and categoricals.json for a table.

        Raises:
            PersistenceError: If either file cannot be serialized or written.
                Previously persisted files are left in place.
        """
        try:
            documents = [
                (DOMAINS_FILE, _dump(domains_file.to_dict())),
                (CATEGORICALS_FILE, _dump(categoricals_file.to_dict())),
            ]
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to serialize scan results: {exc}") from exc

        domains_path, categoricals_path = self._write_all(entity, model, documents)
        logger.info("Wrote %s and %s", domains_path, categoricals_path)
        return domains_path, categoricals_path

    def write_schema_doc(self, entity: str, model: str, markdown: str) -> Path:
        """Atomically replace schema.md for a table."""
        (path,) = self._write_all(entity, model, [(SCHEMA_DOC_FILE, markdown)])
        logger.info("Wrote %s", path)
        return path


def read_report(path: Path) -> dict[str, Any]:
    """Load a persisted report (domains.json or categoricals.json)."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DomainOpsError(f"File not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise DomainOpsError(f"Failed to read {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise DomainOpsError(f"{path} does not contain a JSON object")
    return payload


# ---------------------------------------------------------------------------
# Schema documentation
# ---------------------------------------------------------------------------

_GROUP_TITLES = {
    "identifiers": "Identifiers",
    "organization": "Organization Dimensions",
    "transaction": "Transaction Dimensions",
    "time": "Time Fields",
    "measures": "Measures",
    "metadata": "Metadata",
}


def _cell(value: object) -> str:
    """Render a value for a markdown table cell."""
    text = "" if value is None else str(value)
    return text.replace("|", "\\|").replace("\n", " ")


def generate_schema_markdown(ref: ReferenceSchema, *, updated: date) -> str:
    """Render schema.md for a reference schema. Pure and deterministic."""
    model_upper = (ref.model or "udt").upper()
    stamp = updated.isoformat()
    lines: list[str] = [
        "---",
        f'title: "{model_upper} {ref.display_name} - Schema"',
        f'summary: "Field reference for {ref.display_name} ({ref.table_name})"',
        f"created: {stamp}",
        f"updated: {stamp}",
        'author: ""',
        f"tags: [domain-model, {model_upper.lower()}, schema]",
        "status: published",
        "category: platform",
        "ai_generated: true",
        "---",
        "",
        f"# {ref.display_name} - Schema",
        "",
        "## Overview",
        "",
        "| Property | Value |",
        "| --- | --- |",
        f"| Display Name | {_cell(ref.display_name)} |",
        f"| Table Name | {_cell(ref.table_name)} |",
        f"| FUEL Stage | {_cell(ref.fuel_stage or 'Unify')} |",
        f"| Model | {model_upper} |",
    ]
    if ref.status:
        lines.append(f"| Status | {_cell(ref.status)} |")
    if ref.freshness_column:
        lines.append(f"| Freshness Column | `{ref.freshness_column}` |")
    lines.append(f"| Total Fields | {len(ref.fields)} |")
    lines.append(f"| Categorical Fields | {len(ref.categorical_fields)} |")
    lines.append("")

    if ref.description:
        lines.extend([ref.description, ""])

    groups: list[str] = []
    for f in ref.fields:
        group = f.group or "other"
        if group not in groups:
            groups.append(group)

    lines.extend(["## Field Reference", ""])
    for group in groups:
        lines.extend(
            [
                f"### {_GROUP_TITLES.get(group, group)}",
                "",
                "| Field | Column | Type | Field ID | Key | Cat | Tags | Description |",
                "| --- | --- | --- | --- | --- | --- | --- | --- |",
            ]
        )
        for f in ref.fields:
            if (f.group or "other") != group:
                continue
            lines.append(
                "| {} | `{}` | {} | {} | {} | {} | {} | {} |".format(
                    _cell(f.name),
                    f.column,
                    _cell(f.type),
                    "" if f.field_id is None else f.field_id,
                    "Y" if f.is_key else "",
                    "Y" if f.is_categorical else "",
                    _cell(", ".join(f.tags)),
                    _cell(f.description),
                )
            )
        lines.append("")

    return "\n".join(lines)
