"""Reference schema loading and entity inventory.

Reference schemas live in an entities tree laid out as
`<entities_root>/<entity>/<model>/schema.json`. Scan outputs
(`domains.json`, `categoricals.json`) and generated docs (`schema.md`) sit
next to the schema they were produced from.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from domainops.core.errors import MalformedSchemaError, SchemaNotFoundError
from domainops.core.models import ReferenceSchema, SchemaField

logger = logging.getLogger(__name__)

SCHEMA_FILE = "schema.json"
SCHEMA_DOC_FILE = "schema.md"
DOMAINS_FILE = "domains.json"
CATEGORICALS_FILE = "categoricals.json"


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedSchemaError(f"`{key}` must be a string, got {type(value).__name__}")
    return value


def _parse_field(raw: Any, index: int) -> SchemaField:
    """Validate one entry of the `fields` array."""
    if not isinstance(raw, dict):
        raise MalformedSchemaError(f"fields[{index}] must be an object")

    name = raw.get("name")
    column = raw.get("column")
    if not isinstance(name, str) or not name.strip():
        raise MalformedSchemaError(f"fields[{index}] is missing `name`")
    if not isinstance(column, str) or not column.strip():
        raise MalformedSchemaError(f"fields[{index}] ({name}) is missing `column`")

    field_id = raw.get("field_id")
    if field_id is not None and (isinstance(field_id, bool) or not isinstance(field_id, int)):
        raise MalformedSchemaError(f"fields[{index}] ({name}) has a non-integer `field_id`")

    tags = raw.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise MalformedSchemaError(f"fields[{index}] ({name}) has invalid `tags`")

    try:
        return SchemaField(
            name=name,
            column=column,
            type=str(raw.get("type") or "text"),
            field_id=field_id,
            group=_optional_str(raw, "group"),
            is_key=bool(raw.get("is_key", False)),
            is_categorical=bool(raw.get("is_categorical", False)),
            description=_optional_str(raw, "description"),
            tags=tuple(tags),
        )
    except MalformedSchemaError as exc:
        raise MalformedSchemaError(f"fields[{index}] ({name}): {exc}") from exc


def parse_reference_schema(payload: Any) -> ReferenceSchema:
    """
    Validate a decoded schema.json payload and build a ReferenceSchema.

    Raises:
        MalformedSchemaError: If required keys are missing or empty, or if
            column or field names are duplicated.
    """
    if not isinstance(payload, dict):
        raise MalformedSchemaError("schema.json must contain a JSON object")

    table_name = payload.get("table_name")
    if not isinstance(table_name, str) or not table_name.strip():
        raise MalformedSchemaError("`table_name` must be a non-empty string")

    raw_fields = payload.get("fields")
    if not isinstance(raw_fields, list):
        raise MalformedSchemaError("`fields` must be a list")

    fields = [_parse_field(raw, i) for i, raw in enumerate(raw_fields)]

    seen_columns: set[str] = set()
    seen_names: set[str] = set()
    for f in fields:
        if f.column in seen_columns:
            raise MalformedSchemaError(
                f"duplicate column `{f.column}` in reference schema",
                details={"column": f.column},
            )
        if f.name in seen_names:
            raise MalformedSchemaError(
                f"duplicate field name `{f.name}` in reference schema",
                details={"name": f.name},
            )
        seen_columns.add(f.column)
        seen_names.add(f.name)

    display_name = payload.get("display_name")
    if not isinstance(display_name, str) or not display_name.strip():
        display_name = table_name

    return ReferenceSchema(
        table_name=table_name,
        display_name=display_name,
        fields=tuple(fields),
        freshness_column=_optional_str(payload, "freshness_column"),
        ai_package=bool(payload.get("ai_package", False)),
        fuel_stage=_optional_str(payload, "fuel_stage"),
        model=_optional_str(payload, "model"),
        description=_optional_str(payload, "description"),
        status=_optional_str(payload, "status"),
        resource_url=_optional_str(payload, "resource_url"),
    )


def load_schema_file(path: Path) -> ReferenceSchema:
    """Read and validate a schema.json file."""
    if not path.is_file():
        raise SchemaNotFoundError(f"schema.json not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SchemaNotFoundError(f"Failed to read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise MalformedSchemaError(f"Failed to parse {path}: {exc}") from exc
    try:
        return parse_reference_schema(payload)
    except MalformedSchemaError as exc:
        raise MalformedSchemaError(f"{path}: {exc}", details=exc.details) from exc


def split_schema_path(schema_path: Path) -> tuple[Path, str, str]:
    """Split `<root>/<entity>/<model>/schema.json` into (root, entity, model)."""
    schema_path = Path(schema_path)
    if schema_path.name != SCHEMA_FILE:
        raise SchemaNotFoundError(
            f"Expected a {SCHEMA_FILE} file, got {schema_path.name!r}; "
            f"reference schemas live at <entity>/<model>/{SCHEMA_FILE}"
        )
    model_dir = schema_path.parent
    entity_dir = model_dir.parent
    if not model_dir.name or not entity_dir.name:
        raise SchemaNotFoundError(
            f"Cannot derive entity/model from schema path: {schema_path}"
        )
    return entity_dir.parent, entity_dir.name, model_dir.name


class SchemaRegistry:
    """Read-only access to reference schemas in an entities tree."""

    def __init__(self, entities_root: Path):
        self.entities_root = Path(entities_root)

    def model_dir(self, entity: str, model: str) -> Path:
        """Return the folder holding one (entity, model) table's artifacts."""
        return self.entities_root / entity / model

    def schema_path(self, entity: str, model: str) -> Path:
        return self.model_dir(entity, model) / SCHEMA_FILE

    def load(self, entity: str, model: str) -> ReferenceSchema:
        """
        Load the reference schema for an (entity, model) pair.

        Raises:
            SchemaNotFoundError: If no schema.json exists for the pair.
            MalformedSchemaError: If schema.json is invalid.
        """
        schema = load_schema_file(self.schema_path(entity, model))
        logger.debug(
            "Loaded reference schema %s/%s (%s, %d fields)",
            entity,
            model,
            schema.table_name,
            len(schema.fields),
        )
        return schema


# ---------------------------------------------------------------------------
# Entity inventory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelInfo:
    """Artifacts and headline numbers for one (entity, model) folder."""

    name: str
    table_name: str | None = None
    display_name: str | None = None
    has_schema_json: bool = False
    has_schema_md: bool = False
    has_domains: bool = False
    has_categoricals: bool = False
    field_count: int | None = None
    categorical_count: int | None = None
    domain_count: int | None = None
    active_domain_count: int | None = None
    total_records: int | None = None


@dataclass(frozen=True)
class EntityInfo:
    """An entity folder and its models."""

    name: str
    models: tuple[ModelInfo, ...]


def _visible_dirs(path: Path) -> list[Path]:
    return sorted(
        (p for p in path.iterdir() if p.is_dir() and not p.name.startswith((".", "_"))),
        key=lambda p: p.name,
    )


def _read_json(path: Path) -> dict[str, Any] | None:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)
        return None
    return payload if isinstance(payload, dict) else None


def _model_info(model_dir: Path) -> ModelInfo:
    schema_file = model_dir / SCHEMA_FILE
    domains_file = model_dir / DOMAINS_FILE

    schema: ReferenceSchema | None = None
    if schema_file.is_file():
        try:
            schema = load_schema_file(schema_file)
        except (SchemaNotFoundError, MalformedSchemaError) as exc:
            logger.warning("Ignoring invalid schema %s: %s", schema_file, exc)

    domains = _read_json(domains_file) if domains_file.is_file() else None
    summary = (domains or {}).get("summary") or {}

    table_name = schema.table_name if schema else (domains or {}).get("table_name")
    return ModelInfo(
        name=model_dir.name,
        table_name=table_name,
        display_name=schema.display_name if schema else None,
        has_schema_json=schema_file.is_file(),
        has_schema_md=(model_dir / SCHEMA_DOC_FILE).is_file(),
        has_domains=domains_file.is_file(),
        has_categoricals=(model_dir / CATEGORICALS_FILE).is_file(),
        field_count=len(schema.fields) if schema else None,
        categorical_count=len(schema.categorical_fields) if schema else None,
        domain_count=summary.get("total_domains"),
        active_domain_count=summary.get("active_domains"),
        total_records=summary.get("total_records"),
    )


def list_entities(entities_root: Path) -> list[EntityInfo]:
    """
    Enumerate documented entities and their models.

    Hidden folders and folders starting with `_` are skipped; entities and
    models are returned in name order.
    """
    root = Path(entities_root)
    if not root.is_dir():
        raise SchemaNotFoundError(f"Entities path does not exist: {root}")

    return [
        EntityInfo(
            name=entity_dir.name,
            models=tuple(_model_info(m) for m in _visible_dirs(entity_dir)),
        )
        for entity_dir in _visible_dirs(root)
    ]
