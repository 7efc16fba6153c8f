"""Categorical value catalog.

Per domain, `aggregate_categoricals` lifts the scanner's samples into
catalog entries; `merge_categoricals` then combines all domains of a run
into the `fields` map of categoricals.json. Each run replaces the previous
catalog entirely.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from domainops.core.models import (
    CategoricalField,
    CategoricalValue,
    ReferenceSchema,
    TableSnapshot,
)


def aggregate_categoricals(
    ref: ReferenceSchema, snapshot: TableSnapshot
) -> dict[str, CategoricalField]:
    """Return {column: CategoricalField} for the snapshot's domain only."""
    out: dict[str, CategoricalField] = {}
    for field in ref.categorical_fields:
        values = snapshot.categorical_samples.get(field.column)
        if not values:
            continue
        out[field.column] = CategoricalField(
            column=field.column,
            field_id=field.field_id,
            group=field.group,
            by_domain={snapshot.domain: tuple(values)},
        )
    return out


def merge_categoricals(
    ref: ReferenceSchema,
    per_domain: Iterable[Mapping[str, CategoricalField]],
) -> dict[str, CategoricalField]:
    """
    Merge per-domain catalogs into {field name: CategoricalField}.

    Every categorical field of the reference is present, in declared order,
    even when no domain reported values for it. Domains appear in `by_domain`
    sorted by name.
    """
    by_column: dict[str, dict[str, tuple[CategoricalValue, ...]]] = {
        f.column: {} for f in ref.categorical_fields
    }
    for catalog in per_domain:
        for column, entry in catalog.items():
            if column in by_column:
                by_column[column].update(entry.by_domain)

    return {
        field.name: CategoricalField(
            column=field.column,
            field_id=field.field_id,
            group=field.group,
            by_domain=dict(sorted(by_column[field.column].items())),
        )
        for field in ref.categorical_fields
    }
