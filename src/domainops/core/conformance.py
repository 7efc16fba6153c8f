"""Structural conformance of a domain table against its reference schema.

Conformance is structural only: the same columns in the same order. Values
are expected to differ between domains and are not compared here.

Positions (`ref_position`, `domain_position`) are 1-based places in the full
column lists. Order is judged on the columns both sides share: each shared
column's rank in the reference's shared sequence is compared with its rank
in the domain's shared sequence, so a missing or extra column does not make
every later column look displaced.
"""

from __future__ import annotations

from domainops.core.models import (
    ColumnDiff,
    ConformanceStatus,
    ReferenceSchema,
    StructuralConformance,
    TableSnapshot,
)


def compute_conformance(
    ref: ReferenceSchema,
    snapshot: TableSnapshot,
    is_reference_domain: bool,
) -> StructuralConformance:
    """
    Diff a domain's column layout against the reference schema.

    Args:
        ref: Reference schema; its field order is the ordering basis.
        snapshot: Columns as returned by the domain, in physical order.
        is_reference_domain: True for the designated reference domain.

    Returns:
        StructuralConformance with missing, extra and order-mismatched
        columns. Order mismatches are sorted by `ref_index`.
    """
    ref_cols = ref.columns
    dom_cols = list(snapshot.columns)
    display = ref.display_names()

    ref_set = set(ref_cols)
    dom_set = set(dom_cols)

    missing = tuple(
        ColumnDiff(
            column=col,
            display_name=display.get(col, col),
            ref_position=i + 1,
            ref_index=i,
        )
        for i, col in enumerate(ref_cols)
        if col not in dom_set
    )

    extra = tuple(
        ColumnDiff(
            column=col,
            display_name=display.get(col, col),
            domain_position=i + 1,
            domain_index=i,
        )
        for i, col in enumerate(dom_cols)
        if col not in ref_set
    )

    ref_positions = {col: i + 1 for i, col in enumerate(ref_cols)}
    dom_positions = {col: i + 1 for i, col in enumerate(dom_cols)}
    ref_shared = [c for c in ref_cols if c in dom_set]
    dom_rank = {c: i for i, c in enumerate(c for c in dom_cols if c in ref_set)}

    order_mismatches = tuple(
        ColumnDiff(
            column=col,
            display_name=display.get(col, col),
            ref_position=ref_positions[col],
            domain_position=dom_positions[col],
            ref_index=ref_rank,
            domain_index=dom_rank[col],
        )
        for ref_rank, col in enumerate(ref_shared)
        if dom_rank[col] != ref_rank
    )

    if is_reference_domain:
        status = ConformanceStatus.REFERENCE
    elif not missing and not extra and not order_mismatches:
        status = ConformanceStatus.ALIGNED
    else:
        status = ConformanceStatus.DIVERGED

    return StructuralConformance(
        status=status,
        ref_columns=len(ref_cols),
        domain_columns=len(dom_cols),
        missing=missing,
        extra=extra,
        order_mismatches=order_mismatches,
    )
