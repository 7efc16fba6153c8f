"""Terminal UI utilities for domainops."""

from __future__ import annotations

import questionary

from domainops.cli.common.tui_style import QUESTIONARY_STYLE_SELECT
from domainops.core.models import DomainRef

_MAX_DOMAIN_NAME_WIDTH = 48


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _domain_choice_title(ref: DomainRef, *, name_width: int) -> str:
    """Format one domain choice as `<domain>  [<type>, <backend>]` with aligned details."""
    short_name = _truncate(ref.domain, _MAX_DOMAIN_NAME_WIDTH)
    details = ", ".join(p for p in (ref.domain_type, ref.backend) if p)
    return f"{short_name.ljust(name_width)}  [{details}]"


def select_domains(domains: list[DomainRef]) -> list[DomainRef]:
    """Display a checkbox prompt to pick the domains to scan.

    Every domain starts checked, so pressing enter scans them all.

    Returns:
        The selected DomainRef objects, or an empty list if none selected.
    """
    shown_names = [_truncate(ref.domain, _MAX_DOMAIN_NAME_WIDTH) for ref in domains]
    name_width = max((len(name) for name in shown_names), default=0)

    choices = [
        questionary.Choice(
            title=_domain_choice_title(ref, name_width=name_width),
            value=ref,
            checked=True,
        )
        for ref in domains
    ]

    return (
        questionary.checkbox(
            "Select domains to scan:",
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
        ).ask()
        or []
    )
