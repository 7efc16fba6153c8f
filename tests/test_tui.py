from domainops.cli.tui import _MAX_DOMAIN_NAME_WIDTH, _domain_choice_title, _truncate
from domainops.core.models import DomainRef


def test_domain_choice_title_shows_name_before_details_and_aligns_them():
    first = _domain_choice_title(DomainRef(domain="acme", domain_type="production"), name_width=12)
    second = _domain_choice_title(DomainRef(domain="lab"), name_width=12)

    assert first.startswith("acme")
    assert second.startswith("lab")
    assert first.index("[") == second.index("[")
    assert first.endswith("[production, http]")
    assert second.endswith("[http]")


def test_domain_choice_title_truncates_long_names():
    long_name = "x" * (_MAX_DOMAIN_NAME_WIDTH + 10)
    rendered = _domain_choice_title(
        DomainRef(domain=long_name, backend="databricks"),
        name_width=_MAX_DOMAIN_NAME_WIDTH,
    )

    assert "..." in rendered
    assert "[databricks]" in rendered
    assert _truncate(long_name, _MAX_DOMAIN_NAME_WIDTH).endswith("...")
