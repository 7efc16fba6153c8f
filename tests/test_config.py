from pathlib import Path

import pytest

from domainops.core.config import ScanConfig, default_registry_path


def test_from_env_defaults():
    config = ScanConfig.from_env({"HOME": "/home/u", "XDG_CONFIG_HOME": "/cfg"})

    assert config.concurrency == 8
    assert config.timeout_seconds == 60.0
    assert config.sample_limit == 50
    assert config.reference_domain == "lab"
    assert config.domain_types == ()
    assert config.registry_path == Path("/cfg/domainops/domains.json")


def test_from_env_reads_values_and_ignores_invalid_ones():
    config = ScanConfig.from_env(
        {
            "DOMAINOPS_CONCURRENCY": "3",
            "DOMAINOPS_TIMEOUT": "not-a-number",
            "DOMAINOPS_SAMPLE_LIMIT": "0",
            "DOMAINOPS_REFERENCE_DOMAIN": " hq ",
            "DOMAINOPS_DOMAIN_TYPES": "production, test,,",
            "DOMAINOPS_REGISTRY": "/etc/domains.json",
        }
    )

    assert config.concurrency == 3
    assert config.timeout_seconds == 60.0
    assert config.sample_limit == 50
    assert config.reference_domain == "hq"
    assert config.domain_types == ("production", "test")
    assert config.registry_path == Path("/etc/domains.json")


def test_default_registry_path_prefers_explicit_env():
    assert default_registry_path({"DOMAINOPS_REGISTRY": "/x/r.json"}) == Path("/x/r.json")


def test_with_overrides_ignores_none_and_validates():
    config = ScanConfig().with_overrides(
        concurrency=2, timeout_seconds=None, domain_types=["test"], registry_path="/r.json"
    )

    assert config.concurrency == 2
    assert config.timeout_seconds == 60.0
    assert config.domain_types == ("test",)
    assert config.registry_path == Path("/r.json")

    with pytest.raises(ValueError, match="concurrency"):
        ScanConfig().with_overrides(concurrency=0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"concurrency": 0},
        {"timeout_seconds": 0},
        {"sample_limit": 0},
        {"reference_domain": "  "},
    ],
)
def test_validate_rejects_out_of_range_values(kwargs):
    with pytest.raises(ValueError):
        ScanConfig(**kwargs).validate()
