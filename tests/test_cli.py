import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from domainops.cli.cli import app
from domainops.cli.commands import scan as scan_cmd
from domainops.core import storage as storage_mod
from domainops.core.errors import QueryError

runner = CliRunner()

SCHEMA = {
    "table_name": "udt_sales",
    "display_name": "Sales",
    "fields": [
        {"name": "Id", "column": "id", "type": "int"},
        {"name": "Brand", "column": "brand", "type": "text", "is_categorical": True},
    ],
}


class _Storage:
    def __init__(self, fail: bool = False):
        self.fail = fail

    def list_columns(self, table):
        return ["id", "brand"]

    def row_count(self, table):
        if self.fail:
            raise QueryError("relation is locked")
        return 4

    def date_range(self, table, column):
        return None, None

    def sample_categorical(self, table, column, limit):
        return [("Acme", 4)]


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    schema_path = tmp_path / "entities" / "sales" / "udt" / "schema.json"
    schema_path.parent.mkdir(parents=True)
    schema_path.write_text(json.dumps(SCHEMA), encoding="utf-8")

    registry = tmp_path / "domains.json"
    registry.write_text(
        json.dumps(
            {
                "domains": [
                    {"domain": "lab", "domainType": "production"},
                    {"domain": "acme", "domainType": "production"},
                    {"domain": "broken", "domainType": "test"},
                ]
            }
        ),
        encoding="utf-8",
    )

    monkeypatch.setattr(
        storage_mod,
        "default_builders",
        lambda: {"http": lambda ref, timeout: _Storage(fail=ref.domain == "broken")},
    )
    for name in ("DOMAINOPS_REGISTRY", "DOMAINOPS_DOMAIN_TYPES", "DOMAINOPS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return schema_path, registry


def test_scan_writes_reports_and_prints_summary(workspace):
    schema_path, registry = workspace

    result = runner.invoke(
        app,
        ["scan", str(schema_path), "--registry", str(registry), "--domain-type", "production"],
    )

    assert result.exit_code == 0, result.output
    assert "Scan complete" in result.output
    data = json.loads((schema_path.parent / "domains.json").read_text())
    assert [d["domain"] for d in data["domains"]] == ["lab", "acme"]
    assert (schema_path.parent / "categoricals.json").exists()


def test_scan_partial_failure_exits_zero_unless_strict(workspace):
    schema_path, registry = workspace

    relaxed = runner.invoke(app, ["scan", str(schema_path), "--registry", str(registry)])
    strict = runner.invoke(
        app, ["scan", str(schema_path), "--registry", str(registry), "--strict"]
    )

    assert relaxed.exit_code == 0, relaxed.output
    assert "broken" in relaxed.output
    assert strict.exit_code == 1


def test_scan_with_select_scans_only_picked_domains(workspace, monkeypatch):
    schema_path, registry = workspace
    monkeypatch.setattr(scan_cmd, "tui_select_domains", lambda refs: refs[:1])

    result = runner.invoke(
        app, ["scan", str(schema_path), "--registry", str(registry), "--select", "--doc"]
    )

    assert result.exit_code == 0, result.output
    data = json.loads((schema_path.parent / "domains.json").read_text())
    assert [d["domain"] for d in data["domains"]] == ["lab"]
    assert (schema_path.parent / "schema.md").exists()


def test_scan_with_nothing_selected_writes_nothing(workspace, monkeypatch):
    schema_path, registry = workspace
    monkeypatch.setattr(scan_cmd, "tui_select_domains", lambda refs: [])

    result = runner.invoke(app, ["scan", str(schema_path), "--registry", str(registry), "--select"])

    assert result.exit_code == 0
    assert "No domains selected" in result.output
    assert not (schema_path.parent / "domains.json").exists()


def test_scan_missing_registry_exits_one(workspace, tmp_path):
    schema_path, _ = workspace

    result = runner.invoke(
        app, ["scan", str(schema_path), "--registry", str(tmp_path / "nope.json")]
    )

    assert result.exit_code == 1
    assert "not found" in result.output


def test_scan_missing_schema_exits_one(workspace, tmp_path):
    _, registry = workspace
    missing = tmp_path / "entities" / "orders" / "udt" / "schema.json"

    result = runner.invoke(app, ["scan", str(missing), "--registry", str(registry)])

    assert result.exit_code == 1


def test_scan_rejects_schema_file_with_another_name(workspace):
    schema_path, registry = workspace
    other = schema_path.with_name("orders.json")
    other.write_text(schema_path.read_text(encoding="utf-8"), encoding="utf-8")

    result = runner.invoke(app, ["scan", str(other), "--registry", str(registry)])

    assert result.exit_code == 1
    assert not (schema_path.parent / "domains.json").exists()


def test_scan_rejects_invalid_options(workspace):
    schema_path, registry = workspace

    result = runner.invoke(
        app, ["scan", str(schema_path), "--registry", str(registry), "--concurrency", "0"]
    )

    assert result.exit_code == 2


def test_doc_command_writes_schema_md(workspace):
    schema_path, _ = workspace

    result = runner.invoke(app, ["doc", str(schema_path)])

    assert result.exit_code == 0, result.output
    assert "# Sales - Schema" in (schema_path.parent / "schema.md").read_text()


def test_entities_command_lists_models(workspace):
    schema_path, _ = workspace

    result = runner.invoke(app, ["entities", str(schema_path.parents[2])])

    assert result.exit_code == 0, result.output
    assert "sales" in result.output
    assert "udt_sales" in result.output


def test_domains_command_lists_registry(workspace):
    _, registry = workspace

    result = runner.invoke(app, ["domains", "--registry", str(registry), "--domain-type", "test"])

    assert result.exit_code == 0, result.output
    assert "broken" in result.output
    assert "acme" not in result.output


def test_report_command_reads_persisted_report(workspace):
    schema_path, registry = workspace
    runner.invoke(app, ["scan", str(schema_path), "--registry", str(registry)])

    result = runner.invoke(app, ["report", str(schema_path.parent)])

    assert result.exit_code == 0, result.output
    assert "lab" in result.output
    assert "unknown" in result.output


def test_report_command_missing_file_exits_one(tmp_path: Path):
    result = runner.invoke(app, ["report", str(tmp_path / "domains.json")])

    assert result.exit_code == 1
