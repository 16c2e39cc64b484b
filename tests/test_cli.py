import json

import pytest
from typer.testing import CliRunner

from conftest import FakeProviderClient, make_gateway
from llm_doc_grader import api
from llm_doc_grader.cli import app

runner = CliRunner()


@pytest.fixture
def essay(tmp_path):
    path = tmp_path / "essay.md"
    path.write_text("Thus the premise entails its conclusion. Therefore the argument holds.")
    return path


@pytest.fixture
def fake_gateway(monkeypatch):
    client = FakeProviderClient(["73/100", "85/100", "85/100", "85/100"])
    gateway = make_gateway(client)
    monkeypatch.setattr(api, "build_gateway", lambda cfg, only=None: gateway)
    return client


def test_evaluate_prints_json(essay, fake_gateway):
    result = runner.invoke(app, ["evaluate", str(essay), "--provider", "openai", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout[result.stdout.index("{"):])
    assert data["overallScore"] == 85
    assert len(fake_gateway.prompts) == 4


def test_evaluate_archives_result(essay, fake_gateway, tmp_path):
    db_path = tmp_path / "archive.db"

    result = runner.invoke(app, ["evaluate", str(essay), "--archive", str(db_path)])
    assert result.exit_code == 0, result.output

    summary = runner.invoke(app, ["summary", str(db_path)])
    assert summary.exit_code == 0
    assert "essay" in summary.output


def test_unknown_provider_exits_with_error(essay):
    result = runner.invoke(app, ["evaluate", str(essay), "--provider", "bogus"])

    assert result.exit_code == 1
    assert "Unsupported provider" in result.output


def test_structural_single_document(essay):
    result = runner.invoke(app, ["structural", str(essay)])

    assert result.exit_code == 0
    assert "Structural Score:" in result.output
    assert "semanticCompression" in result.output


def test_compare_without_model(essay, tmp_path):
    other = tmp_path / "other.txt"
    other.write_text("It rains. It is wet.")

    result = runner.invoke(app, ["compare", str(essay), str(other), "--no-model", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout[result.stdout.index("{"):])
    assert data["winner"] in ("A", "B")
    assert "documentAScore" in data


def test_missing_file_is_rejected():
    result = runner.invoke(app, ["structural", "does-not-exist.md"])
    assert result.exit_code != 0
