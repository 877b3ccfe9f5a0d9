"""Tests for the sitedpr CLI against a SQLite document store."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console
from typer.testing import CliRunner

from sitedpr.cli import app
from sitedpr.config import reset_config
from sitedpr.intelligence.parser import ParseError, ParseResult
from sitedpr.models import DPRItem

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Wide enough that report tables never truncate cell text."""
    monkeypatch.setattr("sitedpr.cli.console", Console(width=200))


@pytest.fixture
def sqlite_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'sitedpr.db'}")
    monkeypatch.setenv("BLOB_ROOT", str(tmp_path / "uploads"))
    reset_config()
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    yield tmp_path
    reset_config()


@pytest.fixture
def mock_parser(monkeypatch):
    parser = MagicMock()
    parser.parse = AsyncMock(
        return_value=ParseResult(
            items=[
                DPRItem(location="Powerhouse", activity_description="Rebar fixing", quantity=2.5, unit="Ton"),
                DPRItem(location="Headworks", activity_description="Weir concrete", quantity=45),
            ]
        )
    )
    monkeypatch.setattr("sitedpr.cli.ConstructionParser", lambda **kwargs: parser)
    return parser


def test_init_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    reset_config()
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 1
    assert "DATABASE_URL" in result.output


def test_ingest_then_show(sqlite_env, mock_parser):
    update = sqlite_env / "update.txt"
    update.write_text("weir 45 cum\nPH rebar 2.5 MT", encoding="utf-8")

    result = runner.invoke(app, ["ingest", str(update), "--date", "2024-03-01", "--user", "Site Engineer"])

    assert result.exit_code == 0, result.output
    assert "2 items added to 2024-03-01" in result.output

    shown = runner.invoke(app, ["show", "--date", "2024-03-01"])
    assert shown.exit_code == 0, shown.output
    assert "Headworks" in shown.output
    assert "Powerhouse" in shown.output

    backups = runner.invoke(app, ["backups", "list"])
    assert "2024-03-01" in backups.output


def test_ingest_parse_failure_saves_nothing(sqlite_env, mock_parser):
    mock_parser.parse.side_effect = ParseError("Model returned invalid JSON", raw_text="weir")
    update = sqlite_env / "update.txt"
    update.write_text("weir", encoding="utf-8")

    result = runner.invoke(app, ["ingest", str(update), "--date", "2024-03-01"])

    assert result.exit_code == 1
    assert "Input was not saved" in result.output
    assert "No report for 2024-03-01" in runner.invoke(app, ["show", "--date", "2024-03-01"]).output


def test_recover_unknown_backup(sqlite_env):
    result = runner.invoke(app, ["backups", "recover", "missing"])

    assert result.exit_code == 1
    assert "not found" in result.output
