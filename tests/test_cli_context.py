"""Tests for the CLI context management module."""

import pytest
import typer
from typer.testing import CliRunner

from cli.context import (
    CliContext,
    _get_context_path,
    load_context,
    require_scope,
    save_context,
)

runner = CliRunner()


@pytest.fixture
def temp_context_dir(tmp_path, monkeypatch):
    """Override the config directory to use a temporary path."""
    context_dir = tmp_path / ".actiongraph_cli"
    context_dir.mkdir()
    monkeypatch.setattr("cli.context.settings.cli_config_dir", context_dir)
    return context_dir


def test_load_default_context(temp_context_dir):
    """Should return defaults when no file exists."""
    ctx = load_context()
    assert isinstance(ctx, CliContext)
    assert ctx.active_scope_id is None
    assert ctx.active_scope_title is None
    assert ctx.user_preferences == {}


def test_save_and_load_roundtrip(temp_context_dir):
    ctx = CliContext(
        active_scope_id="uuid-1234",
        active_scope_title="Launch",
        user_preferences={"show_ids": True},
    )
    save_context(ctx)

    assert _get_context_path() == temp_context_dir / "context.json"
    loaded = load_context()
    assert loaded.active_scope_id == "uuid-1234"
    assert loaded.active_scope_title == "Launch"
    assert loaded.user_preferences["show_ids"] is True


def test_load_corrupt_context(temp_context_dir):
    """Should return defaults if the file is corrupt JSON."""
    (temp_context_dir / "context.json").write_text("{invalid-json", encoding="utf-8")
    assert load_context().active_scope_id is None


def test_load_unknown_keys(temp_context_dir):
    """Files written by an older CLI fall back to defaults."""
    (temp_context_dir / "context.json").write_text(
        '{"active_project_id": "old"}', encoding="utf-8"
    )
    assert load_context() == CliContext()


def test_require_scope_success(temp_context_dir):
    save_context(CliContext(active_scope_id="scope-1"))

    app = typer.Typer()

    @app.command()
    @require_scope
    def dummy():
        typer.echo("Success!")

    result = runner.invoke(app, [])
    assert result.exit_code == 0
    assert "Success!" in result.stdout


def test_require_scope_failure(temp_context_dir):
    app = typer.Typer()

    @app.command()
    @require_scope
    def dummy():
        typer.echo("Should not run")

    result = runner.invoke(app, [])
    assert result.exit_code == 1
    assert "❌ No active scope selected" in result.stdout
    assert "Should not run" not in result.stdout
