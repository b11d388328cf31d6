"""Persistent state management for the ActionGraph CLI.

Tracks the "active scope" (an action whose subtree ``tree``, ``next`` and
``unblocked`` default to) and user preferences.
Stored in `~/.actiongraph_cli/context.json`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from functools import wraps
from pathlib import Path
from typing import Any, Callable

import typer
from actiongraph.config import settings


@dataclass
class CliContext:
    active_scope_id: str | None = None
    active_scope_title: str | None = None
    user_preferences: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            raw = json.loads(data)
            return cls(**raw)
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    """Return the path to the context JSON file."""
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()

    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError):
        return CliContext()


def save_context(ctx: CliContext) -> None:
    """Save the CLI context to disk."""
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def require_scope(func: Callable) -> Callable:
    """Decorator for CLI commands that need an active scope.

    Aborts execution if no scope is set; the command calls
    :func:`load_context` itself to read it.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx = load_context()
        if not ctx.active_scope_id:
            typer.echo("❌ No active scope selected.")
            typer.echo("Run 'scope set <action-id>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
