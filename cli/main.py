"""ActionGraph CLI: entry-point for all backend operations.

Usage:
    python cli/main.py --help

Sub-command groups:
    db      → database setup
    action  → create / complete / organise actions, next-action queries
    scope   → persisted focus on one action's subtree
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that
# `from actiongraph.xxx import ...` works when the CLI is invoked as
# `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import logging

import typer

from actiongraph.config import settings
from actiongraph.db import get_connection, init_db
from actiongraph.db.migrations import current_version

from cli.commands.action import action_app
from cli.commands.scope import scope_app

app = typer.Typer(
    name="actiongraph",
    help="ActionGraph planning CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else settings.log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    version = current_version(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path} (schema v{version})")


app.add_typer(action_app, name="action")
app.add_typer(scope_app, name="scope")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
