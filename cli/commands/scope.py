"""Active scope commands.

The active scope is an action id stored in the CLI context; ``action tree``,
``action next`` and ``action unblocked`` restrict themselves to its subtree
when no explicit root or scope is given.
"""

import typer

from actiongraph.db import get_connection, init_db
from actiongraph.db.actions import require_action
from actiongraph.errors import NotFoundError
from actiongraph.engine.walker import breadcrumb

from cli.context import load_context, require_scope, save_context

scope_app = typer.Typer(help="Focus the CLI on one action's subtree.")


@scope_app.command("set")
def scope_set(action_id: str = typer.Argument(..., help="Action ID to focus on.")) -> None:
    """Set the active scope."""
    conn = get_connection()
    init_db(conn)
    try:
        action = require_action(conn, action_id, "Scope action")
    except NotFoundError as exc:
        typer.echo(f"❌ {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()

    ctx = load_context()
    ctx.active_scope_id = action.id
    ctx.active_scope_title = action.title
    save_context(ctx)
    typer.echo(f"🎯 Scope set to: {action.title} ({action.id})")


@scope_app.command("clear")
def scope_clear() -> None:
    """Clear the active scope."""
    ctx = load_context()
    ctx.active_scope_id = None
    ctx.active_scope_title = None
    save_context(ctx)
    typer.echo("Scope cleared.")


@scope_app.command("show")
@require_scope
def scope_show() -> None:
    """Show the active scope and its path."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    try:
        path = breadcrumb(conn, ctx.active_scope_id)
    except NotFoundError:
        typer.echo(f"⚠️  Scope {ctx.active_scope_id} no longer exists.")
        typer.echo("Run 'scope clear' or 'scope set <action-id>'.")
        raise typer.Exit(code=1)
    finally:
        conn.close()
    typer.echo(f"🎯 {ctx.active_scope_title} ({ctx.active_scope_id})")
    typer.echo(f"   {path}")
