"""Action commands: create, inspect, complete, move and query actions."""

from __future__ import annotations

import sqlite3
from typing import List, Optional

import typer

from actiongraph.config import settings
from actiongraph.db import get_connection, init_db
from actiongraph.db.actions import count_actions, list_actions
from actiongraph.db.models import DELETE_RECURSIVE, REPARENT
from actiongraph.engine import mutations
from actiongraph.engine.events import EventQueue
from actiongraph.engine.resolver import (
    get_blocking_dependencies,
    get_next_action,
    get_unblocked_actions,
)
from actiongraph.engine.tree import action_detail, build_tree
from actiongraph.engine.walker import breadcrumb
from actiongraph.errors import ActionGraphError
from actiongraph.generation import GenerationWorker

from cli.context import load_context
from cli.rendering import format_action, render_tree

action_app = typer.Typer(help="Create, complete and organise actions.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _open() -> sqlite3.Connection:
    conn = get_connection()
    init_db(conn)
    return conn


def _fail(exc: ActionGraphError) -> None:
    typer.echo(f"❌ {exc}")
    raise typer.Exit(code=1)


def _generate(conn: sqlite3.Connection, events: EventQueue) -> None:
    """Run generation for this command's events when ``CLI_GENERATION`` is set.

    Off by default; otherwise the events are dropped with the process.
    """
    if settings.generation_enabled and settings.cli_generation and len(events):
        GenerationWorker(conn, events).run_pending()


def _scope_or_active(explicit: Optional[str]) -> Optional[str]:
    if explicit is not None:
        return explicit
    return load_context().active_scope_id


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@action_app.command("new")
def action_new(
    title: str = typer.Argument(..., help="Title of the action."),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    vision: Optional[str] = typer.Option(None, "--vision", help="What 'done' looks like."),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent action ID."),
    depends_on: List[str] = typer.Option(
        [], "--depends-on", help="Prerequisite action ID (repeatable)."
    ),
) -> None:
    """Create a new action."""
    conn = _open()
    events = EventQueue()
    try:
        result = mutations.create_action(
            conn,
            title,
            description=description,
            vision=vision,
            parent_id=parent,
            depends_on_ids=depends_on,
            events=events,
        )
        typer.echo(f"✅ Created: {result.action.title} ({result.action.id})")
        if result.parent_id:
            typer.echo(f"   Parent: {result.parent_id}")
        if result.dependencies_count:
            typer.echo(f"   Dependencies: {result.dependencies_count}")
        _generate(conn, events)
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("update")
def action_update(
    action_id: str = typer.Argument(..., help="Action ID."),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    vision: Optional[str] = typer.Option(None, "--vision"),
) -> None:
    """Edit the title, description or vision of an action."""
    conn = _open()
    events = EventQueue()
    try:
        action = mutations.update_action(
            conn,
            action_id,
            title=title,
            description=description,
            vision=vision,
            events=events,
        )
        typer.echo(f"✏️  Updated: {format_action(action)}")
        _generate(conn, events)
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("done")
def action_done(action_id: str = typer.Argument(..., help="Action ID.")) -> None:
    """Mark an action as done (fails while prerequisites are open)."""
    conn = _open()
    events = EventQueue()
    try:
        action = mutations.set_done(conn, action_id, True, events=events)
        typer.echo(f"🎉 Completed: {action.title}")
        _generate(conn, events)
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("reopen")
def action_reopen(action_id: str = typer.Argument(..., help="Action ID.")) -> None:
    """Mark a done action as open again."""
    conn = _open()
    try:
        action = mutations.set_done(conn, action_id, False)
        typer.echo(f"↩️  Reopened: {action.title}")
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("move")
def action_move(
    action_id: str = typer.Argument(..., help="Action ID."),
    parent: Optional[str] = typer.Option(
        None, "--parent", "-p", help="New parent ID (omit to make it a root)."
    ),
) -> None:
    """Move an action under a new parent."""
    conn = _open()
    events = EventQueue()
    try:
        result = mutations.move_action(conn, action_id, parent, events=events)
        if result.old_parent_id == result.new_parent_id:
            typer.echo("Nothing to do: the action already has that parent.")
        else:
            typer.echo(
                f"📦 Moved {action_id}: {result.old_parent_id or '(root)'} -> "
                f"{result.new_parent_id or '(root)'}"
            )
        _generate(conn, events)
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("delete")
def action_delete(
    action_id: str = typer.Argument(..., help="Action ID."),
    recursive: bool = typer.Option(
        False, "--recursive", "-r", help="Delete the whole subtree."
    ),
    new_parent: Optional[str] = typer.Option(
        None, "--new-parent", help="Where to re-parent the children."
    ),
) -> None:
    """Delete an action, re-parenting or deleting its children."""
    conn = _open()
    events = EventQueue()
    try:
        result = mutations.delete_action(
            conn,
            action_id,
            child_handling=DELETE_RECURSIVE if recursive else REPARENT,
            new_parent_id=new_parent,
            events=events,
        )
        typer.echo(f"🗑️  Deleted: {result.deleted_action.title}")
        if result.children_count:
            if result.child_handling == REPARENT:
                typer.echo(
                    f"   {result.children_count} children moved to {result.new_parent_id}"
                )
            else:
                typer.echo(f"   {result.children_count} children deleted with their subtrees")
        _generate(conn, events)
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("depend")
def action_depend(
    action_id: str = typer.Argument(..., help="The dependent action."),
    depends_on_id: str = typer.Argument(..., help="The prerequisite action."),
) -> None:
    """Make ACTION_ID depend on DEPENDS_ON_ID."""
    conn = _open()
    try:
        mutations.add_dependency(conn, action_id, depends_on_id)
        typer.echo(f"🔗 {action_id} now depends on {depends_on_id}")
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


@action_app.command("undepend")
def action_undepend(
    action_id: str = typer.Argument(..., help="The dependent action."),
    depends_on_id: str = typer.Argument(..., help="The prerequisite action."),
) -> None:
    """Remove the dependency of ACTION_ID on DEPENDS_ON_ID."""
    conn = _open()
    try:
        mutations.remove_dependency(conn, action_id, depends_on_id)
        typer.echo(f"✂️  {action_id} no longer depends on {depends_on_id}")
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@action_app.command("list")
def action_list(
    done: Optional[bool] = typer.Option(
        None, "--done/--open", help="Only done or only open actions."
    ),
    limit: int = typer.Option(20, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
) -> None:
    """List actions, oldest first."""
    conn = _open()
    try:
        actions = list_actions(conn, done=done, limit=limit, offset=offset)
        total = count_actions(conn, done=done)
    finally:
        conn.close()

    if not actions:
        typer.echo("No actions found.")
        return
    for a in actions:
        typer.echo(format_action(a))
    typer.echo(f"({offset + len(actions)} of {total})")


@action_app.command("show")
def action_show(action_id: str = typer.Argument(..., help="Action ID.")) -> None:
    """Show an action with its path, children and dependencies."""
    conn = _open()
    try:
        detail = action_detail(conn, action_id)
        path = breadcrumb(conn, action_id)
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()

    action = detail.action
    typer.echo(format_action(action))
    typer.echo(f"Path: {path}")
    if action.description:
        typer.echo(f"Description: {action.description}")
    if action.vision:
        typer.echo(f"Vision: {action.vision}")
    if action.node_summary:
        typer.echo(f"Summary: {action.node_summary}")
    for heading, items in (
        ("Children", detail.children),
        ("Depends on", detail.dependencies),
        ("Blocks", detail.dependents),
    ):
        if items:
            typer.echo(f"{heading}:")
            for item in items:
                typer.echo(f"  {format_action(item)}")


@action_app.command("tree")
def action_tree(
    root: Optional[str] = typer.Option(
        None, "--root", help="Root action ID (defaults to the active scope)."
    ),
    show_all: bool = typer.Option(False, "--all", "-a", help="Include done actions."),
    ids: bool = typer.Option(False, "--ids", help="Show action IDs."),
) -> None:
    """Display the family tree."""
    conn = _open()
    try:
        forest = build_tree(
            conn, root_id=_scope_or_active(root), include_completed=show_all
        )
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()

    if not forest:
        typer.echo("Nothing to show.")
        return
    typer.echo(render_tree(forest, show_ids=ids))


@action_app.command("next")
def action_next(
    scope: Optional[str] = typer.Option(
        None, "--scope", help="Scope action ID (defaults to the active scope)."
    ),
) -> None:
    """Show the single next action to work on."""
    conn = _open()
    try:
        action = get_next_action(conn, scope_id=_scope_or_active(scope))
        path = breadcrumb(conn, action.id) if action else None
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()

    if action is None:
        typer.echo("🎉 Nothing workable right now.")
        return
    typer.echo(f"👉 {action.title}  [{action.id}]")
    typer.echo(f"   {path}")


@action_app.command("unblocked")
def action_unblocked(
    limit: int = typer.Option(50, "--limit", "-n"),
    scope: Optional[str] = typer.Option(
        None, "--scope", help="Scope action ID (defaults to the active scope)."
    ),
) -> None:
    """List workable actions, most recently updated first."""
    conn = _open()
    try:
        actions = get_unblocked_actions(
            conn, limit=limit, scope_id=_scope_or_active(scope)
        )
    except ActionGraphError as exc:
        _fail(exc)
    finally:
        conn.close()

    if not actions:
        typer.echo("No unblocked actions.")
        return
    for a in actions:
        typer.echo(format_action(a))


@action_app.command("blocking")
def action_blocking() -> None:
    """List open prerequisites ranked by how many actions they hold back."""
    conn = _open()
    try:
        report = get_blocking_dependencies(conn)
    finally:
        conn.close()

    if not report:
        typer.echo("Nothing is blocked.")
        return
    for item in report:
        typer.echo(f"{format_action(item.action)}  blocks {item.block_count}")
