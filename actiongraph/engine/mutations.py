"""Mutation Engine: create / move / delete / complete actions.

Every operation validates all referenced ids before its first write, then
performs its writes in a single SQLite transaction.  Two invariants are kept
here:

* **parent depends on child**: whenever ``family(parent -> child)`` is
  installed, ``depends_on(child -> parent)`` is installed with it, and the
  pair is always removed together;
* **acyclic family forest**: no operation that installs a family edge may
  make an action its own ancestor.

After a successful write an :class:`~actiongraph.engine.events.ActionEvent`
is published on the optional *events* queue so text generation can run in
the background.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from actiongraph.db.actions import (
    delete_action_row,
    insert_action,
    require_action,
    update_action_fields,
)
from actiongraph.db.edges import (
    add_edge,
    get_child_ids,
    get_edge,
    get_parent_id,
    has_edge,
    remove_edge,
)
from actiongraph.db.models import (
    CHILD_HANDLING_MODES,
    DELETE_RECURSIVE,
    DEPENDS_ON,
    FAMILY,
    REPARENT,
    Action,
    CreateResult,
    DeleteResult,
    Edge,
    MoveResult,
)
from actiongraph.engine.events import COMPLETED, CREATED, MOVED, UPDATED, EventQueue
from actiongraph.engine.gate import unmet_dependencies
from actiongraph.engine.walker import descendants, would_create_cycle
from actiongraph.errors import InvalidOperationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _clean_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ValidationError("Title is required")
    return title.strip()


def _publish(events: Optional[EventQueue], action_id: str, reason: str) -> None:
    if events is None:
        return
    events.publish(action_id, reason)
    logger.debug("Published %s event for action %s", reason, action_id)


def _attach(conn: sqlite3.Connection, parent_id: str, child_id: str) -> None:
    """Install the family edge and its derived dependency (no commit)."""
    if would_create_cycle(conn, child_id, parent_id):
        raise InvalidOperationError(
            f"Cannot set {parent_id} as parent of {child_id} - "
            "this would create a circular reference"
        )
    add_edge(conn, parent_id, child_id, FAMILY, commit=False)
    add_edge(conn, child_id, parent_id, DEPENDS_ON, commit=False)


def _detach(conn: sqlite3.Connection, parent_id: str, child_id: str) -> None:
    """Remove the family edge and its derived dependency (no commit)."""
    remove_edge(conn, parent_id, child_id, FAMILY, commit=False)
    remove_edge(conn, child_id, parent_id, DEPENDS_ON, commit=False)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def create_action(
    conn: sqlite3.Connection,
    title: str,
    description: Optional[str] = None,
    vision: Optional[str] = None,
    parent_id: Optional[str] = None,
    depends_on_ids: Optional[Iterable[str]] = None,
    events: Optional[EventQueue] = None,
) -> CreateResult:
    """Create an action, optionally under a parent and with prerequisites.

    Args:
        conn: Open DB connection.
        title: Required, non-blank.
        description: Optional instructions / context.
        vision: Optional description of the finished state.
        parent_id: Existing action to nest the new one under.
        depends_on_ids: Existing actions the new one depends on.
        events: Queue to publish a ``created`` event on.

    Returns:
        A :class:`~actiongraph.db.models.CreateResult`.

    Raises:
        ValidationError: Blank title.
        NotFoundError: The parent or a prerequisite does not exist.  Nothing
            is written in that case.
    """
    title = _clean_title(title)
    prerequisites = list(dict.fromkeys(depends_on_ids or []))

    if parent_id is not None:
        require_action(conn, parent_id, "Parent action")
    for dep_id in prerequisites:
        require_action(conn, dep_id, "Dependency action")

    with conn:
        action = insert_action(conn, title, description, vision, commit=False)
        if parent_id is not None:
            _attach(conn, parent_id, action.id)
        for dep_id in prerequisites:
            add_edge(conn, dep_id, action.id, DEPENDS_ON, commit=False)

    logger.info("Created action %s (parent=%s)", action.id, parent_id)
    _publish(events, action.id, CREATED)
    return CreateResult(
        action=action,
        parent_id=parent_id,
        dependencies_count=len(prerequisites),
    )


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------

def move_action(
    conn: sqlite3.Connection,
    action_id: str,
    new_parent_id: Optional[str] = None,
    events: Optional[EventQueue] = None,
) -> MoveResult:
    """Re-parent *action_id* under *new_parent_id* (``None`` makes it a root).

    Moving an action to its current parent changes nothing.

    Raises:
        NotFoundError: The action or the new parent does not exist.
        InvalidOperationError: The new parent is the action itself or one of
            its descendants.
    """
    require_action(conn, action_id)
    if new_parent_id is not None:
        require_action(conn, new_parent_id, "New parent action")
        if would_create_cycle(conn, action_id, new_parent_id):
            raise InvalidOperationError(
                f"Cannot set {new_parent_id} as parent of {action_id} - "
                "this would create a circular reference"
            )

    old_parent_id = get_parent_id(conn, action_id)
    if old_parent_id == new_parent_id:
        return MoveResult(action_id, old_parent_id, new_parent_id)

    with conn:
        if old_parent_id is not None:
            _detach(conn, old_parent_id, action_id)
        if new_parent_id is not None:
            _attach(conn, new_parent_id, action_id)
        update_action_fields(conn, action_id, commit=False)

    logger.info("Moved action %s: %s -> %s", action_id, old_parent_id, new_parent_id)
    _publish(events, action_id, MOVED)
    return MoveResult(action_id, old_parent_id, new_parent_id)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

def delete_action(
    conn: sqlite3.Connection,
    action_id: str,
    child_handling: str = REPARENT,
    new_parent_id: Optional[str] = None,
    events: Optional[EventQueue] = None,
) -> DeleteResult:
    """Delete an action, re-parenting or deleting its children first.

    Args:
        conn: Open DB connection.
        action_id: The action to delete.
        child_handling: ``"reparent"`` moves every direct child under
            *new_parent_id*; ``"delete_recursive"`` deletes the whole subtree.
        new_parent_id: Target parent when re-parenting.
        events: Queue to publish a ``moved`` event per re-parented child on.

    Returns:
        A :class:`~actiongraph.db.models.DeleteResult`.

    Raises:
        ValidationError: Unknown *child_handling*.
        NotFoundError: The action or the new parent does not exist.
        InvalidOperationError: Re-parenting children without a target, or onto
            the deleted action / one of its descendants.
    """
    if child_handling not in CHILD_HANDLING_MODES:
        raise ValidationError(
            f"child_handling must be one of {', '.join(CHILD_HANDLING_MODES)}, "
            f"got {child_handling!r}"
        )
    action = require_action(conn, action_id)
    child_ids = get_child_ids(conn, action_id)

    if child_handling == REPARENT and child_ids and new_parent_id is None:
        raise InvalidOperationError(
            "new_parent_id is required when child_handling is 'reparent'"
        )
    # A target given for a leaf must still exist and lie outside the subtree.
    if child_handling == REPARENT and new_parent_id is not None:
        require_action(conn, new_parent_id, "New parent action")
        if new_parent_id in descendants(conn, [action_id]):
            raise InvalidOperationError(
                f"Cannot re-parent the children of {action_id} onto {new_parent_id} - "
                "it is the deleted action or one of its descendants"
            )

    with conn:
        if child_handling == DELETE_RECURSIVE:
            for descendant_id in descendants(conn, child_ids):
                delete_action_row(conn, descendant_id, commit=False)
        elif child_ids:
            for child_id in child_ids:
                _detach(conn, action_id, child_id)
                _attach(conn, new_parent_id, child_id)  # type: ignore[arg-type]
        delete_action_row(conn, action_id, commit=False)

    logger.info(
        "Deleted action %s (%d children, %s)", action_id, len(child_ids), child_handling
    )
    if child_handling == REPARENT:
        for child_id in child_ids:
            _publish(events, child_id, MOVED)
    return DeleteResult(
        deleted_action=action,
        children_count=len(child_ids),
        child_handling=child_handling,
        new_parent_id=new_parent_id if child_handling == REPARENT else None,
    )


# ---------------------------------------------------------------------------
# Completion / field updates
# ---------------------------------------------------------------------------

def set_done(
    conn: sqlite3.Connection,
    action_id: str,
    done: bool,
    events: Optional[EventQueue] = None,
) -> Action:
    """Mark an action done (gated) or reopen it (always allowed).

    Raises:
        NotFoundError: The action does not exist.
        InvalidOperationError: ``done=True`` while a prerequisite is open.
            Open children count, since every parent depends on its children.
    """
    action = require_action(conn, action_id)
    if done and not action.done:
        unmet = unmet_dependencies(conn, action_id)
        if unmet:
            names = ", ".join(p.label() for p in unmet)
            raise InvalidOperationError(
                f"Cannot complete {action.label()}: unmet dependencies: {names}"
            )

    updated = update_action_fields(conn, action_id, done=done)
    if done and not action.done:
        _publish(events, action_id, COMPLETED)
    return updated


def update_action(
    conn: sqlite3.Connection,
    action_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    vision: Optional[str] = None,
    done: Optional[bool] = None,
    events: Optional[EventQueue] = None,
) -> Action:
    """Update text fields and/or the done flag of an action.

    ``done`` goes through :func:`set_done`, so completion stays gated.

    Raises:
        ValidationError: No field given, or a blank title.
        NotFoundError: The action does not exist.
        InvalidOperationError: Completion blocked by open prerequisites.
    """
    if title is None and description is None and vision is None and done is None:
        raise ValidationError(
            "At least one field (title, description, vision, or done) must be provided"
        )
    require_action(conn, action_id)

    fields: dict[str, str] = {}
    if title is not None:
        fields["title"] = _clean_title(title)
    if description is not None:
        fields["description"] = description
    if vision is not None:
        fields["vision"] = vision

    # Completion first so a rejected completion leaves the text untouched.
    action = None
    if done is not None:
        action = set_done(conn, action_id, done, events=events)
    if fields:
        action = update_action_fields(conn, action_id, **fields)
        _publish(events, action_id, UPDATED)
    return action  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Explicit dependencies
# ---------------------------------------------------------------------------

def add_dependency(
    conn: sqlite3.Connection, action_id: str, depends_on_id: str
) -> Edge:
    """Make *action_id* depend on *depends_on_id*.

    Raises:
        NotFoundError: Either action does not exist.
        InvalidOperationError: An action cannot depend on itself.
    """
    require_action(conn, action_id)
    require_action(conn, depends_on_id, "Dependency action")
    return add_edge(conn, depends_on_id, action_id, DEPENDS_ON)


def remove_dependency(
    conn: sqlite3.Connection, action_id: str, depends_on_id: str
) -> Edge:
    """Remove the dependency of *action_id* on *depends_on_id*.

    Raises:
        NotFoundError: Either action or the dependency itself does not exist.
        InvalidOperationError: The dependency is the one every parent has on
            its child; detach the child with :func:`move_action` instead.
    """
    action = require_action(conn, action_id)
    dependency = require_action(conn, depends_on_id, "Dependency action")

    edge = get_edge(conn, depends_on_id, action_id, DEPENDS_ON)
    if edge is None:
        raise NotFoundError(
            f"No dependency found: {action.title} does not depend on {dependency.title}"
        )
    if has_edge(conn, action_id, depends_on_id, FAMILY):
        raise InvalidOperationError(
            f"{action.label()} depends on its child {dependency.label()}; "
            "move the child to detach it"
        )

    remove_edge(conn, depends_on_id, action_id, DEPENDS_ON)
    return edge

