"""Next-Workable Resolver: which open action should be worked on now?

An action is *workable* when it is not done, its dependencies are met (see
:mod:`actiongraph.engine.gate`) and every direct child is done.  Work
happens at the leaves first: an action with an open child is never
workable itself.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from actiongraph.config import settings
from actiongraph.db.actions import get_actions, list_open_actions, require_action
from actiongraph.db.edges import get_child_ids, list_edges
from actiongraph.db.models import DEPENDS_ON, Action, BlockingDependency
from actiongraph.engine.gate import (
    SubtreeCache,
    blocked_only_by_subtree,
    dependencies_met,
)
from actiongraph.engine.walker import descendants


def _open_children(conn: sqlite3.Connection, action_id: str) -> list[Action]:
    return [c for c in get_actions(conn, get_child_ids(conn, action_id)) if not c.done]


def is_workable(
    conn: sqlite3.Connection,
    action: Action,
    subtrees: Optional[SubtreeCache] = None,
) -> bool:
    """True if *action* can be picked up right now."""
    if action.done:
        return False
    if not dependencies_met(conn, action.id, subtrees):
        return False
    return not _open_children(conn, action.id)


def _scope_ids(conn: sqlite3.Connection, scope_id: Optional[str]) -> Optional[set[str]]:
    if scope_id is None:
        return None
    require_action(conn, scope_id, "Scope action")
    return descendants(conn, [scope_id])


def _first_workable_leaf(
    conn: sqlite3.Connection,
    start: Action,
    visited: set[str],
    subtrees: SubtreeCache,
) -> Optional[Action]:
    """Depth-first, leftmost-first search below *start* (inclusive).

    Children are only entered when nothing outside their own subtree blocks
    them.  *visited* is shared across calls so a subtree that yielded
    nothing is not searched twice.
    """
    stack = [start]
    while stack:
        action = stack.pop()
        if action.id in visited:
            continue
        visited.add(action.id)

        pending = _open_children(conn, action.id)
        if not pending:
            if is_workable(conn, action, subtrees):
                return action
            continue

        # Reversed so the oldest child is popped first.
        for child in reversed(pending):
            if child.id not in visited and blocked_only_by_subtree(
                conn, child.id, subtrees
            ):
                stack.append(child)
    return None


def get_next_action(
    conn: sqlite3.Connection, scope_id: Optional[str] = None
) -> Optional[Action]:
    """Return the single most relevant workable action, or ``None``.

    Open actions are scanned oldest first.  For each one that is not blocked
    from outside its own subtree, its open children are searched depth-first
    before the action itself is considered.

    Args:
        conn: Open DB connection.
        scope_id: Only consider this action and its descendants.

    Raises:
        NotFoundError: If *scope_id* is given but does not exist.
    """
    scope = _scope_ids(conn, scope_id)
    visited: set[str] = set()
    # The graph is fixed for the length of the query.
    subtrees: SubtreeCache = {}
    for candidate in list_open_actions(conn, order="created"):
        if scope is not None and candidate.id not in scope:
            continue
        if candidate.id in visited:
            continue
        if not blocked_only_by_subtree(conn, candidate.id, subtrees):
            continue
        found = _first_workable_leaf(conn, candidate, visited, subtrees)
        if found is not None:
            return found
    return None


def get_unblocked_actions(
    conn: sqlite3.Connection,
    limit: int = 50,
    scope_id: Optional[str] = None,
) -> list[Action]:
    """Return up to *limit* workable actions, most recently updated first.

    Only the ``settings.unblocked_scan_limit`` most recently touched open
    actions are examined.

    Raises:
        NotFoundError: If *scope_id* is given but does not exist.
    """
    if limit <= 0:
        return []
    scope = _scope_ids(conn, scope_id)
    found: list[Action] = []
    subtrees: SubtreeCache = {}
    for candidate in list_open_actions(
        conn, order="updated", limit=settings.unblocked_scan_limit
    ):
        if scope is not None and candidate.id not in scope:
            continue
        if is_workable(conn, candidate, subtrees):
            found.append(candidate)
            if len(found) >= limit:
                break
    return found


def get_blocking_dependencies(conn: sqlite3.Connection) -> list[BlockingDependency]:
    """Open prerequisites that hold back open dependents, most blocking first."""
    blocked_by: dict[str, list[str]] = {}
    for edge in list_edges(conn, DEPENDS_ON):
        blocked_by.setdefault(edge.src, []).append(edge.dst)

    open_by_id = {a.id: a for a in list_open_actions(conn)}
    report: list[BlockingDependency] = []
    for prerequisite_id, dependent_ids in blocked_by.items():
        prerequisite = open_by_id.get(prerequisite_id)
        if prerequisite is None:
            continue
        blocked = [open_by_id[d] for d in dependent_ids if d in open_by_id]
        if blocked:
            report.append(BlockingDependency(action=prerequisite, blocked=blocked))

    report.sort(key=lambda b: b.block_count, reverse=True)
    return report
