"""Completion Gate: are an action's prerequisites satisfied?

Because every parent depends on each of its children (see
:mod:`actiongraph.engine.mutations`), "all children done" is already part
of a parent's direct dependencies.  When the gate looks *up* the family
chain it therefore only counts an ancestor as blocked by prerequisites that
lie outside the ancestor's own subtree; the ones inside are exactly what
the caller is working through.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from actiongraph.db.actions import get_actions
from actiongraph.db.edges import get_dependency_ids, get_parent_id
from actiongraph.db.models import Action
from actiongraph.engine.walker import descendants


SubtreeCache = dict[str, set[str]]


def unmet_dependencies(conn: sqlite3.Connection, action_id: str) -> list[Action]:
    """Return the prerequisites of *action_id* that are not done.

    Prerequisite edges whose source row no longer exists are ignored.
    """
    prerequisites = get_actions(conn, get_dependency_ids(conn, action_id))
    return [p for p in prerequisites if not p.done]


def direct_dependencies_met(conn: sqlite3.Connection, action_id: str) -> bool:
    """True iff every prerequisite of *action_id* is done (vacuously for none)."""
    return not unmet_dependencies(conn, action_id)


def _subtree(
    conn: sqlite3.Connection, action_id: str, subtrees: Optional[SubtreeCache]
) -> set[str]:
    if subtrees is None:
        return descendants(conn, [action_id])
    if action_id not in subtrees:
        subtrees[action_id] = descendants(conn, [action_id])
    return subtrees[action_id]


def _blocked_from_outside(
    conn: sqlite3.Connection,
    action_id: str,
    subtrees: Optional[SubtreeCache] = None,
) -> bool:
    unmet = unmet_dependencies(conn, action_id)
    if not unmet:
        return False
    subtree = _subtree(conn, action_id, subtrees)
    return any(p.id not in subtree for p in unmet)


def family_dependencies_met(
    conn: sqlite3.Connection,
    action_id: str,
    subtrees: Optional[SubtreeCache] = None,
) -> bool:
    """Walk up the family chain; fail if any ancestor is blocked from outside.

    *subtrees* memoises subtree sets across calls that share it.  Only pass
    one while the graph cannot change, e.g. for the length of a single
    resolver query.
    """
    seen = {action_id}
    parent_id = get_parent_id(conn, action_id)
    while parent_id is not None and parent_id not in seen:
        if _blocked_from_outside(conn, parent_id, subtrees):
            return False
        seen.add(parent_id)
        parent_id = get_parent_id(conn, parent_id)
    return True


def dependencies_met(
    conn: sqlite3.Connection,
    action_id: str,
    subtrees: Optional[SubtreeCache] = None,
) -> bool:
    """Direct prerequisites done *and* no ancestor blocked from outside."""
    return direct_dependencies_met(conn, action_id) and family_dependencies_met(
        conn, action_id, subtrees
    )


def blocked_only_by_subtree(
    conn: sqlite3.Connection,
    action_id: str,
    subtrees: Optional[SubtreeCache] = None,
) -> bool:
    """True if nothing outside *action_id*'s own subtree is holding it back.

    The resolver uses this to decide whether an action with open children is
    worth descending into.
    """
    return not _blocked_from_outside(
        conn, action_id, subtrees
    ) and family_dependencies_met(conn, action_id, subtrees)
