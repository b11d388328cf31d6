"""Graph Walker: read-only traversals over ``family`` edges.

All walks are iterative (explicit worklist + visited set) so deep or
corrupted trees cannot exhaust the call stack or loop forever.
"""

from __future__ import annotations

import sqlite3
from collections import deque
from typing import Iterable

from actiongraph.db.actions import get_action, require_action
from actiongraph.db.edges import get_child_ids, get_parent_id
from actiongraph.db.models import Action


def ancestor_chain(conn: sqlite3.Connection, action_id: str) -> list[Action]:
    """Return the ancestors of *action_id*, root first.

    The walk follows the single incoming ``family`` edge one lookup at a
    time.  A missing parent record ends the walk early without error, and so
    does a parent already seen (cyclic data).
    """
    chain: list[Action] = []
    seen = {action_id}
    parent_id = get_parent_id(conn, action_id)
    while parent_id is not None and parent_id not in seen:
        parent = get_action(conn, parent_id)
        if parent is None:
            break
        chain.append(parent)
        seen.add(parent_id)
        parent_id = get_parent_id(conn, parent_id)
    chain.reverse()
    return chain


def descendants(conn: sqlite3.Connection, action_ids: Iterable[str]) -> set[str]:
    """Return *action_ids* plus every action below them in the family forest.

    Breadth-first over ``family`` edges only.
    """
    found = set(action_ids)
    queue = deque(found)
    while queue:
        current = queue.popleft()
        for child_id in get_child_ids(conn, current):
            if child_id not in found:
                found.add(child_id)
                queue.append(child_id)
    return found


def would_create_cycle(
    conn: sqlite3.Connection, action_id: str, proposed_parent_id: str
) -> bool:
    """True if making *proposed_parent_id* the parent of *action_id* closes a loop.

    This includes ``proposed_parent_id == action_id``.
    """
    return proposed_parent_id in descendants(conn, [action_id])


def breadcrumb(
    conn: sqlite3.Connection,
    action_id: str,
    separator: str = " > ",
    include_self: bool = True,
) -> str:
    """Render the path from the root to *action_id*, e.g. ``"Product > Launch"``.

    Raises:
        NotFoundError: If *action_id* does not exist.
    """
    action = require_action(conn, action_id)
    titles = [a.title for a in ancestor_chain(conn, action_id)]
    if include_self:
        titles.append(action.title)
    return separator.join(titles)
