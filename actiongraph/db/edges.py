"""Edge Store: operations on the ``edges`` table.

Two edge kinds exist:

``family``
    ``src`` is the parent, ``dst`` the child.  Each action has at most one
    incoming family edge; :func:`add_edge` rejects a second one.

``depends_on``
    ``src`` is the prerequisite, ``dst`` the dependent.  An action may have
    any number of prerequisites.
"""

from __future__ import annotations

import sqlite3
from contextlib import nullcontext
from time import time_ns
from typing import Optional

from actiongraph.db.actions import get_action
from actiongraph.db.models import EDGE_KINDS, FAMILY, DEPENDS_ON, Edge
from actiongraph.errors import InvalidOperationError, NotFoundError, ValidationError


def _row_to_edge(row: sqlite3.Row) -> Edge:
    return Edge(
        src=row["src"],
        dst=row["dst"],
        kind=row["kind"],
        created_at=row["created_at"],
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def add_edge(
    conn: sqlite3.Connection,
    src: str,
    dst: str,
    kind: str,
    commit: bool = True,
) -> Edge:
    """Create a directed edge from *src* to *dst*.

    Uses ``INSERT OR IGNORE`` so adding the same triple twice is safe.

    Raises:
        ValidationError: Unknown *kind*.
        NotFoundError: Either endpoint does not exist.
        InvalidOperationError: Self edge, or a second parent for *dst*.
    """
    if kind not in EDGE_KINDS:
        raise ValidationError(f"Unknown edge kind {kind!r}")
    if src == dst:
        raise InvalidOperationError(f"An action cannot have a {kind} edge to itself ({src})")
    for endpoint in (src, dst):
        if get_action(conn, endpoint) is None:
            raise NotFoundError(f"Action with ID {endpoint} not found")
    if kind == FAMILY:
        current = get_parent_id(conn, dst)
        if current is not None and current != src:
            raise InvalidOperationError(
                f"Action {dst} already has parent {current}; remove that edge first"
            )

    now = time_ns() // 1_000_000
    with conn if commit else nullcontext():
        conn.execute(
            """
            INSERT OR IGNORE INTO edges (src, dst, kind, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (src, dst, kind, now),
        )
    return Edge(src=src, dst=dst, kind=kind, created_at=now)


def remove_edge(
    conn: sqlite3.Connection,
    src: str,
    dst: str,
    kind: str,
    commit: bool = True,
) -> bool:
    """Delete one edge.  Returns ``True`` if a row was removed."""
    with conn if commit else nullcontext():
        cur = conn.execute(
            "DELETE FROM edges WHERE src = ? AND dst = ? AND kind = ?",
            (src, dst, kind),
        )
    return cur.rowcount > 0


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_edge(
    conn: sqlite3.Connection, src: str, dst: str, kind: str
) -> Optional[Edge]:
    row = conn.execute(
        "SELECT src, dst, kind, created_at FROM edges WHERE src = ? AND dst = ? AND kind = ?",
        (src, dst, kind),
    ).fetchone()
    return _row_to_edge(row) if row else None


def has_edge(conn: sqlite3.Connection, src: str, dst: str, kind: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM edges WHERE src = ? AND dst = ? AND kind = ?",
        (src, dst, kind),
    ).fetchone()
    return row is not None


def get_parent_id(conn: sqlite3.Connection, action_id: str) -> Optional[str]:
    """Return the parent of *action_id*, or ``None`` for a root action."""
    row = conn.execute(
        """
        SELECT src FROM edges
        WHERE  dst = ? AND kind = 'family'
        ORDER  BY created_at, rowid
        LIMIT  1
        """,
        (action_id,),
    ).fetchone()
    return row["src"] if row else None


def get_child_ids(conn: sqlite3.Connection, action_id: str) -> list[str]:
    """Return the direct children of *action_id* in creation order.

    Joined against ``actions`` so an edge to a row deleted concurrently is
    not reported.
    """
    rows = conn.execute(
        """
        SELECT e.dst
        FROM   edges   AS e
        JOIN   actions AS a ON a.id = e.dst
        WHERE  e.src = ? AND e.kind = 'family'
        ORDER  BY a.created_at, a.rowid
        """,
        (action_id,),
    ).fetchall()
    return [r["dst"] for r in rows]


def get_dependency_ids(conn: sqlite3.Connection, action_id: str) -> list[str]:
    """Return the prerequisites of *action_id* (sources of ``depends_on``)."""
    rows = conn.execute(
        "SELECT src FROM edges WHERE dst = ? AND kind = ? ORDER BY created_at, rowid",
        (action_id, DEPENDS_ON),
    ).fetchall()
    return [r["src"] for r in rows]


def get_dependent_ids(conn: sqlite3.Connection, action_id: str) -> list[str]:
    """Return the actions that depend on *action_id*."""
    rows = conn.execute(
        "SELECT dst FROM edges WHERE src = ? AND kind = ? ORDER BY created_at, rowid",
        (action_id, DEPENDS_ON),
    ).fetchall()
    return [r["dst"] for r in rows]


def get_edges(conn: sqlite3.Connection, action_id: str) -> list[Edge]:
    """Return all edges where *action_id* is the source **or** the target."""
    rows = conn.execute(
        """
        SELECT src, dst, kind, created_at
        FROM   edges
        WHERE  src = ? OR dst = ?
        """,
        (action_id, action_id),
    ).fetchall()
    return [_row_to_edge(r) for r in rows]


def list_edges(conn: sqlite3.Connection, kind: Optional[str] = None) -> list[Edge]:
    """Return every edge, optionally only those of one *kind*."""
    if kind is None:
        rows = conn.execute(
            "SELECT src, dst, kind, created_at FROM edges ORDER BY rowid"
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT src, dst, kind, created_at FROM edges WHERE kind = ? ORDER BY rowid",
            (kind,),
        ).fetchall()
    return [_row_to_edge(r) for r in rows]
