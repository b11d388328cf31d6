"""Row-level operations for the ``actions`` table.

Functions here know nothing about graph invariants; the engine
(:mod:`actiongraph.engine.mutations`) validates before calling them.  Every
writer accepts ``commit=False`` so the engine can group several writes into a
single transaction.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import nullcontext
from time import time_ns
from typing import Any, Iterable, Optional

from actiongraph.db.models import Action
from actiongraph.errors import NotFoundError


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_action(row: sqlite3.Row) -> Action:
    return Action(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        vision=row["vision"],
        done=bool(row["done"]),
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        node_summary=row["node_summary"],
        editorial=row["editorial"],
    )


def _tx(conn: sqlite3.Connection, commit: bool):
    return conn if commit else nullcontext()


def _next_stamp(conn: sqlite3.Connection) -> int:
    """Wall-clock milliseconds, strictly later than every stored ``updated_at``.

    Writes landing in the same millisecond still get distinct, increasing
    stamps, so ``updated_at`` orders actions by their last touch.
    """
    latest = conn.execute("SELECT MAX(updated_at) FROM actions").fetchone()[0]
    return max(time_ns() // 1_000_000, (latest or 0) + 1)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_action(conn: sqlite3.Connection, action_id: str) -> Optional[Action]:
    """Fetch a single action by id.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM actions WHERE id = ?", (action_id,)).fetchone()
    return _row_to_action(row) if row else None


def require_action(
    conn: sqlite3.Connection, action_id: str, role: str = "Action"
) -> Action:
    """Like :func:`get_action` but raises :class:`NotFoundError`.

    *role* names the reference in the message (``"Parent action"``,
    ``"Dependency action"`` …).
    """
    action = get_action(conn, action_id)
    if action is None:
        raise NotFoundError(f"{role} with ID {action_id} not found")
    return action


def get_actions(conn: sqlite3.Connection, action_ids: Iterable[str]) -> list[Action]:
    """Fetch several actions, oldest first.  Unknown ids are skipped."""
    ids = list(dict.fromkeys(action_ids))
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT * FROM actions WHERE id IN ({placeholders}) "  # noqa: S608
        "ORDER BY created_at, rowid",
        ids,
    ).fetchall()
    return [_row_to_action(r) for r in rows]


def list_actions(
    conn: sqlite3.Connection,
    done: Optional[bool] = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Action]:
    """Return actions oldest first, optionally filtered by ``done``."""
    if done is None:
        rows = conn.execute(
            "SELECT * FROM actions ORDER BY created_at, rowid LIMIT ? OFFSET ?",
            (limit, offset),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM actions WHERE done = ? "
            "ORDER BY created_at, rowid LIMIT ? OFFSET ?",
            (int(done), limit, offset),
        ).fetchall()
    return [_row_to_action(r) for r in rows]


def count_actions(conn: sqlite3.Connection, done: Optional[bool] = None) -> int:
    if done is None:
        row = conn.execute("SELECT COUNT(*) FROM actions").fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) FROM actions WHERE done = ?", (int(done),)
        ).fetchone()
    return row[0]


def list_open_actions(
    conn: sqlite3.Connection,
    order: str = "created",
    limit: Optional[int] = None,
) -> list[Action]:
    """Return every action with ``done = 0``.

    Args:
        order: ``"created"`` (oldest first) or ``"updated"`` (most recently
            updated first).
        limit: Optional cap on the number of rows returned.
    """
    if order == "updated":
        order_by = "updated_at DESC, rowid DESC"
    else:
        order_by = "created_at, rowid"
    sql = f"SELECT * FROM actions WHERE done = 0 ORDER BY {order_by}"  # noqa: S608
    params: tuple[Any, ...] = ()
    if limit is not None:
        sql += " LIMIT ?"
        params = (limit,)
    return [_row_to_action(r) for r in conn.execute(sql, params).fetchall()]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def insert_action(
    conn: sqlite3.Connection,
    title: str,
    description: Optional[str] = None,
    vision: Optional[str] = None,
    action_id: Optional[str] = None,
    commit: bool = True,
) -> Action:
    """Insert a new action row and return it.

    Args:
        conn: Open DB connection.
        title: Short human-readable title.
        description: Optional instructions / context.
        vision: Optional description of the finished state.
        action_id: Explicit UUID override (auto-generated when omitted).
        commit: Commit immediately (default) or leave the write in the
            caller's transaction.
    """
    aid = action_id or str(uuid.uuid4())
    now = _next_stamp(conn)
    with _tx(conn, commit):
        conn.execute(
            """
            INSERT INTO actions (id, title, description, vision, done, version,
                                 created_at, updated_at)
            VALUES (?, ?, ?, ?, 0, 0, ?, ?)
            """,
            (aid, title, description, vision, now, now),
        )
    return get_action(conn, aid)  # type: ignore[return-value]


def update_action_fields(
    conn: sqlite3.Connection,
    action_id: str,
    commit: bool = True,
    **kwargs: Any,
) -> Action:
    """Update one or more user-editable fields on an action.

    Allowed keyword arguments: ``title``, ``description``, ``vision``,
    ``done``.  ``updated_at`` is refreshed and ``version`` incremented on
    every call, even when no field is given (a "touch").

    Raises:
        NotFoundError: If ``action_id`` does not exist.
        ValueError: If an unknown field is given.
    """
    if get_action(conn, action_id) is None:
        raise NotFoundError(f"Action with ID {action_id} not found")

    allowed = {"title", "description", "vision", "done"}
    updates: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key not in allowed:
            raise ValueError(f"Cannot update field {key!r}")
        updates[key] = int(value) if key == "done" else value

    updates["updated_at"] = _next_stamp(conn)
    set_clause = ", ".join(f"{col} = ?" for col in updates)
    values = list(updates.values()) + [action_id]

    with _tx(conn, commit):
        conn.execute(
            f"UPDATE actions SET {set_clause}, version = version + 1 WHERE id = ?",  # noqa: S608
            values,
        )
    return get_action(conn, action_id)  # type: ignore[return-value]


def set_generated_fields(
    conn: sqlite3.Connection,
    action_id: str,
    node_summary: Optional[str] = None,
    editorial: Optional[str] = None,
) -> bool:
    """Store generated text without touching ``updated_at`` or ``version``.

    Returns ``False`` when the action no longer exists.
    """
    updates: dict[str, Any] = {}
    if node_summary is not None:
        updates["node_summary"] = node_summary
    if editorial is not None:
        updates["editorial"] = editorial
    if not updates:
        return get_action(conn, action_id) is not None

    set_clause = ", ".join(f"{col} = ?" for col in updates)
    with conn:
        cur = conn.execute(
            f"UPDATE actions SET {set_clause} WHERE id = ?",  # noqa: S608
            list(updates.values()) + [action_id],
        )
    return cur.rowcount > 0


def delete_action_row(
    conn: sqlite3.Connection, action_id: str, commit: bool = True
) -> None:
    """Delete an action and every edge touching it.

    Edges are removed explicitly as well as by the FK cascade so a connection
    opened without ``PRAGMA foreign_keys`` still leaves no dangling edge.
    This is a no-op if the action does not exist.
    """
    with _tx(conn, commit):
        conn.execute("DELETE FROM edges WHERE src = ? OR dst = ?", (action_id, action_id))
        conn.execute("DELETE FROM actions WHERE id = ?", (action_id,))
