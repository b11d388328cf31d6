"""Storage for action embeddings in the ``actions_vec`` virtual table."""

from __future__ import annotations

import json
import sqlite3
from typing import Optional

import sqlite_vec


def store_embedding(
    conn: sqlite3.Connection, action_id: str, embedding: list[float]
) -> None:
    """Insert or replace the embedding for *action_id*.

    ``vec0`` tables do not support ``INSERT OR REPLACE``, so the old row is
    deleted first inside the same transaction.
    """
    blob = sqlite_vec.serialize_float32(embedding)
    with conn:
        conn.execute("DELETE FROM actions_vec WHERE id = ?", (action_id,))
        conn.execute(
            "INSERT INTO actions_vec(id, embedding) VALUES (?, ?)",
            (action_id, blob),
        )


def has_embedding(conn: sqlite3.Connection, action_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM actions_vec WHERE id = ?", (action_id,)
    ).fetchone()
    return row is not None


def get_embedding(conn: sqlite3.Connection, action_id: str) -> Optional[list[float]]:
    """Return the stored vector for *action_id*, or ``None``."""
    row = conn.execute(
        "SELECT vec_to_json(embedding) FROM actions_vec WHERE id = ?", (action_id,)
    ).fetchone()
    if row is None:
        return None
    return json.loads(row[0])
