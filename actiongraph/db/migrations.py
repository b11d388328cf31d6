"""Database initialisation and migration helpers.

``init_db(conn)`` is idempotent and safe to call on an existing database.
``migrate(conn)`` runs incremental data/schema changes tracked in a version
table.
"""

from __future__ import annotations

import sqlite3

from actiongraph.config import settings


# Each migration is ``(version, sql)``; applied in order, recorded once.
MIGRATIONS: list[tuple[int, str]] = [
    # Every family edge must be paired with the derived
    # depends_on(child -> parent) edge.  Databases written before the
    # pairing existed are backfilled here.
    (
        1,
        """
        INSERT OR IGNORE INTO edges (src, dst, kind, created_at)
        SELECT family.dst, family.src, 'depends_on', family.created_at
        FROM   edges AS family
        WHERE  family.kind = 'family'
        """,
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_schema() -> str:
    """Load schema.sql and inject runtime values (embedding dimension)."""
    template = settings.schema_path.read_text(encoding="utf-8")
    return template.replace("{embedding_dim}", str(settings.embedding_dim))


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the internal schema-version tracking table if absent."""
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (unixepoch())
            )
            """
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables, indexes, triggers and virtual tables, then migrate.

    Every DDL statement uses ``IF NOT EXISTS`` so calling this repeatedly on
    the same database is safe.

    Args:
        conn: An open, configured SQLite connection (sqlite-vec already loaded).
    """
    # executescript() handles the trigger body (BEGIN…END) and issues an
    # implicit COMMIT first, which is fine for a DDL-only script.
    conn.executescript(_read_schema())
    _ensure_version_table(conn)
    migrate(conn)


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection) -> None:
    """Run any pending migrations from :data:`MIGRATIONS`."""
    applied = current_version(conn)
    for version, sql in MIGRATIONS:
        if version > applied:
            with conn:
                conn.execute(sql)
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)", (version,)
                )
