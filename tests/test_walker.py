"""Tests for ancestor / descendant traversals and breadcrumbs."""

from __future__ import annotations

import sqlite3
from typing import Generator, Optional

import pytest

from actiongraph.db.connection import get_connection
from actiongraph.db.migrations import init_db
from actiongraph.engine.mutations import create_action
from actiongraph.engine.walker import (
    ancestor_chain,
    breadcrumb,
    descendants,
    would_create_cycle,
)
from actiongraph.errors import NotFoundError


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


def _new(conn: sqlite3.Connection, title: str, parent: Optional[str] = None) -> str:
    return create_action(conn, title, parent_id=parent).action.id


@pytest.fixture()
def chain(conn: sqlite3.Connection) -> dict[str, str]:
    """root -> mid -> leaf, plus a sibling of mid."""
    root = _new(conn, "Root")
    mid = _new(conn, "Mid", root)
    leaf = _new(conn, "Leaf", mid)
    sibling = _new(conn, "Sibling", root)
    return {"root": root, "mid": mid, "leaf": leaf, "sibling": sibling}


class TestAncestorChain:
    def test_root_first(self, conn, chain) -> None:
        titles = [a.title for a in ancestor_chain(conn, chain["leaf"])]
        assert titles == ["Root", "Mid"]

    def test_root_has_no_ancestors(self, conn, chain) -> None:
        assert ancestor_chain(conn, chain["root"]) == []

    def test_cyclic_data_terminates(self, conn, chain) -> None:
        # Corrupt the forest directly: root becomes a child of leaf.
        conn.execute(
            "INSERT INTO edges (src, dst, kind, created_at) VALUES (?, ?, 'family', 0)",
            (chain["leaf"], chain["root"]),
        )
        conn.commit()
        titles = [a.title for a in ancestor_chain(conn, chain["leaf"])]
        assert titles == ["Root", "Mid"]


class TestDescendants:
    def test_includes_seeds(self, conn, chain) -> None:
        assert descendants(conn, [chain["mid"]]) == {chain["mid"], chain["leaf"]}

    def test_whole_tree(self, conn, chain) -> None:
        assert descendants(conn, [chain["root"]]) == set(chain.values())

    def test_multiple_seeds(self, conn, chain) -> None:
        found = descendants(conn, [chain["leaf"], chain["sibling"]])
        assert found == {chain["leaf"], chain["sibling"]}

    def test_empty(self, conn) -> None:
        assert descendants(conn, []) == set()


class TestCycleCheck:
    def test_descendant_as_parent(self, conn, chain) -> None:
        assert would_create_cycle(conn, chain["root"], chain["leaf"])

    def test_self_as_parent(self, conn, chain) -> None:
        assert would_create_cycle(conn, chain["mid"], chain["mid"])

    def test_unrelated_parent(self, conn, chain) -> None:
        assert not would_create_cycle(conn, chain["mid"], chain["sibling"])


class TestBreadcrumb:
    def test_full_path(self, conn, chain) -> None:
        assert breadcrumb(conn, chain["leaf"]) == "Root > Mid > Leaf"

    def test_without_self(self, conn, chain) -> None:
        assert breadcrumb(conn, chain["leaf"], include_self=False) == "Root > Mid"

    def test_custom_separator(self, conn, chain) -> None:
        assert breadcrumb(conn, chain["mid"], separator=" / ") == "Root / Mid"

    def test_missing(self, conn) -> None:
        with pytest.raises(NotFoundError):
            breadcrumb(conn, "ghost")
