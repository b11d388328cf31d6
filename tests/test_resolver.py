"""Tests for the next-workable resolver and the unblocked / blocking queries."""

from __future__ import annotations

import sqlite3
from typing import Generator, Iterable, Optional
from unittest.mock import patch

import pytest

from actiongraph.config import settings
from actiongraph.db.actions import get_action
from actiongraph.db.connection import get_connection
from actiongraph.db.edges import add_edge
from actiongraph.db.migrations import init_db
from actiongraph.db.models import DEPENDS_ON
from actiongraph.engine.mutations import (
    add_dependency,
    create_action,
    set_done,
    update_action,
)
from actiongraph.engine import gate
from actiongraph.engine.resolver import (
    get_blocking_dependencies,
    get_next_action,
    get_unblocked_actions,
    is_workable,
)
from actiongraph.errors import NotFoundError


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


def _new(
    conn: sqlite3.Connection,
    title: str,
    parent: Optional[str] = None,
    deps: Iterable[str] = (),
) -> str:
    return create_action(conn, title, parent_id=parent, depends_on_ids=deps).action.id


class TestIsWorkable:
    def test_lone_open_action(self, conn) -> None:
        a = _new(conn, "A")
        assert is_workable(conn, get_action(conn, a))

    def test_done_action(self, conn) -> None:
        a = _new(conn, "A")
        set_done(conn, a, True)
        assert not is_workable(conn, get_action(conn, a))

    def test_parent_with_open_child(self, conn) -> None:
        parent = _new(conn, "Parent")
        _new(conn, "Child", parent)
        assert not is_workable(conn, get_action(conn, parent))


class TestNextAction:
    def test_empty_graph(self, conn) -> None:
        assert get_next_action(conn) is None

    def test_returns_open_sibling_not_parent(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B", a)
        c = _new(conn, "C", a)
        set_done(conn, b, True)

        found = get_next_action(conn)
        assert found is not None
        assert found.id == c

    def test_parent_once_children_done(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B", a)
        set_done(conn, b, True)
        assert get_next_action(conn).id == a

    def test_descends_to_deepest_leftmost_leaf(self, conn) -> None:
        root = _new(conn, "Root")
        first = _new(conn, "First", root)
        _new(conn, "Second", root)
        deep = _new(conn, "Deep", first)
        assert get_next_action(conn).id == deep

    def test_skips_child_blocked_from_outside(self, conn) -> None:
        outside = _new(conn, "Outside")
        root = _new(conn, "Root")
        blocked = _new(conn, "Blocked", root, deps=[outside])
        sibling = _new(conn, "Sibling", root)

        found = get_next_action(conn, scope_id=root)
        assert found is not None
        assert found.id == sibling
        assert found.id != blocked

    def test_deep_chain_computes_each_subtree_once(self, conn) -> None:
        ids = [_new(conn, "Level 0")]
        for depth in range(1, 8):
            ids.append(_new(conn, f"Level {depth}", ids[-1]))

        with patch.object(gate, "descendants", wraps=gate.descendants) as spy:
            found = get_next_action(conn)

        assert found.id == ids[-1]
        roots = [tuple(call.args[1]) for call in spy.call_args_list]
        assert roots and len(roots) == len(set(roots))

    def test_backtracks_out_of_dead_branch(self, conn) -> None:
        outside = _new(conn, "Outside")
        root = _new(conn, "Root")
        first = _new(conn, "First", root)
        _new(conn, "Deep", first, deps=[outside])
        sibling = _new(conn, "Sibling", root)

        # First is entered, but its only child waits on Outside.
        assert get_next_action(conn, scope_id=root).id == sibling

    def test_skips_tree_blocked_from_outside(self, conn) -> None:
        gate = _new(conn, "Gate")
        top = _new(conn, "Top", deps=[gate])
        _new(conn, "Leaf", top)
        assert get_next_action(conn).id == gate
        assert get_next_action(conn, scope_id=top) is None

    def test_nothing_workable(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        add_edge(conn, a, b, DEPENDS_ON)
        add_edge(conn, b, a, DEPENDS_ON)
        assert get_next_action(conn) is None

    def test_scope(self, conn) -> None:
        _new(conn, "Elsewhere")
        scope = _new(conn, "Scope")
        inside = _new(conn, "Inside", scope)
        assert get_next_action(conn, scope_id=scope).id == inside

    def test_missing_scope(self, conn) -> None:
        with pytest.raises(NotFoundError, match="Scope action"):
            get_next_action(conn, scope_id="ghost")


class TestUnblocked:
    def test_recently_updated_first(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        assert [x.id for x in get_unblocked_actions(conn)] == [b, a]

        update_action(conn, a, title="A, reworded")
        assert [x.id for x in get_unblocked_actions(conn)] == [a, b]

    def test_back_to_back_updates_keep_touch_order(self, conn) -> None:
        ids = [_new(conn, f"A{i}") for i in range(5)]
        for action_id in ids:
            update_action(conn, action_id, description="touched")
        assert [x.id for x in get_unblocked_actions(conn)] == list(reversed(ids))

    def test_excludes_blocked_and_parents(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        gated = _new(conn, "Gated", deps=[child])
        ids = {x.id for x in get_unblocked_actions(conn)}
        assert ids == {child}
        assert gated not in ids

    def test_limit(self, conn) -> None:
        for i in range(4):
            _new(conn, f"A{i}")
        assert len(get_unblocked_actions(conn, limit=2)) == 2
        assert get_unblocked_actions(conn, limit=0) == []

    def test_scan_limit(self, conn) -> None:
        _new(conn, "Old")
        new = _new(conn, "New")
        with patch.object(settings, "unblocked_scan_limit", 1):
            assert [x.id for x in get_unblocked_actions(conn)] == [new]

    def test_scope(self, conn) -> None:
        _new(conn, "Elsewhere")
        scope = _new(conn, "Scope")
        inside = _new(conn, "Inside", scope)
        assert [x.id for x in get_unblocked_actions(conn, scope_id=scope)] == [inside]

    def test_dependency_cycle_yields_nothing(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        c = _new(conn, "C")
        add_edge(conn, a, b, DEPENDS_ON)
        add_edge(conn, b, c, DEPENDS_ON)
        add_edge(conn, c, a, DEPENDS_ON)
        assert get_unblocked_actions(conn) == []


class TestBlockingDependencies:
    def test_ranked_by_block_count(self, conn) -> None:
        big = _new(conn, "Big")
        small = _new(conn, "Small")
        _new(conn, "D1", deps=[big])
        _new(conn, "D2", deps=[big, small])

        report = get_blocking_dependencies(conn)
        assert [(b.action.id, b.block_count) for b in report] == [(big, 2), (small, 1)]

    def test_done_prerequisites_excluded(self, conn) -> None:
        prereq = _new(conn, "Prereq")
        _new(conn, "Dependent", deps=[prereq])
        set_done(conn, prereq, True)
        assert get_blocking_dependencies(conn) == []
