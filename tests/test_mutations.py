"""Tests for the mutation engine and its graph invariants.

Covers the parent/child derived dependency, single-parent and acyclic
forest guarantees, completion gating and the change events published after
each write.
"""

from __future__ import annotations

import sqlite3
from typing import Generator, Iterable, Optional

import pytest

from actiongraph.db.actions import count_actions, get_action
from actiongraph.db.connection import get_connection
from actiongraph.db.edges import get_edge, get_parent_id, has_edge, list_edges
from actiongraph.db.migrations import init_db
from actiongraph.db.models import DELETE_RECURSIVE, DEPENDS_ON, FAMILY, TreeNode
from actiongraph.engine.events import COMPLETED, CREATED, MOVED, UPDATED, EventQueue
from actiongraph.engine.gate import dependencies_met
from actiongraph.engine.mutations import (
    add_dependency,
    create_action,
    delete_action,
    move_action,
    remove_dependency,
    set_done,
    update_action,
)
from actiongraph.engine.tree import build_tree
from actiongraph.errors import InvalidOperationError, NotFoundError, ValidationError


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


def _edge_set(conn: sqlite3.Connection) -> set[tuple[str, str, str]]:
    return {(e.src, e.dst, e.kind) for e in list_edges(conn)}


def _assert_family_pairs(conn: sqlite3.Connection) -> None:
    """Every family edge has exactly its derived depends_on twin."""
    for edge in list_edges(conn, FAMILY):
        assert has_edge(conn, edge.dst, edge.src, DEPENDS_ON)


def _shape(nodes: list[TreeNode]) -> list[tuple[str, list]]:
    return [(n.title, _shape(n.children)) for n in nodes]


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------

class TestCreate:
    def test_root_action(self, conn) -> None:
        result = create_action(conn, "  Ship it  ", description="d", vision="v")
        assert result.action.title == "Ship it"
        assert result.parent_id is None
        assert result.dependencies_count == 0
        assert list_edges(conn) == []

    def test_child_gets_family_and_derived_edge(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        assert _edge_set(conn) == {
            (parent, child, FAMILY),
            (child, parent, DEPENDS_ON),
        }

    def test_with_dependencies(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        result = create_action(conn, "C", depends_on_ids=[a, b, a])
        assert result.dependencies_count == 2
        assert has_edge(conn, a, result.action.id, DEPENDS_ON)
        assert has_edge(conn, b, result.action.id, DEPENDS_ON)

    def test_blank_title(self, conn) -> None:
        with pytest.raises(ValidationError, match="Title is required"):
            create_action(conn, "   ")

    def test_missing_parent_writes_nothing(self, conn) -> None:
        with pytest.raises(NotFoundError, match="Parent action with ID ghost"):
            create_action(conn, "Orphan", parent_id="ghost")
        assert count_actions(conn) == 0

    def test_missing_dependency_writes_nothing(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(NotFoundError, match="Dependency action with ID ghost"):
            create_action(conn, "B", depends_on_ids=[a, "ghost"])
        assert count_actions(conn) == 1
        assert list_edges(conn) == []

    def test_publishes_created(self, conn) -> None:
        events = EventQueue()
        result = create_action(conn, "A", events=events)
        [event] = events.drain()
        assert (event.action_id, event.reason) == (result.action.id, CREATED)


# ---------------------------------------------------------------------------
# move
# ---------------------------------------------------------------------------

class TestMove:
    def test_move_swaps_edge_pair(self, conn) -> None:
        old = _new(conn, "Old")
        new = _new(conn, "New")
        child = _new(conn, "Child", old)

        result = move_action(conn, child, new)

        assert (result.old_parent_id, result.new_parent_id) == (old, new)
        assert _edge_set(conn) == {(new, child, FAMILY), (child, new, DEPENDS_ON)}

    def test_move_to_root(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        move_action(conn, child, None)
        assert get_parent_id(conn, child) is None
        assert list_edges(conn) == []

    def test_move_to_current_parent_is_noop(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        before = _edge_set(conn)
        version = get_action(conn, child).version
        events = EventQueue()

        move_action(conn, child, parent, events=events)

        assert _edge_set(conn) == before
        assert get_action(conn, child).version == version
        assert len(events) == 0

    def test_move_into_descendant_fails_and_changes_nothing(self, conn) -> None:
        top = _new(conn, "Top")
        mid = _new(conn, "Mid", top)
        leaf = _new(conn, "Leaf", mid)
        before = _edge_set(conn)

        for target in (mid, leaf, top):
            with pytest.raises(InvalidOperationError, match="circular"):
                move_action(conn, top, target)
        assert _edge_set(conn) == before

    def test_move_missing_parent(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(NotFoundError, match="New parent action"):
            move_action(conn, a, "ghost")

    def test_move_keeps_explicit_dependencies(self, conn) -> None:
        prereq = _new(conn, "Prereq")
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent, deps=[prereq])
        move_action(conn, child, None)
        assert has_edge(conn, prereq, child, DEPENDS_ON)

    def test_publishes_moved(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        events = EventQueue()
        move_action(conn, b, a, events=events)
        assert [e.reason for e in events.drain()] == [MOVED]


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------

class TestDelete:
    def test_reparent_children(self, conn) -> None:
        old = _new(conn, "Old")
        target = _new(conn, "Target")
        c1 = _new(conn, "C1", old)
        c2 = _new(conn, "C2", old)

        result = delete_action(conn, old, new_parent_id=target)

        assert result.children_count == 2
        assert result.new_parent_id == target
        assert get_action(conn, old) is None
        assert get_parent_id(conn, c1) == target
        assert get_parent_id(conn, c2) == target
        _assert_family_pairs(conn)
        assert not any(old in (e.src, e.dst) for e in list_edges(conn))

    def test_reparent_requires_target_when_children_exist(self, conn) -> None:
        parent = _new(conn, "Parent")
        _new(conn, "Child", parent)
        with pytest.raises(InvalidOperationError, match="new_parent_id is required"):
            delete_action(conn, parent)
        assert get_action(conn, parent) is not None

    def test_leaf_delete_needs_no_target(self, conn) -> None:
        leaf = _new(conn, "Leaf")
        result = delete_action(conn, leaf)
        assert result.children_count == 0
        assert count_actions(conn) == 0

    def test_leaf_delete_validates_given_target(self, conn) -> None:
        leaf = _new(conn, "Leaf")
        with pytest.raises(NotFoundError, match="New parent action"):
            delete_action(conn, leaf, new_parent_id="ghost")
        assert get_action(conn, leaf) is not None

        keeper = _new(conn, "Keeper")
        result = delete_action(conn, leaf, new_parent_id=keeper)
        assert result.new_parent_id == keeper
        assert get_action(conn, leaf) is None

    def test_reparent_into_own_subtree_rejected(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        grandchild = _new(conn, "Grandchild", child)
        for target in (parent, child, grandchild):
            with pytest.raises(InvalidOperationError):
                delete_action(conn, parent, new_parent_id=target)
        assert count_actions(conn) == 3

    def test_unknown_child_handling(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(ValidationError, match="child_handling"):
            delete_action(conn, a, child_handling="orphan")

    def test_reparent_round_trip(self, conn) -> None:
        target = _new(conn, "Target")
        doomed = _new(conn, "Doomed")
        for title in ("one", "two"):
            _new(conn, title, doomed)
        expected = _shape(build_tree(conn, root_id=doomed)[0].children)

        delete_action(conn, doomed, new_parent_id=target)

        assert _shape(build_tree(conn, root_id=target)[0].children) == expected

    def test_recursive_delete_leaves_no_trace(self, conn) -> None:
        survivor = _new(conn, "Survivor")
        top = _new(conn, "Top")
        mid = _new(conn, "Mid", top)
        leaf = _new(conn, "Leaf", mid)
        watcher = _new(conn, "Watcher", deps=[leaf])
        add_dependency(conn, survivor, mid)
        doomed = {top, mid, leaf}

        result = delete_action(conn, top, child_handling=DELETE_RECURSIVE)

        assert result.child_handling == DELETE_RECURSIVE
        assert result.new_parent_id is None
        for action_id in doomed:
            assert get_action(conn, action_id) is None
        for edge in list_edges(conn):
            assert edge.src not in doomed and edge.dst not in doomed

        forest = build_tree(conn, include_completed=True)
        seen: set[str] = set()
        stack = list(forest)
        while stack:
            node = stack.pop()
            seen.add(node.id)
            seen.update(node.dependencies)
            stack.extend(node.children)
        assert seen == {survivor, watcher}

    def test_reparent_publishes_moved_for_children(self, conn) -> None:
        target = _new(conn, "Target")
        old = _new(conn, "Old")
        child = _new(conn, "Child", old)
        events = EventQueue()
        delete_action(conn, old, new_parent_id=target, events=events)
        assert [(e.action_id, e.reason) for e in events.drain()] == [(child, MOVED)]


# ---------------------------------------------------------------------------
# completion
# ---------------------------------------------------------------------------

class TestSetDone:
    def test_gated_by_explicit_dependency(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        add_dependency(conn, b, a)

        with pytest.raises(InvalidOperationError) as excinfo:
            set_done(conn, b, True)
        assert "'A'" in str(excinfo.value)
        assert a in str(excinfo.value)

        assert set_done(conn, a, True).done is True
        assert set_done(conn, b, True).done is True

    def test_parent_blocked_by_open_child(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        assert not dependencies_met(conn, parent)
        with pytest.raises(InvalidOperationError, match="unmet dependencies"):
            set_done(conn, parent, True)

        set_done(conn, child, True)
        assert set_done(conn, parent, True).done is True

    def test_reopen_is_not_gated(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B", deps=[a])
        set_done(conn, a, True)
        set_done(conn, b, True)
        assert set_done(conn, a, False).done is False
        assert get_action(conn, b).done is True

    def test_completed_event_only_on_transition(self, conn) -> None:
        a = _new(conn, "A")
        events = EventQueue()
        set_done(conn, a, True, events=events)
        set_done(conn, a, True, events=events)
        set_done(conn, a, False, events=events)
        assert [e.reason for e in events.drain()] == [COMPLETED]

    def test_missing(self, conn) -> None:
        with pytest.raises(NotFoundError):
            set_done(conn, "ghost", True)


class TestUpdate:
    def test_text_fields(self, conn) -> None:
        a = _new(conn, "A")
        events = EventQueue()
        updated = update_action(conn, a, title="A2", vision="done", events=events)
        assert (updated.title, updated.vision) == ("A2", "done")
        assert [e.reason for e in events.drain()] == [UPDATED]

    def test_requires_a_field(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(ValidationError, match="At least one field"):
            update_action(conn, a)

    def test_blank_title(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(ValidationError):
            update_action(conn, a, title=" ")

    def test_done_goes_through_gate(self, conn) -> None:
        parent = _new(conn, "Parent")
        _new(conn, "Child", parent)
        with pytest.raises(InvalidOperationError):
            update_action(conn, parent, title="Renamed", done=True)
        assert get_action(conn, parent).title == "Parent"


# ---------------------------------------------------------------------------
# explicit dependencies
# ---------------------------------------------------------------------------

class TestDependencies:
    def test_add_and_remove(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        edge = add_dependency(conn, b, a)
        assert (edge.src, edge.dst, edge.kind) == (a, b, DEPENDS_ON)

        removed = remove_dependency(conn, b, a)
        assert removed.src == a
        assert get_edge(conn, a, b, DEPENDS_ON) is None

    def test_self_dependency_rejected(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(InvalidOperationError):
            add_dependency(conn, a, a)

    def test_missing_dependency_action(self, conn) -> None:
        a = _new(conn, "A")
        with pytest.raises(NotFoundError, match="Dependency action"):
            add_dependency(conn, a, "ghost")

    def test_remove_nonexistent(self, conn) -> None:
        a = _new(conn, "A")
        b = _new(conn, "B")
        with pytest.raises(NotFoundError, match="No dependency found: B does not depend on A"):
            remove_dependency(conn, b, a)

    def test_derived_dependency_cannot_be_removed(self, conn) -> None:
        parent = _new(conn, "Parent")
        child = _new(conn, "Child", parent)
        with pytest.raises(InvalidOperationError, match="move the child"):
            remove_dependency(conn, parent, child)
        _assert_family_pairs(conn)
