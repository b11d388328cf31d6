"""Tree Builder: bounded, optionally root-scoped views of the family forest.

``build_tree`` loads the relevant rows and edges up front, then assembles
:class:`~actiongraph.db.models.TreeNode` objects with an explicit queue.
The node and depth caps bound the cost on pathological data; anything past
them is silently left out.
"""

from __future__ import annotations

import sqlite3
from collections import deque
from typing import Optional

from actiongraph.config import settings
from actiongraph.db.actions import _row_to_action, get_actions, require_action
from actiongraph.db.edges import (
    get_child_ids,
    get_dependency_ids,
    get_dependent_ids,
    get_parent_id,
    list_edges,
)
from actiongraph.db.models import DEPENDS_ON, FAMILY, Action, ActionDetail, TreeNode
from actiongraph.engine.walker import ancestor_chain, descendants


def _to_tree_node(action: Action, dependencies: list[str]) -> TreeNode:
    return TreeNode(
        id=action.id,
        title=action.title,
        description=action.description,
        vision=action.vision,
        done=action.done,
        created_at=action.created_at,
        dependencies=dependencies,
    )


def _load_scope(
    conn: sqlite3.Connection, root_id: Optional[str], max_nodes: int
) -> list[Action]:
    if root_id is None:
        rows = conn.execute(
            "SELECT * FROM actions ORDER BY created_at, rowid LIMIT ?", (max_nodes,)
        ).fetchall()
        return [_row_to_action(r) for r in rows]
    scoped = get_actions(conn, descendants(conn, [root_id]))
    root = [a for a in scoped if a.id == root_id]
    rest = [a for a in scoped if a.id != root_id]
    return (root + rest)[:max_nodes]


def build_tree(
    conn: sqlite3.Connection,
    root_id: Optional[str] = None,
    include_completed: bool = False,
    max_nodes: Optional[int] = None,
    max_depth: Optional[int] = None,
) -> list[TreeNode]:
    """Return the family forest (or one scoped tree) as nested TreeNodes.

    Args:
        conn: Open DB connection.
        root_id: Restrict the result to this action and its descendants.
            ``None`` returns every parentless action as a root.
        include_completed: Keep done actions.  When ``False`` a done action
            is dropped together with its whole subtree.
        max_nodes: Cap on the number of actions fetched
            (default ``settings.tree_max_nodes``).
        max_depth: Number of levels returned, roots being level 1
            (default ``settings.tree_max_depth``).

    Raises:
        NotFoundError: If *root_id* is given but does not exist.
    """
    max_nodes = settings.tree_max_nodes if max_nodes is None else max_nodes
    max_depth = settings.tree_max_depth if max_depth is None else max_depth
    if root_id is not None:
        require_action(conn, root_id, "Root action")
    if max_nodes <= 0 or max_depth <= 0:
        return []

    loaded = _load_scope(conn, root_id, max_nodes)
    by_id = {a.id: a for a in loaded}

    children: dict[str, list[str]] = {}
    has_parent: set[str] = set()
    for edge in list_edges(conn, FAMILY):
        has_parent.add(edge.dst)
        if edge.src in by_id and edge.dst in by_id:
            children.setdefault(edge.src, []).append(edge.dst)

    prerequisites: dict[str, list[str]] = {}
    for edge in list_edges(conn, DEPENDS_ON):
        if edge.dst in by_id:
            prerequisites.setdefault(edge.dst, []).append(edge.src)

    # Children in creation order, matching the order rows were loaded in.
    position = {a.id: i for i, a in enumerate(loaded)}
    for kids in children.values():
        kids.sort(key=position.__getitem__)

    if root_id is not None:
        root_ids = [root_id] if root_id in by_id else []
    else:
        root_ids = [a.id for a in loaded if a.id not in has_parent]

    def keep(action_id: str) -> bool:
        return include_completed or not by_id[action_id].done

    forest: list[TreeNode] = []
    visited: set[str] = set()
    queue: deque[tuple[TreeNode, int]] = deque()
    for rid in root_ids:
        if not keep(rid):
            continue
        node = _to_tree_node(by_id[rid], prerequisites.get(rid, []))
        visited.add(rid)
        forest.append(node)
        queue.append((node, 1))

    while queue:
        node, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for child_id in children.get(node.id, []):
            if child_id in visited or not keep(child_id):
                continue
            visited.add(child_id)
            child = _to_tree_node(by_id[child_id], prerequisites.get(child_id, []))
            node.children.append(child)
            queue.append((child, depth + 1))

    return forest


def action_detail(conn: sqlite3.Connection, action_id: str) -> ActionDetail:
    """Return an action together with its immediate graph neighbourhood.

    Raises:
        NotFoundError: If *action_id* does not exist.
    """
    action = require_action(conn, action_id)
    return ActionDetail(
        action=action,
        parent_id=get_parent_id(conn, action_id),
        parent_chain=ancestor_chain(conn, action_id),
        children=get_actions(conn, get_child_ids(conn, action_id)),
        dependencies=get_actions(conn, get_dependency_ids(conn, action_id)),
        dependents=get_actions(conn, get_dependent_ids(conn, action_id)),
    )
