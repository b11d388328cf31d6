"""Utilities for rendering actions in the CLI."""

from __future__ import annotations

from typing import List

from actiongraph.db.models import Action, TreeNode


def status_icon(done: bool) -> str:
    return "✅" if done else "⬜"


def format_action(action: Action) -> str:
    """One-line summary: ``⬜ Title  [id]``."""
    return f"{status_icon(action.done)} {action.title}  [{action.id}]"


def render_tree(forest: List[TreeNode], show_ids: bool = False) -> str:
    """Render a family forest as an ASCII tree.

    Args:
        forest: Root nodes as returned by ``build_tree``.
        show_ids: Append each action's id to its line.

    Returns:
        String representation of the forest, one root block after another.
    """
    lines: list[str] = []

    def _label(node: TreeNode) -> str:
        label = f"{status_icon(node.done)} {node.title}"
        if show_ids:
            label += f"  [{node.id}]"
        return label

    # Iterative pre-order; children pushed reversed so the first is drawn first.
    for root in forest:
        lines.append(_label(root))
        stack = [
            (child, "", i == len(root.children) - 1)
            for i, child in enumerate(root.children)
        ]
        stack.reverse()
        while stack:
            node, prefix, is_last = stack.pop()
            connector = "└── " if is_last else "├── "
            lines.append(f"{prefix}{connector}{_label(node)}")
            child_prefix = prefix + ("    " if is_last else "│   ")
            count = len(node.children)
            for i in range(count - 1, -1, -1):
                stack.append((node.children[i], child_prefix, i == count - 1))

    return "\n".join(lines)
