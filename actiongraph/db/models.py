"""Dataclass models representing DB rows and engine results.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

# Edge kinds
FAMILY = "family"
DEPENDS_ON = "depends_on"
EDGE_KINDS = (FAMILY, DEPENDS_ON)

# Child handling modes for delete
REPARENT = "reparent"
DELETE_RECURSIVE = "delete_recursive"
CHILD_HANDLING_MODES = (REPARENT, DELETE_RECURSIVE)


@dataclass
class Action:
    id: str
    title: str
    description: str | None
    vision: str | None
    done: bool
    version: int
    created_at: int
    updated_at: int
    node_summary: str | None = None
    editorial: str | None = None

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def label(self) -> str:
        """``'title' (id)``, the form used in error messages."""
        return f"{self.title!r} ({self.id})"

    def generation_text(self) -> str:
        """Title, description and vision joined for the text generators."""
        parts = [self.title, self.description or "", self.vision or ""]
        return "\n\n".join(p for p in parts if p)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Edge:
    src: str
    dst: str
    kind: str
    created_at: int


@dataclass
class TreeNode:
    id: str
    title: str
    description: str | None
    vision: str | None
    done: bool
    created_at: int
    dependencies: list[str] = field(default_factory=list)
    children: list["TreeNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ActionDetail:
    action: Action
    parent_id: Optional[str]
    parent_chain: list[Action]
    children: list[Action]
    dependencies: list[Action]
    dependents: list[Action]


@dataclass
class CreateResult:
    action: Action
    parent_id: Optional[str]
    dependencies_count: int


@dataclass
class MoveResult:
    action_id: str
    old_parent_id: Optional[str]
    new_parent_id: Optional[str]


@dataclass
class DeleteResult:
    deleted_action: Action
    children_count: int
    child_handling: str
    new_parent_id: Optional[str] = None


@dataclass
class BlockingDependency:
    action: Action
    blocked: list[Action]

    @property
    def block_count(self) -> int:
        return len(self.blocked)
