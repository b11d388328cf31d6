"""Graph engine: traversals, completion gate, tree views, resolver, mutations.

Every function takes an open :class:`sqlite3.Connection` as its first
argument; nothing here opens connections or reads module-level state other
than ``settings``.
"""

from actiongraph.engine.events import ActionEvent, EventQueue
from actiongraph.engine.gate import dependencies_met, unmet_dependencies
from actiongraph.engine.mutations import (
    add_dependency,
    create_action,
    delete_action,
    move_action,
    remove_dependency,
    set_done,
    update_action,
)
from actiongraph.engine.resolver import (
    get_blocking_dependencies,
    get_next_action,
    get_unblocked_actions,
    is_workable,
)
from actiongraph.engine.tree import action_detail, build_tree
from actiongraph.engine.walker import ancestor_chain, breadcrumb, descendants

__all__ = [
    "ActionEvent",
    "EventQueue",
    "action_detail",
    "add_dependency",
    "ancestor_chain",
    "breadcrumb",
    "build_tree",
    "create_action",
    "delete_action",
    "dependencies_met",
    "descendants",
    "get_blocking_dependencies",
    "get_next_action",
    "get_unblocked_actions",
    "is_workable",
    "move_action",
    "remove_dependency",
    "set_done",
    "unmet_dependencies",
    "update_action",
]
