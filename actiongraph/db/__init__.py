"""Database layer package.

Public re-exports so callers can write::

    from actiongraph.db import get_connection, init_db
    from actiongraph.db import actions, edges
"""

from actiongraph.db.connection import get_connection
from actiongraph.db.migrations import init_db
from actiongraph.db import actions, edges

__all__ = ["get_connection", "init_db", "actions", "edges"]
