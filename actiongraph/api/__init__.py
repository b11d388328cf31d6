"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from actiongraph.api import app

    uvicorn actiongraph.api:app --reload
"""

from actiongraph.api.app import app

__all__ = ["app"]
