"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``), initialises the schema, and creates
the :class:`~actiongraph.engine.events.EventQueue` the routers publish on
(``request.app.state.events``).  When ``settings.generation_enabled`` is set
a :class:`~actiongraph.generation.GenerationWorker` consumes that queue in
the background on connections of its own.  On shutdown the worker is
stopped and the connection closed.

Routers
-------
    /actions   action CRUD, tree views, next / unblocked queries
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from actiongraph.config import settings
from actiongraph.db import get_connection, init_db
from actiongraph.engine.events import EventQueue
from actiongraph.generation import GenerationWorker

from actiongraph.api.routers import actions as actions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and start generation on startup; tear both down on shutdown."""
    logging.basicConfig(level=settings.log_level)
    conn = get_connection()
    init_db(conn)
    events = EventQueue()
    app.state.db = conn
    app.state.events = events

    worker = None
    if settings.generation_enabled:
        worker = GenerationWorker(conn, events)
        worker.start()
    else:
        logger.info("Background generation disabled")
    try:
        yield
    finally:
        if worker is not None:
            worker.stop()
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="ActionGraph API",
        description=(
            "REST interface for the ActionGraph planning engine. "
            "Exposes action CRUD, family trees, dependency management "
            "and next-workable-action queries."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(actions_router.router, prefix="/actions", tags=["actions"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn actiongraph.api.app:app --reload
app = create_app()
