"""Background worker that turns action events into generated text.

Jobs per event reason:

=============  =========================
``created``    embedding, summary
``updated``    embedding, summary
``moved``      summary
``completed``  editorial
=============  =========================

:meth:`GenerationWorker.start` runs a dispatcher thread that feeds a
:class:`~concurrent.futures.ThreadPoolExecutor`; each pool thread opens its
own connection, so a background commit can never close a transaction the
host has open on its connection.  :meth:`run_pending` does the same work
synchronously on the calling thread, with the host connection.
Generation failures are retried, logged and dropped; they never reach the
code that published the event.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional

from actiongraph.config import settings
from actiongraph.db.actions import get_action
from actiongraph.db.connection import get_connection
from actiongraph.db.models import Action
from actiongraph.engine.events import (
    COMPLETED,
    CREATED,
    MOVED,
    UPDATED,
    ActionEvent,
    EventQueue,
)
from actiongraph.generation.editorial import generate_editorial
from actiongraph.generation.embedder import generate_embedding
from actiongraph.generation.summary import generate_summary

logger = logging.getLogger(__name__)

Generator = Callable[[sqlite3.Connection, Action], Any]

EMBEDDING = "embedding"
SUMMARY = "summary"
EDITORIAL = "editorial"

JOBS_BY_REASON: dict[str, tuple[str, ...]] = {
    CREATED: (EMBEDDING, SUMMARY),
    UPDATED: (EMBEDDING, SUMMARY),
    MOVED: (SUMMARY,),
    COMPLETED: (EDITORIAL,),
}

DEFAULT_GENERATORS: dict[str, Generator] = {
    EMBEDDING: generate_embedding,
    SUMMARY: generate_summary,
    EDITORIAL: generate_editorial,
}


class GenerationWorker:
    """Consume :class:`ActionEvent` objects and run the matching generators.

    Args:
        conn: Host connection, used by :meth:`run_pending` only.  Background
            jobs never touch it.
        events: Queue the Mutation Engine publishes on.
        generators: Job name -> callable ``(conn, action)``.  Defaults to
            :data:`DEFAULT_GENERATORS`; tests pass fakes here.
        max_workers: Pool size (default ``settings.generation_max_workers``).
        max_attempts: Tries per job (default ``settings.generation_max_attempts``).
        connect: Opens a connection for each pool thread (default
            :func:`~actiongraph.db.connection.get_connection`, i.e. the
            configured database file).    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        events: EventQueue,
        generators: Optional[dict[str, Generator]] = None,
        max_workers: Optional[int] = None,
        max_attempts: Optional[int] = None,
        connect: Optional[Callable[[], sqlite3.Connection]] = None,
    ) -> None:
        self.conn = conn
        self.events = events
        self.generators = dict(DEFAULT_GENERATORS if generators is None else generators)
        self.max_workers = max_workers or settings.generation_max_workers
        self.max_attempts = max(1, max_attempts or settings.generation_max_attempts)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._dispatcher: Optional[threading.Thread] = None
        self.connect = connect or get_connection
        self._stopping = threading.Event()
        self._local = threading.local()
        self._opened: list[sqlite3.Connection] = []
        self._opened_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    def jobs_for(self, event: ActionEvent) -> list[str]:
        """Job names to run for *event*, limited to configured generators."""
        return [j for j in JOBS_BY_REASON.get(event.reason, ()) if j in self.generators]

    def run_job(
        self, action_id: str, job: str, conn: Optional[sqlite3.Connection] = None
    ) -> bool:
        """Run one generator for one action.  Returns ``True`` on success.

        *conn* defaults to the host connection.
        """
        conn = self.conn if conn is None else conn
        generator = self.generators[job]
        for attempt in range(1, self.max_attempts + 1):
            # Re-read every attempt: the action may have changed or been deleted.
            action = get_action(conn, action_id)
            if action is None:
                logger.info("Skipping %s for deleted action %s", job, action_id)
                return False
            try:
                generator(conn, action)
            except Exception:
                if attempt < self.max_attempts:
                    logger.warning(
                        "%s generation failed for %s (attempt %d/%d), retrying",
                        job, action_id, attempt, self.max_attempts,
                    )
                    continue
                logger.exception(
                    "%s generation failed for %s after %d attempts",
                    job, action_id, self.max_attempts,
                )
                return False
            logger.debug("%s generated for %s", job, action_id)
            return True
        return False

    def run_pending(self) -> int:
        """Process every queued event on this thread; return jobs that succeeded."""
        succeeded = 0
        for event in self.events.drain():
            for job in self.jobs_for(event):
                if self.run_job(event.action_id, job):
                    succeeded += 1
        return succeeded

    # ------------------------------------------------------------------
    # Background mode
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._dispatcher is not None and self._dispatcher.is_alive()

    def start(self) -> None:
        """Start the dispatcher thread and worker pool (idempotent)."""
        if self.running:
            return
        self._stopping.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="generation"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch, name="generation-dispatcher", daemon=True
        )
        self._dispatcher.start()
        logger.info("Generation worker started (%d workers)", self.max_workers)

    def stop(self, wait: bool = True) -> None:
        """Stop dispatching; with *wait*, let submitted jobs finish first."""
        self._stopping.set()
        if self._dispatcher is not None:
            self._dispatcher.join()
            self._dispatcher = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)
            self._executor = None
        with self._opened_lock:
            opened, self._opened = self._opened, []
        for conn in opened:
            conn.close()
        self._local = threading.local()
        logger.info("Generation worker stopped")

    def _thread_connection(self) -> sqlite3.Connection:
        """Connection owned by the current pool thread, opened on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self.connect()
            self._local.conn = conn
            with self._opened_lock:
                self._opened.append(conn)
        return conn

    def _run_in_pool(self, action_id: str, job: str) -> bool:
        try:
            conn = self._thread_connection()
        except Exception:
            logger.exception("Could not open a connection for %s generation", job)
            return False
        return self.run_job(action_id, job, conn=conn)

    def _dispatch(self) -> None:
        assert self._executor is not None
        while not self._stopping.is_set():
            event = self.events.get(timeout=0.2)
            if event is None:
                continue
            futures: list[Future] = [
                self._executor.submit(self._run_in_pool, event.action_id, job)
                for job in self.jobs_for(event)
            ]
            # Jobs for one event run in parallel; events are taken in order.
            wait(futures)
