"""Outbound "action changed" events.

The Mutation Engine publishes an :class:`ActionEvent` after each successful
write; :class:`~actiongraph.generation.worker.GenerationWorker` consumes them.
Publishing never blocks and never fails the mutation.
"""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from time import time
from typing import Optional

CREATED = "created"
UPDATED = "updated"
MOVED = "moved"
COMPLETED = "completed"
EVENT_REASONS = (CREATED, UPDATED, MOVED, COMPLETED)


@dataclass(frozen=True)
class ActionEvent:
    action_id: str
    reason: str
    published_at: float = field(default_factory=time)


class EventQueue:
    """Thread-safe FIFO of :class:`ActionEvent` objects (unbounded)."""

    def __init__(self) -> None:
        self._queue: queue.Queue[ActionEvent] = queue.Queue()

    def publish(self, action_id: str, reason: str) -> ActionEvent:
        if reason not in EVENT_REASONS:
            raise ValueError(f"Unknown event reason {reason!r}")
        event = ActionEvent(action_id=action_id, reason=reason)
        self._queue.put_nowait(event)
        return event

    def get(self, timeout: Optional[float] = None) -> Optional[ActionEvent]:
        """Return the next event, or ``None`` if none arrived within *timeout*."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ActionEvent]:
        """Remove and return every queued event without waiting."""
        events: list[ActionEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __len__(self) -> int:
        return self._queue.qsize()
