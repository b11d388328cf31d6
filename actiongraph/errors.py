"""Error kinds raised by the action graph engine.

All of them derive from :class:`ValueError` so callers that already catch
``ValueError`` (the HTTP routers, the CLI) keep working unchanged.
"""

from __future__ import annotations


class ActionGraphError(ValueError):
    """Base class for every engine error."""


class NotFoundError(ActionGraphError):
    """A referenced action or edge does not exist."""


class InvalidOperationError(ActionGraphError):
    """The request is well formed but would break a graph invariant."""


class ValidationError(ActionGraphError):
    """Malformed input, e.g. an empty title or an unknown mode."""
