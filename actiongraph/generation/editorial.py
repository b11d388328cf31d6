"""Editorial headline and deck for completed actions.

The chat model is asked for a small JSON object::

    {"headline": "...", "deck": "..."}

and the normalised object is stored as JSON text in ``actions.editorial``.
Replies that are not valid JSON are scanned for ``headline:`` / ``deck:``
lines instead.
"""

from __future__ import annotations

import json
import re
import sqlite3
from typing import Optional

from actiongraph.db.actions import set_generated_fields
from actiongraph.db.models import Action
from actiongraph.engine.walker import breadcrumb
from actiongraph.generation.llm import invoke_text

_SYSTEM = (
    "You are a technical writer creating measured, analytical copy about "
    "completed work."
)

_HEADLINE_RE = re.compile(r"headline[\"']?\s*[:=]\s*[\"']?([^\"'\n]{5,})", re.IGNORECASE)
_DECK_RE = re.compile(r"deck[\"']?\s*[:=]\s*[\"']?([^\"'\n]{10,})", re.IGNORECASE)


def build_editorial_prompt(action: Action, path: str) -> str:
    lines = [
        f"Completed action: {action.title}",
        f"Location in the plan: {path}",
    ]
    if action.description:
        lines.append(f"Description: {action.description}")
    if action.vision:
        lines.append(f"Intended outcome: {action.vision}")
    lines += [
        "",
        "Write:",
        "1. HEADLINE: a factual headline of 10-15 words, no hyperbole.",
        "2. DECK: one or two sentences explaining what was achieved and why it "
        "matters.",
        "",
        'Respond with JSON only: {"headline": "...", "deck": "..."}',
    ]
    return "\n".join(lines)


def parse_editorial(text: str) -> Optional[dict[str, str]]:
    """Extract ``headline`` and ``deck`` from a model reply.

    Returns ``None`` if no headline can be found.
    """
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict) and str(data.get("headline", "")).strip():
            return {
                "headline": str(data["headline"]).strip(),
                "deck": str(data.get("deck", "")).strip(),
            }

    headline = _HEADLINE_RE.search(text)
    if headline is None:
        return None
    deck = _DECK_RE.search(text)
    return {
        "headline": headline.group(1).strip(),
        "deck": deck.group(1).strip() if deck else "",
    }


def generate_editorial(conn: sqlite3.Connection, action: Action) -> dict[str, str]:
    """Generate and store editorial copy for a completed *action*.

    Raises:
        ValueError: The model reply contains no usable headline.
    """
    reply = invoke_text(
        build_editorial_prompt(action, breadcrumb(conn, action.id)), system=_SYSTEM
    )
    content = parse_editorial(reply)
    if content is None:
        raise ValueError(f"No headline in editorial reply for action {action.id}")
    set_generated_fields(conn, action.id, editorial=json.dumps(content))
    return content
