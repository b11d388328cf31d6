"""One-sentence node summaries, written into ``actions.node_summary``."""

from __future__ import annotations

import sqlite3

from actiongraph.db.actions import set_generated_fields
from actiongraph.db.models import Action
from actiongraph.engine.walker import breadcrumb
from actiongraph.generation.llm import invoke_text


def build_summary_prompt(action: Action, path: str) -> str:
    lines = [
        "Generate a concise one-sentence summary (under 25 words) that captures "
        "the essence of this action.",
        "",
        f"Location in the plan: {path}",
        f"Title: {action.title}",
    ]
    if action.description:
        lines.append(f"Description: {action.description}")
    if action.vision:
        lines.append(f"Vision: {action.vision}")
    lines += [
        "",
        "The summary should be actionable and clear. Focus on what needs to be "
        "done, not why. Reply with the sentence only.",
    ]
    return "\n".join(lines)


def generate_summary(conn: sqlite3.Connection, action: Action) -> str:
    """Generate and store the node summary for *action*.

    The breadcrumb is re-read at generation time, so a ``moved`` event
    produces a summary for the new location.
    """
    path = breadcrumb(conn, action.id)
    summary = invoke_text(build_summary_prompt(action, path))
    if not summary:
        summary = " ".join(action.title.split()[:8])
    set_generated_fields(conn, action.id, node_summary=summary)
    return summary
