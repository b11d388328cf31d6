"""Action embeddings.

Embedding providers
-------------------
``ollama`` (default)
    Calls the local Ollama REST API at ``/api/embeddings``.
    Configure via ``OLLAMA_BASE_URL`` and ``OLLAMA_EMBED_MODEL``.

``openai``
    Calls the OpenAI embeddings API.
    Requires ``OPENAI_API_KEY`` to be set.
    Configure via ``OPENAI_EMBED_MODEL``.

Set ``EMBEDDING_PROVIDER=openai`` in your ``.env`` to switch providers.
"""

from __future__ import annotations

import os
import sqlite3

import httpx

from actiongraph.config import settings
from actiongraph.db.embeddings import store_embedding
from actiongraph.db.models import Action


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------

def _embed_ollama(text: str) -> list[float]:
    """Call Ollama ``/api/embeddings`` and return the embedding vector."""
    with httpx.Client(timeout=60.0) as client:
        response = client.post(
            f"{settings.ollama_base_url}/api/embeddings",
            json={"model": settings.ollama_embed_model, "prompt": text},
        )
        response.raise_for_status()
        return response.json()["embedding"]


def _embed_openai(text: str) -> list[float]:
    """Call the OpenAI embeddings API and return the embedding vector."""
    api_key = os.environ.get("OPENAI_API_KEY", "")
    if not api_key:
        raise EnvironmentError(
            "OPENAI_API_KEY environment variable is not set. "
            "Set it or switch to EMBEDDING_PROVIDER=ollama."
        )

    with httpx.Client(timeout=60.0) as client:
        response = client.post(
            "https://api.openai.com/v1/embeddings",
            headers={"Authorization": f"Bearer {api_key}"},
            json={"model": settings.openai_embed_model, "input": text},
        )
        response.raise_for_status()
        return response.json()["data"][0]["embedding"]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def embed_text(text: str) -> list[float]:
    """Return an embedding vector for *text*.

    The active provider is determined by ``settings.embedding_provider``
    (``"ollama"`` or ``"openai"``).

    Raises:
        httpx.HTTPStatusError: If the embedding API returns a non-2xx status.
        EnvironmentError: If ``OPENAI_API_KEY`` is missing when using the
            OpenAI provider.
    """
    if settings.embedding_provider == "openai":
        return _embed_openai(text)
    return _embed_ollama(text)


def generate_embedding(conn: sqlite3.Connection, action: Action) -> list[float]:
    """Embed the action's title, description and vision and store the vector."""
    vector = embed_text(action.generation_text())
    if len(vector) != settings.embedding_dim:
        raise ValueError(
            f"Embedding has {len(vector)} dimensions, expected {settings.embedding_dim}"
        )
    store_embedding(conn, action.id, vector)
    return vector
