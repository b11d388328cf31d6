"""Centralised settings for the ActionGraph backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("ACTIONGRAPH_WORKSPACE", Path.home() / ".actiongraph_data")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("ACTIONGRAPH_CLI_DIR", Path.home() / ".actiongraph_cli")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "actions.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Embedding model
    # ------------------------------------------------------------------
    embedding_provider: str = field(
        default_factory=lambda: os.environ.get("EMBEDDING_PROVIDER", "ollama")
    )
    ollama_base_url: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")
    )
    ollama_embed_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_EMBED_MODEL", "embeddinggemma:latest")
    )
    openai_embed_model: str = field(
        default_factory=lambda: os.environ.get(
            "OPENAI_EMBED_MODEL", "text-embedding-3-small"
        )
    )
    embedding_dim: int = field(
        default_factory=lambda: int(os.environ.get("EMBEDDING_DIM", "768"))
    )

    # ------------------------------------------------------------------
    # Chat model (summaries / editorial content)
    # ------------------------------------------------------------------
    llm_provider: str = field(
        default_factory=lambda: os.environ.get("LLM_PROVIDER", "ollama")
    )
    ollama_chat_model: str = field(
        default_factory=lambda: os.environ.get("OLLAMA_CHAT_MODEL", "ministral-3:8b")
    )
    openai_chat_model: str = field(
        default_factory=lambda: os.environ.get("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    )

    # ------------------------------------------------------------------
    # Graph engine bounds
    # ------------------------------------------------------------------
    tree_max_nodes: int = field(
        default_factory=lambda: int(os.environ.get("TREE_MAX_NODES", "500"))
    )
    tree_max_depth: int = field(
        default_factory=lambda: int(os.environ.get("TREE_MAX_DEPTH", "10"))
    )
    unblocked_scan_limit: int = field(
        default_factory=lambda: int(os.environ.get("UNBLOCKED_SCAN_LIMIT", "1000"))
    )

    # ------------------------------------------------------------------
    # Background generation
    # ------------------------------------------------------------------
    generation_enabled: bool = field(
        default_factory=lambda: _env_bool("GENERATION_ENABLED", "true")
    )
    # Synchronous generation after CLI writes (blocks on model calls).
    cli_generation: bool = field(
        default_factory=lambda: _env_bool("CLI_GENERATION", "false")
    )
    generation_max_workers: int = field(
        default_factory=lambda: int(os.environ.get("GENERATION_MAX_WORKERS", "2"))
    )
    generation_max_attempts: int = field(
        default_factory=lambda: int(os.environ.get("GENERATION_MAX_ATTEMPTS", "2"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper()
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton; import this everywhere:
#   from actiongraph.config import settings
settings = Settings()
