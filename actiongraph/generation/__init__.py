"""Derived text for actions: embeddings, node summaries, editorial copy."""

from actiongraph.generation.worker import GenerationWorker

__all__ = ["GenerationWorker"]
