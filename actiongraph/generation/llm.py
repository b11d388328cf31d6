"""Chat model factory shared by the text generators."""

from __future__ import annotations

from typing import Any, Optional

from actiongraph.config import settings


def _get_llm() -> Any:
    """Return a configured LangChain chat model based on ``settings``."""
    if settings.llm_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=settings.openai_chat_model, temperature=0.3)

    from langchain_ollama import ChatOllama

    return ChatOllama(model=settings.ollama_chat_model, temperature=0.3)


def invoke_text(prompt: str, system: Optional[str] = None) -> str:
    """Send *prompt* (plus an optional system message) and return the reply text."""
    from langchain_core.messages import HumanMessage, SystemMessage

    messages: list[Any] = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.append(HumanMessage(content=prompt))

    response = _get_llm().invoke(messages)
    raw = response.content if hasattr(response, "content") else str(response)
    return str(raw).strip()
