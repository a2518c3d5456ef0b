"""LLM clients: a LangChain chat-model client and an offline mock.

Chat models are created lazily on first use, so a missing API key surfaces as
an error from ``complete`` rather than at startup.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from dotenv import load_dotenv
from langchain_core.messages import HumanMessage

from api_client.llm.registry import register
from models.config import CommentaryConfig

load_dotenv()  # auto-load .env file if present

logger = logging.getLogger(__name__)

_MOCK_RESPONSES = [
    "Chart looks like a ski slope. Buy the dip, but bring a helmet.",
    "Momentum is strong. Ride it, just don't marry it.",
    "Sideways again. Even the candles are taking a nap.",
    "Volume is waking up. Keep a stop-loss within arm's reach.",
]


def _create_chat_model(provider: str, model: str, temperature: float, timeout: float):
    """Instantiate the appropriate LangChain chat model."""
    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=model, temperature=temperature, timeout=timeout)
    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(model=model, temperature=temperature, timeout=timeout)
    else:
        raise ValueError(
            f"Unsupported LLM provider '{provider}'. "
            f"Supported: 'openai', 'anthropic'."
        )


class ChatModelClient:
    """Sends a single human message to a LangChain chat model and returns its text."""

    def __init__(self, provider: str, temperature: float = 0.9, timeout: float = 30.0) -> None:
        self._provider = provider.lower()
        self._temperature = temperature
        self._timeout = timeout
        self._models: dict[str, Any] = {}

    def complete(self, model: str, prompt: str) -> str | None:
        llm = self._models.get(model)
        if llm is None:
            llm = _create_chat_model(self._provider, model, self._temperature, self._timeout)
            self._models[model] = llm
        response = llm.invoke([HumanMessage(content=prompt)])
        text = _message_text(response.content)
        return text if text.strip() else None


class MockLLMClient:
    """Deterministic client for running without API keys. Cycles through canned replies."""

    def __init__(self, responses: Sequence[str] | None = None) -> None:
        self._responses = list(responses) if responses is not None else list(_MOCK_RESPONSES)
        self.calls: list[tuple[str, str]] = []

    def complete(self, model: str, prompt: str) -> str | None:
        self.calls.append((model, prompt))
        if not self._responses:
            return None
        return self._responses[(len(self.calls) - 1) % len(self._responses)]


@register("openai")
def _openai_client(config: CommentaryConfig) -> ChatModelClient:
    return ChatModelClient("openai", config.temperature, config.timeout_seconds)


@register("anthropic")
def _anthropic_client(config: CommentaryConfig) -> ChatModelClient:
    return ChatModelClient("anthropic", config.temperature, config.timeout_seconds)


@register("mock")
def _mock_client(config: CommentaryConfig) -> MockLLMClient:
    logger.info("Using mock commentary client; no API calls will be made.")
    return MockLLMClient()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _message_text(content: Any) -> str:
    """Flatten chat message content (a string or a list of content blocks) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""
