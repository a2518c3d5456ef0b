"""LLM client registry: maps provider strings to client factories.

Usage::

    from api_client.llm.registry import create_llm_client

    client = create_llm_client(commentary_config)
"""

from __future__ import annotations

from typing import Callable

from api_client.llm.client import LLMClient
from models.config import CommentaryConfig

ClientFactory = Callable[[CommentaryConfig], LLMClient]

# ---------------------------------------------------------------------------
# Registry mapping
# ---------------------------------------------------------------------------
_REGISTRY: dict[str, ClientFactory] = {}


def register(name: str):
    """Decorator to register an ``LLMClient`` factory under *name*."""

    def _decorator(factory: ClientFactory) -> ClientFactory:
        if name in _REGISTRY:
            raise ValueError(f"LLM provider '{name}' is already registered.")
        _REGISTRY[name] = factory
        return factory

    return _decorator


def available_providers() -> list[str]:
    _ensure_builtins_loaded()
    return sorted(_REGISTRY)


def create_llm_client(config: CommentaryConfig) -> LLMClient:
    """Instantiate the client for ``config.llm_provider``.

    Raises ``KeyError`` if the provider is not registered.
    """
    # Lazy-import concrete implementations so they self-register.
    _ensure_builtins_loaded()

    key = config.llm_provider.lower()
    if key not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY)) or "(none)"
        raise KeyError(
            f"Unknown LLM provider '{key}'. Available: {available}."
        )
    return _REGISTRY[key](config)


def _ensure_builtins_loaded() -> None:
    """Import built-in client modules so their ``@register`` calls execute."""
    import api_client.llm.chat_client  # noqa: F401
