"""LLM provider registry with lazy loading.

Usage:
    from src.providers import get_provider

    provider = get_provider("anthropic")
    text = provider.complete(prompt, api_key=key, model="claude-sonnet-4-20250514")
"""

from __future__ import annotations

import importlib

from src.providers.base import LLMProvider

__all__ = ["LLMProvider", "available_providers", "get_provider"]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("src.providers.anthropic", "AnthropicProvider"),
    "google": ("src.providers.google", "GoogleProvider"),
    "openai": ("src.providers.openai", "OpenAIProvider"),
    "perplexity": ("src.providers.perplexity", "PerplexityProvider"),
}


def get_provider(name: str) -> LLMProvider:
    """Instantiate and return an LLM provider by name.

    Args:
        name: Provider identifier (anthropic, google, openai, perplexity).

    Returns:
        An LLMProvider instance.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
