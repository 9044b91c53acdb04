"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str:
        """Environment variable consulted when no API key is stored."""

    @abstractmethod
    def complete(self, prompt: str, *, api_key: str, model: str | None = None) -> str:
        """Send a single user prompt and return the raw response text.

        Args:
            prompt: The user message.
            api_key: Credential for the provider.
            model: Override the provider's default model. None uses default.

        Returns:
            Raw text of the first completion (may be empty).
        """
