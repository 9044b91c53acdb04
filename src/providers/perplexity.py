"""Perplexity LLM provider (OpenAI-compatible API)."""

import logging

from src.providers.base import LLMProvider

logger = logging.getLogger(__name__)

_PERPLEXITY_BASE_URL = "https://api.perplexity.ai"


class PerplexityProvider(LLMProvider):
    """LLM provider using Perplexity via its OpenAI-compatible API."""

    @property
    def provider_id(self) -> str:
        return "perplexity"

    @property
    def default_model(self) -> str:
        return "sonar"

    @property
    def env_var(self) -> str:
        return "PERPLEXITY_API_KEY"

    def complete(self, prompt: str, *, api_key: str, model: str | None = None) -> str:
        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for Perplexity (OpenAI-compatible API). "
                "Install with: pip install 'geo-scan-engine[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.OpenAI(base_url=_PERPLEXITY_BASE_URL, api_key=api_key)
        use_model = model or self.default_model

        logger.debug("Sending prompt to Perplexity (%s)...", use_model)
        response = client.chat.completions.create(
            model=use_model,
            messages=[{"role": "user", "content": prompt}],
        )

        return response.choices[0].message.content or ""
