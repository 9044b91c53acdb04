"""OpenAI LLM provider."""

import logging

from src.providers.base import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """LLM provider using the OpenAI API."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def complete(self, prompt: str, *, api_key: str, model: str | None = None) -> str:
        try:
            import openai
        except ImportError:
            msg = (
                "openai is required for this provider. "
                "Install with: pip install 'geo-scan-engine[openai]'"
            )
            raise ImportError(msg) from None

        client = openai.OpenAI(api_key=api_key)
        use_model = model or self.default_model

        logger.debug("Sending prompt to OpenAI API (%s)...", use_model)
        response = client.chat.completions.create(
            model=use_model,
            messages=[{"role": "user", "content": prompt}],
        )

        return response.choices[0].message.content or ""
