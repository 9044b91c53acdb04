"""Google Gemini LLM provider (google-genai SDK)."""

import logging

from src.providers.base import LLMProvider

logger = logging.getLogger(__name__)


class GoogleProvider(LLMProvider):
    """LLM provider using the Google Gemini API (google-genai SDK)."""

    @property
    def provider_id(self) -> str:
        return "google"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

    def complete(self, prompt: str, *, api_key: str, model: str | None = None) -> str:
        try:
            from google import genai
        except ImportError:
            msg = (
                "google-genai is required for this provider. "
                "Install with: pip install 'geo-scan-engine[google]'"
            )
            raise ImportError(msg) from None

        use_model = model or self.default_model

        logger.debug("Sending prompt to Gemini API (%s)...", use_model)
        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(model=use_model, contents=prompt)

        return response.text or ""
