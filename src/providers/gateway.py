"""Provider gateway: the async seam between the scan pipeline and the SDKs.

The engine and evaluator only depend on ProviderGateway, so tests can swap
in a fake. LLMGateway runs each blocking SDK call in a worker thread so the
event loop keeps serving queue operations. No retries happen here.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod

from src.core.errors import ProviderError
from src.core.schemas import ProviderSetting
from src.providers import get_provider

logger = logging.getLogger(__name__)


class ProviderGateway(ABC):
    """Send one prompt to one provider and return its text."""

    @abstractmethod
    async def call(self, provider: str, credential: str, model: str, prompt: str) -> str:
        """Return the response text, or raise on any provider failure."""


class LLMGateway(ProviderGateway):
    """Gateway backed by the lazy provider registry."""

    async def call(self, provider: str, credential: str, model: str, prompt: str) -> str:
        impl = get_provider(provider)
        text = await asyncio.to_thread(impl.complete, prompt, api_key=credential, model=model)
        if not text or not text.strip():
            raise ProviderError(provider, "empty response body")
        return text


def resolve_credential(setting: ProviderSetting) -> str | None:
    """Return the stored key for a provider, falling back to its env var.

    Returns None when neither is set or the provider is unknown.
    """
    if setting.api_key:
        return setting.api_key
    try:
        env_var = get_provider(setting.provider).env_var
    except ValueError:
        logger.warning("Unknown provider '%s' - no credential fallback", setting.provider)
        return None
    return os.environ.get(env_var) or None
