"""Tests for the provider registry, adapters, gateway, and credential lookup."""

from unittest.mock import MagicMock, patch

import pytest

from src.core.errors import ProviderError
from src.core.schemas import ProviderSetting
from src.providers import available_providers, get_provider
from src.providers.base import LLMProvider
from src.providers.gateway import LLMGateway, resolve_credential


def _openai_module(content: str | None) -> tuple[MagicMock, MagicMock]:
    """Build a fake openai module whose client returns content."""
    mock_client = MagicMock()
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_client.chat.completions.create.return_value = mock_response
    mock_openai = MagicMock()
    mock_openai.OpenAI.return_value = mock_client
    return mock_openai, mock_client


# ---------------------------------------------------------------------------
# Registry tests
# ---------------------------------------------------------------------------
class TestProviderRegistry:
    @pytest.mark.parametrize("name", ["anthropic", "google", "openai", "perplexity"])
    def test_get_registered(self, name: str) -> None:
        provider = get_provider(name)
        assert isinstance(provider, LLMProvider)
        assert provider.provider_id == name

    def test_unknown_provider_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown LLM provider 'nope'"):
            get_provider("nope")

    def test_available_providers_sorted(self) -> None:
        assert available_providers() == ["anthropic", "google", "openai", "perplexity"]

    def test_env_vars(self) -> None:
        assert get_provider("openai").env_var == "OPENAI_API_KEY"
        assert get_provider("anthropic").env_var == "ANTHROPIC_API_KEY"
        assert get_provider("google").env_var == "GOOGLE_API_KEY"
        assert get_provider("perplexity").env_var == "PERPLEXITY_API_KEY"


# ---------------------------------------------------------------------------
# Adapter tests
# ---------------------------------------------------------------------------
class TestOpenAIProvider:
    def test_sends_prompt_with_key_and_model(self) -> None:
        mock_openai, mock_client = _openai_module("hello")
        with patch.dict("sys.modules", {"openai": mock_openai}):
            text = get_provider("openai").complete("q?", api_key="sk-1", model="gpt-4o-mini")

        assert text == "hello"
        mock_openai.OpenAI.assert_called_once_with(api_key="sk-1")
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "q?"}]

    def test_default_model(self) -> None:
        mock_openai, mock_client = _openai_module("hi")
        with patch.dict("sys.modules", {"openai": mock_openai}):
            get_provider("openai").complete("q?", api_key="sk-1")
        assert mock_client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o"

    def test_none_content_becomes_empty(self) -> None:
        mock_openai, _ = _openai_module(None)
        with patch.dict("sys.modules", {"openai": mock_openai}):
            assert get_provider("openai").complete("q?", api_key="k") == ""

    def test_missing_sdk(self) -> None:
        with (
            patch.dict("sys.modules", {"openai": None}),
            pytest.raises(ImportError, match="openai is required"),
        ):
            get_provider("openai").complete("q?", api_key="k")


class TestPerplexityProvider:
    def test_uses_perplexity_base_url(self) -> None:
        mock_openai, _ = _openai_module("answer")
        with patch.dict("sys.modules", {"openai": mock_openai}):
            text = get_provider("perplexity").complete("q?", api_key="pplx")

        assert text == "answer"
        kwargs = mock_openai.OpenAI.call_args.kwargs
        assert kwargs["base_url"] == "https://api.perplexity.ai"
        assert kwargs["api_key"] == "pplx"


class TestAnthropicProvider:
    def test_returns_first_text_block(self) -> None:
        mock_client = MagicMock()
        mock_message = MagicMock()
        mock_message.content = [MagicMock(text="claude says hi")]
        mock_client.messages.create.return_value = mock_message
        mock_anthropic = MagicMock()
        mock_anthropic.Anthropic.return_value = mock_client

        with patch.dict("sys.modules", {"anthropic": mock_anthropic}):
            text = get_provider("anthropic").complete("q?", api_key="ak", model="m")

        assert text == "claude says hi"
        mock_anthropic.Anthropic.assert_called_once_with(api_key="ak")
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["max_tokens"] == 4096

    def test_missing_sdk(self) -> None:
        with (
            patch.dict("sys.modules", {"anthropic": None}),
            pytest.raises(ImportError, match="anthropic is required"),
        ):
            get_provider("anthropic").complete("q?", api_key="k")


class TestGoogleProvider:
    def test_generate_content(self) -> None:
        mock_client = MagicMock()
        mock_client.models.generate_content.return_value = MagicMock(text="gemini text")
        mock_google = MagicMock()
        mock_google.genai.Client.return_value = mock_client

        with patch.dict("sys.modules", {"google": mock_google, "google.genai": mock_google.genai}):
            text = get_provider("google").complete("q?", api_key="gk")

        assert text == "gemini text"
        mock_google.genai.Client.assert_called_once_with(api_key="gk")
        kwargs = mock_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"] == "q?"

    def test_missing_sdk(self) -> None:
        with (
            patch.dict("sys.modules", {"google": None, "google.genai": None}),
            pytest.raises(ImportError, match="google-genai is required"),
        ):
            get_provider("google").complete("q?", api_key="k")


# ---------------------------------------------------------------------------
# Gateway tests
# ---------------------------------------------------------------------------
class TestLLMGateway:
    async def test_returns_provider_text(self) -> None:
        fake = MagicMock()
        fake.complete.return_value = "the answer"
        with patch("src.providers.gateway.get_provider", return_value=fake):
            text = await LLMGateway().call("openai", "sk", "gpt-4o", "prompt")

        assert text == "the answer"
        fake.complete.assert_called_once_with("prompt", api_key="sk", model="gpt-4o")

    async def test_empty_response_raises(self) -> None:
        fake = MagicMock()
        fake.complete.return_value = "   "
        with (
            patch("src.providers.gateway.get_provider", return_value=fake),
            pytest.raises(ProviderError, match="empty response"),
        ):
            await LLMGateway().call("openai", "sk", "gpt-4o", "prompt")

    async def test_sdk_error_propagates(self) -> None:
        fake = MagicMock()
        fake.complete.side_effect = RuntimeError("HTTP 500")
        with (
            patch("src.providers.gateway.get_provider", return_value=fake),
            pytest.raises(RuntimeError, match="HTTP 500"),
        ):
            await LLMGateway().call("openai", "sk", "gpt-4o", "prompt")


class TestResolveCredential:
    def test_stored_key_wins(self) -> None:
        setting = ProviderSetting(provider="openai", model="gpt-4o", api_key="stored")
        with patch.dict("os.environ", {"OPENAI_API_KEY": "from-env"}):
            assert resolve_credential(setting) == "stored"

    def test_env_fallback(self) -> None:
        setting = ProviderSetting(provider="anthropic", model="m")
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "from-env"}):
            assert resolve_credential(setting) == "from-env"

    def test_none_when_absent(self) -> None:
        setting = ProviderSetting(provider="google", model="m")
        with patch.dict("os.environ", {}, clear=True):
            assert resolve_credential(setting) is None

    def test_unknown_provider_without_key(self) -> None:
        setting = ProviderSetting(provider="mystery", model="m")
        assert resolve_credential(setting) is None

    def test_unknown_provider_with_key(self) -> None:
        setting = ProviderSetting(provider="mystery", model="m", api_key="k")
        assert resolve_credential(setting) == "k"
