"""Tests for LLM provider abstraction layer."""
from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import httpx
import pytest

from fwaanalytics.llm.providers import (
    AnthropicProvider,
    AzureOpenAIProvider,
    LLMProviderType,
    LLMResponse,
    OllamaProvider,
    OpenAIProvider,
    get_llm_client,
    split_system_messages,
)

PROVIDER_ENV_VARS = (
    "FWA_LLM_PROVIDER",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "ANTHROPIC_API_KEY",
    "OLLAMA_BASE_URL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove provider credentials so tests only see explicit arguments."""
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def make_openai_response(content: str = "Hello!", model: str = "gpt-4") -> MagicMock:
    mock_response = MagicMock()
    mock_response.choices = [MagicMock(message=MagicMock(content=content))]
    mock_response.model = model
    mock_response.usage = MagicMock(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    return mock_response


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_cost_calculation_openai_gpt4(self) -> None:
        """Test cost calculation for gpt-4."""
        response = LLMResponse(
            content="test",
            model="gpt-4",
            input_tokens=1000,
            output_tokens=500,
            total_tokens=1500,
        )
        # gpt-4: $30/1M input, $60/1M output
        expected = (1000 / 1_000_000) * 30.00 + (500 / 1_000_000) * 60.00
        assert abs(response.cost_usd - expected) < 0.0001

    def test_mini_model_not_priced_as_gpt4(self) -> None:
        response = LLMResponse(
            content="test",
            model="gpt-4o-mini",
            input_tokens=1000,
            output_tokens=500,
            total_tokens=1500,
        )
        expected = (1000 / 1_000_000) * 0.15 + (500 / 1_000_000) * 0.60
        assert abs(response.cost_usd - expected) < 0.0001

    def test_cost_calculation_ollama_free(self) -> None:
        """Test cost calculation for Ollama (local, free)."""
        response = LLMResponse(
            content="test",
            model="llama3.1",
            input_tokens=1000,
            output_tokens=500,
            total_tokens=1500,
        )
        assert response.cost_usd == 0.0

    def test_unknown_deployment_priced_as_gpt4(self) -> None:
        """Azure deployment names are arbitrary; they are priced as gpt-4."""
        response = LLMResponse(
            content="test",
            model="fwa-prod-deployment",
            input_tokens=1000,
            output_tokens=500,
            total_tokens=1500,
        )
        expected = (1000 / 1_000_000) * 30.00 + (500 / 1_000_000) * 60.00
        assert abs(response.cost_usd - expected) < 0.0001


class TestOpenAIProvider:
    """Tests for OpenAI provider."""

    def test_is_available_with_key(self) -> None:
        assert OpenAIProvider(api_key="test-key").is_available() is True

    def test_is_available_without_key(self) -> None:
        assert OpenAIProvider(api_key=None).is_available() is False

    def test_provider_type(self) -> None:
        assert OpenAIProvider(api_key="test-key").provider_type == LLMProviderType.OPENAI

    @patch("openai.OpenAI")
    def test_chat_completion_calls_openai_api(self, mock_openai_class: MagicMock) -> None:
        """Test chat completion calls OpenAI API correctly."""
        mock_client = MagicMock()
        mock_openai_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = make_openai_response(model="gpt-4o-mini")

        provider = OpenAIProvider(api_key="test-key")
        result = provider.chat_completion(
            messages=[{"role": "user", "content": "Hi"}],
            model="gpt-4o-mini",
            temperature=0.5,
            max_tokens=400,
            timeout=30.0,
        )

        assert result.content == "Hello!"
        assert result.model == "gpt-4o-mini"
        assert result.input_tokens == 10
        assert result.output_tokens == 5
        assert result.total_tokens == 15

        mock_openai_class.assert_called_once_with(api_key="test-key", base_url=None, max_retries=0)
        call_kwargs = mock_client.chat.completions.create.call_args[1]
        assert call_kwargs["temperature"] == 0.5
        assert call_kwargs["max_tokens"] == 400
        assert call_kwargs["timeout"] == 30.0

    @patch("openai.OpenAI")
    def test_client_is_reused(self, mock_openai_class: MagicMock) -> None:
        mock_openai_class.return_value.chat.completions.create.return_value = make_openai_response()
        provider = OpenAIProvider(api_key="test-key")

        provider.chat_completion(messages=[{"role": "user", "content": "a"}], model="gpt-4")
        provider.chat_completion(messages=[{"role": "user", "content": "b"}], model="gpt-4")

        assert mock_openai_class.call_count == 1

    @patch("openai.OpenAI")
    def test_api_error_propagates(self, mock_openai_class: MagicMock) -> None:
        """Errors reach the calling stage, which owns the fallback."""
        mock_openai_class.return_value.chat.completions.create.side_effect = OSError("network down")

        with pytest.raises(OSError, match="network down"):
            OpenAIProvider(api_key="test-key").chat_completion(
                messages=[{"role": "user", "content": "Hi"}],
                model="gpt-4",
            )


class TestAzureOpenAIProvider:
    """Tests for Azure OpenAI provider."""

    def test_requires_key_and_endpoint(self) -> None:
        assert AzureOpenAIProvider(api_key="k", endpoint="https://fwa.openai.azure.com").is_available() is True
        assert AzureOpenAIProvider(api_key="k", endpoint=None).is_available() is False
        assert AzureOpenAIProvider(api_key=None, endpoint="https://fwa.openai.azure.com").is_available() is False

    def test_provider_type(self) -> None:
        assert AzureOpenAIProvider(api_key="k", endpoint="e").provider_type == LLMProviderType.AZURE

    @patch("openai.AzureOpenAI")
    def test_chat_completion_uses_deployment(self, mock_azure_class: MagicMock) -> None:
        mock_client = MagicMock()
        mock_azure_class.return_value = mock_client
        mock_client.chat.completions.create.return_value = make_openai_response("PATHWAY: fraud")

        provider = AzureOpenAIProvider(api_key="k", endpoint="https://fwa.openai.azure.com")
        result = provider.chat_completion(
            messages=[{"role": "user", "content": "Hi"}],
            model="fwa-gpt4",
        )

        assert result.content == "PATHWAY: fraud"
        mock_azure_class.assert_called_once_with(
            api_key="k",
            azure_endpoint="https://fwa.openai.azure.com",
            api_version="2024-02-15-preview",
            max_retries=0,
        )
        call_kwargs = mock_client.chat.completions.create.call_args[1]
        assert call_kwargs["model"] == "fwa-gpt4"
        assert "max_tokens" not in call_kwargs


class TestAnthropicProvider:
    """Tests for Anthropic provider."""

    def test_is_available_with_key(self) -> None:
        assert AnthropicProvider(api_key="test-key").is_available() is True

    def test_is_available_without_key(self) -> None:
        assert AnthropicProvider(api_key=None).is_available() is False

    def test_provider_type(self) -> None:
        assert AnthropicProvider(api_key="test-key").provider_type == LLMProviderType.ANTHROPIC

    @patch("anthropic.Anthropic")
    def test_chat_completion_separates_system_message(self, mock_anthropic_class: MagicMock) -> None:
        """Test that system messages are separated for Anthropic API."""
        mock_client = MagicMock()
        mock_anthropic_class.return_value = mock_client

        mock_response = MagicMock()
        mock_response.content = [MagicMock(text="Hello from Claude!")]
        mock_response.model = "claude-3-5-sonnet-20241022"
        mock_response.usage = MagicMock(input_tokens=10, output_tokens=5)
        mock_client.messages.create.return_value = mock_response

        provider = AnthropicProvider(api_key="test-key")
        result = provider.chat_completion(
            messages=[
                {"role": "system", "content": "You are helpful."},
                {"role": "user", "content": "Hi"},
            ],
            model="claude-3-5-sonnet-20241022",
            temperature=0.5,
        )

        # Check that system was passed separately
        call_kwargs = mock_client.messages.create.call_args[1]
        assert call_kwargs["system"] == "You are helpful."
        assert call_kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert call_kwargs["max_tokens"] == 1024

        assert result.content == "Hello from Claude!"
        assert result.total_tokens == 15

    @patch("anthropic.Anthropic")
    def test_temperature_is_clamped_and_text_blocks_joined(self, mock_anthropic_class: MagicMock) -> None:
        mock_client = mock_anthropic_class.return_value
        mock_response = MagicMock()
        mock_response.content = [MagicMock(text="PATHWAY: "), MagicMock(text="fraud")]
        mock_response.model = "claude-3-5-sonnet-20241022"
        mock_response.usage = MagicMock(input_tokens=3, output_tokens=2)
        mock_client.messages.create.return_value = mock_response

        result = AnthropicProvider(api_key="test-key").chat_completion(
            messages=[{"role": "user", "content": "Hi"}],
            model="claude-3-5-sonnet-20241022",
            temperature=1.6,
            max_tokens=300,
        )

        call_kwargs = mock_client.messages.create.call_args[1]
        assert call_kwargs["temperature"] == 1.0
        assert call_kwargs["max_tokens"] == 300
        assert "system" not in call_kwargs
        assert result.content == "PATHWAY: fraud"


def test_split_system_messages_joins_system_prompts() -> None:
    system, conversation = split_system_messages(
        [
            {"role": "system", "content": "You are a claims auditor."},
            {"role": "user", "content": "Claim CLM-0001"},
            {"role": "system", "content": "Answer with labeled lines."},
            {"role": "assistant", "content": "PATHWAY: uncertain"},
        ]
    )

    assert system == "You are a claims auditor.\n\nAnswer with labeled lines."
    assert conversation == [
        {"role": "user", "content": "Claim CLM-0001"},
        {"role": "assistant", "content": "PATHWAY: uncertain"},
    ]


class TestOllamaProvider:
    """Tests for Ollama provider."""

    def test_provider_type(self) -> None:
        assert OllamaProvider().provider_type == LLMProviderType.OLLAMA

    def test_custom_base_url(self) -> None:
        provider = OllamaProvider(base_url="http://custom:8080/")
        assert provider._base_url == "http://custom:8080"  # trailing slash stripped

    @patch("httpx.post")
    def test_chat_completion_posts_to_chat_api(self, mock_post: MagicMock) -> None:
        mock_post.return_value.json.return_value = {
            "model": "llama3",
            "message": {"role": "assistant", "content": "RISK_SCORE: 40"},
            "prompt_eval_count": 20,
            "eval_count": 8,
        }

        result = OllamaProvider().chat_completion(
            messages=[{"role": "user", "content": "Score this"}],
            model="llama3",
            max_tokens=500,
        )

        assert result.content == "RISK_SCORE: 40"
        assert result.total_tokens == 28
        url = mock_post.call_args[0][0]
        payload = mock_post.call_args[1]["json"]
        assert url == "http://localhost:11434/api/chat"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.3, "num_predict": 500}
        mock_post.return_value.raise_for_status.assert_called_once()

    @patch("httpx.get")
    def test_availability_is_checked_once(self, mock_get: MagicMock) -> None:
        mock_get.return_value.is_success = True
        provider = OllamaProvider(base_url="http://custom:8080")

        assert provider.is_available() is True
        assert provider.is_available() is True
        mock_get.assert_called_once()
        assert mock_get.call_args[0][0] == "http://custom:8080/api/tags"

    @patch("httpx.get", side_effect=httpx.ConnectError("refused"))
    def test_unreachable_server_is_unavailable(self, mock_get: MagicMock) -> None:
        provider = OllamaProvider()
        assert provider.is_available() is False
        assert provider.unavailable_reason == "Ollama server not available at http://localhost:11434"


@pytest.mark.usefixtures("clean_env")
class TestGetLLMClient:
    """Tests for get_llm_client factory function."""

    def test_get_openai_client(self) -> None:
        client = get_llm_client(provider=LLMProviderType.OPENAI, openai_api_key="test-key")
        assert isinstance(client, OpenAIProvider)

    def test_get_azure_client(self) -> None:
        client = get_llm_client(
            provider="azure",
            azure_api_key="test-key",
            azure_endpoint="https://fwa.openai.azure.com",
        )
        assert isinstance(client, AzureOpenAIProvider)
        assert client.provider_type == LLMProviderType.AZURE

    def test_get_anthropic_client(self) -> None:
        client = get_llm_client(provider=LLMProviderType.ANTHROPIC, anthropic_api_key="test-key")
        assert isinstance(client, AnthropicProvider)

    @patch("fwaanalytics.llm.providers.OllamaProvider.is_available", return_value=True)
    def test_get_ollama_client(self, mock_available: MagicMock) -> None:
        client = get_llm_client(provider=LLMProviderType.OLLAMA)
        assert isinstance(client, OllamaProvider)

    @patch("fwaanalytics.llm.providers.OllamaProvider.is_available", return_value=False)
    def test_raises_when_ollama_unreachable(self, mock_available: MagicMock) -> None:
        with pytest.raises(ValueError, match="Ollama server not available"):
            get_llm_client(provider=LLMProviderType.OLLAMA)

    def test_raises_without_openai_key(self) -> None:
        with pytest.raises(ValueError, match="OpenAI provider requires OPENAI_API_KEY"):
            get_llm_client(provider=LLMProviderType.OPENAI)

    def test_azure_is_default_and_needs_endpoint(self) -> None:
        with pytest.raises(ValueError, match="Azure provider requires"):
            get_llm_client(azure_api_key="test-key")

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError):
            get_llm_client(provider="bedrock")

    def test_auto_detect_from_env(self) -> None:
        """Test auto-detecting provider from environment."""
        with patch.dict(os.environ, {"FWA_LLM_PROVIDER": "anthropic", "ANTHROPIC_API_KEY": "env-key"}):
            client = get_llm_client()
        assert isinstance(client, AnthropicProvider)

    def test_provider_name_is_case_insensitive(self) -> None:
        client = get_llm_client(provider="OpenAI", openai_api_key="test-key")
        assert isinstance(client, OpenAIProvider)

    def test_unknown_provider_is_named_in_error(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider: bedrock"):
            get_llm_client(provider="bedrock")

    def test_azure_error_names_missing_settings(self) -> None:
        with pytest.raises(ValueError, match="AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT"):
            get_llm_client(provider="azure", azure_endpoint="https://fwa.openai.azure.com")
