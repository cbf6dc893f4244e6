"""
LLM Provider Abstraction Layer

Supports multiple LLM providers (OpenAI, Azure OpenAI, Anthropic, Ollama) with a
unified interface. Provider selection is done via FWA_LLM_PROVIDER environment
variable.

Usage:
    from fwaanalytics.llm import get_llm_client, LLMResponse

    client = get_llm_client()
    response = client.chat_completion(
        messages=[{"role": "user", "content": "Hello"}],
        model="gpt-4",
        temperature=0.3,
    )
    print(response.content)
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class LLMUnavailableError(RuntimeError):
    """Raised when an agent needs the LLM but none is configured."""


class LLMProviderType(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    AZURE = "azure"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


@dataclass
class LLMResponse:
    """Unified response from any LLM provider."""
    content: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    raw_response: Any = None

    @property
    def cost_usd(self) -> float:
        """Estimate cost based on model and token usage."""
        # Pricing per 1M tokens
        pricing = {
            # Longer keys first so "gpt-4o-mini" is not priced as "gpt-4"
            "gpt-4o-mini": (0.15, 0.60),
            "gpt-4o": (2.50, 10.00),
            "gpt-4-turbo": (10.00, 30.00),
            "gpt-4": (30.00, 60.00),
            "gpt-35-turbo": (0.50, 1.50),
            "gpt-3.5-turbo": (0.50, 1.50),
            # Anthropic
            "claude-3-5-sonnet": (3.00, 15.00),
            "claude-3-5-haiku": (1.00, 5.00),
            "claude-3-haiku": (0.25, 1.25),
            # Ollama (local, free)
            "llama3": (0.0, 0.0),
            "mistral": (0.0, 0.0),
        }

        model_key = self.model.lower()
        for key, (input_price, output_price) in pricing.items():
            if key in model_key:
                input_cost = (self.input_tokens / 1_000_000) * input_price
                output_cost = (self.output_tokens / 1_000_000) * output_price
                return input_cost + output_cost

        # Unknown deployments are priced as gpt-4, the default Azure deployment
        return (self.input_tokens / 1_000_000) * 30.00 + (self.output_tokens / 1_000_000) * 60.00


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model identifier (deployment name for Azure)
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Request timeout in seconds

        Returns:
            LLMResponse with content and usage info
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured and available."""
        pass

    @property
    @abstractmethod
    def provider_type(self) -> LLMProviderType:
        """Return the provider type."""
        pass

    @property
    def unavailable_reason(self) -> str:
        """Why ``is_available()`` is False, for configuration errors."""
        return f"{self.provider_type.value} provider is not configured"


DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_AZURE_API_VERSION = "2024-02-15-preview"

# Anthropic rejects temperatures above 1.0 and requires max_tokens
ANTHROPIC_MAX_TEMPERATURE = 1.0
ANTHROPIC_DEFAULT_MAX_TOKENS = 1024


class _OpenAICompatibleProvider(LLMProvider):
    """Shared chat-completions call for OpenAI and Azure OpenAI clients.

    Clients are built lazily with SDK retries disabled, so a failed call
    surfaces at once and the calling stage takes its fallback.
    """

    def __init__(self, api_key: str | None):
        self._api_key = api_key
        self._client: Any = None

    @abstractmethod
    def _make_client(self) -> Any:
        pass

    def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> LLMResponse:
        if self._client is None:
            self._client = self._make_client()

        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "timeout": timeout,
        }
        if max_tokens:
            request["max_tokens"] = max_tokens

        completion = self._client.chat.completions.create(**request)
        usage = completion.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0

        return LLMResponse(
            content=completion.choices[0].message.content or "",
            model=completion.model,
            input_tokens=prompt_tokens,
            output_tokens=completion_tokens,
            total_tokens=usage.total_tokens if usage else prompt_tokens + completion_tokens,
            raw_response=completion,
        )


class OpenAIProvider(_OpenAICompatibleProvider):
    """OpenAI API provider (or any OpenAI-compatible ``base_url``)."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        super().__init__(api_key)
        self._base_url = base_url

    def _make_client(self) -> Any:
        from openai import OpenAI
        return OpenAI(api_key=self._api_key, base_url=self._base_url, max_retries=0)

    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def provider_type(self) -> LLMProviderType:
        return LLMProviderType.OPENAI

    @property
    def unavailable_reason(self) -> str:
        return "OpenAI provider requires OPENAI_API_KEY"


class AzureOpenAIProvider(_OpenAICompatibleProvider):
    """Azure OpenAI provider. The ``model`` argument is the deployment name."""

    def __init__(
        self,
        api_key: str | None = None,
        endpoint: str | None = None,
        api_version: str = DEFAULT_AZURE_API_VERSION,
    ):
        super().__init__(api_key)
        self._endpoint = endpoint
        self._api_version = api_version

    def _make_client(self) -> Any:
        from openai import AzureOpenAI
        return AzureOpenAI(
            api_key=self._api_key,
            azure_endpoint=self._endpoint,
            api_version=self._api_version,
            max_retries=0,
        )

    def is_available(self) -> bool:
        return bool(self._api_key and self._endpoint)

    @property
    def provider_type(self) -> LLMProviderType:
        return LLMProviderType.AZURE

    @property
    def unavailable_reason(self) -> str:
        return "Azure provider requires AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT"


def split_system_messages(messages: list[dict[str, str]]) -> tuple[str, list[dict[str, str]]]:
    """Separate system prompts from the conversation.

    Anthropic takes the system prompt as its own argument; several system
    messages are joined with a blank line.
    """
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    conversation = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m["role"] != "system"
    ]
    return system, conversation


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API provider."""

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key
        self._client: Any = None

    def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> LLMResponse:
        if self._client is None:
            from anthropic import Anthropic
            self._client = Anthropic(api_key=self._api_key, max_retries=0)

        system, conversation = split_system_messages(messages)
        request: dict[str, Any] = {
            "model": model,
            "messages": conversation,
            "max_tokens": max_tokens or ANTHROPIC_DEFAULT_MAX_TOKENS,
            "temperature": min(temperature, ANTHROPIC_MAX_TEMPERATURE),
            "timeout": timeout,
        }
        if system:
            request["system"] = system

        message = self._client.messages.create(**request)
        text = "".join(getattr(block, "text", "") for block in message.content or [])
        usage = message.usage
        input_tokens = usage.input_tokens if usage else 0
        output_tokens = usage.output_tokens if usage else 0

        return LLMResponse(
            content=text,
            model=message.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            raw_response=message,
        )

    def is_available(self) -> bool:
        return bool(self._api_key)

    @property
    def provider_type(self) -> LLMProviderType:
        return LLMProviderType.ANTHROPIC

    @property
    def unavailable_reason(self) -> str:
        return "Anthropic provider requires ANTHROPIC_API_KEY"


class OllamaProvider(LLMProvider):
    """Local Ollama server, called over its REST API with httpx."""

    def __init__(self, base_url: str = DEFAULT_OLLAMA_URL):
        self._base_url = base_url.rstrip("/")
        self._reachable: bool | None = None

    def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        timeout: float = 60.0,
    ) -> LLMResponse:
        import httpx

        options: dict[str, Any] = {"temperature": temperature}
        if max_tokens:
            options["num_predict"] = max_tokens

        response = httpx.post(
            f"{self._base_url}/api/chat",
            json={"model": model, "messages": messages, "stream": False, "options": options},
            timeout=timeout,
        )
        response.raise_for_status()
        body = response.json()

        # Token counts are absent on some server versions
        input_tokens = body.get("prompt_eval_count", 0)
        output_tokens = body.get("eval_count", 0)

        return LLMResponse(
            content=body.get("message", {}).get("content", ""),
            model=body.get("model", model),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            raw_response=body,
        )

    def is_available(self) -> bool:
        """Ping ``/api/tags`` once and remember the answer."""
        if self._reachable is None:
            import httpx
            try:
                self._reachable = httpx.get(f"{self._base_url}/api/tags", timeout=5.0).is_success
            except (httpx.HTTPError, OSError):
                self._reachable = False
        return self._reachable

    @property
    def provider_type(self) -> LLMProviderType:
        return LLMProviderType.OLLAMA

    @property
    def unavailable_reason(self) -> str:
        return f"Ollama server not available at {self._base_url}"


def get_llm_client(
    provider: LLMProviderType | str | None = None,
    *,
    openai_api_key: str | None = None,
    openai_base_url: str | None = None,
    azure_api_key: str | None = None,
    azure_endpoint: str | None = None,
    azure_api_version: str = DEFAULT_AZURE_API_VERSION,
    anthropic_api_key: str | None = None,
    ollama_base_url: str | None = None,
) -> LLMProvider:
    """
    Build the LLM provider selected by ``provider`` or ``FWA_LLM_PROVIDER``.

    Explicit arguments win over the environment (``OPENAI_API_KEY``,
    ``AZURE_OPENAI_API_KEY``, ``AZURE_OPENAI_ENDPOINT``, ``ANTHROPIC_API_KEY``,
    ``OLLAMA_BASE_URL``). Azure is the default.

    Raises:
        ValueError: If the provider is unknown or not configured
    """
    env = os.environ
    name = provider or env.get("FWA_LLM_PROVIDER", LLMProviderType.AZURE.value)
    try:
        provider_type = LLMProviderType(name.lower())
    except ValueError:
        raise ValueError(f"Unknown provider: {name}") from None

    factories: dict[LLMProviderType, Callable[[], LLMProvider]] = {
        LLMProviderType.OPENAI: lambda: OpenAIProvider(
            api_key=openai_api_key or env.get("OPENAI_API_KEY"),
            base_url=openai_base_url or env.get("OPENAI_BASE_URL"),
        ),
        LLMProviderType.AZURE: lambda: AzureOpenAIProvider(
            api_key=azure_api_key or env.get("AZURE_OPENAI_API_KEY"),
            endpoint=azure_endpoint or env.get("AZURE_OPENAI_ENDPOINT"),
            api_version=azure_api_version,
        ),
        LLMProviderType.ANTHROPIC: lambda: AnthropicProvider(
            api_key=anthropic_api_key or env.get("ANTHROPIC_API_KEY"),
        ),
        LLMProviderType.OLLAMA: lambda: OllamaProvider(
            base_url=ollama_base_url or env.get("OLLAMA_BASE_URL", DEFAULT_OLLAMA_URL),
        ),
    }

    client = factories[provider_type]()
    if not client.is_available():
        raise ValueError(client.unavailable_reason)
    return client
