"""
LLM Provider Module

Provides a unified interface for multiple LLM providers (OpenAI, Azure OpenAI,
Anthropic, Ollama).

Usage:
    from fwaanalytics.llm import get_llm_client, LLMProviderType

    # Auto-detect from FWA_LLM_PROVIDER env var
    client = get_llm_client()

    # Or explicitly specify provider
    client = get_llm_client(LLMProviderType.ANTHROPIC)
"""

from fwaanalytics.llm.cost_tracker import CostEntry, CostSummary, CostTracker
from fwaanalytics.llm.providers import (
    AnthropicProvider,
    AzureOpenAIProvider,
    LLMProvider,
    LLMProviderType,
    LLMResponse,
    LLMUnavailableError,
    OllamaProvider,
    OpenAIProvider,
    get_llm_client,
)

__all__ = [
    # Providers
    "LLMProvider",
    "LLMProviderType",
    "LLMResponse",
    "LLMUnavailableError",
    "OpenAIProvider",
    "AzureOpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "get_llm_client",
    # Cost tracking
    "CostEntry",
    "CostSummary",
    "CostTracker",
]
