from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProviderEnum(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    AZURE = "azure"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FWA_", extra="ignore")

    # LLM Provider Configuration
    llm_provider: LLMProviderEnum = LLMProviderEnum.AZURE
    use_llm: bool = True
    llm_model: str = "gpt-4"
    llm_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    llm_timeout_s: float = 60.0

    # Provider-specific settings (API keys are read from env without prefix,
    # e.g. AZURE_OPENAI_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY)

    # Azure OpenAI settings
    azure_openai_api_version: str = "2024-02-15-preview"
    azure_openai_deployment: str = "gpt-4"

    # Ollama settings
    ollama_base_url: str = "http://localhost:11434"

    # Provider aggregation (each sampled claim costs up to two LLM calls)
    provider_sample_cap: int = Field(default=10, ge=1)
    max_concurrency: int = Field(default=10, ge=1)

    # Pattern analyzer hypotheses are cut to this length
    hypothesis_max_chars: int = Field(default=200, ge=1)

    @property
    def resolved_model(self) -> str:
        """Model name to send; Azure addresses models by deployment name."""
        if self.llm_provider == LLMProviderEnum.AZURE:
            return self.azure_openai_deployment
        return self.llm_model


# Singleton instance - import this instead of creating Settings()
settings = Settings()
