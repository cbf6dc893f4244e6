from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from fwaanalytics.models import CamelModel, Claim, Provider


class AnalyzeProviderRequest(CamelModel):
    provider: Provider
    claims: list[Claim] = Field(default_factory=list)


class AppStatus(BaseModel):
    version: str
    llm_provider: str
    llm_configured: bool
    model: str
    provider_sample_cap: int
    cost: dict[str, Any]


class ErrorResponse(BaseModel):
    error: str
