"""
Claim and provider records consumed by the risk pipeline.

These mirror the rows owned by the storage layer. The pipeline only reads
them. Fields accept both snake_case and the camelCase names used on the wire
(``cptCode``, ``billedAmount``, ...).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Claim(CamelModel):
    """A single billed service line."""
    id: str
    claim_id: str | None = None
    provider_id: str | None = None
    member_id: str | None = None
    service_date: datetime
    submitted_date: datetime
    cpt_code: str | None = None
    cpt_description: str | None = None
    modifiers: list[str] | None = None
    billed_amount: float | None = None
    authorized_units: int = 1
    billed_units: int = 1
    session_duration: int | None = Field(default=None, description="Billed minutes")
    documented_duration: int | None = Field(default=None, description="Documented minutes")
    case_notes: str | None = None
    approved: bool = False
    paid_amount: float | None = None


class Provider(CamelModel):
    """A billing provider. Used as the aggregation key."""
    id: str
    npi: str | None = None
    name: str
    specialty: str | None = None
    network_status: str = "active"
    years_active: int = 0
    total_claims: int = 0
    avg_claim_amount: float = 0.0
    risk_score: int = 0
