"""Healthcare fraud, waste and abuse (FWA) claim risk analytics."""

from fwaanalytics.agents import (
    ClaimRiskAssessment,
    FraudAnalysisOrchestrator,
    ProviderRiskAssessment,
)
from fwaanalytics.models import Claim, Provider

__all__ = [
    "Claim",
    "ClaimRiskAssessment",
    "FraudAnalysisOrchestrator",
    "Provider",
    "ProviderRiskAssessment",
]
