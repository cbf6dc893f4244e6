"""
Pydantic models for agent inputs and outputs.

Each stage agent has specific input/output types that extend the base models.
Stage outputs carry only the fields the stage owns; the orchestrator merges
them into the running PipelineState.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from fwaanalytics.agents.base import AgentInput, AgentOutput
from fwaanalytics.models import CamelModel, Claim


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def escalate(self, other: Severity) -> Severity:
        """Return the more severe of the two; severity never goes down."""
        return other if other.rank > self.rank else self


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class Pathway(str, Enum):
    OPERATIONAL = "operational"
    FRAUD = "fraud"
    UNCERTAIN = "uncertain"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Recommendation(str, Enum):
    APPROVE = "approve"
    MANUAL_REVIEW = "manual_review"
    DENY = "deny"
    MONITOR = "monitor"


# =============================================================================
# Validator Agent Models
# =============================================================================

class ValidatorInput(AgentInput):
    """Input for the Validator agent."""


class ValidatorOutput(AgentOutput):
    """Output from the Validator agent."""
    validation_issues: list[str] = Field(default_factory=list)
    is_valid: bool = True


# =============================================================================
# Anomaly Detector Agent Models
# =============================================================================

class AnomalyDetectorInput(AgentInput):
    """Input for the Anomaly Detector agent."""
    validation_issues: list[str] = Field(default_factory=list)


class AnomalyDetectorOutput(AgentOutput):
    """Output from the Anomaly Detector agent."""
    anomalies: list[str] = Field(default_factory=list)
    severity: Severity = Severity.LOW


# =============================================================================
# Pattern Analyzer Agent Models
# =============================================================================

class PatternAnalyzerInput(AgentInput):
    """Input for the Pattern Analyzer agent."""
    anomalies: list[str] = Field(default_factory=list)
    severity: Severity = Severity.LOW


class PatternAnalyzerOutput(AgentOutput):
    """Output from the Pattern Analyzer agent."""
    pathway: Pathway
    operational_hypothesis: str
    fraud_hypothesis: str


# =============================================================================
# Risk Scorer Agent Models
# =============================================================================

class RiskScorerInput(AgentInput):
    """Input for the Risk Scorer agent."""
    pathway: Pathway = Pathway.OPERATIONAL
    operational_hypothesis: str = ""
    fraud_hypothesis: str = ""
    anomalies: list[str] = Field(default_factory=list)
    severity: Severity = Severity.LOW


class RiskScorerOutput(AgentOutput):
    """Output from the Risk Scorer agent."""
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: list[str] = Field(default_factory=list)
    recommendation: str


# =============================================================================
# Orchestrator Models
# =============================================================================

class PipelineState(BaseModel):
    """Accumulating state for one claim assessment.

    Each stage's output is merged in with ``model_copy(update=...)`` so earlier
    snapshots are never mutated.
    """
    claim: Claim | None = None

    validation_issues: list[str] = Field(default_factory=list)
    is_valid: bool = True

    anomalies: list[str] = Field(default_factory=list)
    severity: Severity = Severity.LOW

    pathway: Pathway = Pathway.OPERATIONAL
    operational_hypothesis: str = ""
    fraud_hypothesis: str = ""

    risk_score: int = Field(default=0, ge=0, le=100)
    risk_level: RiskLevel = RiskLevel.LOW
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: list[str] = Field(default_factory=list)
    recommendation: str = Recommendation.APPROVE.value

    def merge(self, output: AgentOutput) -> PipelineState:
        """Return a new state with the stage output's fields applied."""
        update = {
            name: getattr(output, name)
            for name in type(output).model_fields
            if name not in AgentOutput.model_fields
        }
        return self.model_copy(update=update)


class ClaimRiskAssessment(CamelModel):
    """Final per-claim result returned to callers."""
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    pathway: Pathway
    operational_hypothesis: str
    fraud_hypothesis: str
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: list[str] = Field(default_factory=list)
    recommendation: str
    anomalies: list[str] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: PipelineState) -> ClaimRiskAssessment:
        return cls(
            risk_score=state.risk_score,
            risk_level=state.risk_level,
            pathway=state.pathway,
            operational_hypothesis=state.operational_hypothesis,
            fraud_hypothesis=state.fraud_hypothesis,
            confidence=state.confidence,
            evidence=list(state.evidence),
            recommendation=state.recommendation,
            anomalies=list(state.anomalies),
        )


class ProviderRiskAssessment(CamelModel):
    """Provider-level verdict aggregated over a sample of claim assessments."""
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    pathway: Pathway
    operational_hypothesis: str
    fraud_hypothesis: str
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: list[str] = Field(default_factory=list)
    recommendation: str
    claim_analyses: list[ClaimRiskAssessment] = Field(default_factory=list)
