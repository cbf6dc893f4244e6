"""
Multi-Agent Claim Risk Pipeline.

This module provides a 4-agent workflow for assessing healthcare claims:

1. ClaimValidatorAgent - Structural and business-rule checks
2. AnomalyDetectorAgent - Anomaly findings and severity
3. PatternAnalyzerAgent - Operational vs fraud hypotheses (LLM)
4. RiskScorerAgent - Final risk score and recommendation (LLM)

Usage:
    from fwaanalytics.agents import FraudAnalysisOrchestrator
    from fwaanalytics.llm import get_llm_client

    orchestrator = FraudAnalysisOrchestrator(get_llm_client(), model="gpt-4")

    assessment = orchestrator.analyze_claim(claim)
    print(assessment.risk_score, assessment.recommendation)

    verdict = orchestrator.analyze_provider(provider, claims)
"""

# Base classes
from fwaanalytics.agents.anomaly_detector import AnomalyDetectorAgent
from fwaanalytics.agents.base import (
    AgentInput,
    AgentOutput,
    AgentResult,
    AgentStats,
    BaseAgent,
    ResponseParseError,
)

# Models
from fwaanalytics.agents.models import (
    AnomalyDetectorInput,
    AnomalyDetectorOutput,
    ClaimRiskAssessment,
    Pathway,
    PatternAnalyzerInput,
    PatternAnalyzerOutput,
    PipelineState,
    ProviderRiskAssessment,
    Recommendation,
    RiskLevel,
    RiskScorerInput,
    RiskScorerOutput,
    Severity,
    ValidatorInput,
    ValidatorOutput,
)

# Orchestrator
from fwaanalytics.agents.orchestrator import FraudAnalysisOrchestrator
from fwaanalytics.agents.pattern_analyzer import PatternAnalyzerAgent
from fwaanalytics.agents.risk_scorer import RiskScorerAgent
from fwaanalytics.agents.validator import ClaimValidatorAgent

__all__ = [
    # Base
    "AgentInput",
    "AgentOutput",
    "AgentResult",
    "AgentStats",
    "BaseAgent",
    "ResponseParseError",
    # Models
    "AnomalyDetectorInput",
    "AnomalyDetectorOutput",
    "ClaimRiskAssessment",
    "Pathway",
    "PatternAnalyzerInput",
    "PatternAnalyzerOutput",
    "PipelineState",
    "ProviderRiskAssessment",
    "Recommendation",
    "RiskLevel",
    "RiskScorerInput",
    "RiskScorerOutput",
    "Severity",
    "ValidatorInput",
    "ValidatorOutput",
    # Agents
    "AnomalyDetectorAgent",
    "ClaimValidatorAgent",
    "PatternAnalyzerAgent",
    "RiskScorerAgent",
    # Orchestrator
    "FraudAnalysisOrchestrator",
]
