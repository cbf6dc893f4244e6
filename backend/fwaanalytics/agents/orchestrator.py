"""
Agent Orchestrator - Coordinates the claim risk pipeline.

Responsible for:
1. Running agents in sequence: Validate → Detect anomalies → Analyze pattern → Score
2. Merging each stage's output into a fresh PipelineState per claim
3. Aggregating a bounded sample of a provider's claims, analyzed concurrently
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

from fwaanalytics.agents.anomaly_detector import AnomalyDetectorAgent
from fwaanalytics.agents.models import (
    AnomalyDetectorInput,
    ClaimRiskAssessment,
    Pathway,
    PatternAnalyzerInput,
    PipelineState,
    ProviderRiskAssessment,
    Recommendation,
    RiskLevel,
    RiskScorerInput,
    ValidatorInput,
)
from fwaanalytics.agents.pattern_analyzer import DEFAULT_HYPOTHESIS_MAX_CHARS, PatternAnalyzerAgent
from fwaanalytics.agents.risk_scorer import RiskScorerAgent
from fwaanalytics.agents.validator import ClaimValidatorAgent
from fwaanalytics.llm.cost_tracker import CostTracker

if TYPE_CHECKING:
    from fwaanalytics.llm.providers import LLMProvider
    from fwaanalytics.models import Claim, Provider
    from fwaanalytics.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_CAP = 10
HIGH_RISK_LEVELS = {RiskLevel.HIGH, RiskLevel.CRITICAL}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def provider_risk_level(avg_score: int, high_risk_count: int) -> RiskLevel:
    """Most severe tier first; the first matching tier wins."""
    if avg_score > 80 or high_risk_count > 5:
        return RiskLevel.CRITICAL
    if avg_score > 60 or high_risk_count > 3:
        return RiskLevel.HIGH
    if avg_score > 40 or high_risk_count > 1:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def empty_provider_assessment() -> ProviderRiskAssessment:
    return ProviderRiskAssessment(
        risk_score=0,
        risk_level=RiskLevel.LOW,
        pathway=Pathway.OPERATIONAL,
        operational_hypothesis="No claims to analyze",
        fraud_hypothesis="No claims to analyze",
        confidence=0.0,
        evidence=[],
        recommendation="No action needed",
        claim_analyses=[],
    )


def aggregate_provider_assessment(
    total_claims: int,
    analyses: list[ClaimRiskAssessment],
) -> ProviderRiskAssessment:
    """Combine sampled claim assessments into a provider verdict.

    Args:
        total_claims: Size of the provider's full claim set
        analyses: Assessments of the sampled claims (must be non-empty)
    """
    sample_size = len(analyses)
    avg_score = round_half_up(sum(a.risk_score for a in analyses) / sample_size)
    high_risk_count = sum(1 for a in analyses if a.risk_level in HIGH_RISK_LEVELS)
    fraud_pathway_count = sum(1 for a in analyses if a.pathway == Pathway.FRAUD)

    risk_level = provider_risk_level(avg_score, high_risk_count)
    # Float comparison: 3 of 7 is not a majority (3 > 3.5 is False)
    pathway = Pathway.FRAUD if fraud_pathway_count > sample_size / 2 else Pathway.OPERATIONAL
    practice = "legitimate practice" if pathway == Pathway.OPERATIONAL else "potential systematic fraud"

    return ProviderRiskAssessment(
        risk_score=avg_score,
        risk_level=risk_level,
        pathway=pathway,
        operational_hypothesis=(
            f"Provider has {total_claims} claims with average risk score {avg_score}. "
            f"Patterns suggest {practice}."
        ),
        fraud_hypothesis=(
            f"{high_risk_count} of {sample_size} analyzed claims show high risk. "
            f"{fraud_pathway_count} claims flagged as likely fraud."
        ),
        confidence=min(0.95, 0.5 + sample_size / 20),
        evidence=[
            f"Total claims: {total_claims}",
            f"High-risk claims: {high_risk_count}/{sample_size} analyzed",
            f"Average risk score: {avg_score}/100",
            f"Fraud pathway detections: {fraud_pathway_count}",
        ],
        recommendation=(
            Recommendation.MANUAL_REVIEW.value
            if risk_level in HIGH_RISK_LEVELS
            else Recommendation.MONITOR.value
        ),
        claim_analyses=analyses,
    )


class FraudAnalysisOrchestrator:
    """
    Orchestrates the claim risk pipeline.

    Flow per claim:
        1. Validator: structural/business-rule issues
        2. AnomalyDetector: anomaly findings and severity
        3. PatternAnalyzer: operational vs fraud hypotheses (LLM)
        4. RiskScorer: score, level, evidence, recommendation (LLM)

    With ``llm=None`` every LLM stage takes its deterministic fallback.
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        model: str = "gpt-4",
        *,
        temperature: float = 0.3,
        timeout: float = 60.0,
        sample_cap: int = DEFAULT_SAMPLE_CAP,
        max_concurrency: int = DEFAULT_SAMPLE_CAP,
        hypothesis_max_chars: int = DEFAULT_HYPOTHESIS_MAX_CHARS,
        cost_tracker: CostTracker | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            llm: LLM provider shared by the LLM-backed stages, or None
            model: Model (or Azure deployment) name
            temperature: Sampling temperature for LLM stages
            timeout: Per-call LLM timeout in seconds
            sample_cap: Maximum claims analyzed per provider
            max_concurrency: Maximum claim pipelines running at once
            hypothesis_max_chars: Truncation length for hypotheses
            cost_tracker: Shared LLM usage ledger (created if omitted)

        Raises:
            ValueError: If sample_cap or max_concurrency is below 1
        """
        if sample_cap < 1:
            raise ValueError(f"sample_cap must be at least 1, got {sample_cap}")
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self._llm = llm
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._sample_cap = sample_cap
        self._max_concurrency = max_concurrency
        self._hypothesis_max_chars = hypothesis_max_chars
        self._cost_tracker = cost_tracker or CostTracker()

    @classmethod
    def from_settings(cls, settings: Settings, llm: LLMProvider | None) -> FraudAnalysisOrchestrator:
        return cls(
            llm if settings.use_llm else None,
            settings.resolved_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_s,
            sample_cap=settings.provider_sample_cap,
            max_concurrency=settings.max_concurrency,
            hypothesis_max_chars=settings.hypothesis_max_chars,
        )

    @property
    def llm(self) -> LLMProvider | None:
        return self._llm

    @property
    def model(self) -> str:
        return self._model

    @property
    def sample_cap(self) -> int:
        return self._sample_cap

    @property
    def cost_tracker(self) -> CostTracker:
        return self._cost_tracker

    def _build_agents(
        self,
    ) -> tuple[ClaimValidatorAgent, AnomalyDetectorAgent, PatternAnalyzerAgent, RiskScorerAgent]:
        """Fresh agents per claim so concurrent pipelines share no stats."""
        llm_kwargs = {
            "temperature": self._temperature,
            "timeout": self._timeout,
            "cost_tracker": self._cost_tracker,
        }
        return (
            ClaimValidatorAgent(),
            AnomalyDetectorAgent(),
            PatternAnalyzerAgent(
                self._llm,
                self._model,
                hypothesis_max_chars=self._hypothesis_max_chars,
                **llm_kwargs,
            ),
            RiskScorerAgent(self._llm, self._model, **llm_kwargs),
        )

    def analyze_claim(self, claim: Claim | None) -> ClaimRiskAssessment:
        """
        Run the four-stage pipeline on one claim.

        Stage failures are absorbed by the stages themselves; anything else
        is logged and re-raised to the caller.
        """
        claim_ref = claim.claim_id or claim.id if claim else None
        logger.info("Starting claim analysis: %s", claim_ref)

        try:
            validator, detector, analyzer, scorer = self._build_agents()
            state = PipelineState(claim=claim)

            result = validator.execute(ValidatorInput(claim=claim))
            state = state.merge(result.output)
            logger.debug("Validation issues for %s: %s", claim_ref, state.validation_issues)

            result = detector.execute(
                AnomalyDetectorInput(claim=claim, validation_issues=state.validation_issues)
            )
            state = state.merge(result.output)
            logger.debug("Anomalies for %s (%s): %s", claim_ref, state.severity.value, state.anomalies)

            result = analyzer.execute(
                PatternAnalyzerInput(claim=claim, anomalies=state.anomalies, severity=state.severity)
            )
            state = state.merge(result.output)
            logger.debug("Pathway for %s: %s", claim_ref, state.pathway.value)

            result = scorer.execute(
                RiskScorerInput(
                    claim=claim,
                    pathway=state.pathway,
                    operational_hypothesis=state.operational_hypothesis,
                    fraud_hypothesis=state.fraud_hypothesis,
                    anomalies=state.anomalies,
                    severity=state.severity,
                )
            )
            state = state.merge(result.output)

        except Exception:
            logger.exception("Claim analysis failed: %s", claim_ref)
            raise

        logger.info(
            "Claim %s scored %d (%s, pathway=%s, severity=%s)",
            claim_ref, state.risk_score, state.risk_level.value,
            state.pathway.value, state.severity.value,
        )
        return ClaimRiskAssessment.from_state(state)

    async def analyze_claim_async(self, claim: Claim | None) -> ClaimRiskAssessment:
        """Run analyze_claim in a worker thread (LLM providers are blocking)."""
        return await asyncio.to_thread(self.analyze_claim, claim)

    async def analyze_provider_async(
        self,
        provider: Provider,
        claims: list[Claim],
    ) -> ProviderRiskAssessment:
        """
        Assess a provider from the first ``sample_cap`` of its claims.

        Sampled claims run concurrently (bounded by ``max_concurrency``);
        aggregation starts only after all of them finish.
        """
        if not claims:
            logger.info("Provider %s has no claims to analyze", provider.id)
            return empty_provider_assessment()

        sample = claims[: min(self._sample_cap, len(claims))]
        logger.info(
            "Analyzing provider %s: %d of %d claims sampled",
            provider.id, len(sample), len(claims),
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def analyze_with_semaphore(claim: Claim) -> ClaimRiskAssessment:
            async with semaphore:
                return await self.analyze_claim_async(claim)

        analyses = await asyncio.gather(*(analyze_with_semaphore(c) for c in sample))
        assessment = aggregate_provider_assessment(len(claims), list(analyses))

        logger.info(
            "Provider %s scored %d (%s, pathway=%s)",
            provider.id, assessment.risk_score, assessment.risk_level.value, assessment.pathway.value,
        )
        return assessment

    def analyze_provider(self, provider: Provider, claims: list[Claim]) -> ProviderRiskAssessment:
        """Synchronous wrapper around analyze_provider_async.

        Must not be called from inside a running event loop; use
        ``analyze_provider_async`` there.
        """
        return asyncio.run(self.analyze_provider_async(provider, claims))
