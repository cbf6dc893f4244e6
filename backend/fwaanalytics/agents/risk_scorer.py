"""
Risk Scorer Agent - Final numeric risk, level, confidence and recommendation.

The LLM is asked to band the score by pathway (operational 0-40, fraud 60-100,
uncertain 40-70) and shift it by severity. When the call or the parse fails,
a rule-based score is used instead so the failure path stays deterministic.
"""

from __future__ import annotations

import logging
import re

from fwaanalytics.agents.base import AgentResult, BaseAgent, ResponseParseError
from fwaanalytics.agents.models import (
    Pathway,
    Recommendation,
    RiskLevel,
    RiskScorerInput,
    RiskScorerOutput,
    Severity,
)
from fwaanalytics.llm.providers import LLMUnavailableError

logger = logging.getLogger(__name__)

MAX_EVIDENCE_ITEMS = 5
NO_CLAIM_RECOMMENDATION = "No claim to score"


SYSTEM_PROMPT = """You are a risk assessment AI for healthcare fraud detection.
You turn a pathway determination and its supporting anomalies into a calibrated
risk score, and you answer in the exact labeled format requested."""


SCORING_PROMPT = """Calculate a final risk score and provide recommendations.

PATHWAY DETERMINATION: {pathway}
OPERATIONAL EXPLANATION: {operational_hypothesis}
FRAUD EXPLANATION: {fraud_hypothesis}

ANOMALIES DETECTED:
{anomalies}

SEVERITY LEVEL: {severity}

Calculate:
1. Risk Score (0-100, where 0 = no risk, 100 = definite fraud)
2. Risk Level (low/medium/high/critical)
3. Confidence (0-1, how certain are you?)
4. Key Evidence (3-5 bullet points)
5. Recommendation (approve/manual_review/deny)

Consider:
- If pathway is "operational", score should be lower (0-40)
- If pathway is "fraud", score should be higher (60-100)
- If pathway is "uncertain", score should be moderate (40-70)
- Severity affects the score significantly

Respond in this EXACT format:
RISK_SCORE: [0-100]
RISK_LEVEL: [low/medium/high/critical]
CONFIDENCE: [0.0-1.0]
EVIDENCE: [bullet 1]|[bullet 2]|[bullet 3]
RECOMMENDATION: [approve/manual_review/deny]"""


_LABELS = r"(?:RISK_SCORE|RISK_LEVEL|CONFIDENCE|EVIDENCE|RECOMMENDATION)"
_SCORE_RE = re.compile(r"\bRISK_SCORE:\s*\[?\s*(\d+)", re.IGNORECASE)
_LEVEL_RE = re.compile(r"\bRISK_LEVEL:\s*\[?\s*(low|medium|high|critical)\b", re.IGNORECASE)
_CONFIDENCE_RE = re.compile(r"\bCONFIDENCE:\s*\[?\s*([0-9]*\.?[0-9]+)", re.IGNORECASE)
# Evidence ends at an uppercase label or a label opening a line; "confidence:" mid-bullet is text
_NEXT_LABEL = rf"(?=(?-i:\b{_LABELS}:)|^[ \t]*{_LABELS}:|\Z)"
_EVIDENCE_RE = re.compile(
    rf"\bEVIDENCE:\s*(.+?){_NEXT_LABEL}", re.IGNORECASE | re.DOTALL | re.MULTILINE
)
_RECOMMENDATION_RE = re.compile(
    r"\bRECOMMENDATION:\s*\[?\s*(approve|manual_review|deny)\b", re.IGNORECASE
)


def _split_evidence(raw: str) -> list[str]:
    items = []
    for part in raw.split("|"):
        item = part.strip().strip("[]").strip().lstrip("-*• ").strip()
        if item:
            items.append(item)
    return items


def parse_risk_response(content: str, anomalies: list[str]) -> RiskScorerOutput:
    """Parse the labeled RISK_SCORE / ... / RECOMMENDATION response.

    RISK_SCORE is mandatory. Other missing fields default to ``medium``,
    ``0.5``, the first anomalies, and ``manual_review``.

    Raises:
        ResponseParseError: If no RISK_SCORE can be read.
    """
    score_match = _SCORE_RE.search(content or "")
    if score_match is None:
        raise ResponseParseError("Response contains no RISK_SCORE", raw_response=content or "")

    risk_score = max(0, min(100, int(score_match.group(1))))

    level_match = _LEVEL_RE.search(content)
    risk_level = RiskLevel(level_match.group(1).lower()) if level_match else RiskLevel.MEDIUM

    confidence = 0.5
    confidence_match = _CONFIDENCE_RE.search(content)
    if confidence_match:
        confidence = max(0.0, min(1.0, float(confidence_match.group(1))))

    evidence: list[str] = []
    evidence_match = _EVIDENCE_RE.search(content)
    if evidence_match:
        evidence = _split_evidence(evidence_match.group(1))
    if not evidence:
        evidence = anomalies[:MAX_EVIDENCE_ITEMS]

    recommendation_match = _RECOMMENDATION_RE.search(content)
    recommendation = (
        recommendation_match.group(1).lower()
        if recommendation_match
        else Recommendation.MANUAL_REVIEW.value
    )

    return RiskScorerOutput(
        risk_score=risk_score,
        risk_level=risk_level,
        confidence=confidence,
        evidence=evidence,
        recommendation=recommendation,
    )


def fallback_risk_score(
    severity: Severity,
    pathway: Pathway,
    anomalies: list[str],
    error: str | None = None,
) -> RiskScorerOutput:
    """Rule-based score used whenever the LLM result is unavailable."""
    risk_score = 30
    risk_level = RiskLevel.LOW

    if severity == Severity.HIGH:
        risk_score = 75
        risk_level = RiskLevel.HIGH
    elif severity == Severity.MEDIUM:
        risk_score = 50
        risk_level = RiskLevel.MEDIUM

    if pathway == Pathway.FRAUD:
        risk_score = min(95, risk_score + 20)
        risk_level = RiskLevel.CRITICAL if risk_score > 80 else RiskLevel.HIGH

    recommendation = Recommendation.MANUAL_REVIEW if risk_score > 70 else Recommendation.APPROVE

    return RiskScorerOutput(
        success=False,
        error=error,
        risk_score=risk_score,
        risk_level=risk_level,
        confidence=0.6,
        evidence=anomalies[:MAX_EVIDENCE_ITEMS],
        recommendation=recommendation.value,
    )


class RiskScorerAgent(BaseAgent[RiskScorerInput, RiskScorerOutput]):
    """Agent that produces the final claim risk verdict."""

    @property
    def name(self) -> str:
        return "risk_scorer"

    def execute(self, input_data: RiskScorerInput) -> AgentResult[RiskScorerOutput]:
        self.reset_stats()

        if input_data.claim is None:
            output = RiskScorerOutput(
                risk_score=0,
                risk_level=RiskLevel.LOW,
                confidence=0.0,
                evidence=[],
                recommendation=NO_CLAIM_RECOMMENDATION,
            )
            return AgentResult(output=output, stats=self.get_stats())

        prompt = SCORING_PROMPT.format(
            pathway=input_data.pathway.value,
            operational_hypothesis=input_data.operational_hypothesis,
            fraud_hypothesis=input_data.fraud_hypothesis,
            anomalies="\n".join(f"{i + 1}. {a}" for i, a in enumerate(input_data.anomalies)) or "None",
            severity=input_data.severity.value,
        )

        try:
            response = self.llm_call(
                messages=[
                    self._make_system_message(SYSTEM_PROMPT),
                    self._make_user_message(prompt),
                ],
                max_tokens=500,
            )
            output = parse_risk_response(response.content, input_data.anomalies)

        except LLMUnavailableError as e:
            logger.debug("Risk scorer running without LLM: %s", e)
            output = self._fallback(input_data, e)
        except ResponseParseError as e:
            logger.warning(
                "Risk scorer could not parse response (first 200 chars): %s",
                e.raw_response[:200],
            )
            output = self._fallback(input_data, e)
        except Exception as e:  # noqa: BLE001
            logger.warning("Risk scorer LLM call failed: %s", e)
            output = self._fallback(input_data, e)

        return AgentResult(output=output, stats=self.get_stats())

    @staticmethod
    def _fallback(input_data: RiskScorerInput, error: Exception) -> RiskScorerOutput:
        return fallback_risk_score(
            input_data.severity,
            input_data.pathway,
            input_data.anomalies,
            error=str(error),
        )
