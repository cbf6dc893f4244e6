"""
Pattern Analyzer Agent - Dual-pathway reasoning over a claim's anomalies.

Responsible for:
1. Skipping the LLM entirely when there is nothing to explain
2. Asking the LLM for an operational (innocent) and a fraud (intentional)
   hypothesis and an overall pathway
3. Parsing the labeled-line response, falling back to ``uncertain`` on any
   failure

The stage never raises.
"""

from __future__ import annotations

import logging
import re

from fwaanalytics.agents.anomaly_detector import format_amount
from fwaanalytics.agents.base import AgentResult, BaseAgent, ResponseParseError
from fwaanalytics.agents.models import Pathway, PatternAnalyzerInput, PatternAnalyzerOutput
from fwaanalytics.llm.providers import LLMUnavailableError
from fwaanalytics.models import Claim

logger = logging.getLogger(__name__)

NO_ANOMALY_OPERATIONAL = "No significant anomalies detected. Claim appears legitimate."
NO_ANOMALY_FRAUD = "No fraud indicators present."
UNKNOWN_OPERATIONAL = "Unknown operational scenario"
UNKNOWN_FRAUD = "Unknown fraud scenario"
ANALYSIS_FAILED = "Unable to analyze - system error"

DEFAULT_HYPOTHESIS_MAX_CHARS = 200


SYSTEM_PROMPT = """You are an AI fraud detection specialist for healthcare payers.
You always weigh an innocent explanation against an intentional-abuse explanation
before classifying a claim, and you answer in the exact labeled format requested."""


ANALYSIS_PROMPT = """Analyze the following medical claim with a DUAL-PATHWAY approach.

CLAIM DETAILS:
- CPT Code: {cpt_code} ({cpt_description})
- Billed Amount: ${billed_amount}
- Service Date: {service_date}
- Session Duration: {session_duration} minutes
- Documented Duration: {documented_duration} minutes
- Submitted Date: {submitted_date}
- Case Notes: {case_notes}

DETECTED ANOMALIES (Severity: {severity}):
{anomalies}

DUAL-PATHWAY ANALYSIS REQUIRED:
Analyze from BOTH perspectives:

1. OPERATIONAL PATHWAY - Innocent explanations:
   - Technical/system errors
   - Billing software glitches
   - Human data entry mistakes
   - Valid clinical scenarios that appear unusual
   - Documentation delays or discrepancies

2. FRAUD PATHWAY - Intentional abuse indicators:
   - Systematic overbilling patterns
   - Deliberate upcoding
   - Phantom billing
   - Service manipulation
   - Coordinated fraudulent activity

Respond in this EXACT format:
PATHWAY: [operational/fraud/uncertain]
OPERATIONAL_HYPOTHESIS: [150 char max explanation of innocent scenario]
FRAUD_HYPOTHESIS: [150 char max explanation of fraud scenario]"""


_LABELS = r"(?:PATHWAY|OPERATIONAL_HYPOTHESIS|FRAUD_HYPOTHESIS)"
_ANY_LABEL_RE = re.compile(rf"\b{_LABELS}:", re.IGNORECASE)
_PATHWAY_RE = re.compile(r"\bPATHWAY:\s*\[?\s*(operational|fraud|uncertain)\b", re.IGNORECASE)
# A value ends at an uppercase label or a label opening a line; "pathway:" mid-prose is text
_NEXT_LABEL = rf"(?=(?-i:\b{_LABELS}:)|^[ \t]*{_LABELS}:|\Z)"
_OPERATIONAL_RE = re.compile(
    rf"\bOPERATIONAL_HYPOTHESIS:\s*(.+?){_NEXT_LABEL}", re.IGNORECASE | re.DOTALL | re.MULTILINE
)
_FRAUD_RE = re.compile(
    rf"\bFRAUD_HYPOTHESIS:\s*(.+?){_NEXT_LABEL}", re.IGNORECASE | re.DOTALL | re.MULTILINE
)


def _clean_hypothesis(match: re.Match[str] | None, default: str, max_chars: int) -> str:
    if match is None:
        return default
    text = match.group(1).strip().strip("[]").strip()
    return text[:max_chars] if text else default


def parse_pathway_response(
    content: str,
    max_chars: int = DEFAULT_HYPOTHESIS_MAX_CHARS,
) -> tuple[Pathway, str, str]:
    """Parse a PATHWAY / OPERATIONAL_HYPOTHESIS / FRAUD_HYPOTHESIS response.

    Labels may come in any order. Individually missing fields resolve to
    ``uncertain`` and the "Unknown ..." placeholders.

    Raises:
        ResponseParseError: If none of the labels is present.
    """
    if not content or not _ANY_LABEL_RE.search(content):
        raise ResponseParseError("Response contains no pathway labels", raw_response=content or "")

    pathway_match = _PATHWAY_RE.search(content)
    pathway = Pathway(pathway_match.group(1).lower()) if pathway_match else Pathway.UNCERTAIN

    operational = _clean_hypothesis(_OPERATIONAL_RE.search(content), UNKNOWN_OPERATIONAL, max_chars)
    fraud = _clean_hypothesis(_FRAUD_RE.search(content), UNKNOWN_FRAUD, max_chars)
    return pathway, operational, fraud


def build_analysis_prompt(claim: Claim, anomalies: list[str], severity: str) -> str:
    return ANALYSIS_PROMPT.format(
        cpt_code=claim.cpt_code or "N/A",
        cpt_description=claim.cpt_description or "N/A",
        billed_amount=format_amount(claim.billed_amount) if claim.billed_amount is not None else "N/A",
        service_date=claim.service_date.isoformat(),
        session_duration=claim.session_duration or "N/A",
        documented_duration=claim.documented_duration or "N/A",
        submitted_date=claim.submitted_date.isoformat(),
        case_notes=claim.case_notes or "None provided",
        severity=severity,
        anomalies="\n".join(f"{i + 1}. {a}" for i, a in enumerate(anomalies)),
    )


class PatternAnalyzerAgent(BaseAgent[PatternAnalyzerInput, PatternAnalyzerOutput]):
    """Agent that classifies a claim onto the operational/fraud/uncertain pathway."""

    def __init__(self, *args, hypothesis_max_chars: int = DEFAULT_HYPOTHESIS_MAX_CHARS, **kwargs):
        super().__init__(*args, **kwargs)
        self._hypothesis_max_chars = hypothesis_max_chars

    @property
    def name(self) -> str:
        return "pattern_analyzer"

    def execute(self, input_data: PatternAnalyzerInput) -> AgentResult[PatternAnalyzerOutput]:
        self.reset_stats()
        claim = input_data.claim

        if claim is None or not input_data.anomalies:
            output = PatternAnalyzerOutput(
                pathway=Pathway.OPERATIONAL,
                operational_hypothesis=NO_ANOMALY_OPERATIONAL,
                fraud_hypothesis=NO_ANOMALY_FRAUD,
            )
            return AgentResult(output=output, stats=self.get_stats())

        try:
            response = self.llm_call(
                messages=[
                    self._make_system_message(SYSTEM_PROMPT),
                    self._make_user_message(
                        build_analysis_prompt(claim, input_data.anomalies, input_data.severity.value)
                    ),
                ],
                max_tokens=400,
            )
            pathway, operational, fraud = parse_pathway_response(
                response.content, self._hypothesis_max_chars
            )
            output = PatternAnalyzerOutput(
                pathway=pathway,
                operational_hypothesis=operational,
                fraud_hypothesis=fraud,
            )

        except LLMUnavailableError as e:
            logger.debug("Pattern analyzer running without LLM: %s", e)
            output = self._fallback_output(e)
        except ResponseParseError as e:
            logger.warning(
                "Pattern analyzer could not parse response (first 200 chars): %s",
                e.raw_response[:200],
            )
            output = self._fallback_output(e)
        except Exception as e:  # noqa: BLE001
            logger.warning("Pattern analyzer LLM call failed: %s", e)
            output = self._fallback_output(e)

        return AgentResult(output=output, stats=self.get_stats())

    @staticmethod
    def _fallback_output(error: Exception) -> PatternAnalyzerOutput:
        return PatternAnalyzerOutput(
            success=False,
            error=str(error),
            pathway=Pathway.UNCERTAIN,
            operational_hypothesis=ANALYSIS_FAILED,
            fraud_hypothesis=ANALYSIS_FAILED,
        )
