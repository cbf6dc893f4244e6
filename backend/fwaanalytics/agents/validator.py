"""
Validator Agent - Checks a claim for structural and business-rule defects.

Every rule is evaluated; issues accumulate rather than short-circuit. Missing
optional fields mean a rule does not apply, never that it failed.
"""

from __future__ import annotations

from fwaanalytics.agents.base import AgentResult, BaseAgent
from fwaanalytics.agents.models import ValidatorInput, ValidatorOutput

DURATION_OVERRUN_FACTOR = 1.5
BRIEF_SESSION_MARKER = "Brief session"
BRIEF_SESSION_MAX_AMOUNT = 150


class ClaimValidatorAgent(BaseAgent[ValidatorInput, ValidatorOutput]):
    """Rule-based claim validation. Never calls the LLM."""

    @property
    def name(self) -> str:
        return "validator"

    def execute(self, input_data: ValidatorInput) -> AgentResult[ValidatorOutput]:
        self.reset_stats()
        claim = input_data.claim

        if claim is None:
            output = ValidatorOutput(validation_issues=["No claim provided"], is_valid=False)
            return AgentResult(output=output, stats=self.get_stats())

        issues: list[str] = []
        billed = claim.billed_amount or 0.0

        if not claim.cpt_code or not claim.billed_amount:
            issues.append("Missing required fields")

        # Zero durations are treated as absent
        if claim.session_duration and claim.documented_duration:
            if claim.session_duration > claim.documented_duration * DURATION_OVERRUN_FACTOR:
                issues.append("Session duration significantly exceeds documented duration")

        if billed <= 0:
            issues.append("Invalid billing amount")

        if claim.case_notes and BRIEF_SESSION_MARKER in claim.case_notes and billed > BRIEF_SESSION_MAX_AMOUNT:
            issues.append("Brief session with high billing amount")

        output = ValidatorOutput(validation_issues=issues, is_valid=not issues)
        return AgentResult(output=output, stats=self.get_stats())
