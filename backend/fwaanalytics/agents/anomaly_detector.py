"""
Anomaly Detector Agent - Turns a claim and its validation issues into
anomaly findings with a coarse severity.

Checks run in a fixed order and severity only ever escalates within a run.
Output is fully deterministic for a given claim and validator result.
"""

from __future__ import annotations

from fwaanalytics.agents.base import AgentResult, BaseAgent
from fwaanalytics.agents.models import AnomalyDetectorInput, AnomalyDetectorOutput, Severity

UPCODING_GAP_MINUTES = 15
MINOR_GAP_MINUTES = 5
BUSINESS_HOURS_START = 6
BUSINESS_HOURS_END = 22
HIGH_BILLING_AMOUNT = 500
WEEKEND_DAYS = {5, 6}  # date.weekday(): Saturday, Sunday


def format_amount(amount: float) -> str:
    """Shortest round-trip rendering, without a trailing ``.0`` for whole values."""
    if float(amount).is_integer():
        return str(int(amount))
    return repr(float(amount))


class AnomalyDetectorAgent(BaseAgent[AnomalyDetectorInput, AnomalyDetectorOutput]):
    """Rule-based anomaly detection. Never calls the LLM."""

    @property
    def name(self) -> str:
        return "anomaly_detector"

    def execute(self, input_data: AnomalyDetectorInput) -> AgentResult[AnomalyDetectorOutput]:
        self.reset_stats()
        claim = input_data.claim

        if claim is None:
            return AgentResult(output=AnomalyDetectorOutput(), stats=self.get_stats())

        anomalies: list[str] = []
        severity = Severity.LOW

        # Upcoding: billed minutes well above documented minutes
        if claim.session_duration and claim.documented_duration:
            discrepancy = claim.session_duration - claim.documented_duration
            if discrepancy > UPCODING_GAP_MINUTES:
                anomalies.append(f"Duration discrepancy: {discrepancy} minutes (possible upcoding)")
                severity = severity.escalate(Severity.HIGH)
            elif discrepancy > MINOR_GAP_MINUTES:
                anomalies.append(f"Minor duration discrepancy: {discrepancy} minutes")
                severity = severity.escalate(Severity.MEDIUM)

        # Wall-clock of the stored timestamp, no timezone conversion
        service_date = claim.service_date
        if service_date.weekday() in WEEKEND_DAYS:
            anomalies.append("Weekend billing detected")
            severity = severity.escalate(Severity.MEDIUM)

        if service_date.hour < BUSINESS_HOURS_START or service_date.hour > BUSINESS_HOURS_END:
            anomalies.append("After-hours billing detected (outside 6 AM - 10 PM)")
            severity = severity.escalate(Severity.MEDIUM)

        if input_data.validation_issues:
            anomalies.extend(input_data.validation_issues)
            severity = severity.escalate(Severity.HIGH)

        billed = claim.billed_amount or 0.0
        if billed > HIGH_BILLING_AMOUNT:
            anomalies.append(f"Unusually high billing amount: ${format_amount(billed)}")
            severity = severity.escalate(Severity.HIGH)

        output = AnomalyDetectorOutput(anomalies=anomalies, severity=severity)
        return AgentResult(output=output, stats=self.get_stats())
