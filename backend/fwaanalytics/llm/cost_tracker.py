"""
Cost Tracker - Tracks LLM usage and costs across pipeline stages.

One tracker is shared by all claim pipelines run by an orchestrator, including
the concurrent pipelines of a provider aggregation, so updates are locked.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fwaanalytics.llm.providers import LLMResponse


@dataclass
class CostEntry:
    """Single cost entry for an LLM call."""
    timestamp: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_usd: float
    operation: str = "unknown"


@dataclass
class CostSummary:
    """Aggregated cost summary."""
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    call_count: int = 0
    entries: list[CostEntry] = field(default_factory=list)
    # Oldest entries are dropped past this size
    max_entries: int = 10000

    def add_entry(self, entry: CostEntry) -> None:
        """Add a cost entry to the summary."""
        self.total_input_tokens += entry.input_tokens
        self.total_output_tokens += entry.output_tokens
        self.total_tokens += entry.total_tokens
        self.total_cost_usd += entry.cost_usd
        self.call_count += 1
        self.entries.append(entry)

        if len(self.entries) > self.max_entries:
            self.entries = self.entries[-self.max_entries:]

    def calls_by_operation(self) -> dict[str, int]:
        """Count retained entries per operation (pipeline stage)."""
        counts: dict[str, int] = {}
        for entry in self.entries:
            counts[entry.operation] = counts.get(entry.operation, 0) + 1
        return counts

    def to_dict(self) -> dict:
        """Convert summary to dictionary."""
        return {
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_tokens,
            "total_cost_usd": round(self.total_cost_usd, 6),
            "call_count": self.call_count,
            "calls_by_operation": self.calls_by_operation(),
        }


class CostTracker:
    """
    Tracks LLM costs across pipeline stages.

    Usage:
        tracker = CostTracker()
        tracker.track(response, operation="risk_scorer")
        print(f"Total cost: ${tracker.total_cost_usd:.4f}")
    """

    def __init__(self):
        self._summary = CostSummary()
        self._lock = threading.Lock()

    def track(self, response: LLMResponse, operation: str = "unknown") -> CostEntry:
        """
        Track an LLM response.

        Args:
            response: LLM response with usage info
            operation: Pipeline stage that made the call

        Returns:
            CostEntry for this call
        """
        entry = CostEntry(
            timestamp=datetime.now(UTC).replace(microsecond=0).isoformat(),
            model=response.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            total_tokens=response.total_tokens,
            cost_usd=response.cost_usd,
            operation=operation,
        )
        with self._lock:
            self._summary.add_entry(entry)
        return entry

    def get_summary(self) -> CostSummary:
        """Get the current cost summary."""
        return self._summary

    def reset(self) -> CostSummary:
        """Reset tracker and return final summary."""
        with self._lock:
            final = self._summary
            self._summary = CostSummary()
        return final

    @property
    def total_cost_usd(self) -> float:
        return self._summary.total_cost_usd

    @property
    def total_tokens(self) -> int:
        return self._summary.total_tokens

    @property
    def call_count(self) -> int:
        return self._summary.call_count
