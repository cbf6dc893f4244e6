"""
Base Agent Class for the claim risk pipeline

All stage agents inherit from BaseAgent and implement the execute() method.
Provides optional LLM access, token tracking, and cost aggregation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from pydantic import BaseModel

from fwaanalytics.llm.providers import LLMProvider, LLMResponse, LLMUnavailableError
from fwaanalytics.models import Claim

if TYPE_CHECKING:
    from fwaanalytics.llm.cost_tracker import CostTracker


class ResponseParseError(Exception):
    """Raised when an LLM response does not follow the labeled-line contract."""

    def __init__(self, message: str, raw_response: str):
        super().__init__(message)
        self.raw_response = raw_response


class AgentInput(BaseModel):
    """Base input model for all agents."""
    claim: Claim | None = None


class AgentOutput(BaseModel):
    """Base output model for all agents.

    ``success`` is False when the stage fell back to its deterministic result.
    """
    success: bool = True
    error: str | None = None


InputT = TypeVar("InputT", bound=AgentInput)
OutputT = TypeVar("OutputT", bound=AgentOutput)


@dataclass
class AgentStats:
    """Tracks agent execution statistics."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    llm_calls: int = 0

    def add_response(self, response: LLMResponse) -> None:
        """Add token usage from an LLM response."""
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens
        self.total_tokens += response.total_tokens
        self.cost_usd += response.cost_usd
        self.llm_calls += 1


@dataclass
class AgentResult(Generic[OutputT]):
    """Result wrapper containing output and stats."""
    output: OutputT
    stats: AgentStats = field(default_factory=AgentStats)


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """
    Abstract base class for all pipeline stage agents.

    Subclasses must implement:
        - name: Agent name for logging and cost attribution
        - execute(): Main agent logic

    Rule-based stages never touch the LLM and may be built with ``llm=None``.
    LLM-backed stages call ``self.llm_call()``, which raises
    LLMUnavailableError when no provider was injected.
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        model: str = "gpt-4",
        *,
        temperature: float = 0.3,
        timeout: float = 60.0,
        cost_tracker: CostTracker | None = None,
    ):
        """
        Initialize the agent.

        Args:
            llm: LLM provider for API calls, or None for deterministic mode
            model: Model (or Azure deployment) name
            temperature: Sampling temperature for every call this agent makes
            timeout: Per-call timeout in seconds
            cost_tracker: Optional shared ledger of LLM usage
        """
        self._llm = llm
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._cost_tracker = cost_tracker
        self._stats = AgentStats()

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent name for logging and identification."""
        pass

    @abstractmethod
    def execute(self, input_data: InputT) -> AgentResult[OutputT]:
        """
        Execute the agent's main logic.

        Args:
            input_data: Typed input for this agent

        Returns:
            AgentResult containing output and execution stats
        """
        pass

    def llm_call(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Make an LLM call with automatic token tracking.

        Raises:
            LLMUnavailableError: If the agent was built without a provider
        """
        if self._llm is None:
            raise LLMUnavailableError(f"{self.name} requires an LLM provider")

        response = self._llm.chat_completion(
            messages=messages,
            model=self._model,
            temperature=self._temperature,
            max_tokens=max_tokens,
            timeout=self._timeout,
        )
        self._stats.add_response(response)
        if self._cost_tracker is not None:
            self._cost_tracker.track(response, operation=self.name)
        return response

    def get_stats(self) -> AgentStats:
        """Get current execution statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset execution statistics for new run."""
        self._stats = AgentStats()

    def _make_system_message(self, content: str) -> dict[str, str]:
        return {"role": "system", "content": content}

    def _make_user_message(self, content: str) -> dict[str, str]:
        return {"role": "user", "content": content}
