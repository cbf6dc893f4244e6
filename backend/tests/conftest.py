"""
Pytest configuration for backend tests.

Shared fixtures for claim, provider and orchestrator setup.
"""
import sys
from pathlib import Path

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from fwaanalytics.agents import FraudAnalysisOrchestrator
from fwaanalytics.llm import CostTracker
from fwaanalytics.models import Claim, Provider
from tests.factories import make_claim, make_provider, make_risky_claim


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring a real LLM (deselect with '-m \"not integration\"')",
    )


# --- Claim Fixtures ---
@pytest.fixture
def clean_claim() -> Claim:
    """Weekday claim that passes every validation and anomaly check."""
    return make_claim()


@pytest.fixture
def risky_claim() -> Claim:
    """20 minute duration gap, Saturday service, $600 billed."""
    return make_risky_claim()


@pytest.fixture
def provider() -> Provider:
    return make_provider()


# --- Orchestrator Fixtures ---
@pytest.fixture
def cost_tracker() -> CostTracker:
    return CostTracker()


@pytest.fixture
def deterministic_orchestrator(cost_tracker: CostTracker) -> FraudAnalysisOrchestrator:
    """Orchestrator with no LLM: every LLM stage takes its fallback."""
    return FraudAnalysisOrchestrator(llm=None, cost_tracker=cost_tracker)
