"""
Test configuration and fixtures for NutriSync.

- Scripted inference client (no API calls)
- Fresh brand cache and state channel per test
- TestClient with service dependency overrides
"""

import pytest
from fastapi.testclient import TestClient

from nutrisync.api.dependencies import (
    get_meal_analysis_agent,
    get_retrospective_parser,
    get_state_channel,
)
from nutrisync.main import app
from nutrisync.services.brand_cache import BrandCache
from nutrisync.services.escalation_policy import EscalationConfig, EscalationPolicy
from nutrisync.services.meal_analysis_agent import MealAnalysisAgent
from nutrisync.services.pipeline_state import PipelineStateChannel
from nutrisync.services.retrospective_parser import RetrospectiveMealParser
from tests.fixtures.mocks import MockInferenceClient


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def mock_client() -> MockInferenceClient:
    """Scripted inference client; queue responses per tool."""
    return MockInferenceClient()


@pytest.fixture
def state_channel() -> PipelineStateChannel:
    return PipelineStateChannel()


@pytest.fixture
def brand_cache() -> BrandCache:
    return BrandCache()


@pytest.fixture
def policy() -> EscalationPolicy:
    """Policy with default thresholds, independent of any .env overrides."""
    return EscalationPolicy(EscalationConfig())


@pytest.fixture
def agent(mock_client, policy, brand_cache, state_channel) -> MealAnalysisAgent:
    mock_client.observe(state_channel)
    return MealAnalysisAgent(
        client=mock_client,
        policy=policy,
        brand_cache=brand_cache,
        channel=state_channel,
    )


@pytest.fixture
def retrospective_parser(mock_client) -> RetrospectiveMealParser:
    return RetrospectiveMealParser(client=mock_client)


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a process-wide exit event bound to the first loop."""
    from sse_starlette.sse import AppStatus

    AppStatus.should_exit_event = None
    yield


@pytest.fixture
def client(agent, retrospective_parser, state_channel):
    """TestClient wired to the scripted services."""
    app.dependency_overrides[get_meal_analysis_agent] = lambda: agent
    app.dependency_overrides[get_retrospective_parser] = lambda: retrospective_parser
    app.dependency_overrides[get_state_channel] = lambda: state_channel

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
