"""Shared service instances for the API, overridable via app.dependency_overrides."""

from functools import lru_cache

from nutrisync.config import settings
from nutrisync.services.inference_client import ClaudeInferenceClient
from nutrisync.services.meal_analysis_agent import MealAnalysisAgent
from nutrisync.services.pipeline_state import PipelineStateChannel
from nutrisync.services.retrospective_parser import RetrospectiveMealParser
from nutrisync.services.sse_publisher import SSEPublisher


@lru_cache
def get_inference_client() -> ClaudeInferenceClient:
    return ClaudeInferenceClient()


@lru_cache
def get_state_channel() -> PipelineStateChannel:
    publisher = SSEPublisher() if settings.state_publish_enabled else None
    return PipelineStateChannel(publisher=publisher)


@lru_cache
def get_meal_analysis_agent() -> MealAnalysisAgent:
    return MealAnalysisAgent(client=get_inference_client(), channel=get_state_channel())


@lru_cache
def get_retrospective_parser() -> RetrospectiveMealParser:
    agent = get_meal_analysis_agent() if settings.retrospective_enrich_enabled else None
    return RetrospectiveMealParser(client=get_inference_client(), agent=agent)
