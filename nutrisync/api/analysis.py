"""API endpoints for meal analysis and retrospective meal parsing."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, ValidationError

from nutrisync.api.dependencies import (
    get_meal_analysis_agent,
    get_retrospective_parser,
    get_state_channel,
)
from nutrisync.models.analysis import AnalysisRequest, UserNutritionContext
from nutrisync.models.meal_window import MealWindow
from nutrisync.services.image_service import ALLOWED_CONTENT_TYPES
from nutrisync.services.meal_analysis_agent import (
    EmptyResultError,
    FatalInferenceError,
    MealAnalysisAgent,
)
from nutrisync.services.pipeline_state import PipelineStateChannel
from nutrisync.services.retrospective_parser import RetrospectiveMealParser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


class RetrospectiveRequest(BaseModel):
    description: str
    windows: list[MealWindow]


@router.post("/meal")
async def analyze_meal(
    image: Optional[UploadFile] = File(None),
    transcript: Optional[str] = Form(None),
    context: Optional[str] = Form(None),
    window: Optional[str] = Form(None),
    agent: MealAnalysisAgent = Depends(get_meal_analysis_agent),
):
    """
    Analyze a meal photo and/or description.

    Form fields:
        image: Meal photo (jpeg, png, webp, heic)
        transcript: Spoken or typed description
        context: UserNutritionContext as JSON
        window: Active MealWindow as JSON

    Returns: {estimate, metadata, is_fallback}
    """
    image_bytes = None
    if image and image.filename:
        if image.content_type not in ALLOWED_CONTENT_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type: {image.content_type}. Allowed: {ALLOWED_CONTENT_TYPES}",
            )
        image_bytes = await image.read()

    try:
        user_context = (
            UserNutritionContext.model_validate_json(context)
            if context
            else UserNutritionContext()
        )
        meal_window = MealWindow.model_validate_json(window) if window else None
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    request = AnalysisRequest(
        image=image_bytes,
        transcript=transcript,
        user_context=user_context,
        meal_window=meal_window,
    )

    try:
        result = await agent.analyze(request)
    except EmptyResultError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FatalInferenceError as e:
        if e.is_quota:
            raise HTTPException(
                status_code=429, detail="Too many requests, please try again in 1 minute"
            )
        raise HTTPException(status_code=502, detail="Meal analysis temporarily unavailable")

    return result.model_dump(mode="json")


@router.post("/retrospective")
async def parse_retrospective_meals(
    body: RetrospectiveRequest,
    parser: RetrospectiveMealParser = Depends(get_retrospective_parser),
):
    """Split a description of earlier meals across the given windows."""
    records = await parser.parse_meals(body.description, body.windows)
    return {"meals": [r.model_dump(mode="json") for r in records]}


@router.get("/state")
async def get_pipeline_state(
    channel: PipelineStateChannel = Depends(get_state_channel),
):
    """Current pipeline state (non-streaming)."""
    return channel.state.model_dump(mode="json")
