"""
Domain models for NutriSync meal analysis.

All value types are immutable pydantic models.
"""

from nutrisync.models.analysis import (
    AnalysisMetadata,
    AnalysisRequest,
    AnalysisResult,
    AnalysisTool,
    ComplexityRating,
    NutritionGoal,
    UserNutritionContext,
)
from nutrisync.models.meal_window import MealRecord, MealWindow
from nutrisync.models.nutrition import (
    Clarification,
    ClarificationOption,
    Ingredient,
    Micronutrient,
    Nutrition,
    NutritionEstimate,
)
from nutrisync.models.pipeline_state import PipelineStage, PipelineState

__all__ = [
    "AnalysisMetadata",
    "AnalysisRequest",
    "AnalysisResult",
    "AnalysisTool",
    "ComplexityRating",
    "NutritionGoal",
    "UserNutritionContext",
    "MealRecord",
    "MealWindow",
    "Clarification",
    "ClarificationOption",
    "Ingredient",
    "Micronutrient",
    "Nutrition",
    "NutritionEstimate",
    "PipelineStage",
    "PipelineState",
]
