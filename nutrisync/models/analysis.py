"""Request, tool and metadata types for the meal analysis pipeline."""

import enum
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict

from nutrisync.models.meal_window import MealWindow
from nutrisync.models.nutrition import NutritionEstimate


class NutritionGoal(str, enum.Enum):
    """User's primary nutrition goal."""

    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    MAINTAIN_WEIGHT = "maintain_weight"
    PERFORMANCE_FOCUS = "performance_focus"
    BETTER_SLEEP = "better_sleep"
    OVERALL_WELLBEING = "overall_wellbeing"
    ATHLETIC_PERFORMANCE = "athletic_performance"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class UserNutritionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_goal: NutritionGoal = NutritionGoal.MAINTAIN_WEIGHT
    daily_calorie_target: int = 2000
    daily_protein_target: int = 150
    daily_carb_target: int = 200
    daily_fat_target: int = 65

    @property
    def daily_macros(self) -> str:
        return (
            f"{self.daily_calorie_target} cal, {self.daily_protein_target}g protein, "
            f"{self.daily_carb_target}g carbs, {self.daily_fat_target}g fat"
        )


class AnalysisRequest(BaseModel):
    """One capture event: photo and/or description plus the user's targets."""

    model_config = ConfigDict(frozen=True)

    image: Optional[bytes] = None
    transcript: Optional[str] = None
    user_context: UserNutritionContext = UserNutritionContext()
    meal_window: Optional[MealWindow] = None

    @property
    def has_input(self) -> bool:
        return bool(self.image) or bool(self.transcript and self.transcript.strip())


class AnalysisTool(str, enum.Enum):
    """Analysis stages, in escalation order after the initial pass."""

    INITIAL = "initial"
    BRAND_SEARCH = "brand_search"
    DEEP_ANALYSIS = "deep_analysis"
    NUTRITION_LOOKUP = "nutrition_lookup"

    @property
    def display_name(self) -> str:
        return {
            AnalysisTool.INITIAL: "Analyzing meal...",
            AnalysisTool.BRAND_SEARCH: "Searching restaurant info...",
            AnalysisTool.DEEP_ANALYSIS: "Analyzing ingredients...",
            AnalysisTool.NUTRITION_LOOKUP: "Looking up nutrition data...",
        }[self]


# Stages the escalation policy may choose, in the order they may run
ESCALATION_ORDER = (
    AnalysisTool.BRAND_SEARCH,
    AnalysisTool.DEEP_ANALYSIS,
    AnalysisTool.NUTRITION_LOOKUP,
)


class ComplexityRating(str, enum.Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    RESTAURANT = "restaurant"


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    tools_used: list[AnalysisTool] = []
    complexity: ComplexityRating
    elapsed_time: timedelta
    final_confidence: float
    detected_brand: Optional[str] = None
    ingredient_count: int


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    estimate: NutritionEstimate
    metadata: AnalysisMetadata
    is_fallback: bool = False  # Final estimate is the parser's default record
