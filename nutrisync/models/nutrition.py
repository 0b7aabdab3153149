"""Nutrition estimate value types produced by each analysis stage."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Ingredient(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    amount: str = "1"
    unit: str = "serving"
    food_group: str = "Mixed"


class Nutrition(BaseModel):
    model_config = ConfigDict(frozen=True)

    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float


class Micronutrient(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    amount: float
    unit: str = "mg"
    percent_rda: float = 0.0


class ClarificationOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    calorie_impact: int = 0
    protein_impact: Optional[float] = None
    carb_impact: Optional[float] = None
    fat_impact: Optional[float] = None
    is_recommended: Optional[bool] = None
    note: Optional[str] = None


class Clarification(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    clarification_type: str = "portion"
    options: list[ClarificationOption] = []


class NutritionEstimate(BaseModel):
    """
    Structured nutrition estimate for one meal.

    Instances are never mutated; every merge step produces a new estimate
    via model_copy(update=...).
    """

    model_config = ConfigDict(frozen=True)

    meal_name: str
    confidence: float = Field(ge=0, le=1)
    ingredients: list[Ingredient] = []
    nutrition: Nutrition
    micronutrients: list[Micronutrient] = []
    open_clarifications: list[Clarification] = []
    brand_detected: Optional[str] = None

    @property
    def ingredient_count(self) -> int:
        return len(self.ingredients)
