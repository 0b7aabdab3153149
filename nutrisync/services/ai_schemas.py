"""
Pydantic models for validating structured JSON responses from Claude AI.

Each schema corresponds to one analysis tool's expected response format.
Used by result_parser.py for strict decoding before normalization into the
domain types in nutrisync.models.
"""

from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class _WireModel(BaseModel):
    # amount: 2 and amount: "2" both decode to "2"; NaN and Infinity are rejected
    model_config = ConfigDict(
        populate_by_name=True, coerce_numbers_to_str=True, allow_inf_nan=False
    )


# --- Meal Analysis (initial, deep analysis, nutrition lookup) ---


class IngredientSchema(_WireModel):
    name: str
    amount: str = "1"
    unit: str = "serving"
    food_group: str = Field(
        "Mixed", validation_alias=AliasChoices("foodGroup", "food_group")
    )


class NutritionSchema(_WireModel):
    calories: float
    protein: float = Field(validation_alias=AliasChoices("protein", "protein_g"))
    carbs: float = Field(validation_alias=AliasChoices("carbs", "carbs_g"))
    fat: float = Field(validation_alias=AliasChoices("fat", "fat_g"))


class MicronutrientSchema(_WireModel):
    name: str
    amount: float
    unit: str = "mg"
    percent_rda: float = Field(
        0.0, validation_alias=AliasChoices("percentRDA", "percent_rda")
    )


class ClarificationOptionSchema(_WireModel):
    text: str
    calorie_impact: int = Field(
        0, validation_alias=AliasChoices("calorieImpact", "calorie_impact")
    )
    protein_impact: Optional[float] = Field(
        None, validation_alias=AliasChoices("proteinImpact", "protein_impact")
    )
    carb_impact: Optional[float] = Field(
        None, validation_alias=AliasChoices("carbImpact", "carb_impact")
    )
    fat_impact: Optional[float] = Field(
        None, validation_alias=AliasChoices("fatImpact", "fat_impact")
    )
    is_recommended: Optional[bool] = Field(
        None, validation_alias=AliasChoices("isRecommended", "is_recommended")
    )
    note: Optional[str] = None


class ClarificationSchema(_WireModel):
    question: str
    clarification_type: str = Field(
        "portion",
        validation_alias=AliasChoices("clarificationType", "clarification_type"),
    )
    options: list[ClarificationOptionSchema] = []

    @field_validator("options", mode="before")
    @classmethod
    def wrap_plain_options(cls, value):
        """Accept ["Small", "Large"] as shorthand for option objects."""
        if isinstance(value, list):
            return [{"text": v} if isinstance(v, str) else v for v in value]
        return value


class MealAnalysisSchema(_WireModel):
    meal_name: str = Field(validation_alias=AliasChoices("mealName", "meal_name"))
    confidence: float
    ingredients: list[IngredientSchema] = []
    nutrition: NutritionSchema = Field(
        validation_alias=AliasChoices("nutrition", "nutritionCalculation")
    )
    micronutrients: list[MicronutrientSchema] = []
    clarifications: list[ClarificationSchema] = Field(
        [], validation_alias=AliasChoices("clarifications", "clarificationNeeds")
    )
    brand_detected: Optional[str] = Field(
        None, validation_alias=AliasChoices("brandDetected", "brand_detected")
    )


# --- Brand Search ---


class BrandSearchSchema(_WireModel):
    found: bool
    meal_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("mealName", "meal_name")
    )
    confidence: Optional[float] = None
    nutrition: Optional[NutritionSchema] = None
    brand_detected: Optional[str] = Field(
        None, validation_alias=AliasChoices("brandDetected", "brand_detected")
    )

    @model_validator(mode="after")
    def require_match_details(self):
        if self.found and (
            self.meal_name is None or self.confidence is None or self.nutrition is None
        ):
            raise ValueError("found=true requires mealName, confidence and nutrition")
        return self


# --- Retrospective meal parsing ---


class RetrospectiveMealSchema(_WireModel):
    name: str
    meal_type: str = Field("", validation_alias=AliasChoices("mealType", "meal_type"))
    calories: float
    protein: float
    carbs: float
    fat: float
