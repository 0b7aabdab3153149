"""
Converts raw model output into validated nutrition estimates.

parse() never raises: output that cannot be decoded produces the
deterministic fallback estimate tagged as kind="fallback".
"""

import json
import logging
import re
from typing import Literal, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from nutrisync.config import settings
from nutrisync.models.nutrition import (
    Clarification,
    ClarificationOption,
    Ingredient,
    Micronutrient,
    Nutrition,
    NutritionEstimate,
)
from nutrisync.services.ai_schemas import BrandSearchSchema, MealAnalysisSchema

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

FALLBACK_MEAL_NAME = "Analyzed Meal"


class ParseResult(BaseModel):
    kind: Literal["ok", "fallback"]
    estimate: NutritionEstimate
    error: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.kind == "fallback"


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def extract_json(raw_text: str, opening: str = "{", closing: str = "}") -> str:
    """
    Locate the outermost JSON object (or array) in model output.

    Raises:
        ValueError: If no bracketed span is present
    """
    text = _strip_markdown_json(raw_text or "")
    start = text.find(opening)
    end = text.rfind(closing)
    if start == -1 or end < start:
        raise ValueError(f"No JSON {opening}...{closing} found in response")
    return _fix_trailing_commas(text[start : end + 1])


def fallback_estimate() -> NutritionEstimate:
    """Deterministic estimate used when the model output is unusable."""
    return NutritionEstimate(
        meal_name=FALLBACK_MEAL_NAME,
        confidence=settings.fallback_confidence,
        ingredients=[
            Ingredient(name="Food Item", amount="1", unit="serving", food_group="Mixed")
        ],
        nutrition=Nutrition(calories=400, protein_g=20, carbs_g=40, fat_g=15),
    )


def to_estimate(schema: MealAnalysisSchema) -> NutritionEstimate:
    """Normalize a decoded wire schema into a NutritionEstimate."""
    confidence = min(1.0, max(0.0, schema.confidence))

    ingredients = [
        Ingredient(
            name=i.name, amount=i.amount, unit=i.unit, food_group=i.food_group
        )
        for i in schema.ingredients
    ]
    clarifications = [
        Clarification(
            question=c.question,
            clarification_type=c.clarification_type,
            options=[ClarificationOption(**o.model_dump()) for o in c.options],
        )
        for c in schema.clarifications
    ]
    if not ingredients and not clarifications:
        ingredients = [Ingredient(name=schema.meal_name)]

    return NutritionEstimate(
        meal_name=schema.meal_name,
        confidence=confidence,
        ingredients=ingredients,
        nutrition=Nutrition(
            calories=int(round(schema.nutrition.calories)),
            protein_g=schema.nutrition.protein,
            carbs_g=schema.nutrition.carbs,
            fat_g=schema.nutrition.fat,
        ),
        micronutrients=[
            Micronutrient(**m.model_dump()) for m in schema.micronutrients
        ],
        open_clarifications=clarifications,
        brand_detected=schema.brand_detected or None,
    )


def _decode_schema(raw_text: str, schema_class: type[SchemaT]) -> SchemaT:
    json_str = extract_json(raw_text)
    return schema_class.model_validate(json.loads(json_str))


def parse(raw_text: str) -> ParseResult:
    """Decode model output, falling back to the deterministic estimate."""
    try:
        estimate = to_estimate(_decode_schema(raw_text, MealAnalysisSchema))
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError subclass
        logger.warning("Model output could not be decoded, using fallback: %s", e)
        return ParseResult(kind="fallback", estimate=fallback_estimate(), error=str(e))
    return ParseResult(kind="ok", estimate=estimate)


def decode(raw_text: str) -> Optional[NutritionEstimate]:
    """Strict decode for stage merges. Returns None instead of a fallback."""
    try:
        return to_estimate(_decode_schema(raw_text, MealAnalysisSchema))
    except (ValueError, ValidationError) as e:
        logger.debug("Strict decode failed: %s", e)
        return None


def decode_brand_result(raw_text: str) -> Optional[BrandSearchSchema]:
    try:
        return _decode_schema(raw_text, BrandSearchSchema)
    except (ValueError, ValidationError) as e:
        logger.debug("Brand search result decode failed: %s", e)
        return None


def parse_array(raw_text: str, schema_class: type[SchemaT]) -> Optional[list[SchemaT]]:
    """
    Decode a JSON array of schema_class items.

    Returns:
        List of validated items, or None if the output is not a valid array
    """
    try:
        json_str = extract_json(raw_text, "[", "]")
        adapter = TypeAdapter(list[schema_class])
        return adapter.validate_python(json.loads(json_str))
    except (ValueError, ValidationError) as e:
        logger.debug("Array decode failed for %s: %s", schema_class.__name__, e)
        return None
