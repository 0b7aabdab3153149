"""
Turns a free-text description of earlier meals into meal records.

The primary path asks the model for a JSON array of meals. When inference
fails or the answer is not a usable array, a keyword matcher splits the
description and estimates each meal from a fixed table. Inferred meals
can optionally be re-estimated by the MealAnalysisAgent. parse_meals()
never raises.
"""

import logging
import re
from datetime import timedelta
from typing import NamedTuple, Optional

from nutrisync.config import settings
from nutrisync.models.analysis import AnalysisRequest
from nutrisync.models.meal_window import MealRecord, MealWindow
from nutrisync.services import result_parser
from nutrisync.services.ai_schemas import RetrospectiveMealSchema
from nutrisync.services.inference_client import (
    RETROSPECTIVE,
    ClaudeInferenceClient,
    InferenceError,
)
from nutrisync.services.meal_analysis_agent import (
    EmptyResultError,
    FatalInferenceError,
    MealAnalysisAgent,
)
from nutrisync.services.prompts import build_retrospective_prompt

logger = logging.getLogger(__name__)


class KeywordMeal(NamedTuple):
    name: str
    calories: int
    protein: int
    carbs: int
    fat: int


# (all of, any of, meal); first matching row wins
KEYWORD_MEALS: list[tuple[tuple[str, ...], tuple[str, ...], KeywordMeal]] = [
    ((), ("eggs", "omelette", "scrambled"), KeywordMeal("Eggs & Toast", 350, 20, 30, 15)),
    ((), ("cereal", "oatmeal", "granola"), KeywordMeal("Cereal Bowl", 300, 8, 55, 6)),
    ((), ("pancake", "waffle", "french toast"), KeywordMeal("Pancakes", 450, 10, 65, 15)),
    ((), ("sandwich", "sub", "wrap"), KeywordMeal("Sandwich", 450, 25, 45, 20)),
    (("salad", "chicken"), (), KeywordMeal("Chicken Salad", 350, 30, 20, 18)),
    ((), ("salad",), KeywordMeal("Garden Salad", 250, 15, 20, 15)),
    ((), ("burger",), KeywordMeal("Burger & Fries", 750, 35, 65, 40)),
    ((), ("pizza",), KeywordMeal("Pizza", 600, 25, 70, 25)),
    (("chicken",), ("rice", "pasta"), KeywordMeal("Chicken & Rice", 550, 35, 55, 20)),
    ((), ("steak", "beef"), KeywordMeal("Steak Dinner", 650, 45, 30, 35)),
    ((), ("salmon", "fish"), KeywordMeal("Fish Dinner", 450, 35, 30, 20)),
    ((), ("pasta", "spaghetti"), KeywordMeal("Pasta Dish", 500, 20, 65, 18)),
    ((), ("shake", "smoothie"), KeywordMeal("Protein Shake", 200, 25, 15, 5)),
    ((), ("yogurt",), KeywordMeal("Greek Yogurt", 150, 15, 20, 3)),
    ((), ("nuts", "almonds"), KeywordMeal("Mixed Nuts", 170, 6, 6, 15)),
    ((), ("fruit", "apple", "banana"), KeywordMeal("Fresh Fruit", 120, 1, 30, 0)),
    ((), ("snack",), KeywordMeal("Snack", 150, 5, 20, 7)),
    ((), ("restaurant", "ate out"), KeywordMeal("Restaurant Meal", 700, 35, 60, 35)),
]

DEFAULT_MEAL = KeywordMeal("Meal", 400, 20, 40, 20)

_STRONG_SEPARATORS = re.compile(r"\bthen\b|[.,;\n]", re.IGNORECASE)
_WEAK_SEPARATORS = re.compile(r"\b(?:and|with)\b", re.IGNORECASE)


def classify(segment: str) -> Optional[KeywordMeal]:
    text = segment.lower()
    for all_of, any_of, meal in KEYWORD_MEALS:
        if all(k in text for k in all_of) and (not any_of or any(k in text for k in any_of)):
            return meal
    return None


def split_description(description: str) -> list[str]:
    """
    Split a description into one segment per meal.

    "and"/"with" only split a piece when every part is a recognisable meal
    on its own, so "eggs and toast" stays together while "pizza and a
    smoothie" becomes two meals.
    """
    segments = []
    for piece in _STRONG_SEPARATORS.split(description):
        piece = piece.strip()
        if not piece:
            continue
        parts = [p.strip() for p in _WEAK_SEPARATORS.split(piece) if p.strip()]
        if len(parts) > 1 and all(classify(p) is not None for p in parts):
            segments.extend(parts)
        else:
            segments.append(piece)
    return segments


class RetrospectiveMealParser:
    def __init__(
        self,
        client: Optional[ClaudeInferenceClient] = None,
        window_offset: Optional[timedelta] = None,
        agent: Optional[MealAnalysisAgent] = None,
    ):
        self.client = client or ClaudeInferenceClient()
        # When set, each inferred meal is re-estimated by the analysis pipeline
        self.agent = agent
        self.window_offset = (
            window_offset
            if window_offset is not None
            else timedelta(minutes=settings.retrospective_window_offset_minutes)
        )

    async def parse_meals(
        self, description: str, target_windows: list[MealWindow]
    ) -> list[MealRecord]:
        """
        Parse meals from a description and assign them to windows in order.

        Args:
            description: e.g. "eggs and toast, then a chicken salad"
            target_windows: Windows the meals belong to, earliest first

        Returns:
            At most len(target_windows) records; empty if there is nothing to parse
        """
        if not description or not description.strip() or not target_windows:
            return []

        logger.info(
            "Parsing retrospective meals for %d windows: %s",
            len(target_windows),
            description,
        )

        try:
            raw = await self.client.infer(
                build_retrospective_prompt(description, target_windows),
                tool_hint=RETROSPECTIVE,
            )
        except InferenceError as e:
            logger.warning("Retrospective inference failed, using keyword fallback: %s", e)
            return self.fallback_parse(description, target_windows)

        items = result_parser.parse_array(raw, RetrospectiveMealSchema)
        if not items:
            logger.warning("Retrospective response was not a usable array, using keyword fallback")
            return self.fallback_parse(description, target_windows)

        records = [
            MealRecord(
                name=item.name,
                calories=int(round(item.calories)),
                protein_g=item.protein,
                carbs_g=item.carbs,
                fat_g=item.fat,
                timestamp=window.start_time + self.window_offset,
                window_id=window.id,
                source="inference",
            )
            for item, window in zip(items, target_windows)
        ]
        if self.agent is not None:
            records = [await self._enrich(record) for record in records]

        logger.info("Parsed %d meals from description", len(records))
        return records

    async def _enrich(self, record: MealRecord) -> MealRecord:
        """Re-estimate one meal with the analysis agent, keeping the record on failure."""
        try:
            result = await self.agent.analyze(AnalysisRequest(transcript=record.name))
        except (EmptyResultError, FatalInferenceError) as e:
            logger.warning("Could not enrich '%s', keeping parsed values: %s", record.name, e)
            return record

        if result.is_fallback:
            return record

        nutrition = result.estimate.nutrition
        return record.model_copy(
            update={
                "calories": nutrition.calories,
                "protein_g": nutrition.protein_g,
                "carbs_g": nutrition.carbs_g,
                "fat_g": nutrition.fat_g,
            }
        )

    def fallback_parse(
        self, description: str, target_windows: list[MealWindow]
    ) -> list[MealRecord]:
        records = []
        for segment, window in zip(split_description(description), target_windows):
            meal = classify(segment) or DEFAULT_MEAL
            records.append(
                MealRecord(
                    name=meal.name,
                    calories=meal.calories,
                    protein_g=meal.protein,
                    carbs_g=meal.carbs,
                    fat_g=meal.fat,
                    timestamp=window.start_time + self.window_offset,
                    window_id=window.id,
                    source="keyword",
                )
            )
        return records
