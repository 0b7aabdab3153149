"""
Escalation decisions for the meal analysis pipeline.

Everything here is pure: decisions depend only on the estimate, the request
and the EscalationConfig, never on I/O or time.
"""

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from nutrisync.config import settings
from nutrisync.models.analysis import (
    ESCALATION_ORDER,
    AnalysisRequest,
    AnalysisTool,
)
from nutrisync.models.nutrition import NutritionEstimate

logger = logging.getLogger(__name__)


BRAND_KEYWORDS = (
    "mcdonald", "mcdonalds", "burger king", "wendy", "subway", "chipotle",
    "starbucks", "dunkin", "panera", "chick-fil-a", "taco bell", "kfc",
    "pizza hut", "dominos", "papa johns", "five guys", "shake shack",
    "in-n-out", "whataburger", "arbys", "popeyes", "sonic", "dairy queen",
    "panda express", "qdoba", "jimmy johns", "jersey mikes", "firehouse",
    "sweetgreen", "cava", "tropical smoothie", "jamba juice", "smoothie king",
)

RESTAURANT_INDICATORS = ("combo", "value meal", "deluxe", "supreme", "grande", "venti")

COMPOSITE_DISH_KEYWORDS = ("mixed", "combo", "platter", "bowl")

GENERIC_RESTAURANT = "restaurant"


class EscalationConfig(BaseModel):
    """Thresholds and vocabularies driving escalation."""

    model_config = ConfigDict(frozen=True)

    confidence_threshold: float = 0.75
    deep_analysis_ceiling: float = 0.85
    nutrition_lookup_ceiling: float = 0.9
    high_calorie_threshold: int = 800
    high_calorie_confidence_ceiling: float = 0.85
    max_simple_ingredient_count: int = 5
    nutrition_lookup_max_ingredients: int = 3
    brand_keywords: tuple[str, ...] = BRAND_KEYWORDS
    restaurant_indicators: tuple[str, ...] = RESTAURANT_INDICATORS
    composite_keywords: tuple[str, ...] = COMPOSITE_DISH_KEYWORDS

    @classmethod
    def from_settings(cls, **overrides) -> "EscalationConfig":
        values = dict(
            confidence_threshold=settings.escalation_confidence_threshold,
            deep_analysis_ceiling=settings.deep_analysis_confidence_ceiling,
            nutrition_lookup_ceiling=settings.nutrition_lookup_confidence_ceiling,
            high_calorie_threshold=settings.high_calorie_threshold,
            high_calorie_confidence_ceiling=settings.high_calorie_confidence_ceiling,
            max_simple_ingredient_count=settings.max_simple_ingredient_count,
            nutrition_lookup_max_ingredients=settings.nutrition_lookup_max_ingredients,
        )
        values.update(overrides)
        return cls(**values)


class BrandMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    brand: str
    keyword: str
    is_generic: bool = False  # Matched a restaurant indicator, not a named brand


def display_brand(keyword: str) -> str:
    """'chick-fil-a' -> 'Chick Fil A'"""
    return " ".join(word.capitalize() for word in keyword.replace("-", " ").split())


class EscalationPolicy:
    def __init__(self, config: Optional[EscalationConfig] = None):
        self.config = config or EscalationConfig.from_settings()

    def _search_text(self, estimate: NutritionEstimate, request: AnalysisRequest) -> str:
        return f"{estimate.meal_name} {request.transcript or ''}".lower()

    def detect_brand(
        self, estimate: NutritionEstimate, request: AnalysisRequest
    ) -> Optional[BrandMatch]:
        """
        Match meal name and transcript against the brand vocabulary.

        A named brand wins over a restaurant indicator. When the model already
        reported a brand, that spelling is used for the match.
        """
        text = self._search_text(estimate, request)

        for keyword in self.config.brand_keywords:
            if keyword in text:
                brand = estimate.brand_detected or display_brand(keyword)
                return BrandMatch(brand=brand, keyword=keyword)

        for indicator in self.config.restaurant_indicators:
            if indicator in text:
                return BrandMatch(
                    brand=estimate.brand_detected or GENERIC_RESTAURANT,
                    keyword=indicator,
                    is_generic=True,
                )

        return None

    def is_complex(self, estimate: NutritionEstimate) -> bool:
        if estimate.ingredient_count > self.config.max_simple_ingredient_count:
            return True
        name = estimate.meal_name.lower()
        return any(k in name for k in self.config.composite_keywords)

    def should_escalate(
        self, estimate: NutritionEstimate, request: AnalysisRequest
    ) -> bool:
        cfg = self.config

        if estimate.confidence < cfg.confidence_threshold:
            logger.info(
                "Escalating: confidence %.2f < %.2f",
                estimate.confidence,
                cfg.confidence_threshold,
            )
            return True

        match = self.detect_brand(estimate, request)
        if match is not None:
            logger.info("Escalating: brand/restaurant keyword '%s'", match.keyword)
            return True

        if self.is_complex(estimate):
            logger.info(
                "Escalating: complex meal (%d ingredients)", estimate.ingredient_count
            )
            return True

        if (
            estimate.nutrition.calories > cfg.high_calorie_threshold
            and estimate.confidence < cfg.high_calorie_confidence_ceiling
        ):
            logger.info(
                "Escalating: %d kcal at confidence %.2f",
                estimate.nutrition.calories,
                estimate.confidence,
            )
            return True

        return False

    def _is_eligible(
        self,
        tool: AnalysisTool,
        estimate: NutritionEstimate,
        request: AnalysisRequest,
    ) -> bool:
        cfg = self.config
        if tool == AnalysisTool.BRAND_SEARCH:
            return self.detect_brand(estimate, request) is not None
        if tool == AnalysisTool.DEEP_ANALYSIS:
            return estimate.confidence < cfg.deep_analysis_ceiling
        if tool == AnalysisTool.NUTRITION_LOOKUP:
            return (
                estimate.ingredient_count <= cfg.nutrition_lookup_max_ingredients
                and estimate.confidence < cfg.nutrition_lookup_ceiling
            )
        return False

    def next_tool(
        self,
        estimate: NutritionEstimate,
        request: AnalysisRequest,
        tools_already_used: Iterable[AnalysisTool],
    ) -> Optional[AnalysisTool]:
        """
        Next escalation stage, or None when the pipeline should complete.

        Stages run in ESCALATION_ORDER, each at most once, and never after a
        later stage has already run.
        """
        used = set(tools_already_used)
        last_index = max(
            (ESCALATION_ORDER.index(t) for t in used if t in ESCALATION_ORDER),
            default=-1,
        )

        for index, tool in enumerate(ESCALATION_ORDER):
            if index <= last_index or tool in used:
                continue
            if self._is_eligible(tool, estimate, request):
                return tool

        return None
