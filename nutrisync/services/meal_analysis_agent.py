"""
Adaptive meal analysis orchestrator.

Runs one inexpensive initial inference, then escalates through brand
search, deep ingredient analysis and nutrition lookup only while the
EscalationPolicy says the estimate is not good enough. Each stage's output
is merged into the running best estimate.

State machine:
    idle -> initial_analysis -> escalating(tool)... -> complete
    initial_analysis -> failed   (unrecoverable inference error)
"""

import logging
import time
import uuid
from datetime import timedelta
from typing import Callable, Optional

from nutrisync.config import settings
from nutrisync.models.analysis import (
    AnalysisMetadata,
    AnalysisRequest,
    AnalysisResult,
    AnalysisTool,
    ComplexityRating,
)
from nutrisync.models.nutrition import Nutrition, NutritionEstimate
from nutrisync.models.pipeline_state import PipelineStage
from nutrisync.services import result_parser
from nutrisync.services.brand_cache import BrandCache
from nutrisync.services.escalation_policy import BrandMatch, EscalationPolicy
from nutrisync.services.inference_client import (
    ClaudeInferenceClient,
    InferenceError,
    QuotaExceededError,
)
from nutrisync.services.micronutrient_service import calculate_micronutrients
from nutrisync.services.pipeline_state import PipelineStateChannel
from nutrisync.services.prompts import (
    build_brand_search_prompt,
    build_deep_analysis_prompt,
    build_initial_prompt,
    build_nutrition_lookup_prompt,
)
from nutrisync.services.sse_publisher import SSEPublisher

logger = logging.getLogger(__name__)

MIN_MICRONUTRIENTS = 3


class MealAnalysisAgent:
    """Drives one analysis request at a time per state channel."""

    def __init__(
        self,
        client: Optional[ClaudeInferenceClient] = None,
        policy: Optional[EscalationPolicy] = None,
        brand_cache: Optional[BrandCache] = None,
        channel: Optional[PipelineStateChannel] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client or ClaudeInferenceClient()
        self.policy = policy or EscalationPolicy()
        self.brand_cache = brand_cache if brand_cache is not None else BrandCache()
        if channel is None:
            publisher = SSEPublisher() if settings.state_publish_enabled else None
            channel = PipelineStateChannel(publisher=publisher)
        self.channel = channel
        self._clock = clock

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyze one captured meal.

        Returns:
            AnalysisResult with the final estimate and metadata

        Raises:
            EmptyResultError: Neither image nor transcript was provided
            FatalInferenceError: The initial inference failed
        """
        request_id = str(uuid.uuid4())
        started = self._clock()
        final_stage = PipelineStage.IDLE
        self.channel.start(request_id)

        try:
            if not request.has_input:
                final_stage = PipelineStage.FAILED
                raise EmptyResultError("Nothing to analyze: no image and no transcript")

            try:
                result = await self._run(request, request_id, started)
            except FatalInferenceError:
                final_stage = PipelineStage.FAILED
                raise

            final_stage = PipelineStage.COMPLETE
            return result
        finally:
            self.channel.finish(final_stage, request_id)

    async def _run(
        self, request: AnalysisRequest, request_id: str, started: float
    ) -> AnalysisResult:
        tools_used: list[AnalysisTool] = []

        self.channel.enter(PipelineStage.INITIAL_ANALYSIS, AnalysisTool.INITIAL, request_id)
        try:
            raw = await self.client.infer(
                build_initial_prompt(request),
                image_bytes=request.image,
                tool_hint=AnalysisTool.INITIAL,
            )
        except InferenceError as e:
            logger.error("Initial analysis failed: %s", e)
            raise FatalInferenceError(f"Initial analysis failed: {e}") from e

        parsed = result_parser.parse(raw)
        estimate = parsed.estimate
        is_fallback = parsed.is_fallback
        logger.info(
            "Initial analysis: %s (confidence %.2f, %s)",
            estimate.meal_name,
            estimate.confidence,
            parsed.kind,
        )

        while self.policy.should_escalate(estimate, request):
            tool = self.policy.next_tool(estimate, request, tools_used)
            if tool is None:
                break

            if tool == AnalysisTool.BRAND_SEARCH:
                match = self.policy.detect_brand(estimate, request)
                cache_key = BrandCache.make_key(match.brand, estimate.meal_name)
                cached = await self.brand_cache.get(cache_key)
                if cached is not None:
                    logger.info("Using cached brand result for %s", cache_key)
                    return self._build_result(
                        cached.estimate, list(cached.tools_used), request, started, False
                    )

            self.channel.enter(PipelineStage.ESCALATING, tool, request_id)
            tools_used.append(tool)

            try:
                if tool == AnalysisTool.BRAND_SEARCH:
                    estimate, replaced = await self._brand_search(
                        estimate, request, match, cache_key
                    )
                else:
                    estimate, replaced = await self._refine(tool, estimate, request)
            except DegradedStageError as e:
                logger.warning("Stage %s degraded, keeping best estimate: %s", e.tool.value, e)
                continue
            except Exception:
                logger.exception("Merging %s output failed, keeping best estimate", tool.value)
                continue

            if replaced:
                is_fallback = False

        return self._build_result(estimate, tools_used, request, started, is_fallback)

    # =========================================================================
    # STAGES
    # =========================================================================

    async def _call_stage(
        self, tool: AnalysisTool, prompt: str, image: Optional[bytes]
    ) -> str:
        try:
            return await self.client.infer(prompt, image_bytes=image, tool_hint=tool)
        except InferenceError as e:
            raise DegradedStageError(tool, str(e)) from e

    async def _brand_search(
        self,
        estimate: NutritionEstimate,
        request: AnalysisRequest,
        match: BrandMatch,
        cache_key: str,
    ) -> tuple[NutritionEstimate, bool]:
        """Replace name, totals and confidence on a match; keep ingredients."""
        raw = await self._call_stage(
            AnalysisTool.BRAND_SEARCH,
            build_brand_search_prompt(match.brand, estimate, is_generic=match.is_generic),
            request.image,
        )

        result = result_parser.decode_brand_result(raw)
        if result is None or not result.found:
            logger.info("Brand search found no match for %s", cache_key)
            return estimate, False

        brand = result.brand_detected or (None if match.is_generic else match.brand)
        meal_name = result.meal_name
        brand_names = [brand] if match.is_generic else [brand, match.keyword]
        if _drops_brand(estimate.meal_name, meal_name, brand_names):
            logger.warning("Brand missing from '%s', keeping '%s'", meal_name, estimate.meal_name)
            meal_name = estimate.meal_name

        merged = estimate.model_copy(
            update={
                "meal_name": meal_name,
                "confidence": min(1.0, max(0.0, result.confidence)),
                "nutrition": Nutrition(
                    calories=int(round(result.nutrition.calories)),
                    protein_g=result.nutrition.protein,
                    carbs_g=result.nutrition.carbs,
                    fat_g=result.nutrition.fat,
                ),
                "brand_detected": brand or estimate.brand_detected,
            }
        )
        await self.brand_cache.put(cache_key, merged, [AnalysisTool.BRAND_SEARCH])
        logger.info(
            "Brand search matched: %s (%d kcal, confidence %.2f)",
            merged.meal_name,
            merged.nutrition.calories,
            merged.confidence,
        )
        return merged, True

    async def _refine(
        self, tool: AnalysisTool, estimate: NutritionEstimate, request: AnalysisRequest
    ) -> tuple[NutritionEstimate, bool]:
        """Deep analysis / nutrition lookup: replace on decode, else bump confidence."""
        if tool == AnalysisTool.DEEP_ANALYSIS:
            raw = await self._call_stage(
                tool, build_deep_analysis_prompt(estimate), request.image
            )
        else:
            raw = await self._call_stage(tool, build_nutrition_lookup_prompt(estimate), None)

        decoded = result_parser.decode(raw)
        if decoded is not None:
            if decoded.brand_detected is None and estimate.brand_detected:
                decoded = decoded.model_copy(
                    update={"brand_detected": estimate.brand_detected}
                )
            merged, replaced = decoded, True
        else:
            bumped = min(
                settings.confidence_bump_cap, estimate.confidence + settings.confidence_bump
            )
            logger.warning(
                "%s output undecodable, confidence %.2f -> %.2f",
                tool.value,
                estimate.confidence,
                bumped,
            )
            merged, replaced = estimate.model_copy(update={"confidence": bumped}), False

        if len(merged.micronutrients) < MIN_MICRONUTRIENTS:
            calculated = calculate_micronutrients(merged.ingredients)
            if calculated:
                merged = merged.model_copy(update={"micronutrients": calculated})

        logger.info(
            "%s complete: %s (confidence %.2f)",
            tool.value,
            merged.meal_name,
            merged.confidence,
        )
        return merged, replaced

    # =========================================================================
    # METADATA
    # =========================================================================

    def _build_result(
        self,
        estimate: NutritionEstimate,
        tools_used: list[AnalysisTool],
        request: AnalysisRequest,
        started: float,
        is_fallback: bool,
    ) -> AnalysisResult:
        detected_brand = estimate.brand_detected
        if detected_brand is None:
            match = self.policy.detect_brand(estimate, request)
            if match is not None and not match.is_generic:
                detected_brand = match.brand

        if detected_brand is not None:
            complexity = ComplexityRating.RESTAURANT
        elif estimate.ingredient_count > 8 or AnalysisTool.DEEP_ANALYSIS in tools_used:
            complexity = ComplexityRating.COMPLEX
        elif estimate.ingredient_count > 3:
            complexity = ComplexityRating.MODERATE
        else:
            complexity = ComplexityRating.SIMPLE

        metadata = AnalysisMetadata(
            tools_used=tools_used,
            complexity=complexity,
            elapsed_time=timedelta(seconds=self._clock() - started),
            final_confidence=estimate.confidence,
            detected_brand=detected_brand,
            ingredient_count=estimate.ingredient_count,
        )
        logger.info(
            "Analysis complete: %s, tools=%s, complexity=%s",
            estimate.meal_name,
            [t.value for t in tools_used],
            complexity.value,
        )
        return AnalysisResult(estimate=estimate, metadata=metadata, is_fallback=is_fallback)


def _drops_brand(previous_name: str, new_name: str, brands: list[Optional[str]]) -> bool:
    previous, new = previous_name.lower(), new_name.lower()
    return any(b and b.lower() in previous and b.lower() not in new for b in brands)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class FatalInferenceError(Exception):
    """The initial analysis stage failed; no estimate is available."""

    @property
    def is_quota(self) -> bool:
        return isinstance(self.__cause__, QuotaExceededError)


class DegradedStageError(Exception):
    """An escalation stage failed; the pipeline continues without it."""

    def __init__(self, tool: AnalysisTool, message: str):
        super().__init__(f"{tool.value}: {message}")
        self.tool = tool


class EmptyResultError(Exception):
    """The request had nothing to analyze."""

    pass
