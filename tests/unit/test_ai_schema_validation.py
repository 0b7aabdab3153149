"""
Unit tests for AI schema validation and result parsing.

Tests the Pydantic wire schemas and the result_parser helpers directly,
using raw model output strings.
"""

import json

import pytest
from pydantic import ValidationError

from nutrisync.services.ai_schemas import (
    BrandSearchSchema,
    ClarificationSchema,
    IngredientSchema,
    MealAnalysisSchema,
    RetrospectiveMealSchema,
)
from nutrisync.services.result_parser import (
    FALLBACK_MEAL_NAME,
    _fix_trailing_commas,
    _strip_markdown_json,
    decode,
    decode_brand_result,
    extract_json,
    parse,
    parse_array,
)
from tests.factories import brand_json, meal_json


# =============================================================================
# Schema Validation Tests
# =============================================================================


class TestMealAnalysisSchema:
    def test_valid_meal(self):
        result = MealAnalysisSchema.model_validate(json.loads(meal_json()))
        assert result.meal_name == "Grilled Chicken Salad"
        assert len(result.ingredients) == 3
        assert result.ingredients[0].food_group == "Protein"
        assert result.nutrition.calories == 450

    def test_accepts_alternate_field_names(self):
        data = {
            "meal_name": "Toast",
            "confidence": 0.8,
            "nutritionCalculation": {"calories": 120, "protein_g": 4, "carbs_g": 22, "fat_g": 1},
            "clarificationNeeds": [{"question": "Butter?", "options": ["Yes", "No"]}],
        }
        result = MealAnalysisSchema.model_validate(data)
        assert result.nutrition.protein == 4
        assert result.clarifications[0].options[1].text == "No"

    def test_missing_meal_name(self):
        data = json.loads(meal_json())
        del data["mealName"]
        with pytest.raises(ValidationError):
            MealAnalysisSchema.model_validate(data)

    def test_missing_nutrition(self):
        data = json.loads(meal_json())
        del data["nutrition"]
        with pytest.raises(ValidationError):
            MealAnalysisSchema.model_validate(data)

    def test_numeric_amount_coerced_to_string(self):
        ingredient = IngredientSchema.model_validate({"name": "egg", "amount": 2})
        assert ingredient.amount == "2"
        assert ingredient.unit == "serving"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_numbers_rejected(self, value):
        with pytest.raises(ValidationError):
            MealAnalysisSchema.model_validate(json.loads(meal_json(calories=value)))


class TestClarificationSchema:
    def test_option_impacts_optional(self):
        result = ClarificationSchema.model_validate(
            {
                "question": "How big was the portion?",
                "clarificationType": "portion",
                "options": [
                    {"text": "Small", "calorieImpact": -100, "isRecommended": False},
                    {"text": "Large", "calorieImpact": 150, "proteinImpact": 8},
                ],
            }
        )
        assert result.options[0].calorie_impact == -100
        assert result.options[0].protein_impact is None
        assert result.options[1].protein_impact == 8


class TestBrandSearchSchema:
    def test_not_found(self):
        result = BrandSearchSchema.model_validate({"found": False})
        assert result.found is False
        assert result.nutrition is None

    def test_found_requires_details(self):
        with pytest.raises(ValidationError):
            BrandSearchSchema.model_validate({"found": True, "mealName": "Whopper"})

    def test_found_is_required(self):
        with pytest.raises(ValidationError):
            BrandSearchSchema.model_validate({"mealName": "Whopper", "confidence": 0.9})


class TestRetrospectiveMealSchema:
    def test_valid(self):
        result = RetrospectiveMealSchema.model_validate(
            {"name": "Oatmeal", "mealType": "Breakfast", "calories": 300,
             "protein": 10, "carbs": 54, "fat": 6}
        )
        assert result.meal_type == "Breakfast"


# =============================================================================
# JSON Helper Tests
# =============================================================================


class TestJsonHelpers:
    def test_strip_markdown_json(self):
        assert _strip_markdown_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_plain_fence(self):
        assert _strip_markdown_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_fix_trailing_commas(self):
        assert _fix_trailing_commas('{"a": [1, 2,], "b": 3,}') == '{"a": [1, 2], "b": 3}'

    def test_extract_json_ignores_surrounding_prose(self):
        raw = 'Here is the analysis:\n{"mealName": "Toast"}\nLet me know!'
        assert extract_json(raw) == '{"mealName": "Toast"}'

    def test_extract_json_no_object(self):
        with pytest.raises(ValueError):
            extract_json("I could not see any food in this image.")


# =============================================================================
# Result Parser Tests
# =============================================================================


class TestParse:
    def test_parse_ok(self):
        result = parse(meal_json(brand="Sweetgreen"))
        assert result.kind == "ok"
        assert result.is_fallback is False
        assert result.estimate.meal_name == "Grilled Chicken Salad"
        assert result.estimate.brand_detected == "Sweetgreen"
        assert result.estimate.ingredients[1].name == "mixed greens"

    def test_parse_markdown_wrapped(self):
        result = parse(f"```json\n{meal_json()}\n```")
        assert result.kind == "ok"

    def test_calories_rounded_to_integer(self):
        result = parse(meal_json(calories=450.6))
        assert result.estimate.nutrition.calories == 451

    def test_confidence_clamped(self):
        assert parse(meal_json(confidence=1.4)).estimate.confidence == 1.0
        assert parse(meal_json(confidence=-0.2)).estimate.confidence == 0.0

    def test_placeholder_ingredient_when_none_listed(self):
        result = parse(meal_json(meal_name="Mystery Stew", ingredients=[]))
        assert [i.name for i in result.estimate.ingredients] == ["Mystery Stew"]

    def test_no_placeholder_when_clarifications_present(self):
        result = parse(
            meal_json(
                ingredients=[],
                clarifications=[{"question": "What was in it?", "options": ["Beef"]}],
            )
        )
        assert result.estimate.ingredients == []
        assert len(result.estimate.open_clarifications) == 1

    def test_empty_brand_normalized_to_none(self):
        assert parse(meal_json(brand="")).estimate.brand_detected is None

    def test_malformed_output_falls_back(self):
        result = parse("Sorry, I can't analyze this image.")
        assert result.kind == "fallback"
        assert result.error
        estimate = result.estimate
        assert estimate.meal_name == FALLBACK_MEAL_NAME
        assert estimate.confidence == 0.5
        assert len(estimate.ingredients) == 1
        assert estimate.ingredients[0].name == "Food Item"
        assert estimate.nutrition.calories == 400

    def test_invalid_schema_falls_back(self):
        result = parse('{"mealName": "Toast"}')
        assert result.is_fallback

    def test_never_raises_on_empty_input(self):
        assert parse("").is_fallback

    def test_non_finite_output_falls_back(self):
        assert parse(meal_json(calories=float("inf"))).is_fallback
        assert parse(meal_json(confidence=float("nan"))).is_fallback


class TestStrictDecoders:
    def test_decode_returns_none_on_failure(self):
        assert decode("not json") is None

    def test_decode_returns_estimate(self):
        assert decode(meal_json()).meal_name == "Grilled Chicken Salad"

    def test_decode_brand_result(self):
        result = decode_brand_result('{"found": false}')
        assert result is not None and result.found is False

    def test_decode_brand_result_invalid(self):
        assert decode_brand_result('{"found": true}') is None

    def test_decode_brand_result_non_finite(self):
        assert decode_brand_result(brand_json(calories=float("nan"))) is None


class TestParseArray:
    def test_parse_array(self):
        raw = """```json
        [
          {"name": "Oatmeal", "mealType": "Breakfast", "calories": 300, "protein": 10, "carbs": 54, "fat": 6},
          {"name": "Turkey Wrap", "mealType": "Lunch", "calories": 520, "protein": 32, "carbs": 48, "fat": 20},
        ]
        ```"""
        items = parse_array(raw, RetrospectiveMealSchema)
        assert [i.name for i in items] == ["Oatmeal", "Turkey Wrap"]

    def test_parse_array_object_is_not_array(self):
        assert parse_array('{"name": "Oatmeal"}', RetrospectiveMealSchema) is None

    def test_parse_array_invalid_item(self):
        assert parse_array('[{"name": "Oatmeal"}]', RetrospectiveMealSchema) is None

    def test_parse_array_empty(self):
        assert parse_array("[]", RetrospectiveMealSchema) == []
