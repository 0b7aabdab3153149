"""
Micronutrient estimation from an ingredient list.

Values are per 100 g (USDA FoodData Central); each tuple is
(name, amount, unit, daily_value).
"""

import logging
import math
from typing import Optional

from nutrisync.models.nutrition import Ingredient, Micronutrient

logger = logging.getLogger(__name__)

MIN_PERCENT_RDA = 5.0
MAX_MICRONUTRIENTS = 8

_FOOD_TABLE: dict[str, list[tuple[str, float, str, float]]] = {
    "egg": [
        ("Vitamin D", 2.0, "mcg", 20.0),
        ("Vitamin B12", 0.89, "mcg", 2.4),
        ("Selenium", 30.7, "mcg", 55.0),
        ("Choline", 293.8, "mg", 550.0),
        ("Iron", 1.75, "mg", 18.0),
        ("Phosphorus", 198.0, "mg", 1250.0),
        ("Vitamin A", 160.0, "mcg", 900.0),
        ("Folate", 47.0, "mcg", 400.0),
    ],
    "broccoli": [
        ("Vitamin C", 89.2, "mg", 90.0),
        ("Vitamin K", 101.6, "mcg", 120.0),
        ("Folate", 63.0, "mcg", 400.0),
        ("Potassium", 316.0, "mg", 3500.0),
        ("Fiber", 2.6, "g", 28.0),
        ("Calcium", 47.0, "mg", 1300.0),
    ],
    "tomato": [
        ("Vitamin C", 13.7, "mg", 90.0),
        ("Vitamin K", 7.9, "mcg", 120.0),
        ("Potassium", 237.0, "mg", 3500.0),
        ("Vitamin A", 42.0, "mcg", 900.0),
        ("Folate", 15.0, "mcg", 400.0),
    ],
    "chicken": [
        ("Niacin", 8.2, "mg", 16.0),
        ("Vitamin B6", 0.53, "mg", 1.7),
        ("Selenium", 27.6, "mcg", 55.0),
        ("Phosphorus", 228.0, "mg", 1250.0),
        ("Vitamin B12", 0.31, "mcg", 2.4),
        ("Zinc", 1.0, "mg", 11.0),
        ("Potassium", 334.0, "mg", 3500.0),
    ],
    "chicken breast": [
        ("Niacin", 13.7, "mg", 16.0),
        ("Vitamin B6", 0.93, "mg", 1.7),
        ("Selenium", 31.9, "mcg", 55.0),
        ("Phosphorus", 246.0, "mg", 1250.0),
        ("Zinc", 0.8, "mg", 11.0),
        ("Potassium", 391.0, "mg", 3500.0),
    ],
    "beef": [
        ("Vitamin B12", 2.64, "mcg", 2.4),
        ("Zinc", 6.31, "mg", 11.0),
        ("Selenium", 26.4, "mcg", 55.0),
        ("Iron", 2.6, "mg", 18.0),
        ("Niacin", 4.5, "mg", 16.0),
        ("Phosphorus", 201.0, "mg", 1250.0),
    ],
    "salmon": [
        ("Vitamin D", 10.9, "mcg", 20.0),
        ("Vitamin B12", 3.18, "mcg", 2.4),
        ("Omega-3", 2260.0, "mg", 1600.0),
        ("Selenium", 36.5, "mcg", 55.0),
        ("Niacin", 8.67, "mg", 16.0),
        ("Potassium", 490.0, "mg", 3500.0),
    ],
    "rice": [
        ("Manganese", 1.09, "mg", 2.3),
        ("Selenium", 15.1, "mcg", 55.0),
        ("Niacin", 1.62, "mg", 16.0),
        ("Magnesium", 25.0, "mg", 420.0),
        ("Phosphorus", 115.0, "mg", 1250.0),
        ("Iron", 0.8, "mg", 18.0),
    ],
    "brown rice": [
        ("Manganese", 1.9, "mg", 2.3),
        ("Selenium", 19.1, "mcg", 55.0),
        ("Magnesium", 43.0, "mg", 420.0),
        ("Phosphorus", 162.0, "mg", 1250.0),
        ("Fiber", 1.8, "g", 28.0),
    ],
    "spinach": [
        ("Vitamin K", 482.9, "mcg", 120.0),
        ("Vitamin A", 469.0, "mcg", 900.0),
        ("Folate", 194.0, "mcg", 400.0),
        ("Iron", 2.71, "mg", 18.0),
        ("Vitamin C", 28.1, "mg", 90.0),
        ("Magnesium", 79.0, "mg", 420.0),
    ],
    "milk": [
        ("Calcium", 113.0, "mg", 1300.0),
        ("Vitamin D", 1.0, "mcg", 20.0),
        ("Vitamin B12", 0.44, "mcg", 2.4),
        ("Riboflavin", 0.17, "mg", 1.3),
        ("Phosphorus", 91.0, "mg", 1250.0),
    ],
    "cheese": [
        ("Calcium", 721.0, "mg", 1300.0),
        ("Vitamin B12", 1.1, "mcg", 2.4),
        ("Phosphorus", 512.0, "mg", 1250.0),
        ("Vitamin A", 330.0, "mcg", 900.0),
        ("Zinc", 3.6, "mg", 11.0),
        ("Sodium", 653.0, "mg", 2300.0),
    ],
    "bread": [
        ("Selenium", 23.6, "mcg", 55.0),
        ("Thiamin", 0.48, "mg", 1.2),
        ("Iron", 3.6, "mg", 18.0),
        ("Niacin", 4.7, "mg", 16.0),
        ("Folate", 85.0, "mcg", 400.0),
        ("Sodium", 478.0, "mg", 2300.0),
    ],
    "whole wheat bread": [
        ("Fiber", 6.8, "g", 28.0),
        ("Selenium", 30.0, "mcg", 55.0),
        ("Manganese", 2.0, "mg", 2.3),
        ("Magnesium", 82.0, "mg", 420.0),
        ("Zinc", 1.8, "mg", 11.0),
    ],
    "parsley": [
        ("Vitamin K", 1640.0, "mcg", 120.0),
        ("Vitamin C", 133.0, "mg", 90.0),
        ("Vitamin A", 421.0, "mcg", 900.0),
        ("Iron", 6.2, "mg", 18.0),
    ],
}

# Grams per unit where the unit name alone determines the weight
_UNIT_GRAMS = {
    "g": 1.0,
    "grams": 1.0,
    "oz": 28.35,
    "ounce": 28.35,
    "ounces": 28.35,
    "ml": 1.0,
    "milliliters": 1.0,
    "tbsp": 15.0,
    "tablespoon": 15.0,
    "tablespoons": 15.0,
    "tsp": 5.0,
    "teaspoon": 5.0,
    "teaspoons": 5.0,
    "egg": 50.0,
    "eggs": 50.0,
}

# (food substring, grams) checked in order; last entry per unit is the default
_CUP_GRAMS = [("rice", 158.0), ("broccoli", 91.0), ("tomato", 180.0), ("spinach", 30.0), ("milk", 240.0), ("", 150.0)]
_SLICE_GRAMS = [("bread", 28.0), ("cheese", 20.0), ("tomato", 20.0), ("", 30.0)]
_PIECE_GRAMS = [("chicken", 100.0), ("", 50.0)]
_SERVING_GRAMS = [("egg", 100.0), ("chicken", 113.0), ("beef", 113.0), ("salmon", 113.0), ("rice", 158.0), ("", 100.0)]

_SIZED_UNITS = {
    "cup": _CUP_GRAMS,
    "cups": _CUP_GRAMS,
    "slice": _SLICE_GRAMS,
    "slices": _SLICE_GRAMS,
    "piece": _PIECE_GRAMS,
    "pieces": _PIECE_GRAMS,
    "serving": _SERVING_GRAMS,
    "servings": _SERVING_GRAMS,
}


def find_food(name: str) -> Optional[list[tuple[str, float, str, float]]]:
    """Best table match: exact name, then longest contained key, then any word."""
    lowered = name.lower().strip()
    if lowered in _FOOD_TABLE:
        return _FOOD_TABLE[lowered]

    for key in sorted(_FOOD_TABLE, key=len, reverse=True):
        if key in lowered:
            return _FOOD_TABLE[key]

    for word in lowered.split():
        if word in _FOOD_TABLE:
            return _FOOD_TABLE[word]

    return None


def to_grams(amount: str, unit: str, food_name: str) -> float:
    try:
        quantity = float(amount)
    except (TypeError, ValueError):
        return 100.0
    if not math.isfinite(quantity):
        return 100.0

    unit = unit.lower().strip()
    if unit in _UNIT_GRAMS:
        return quantity * _UNIT_GRAMS[unit]

    if unit in _SIZED_UNITS:
        food = food_name.lower()
        for needle, grams in _SIZED_UNITS[unit]:
            if needle in food:
                return quantity * grams

    return quantity * 100.0


def calculate_micronutrients(ingredients: list[Ingredient]) -> list[Micronutrient]:
    """
    Aggregate micronutrients over ingredients found in the reference table.

    Only nutrients at >= 5% RDA are kept; the result is sorted by %RDA,
    highest first, and capped at eight entries.
    """
    totals: dict[str, list] = {}

    for ingredient in ingredients:
        food = find_food(ingredient.name)
        if food is None:
            continue
        scale = to_grams(ingredient.amount, ingredient.unit, ingredient.name) / 100.0
        for name, amount, unit, daily_value in food:
            if name in totals:
                totals[name][0] += amount * scale
            else:
                totals[name] = [amount * scale, unit, daily_value]

    micronutrients = []
    for name, (amount, unit, daily_value) in totals.items():
        percent_rda = amount / daily_value * 100
        if math.isfinite(percent_rda) and percent_rda >= MIN_PERCENT_RDA:
            micronutrients.append(
                Micronutrient(
                    name=name,
                    amount=round(amount, 1),
                    unit=unit,
                    percent_rda=round(percent_rda),
                )
            )

    micronutrients.sort(key=lambda m: m.percent_rda, reverse=True)
    logger.debug(
        "Calculated %d micronutrients from %d ingredients",
        len(micronutrients),
        len(ingredients),
    )
    return micronutrients[:MAX_MICRONUTRIENTS]
