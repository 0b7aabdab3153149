"""Meal windows and the meal records assigned to them."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MealWindow(BaseModel):
    """Externally defined time range with calorie and macro targets."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    start_time: datetime
    end_time: datetime
    target_calories: int = 0
    target_protein: int = 0
    target_carbs: int = 0
    target_fat: int = 0
    purpose: str = "Sustained Energy"

    @property
    def meal_type(self) -> str:
        """Meal type implied by the window's start hour."""
        hour = self.start_time.hour
        if 5 <= hour <= 10:
            return "Breakfast"
        if 11 <= hour <= 14:
            return "Lunch"
        if 15 <= hour <= 17:
            return "Snack"
        if 18 <= hour <= 21:
            return "Dinner"
        return "Late Snack"


class MealRecord(BaseModel):
    """A logged meal produced by retrospective parsing."""

    model_config = ConfigDict(frozen=True)

    name: str
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float
    timestamp: datetime
    window_id: str
    source: Literal["inference", "keyword"]
