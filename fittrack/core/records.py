# fittrack/core/records.py
"""
Per-user, per-day records shared by every record store implementation.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from fittrack.core.error_handler_global import ValidationError

MEAL_SLOTS = ("breakfast", "lunch", "dinner", "snacks")


@dataclass(frozen=True)
class MealItem:
    description: str
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    serving_size_g: float = 0.0

    @classmethod
    def placeholder(cls, description: str) -> "MealItem":
        """A zero-value item used when nutrition data is unavailable."""
        return cls(description=description)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MealItem":
        return cls(
            description=str(data.get("description", "")),
            calories=float(data.get("calories", 0) or 0),
            protein_g=float(data.get("protein_g", 0) or 0),
            carbs_g=float(data.get("carbs_g", 0) or 0),
            fat_g=float(data.get("fat_g", 0) or 0),
            serving_size_g=float(data.get("serving_size_g", 0) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DailyRecord:
    user_id: str
    date: date
    meals: Dict[str, List[MealItem]] = field(default_factory=dict)
    liters_drank: float = 0.0

    @property
    def total_calories(self) -> float:
        return sum(item.calories for items in self.meals.values() for item in items)

    def items_for(self, meal_slot: str) -> List[MealItem]:
        return list(self.meals.get(meal_slot, []))


class RecordStore(Protocol):
    """The storage operations the chatbot actions and dashboard depend on."""

    async def upsert_meal_item(self, user_id: str, day: date, meal_slot: str,
                               item: MealItem) -> DailyRecord: ...

    async def upsert_water_total(self, user_id: str, day: date, liters: float) -> DailyRecord: ...

    async def get_daily_record(self, user_id: str, day: date) -> DailyRecord: ...


def check_meal_slot(meal_slot: str) -> str:
    if meal_slot not in MEAL_SLOTS:
        raise ValidationError(f"Unknown meal slot '{meal_slot}'. Expected one of: {', '.join(MEAL_SLOTS)}")
    return meal_slot


def check_liters(liters: Optional[float]) -> float:
    if liters is None or not isinstance(liters, (int, float)) or isinstance(liters, bool):
        raise ValidationError("Liters drank must be a number.")
    if math.isnan(liters) or math.isinf(liters) or liters < 0:
        raise ValidationError("Liters drank must be a non-negative number.")
    return float(liters)
