# fittrack/core/calorie_budget.py
"""
Turns a day's record into the calorie budget shown on the dashboard and in
the chatbot's "View Today's Plan" reply.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Any

from fittrack.core.records import DailyRecord, MealItem, MEAL_SLOTS

DEFAULT_CALORIE_GOAL = 2000


@dataclass
class DailySummary:
    date: date
    calorie_goal: int
    calories_consumed: int
    calories_left: int
    water_liters: float
    meals: Dict[str, List[MealItem]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "goals": {"calorieGoal": self.calorie_goal},
            "today": {
                "caloriesConsumed": self.calories_consumed,
                "caloriesLeft": self.calories_left,
                "waterIntakeLiters": self.water_liters,
                "meals": {
                    slot: {
                        "items": [item.to_dict() for item in self.meals.get(slot, [])],
                        "totalCalories": round(sum(item.calories for item in self.meals.get(slot, []))),
                    }
                    for slot in MEAL_SLOTS
                },
            },
        }


def summarize_day(record: DailyRecord, calorie_goal: float = DEFAULT_CALORIE_GOAL) -> DailySummary:
    consumed = record.total_calories
    return DailySummary(
        date=record.date,
        calorie_goal=round(calorie_goal),
        calories_consumed=round(consumed),
        calories_left=round(calorie_goal - consumed),
        water_liters=record.liters_drank,
        meals={slot: record.items_for(slot) for slot in MEAL_SLOTS if record.items_for(slot)},
    )


def format_summary(summary: DailySummary) -> str:
    """Chat-friendly rendering of the summary."""
    lines = [
        f"Here's your plan for {summary.date.isoformat()}:",
        f"Calories: {summary.calories_consumed} eaten of {summary.calorie_goal} "
        f"({summary.calories_left} left).",
    ]
    if summary.calories_left < 0:
        lines[-1] = (
            f"Calories: {summary.calories_consumed} eaten of {summary.calorie_goal} "
            f"({-summary.calories_left} over budget)."
        )
    if summary.meals:
        for slot in MEAL_SLOTS:
            items = summary.meals.get(slot)
            if items:
                described = ", ".join(f"{item.description} ({round(item.calories)} kcal)" for item in items)
                lines.append(f"{slot.capitalize()}: {described}")
    else:
        lines.append("No meals logged yet.")
    lines.append(f"Water: {summary.water_liters:g} L")
    return "\n".join(lines)
