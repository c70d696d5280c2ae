# fittrack/core/dialogue_flow.py
"""
The FitTrack chatbot's dialogue: state names, prompts, free-text validators,
the side-effecting actions, and the two state tables (signed-in users and
guests).

Both tables are built once by `build_dialogue_flow()` and shared read-only
by every request.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from fittrack.core.calorie_budget import DEFAULT_CALORIE_GOAL, format_summary, summarize_day
from fittrack.core.error_handler_global import DatabaseError, NutritionServiceError
from fittrack.core.records import MEAL_SLOTS, MealItem, RecordStore
from fittrack.core.state_machine import (
    ActionResult,
    ComputedPrompt,
    Context,
    LiteralPrompt,
    Option,
    StateDefinition,
    StateTable,
)

logger = logging.getLogger(__name__)

# --- Signed-in states ---
INITIAL = "INITIAL"
LOG_MEAL_START = "LOG_MEAL_START"
LOG_MEAL_DETAILS = "LOG_MEAL_DETAILS"
LOG_MEAL_SAVE = "LOG_MEAL_SAVE"
LOG_MEAL_CONFIRM = "LOG_MEAL_CONFIRM"
LOG_WATER_START = "LOG_WATER_START"
LOG_WATER_INVALID = "LOG_WATER_INVALID"
LOG_WATER_SAVE = "LOG_WATER_SAVE"
LOG_WATER_CONFIRM = "LOG_WATER_CONFIRM"
VIEW_PLAN = "VIEW_PLAN"
VIEW_PLAN_SUMMARY = "VIEW_PLAN_SUMMARY"
ERROR = "ERROR"

# --- Guest states ---
GUEST_INITIAL = "GUEST_INITIAL"
GUEST_FEATURES = "GUEST_FEATURES"
GUEST_HOW_TO_START = "GUEST_HOW_TO_START"
GUEST_ERROR = "GUEST_ERROR"

MAX_WATER_LITERS = 20.0
MAX_ECHOED_INPUT = 40

NUTRITION_UNAVAILABLE_WARNING = "The nutrition service is unavailable right now, so it was logged with 0 calories."

MEAL_LABELS = {
    "breakfast": "Breakfast",
    "lunch": "Lunch",
    "dinner": "Dinner",
    "snacks": "Snack",
}


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class DialogueServices:
    """Collaborators the actions are allowed to touch."""
    nutrition: Any
    records: RecordStore
    today: Callable[[], date] = utc_today
    calorie_goal: float = DEFAULT_CALORIE_GOAL


@dataclass(frozen=True)
class DialogueFlow:
    authenticated: StateTable
    guest: StateTable

    def table_for(self, is_authenticated: bool) -> StateTable:
        return self.authenticated if is_authenticated else self.guest


# =============================================================================
# Free-text validators
# =============================================================================

def parse_food_description(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    return {"food_description": text[:200]}


def parse_water_liters(text: str) -> Optional[Dict[str, Any]]:
    """Accepts a positive decimal number of liters ("1.5", "2")."""
    try:
        liters = float(text)
    except ValueError:
        return None
    if not math.isfinite(liters) or liters <= 0 or liters > MAX_WATER_LITERS:
        return None
    return {"water_liters": round(liters, 2)}


# =============================================================================
# Prompts
# =============================================================================

def _meal_label(context: Context) -> str:
    return MEAL_LABELS.get(context.get("meal_type"), "your meal")


def _initial_prompt(context: Context) -> str:
    return f"Hi {context.get('display_name', 'there')}! I'm your FitTrack assistant. How can I help you today?"


def _meal_details_prompt(context: Context) -> str:
    return (
        f"Okay, {_meal_label(context)}. What did you eat? "
        "Describe it briefly, like \"2 eggs and a slice of toast\"."
    )


def _meal_confirm_prompt(context: Context) -> str:
    message = (
        f"Got it: \"{context.get('food_description', '')}\" for {_meal_label(context)}, "
        f"about {round(context.get('logged_calories', 0))} kcal."
    )
    if context.get("warning"):
        message += f" {context['warning']}"
    return message + " Anything else?"


def _water_invalid_prompt(context: Context) -> str:
    echoed = str(context.get("invalid_input", ""))
    if len(echoed) > MAX_ECHOED_INPUT:
        echoed = echoed[:MAX_ECHOED_INPUT] + "..."
    return (
        f"\"{echoed}\" isn't an amount I can log. "
        "Please enter a positive number of liters, like 1.5."
    )


def _water_confirm_prompt(context: Context) -> str:
    return f"Logged {context.get('water_liters', 0):g} liters of water for today. Stay hydrated!"


def _plan_summary_prompt(context: Context) -> str:
    return context.get("plan_summary") or "I couldn't find anything for today yet."


def _error_prompt(context: Context) -> str:
    return context.get("error_message") or "Sorry, I didn't understand that. Please choose an option."


# =============================================================================
# Actions
# =============================================================================

async def save_meal_item(context: Context, services: DialogueServices) -> ActionResult:
    """
    Looks up nutrition for the described food and appends it to today's
    meal slot. A failed or empty lookup still logs the food, at 0 calories,
    with a warning for the user.
    """
    user_id = context.get("user_id")
    meal_slot = context.get("meal_type")
    description = context.get("food_description", "")
    if not user_id or meal_slot not in MEAL_SLOTS or not description:
        return ActionResult(ERROR, {"error_message": "I lost track of that meal. Let's start over."})

    warning = None
    try:
        item = await services.nutrition.lookup(description)
        if item is None:
            warning = (
                f"I couldn't find nutrition info for \"{description}\", "
                "so it was logged with 0 calories."
            )
    except NutritionServiceError as e:
        logger.warning(f"Nutrition lookup unavailable for user {user_id}: {e}")
        item = None
        warning = NUTRITION_UNAVAILABLE_WARNING
    except Exception as e:
        logger.error(f"Nutrition lookup failed for user {user_id}: {e}", exc_info=True)
        item = None
        warning = NUTRITION_UNAVAILABLE_WARNING
    if item is None:
        item = MealItem.placeholder(description)

    try:
        record = await services.records.upsert_meal_item(user_id, services.today(), meal_slot, item)
    except DatabaseError as e:
        logger.error(f"Saving {meal_slot} for user {user_id} failed: {e}")
        return ActionResult(ERROR, {
            "error_message": f"Sorry, I couldn't save your {_meal_label(context).lower()} entry. Please try again."
        })

    logger.info(f"Logged {meal_slot} item for user {user_id} ({item.calories} kcal)")
    return ActionResult(
        LOG_MEAL_CONFIRM,
        {
            "logged_calories": item.calories,
            "calories_today": round(record.total_calories),
            "warning": warning,
        },
        action_hint="refresh_meal_plan",
    )


async def save_water_total(context: Context, services: DialogueServices) -> ActionResult:
    """Sets today's water total to the amount the user entered."""
    user_id = context.get("user_id")
    liters = context.get("water_liters")
    if not user_id or not isinstance(liters, (int, float)) or isinstance(liters, bool):
        return ActionResult(ERROR, {"error_message": "I lost track of that amount. Let's start over."})

    try:
        await services.records.upsert_water_total(user_id, services.today(), float(liters))
    except DatabaseError as e:
        logger.error(f"Saving water intake for user {user_id} failed: {e}")
        return ActionResult(ERROR, {
            "error_message": "Sorry, I couldn't save your water intake. Please try again."
        })

    logger.info(f"Set water total for user {user_id} to {liters} L")
    return ActionResult(LOG_WATER_CONFIRM, action_hint="refresh_water_intake")


async def load_daily_plan(context: Context, services: DialogueServices) -> ActionResult:
    user_id = context.get("user_id")
    if not user_id:
        return ActionResult(ERROR, {"error_message": "Please sign in to see your plan."})
    try:
        record = await services.records.get_daily_record(user_id, services.today())
    except DatabaseError as e:
        logger.error(f"Loading today's plan for user {user_id} failed: {e}")
        return ActionResult(ERROR, {"error_message": "Sorry, I couldn't load today's plan right now."})
    summary = summarize_day(record, services.calorie_goal)
    return ActionResult(VIEW_PLAN_SUMMARY, {"plan_summary": format_summary(summary)})


# =============================================================================
# Tables
# =============================================================================

def _back_to_menu(text: str = "Back to Main Menu") -> Option:
    return Option(text, INITIAL)


def build_authenticated_table() -> StateTable:
    states = [
        StateDefinition(
            INITIAL,
            prompt=ComputedPrompt(_initial_prompt),
            options=(
                Option("Log Meal", LOG_MEAL_START),
                Option("Log Water", LOG_WATER_START),
                Option("View Today's Plan", VIEW_PLAN),
            ),
        ),
        StateDefinition(
            LOG_MEAL_START,
            prompt=LiteralPrompt("Great! Which meal would you like to log?"),
            options=(
                Option("Breakfast", LOG_MEAL_DETAILS, {"meal_type": "breakfast"}),
                Option("Lunch", LOG_MEAL_DETAILS, {"meal_type": "lunch"}),
                Option("Dinner", LOG_MEAL_DETAILS, {"meal_type": "dinner"}),
                Option("Snack", LOG_MEAL_DETAILS, {"meal_type": "snacks"}),
                _back_to_menu("Back"),
            ),
        ),
        StateDefinition(
            LOG_MEAL_DETAILS,
            prompt=ComputedPrompt(_meal_details_prompt),
            expects_free_text=True,
            free_text_target=LOG_MEAL_SAVE,
            free_text_validator=parse_food_description,
            options=(_back_to_menu("Cancel"),),
        ),
        StateDefinition(
            LOG_MEAL_SAVE,
            action=save_meal_item,
            action_targets=(LOG_MEAL_CONFIRM, ERROR),
        ),
        StateDefinition(
            LOG_MEAL_CONFIRM,
            prompt=ComputedPrompt(_meal_confirm_prompt),
            options=(
                Option("Log Another Meal", LOG_MEAL_START),
                _back_to_menu(),
            ),
        ),
        StateDefinition(
            LOG_WATER_START,
            prompt=LiteralPrompt("Sure, how many liters of water have you had today?"),
            expects_free_text=True,
            free_text_target=LOG_WATER_SAVE,
            free_text_validator=parse_water_liters,
            invalid_input_target=LOG_WATER_INVALID,
            options=(_back_to_menu("Cancel"),),
        ),
        StateDefinition(
            LOG_WATER_INVALID,
            prompt=ComputedPrompt(_water_invalid_prompt),
            options=(
                Option("Try Again", LOG_WATER_START),
                _back_to_menu("Cancel"),
            ),
        ),
        StateDefinition(
            LOG_WATER_SAVE,
            action=save_water_total,
            action_targets=(LOG_WATER_CONFIRM, ERROR),
        ),
        StateDefinition(
            LOG_WATER_CONFIRM,
            prompt=ComputedPrompt(_water_confirm_prompt),
            options=(_back_to_menu(),),
        ),
        StateDefinition(
            VIEW_PLAN,
            action=load_daily_plan,
            action_targets=(VIEW_PLAN_SUMMARY, ERROR),
        ),
        StateDefinition(
            VIEW_PLAN_SUMMARY,
            prompt=ComputedPrompt(_plan_summary_prompt),
            options=(
                Option("Log Meal", LOG_MEAL_START),
                _back_to_menu("Back"),
            ),
        ),
        StateDefinition(
            ERROR,
            prompt=ComputedPrompt(_error_prompt),
            options=(Option("Start Over", INITIAL),),
        ),
    ]
    return StateTable("authenticated", entry=INITIAL, error=ERROR, states=states)


def build_guest_table() -> StateTable:
    states = [
        StateDefinition(
            GUEST_INITIAL,
            prompt=LiteralPrompt(
                "Hi Guest! I'm the FitTrack assistant. Sign in to log meals and water, "
                "or ask me what I can do."
            ),
            options=(
                Option("What can you do?", GUEST_FEATURES),
                Option("How do I start?", GUEST_HOW_TO_START),
            ),
        ),
        StateDefinition(
            GUEST_FEATURES,
            prompt=LiteralPrompt(
                "Once you're signed in I can log your meals with calorie estimates, "
                "track your water intake, and show today's calorie budget."
            ),
            options=(
                Option("How do I start?", GUEST_HOW_TO_START),
                Option("Back", GUEST_INITIAL),
            ),
        ),
        StateDefinition(
            GUEST_HOW_TO_START,
            prompt=LiteralPrompt(
                "Create an account or sign in from the top of the page, then open this chat again."
            ),
            options=(Option("Ok", GUEST_INITIAL),),
        ),
        StateDefinition(
            GUEST_ERROR,
            prompt=LiteralPrompt("Sorry, I didn't understand that. Please choose an option."),
            options=(Option("Start Over", GUEST_INITIAL),),
        ),
    ]
    return StateTable("guest", entry=GUEST_INITIAL, error=GUEST_ERROR, states=states)


def build_dialogue_flow() -> DialogueFlow:
    return DialogueFlow(authenticated=build_authenticated_table(), guest=build_guest_table())
