import sys
import os
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from fittrack.core.database_manager import DatabaseManager
from fittrack.core.error_handler_global import AuthenticationError
from fittrack.core.memory_manager import MemoryRecordStore
from fittrack.core.orchestrator import Orchestrator
from fittrack.core.records import MealItem
from fittrack.core.session_manager import Identity
from fittrack.external.nutrition_api import NutritionClient

CONFIG = {
    "chatbot": {"max_action_hops": 5},
    "nutrition": {"timeout_seconds": 2, "retry_attempts": 1},
    "session": {"cookie_name": "sid", "ttl_seconds": 600},
    "dashboard": {"default_calorie_goal": 1800},
    "database": {"create_schema": False},
}
ANA = Identity(user_id="user-1", display_name="Ana")


class TestOrchestrator(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        """Set up an Orchestrator backed by the in-memory store for each test."""
        self.nutrition = AsyncMock()
        self.nutrition.lookup.return_value = MealItem("banana", calories=105.0)
        self.orchestrator = Orchestrator(config=CONFIG, environ={}, nutrition=self.nutrition)

    def test_builds_collaborators_from_config(self):
        self.assertIsInstance(self.orchestrator.records, MemoryRecordStore)
        self.assertEqual(self.orchestrator.dialogue_manager.max_action_hops, 5)
        self.assertEqual(self.orchestrator.session_manager.cookie_name, "sid")
        self.assertEqual(self.orchestrator.calorie_goal, 1800)

    def test_database_url_selects_postgres_store(self):
        orchestrator = Orchestrator(
            config=CONFIG,
            environ={"DATABASE_URL": "postgresql://localhost/fittrack", "API_NINJAS_API_KEY": "k"},
        )
        self.assertIsInstance(orchestrator.records, DatabaseManager)
        self.assertFalse(orchestrator.records.create_schema)
        self.assertIsInstance(orchestrator.nutrition, NutritionClient)
        self.assertEqual(orchestrator.nutrition.api_key, "k")
        self.assertEqual(orchestrator.nutrition.retry_attempts, 1)

    async def test_guest_entry_message(self):
        response = await self.orchestrator.handle_chat_message({"currentState": None})

        self.assertEqual(response["newState"], "GUEST_INITIAL")
        self.assertEqual(response["options"], [{"text": "What can you do?"}, {"text": "How do I start?"}])
        self.assertFalse(response["expectsUserInput"])
        self.assertNotIn("actionRequired", response)
        self.assertEqual(response["context"], {})

    async def test_meal_turn_reports_action_required(self):
        response = await self.orchestrator.handle_chat_message(
            {"currentState": "LOG_MEAL_DETAILS", "userInput": "banana", "context": {"meal_type": "snacks"}},
            ANA,
        )

        self.assertEqual(response["newState"], "LOG_MEAL_CONFIRM")
        self.assertEqual(response["actionRequired"], "refresh_meal_plan")
        self.assertIn("105 kcal", response["message"])

    async def test_today_summary_requires_identity(self):
        with self.assertRaises(AuthenticationError):
            await self.orchestrator.get_today_summary(None)

    async def test_today_summary_reflects_logged_water(self):
        today = datetime.now(timezone.utc).date()
        await self.orchestrator.records.upsert_water_total("user-1", today, 2.0)

        summary = await self.orchestrator.get_today_summary(ANA)

        self.assertEqual(summary["date"], today.isoformat())
        self.assertEqual(summary["goals"]["calorieGoal"], 1800)
        self.assertEqual(summary["today"]["waterIntakeLiters"], 2.0)

    async def test_connect_and_close_services(self):
        records = AsyncMock()
        orchestrator = Orchestrator(config=CONFIG, environ={}, records=records, nutrition=self.nutrition)

        await orchestrator.connect_services()
        await orchestrator.close_services()

        records.initialize.assert_awaited_once()
        records.close.assert_awaited_once()
        self.nutrition.initialize.assert_awaited_once()
        self.nutrition.close.assert_awaited_once()

    def test_missing_database_url_is_logged(self):
        with self.assertLogs("fittrack.core.orchestrator", level="WARNING"):
            Orchestrator(config=CONFIG, environ={}, nutrition=self.nutrition)


if __name__ == '__main__':
    unittest.main()
