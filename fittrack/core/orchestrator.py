# fittrack/core/orchestrator.py
"""
The central conductor of the FitTrack backend.

Builds the collaborators from configuration and the environment, owns their
startup and shutdown, and translates between the HTTP payloads and the
dialogue engine.
"""
import os
import logging
from typing import Any, Dict, Mapping, Optional

from fittrack.core.calorie_budget import DEFAULT_CALORIE_GOAL, summarize_day
from fittrack.core.config_loader import get_config
from fittrack.core.database_manager import DatabaseManager
from fittrack.core.dialogue_flow import DialogueServices, build_dialogue_flow
from fittrack.core.dialogue_manager import DEFAULT_MAX_ACTION_HOPS, DialogueManager, TransitionRequest
from fittrack.core.error_handler_global import AuthenticationError
from fittrack.core.memory_manager import MemoryRecordStore
from fittrack.core.session_manager import Identity, SessionManager
from fittrack.external.nutrition_api import DEFAULT_BASE_URL, NutritionClient

logger = logging.getLogger(__name__)


class Orchestrator:
    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 records=None, nutrition=None):
        """
        Initializes the Orchestrator and its core components.

        Args:
            config: Merged configuration. Loaded with `get_config()` if omitted.
            environ: Where secrets are read from. Defaults to os.environ.
            records: A record store to use instead of building one.
            nutrition: A nutrition client to use instead of building one.
        """
        self.config = config if config is not None else get_config()
        environ = os.environ if environ is None else environ

        if records is None:
            db_url = environ.get("DATABASE_URL")
            if db_url:
                records = DatabaseManager(
                    db_url,
                    create_schema=self.config.get("database", {}).get("create_schema", True),
                )
            else:
                logger.warning("DATABASE_URL not set. Daily records are kept in memory only.")
                records = MemoryRecordStore()
        self.records = records

        if nutrition is None:
            nutrition_cfg = self.config.get("nutrition", {})
            nutrition = NutritionClient(
                api_key=environ.get("API_NINJAS_API_KEY"),
                base_url=nutrition_cfg.get("base_url", DEFAULT_BASE_URL),
                timeout_seconds=nutrition_cfg.get("timeout_seconds", 5),
                retry_attempts=nutrition_cfg.get("retry_attempts", 2),
                cache_ttl_seconds=nutrition_cfg.get("cache_ttl_seconds", 3600),
                cache_size=nutrition_cfg.get("cache_size", 512),
            )
        self.nutrition = nutrition

        session_cfg = self.config.get("session", {})
        self.session_manager = SessionManager(
            secret_key=environ.get("SESSION_SECRET_KEY"),
            ttl_seconds=session_cfg.get("ttl_seconds", 86400),
            cookie_name=session_cfg.get("cookie_name", "fittrack_session"),
        )

        self.calorie_goal = self.config.get("dashboard", {}).get("default_calorie_goal", DEFAULT_CALORIE_GOAL)
        self.services = DialogueServices(
            nutrition=self.nutrition,
            records=self.records,
            calorie_goal=self.calorie_goal,
        )
        self.dialogue_manager = DialogueManager(
            build_dialogue_flow(),
            self.services,
            max_action_hops=self.config.get("chatbot", {}).get("max_action_hops", DEFAULT_MAX_ACTION_HOPS),
        )
        logger.info(f"Orchestrator initialized with {type(self.records).__name__} record store.")

    async def connect_services(self):
        """Opens the database pool and the nutrition HTTP client."""
        await self.records.initialize()
        await self.nutrition.initialize()
        logger.info("Orchestrator services connected.")

    async def close_services(self):
        await self.nutrition.close()
        await self.records.close()
        logger.info("Orchestrator services closed.")

    def resolve_identity(self, cookies, headers) -> Optional[Identity]:
        return self.session_manager.resolve_request(cookies, headers)

    async def handle_chat_message(self, data: Dict[str, Any], identity: Optional[Identity] = None) -> Dict[str, Any]:
        """
        Main entry point for a chatbot turn.

        `data` uses the wire names: currentState, selectedOption, userInput, context.
        """
        request = TransitionRequest(
            current_state=data.get("currentState"),
            selected_option=data.get("selectedOption"),
            free_text=data.get("userInput"),
            context=dict(data.get("context") or {}),
        )
        result = await self.dialogue_manager.advance(request, identity)

        response = {
            "newState": result.new_state,
            "message": result.prompt,
            "options": [{"text": text} for text in result.options],
            "expectsUserInput": result.expects_free_text,
            "context": result.context,
        }
        if result.action_hint:
            response["actionRequired"] = result.action_hint
        return response

    async def get_today_summary(self, identity: Optional[Identity]) -> Dict[str, Any]:
        """The signed-in user's calorie budget, meals and water for today (UTC)."""
        if identity is None:
            raise AuthenticationError("Not authorized, no valid session.")
        record = await self.records.get_daily_record(identity.user_id, self.services.today())
        return summarize_day(record, self.calorie_goal).to_dict()
