# fittrack/core/dialogue_manager.py
"""
Controls the flow of a chatbot conversation.

Each call to `advance` is one turn: the caller echoes the state it was shown
and the context it was given, together with the option it picked or the text
it typed. The manager resolves that input against the caller's state, runs any
action states the transition leads into, and renders the interactive state the
user should see next. Nothing is kept between turns.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from fittrack.core.dialogue_flow import DialogueFlow, DialogueServices
from fittrack.core.session_manager import Identity
from fittrack.core.state_machine import Context, StateDefinition, StateTable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ACTION_HOPS = 10
GUEST_DISPLAY_NAME = "Guest"
ACTION_FAILED_MESSAGE = "Something went wrong on our side while handling that. Please try again."

# Always taken from the authenticated session, never from the caller.
IDENTITY_KEYS = ("display_name", "user_id")
# Only meaningful for the turn that set them.
TRANSIENT_KEYS = ("warning", "error_message", "invalid_input")


@dataclass
class TransitionRequest:
    current_state: Optional[str] = None
    selected_option: Optional[str] = None
    free_text: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransitionResponse:
    new_state: str
    prompt: str
    options: List[str]
    expects_free_text: bool
    action_hint: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


def _default_free_text(text: str) -> Optional[Dict[str, Any]]:
    return {"user_input": text} if text else None


class DialogueManager:
    def __init__(self, flow: DialogueFlow, services: DialogueServices,
                 max_action_hops: int = DEFAULT_MAX_ACTION_HOPS):
        """
        Args:
            flow: The authenticated and guest state tables.
            services: Collaborators handed to action states.
            max_action_hops: Consecutive action states allowed in one turn.
        """
        self.flow = flow
        self.services = services
        self.max_action_hops = max(1, int(max_action_hops))
        logger.info("DialogueManager initialized.")

    async def advance(self, request: TransitionRequest, identity: Optional[Identity] = None) -> TransitionResponse:
        """
        Runs one dialogue turn. Invalid input never raises; it routes to the
        table's error state instead.
        """
        table = self.flow.table_for(identity is not None)
        context = self._build_context(request.context, identity)

        state_name = self._resolve(table, request, context, identity)
        state_name, action_hint = await self._run_actions(table, state_name, context, identity)
        response = self._render(table, state_name, context, action_hint)

        logger.debug(
            f"[{table.name}] {request.current_state or '<start>'} -> {response.new_state}"
            f"{f' hint={action_hint}' if action_hint else ''}"
        )
        return response

    # --- Context ---

    def _build_context(self, carried: Optional[Mapping[str, Any]], identity: Optional[Identity]) -> Context:
        context: Context = {}
        for key, value in (carried or {}).items():
            if isinstance(key, str) and key not in IDENTITY_KEYS and key not in TRANSIENT_KEYS:
                context[key] = value
        self._assert_identity(context, identity)
        return context

    @staticmethod
    def _assert_identity(context: Context, identity: Optional[Identity]):
        if identity is None:
            context["display_name"] = GUEST_DISPLAY_NAME
            context.pop("user_id", None)
        else:
            context["display_name"] = identity.display_name or GUEST_DISPLAY_NAME
            context["user_id"] = identity.user_id

    def _merge(self, context: Context, patch: Mapping[str, Any], identity: Optional[Identity]):
        if patch:
            context.update(patch)
            self._assert_identity(context, identity)

    # --- Resolve ---

    def _resolve(self, table: StateTable, request: TransitionRequest, context: Context,
                 identity: Optional[Identity]) -> str:
        """Decides the state to continue from, judged against the caller's state."""
        if not request.current_state:
            return table.entry

        state = table.get(request.current_state)
        if state is None or state.is_action:
            logger.info(f"[{table.name}] unknown or stale state '{request.current_state}'")
            return table.error

        if request.selected_option is not None:
            option = state.find_option(request.selected_option)
            if option is None:
                logger.info(f"[{table.name}] '{request.selected_option}' is not an option of {state.name}")
                return table.error
            self._merge(context, option.context_patch, identity)
            return option.target

        if request.free_text is not None:
            return self._resolve_free_text(table, state, request.free_text, context, identity)

        # Nothing chosen: show the caller's state again.
        return state.name

    def _resolve_free_text(self, table: StateTable, state: StateDefinition, raw_text: str,
                           context: Context, identity: Optional[Identity]) -> str:
        if not state.expects_free_text:
            logger.info(f"[{table.name}] free text sent to {state.name}, which only takes options")
            return table.error

        text = raw_text.strip()
        validator = state.free_text_validator or _default_free_text
        try:
            patch = validator(text) if text else None
        except Exception as e:
            logger.error(f"[{table.name}] validator for {state.name} failed: {e}", exc_info=True)
            return table.error

        if patch is None:
            context["invalid_input"] = raw_text
            return state.invalid_input_target or table.error

        self._merge(context, patch, identity)
        return state.free_text_target

    # --- Actions ---

    async def _run_actions(self, table: StateTable, state_name: str, context: Context,
                           identity: Optional[Identity]) -> Tuple[str, Optional[str]]:
        action_hint = None
        state = table.get(state_name)
        hops = 0
        while state.is_action:
            if hops >= self.max_action_hops:
                logger.error(f"[{table.name}] more than {self.max_action_hops} action states in one turn; stopped at {state.name}")
                return table.error, action_hint
            hops += 1

            try:
                result = await state.action(dict(context), self.services)
            except Exception as e:
                logger.error(f"[{table.name}] action {state.name} failed: {e}", exc_info=True)
                context["error_message"] = ACTION_FAILED_MESSAGE
                return table.error, action_hint

            if result.next_state not in state.action_targets or result.next_state not in table:
                logger.error(f"[{table.name}] action {state.name} returned undeclared state '{result.next_state}'")
                return table.error, action_hint

            self._merge(context, result.context_patch, identity)
            if result.action_hint:
                action_hint = result.action_hint
            state = table.get(result.next_state)

        return state.name, action_hint

    # --- Render ---

    def _render(self, table: StateTable, state_name: str, context: Context,
                action_hint: Optional[str]) -> TransitionResponse:
        state = table.get(state_name)
        try:
            prompt = state.prompt.render(context)
        except Exception as e:
            logger.error(f"[{table.name}] prompt for {state.name} failed: {e}", exc_info=True)
            state = table.get(table.error)
            prompt = state.prompt.render(context)

        return TransitionResponse(
            new_state=state.name,
            prompt=prompt,
            options=[option.text for option in state.options],
            expects_free_text=state.expects_free_text,
            action_hint=action_hint,
            context={
                key: value for key, value in context.items()
                if key not in IDENTITY_KEYS and key not in TRANSIENT_KEYS
            },
        )
