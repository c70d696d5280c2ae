# fittrack/core/state_machine.py
"""
Building blocks for the chatbot's state tables.

A state is either interactive (it shows a prompt and waits for an option or
free text) or an action (it runs a side effect and names the next state).
A StateTable is validated once when it is built, so a broken table stops
the process at startup instead of stranding a user mid-conversation.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from fittrack.core.error_handler_global import FlowDefinitionError

Context = Dict[str, Any]


@dataclass(frozen=True)
class LiteralPrompt:
    text: str

    def render(self, context: Context) -> str:
        return self.text


@dataclass(frozen=True)
class ComputedPrompt:
    build: Callable[[Context], str]

    def render(self, context: Context) -> str:
        return self.build(context)


@dataclass(frozen=True)
class Option:
    text: str
    target: str
    context_patch: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionResult:
    next_state: str
    context_patch: Mapping[str, Any] = field(default_factory=dict)
    action_hint: Optional[str] = None


# Free-text validators return the context patch to merge, or None to reject the input.
FreeTextValidator = Callable[[str], Optional[Dict[str, Any]]]
Action = Callable[..., Awaitable[ActionResult]]


@dataclass(frozen=True)
class StateDefinition:
    name: str
    prompt: Optional[Any] = None  # LiteralPrompt | ComputedPrompt
    options: Tuple[Option, ...] = ()
    expects_free_text: bool = False
    free_text_target: Optional[str] = None
    free_text_validator: Optional[FreeTextValidator] = None
    invalid_input_target: Optional[str] = None
    action: Optional[Action] = None
    action_targets: Tuple[str, ...] = ()

    @property
    def is_action(self) -> bool:
        return self.action is not None

    def find_option(self, text: str) -> Optional[Option]:
        for option in self.options:
            if option.text == text:
                return option
        return None

    def references(self) -> List[str]:
        """Every state name this state can lead to."""
        names = [option.target for option in self.options]
        names.extend(name for name in (self.free_text_target, self.invalid_input_target) if name)
        names.extend(self.action_targets)
        return names


class StateTable:
    """
    An immutable, validated set of states with one entry state and one
    fallback error state.
    """
    def __init__(self, name: str, entry: str, error: str, states: Iterable[StateDefinition]):
        mapping: Dict[str, StateDefinition] = {}
        for state in states:
            if state.name in mapping:
                raise FlowDefinitionError(f"[{name}] duplicate state '{state.name}'")
            mapping[state.name] = state
        self.name = name
        self.entry = entry
        self.error = error
        self._states: Mapping[str, StateDefinition] = MappingProxyType(mapping)
        self.validate()

    def get(self, state_name: Optional[str]) -> Optional[StateDefinition]:
        if state_name is None:
            return None
        return self._states.get(state_name)

    def __contains__(self, state_name: object) -> bool:
        return state_name in self._states

    def __iter__(self) -> Iterator[StateDefinition]:
        return iter(self._states.values())

    def __len__(self) -> int:
        return len(self._states)

    def validate(self):
        """
        Raises FlowDefinitionError listing every problem found in the table.
        """
        problems: List[str] = []

        for role, state_name in (("entry", self.entry), ("error", self.error)):
            state = self._states.get(state_name)
            if state is None:
                problems.append(f"{role} state '{state_name}' is not declared")
            elif state.is_action:
                problems.append(f"{role} state '{state_name}' must be interactive")

        for state in self._states.values():
            for target in state.references():
                if target not in self._states:
                    problems.append(f"'{state.name}' leads to undeclared state '{target}'")

            if state.is_action:
                if state.prompt is not None or state.options or state.expects_free_text:
                    problems.append(f"action state '{state.name}' must not declare a prompt, options or free text")
                if not state.action_targets:
                    problems.append(f"action state '{state.name}' declares no action_targets")
            else:
                if state.prompt is None:
                    problems.append(f"interactive state '{state.name}' has no prompt")
                if state.expects_free_text and not state.free_text_target:
                    problems.append(f"free-text state '{state.name}' has no free_text_target")
                if not state.expects_free_text and not state.options:
                    problems.append(f"interactive state '{state.name}' offers no way forward")

        cycle = self._find_action_cycle()
        if cycle:
            problems.append(f"action-only cycle: {' -> '.join(cycle)}")

        if problems:
            raise FlowDefinitionError(f"[{self.name}] invalid state table: " + "; ".join(problems))

    def _find_action_cycle(self) -> Optional[List[str]]:
        """Depth-first search restricted to action states."""
        visiting: List[str] = []
        done = set()

        def visit(state_name: str) -> Optional[List[str]]:
            if state_name in visiting:
                return visiting[visiting.index(state_name):] + [state_name]
            if state_name in done:
                return None
            state = self._states.get(state_name)
            if state is None or not state.is_action:
                return None
            visiting.append(state_name)
            for target in state.action_targets:
                found = visit(target)
                if found:
                    return found
            visiting.pop()
            done.add(state_name)
            return None

        for state in self._states.values():
            found = visit(state.name)
            if found:
                return found
        return None
