"""
State Registry
==============

The declared transition graph of one workflow type. A registry is built once
by the host, validated at construction, and never mutated afterwards; every
record of the workflow shares it.

State names are plain strings. Members of a ``str``-valued Enum are accepted
anywhere a state is expected and are reduced to their value, which is also
what the stores persist.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Optional, Type

from .errors import RegistryError, UnknownStateError
from .handlers import StateHandler, as_handler


def state_name(state: Any) -> str:
    """Canonical string form of a state (Enum members reduce to their value)."""
    if isinstance(state, Enum):
        state = state.value
    if not isinstance(state, str) or not state:
        raise RegistryError(f"State names must be non-empty strings, got {state!r}")
    return state


@dataclass(frozen=True)
class StateDescriptor:
    """Rules for one state: where it may go, and who does its work."""
    can_transition_to: frozenset = field(default_factory=frozenset)
    handler: Optional[StateHandler] = None

    def __post_init__(self):
        # Accept any iterable of names or Enum members
        object.__setattr__(
            self,
            "can_transition_to",
            frozenset(state_name(s) for s in self.can_transition_to),
        )
        try:
            object.__setattr__(self, "handler", as_handler(self.handler))
        except TypeError as e:
            raise RegistryError(str(e)) from e

    @classmethod
    def terminal(cls) -> "StateDescriptor":
        return cls()

    @property
    def is_terminal(self) -> bool:
        return self.handler is None


class Registry(Mapping):
    """
    Read-only mapping of state name -> StateDescriptor.

    Raises RegistryError if a descriptor names a destination that is not
    itself registered, so terminal states have to be declared explicitly.
    """

    def __init__(self, states: Mapping[Any, StateDescriptor], name: str = "workflow"):
        table = {}
        for key, desc in states.items():
            if not isinstance(desc, StateDescriptor):
                raise RegistryError(f"State {key!r}: expected StateDescriptor, got {type(desc).__name__}")
            table[state_name(key)] = desc

        if not table:
            raise RegistryError(f"Workflow {name!r} declares no states")

        for key, desc in table.items():
            unknown = desc.can_transition_to - table.keys()
            if unknown:
                raise RegistryError(
                    f"State {key!r} may transition to undeclared state(s): "
                    f"{', '.join(sorted(unknown))}"
                )

        self.name = name
        self._states = MappingProxyType(table)

    @classmethod
    def from_enum(
        cls,
        states: Type[Enum],
        table: Mapping[Enum, StateDescriptor],
        name: Optional[str] = None,
    ) -> "Registry":
        """
        Build a registry over a closed set of states.

        Every member of ``states`` needs an entry in ``table``; a member
        added to the Enum but not wired here fails at construction instead
        of surfacing later as a silently terminal state.
        """
        members = {state_name(m) for m in states}
        given = {state_name(k) for k in table}

        missing = members - given
        if missing:
            raise RegistryError(
                f"{states.__name__}: no descriptor for {', '.join(sorted(missing))}"
            )
        extra = given - members
        if extra:
            raise RegistryError(
                f"{states.__name__}: descriptors for non-members {', '.join(sorted(extra))}"
            )

        return cls(table, name=name or states.__name__)

    # Mapping interface

    def __getitem__(self, state: Any) -> StateDescriptor:
        try:
            return self._states[state_name(state)]
        except RegistryError:
            raise KeyError(state) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, state: Any) -> bool:
        try:
            return state_name(state) in self._states
        except RegistryError:
            return False

    def __repr__(self) -> str:
        return f"Registry(name={self.name!r}, states={sorted(self._states)})"

    # Queries

    def descriptor(self, state: Any, record_id: Optional[str] = None) -> StateDescriptor:
        """Descriptor for ``state``; UnknownStateError if it is not declared."""
        try:
            return self._states[state_name(state)]
        except (KeyError, RegistryError):
            raise UnknownStateError(state, record_id) from None

    def handler_for(self, state: Any) -> Optional[StateHandler]:
        return self.descriptor(state).handler

    def is_terminal(self, state: Any) -> bool:
        return self.descriptor(state).is_terminal

    def can_transition(self, from_state: Any, to_state: Any) -> bool:
        try:
            target = state_name(to_state)
        except RegistryError:
            return False
        return target in self.descriptor(from_state).can_transition_to

    @property
    def terminal_states(self) -> frozenset:
        return frozenset(k for k, d in self._states.items() if d.is_terminal)

    @property
    def unfinished_states(self) -> frozenset:
        return frozenset(k for k, d in self._states.items() if not d.is_terminal)


def build_registry(
    transitions: Mapping[Any, Iterable[Any]],
    handlers: Optional[Mapping[Any, Any]] = None,
    name: str = "workflow",
) -> Registry:
    """
    Convenience constructor from two plain tables.

    ``transitions`` maps each state to its allowed destinations; states that
    appear only as destinations are added as terminal states.
    """
    handlers = {state_name(k): v for k, v in (handlers or {}).items()}
    table = {}
    for src, dsts in transitions.items():
        src = state_name(src)
        table[src] = StateDescriptor(frozenset(dsts), handlers.get(src))
    for desc in list(table.values()):
        for dst in desc.can_transition_to:
            if dst not in table:
                table[dst] = StateDescriptor(handler=handlers.get(dst))

    orphans = set(handlers) - set(table)
    if orphans:
        raise RegistryError(f"Handlers given for undeclared state(s): {', '.join(sorted(orphans))}")

    return Registry(table, name=name)
