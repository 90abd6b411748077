"""
State Handlers
==============

One idempotent unit of work per state. A handler performs the side effect
its state requires and then asks the context to move the record on.

Because the engine persists only after a handler returns, a crash between
the side effect and the save re-runs the same handler on restart. Handlers
must therefore produce the same net effect when invoked twice for the same
state (see ProcessingContext.idempotency_key).
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .context import ProcessingContext


class StateHandler(ABC):
    """Base class for state handlers"""

    @abstractmethod
    def handle(self, context: "ProcessingContext") -> bool:
        """
        Do the state's work and request the next transition.

        Returns:
            True to pause processing (e.g. waiting on an external callback),
            False to let the engine continue with the record's new state.

        Raises:
            Any exception to abort; the record keeps its last saved state.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FunctionHandler(StateHandler):
    """Adapts a plain callable ``fn(context) -> bool`` into a handler."""

    def __init__(self, fn: Callable[["ProcessingContext"], Optional[bool]], name: str = ""):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "handler")

    def handle(self, context: "ProcessingContext") -> bool:
        return bool(self.fn(context))

    def __repr__(self) -> str:
        return f"FunctionHandler({self.name})"


def as_handler(obj) -> Optional[StateHandler]:
    """Normalise a registry entry: handlers pass through, callables get wrapped."""
    if obj is None or isinstance(obj, StateHandler):
        return obj
    if callable(obj):
        return FunctionHandler(obj)
    raise TypeError(f"Not a state handler: {obj!r}")
