"""
Processing Context
==================

Short-lived value handed to every handler call: the record being driven,
the registry it is checked against, the store it is persisted to, and the
host's cancellation signal. Never persisted.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

from .guard import attempt_transition
from .registry import Registry, state_name


@dataclass
class ProcessingContext:
    record: Any
    registry: Registry
    store: Any
    cancel_event: Optional[threading.Event] = None
    deadline: Optional[float] = None  # time.monotonic() value

    @property
    def state(self) -> str:
        return state_name(self.record.state)

    def transition_to(self, target_state: Any) -> None:
        """Ask the guard to move the record; see attempt_transition."""
        attempt_transition(self.registry, self.record, target_state)

    @property
    def cancelled(self) -> bool:
        """True once the host asked to stop or the deadline passed.

        The engine never checks this itself; long-running handlers should.
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def idempotency_key(self, suffix: str = "") -> str:
        """
        Deterministic key for outbound calls made from the current state.

        A handler re-run after a crash sees the same record id and state and
        therefore sends the same key, letting the remote side deduplicate.
        """
        key = f"{self.record.record_id}:{self.state}"
        return f"{key}:{suffix}" if suffix else key
