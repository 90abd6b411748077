"""
Exception Hierarchy
===================

Every failure the engine can surface derives from DurableStateError so hosts
can catch the whole family, while the concrete classes let them tell a broken
workflow definition (non-retryable) from a transient handler or storage
failure (retryable once the condition clears).
"""

from typing import Any, Optional


class DurableStateError(Exception):
    """Base exception for all durastate errors."""


class RegistryError(DurableStateError):
    """The workflow definition is inconsistent."""


class ConfigError(DurableStateError):
    """The configuration file is missing a value or holds an invalid one."""


class UnknownStateError(DurableStateError):
    """A record sits in a state the registry does not know."""

    def __init__(self, state: Any, record_id: Optional[str] = None):
        self.state = state
        self.record_id = record_id
        where = f" (record {record_id})" if record_id else ""
        super().__init__(f"Unknown state {state!r}{where}")


class IllegalTransitionError(DurableStateError):
    """The guard rejected a transition not declared in the registry."""

    def __init__(self, from_state: Any, to_state: Any):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal transition: {from_state} -> {to_state}")


class HandlerError(DurableStateError):
    """A state handler could not complete its work."""

    def __init__(self, state: Any, cause: Optional[BaseException] = None, message: str = ""):
        self.state = state
        self.cause = cause
        if not message:
            message = f"Handler for state {state} failed"
            if cause is not None:
                message += f": {cause}"
        super().__init__(message)


class StorageError(DurableStateError):
    """The persistence port failed to read or write."""


class ConcurrentModificationError(StorageError):
    """A save was attempted with a stale record version."""

    def __init__(self, record_id: str, expected: int, actual: Optional[int]):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Record {record_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )
