"""
Transition Guard
================

The only sanctioned way to change a record's state. A requested move is
checked against the registry entry for the record's current state; the
record is touched only when the edge is declared.
"""

import logging
from typing import Any

from .errors import IllegalTransitionError, RegistryError
from .registry import Registry, state_name

logger = logging.getLogger(__name__)


def attempt_transition(registry: Registry, record: Any, target_state: Any) -> None:
    """
    Move ``record`` to ``target_state``.

    Raises:
        UnknownStateError: record.state is not declared in the registry
        IllegalTransitionError: the edge is not declared; record unchanged
    """
    record_id = getattr(record, "record_id", None)
    desc = registry.descriptor(record.state, record_id)
    current = state_name(record.state)

    try:
        target = state_name(target_state)
    except RegistryError:
        raise IllegalTransitionError(current, target_state) from None

    if target not in desc.can_transition_to:
        raise IllegalTransitionError(current, target)

    record.state = target
    logger.debug("record %s: %s -> %s", record_id, current, target)
