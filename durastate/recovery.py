"""
Startup Recovery
================

Resumes records left mid-workflow by a crash, a failed step or a pause.

Recovery process:
1. Ask the store for every record whose state still has a handler
2. Skip anything that is already terminal (never re-submitted)
3. Run the engine on each remaining record, one after another

Two policies:
- FAIL_FAST (default): the first failing record aborts the sweep and its
  error propagates; records not yet visited wait for the next sweep.
- CONTINUE: failures are collected in RecoveryResult.errors and the sweep
  carries on with the next record.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional

from .errors import DurableStateError

if TYPE_CHECKING:
    from .engine import StateMachineEngine

logger = logging.getLogger(__name__)


class RecoveryPolicy(str, Enum):
    FAIL_FAST = "fail_fast"
    CONTINUE = "continue"


@dataclass
class RecoveryResult:
    """Results from a recovery sweep"""
    found: int = 0
    completed: int = 0
    paused: int = 0
    failed: int = 0
    skipped: int = 0
    errors: Dict[str, DurableStateError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


class RecoveryScanner:

    def __init__(self, engine: "StateMachineEngine", policy: RecoveryPolicy = RecoveryPolicy.FAIL_FAST):
        self.engine = engine
        self.policy = RecoveryPolicy(policy)

    def recover_all(self, policy: Optional[RecoveryPolicy] = None) -> RecoveryResult:
        """
        Main recovery entry point.

        Raises:
            StorageError: the store could not list unfinished records
            DurableStateError: under FAIL_FAST, the first record's failure
        """
        policy = RecoveryPolicy(policy) if policy is not None else self.policy
        registry = self.engine.registry
        result = RecoveryResult()

        records = self.engine.store.find_unfinished()
        result.found = len(records)
        logger.info(
            "recovery sweep for %s: %d unfinished record(s), policy=%s",
            registry.name, result.found, policy.value,
        )

        for record in records:
            if record.state not in registry or registry.is_terminal(record.state):
                logger.warning(
                    "store returned record %s in state %s, not resumable; skipping",
                    record.record_id, record.state,
                )
                result.skipped += 1
                continue

            try:
                outcome = self.engine.process(record)
            except DurableStateError as e:
                result.failed += 1
                logger.warning("recovery of record %s failed: %s", record.record_id, e)
                if policy == RecoveryPolicy.FAIL_FAST:
                    raise
                result.errors[record.record_id] = e
                continue

            if outcome.completed:
                result.completed += 1
            else:
                result.paused += 1

        logger.info(
            "recovery sweep done: %d completed, %d paused, %d failed, %d skipped",
            result.completed, result.paused, result.failed, result.skipped,
        )
        return result
