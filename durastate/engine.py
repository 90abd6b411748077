"""
Processing Engine
=================

Drives one record through its workflow: resolve the handler for the current
state, run it, persist, repeat, until a handler asks to pause or the record
reaches a state with no handler.

Checkpoint rules:
1. The record is saved before the first handler runs.
2. It is saved again after every handler step, before the next one starts.
3. A failed step is never retried here. The durable record stays at the
   last checkpoint and the caller's object is rolled back to that state,
   so the next run (usually a recovery sweep) repeats the failed step.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .context import ProcessingContext
from .errors import DurableStateError, HandlerError, StorageError
from .recovery import RecoveryPolicy, RecoveryResult, RecoveryScanner
from .registry import Registry, state_name
from .store.base import StateStore

logger = logging.getLogger(__name__)


class EngineStatus(str, Enum):
    """Lifecycle of a single process() call"""
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    FAILED = "FAILED"


@dataclass
class ProcessResult:
    """Outcome of a process() call that did not fail"""
    record_id: str
    final_state: str
    steps: int
    completed: bool
    status: EngineStatus = EngineStatus.PAUSED


class StateMachineEngine:
    """
    Runs records of one workflow type against one store.

    The engine holds no per-record state between calls; distinct records may
    be processed from separate threads. Two concurrent calls for the SAME
    record are not coordinated here; the bundled stores turn the losing
    write into a ConcurrentModificationError.
    """

    def __init__(self, registry: Registry, store: StateStore):
        self.registry = registry
        self.store = store

    def process(
        self,
        record: Any,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> ProcessResult:
        """
        Run ``record`` until it pauses or reaches a terminal state.

        Raises:
            UnknownStateError: record.state is not declared
            IllegalTransitionError: a handler requested an undeclared edge
            HandlerError: a handler failed (other exceptions are wrapped)
            StorageError: the store failed (ConcurrentModificationError
                included)
        """
        record_id = record.record_id
        self.registry.descriptor(record.state, record_id)

        self._save(record)

        context = ProcessingContext(
            record=record,
            registry=self.registry,
            store=self.store,
            cancel_event=cancel_event,
            deadline=deadline,
        )
        status = EngineStatus.RUNNING
        steps = 0

        while status == EngineStatus.RUNNING:
            checkpoint = state_name(record.state)
            handler = self.registry.handler_for(checkpoint)
            if handler is None:
                logger.info("record %s finished in %s", record_id, checkpoint)
                return ProcessResult(record_id, checkpoint, steps, completed=True)

            try:
                should_pause = self._run_handler(handler, context, checkpoint)
                steps += 1
                self._save(record)
            except DurableStateError as e:
                status = EngineStatus.FAILED
                record.state = checkpoint
                logger.warning(
                    "record %s failed in %s after %d step(s): %s",
                    record_id, checkpoint, steps, e,
                )
                raise

            if checkpoint != record.state:
                logger.debug("record %s checkpointed at %s", record_id, record.state)

            if should_pause:
                status = EngineStatus.PAUSED

        final = state_name(record.state)
        completed = self.registry.is_terminal(final)
        logger.info("record %s paused in %s", record_id, final)
        return ProcessResult(record_id, final, steps, completed=completed, status=status)

    def recover_all(self, policy: Optional[RecoveryPolicy] = None) -> RecoveryResult:
        """Resume every unfinished record in the store; see RecoveryScanner."""
        return RecoveryScanner(self).recover_all(policy)

    def _run_handler(self, handler, context: ProcessingContext, state: str) -> bool:
        try:
            return bool(handler.handle(context))
        except DurableStateError:
            raise
        except Exception as e:
            raise HandlerError(state, e) from e

    def _save(self, record: Any) -> None:
        try:
            self.store.save(record)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save record {record.record_id}: {e}") from e
