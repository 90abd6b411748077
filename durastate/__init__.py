"""
durastate - Durable State Machine Engine
========================================

Crash-safe finite state machines for long-running business workflows:
- An explicit, validated transition graph per workflow type
- A processing loop that checkpoints the record after every handler step
- Recovery sweeps that resume records stranded by a crash or a failure
- File, SQL and in-memory persistence backends
"""

__version__ = "0.1.0"

from .context import ProcessingContext
from .engine import EngineStatus, ProcessResult, StateMachineEngine
from .errors import (
    ConcurrentModificationError,
    ConfigError,
    DurableStateError,
    HandlerError,
    IllegalTransitionError,
    RegistryError,
    StorageError,
    UnknownStateError,
)
from .guard import attempt_transition
from .handlers import FunctionHandler, StateHandler
from .record import StatefulRecord, WorkflowRecord
from .recovery import RecoveryPolicy, RecoveryResult, RecoveryScanner
from .registry import Registry, StateDescriptor, build_registry
from .store import FileStateStore, MemoryStateStore, SqlStateStore, StateStore

__all__ = [
    "ProcessingContext",
    "EngineStatus",
    "ProcessResult",
    "StateMachineEngine",
    "ConcurrentModificationError",
    "ConfigError",
    "DurableStateError",
    "HandlerError",
    "IllegalTransitionError",
    "RegistryError",
    "StorageError",
    "UnknownStateError",
    "attempt_transition",
    "FunctionHandler",
    "StateHandler",
    "StatefulRecord",
    "WorkflowRecord",
    "RecoveryPolicy",
    "RecoveryResult",
    "RecoveryScanner",
    "Registry",
    "StateDescriptor",
    "build_registry",
    "FileStateStore",
    "MemoryStateStore",
    "SqlStateStore",
    "StateStore",
]
