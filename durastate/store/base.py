"""
Persistence Port
================

The contract the engine expects from storage:

- save(record): durable before returning; the engine treats a successful
  return as a crash-safe checkpoint.
- find_unfinished(): every stored record whose state still has a handler.

Bundled stores persist WorkflowRecord instances and enforce an optimistic
version check: a save whose record.version differs from the stored one
raises ConcurrentModificationError, and record.version is advanced only
after the write is durable.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..errors import ConcurrentModificationError, StorageError
from ..record import WorkflowRecord, utc_now
from ..registry import Registry


class StateStore(ABC):
    """Base class for persistence backends"""

    def __init__(self, registry: Registry):
        self.registry = registry

    @abstractmethod
    def save(self, record: WorkflowRecord) -> None:
        """Durably store ``record``; raises StorageError on failure."""

    @abstractmethod
    def find_unfinished(self) -> List[WorkflowRecord]:
        """All stored records whose state is not terminal; order unspecified."""

    @abstractmethod
    def get(self, record_id: str) -> Optional[WorkflowRecord]:
        """Load one record, or None if it was never saved."""

    @abstractmethod
    def list_records(self) -> List[WorkflowRecord]:
        """Every stored record."""

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # Helpers shared by the bundled backends

    def _is_unfinished(self, record: WorkflowRecord) -> bool:
        # Records of other workflows, or in states this registry does not
        # know, are not ours to resume
        if record.workflow and record.workflow != self.registry.name:
            return False
        return record.state in self.registry and not self.registry.is_terminal(record.state)

    @staticmethod
    def _check_version(record: WorkflowRecord, stored_version: Optional[int]) -> None:
        expected = record.version
        actual = 0 if stored_version is None else stored_version
        if expected != actual:
            raise ConcurrentModificationError(record.record_id, expected, stored_version)

    def _prepare(self, record: WorkflowRecord) -> dict:
        """Serialised form of the next version of ``record``."""
        if not isinstance(record, WorkflowRecord):
            raise StorageError(
                f"{type(self).__name__} stores WorkflowRecord, got {type(record).__name__}"
            )
        data = record.to_dict()
        data["version"] = record.version + 1
        data["updated_at"] = utc_now()
        if not data.get("workflow"):
            data["workflow"] = self.registry.name
        return data

    @staticmethod
    def _commit(record: WorkflowRecord, data: dict) -> None:
        """Reflect a durable write back onto the caller's record."""
        record.version = data["version"]
        record.updated_at = data["updated_at"]
        record.workflow = data["workflow"]
