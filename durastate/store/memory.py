"""In-memory store: serialised snapshots in a dict. For tests and embedding."""

import copy
import threading
from typing import List, Optional

from ..record import WorkflowRecord
from .base import StateStore


class MemoryStateStore(StateStore):
    """
    Dict-backed StateStore.

    Snapshots are stored, never the caller's object, so a record read back
    reflects exactly what was saved and not later in-memory mutations.
    """

    def __init__(self, registry):
        super().__init__(registry)
        self._records: dict[str, dict] = {}
        self._lock = threading.Lock()

    def save(self, record: WorkflowRecord) -> None:
        data = self._prepare(record)
        with self._lock:
            stored = self._records.get(record.record_id)
            self._check_version(record, stored["version"] if stored else None)
            self._records[record.record_id] = copy.deepcopy(data)
        self._commit(record, data)

    def get(self, record_id: str) -> Optional[WorkflowRecord]:
        with self._lock:
            data = self._records.get(record_id)
            return WorkflowRecord.from_dict(copy.deepcopy(data)) if data else None

    def list_records(self) -> List[WorkflowRecord]:
        with self._lock:
            return [WorkflowRecord.from_dict(copy.deepcopy(d)) for d in self._records.values()]

    def find_unfinished(self) -> List[WorkflowRecord]:
        return [r for r in self.list_records() if self._is_unfinished(r)]
