"""
File-Based Store
================

One human-readable JSON file per record. Writes are atomic (temp file +
fsync + rename) so a record file is either the old checkpoint or the new
one, never a torn mix, even across a power cut.

Directory structure:
    <state_dir>/records/
        ├── <record_id>.json    # current checkpoint
        └── <record_id>.lock    # per-record writer lock
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import List, Optional

from filelock import FileLock, Timeout

from ..errors import RegistryError, StorageError
from ..record import WorkflowRecord
from .base import StateStore

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]*$")


class FileStateStore(StateStore):

    def __init__(self, registry, state_dir: str | Path, lock_timeout: float = 10.0):
        super().__init__(registry)
        self.state_dir = Path(state_dir)
        self.records_dir = self.state_dir / "records"
        self.lock_timeout = lock_timeout
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create state directory {self.records_dir}: {e}") from e

    # =========================================================================
    # Core Atomic Operations
    # =========================================================================

    def read_json(self, path: Path) -> Optional[dict]:
        """Read a JSON file, returning None if it doesn't exist"""
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def write_json_atomic(self, path: Path, data: dict) -> None:
        """
        Atomic write: temp file -> fsync -> rename

        The file is either completely written or not at all.
        """
        temp_path = path.with_suffix(".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

        # Sync parent directory so the rename itself survives a crash
        try:
            dir_fd = os.open(path.parent, os.O_RDONLY)
        except OSError:
            # Not supported on every platform (e.g. Windows)
            return
        try:
            os.fsync(dir_fd)
        except OSError:
            pass
        finally:
            os.close(dir_fd)

    # =========================================================================
    # StateStore
    # =========================================================================

    def record_path(self, record_id: str) -> Path:
        if not isinstance(record_id, str) or not _SAFE_ID.match(record_id):
            raise StorageError(f"Record id not usable as a file name: {record_id!r}")
        return self.records_dir / f"{record_id}.json"

    def save(self, record: WorkflowRecord) -> None:
        data = self._prepare(record)
        path = self.record_path(record.record_id)
        lock = FileLock(str(path.with_suffix(".lock")), timeout=self.lock_timeout)
        try:
            with lock:
                stored = self.read_json(path)
                self._check_version(record, stored.get("version") if stored else None)
                self.write_json_atomic(path, data)
        except Timeout as e:
            raise StorageError(f"Timed out waiting for lock on {record.record_id}") from e
        self._commit(record, data)

    def get(self, record_id: str) -> Optional[WorkflowRecord]:
        data = self.read_json(self.record_path(record_id))
        return WorkflowRecord.from_dict(data) if data else None

    def list_records(self) -> List[WorkflowRecord]:
        records = []
        for path in sorted(self.records_dir.glob("*.json")):
            try:
                data = self.read_json(path)
                if data:
                    records.append(WorkflowRecord.from_dict(data))
            except (StorageError, RegistryError, TypeError) as e:
                # One damaged file must not hide every other record
                logger.warning("Skipping unreadable record file %s: %s", path.name, e)
        return records

    def find_unfinished(self) -> List[WorkflowRecord]:
        return [r for r in self.list_records() if self._is_unfinished(r)]
