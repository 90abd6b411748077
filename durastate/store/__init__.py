"""
Persistence Backends
====================

The engine depends only on the StateStore contract. Three backends ship:
1. MemoryStateStore - snapshots in a dict (tests, embedding)
2. FileStateStore - atomic JSON files (ground truth on local disk)
3. SqlStateStore - SQLAlchemy table (SQLite or any server database)
"""

from .base import StateStore
from .memory import MemoryStateStore
from .file import FileStateStore
from .sql import SqlStateStore

__all__ = [
    "StateStore",
    "MemoryStateStore",
    "FileStateStore",
    "SqlStateStore",
]
