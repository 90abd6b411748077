"""
Workflow Records
================

A record is one workflow instance: an identity, a domain payload and the
state it currently sits in. The caller owns it; the engine only borrows it
for the duration of a single processing call.
"""

import copy
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from .registry import state_name


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@runtime_checkable
class StatefulRecord(Protocol):
    """Anything the engine can drive: an id and a mutable state."""
    record_id: str
    state: str


@dataclass
class WorkflowRecord:
    """Complete persisted state for one workflow instance"""
    record_id: str
    state: str
    payload: dict = field(default_factory=dict)
    workflow: str = ""

    # Optimistic concurrency counter, advanced by the store on each save
    version: int = 0

    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        self.state = state_name(self.state)
        if not self.created_at:
            self.created_at = utc_now()
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WorkflowRecord":
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    def snapshot(self) -> "WorkflowRecord":
        """Deep copy, detached from the caller's payload."""
        return copy.deepcopy(self)
