import pytest

from durastate import (
    FileStateStore,
    MemoryStateStore,
    SqlStateStore,
    StateMachineEngine,
    WorkflowRecord,
)

from .workflows import ScriptedService, step_registry


@pytest.fixture
def service():
    return ScriptedService()


@pytest.fixture
def registry(service):
    return step_registry(service)


@pytest.fixture
def store(registry):
    return MemoryStateStore(registry)


@pytest.fixture
def engine(registry, store):
    return StateMachineEngine(registry, store)


@pytest.fixture(params=["memory", "file", "sqlite"])
def any_store(request, registry, tmp_path):
    """Every bundled backend, over the same registry"""
    if request.param == "memory":
        store = MemoryStateStore(registry)
    elif request.param == "file":
        store = FileStateStore(registry, tmp_path / "state")
    else:
        store = SqlStateStore(registry, f"sqlite:///{tmp_path / 'state.db'}")
    yield store
    store.close()


def make_record(record_id: str, state: str = "stepA", **payload) -> WorkflowRecord:
    return WorkflowRecord(record_id=record_id, state=state, payload=payload)
