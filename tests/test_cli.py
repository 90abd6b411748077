import pytest
from click.testing import CliRunner

from durastate import FileStateStore, StateMachineEngine, WorkflowRecord
from durastate.cli import main

from .workflows import CALLBACK_REGISTRY


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "durastate.yaml"
    path.write_text(
        f"paths:\n  state_dir: {tmp_path / 'state'}\n"
        "storage:\n  backend: file\n"
        "logging:\n  level: warning\n"
    )
    return path


@pytest.fixture
def seeded(tmp_path, config_file):
    store = FileStateStore(CALLBACK_REGISTRY, tmp_path / "state")
    engine = StateMachineEngine(CALLBACK_REGISTRY, store)
    engine.process(WorkflowRecord("waiter", "waiting"))
    engine.process(WorkflowRecord("ready", "waiting", payload={"ready": True}))
    return store


def invoke(config_file, *args):
    return CliRunner().invoke(main, ["--config", str(config_file), *args])


def test_list_shows_all_records(seeded, config_file):
    result = invoke(config_file, "list")
    assert result.exit_code == 0, result.output
    assert "waiter" in result.output
    assert "ready" in result.output


def test_list_unfinished_needs_workflow(seeded, config_file):
    result = invoke(config_file, "list", "--unfinished")
    assert result.exit_code != 0


def test_list_unfinished(seeded, config_file):
    result = invoke(config_file, "list", "-u", "-w", "tests.workflows:CALLBACK_REGISTRY")
    assert result.exit_code == 0, result.output
    assert "waiter" in result.output
    assert "ready" not in result.output


def test_show_record(seeded, config_file):
    result = invoke(config_file, "show", "waiter")
    assert result.exit_code == 0, result.output
    assert "waiting" in result.output


def test_show_missing_record(seeded, config_file):
    result = invoke(config_file, "show", "ghost")
    assert result.exit_code == 1
    assert "Record not found" in result.output


def test_recover_resumes_records(seeded, config_file):
    record = seeded.get("waiter")
    record.payload["ready"] = True
    seeded.save(record)

    result = invoke(config_file, "recover", "tests.workflows:CALLBACK_REGISTRY")

    assert result.exit_code == 0, result.output
    assert "Completed" in result.output
    assert seeded.get("waiter").state == "done"


def test_recover_bad_workflow(config_file):
    result = invoke(config_file, "recover", "tests.workflows:nothing_here")
    assert result.exit_code == 1
    assert "Recovery aborted" in result.output


def test_missing_config_file(tmp_path):
    result = CliRunner().invoke(main, ["--config", str(tmp_path / "nope.yaml"), "list"])
    assert result.exit_code == 2
