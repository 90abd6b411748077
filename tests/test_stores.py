import json

import pytest

from durastate import (
    ConcurrentModificationError,
    FileStateStore,
    SqlStateStore,
    StorageError,
    WorkflowRecord,
)

from .conftest import make_record


class TestContract:
    """Behaviour every bundled backend shares"""

    def test_get_missing_returns_none(self, any_store):
        assert any_store.get("nope") is None

    def test_save_then_get_round_trips(self, any_store):
        record = make_record("1", amount=100, currency="EUR")
        any_store.save(record)

        loaded = any_store.get("1")
        assert loaded.state == "stepA"
        assert loaded.payload == {"amount": 100, "currency": "EUR"}
        assert loaded.version == 1
        assert loaded.workflow == "steps"
        assert loaded.created_at == record.created_at

    def test_save_updates_caller_version(self, any_store):
        record = make_record("1")
        any_store.save(record)
        any_store.save(record)
        assert record.version == 2
        assert any_store.get("1").version == 2

    def test_find_unfinished_excludes_terminal(self, any_store):
        any_store.save(make_record("a", state="stepA"))
        any_store.save(make_record("b", state="stepB"))
        any_store.save(make_record("c", state="success"))
        any_store.save(make_record("d", state="fail"))

        unfinished = {r.record_id for r in any_store.find_unfinished()}
        assert unfinished == {"a", "b"}

    def test_find_unfinished_ignores_other_workflows(self, any_store):
        other = make_record("x", state="stepA")
        other.workflow = "someone-else"
        any_store.save(other)
        any_store.save(make_record("mine", state="stepA"))

        assert [r.record_id for r in any_store.find_unfinished()] == ["mine"]

    def test_list_records_returns_everything(self, any_store):
        any_store.save(make_record("a"))
        any_store.save(make_record("b", state="success"))
        assert {r.record_id for r in any_store.list_records()} == {"a", "b"}

    def test_stale_version_is_rejected(self, any_store):
        any_store.save(make_record("1"))
        first = any_store.get("1")
        second = any_store.get("1")

        first.state = "stepB"
        any_store.save(first)

        second.state = "fail"
        with pytest.raises(ConcurrentModificationError) as exc_info:
            any_store.save(second)
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 2
        assert second.version == 1
        assert any_store.get("1").state == "stepB"

    def test_new_record_with_existing_id_is_rejected(self, any_store):
        any_store.save(make_record("1"))
        with pytest.raises(ConcurrentModificationError):
            any_store.save(make_record("1"))

    def test_saved_snapshot_is_detached_from_caller(self, any_store):
        record = make_record("1", items=[1])
        any_store.save(record)
        record.payload["items"].append(2)
        record.state = "stepB"

        loaded = any_store.get("1")
        assert loaded.payload == {"items": [1]}
        assert loaded.state == "stepA"

    def test_rejects_foreign_record_types(self, any_store):
        class Plain:
            record_id = "p"
            state = "stepA"

        with pytest.raises(StorageError):
            any_store.save(Plain())


class TestFileStateStore:
    def test_survives_reopen(self, registry, tmp_path):
        FileStateStore(registry, tmp_path).save(make_record("1"))
        reopened = FileStateStore(registry, tmp_path)
        assert reopened.get("1").state == "stepA"

    def test_writes_readable_json_and_no_temp_file(self, registry, tmp_path):
        store = FileStateStore(registry, tmp_path)
        store.save(make_record("1"))

        path = tmp_path / "records" / "1.json"
        assert json.loads(path.read_text())["state"] == "stepA"
        assert not (tmp_path / "records" / "1.tmp").exists()

    def test_corrupted_file_is_skipped_on_scan(self, registry, tmp_path):
        store = FileStateStore(registry, tmp_path)
        store.save(make_record("good"))
        (tmp_path / "records" / "bad.json").write_text("{not json")

        assert [r.record_id for r in store.find_unfinished()] == ["good"]
        with pytest.raises(StorageError):
            store.get("bad")

    def test_rejects_path_like_ids(self, registry, tmp_path):
        store = FileStateStore(registry, tmp_path)
        with pytest.raises(StorageError):
            store.save(WorkflowRecord("../escape", "stepA"))


class TestSqlStateStore:
    def test_survives_reopen(self, registry, tmp_path):
        url = f"sqlite:///{tmp_path / 'nested' / 'db.sqlite'}"
        with SqlStateStore(registry, url) as store:
            store.save(make_record("1"))
        with SqlStateStore(registry, url) as store:
            assert store.get("1").state == "stepA"

    def test_bad_url_is_a_storage_error(self, registry):
        with pytest.raises(StorageError):
            SqlStateStore(registry, "nosuchdialect://x")
