"""Tests for state stores."""

import json
import pytest
from infraweave.model.models import RecordStatus, StateRecord
from infraweave.state.store import JsonFileStateStore, MemoryStateStore
from infraweave.utils.errors import StateStoreError


def applied_record(decl_id="net", **updates):
    record = StateRecord(
        declaration_id=decl_id,
        resource_type="network",
        status=RecordStatus.APPLIED,
        last_applied_spec_hash="abc123",
        provider_assigned_id=f"network-{decl_id}",
        resolved_attributes={"id": f"network-{decl_id}", "cidr_block": "10.0.0.0/16"},
    )
    return record.model_copy(update=updates)


class TestMemoryStateStore:
    """Test MemoryStateStore."""

    def test_save_load_delete(self):
        with MemoryStateStore() as store:
            store.save("net", applied_record())
            assert store.load()["net"].provider_assigned_id == "network-net"
            assert store.load()["net"].updated_at is not None

            store.delete("net")
            store.delete("net")
            assert store.load() == {}

    def test_load_returns_copies(self):
        with MemoryStateStore() as store:
            store.save("net", applied_record())
            store.load()["net"].resolved_attributes["id"] = "tampered"

            assert store.load()["net"].resolved_attributes["id"] == "network-net"

    def test_closed_store_rejects_access(self):
        store = MemoryStateStore()

        with pytest.raises(StateStoreError, match="not open"):
            store.load()


class TestJsonFileStateStore:
    """Test JsonFileStateStore persistence."""

    def test_records_survive_reopen(self, tmp_path):
        path = tmp_path / "nested" / "state.json"

        with JsonFileStateStore(str(path)) as store:
            store.save("net", applied_record())
            store.save("db", applied_record("db", dependencies=["net"]))

        with JsonFileStateStore(str(path)) as store:
            records = store.load()

        assert sorted(records) == ["db", "net"]
        assert records["db"].dependencies == ["net"]
        assert records["net"].status == RecordStatus.APPLIED

    def test_each_save_is_written_immediately(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileStateStore(str(path)).open()

        store.save("net", applied_record())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["records"]["net"]["provider_assigned_id"] == "network-net"

    def test_delete_rewrites_file(self, tmp_path):
        path = tmp_path / "state.json"
        with JsonFileStateStore(str(path)) as store:
            store.save("net", applied_record())
            store.delete("net")

        assert json.loads(path.read_text(encoding="utf-8"))["records"] == {}

    def test_no_temporary_files_left_behind(self, tmp_path):
        with JsonFileStateStore(str(tmp_path / "state.json")) as store:
            store.save("net", applied_record())
            store.save("db", applied_record("db"))

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_missing_file_is_empty_state(self, tmp_path):
        with JsonFileStateStore(str(tmp_path / "absent.json")) as store:
            assert store.load() == {}

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StateStoreError, match="Invalid JSON"):
            JsonFileStateStore(str(path)).open()

    def test_unsupported_version(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"version": 99, "records": {}}), encoding="utf-8")

        with pytest.raises(StateStoreError, match="Unsupported state file version"):
            JsonFileStateStore(str(path)).open()

    def test_invalid_record(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"version": 1, "records": {"net": {"status": "Applied"}}}), encoding="utf-8")

        with pytest.raises(StateStoreError, match="Invalid state record 'net'"):
            JsonFileStateStore(str(path)).open()


class TestFailedWrites:
    """Test that a failed write leaves the store as it was."""

    @pytest.fixture
    def failing_replace(self, monkeypatch):
        def replace(src, dst):
            raise OSError("disk full")
        return lambda: monkeypatch.setattr("infraweave.state.store.os.replace", replace)

    def test_failed_save_keeps_previous_records(self, tmp_path, failing_replace):
        path = tmp_path / "state.json"
        with JsonFileStateStore(str(path)) as store:
            store.save("net", applied_record())
            failing_replace()

            with pytest.raises(StateStoreError, match="disk full"):
                store.save("db", applied_record("db"))

            assert list(store.load()) == ["net"]
        assert list(json.loads(path.read_text(encoding="utf-8"))["records"]) == ["net"]
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_failed_save_keeps_previous_version_of_record(self, tmp_path, failing_replace):
        with JsonFileStateStore(str(tmp_path / "state.json")) as store:
            store.save("net", applied_record())
            failing_replace()

            with pytest.raises(StateStoreError):
                store.save("net", applied_record(status=RecordStatus.FAILED, last_error="boom"))

            assert store.load()["net"].status == RecordStatus.APPLIED

    def test_failed_delete_keeps_record(self, tmp_path, failing_replace):
        path = tmp_path / "state.json"
        with JsonFileStateStore(str(path)) as store:
            store.save("net", applied_record())
            failing_replace()

            with pytest.raises(StateStoreError):
                store.delete("net")

            assert list(store.load()) == ["net"]
        assert list(json.loads(path.read_text(encoding="utf-8"))["records"]) == ["net"]
