"""Unit tests for the storage backends."""
import json
import os
from unittest.mock import patch

import pytest

from hidemeter.core.exceptions import PersistenceError, StorageCapacityError
from hidemeter.services.storage import InMemoryStore, JsonFileStore


class TestInMemoryStore:
    def test_set_get_delete(self, memory_store):
        assert memory_store.get("k") is None
        memory_store.set("k", {"a": [1, 2]})
        assert memory_store.get("k") == {"a": [1, 2]}
        memory_store.delete("k")
        assert memory_store.get("k") is None

    def test_delete_missing_is_noop(self, memory_store):
        memory_store.delete("missing")

    def test_corrupt_value(self, memory_store):
        memory_store.set_raw("k", "{not json")
        with pytest.raises(PersistenceError):
            memory_store.get("k")

    def test_quota(self):
        store = InMemoryStore(quota_bytes=20)
        store.set("a", "x" * 10)
        with pytest.raises(StorageCapacityError):
            store.set("b", "y" * 10)
        assert store.get("b") is None

    def test_overwrite_does_not_count_old_value(self):
        store = InMemoryStore(quota_bytes=20)
        store.set("a", "x" * 15)
        store.set("a", "z" * 15)
        assert store.get("a") == "z" * 15


class TestJsonFileStore:
    def test_round_trip(self, temp_dir):
        store = JsonFileStore(str(temp_dir / "storage"))
        store.set("measurement_history", [{"area": 1.5, "name": "Couro Ä"}])

        assert store.get("measurement_history") == [{"area": 1.5, "name": "Couro Ä"}]
        assert (temp_dir / "storage" / "measurement_history.json").exists()

    def test_missing_key(self, temp_dir):
        assert JsonFileStore(str(temp_dir)).get("nothing") is None

    def test_key_is_sanitized(self, temp_dir):
        store = JsonFileStore(str(temp_dir))
        store.set("../escape", 1)
        assert (temp_dir / "___escape.json").exists()
        assert store.get("../escape") == 1

    def test_empty_key_rejected(self, temp_dir):
        with pytest.raises(PersistenceError):
            JsonFileStore(str(temp_dir)).set("", 1)

    def test_corrupt_file(self, temp_dir):
        (temp_dir / "history.json").write_text("[{broken", encoding="utf-8")
        with pytest.raises(PersistenceError):
            JsonFileStore(str(temp_dir)).get("history")

    def test_quota_exceeded_keeps_previous_file(self, temp_dir):
        store = JsonFileStore(str(temp_dir), quota_bytes=64)
        store.set("k", "small")
        with pytest.raises(StorageCapacityError):
            store.set("k", "x" * 200)
        assert store.get("k") == "small"

    def test_no_temp_files_left(self, temp_dir):
        store = JsonFileStore(str(temp_dir))
        store.set("k", {"v": 1})
        assert [p.name for p in temp_dir.iterdir()] == ["k.json"]

    def test_failed_replace_raises_and_cleans_up(self, temp_dir):
        store = JsonFileStore(str(temp_dir))
        with patch("hidemeter.services.storage.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError, match="disk full"):
                store.set("k", [1])
        assert not any(p.name.startswith(".k.json.tmp") for p in temp_dir.iterdir())

    def test_delete(self, temp_dir):
        store = JsonFileStore(str(temp_dir))
        store.set("k", 1)
        store.delete("k")
        store.delete("k")
        assert store.get("k") is None

    def test_file_is_plain_json(self, temp_dir):
        store = JsonFileStore(str(temp_dir))
        store.set("k", {"b": 2})
        with open(os.path.join(temp_dir, "k.json"), encoding="utf-8") as f:
            assert json.load(f) == {"b": 2}
