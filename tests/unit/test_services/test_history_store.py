"""Unit tests for measurement history persistence."""
import pytest

from hidemeter.core.entities import MeasurementRecord
from hidemeter.services.history_store import HISTORY_KEY, MeasurementHistory
from hidemeter.services.storage import InMemoryStore


@pytest.fixture
def history(memory_store):
    return MeasurementHistory(memory_store)


def make_record(result, name, timestamp=1700000000000):
    return MeasurementRecord.from_result(result, name, timestamp=timestamp)


class TestHistory:
    def test_starts_empty(self, history):
        assert len(history) == 0
        assert history.records() == []

    def test_newest_first(self, history, auto_result):
        first = make_record(auto_result, "a.jpg")
        second = make_record(auto_result, "b.jpg")
        history.add(first)
        history.add(second)

        assert [r.image_name for r in history.records()] == ["b.jpg", "a.jpg"]

    def test_persisted_and_reloaded(self, memory_store, auto_result):
        record = make_record(auto_result, "couro.jpg")
        MeasurementHistory(memory_store).add(record)

        reloaded = MeasurementHistory(memory_store)
        assert reloaded.records() == [record]
        assert reloaded.get(record.id) == record

    def test_records_returns_copy(self, history, auto_result):
        history.add(make_record(auto_result, "a.jpg"))
        history.records().clear()
        assert len(history) == 1

    def test_delete(self, history, auto_result):
        record = make_record(auto_result, "a.jpg")
        history.add(record)

        assert history.delete(record.id)
        assert not history.delete(record.id)
        assert history.get(record.id) is None

    def test_clear(self, memory_store, auto_result):
        history = MeasurementHistory(memory_store)
        history.add(make_record(auto_result, "a.jpg"))
        assert history.clear()
        assert memory_store.get(HISTORY_KEY) == []


class TestCorruptHistory:
    def test_unparseable_starts_empty(self, memory_store):
        memory_store.set_raw(HISTORY_KEY, "not json at all")
        assert len(MeasurementHistory(memory_store)) == 0

    def test_non_list_starts_empty(self, memory_store):
        memory_store.set(HISTORY_KEY, {"oops": True})
        assert len(MeasurementHistory(memory_store)) == 0

    def test_bad_records_skipped(self, memory_store, auto_result):
        good = make_record(auto_result, "ok.jpg").to_dict()
        memory_store.set(HISTORY_KEY, [good, {"id": "x"}, "junk"])

        history = MeasurementHistory(memory_store)
        assert [r.image_name for r in history.records()] == ["ok.jpg"]


class TestQuota:
    def test_quota_failure_keeps_memory_and_warns(self, auto_result):
        store = InMemoryStore(quota_bytes=200)
        history = MeasurementHistory(store)

        assert not history.add(make_record(auto_result, "big.jpg"))
        assert len(history) == 1
        assert "could not be saved" in history.last_warning
        assert store.get(HISTORY_KEY) is None

    def test_warning_cleared_after_successful_write(self, auto_result):
        store = InMemoryStore(quota_bytes=200)
        history = MeasurementHistory(store)
        history.add(make_record(auto_result, "big.jpg"))

        assert history.clear()
        assert history.last_warning is None
