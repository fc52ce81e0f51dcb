"""Tests for the key-value store and telemetry log."""

import pytest

from masterylab.engine.telemetry import TelemetryLog
from masterylab.state.store import KeyValueStore, session_key, telemetry_key


class TestKeyValueStore:
    def test_missing_key(self, store):
        assert store.get("nope") is None

    def test_put_get(self, store):
        store.put("a", {"x": [1, 2]})
        assert store.get("a") == {"x": [1, 2]}
        store.put("a", 3)
        assert store.get("a") == 3

    def test_append(self, store):
        store.append("log", {"n": 1})
        store.append("log", {"n": 2})
        assert store.get("log") == [{"n": 1}, {"n": 2}]

    def test_delete(self, store):
        store.put("a", 1)
        store.delete("a")
        assert store.get("a") is None
        store.delete("a")

    def test_keys_by_prefix(self, store):
        store.put(session_key("c1"), {})
        store.put(telemetry_key("c1"), [])
        store.put(session_key("c2"), {})
        assert store.keys("c1:") == ["c1:session", "c1:telemetry"]
        assert len(store.keys()) == 3

    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "state.db"
        KeyValueStore(db_path=path).put("k", "v")
        assert KeyValueStore(db_path=path).get("k") == "v"


class TestTelemetryLog:
    def test_records_are_persisted(self, store):
        log = TelemetryLog(store, course_id="c1")
        log.record("attempt", itemId="A", correct=True, misconceptionId=None)
        (event,) = store.get(telemetry_key("c1"))
        assert event["type"] == "attempt"
        assert event["itemId"] == "A"
        assert "misconceptionId" not in event
        assert "timestamp" in event

    def test_fields_are_copied(self):
        log = TelemetryLog()
        response = {"order": ["a", "b"]}
        log.record("attempt", response=response)
        response["order"].append("c")
        assert log.events()[0]["response"] == {"order": ["a", "b"]}

    def test_failing_store_keeps_memory_copy(self, tmp_path):
        class BrokenStore(KeyValueStore):
            def append(self, key, value):
                raise OSError("read-only")

            def get(self, key):
                raise OSError("read-only")

        log = TelemetryLog(BrokenStore(db_path=tmp_path / "t.db"))
        log.record("session_start")
        assert [e["type"] for e in log.events()] == ["session_start"]

    @pytest.mark.parametrize("course", ["iot_basics", "other"])
    def test_keys_per_course(self, store, course):
        TelemetryLog(store, course_id=course).record("session_start")
        assert store.keys(course) == [telemetry_key(course)]
