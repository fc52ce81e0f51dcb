"""Tests for snapshot migration and validation."""

import pytest

from masterylab.state.snapshot import (
    CURRENT_SCHEMA_VERSION,
    SessionSnapshot,
    SnapshotError,
    migrate_snapshot,
    parse_snapshot,
)

V1 = {
    "started": True,
    "currentIndex": 2,
    "history": [
        {"item_id": "IOT-1", "correct": False, "latency_ms": 4200, "hints_used": 1,
         "misconception_id": "internet_equals_iot"},
        {"item_id": "IOT-1", "correct": True, "latency_ms": 3000, "hints_used": 0, "retries": 1},
        {"item_id": "TRIAGE-1", "correct": False, "latency_ms": 9000, "hints_used": 0,
         "response": {"bins": {"Vulnerability": ["a"], "Mitigation": ["b"]}}},
    ],
    "seenCounts": [2, 1, 1],
    "incorrectItems": [2],
}


class TestMigration:
    def test_v1_is_upgraded(self):
        migrated = migrate_snapshot(V1)
        assert migrated["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert migrated["currentItemIndex"] == 2
        assert migrated["incorrectSet"] == [2]
        assert "currentIndex" not in migrated

    def test_history_is_kept(self):
        history = migrate_snapshot(V1)["history"]
        assert len(history) == 3
        assert history[0]["itemId"] == "IOT-1"
        assert history[0]["misconceptionId"] == "internet_equals_iot"
        assert [h["retries"] for h in history] == [0, 1, 0]

    def test_bin_keys_lowercased(self):
        response = migrate_snapshot(V1)["history"][2]["response"]
        assert response == {"bins": {"vulnerability": ["a"], "mitigation": ["b"]}}

    def test_top_level_bin_keys_lowercased(self):
        migrated = migrate_snapshot({"started": True, "bins": {"Vulnerability": ["a"], "Mitigation": []}})
        assert migrated["bins"] == {"vulnerability": ["a"], "mitigation": []}

    def test_boolean_version_is_not_v1(self):
        record = dict(V1, schemaVersion=True)
        with pytest.raises(SnapshotError, match="schema version"):
            migrate_snapshot(record)
        with pytest.raises(SnapshotError):
            parse_snapshot(record)

    def test_idempotent(self):
        once = migrate_snapshot(V1)
        assert migrate_snapshot(once) == once

    def test_input_not_mutated(self):
        original = {"started": True, "currentIndex": 1, "history": []}
        migrate_snapshot(original)
        assert original == {"started": True, "currentIndex": 1, "history": []}

    def test_current_version_unchanged(self):
        record = {"started": False, "currentItemIndex": 0, "schemaVersion": 2}
        assert migrate_snapshot(record) == record

    @pytest.mark.parametrize("data", [
        None, [], "snapshot",
        {"schemaVersion": 3}, {"schemaVersion": "2"}, {"schemaVersion": 0},
        {"schemaVersion": True}, {"schemaVersion": False},
    ])
    def test_unusable_input(self, data):
        with pytest.raises(SnapshotError):
            migrate_snapshot(data)


class TestParse:
    def test_parse_v1(self):
        snap = parse_snapshot(V1)
        assert snap.started
        assert snap.current_item_index == 2
        assert snap.history[1].retries == 1
        assert snap.history[0].latency_ms == 4200
        assert not snap.session_completed

    def test_invalid_fields(self):
        with pytest.raises(SnapshotError):
            parse_snapshot({"currentItemIndex": -1, "schemaVersion": 2})
        with pytest.raises(SnapshotError):
            parse_snapshot({"history": [{"correct": True}], "schemaVersion": 2})

    def test_record_uses_camel_case(self):
        record = SessionSnapshot(started=True, seen_counts=[1, 0]).to_record()
        assert record["seenCounts"] == [1, 0]
        assert record["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert parse_snapshot(record).seen_counts == [1, 0]
