"""Versioned session snapshot schema and migration.

Version history:
  1  camelCase top level from the first web release: ``currentIndex``,
     ``incorrectItems``, snake_case history entries that may lack
     ``retries``, Triage bins keyed ``Vulnerability``/``Mitigation``.
  2  current: ``currentItemIndex``, ``incorrectSet``, camelCase history,
     lowercase bin ids, ``schemaVersion``.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

CURRENT_SCHEMA_VERSION = 2

_BIN_KEYS = {"Vulnerability": "vulnerability", "Mitigation": "mitigation"}
_HISTORY_KEYS = {
    "item_id": "itemId",
    "latency_ms": "latencyMs",
    "hints_used": "hintsUsed",
    "misconception_id": "misconceptionId",
}


class SnapshotError(ValueError):
    """Raised when a stored snapshot cannot be read or migrated."""


class HistoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str = Field(alias="itemId")
    correct: bool
    latency_ms: int = Field(default=0, alias="latencyMs", ge=0)
    hints_used: int = Field(default=0, alias="hintsUsed", ge=0)
    misconception_id: Optional[str] = Field(default=None, alias="misconceptionId")
    retries: int = Field(default=0, ge=0)


class SessionSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    started: bool = False
    current_item_index: int = Field(default=0, alias="currentItemIndex", ge=0)
    history: list[HistoryEntry] = Field(default_factory=list)
    seen_counts: list[int] = Field(default_factory=list, alias="seenCounts")
    incorrect_set: list[int] = Field(default_factory=list, alias="incorrectSet")
    item_mastered: bool = Field(default=False, alias="itemMastered")
    retries_on_current_item: int = Field(default=0, alias="retriesOnCurrentItem", ge=0)
    session_completed: bool = Field(default=False, alias="sessionCompleted")
    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION, alias="schemaVersion")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def _normalize_bins(value: Any) -> Any:
    if isinstance(value, list):
        return [_normalize_bins(v) for v in value]
    if isinstance(value, dict):
        return {_BIN_KEYS.get(k, k): _normalize_bins(v) for k, v in value.items()}
    return value


def _migrate_history_entry(entry: dict) -> dict:
    migrated = {_HISTORY_KEYS.get(k, k): v for k, v in entry.items()}
    if migrated.get("retries") is None:
        migrated["retries"] = 0
    return _normalize_bins(migrated)


def _v1_to_v2(data: dict) -> dict:
    migrated = dict(data)
    if "currentIndex" in migrated:
        migrated.setdefault("currentItemIndex", migrated.pop("currentIndex"))
    if "incorrectItems" in migrated:
        migrated.setdefault("incorrectSet", migrated.pop("incorrectItems"))
    migrated["history"] = [
        _migrate_history_entry(h) for h in migrated.get("history") or [] if isinstance(h, dict)
    ]
    migrated["schemaVersion"] = 2
    return _normalize_bins(migrated)


_MIGRATIONS = {1: _v1_to_v2}


def migrate_snapshot(data: Any) -> dict:
    """Bring a stored snapshot of any known version to the current schema.

    Pure and idempotent: a current-version record comes back unchanged (as a
    copy). Raises SnapshotError for non-mapping input or unknown versions.
    """
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot is not a mapping")
    # First-release records carry no version field
    version = data.get("schemaVersion")
    if version is None:
        version = 1
    # bool is an int subclass; True must not pass as version 1
    if isinstance(version, bool) or not isinstance(version, int):
        raise SnapshotError(f"Unsupported snapshot schema version: {version!r}")
    if version < 1 or version > CURRENT_SCHEMA_VERSION:
        raise SnapshotError(f"Unsupported snapshot schema version: {version!r}")

    migrated = dict(data)
    while version < CURRENT_SCHEMA_VERSION:
        migrated = _MIGRATIONS[version](migrated)
        version = migrated["schemaVersion"]
    return migrated


def parse_snapshot(data: Any) -> SessionSnapshot:
    """Migrate and validate a stored record; raises SnapshotError if unusable."""
    migrated = migrate_snapshot(data)
    try:
        return SessionSnapshot.model_validate(migrated)
    except ValidationError as e:
        raise SnapshotError(f"Invalid snapshot: {e}") from e
