"""Mastery statistics derived from the attempt history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from masterylab.config.settings import MasteryConfig


@dataclass(frozen=True)
class AttemptRecord:
    item_id: str
    correct: bool
    latency_ms: int
    hints_used: int = 0
    misconception_id: Optional[str] = None
    retries: int = 0

    def to_dict(self) -> dict:
        d = {
            "itemId": self.item_id,
            "correct": self.correct,
            "latencyMs": self.latency_ms,
            "hintsUsed": self.hints_used,
            "retries": self.retries,
        }
        if self.misconception_id is not None:
            d["misconceptionId"] = self.misconception_id
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "AttemptRecord":
        return cls(
            item_id=data["itemId"],
            correct=bool(data["correct"]),
            latency_ms=max(0, int(data.get("latencyMs", 0))),
            hints_used=max(0, int(data.get("hintsUsed", 0))),
            misconception_id=data.get("misconceptionId"),
            retries=max(0, int(data.get("retries", 0))),
        )


@dataclass(frozen=True)
class MasteryStats:
    streak: int
    avg_latency_ms: float
    total_hints: int
    mastery_met: bool

    def to_dict(self) -> dict:
        return {
            "streak": self.streak,
            "avgLatencyMs": self.avg_latency_ms,
            "totalHints": self.total_hints,
            "masteryMet": self.mastery_met,
        }


def compute_mastery(
    history: Sequence[AttemptRecord], config: Optional[MasteryConfig] = None
) -> MasteryStats:
    """Recompute mastery from scratch; never cached, so it cannot drift from history."""
    config = config or MasteryConfig()
    if not history:
        return MasteryStats(streak=0, avg_latency_ms=0, total_hints=0, mastery_met=False)

    streak = 0
    for record in reversed(history):
        if not record.correct:
            break
        streak += 1

    avg_latency = sum(r.latency_ms for r in history) / len(history)
    hints = sum(r.hints_used for r in history)

    met = (
        streak >= config.required_streak
        and avg_latency <= config.max_avg_latency_ms
        and hints <= config.max_hints
    )
    return MasteryStats(streak=streak, avg_latency_ms=avg_latency, total_hints=hints, mastery_met=met)
