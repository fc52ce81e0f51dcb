"""Session state machine: start → item → hint* → feedback → retry | advance → complete."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from loguru import logger

from masterylab.config.settings import MasteryConfig, SelectionConfig
from masterylab.engine import telemetry as events
from masterylab.engine.adaptive import choose_next, recent_ids
from masterylab.engine.evaluator import EvalResult, Evaluator
from masterylab.engine.item_bank import Item, ItemBank
from masterylab.engine.mastery import AttemptRecord, MasteryStats, compute_mastery
from masterylab.engine.telemetry import TelemetryLog, TelemetrySink
from masterylab.state.snapshot import SessionSnapshot, SnapshotError, parse_snapshot
from masterylab.state.store import KeyValueStore, session_key


class SessionPhase(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"  # Item presented, awaiting a response
    FEEDBACK = "feedback"  # Attempt evaluated, awaiting retry or advance
    COMPLETE = "complete"  # No missed item remains


@dataclass
class SessionState:
    phase: SessionPhase = SessionPhase.NOT_STARTED
    current_item_index: int = 0
    history: list[AttemptRecord] = field(default_factory=list)
    seen_counts: list[int] = field(default_factory=list)
    incorrect_set: set[int] = field(default_factory=set)
    hint_index: int = -1
    item_mastered: bool = False
    retries_on_current_item: int = 0
    start_timestamp: float = 0.0
    last_result: Optional[EvalResult] = None

    @classmethod
    def fresh(cls, item_count: int) -> "SessionState":
        return cls(seen_counts=[0] * item_count)


class SessionRunner:
    """Drives one learner's session over an item bank.

    Transitions that are not legal in the current phase, and submissions
    missing the fields their mechanic needs, are ignored: the method returns
    ``False``/``None`` and nothing changes. Persistence is best effort; the
    first failed write switches the runner to in-memory operation.
    """

    def __init__(
        self,
        bank: ItemBank,
        store: Optional[KeyValueStore] = None,
        telemetry: Optional[TelemetrySink] = None,
        mastery_config: Optional[MasteryConfig] = None,
        selection: Optional[SelectionConfig] = None,
        evaluator: Optional[Evaluator] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        course_id: str = "default",
    ):
        self.bank = bank
        self.store = store
        self.course_id = course_id
        self.telemetry = telemetry or TelemetryLog(store, course_id=course_id)
        self.mastery_config = mastery_config or MasteryConfig()
        self.selection = selection or SelectionConfig()
        self.evaluator = evaluator or Evaluator()
        self.clock = clock
        self.rng = rng or random.Random(self.selection.seed)
        self.state = SessionState.fresh(len(bank))
        self._persistence_failed = False

    # --- Read-only views ---

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def current_item(self) -> Optional[Item]:
        if self.state.phase in (SessionPhase.ACTIVE, SessionPhase.FEEDBACK):
            return self.bank[self.state.current_item_index]
        return None

    @property
    def current_hint(self) -> Optional[str]:
        item = self.current_item
        if item is None or self.state.hint_index < 0:
            return None
        return item.hint_ladder[self.state.hint_index]

    @property
    def coverage_complete(self) -> bool:
        """Every item attempted and none currently missed."""
        return all(c > 0 for c in self.state.seen_counts) and not self.state.incorrect_set

    def mastery(self) -> MasteryStats:
        return compute_mastery(self.state.history, self.mastery_config)

    def summary(self) -> dict:
        s = self.state
        return {
            "phase": s.phase.value,
            "currentItemIndex": s.current_item_index,
            "hintIndex": s.hint_index,
            "itemMastered": s.item_mastered,
            "retriesOnCurrentItem": s.retries_on_current_item,
            "seenCounts": list(s.seen_counts),
            "incorrectSet": sorted(s.incorrect_set),
            "attempts": len(s.history),
            "coverageComplete": self.coverage_complete,
            "mastery": self.mastery().to_dict(),
        }

    # --- Transitions ---

    def start(self) -> bool:
        if self.state.phase is not SessionPhase.NOT_STARTED:
            logger.debug(f"Ignoring start in phase {self.state.phase.value}")
            return False

        first = self._choose_next()
        self._present(first if first is not None else 0)
        self.telemetry.record(events.SESSION_START)
        logger.info(f"Session started for course {self.course_id}")
        self._persist()
        return True

    def request_hint(self) -> Optional[str]:
        """Reveal the next hint of the current item; None when none is left."""
        item = self.current_item
        if self.state.phase is not SessionPhase.ACTIVE or item is None:
            return None

        next_index = self.state.hint_index + 1
        if next_index >= len(item.hint_ladder):
            return None

        self.state.hint_index = next_index
        hint = item.hint_ladder[next_index]
        self.telemetry.record(
            events.HINT_SHOWN, itemId=item.id, hintIndex=next_index, hintText=hint,
        )
        self._persist()
        return hint

    def submit(self, response: Any) -> Optional[EvalResult]:
        """Evaluate a response to the current item; None if the submission is ignored."""
        item = self.current_item
        if self.state.phase is not SessionPhase.ACTIVE or item is None:
            logger.debug(f"Ignoring submit in phase {self.state.phase.value}")
            return None
        if not self.evaluator.is_well_formed(item, response):
            logger.debug(f"Ignoring malformed response for {item.id}")
            return None

        s = self.state
        latency_ms = max(0, int(round((self.clock() - s.start_timestamp) * 1000)))
        result = self.evaluator.evaluate(item, response)
        hints_used = s.hint_index + 1

        s.history.append(AttemptRecord(
            item_id=item.id,
            correct=result.correct,
            latency_ms=latency_ms,
            hints_used=hints_used,
            misconception_id=result.misconception_id,
            retries=s.retries_on_current_item,
        ))
        s.seen_counts[s.current_item_index] += 1

        if result.correct:
            s.item_mastered = True
            s.incorrect_set.discard(s.current_item_index)
        else:
            s.retries_on_current_item += 1
            s.incorrect_set.add(s.current_item_index)

        s.last_result = result
        s.phase = SessionPhase.FEEDBACK

        self.telemetry.record(
            events.ATTEMPT,
            itemId=item.id,
            objectiveId=item.objective_id,
            mechanic=item.mechanic.value,
            correct=result.correct,
            latencyMs=latency_ms,
            hintsUsed=hints_used,
            misconceptionId=result.misconception_id,
            response=dict(response),
        )
        self._persist()
        return result

    def retry(self) -> bool:
        s = self.state
        if s.phase is not SessionPhase.FEEDBACK or s.last_result is None or s.last_result.correct:
            logger.debug("Ignoring retry: last attempt was not an incorrect one")
            return False

        # item_mastered and the retry count carry over to the next attempt
        s.phase = SessionPhase.ACTIVE
        s.hint_index = -1
        s.start_timestamp = self.clock()
        s.last_result = None
        self._persist()
        return True

    def advance(self) -> bool:
        """Move past a mastered item; completes the session when nothing is left."""
        s = self.state
        if s.phase is not SessionPhase.FEEDBACK or not s.item_mastered:
            logger.debug("Ignoring advance: current item not answered correctly yet")
            return False

        next_index = self._choose_next()
        if next_index is None:
            s.phase = SessionPhase.COMPLETE
            s.last_result = None
            stats = self.mastery()
            self.telemetry.record(
                events.SESSION_COMPLETE,
                finalStreak=stats.streak,
                finalAvgLatency=stats.avg_latency_ms,
                finalHints=stats.total_hints,
                totalItems=len(s.history),
            )
            logger.info(f"Session complete for course {self.course_id} after {len(s.history)} attempts")
            self._persist()
            return True

        self._present(next_index)
        self._persist()
        return True

    def restart(self) -> None:
        """Discard all progress, including the saved snapshot."""
        self.state = SessionState.fresh(len(self.bank))
        # A stale record left by an earlier failed write must not survive restart
        self._persistence_failed = False
        if self.store is not None:
            try:
                self.store.delete(session_key(self.course_id))
            except Exception as e:
                self._persistence_error("clear", e)
        self.telemetry.record(events.SESSION_RESTART)

    # --- Persistence ---

    def load_snapshot(self) -> Optional[SessionSnapshot]:
        """Read the saved snapshot; unreadable or corrupt records count as absent."""
        if self.store is None:
            return None
        try:
            raw = self.store.get(session_key(self.course_id))
        except Exception as e:
            logger.warning(f"Could not read saved session for {self.course_id}: {e}")
            return None
        if raw is None:
            return None
        try:
            return parse_snapshot(raw)
        except SnapshotError as e:
            logger.warning(f"Discarding saved session for {self.course_id}: {e}")
            return None

    def resume(self) -> bool:
        """Restore a saved, unfinished session in place of a fresh start."""
        if self.state.phase is not SessionPhase.NOT_STARTED:
            return False
        snap = self.load_snapshot()
        if snap is None or not snap.started or snap.session_completed:
            return False

        count = len(self.bank)
        if len(snap.seen_counts) != count or snap.current_item_index >= count:
            logger.warning(f"Saved session for {self.course_id} does not fit the item bank")
            return False

        seen = [max(0, c) for c in snap.seen_counts]
        self.state = SessionState(
            phase=SessionPhase.ACTIVE,
            current_item_index=snap.current_item_index,
            history=[AttemptRecord.from_dict(h.model_dump(by_alias=True)) for h in snap.history],
            seen_counts=seen,
            incorrect_set={i for i in snap.incorrect_set if 0 <= i < count and seen[i] > 0},
            item_mastered=snap.item_mastered,
            retries_on_current_item=snap.retries_on_current_item,
            start_timestamp=self.clock(),
        )
        logger.info(f"Resumed session for {self.course_id} at item {snap.current_item_index}")
        return True

    def snapshot(self) -> SessionSnapshot:
        s = self.state
        return SessionSnapshot(
            started=s.phase is not SessionPhase.NOT_STARTED,
            current_item_index=s.current_item_index,
            history=[r.to_dict() for r in s.history],
            seen_counts=list(s.seen_counts),
            incorrect_set=sorted(s.incorrect_set),
            item_mastered=s.item_mastered,
            retries_on_current_item=s.retries_on_current_item,
            session_completed=s.phase is SessionPhase.COMPLETE,
        )

    def _persist(self) -> None:
        if self.store is None or self._persistence_failed:
            return
        try:
            self.store.put(session_key(self.course_id), self.snapshot().to_record())
        except Exception as e:
            self._persistence_error("save", e)

    def _persistence_error(self, action: str, error: Exception) -> None:
        logger.warning(
            f"Could not {action} session for {self.course_id}: {error}. Continuing in memory."
        )
        self._persistence_failed = True

    # --- Helpers ---

    def _choose_next(self) -> Optional[int]:
        s = self.state
        return choose_next(
            seen_counts=s.seen_counts,
            incorrect_set=s.incorrect_set,
            recent_item_ids=recent_ids(
                [r.item_id for r in s.history], self.selection.recent_window
            ),
            item_ids=self.bank.ids,
            strategy=self.selection.strategy,
            rng=self.rng,
        )

    def _present(self, index: int) -> None:
        s = self.state
        s.phase = SessionPhase.ACTIVE
        s.current_item_index = index
        s.hint_index = -1
        s.item_mastered = False
        s.retries_on_current_item = 0
        s.start_timestamp = self.clock()
        s.last_result = None
