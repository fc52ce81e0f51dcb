"""Server handler: dispatches JSON-lines requests to the session engine."""

from __future__ import annotations

from typing import Callable, Optional

from masterylab.config.settings import Settings
from masterylab.courses.registry import CourseRegistry
from masterylab.engine.feedback import build_feedback
from masterylab.engine.item_bank import Item
from masterylab.engine.session_runner import SessionPhase, SessionRunner
from masterylab.state.store import KeyValueStore

from .protocol import METHODS, Notification


def _item_to_dict(item: Optional[Item]) -> dict:
    """Presentation data only; answer keys and detectors stay server-side."""
    if item is None:
        return {}
    return {
        "id": item.id,
        "objectiveId": item.objective_id,
        "mechanic": item.mechanic.value,
        "difficulty": item.difficulty,
        "stimulus": item.stimulus,
        "hintCount": len(item.hint_ladder),
        "options": [{"id": o.id, "label": o.label} for o in item.options],
        "steps": list(item.steps),
        "pairsLeft": list(item.pairs_left),
        "pairsRight": list(item.pairs_right),
        "cards": list(item.cards),
        "bins": list(item.bins),
    }


class ServerHandler:
    """Routes incoming requests to the session runner and returns result dicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        write_notification: Optional[Callable[[Notification], None]] = None,
    ):
        self.settings = settings or Settings.load()
        self._write_notification = write_notification or (lambda n: None)

        self.registry = CourseRegistry()
        self.store = KeyValueStore(db_path=self.settings.db_path)

        self._runner: Optional[SessionRunner] = None
        self._current_course_id: Optional[str] = None

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        method = msg.get("method", "")
        params = msg.get("params") or {}

        handler_map = {
            "listCourses": self._list_courses,
            "loadCourse": self._load_course,
            "getState": self._get_state,
            "start": self._start,
            "getHint": self._get_hint,
            "submit": self._submit,
            "retry": self._retry,
            "advance": self._advance,
            "restart": self._restart,
            "getMastery": self._get_mastery,
            "getTelemetry": self._get_telemetry,
        }

        if method not in METHODS:
            raise ValueError(f"Unknown method: {method}")

        return await handler_map[method](params)

    def _require_runner(self) -> SessionRunner:
        if self._runner is None:
            raise ValueError("No course loaded")
        return self._runner

    def _state(self) -> dict:
        runner = self._require_runner()
        return {
            "courseId": self._current_course_id,
            "item": _item_to_dict(runner.current_item),
            "hint": runner.current_hint,
            "totalItems": len(runner.bank),
            **runner.summary(),
        }

    async def _list_courses(self, params: dict) -> dict:
        courses = self.registry.list_courses()
        return {
            "courses": [
                {
                    "id": c.id,
                    "title": c.title,
                    "description": c.description,
                    "version": c.version,
                    "objectives": [{"id": o.id, "text": o.text} for o in c.objectives],
                }
                for c in courses
            ]
        }

    async def _load_course(self, params: dict) -> dict:
        course_id = params["courseId"]
        course = self.registry.get_course(course_id)
        if course is None:
            raise ValueError(f"Unknown course: {course_id}")

        bank = self.registry.load_bank(course)
        self._current_course_id = course_id
        self._runner = SessionRunner(
            bank=bank,
            store=self.store,
            mastery_config=course.mastery or self.settings.mastery,
            selection=self.settings.selection,
            course_id=course_id,
        )
        resumed = self._runner.resume()
        return {"resumed": resumed, **self._state()}

    async def _get_state(self, params: dict) -> dict:
        return self._state()

    async def _start(self, params: dict) -> dict:
        started = self._require_runner().start()
        return {"started": started, **self._state()}

    async def _get_hint(self, params: dict) -> dict:
        runner = self._require_runner()
        hint = runner.request_hint()
        return {"hint": hint, "hintIndex": runner.state.hint_index}

    async def _submit(self, params: dict) -> dict:
        runner = self._require_runner()
        item = runner.current_item
        was_met = runner.mastery().mastery_met

        result = runner.submit(params.get("response"))
        if result is None or item is None:
            return {"accepted": False, **self._state()}

        stats = runner.mastery()
        if stats.mastery_met and not was_met:
            self._write_notification(
                Notification.mastery_unlocked(self._current_course_id, stats.to_dict())
            )

        return {
            "accepted": True,
            "feedback": build_feedback(item, result).to_dict(),
            **self._state(),
        }

    async def _retry(self, params: dict) -> dict:
        ok = self._require_runner().retry()
        return {"ok": ok, **self._state()}

    async def _advance(self, params: dict) -> dict:
        runner = self._require_runner()
        ok = runner.advance()
        complete = runner.phase is SessionPhase.COMPLETE
        if ok and complete:
            self._write_notification(Notification.session_complete(
                self._current_course_id, runner.mastery().to_dict(), len(runner.state.history),
            ))
        return {"ok": ok, "complete": complete, **self._state()}

    async def _restart(self, params: dict) -> dict:
        self._require_runner().restart()
        return self._state()

    async def _get_mastery(self, params: dict) -> dict:
        runner = self._require_runner()
        return {
            **runner.mastery().to_dict(),
            "coverageComplete": runner.coverage_complete,
        }

    async def _get_telemetry(self, params: dict) -> dict:
        return {"events": self._require_runner().telemetry.events()}
