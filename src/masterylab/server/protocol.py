"""JSON-lines messages between the session engine and a rendering front-end.

A front-end sends one request per line and gets exactly one response with the
same id. The server may also push notifications when the learner unlocks
mastery or finishes the session.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

# Methods a front-end may call; the handler maps each to a session transition
# or a read-only view.
METHODS = (
    "listCourses",
    "loadCourse",
    "getState",
    "start",
    "getHint",
    "submit",
    "retry",
    "advance",
    "restart",
    "getMastery",
    "getTelemetry",
)

MASTERY_UNLOCKED = "masteryUnlocked"
SESSION_COMPLETE = "sessionComplete"


@dataclass
class Request:
    id: int
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> Request:
        """Validate the envelope; method names are checked by the handler."""
        if not isinstance(data, Mapping):
            raise ValueError("Request must be a JSON object")
        method = data.get("method")
        if not isinstance(method, str) or not method:
            raise ValueError("Request is missing 'method'")
        req_id = data.get("id", 0)
        if isinstance(req_id, bool) or not isinstance(req_id, int):
            raise ValueError(f"Request id must be an integer, got {req_id!r}")
        params = data.get("params")
        if params is None:
            params = {}
        elif not isinstance(params, Mapping):
            raise ValueError(f"{method}: params must be an object")
        return cls(id=req_id, method=method, params=dict(params))

    @property
    def course_id(self) -> Optional[str]:
        return self.params.get("courseId")

    @property
    def response(self) -> Any:
        """The learner's answer payload carried by ``submit``."""
        return self.params.get("response")

    def to_message(self) -> dict:
        return {"method": self.method, "params": self.params}


@dataclass
class Response:
    """Exactly one of result or error is sent."""
    id: int
    result: Optional[dict] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, req_id: int, error: Exception | str) -> Response:
        return cls(id=req_id, error=str(error))

    def to_json_line(self) -> str:
        d: dict[str, Any] = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return json.dumps(d) + "\n"


@dataclass
class Notification:
    """Server-initiated event; no response expected."""
    method: str
    params: dict = field(default_factory=dict)

    @classmethod
    def mastery_unlocked(cls, course_id: str, mastery: dict) -> Notification:
        return cls(MASTERY_UNLOCKED, {"courseId": course_id, **mastery})

    @classmethod
    def session_complete(cls, course_id: str, mastery: dict, attempts: int) -> Notification:
        return cls(SESSION_COMPLETE, {"courseId": course_id, "attempts": attempts, **mastery})

    def to_json_line(self) -> str:
        return json.dumps({"method": self.method, "params": self.params}) + "\n"
