"""Tests for the JSON-lines protocol message types."""

from __future__ import annotations

import json

import pytest

from masterylab.server.protocol import METHODS, Notification, Request, Response


class TestRequest:
    def test_from_dict_full(self):
        data = {"id": 1, "method": "submit", "params": {"response": {"choice_id": "opt_no"}}}
        req = Request.from_dict(data)
        assert req.id == 1
        assert req.method == "submit"
        assert req.params == {"response": {"choice_id": "opt_no"}}

    def test_from_dict_no_params(self):
        req = Request.from_dict({"id": 2, "method": "getState"})
        assert req.id == 2
        assert req.method == "getState"
        assert req.params == {}

    def test_default_id(self):
        assert Request.from_dict({"method": "listCourses"}).id == 0

    def test_missing_method(self):
        with pytest.raises(ValueError, match="method"):
            Request.from_dict({"id": 3})

    @pytest.mark.parametrize("data", [
        ["submit"],
        {"id": 4, "method": "submit", "params": ["opt_no"]},
        {"id": True, "method": "start"},
        {"id": "5", "method": "start"},
        {"id": 6, "method": ""},
    ])
    def test_invalid_envelope(self, data):
        with pytest.raises(ValueError):
            Request.from_dict(data)

    def test_engine_fields(self):
        req = Request.from_dict({"id": 7, "method": "submit", "params": {"response": {"order": ["a"]}}})
        assert req.response == {"order": ["a"]}
        assert req.course_id is None
        assert Request.from_dict({"method": "loadCourse", "params": {"courseId": "iot_basics"}}).course_id == "iot_basics"

    def test_to_message(self):
        req = Request.from_dict({"id": 8, "method": "getHint", "params": None})
        assert req.to_message() == {"method": "getHint", "params": {}}
        assert req.method in METHODS


class TestResponse:
    def test_success_json_line(self):
        resp = Response(id=1, result={"phase": "active"})
        line = resp.to_json_line()
        assert line.endswith("\n")
        assert json.loads(line) == {"id": 1, "result": {"phase": "active"}}

    def test_error_json_line(self):
        parsed = json.loads(Response(id=2, error="Unknown method: foo").to_json_line())
        assert parsed == {"id": 2, "error": "Unknown method: foo"}
        assert "result" not in parsed

    def test_null_result(self):
        parsed = json.loads(Response(id=3, result=None).to_json_line())
        assert parsed["result"] is None

    def test_failure_from_exception(self):
        parsed = json.loads(Response.failure(4, ValueError("No course loaded")).to_json_line())
        assert parsed == {"id": 4, "error": "No course loaded"}

class TestNotification:
    def test_json_line(self):
        notif = Notification("masteryUnlocked", {"streak": 3})
        line = notif.to_json_line()
        assert line.endswith("\n")
        assert json.loads(line) == {"method": "masteryUnlocked", "params": {"streak": 3}}

    def test_empty_params(self):
        parsed = json.loads(Notification("sessionComplete").to_json_line())
        assert parsed == {"method": "sessionComplete", "params": {}}

    def test_mastery_unlocked(self):
        notif = Notification.mastery_unlocked("iot_basics", {"streak": 3, "masteryMet": True})
        assert notif.method == "masteryUnlocked"
        assert notif.params == {"courseId": "iot_basics", "streak": 3, "masteryMet": True}

    def test_session_complete(self):
        notif = Notification.session_complete("iot_basics", {"streak": 10}, attempts=12)
        assert json.loads(notif.to_json_line()) == {
            "method": "sessionComplete",
            "params": {"courseId": "iot_basics", "attempts": 12, "streak": 10},
        }
