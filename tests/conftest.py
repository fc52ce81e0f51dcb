"""Shared fixtures for MasteryLab tests."""

from __future__ import annotations

import random

import pytest
import yaml

from masterylab.config.settings import SelectionConfig
from masterylab.engine.item_bank import load_item_bank
from masterylab.engine.session_runner import SessionRunner
from masterylab.state.store import KeyValueStore


class FakeClock:
    """Monotonic clock the tests move by hand (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: int) -> None:
        self.now += ms / 1000


SAMPLE_ITEMS = [
    {
        "id": "DL-1",
        "objective_id": "OBJ-1",
        "mechanic": "DecisionLab",
        "stimulus": "A laptop browses the web. Is that IoT?",
        "options": [{"id": "opt_yes", "label": "Yes"}, {"id": "opt_no", "label": "No"}],
        "answer_key": {"correct_id": "opt_no"},
        "misconceptions": [
            {
                "id": "internet_equals_iot",
                "detector": {"kind": "choice_in", "choices": ["opt_yes"]},
                "feedback": {
                    "why": "Internet use alone is not IoT.",
                    "contrast": "We need sensing or actuation.",
                    "next_try": "Look for the loop.",
                },
            }
        ],
        "hints": ["Is anything physical sensed?", "Browsing senses nothing.", "Not IoT."],
        "exemplar": "No.",
    },
    {
        "id": "SEQ-1",
        "objective_id": "OBJ-5",
        "mechanic": "Sequencer",
        "stimulus": "Order the IoT loop.",
        "steps": ["Act", "Share", "Process", "Sense"],
        "answer_key": {"correct_order": ["Sense", "Share", "Process", "Act"]},
        "misconceptions": [
            {"id": "act_first", "detector": {"kind": "order_position", "position": 0, "step": "Act"}}
        ],
        "hints": ["What comes before action?"],
    },
    {
        "id": "TRI-1",
        "objective_id": "OBJ-4",
        "mechanic": "Triage",
        "stimulus": "Sort each card.",
        "cards": ["X", "Y", "Z", "W"],
        "bins": ["vulnerability", "mitigation"],
        "answer_key": {"correct": {"vulnerability": ["X", "Y"], "mitigation": ["Z", "W"]}},
        "misconceptions": [
            {"id": "z_is_risk", "detector": {"kind": "card_in_bin", "bin": "vulnerability", "card": "Z"}}
        ],
        "hints": [],
    },
    {
        "id": "MATCH-1",
        "objective_id": "OBJ-3",
        "mechanic": "Match",
        "stimulus": "Match each technology to its role.",
        "pairs_left": ["5G", "Digital twin"],
        "pairs_right": ["Wireless capacity", "Live virtual copy"],
        "answer_key": {"correct": {"5G": "Wireless capacity", "Digital twin": "Live virtual copy"}},
        "misconceptions": [
            {
                "id": "twin_as_network",
                "detector": {"kind": "pair_is", "left": "Digital twin", "right": "Wireless capacity"},
            }
        ],
        "hints": ["Which one mirrors?", "The twin mirrors."],
    },
]

CORRECT = {
    "DL-1": {"choice_id": "opt_no", "rationale": "no sensing"},
    "SEQ-1": {"order": ["Sense", "Share", "Process", "Act"]},
    "TRI-1": {"bins": {"vulnerability": ["Y", "X"], "mitigation": ["W", "Z"]}},
    "MATCH-1": {"pairs": {"5G": "Wireless capacity", "Digital twin": "Live virtual copy"}},
}

WRONG = {
    "DL-1": {"choice_id": "opt_yes", "rationale": "it is online"},
    "SEQ-1": {"order": ["Act", "Share", "Process", "Sense"]},
    "TRI-1": {"bins": {"vulnerability": ["X", "Y", "Z"], "mitigation": ["W"]}},
    "MATCH-1": {"pairs": {"5G": "Live virtual copy", "Digital twin": "Wireless capacity"}},
}


@pytest.fixture
def sample_course_dir(tmp_path):
    """Create a minimal course directory for testing."""
    course_dir = tmp_path / "courses" / "test_course"
    course_dir.mkdir(parents=True)

    course_data = {
        "course": {
            "id": "test_course",
            "title": "Test Course",
            "description": "A test course",
            "version": "1.0.0",
            "items": "items.yaml",
            "mastery": {"required_streak": 3, "max_avg_latency_ms": 30000, "max_hints": 1},
            "objectives": [{"id": "OBJ-1", "text": "Decide whether a system is IoT."}],
        }
    }
    with open(course_dir / "course.yaml", "w") as f:
        yaml.dump(course_data, f)
    with open(course_dir / "items.yaml", "w") as f:
        yaml.dump(SAMPLE_ITEMS, f, sort_keys=False)

    return course_dir


@pytest.fixture
def bank(sample_course_dir):
    return load_item_bank(sample_course_dir)


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(db_path=tmp_path / "data" / "state.db")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_runner(bank, store, clock):
    def _make(**kwargs) -> SessionRunner:
        kwargs.setdefault("store", store)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", random.Random(7))
        kwargs.setdefault("selection", SelectionConfig())
        kwargs.setdefault("course_id", "test_course")
        return SessionRunner(bank=kwargs.pop("bank", bank), **kwargs)
    return _make


@pytest.fixture
def runner(make_runner):
    return make_runner()
