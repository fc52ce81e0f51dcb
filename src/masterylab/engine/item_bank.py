"""Item bank model and YAML course loader for MasteryLab."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

import yaml

from masterylab.config.settings import MasteryConfig


class Mechanic(str, Enum):
    DECISION_LAB = "DecisionLab"
    TRIAGE = "Triage"
    SEQUENCER = "Sequencer"
    MATCH_PAIRS = "MatchPairs"

    @classmethod
    def parse(cls, value: str) -> "Mechanic":
        # Older content packs call the pairing mechanic "Match"
        if value == "Match":
            return cls.MATCH_PAIRS
        return cls(value)


@dataclass(frozen=True)
class DecisionKey:
    correct_id: str


@dataclass(frozen=True)
class SequenceKey:
    correct_order: tuple[str, ...]


@dataclass(frozen=True)
class MatchKey:
    correct: tuple[tuple[str, str], ...]  # (left, right) pairs

    @property
    def mapping(self) -> dict[str, str]:
        return dict(self.correct)


@dataclass(frozen=True)
class TriageKey:
    bins: tuple[tuple[str, frozenset[str]], ...]

    @property
    def mapping(self) -> dict[str, frozenset[str]]:
        return dict(self.bins)


AnswerKey = Union[DecisionKey, SequenceKey, MatchKey, TriageKey]


@dataclass(frozen=True)
class MisconceptionFeedback:
    why: str = ""
    contrast: str = ""
    next_try: str = ""


@dataclass(frozen=True)
class MisconceptionDetector:
    id: str
    kind: str  # registered predicate name, see engine.detectors
    params: tuple[tuple[str, object], ...] = ()
    feedback: Optional[MisconceptionFeedback] = None

    @property
    def options(self) -> dict:
        return dict(self.params)


@dataclass(frozen=True)
class Option:
    id: str
    label: str


@dataclass(frozen=True)
class Item:
    id: str
    objective_id: str
    mechanic: Mechanic
    stimulus: str
    answer_key: AnswerKey
    misconceptions: tuple[MisconceptionDetector, ...] = ()
    hint_ladder: tuple[str, ...] = ()
    difficulty: str = "easy"
    exemplar: str = ""
    # Presentation data, per mechanic
    options: tuple[Option, ...] = ()
    steps: tuple[str, ...] = ()
    pairs_left: tuple[str, ...] = ()
    pairs_right: tuple[str, ...] = ()
    cards: tuple[str, ...] = ()
    bins: tuple[str, ...] = ()

    def detector(self, misconception_id: str) -> Optional[MisconceptionDetector]:
        for d in self.misconceptions:
            if d.id == misconception_id:
                return d
        return None


class ItemBank:
    """Immutable, ordered collection of items shared by any number of sessions."""

    def __init__(self, items: Sequence[Item]):
        if not items:
            raise ValueError("Item bank must contain at least one item")
        ids = [i.id for i in items]
        if len(set(ids)) != len(ids):
            raise ValueError("Item ids must be unique")
        self._items: tuple[Item, ...] = tuple(items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> Item:
        return self._items[index]

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    @property
    def ids(self) -> list[str]:
        return [i.id for i in self._items]


@dataclass
class Objective:
    id: str
    text: str


@dataclass
class CourseMeta:
    id: str
    title: str
    description: str
    version: str
    objectives: list[Objective] = field(default_factory=list)
    mastery: Optional[MasteryConfig] = None
    items_file: str = "items.yaml"
    base_path: Optional[Path] = None


def _parse_answer_key(mechanic: Mechanic, raw: dict, item_id: str) -> AnswerKey:
    if not isinstance(raw, dict):
        raise ValueError(f"Item {item_id}: answer_key must be a mapping")
    if mechanic is Mechanic.DECISION_LAB:
        return DecisionKey(correct_id=str(raw["correct_id"]))
    if mechanic is Mechanic.SEQUENCER:
        return SequenceKey(correct_order=tuple(raw["correct_order"]))
    if mechanic is Mechanic.MATCH_PAIRS:
        return MatchKey(correct=tuple((str(k), str(v)) for k, v in raw["correct"].items()))
    bins = raw["correct"]
    return TriageKey(bins=tuple((str(b), frozenset(cards)) for b, cards in bins.items()))


def _parse_detector(mechanic: Mechanic, raw: dict, item_id: str) -> MisconceptionDetector:
    from masterylab.engine.detectors import kinds_for

    spec = raw.get("detector") or {}
    kind = spec.get("kind", "")
    if kind not in kinds_for(mechanic):
        raise ValueError(
            f"Item {item_id}: detector kind '{kind}' is not valid for {mechanic.value}"
        )
    params = tuple((k, v) for k, v in spec.items() if k != "kind")
    fb = raw.get("feedback")
    feedback = None
    if fb:
        feedback = MisconceptionFeedback(
            why=fb.get("why", ""),
            contrast=fb.get("contrast", ""),
            next_try=fb.get("next_try", ""),
        )
    return MisconceptionDetector(id=raw["id"], kind=kind, params=params, feedback=feedback)


def parse_item(raw: dict) -> Item:
    """Build an Item from its YAML mapping."""
    item_id = raw["id"]
    mechanic = Mechanic.parse(raw["mechanic"])
    options = tuple(
        Option(id=str(o["id"]), label=str(o.get("label", o["id"])))
        for o in raw.get("options", [])
    )
    return Item(
        id=item_id,
        objective_id=raw.get("objective_id", ""),
        mechanic=mechanic,
        stimulus=raw.get("stimulus", ""),
        answer_key=_parse_answer_key(mechanic, raw.get("answer_key"), item_id),
        misconceptions=tuple(
            _parse_detector(mechanic, m, item_id) for m in raw.get("misconceptions", [])
        ),
        hint_ladder=tuple(raw.get("hints", [])),
        difficulty=raw.get("difficulty", "easy"),
        exemplar=raw.get("exemplar", ""),
        options=options,
        steps=tuple(raw.get("steps", [])),
        pairs_left=tuple(raw.get("pairs_left", [])),
        pairs_right=tuple(raw.get("pairs_right", [])),
        cards=tuple(raw.get("cards", [])),
        bins=tuple(raw.get("bins", [])),
    )


def load_course(course_dir: Path) -> CourseMeta:
    """Load course.yaml from a course directory."""
    course_file = course_dir / "course.yaml"
    with open(course_file) as f:
        data = yaml.safe_load(f)

    c = data["course"]
    mastery = c.get("mastery")
    return CourseMeta(
        id=c["id"],
        title=c["title"],
        description=c.get("description", ""),
        version=str(c.get("version", "1.0")),
        objectives=[Objective(id=o["id"], text=o["text"]) for o in c.get("objectives", [])],
        mastery=MasteryConfig(**mastery) if mastery else None,
        items_file=c.get("items", "items.yaml"),
        base_path=course_dir,
    )


def load_item_bank(course_dir: Path, course: Optional[CourseMeta] = None) -> ItemBank:
    """Load the items file of a course directory into an ItemBank."""
    course = course or load_course(course_dir)
    with open(course_dir / course.items_file) as f:
        raw_items = yaml.safe_load(f) or []
    return ItemBank([parse_item(raw) for raw in raw_items])
