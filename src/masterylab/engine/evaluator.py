"""Response evaluation: one rule per mechanic plus misconception detection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from loguru import logger

from masterylab.engine.detectors import get_predicate
from masterylab.engine.item_bank import (
    DecisionKey,
    Item,
    MatchKey,
    Mechanic,
    SequenceKey,
    TriageKey,
)

_LIST_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class EvalResult:
    correct: bool
    misconception_id: Optional[str] = None


class Evaluator:
    """Stateless evaluator; the same (item, response) always yields the same result."""

    # --- Response shape ---

    def normalize(self, item: Item, response: Any) -> dict:
        """Return a copy of ``response`` with legacy fields mapped to current ones."""
        if not isinstance(response, Mapping):
            return {}
        data = dict(response)

        if item.mechanic is Mechanic.DECISION_LAB and not data.get("choice_id"):
            # Label-only answers from older front-ends
            label = data.get("choice")
            for option in item.options:
                if option.label == label:
                    data["choice_id"] = option.id
                    break

        if item.mechanic is Mechanic.MATCH_PAIRS and "pairs" not in data:
            indices = data.get("pair_indices")
            if isinstance(indices, Mapping):
                data["pairs"] = {
                    _at(item.pairs_left, left, str(left)): _at(item.pairs_right, right, None)
                    for left, right in indices.items()
                }

        return data

    def is_well_formed(self, item: Item, response: Any) -> bool:
        """True when the response carries the fields the item's mechanic requires."""
        data = self.normalize(item, response)
        if item.mechanic is Mechanic.DECISION_LAB:
            choice = data.get("choice_id")
            return isinstance(choice, str) and bool(choice)
        if item.mechanic is Mechanic.SEQUENCER:
            order = data.get("order")
            return isinstance(order, (list, tuple)) and len(order) > 0
        if item.mechanic is Mechanic.MATCH_PAIRS:
            return isinstance(data.get("pairs"), Mapping)
        bins = data.get("bins")
        return isinstance(bins, Mapping) and all(
            isinstance(cards, _LIST_TYPES) and all(isinstance(c, str) for c in cards)
            for cards in bins.values()
        )

    # --- Per-mechanic rules ---

    def check_decision(self, key: DecisionKey, data: Mapping) -> bool:
        return data.get("choice_id") == key.correct_id

    def check_sequence(self, key: SequenceKey, data: Mapping) -> bool:
        order = data.get("order")
        if not isinstance(order, (list, tuple)):
            return False
        return tuple(order) == key.correct_order

    def check_pairs(self, key: MatchKey, data: Mapping) -> bool:
        pairs = data.get("pairs")
        if not isinstance(pairs, Mapping):
            return False
        expected = key.mapping
        if set(pairs.keys()) != set(expected.keys()):
            return False
        return all(pairs[left] == right for left, right in expected.items())

    def check_triage(self, key: TriageKey, data: Mapping) -> bool:
        bins = data.get("bins")
        if not isinstance(bins, Mapping):
            return False
        for bin_id, expected in key.bins:
            placed = bins.get(bin_id, [])
            if not isinstance(placed, _LIST_TYPES) or not all(isinstance(c, str) for c in placed):
                return False
            if set(placed) != expected:
                return False
        return True

    # --- Misconceptions ---

    def detect_misconception(self, item: Item, data: Mapping) -> Optional[str]:
        """Return the id of the first detector that fires, in declaration order."""
        for d in item.misconceptions:
            predicate = get_predicate(d.kind)
            if predicate is None:
                continue
            try:
                matched = bool(predicate(d.options, data))
            except Exception as e:
                logger.debug(f"Detector {d.id} on {item.id} failed: {e!r}")
                matched = False
            if matched:
                return d.id
        return None

    # --- Composite evaluation ---

    def evaluate(self, item: Item, response: Any) -> EvalResult:
        """Apply the item's mechanic rule, then scan detectors when incorrect."""
        data = self.normalize(item, response)
        key = item.answer_key

        if isinstance(key, DecisionKey):
            correct = self.check_decision(key, data)
        elif isinstance(key, SequenceKey):
            correct = self.check_sequence(key, data)
        elif isinstance(key, MatchKey):
            correct = self.check_pairs(key, data)
        else:
            correct = self.check_triage(key, data)

        if correct:
            return EvalResult(correct=True)
        return EvalResult(correct=False, misconception_id=self.detect_misconception(item, data))


def _at(values: tuple[str, ...], index: Any, default: Optional[str]) -> Optional[str]:
    try:
        i = int(index)
    except (TypeError, ValueError):
        return default
    if 0 <= i < len(values):
        return values[i]
    return default


def evaluate(item: Item, response: Any) -> EvalResult:
    return Evaluator().evaluate(item, response)
