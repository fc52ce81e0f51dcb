"""Misconception detector kinds.

A detector in content is plain data: a misconception id, a ``kind`` and the
kind's parameters. Each kind maps to a small pure predicate over the learner's
response, registered for the mechanic(s) whose responses it understands.
Predicates may assume the response shape; the evaluator treats any exception
they raise as "does not match".
"""

from __future__ import annotations

from typing import Callable, Mapping

from masterylab.engine.item_bank import Mechanic

Predicate = Callable[[dict, Mapping], bool]

# kind -> (mechanics, predicate); populated by @detector
DETECTORS: dict[str, tuple[frozenset[Mechanic], Predicate]] = {}


def detector(kind: str, *mechanics: Mechanic):
    """Decorator to register a detector predicate under ``kind``."""
    def decorator(fn: Predicate) -> Predicate:
        DETECTORS[kind] = (frozenset(mechanics), fn)
        return fn
    return decorator


def kinds_for(mechanic: Mechanic) -> set[str]:
    return {kind for kind, (mechs, _) in DETECTORS.items() if mechanic in mechs}


def get_predicate(kind: str) -> Predicate | None:
    entry = DETECTORS.get(kind)
    return entry[1] if entry else None


@detector("choice_in", Mechanic.DECISION_LAB)
def choice_in(params: dict, response: Mapping) -> bool:
    return response["choice_id"] in params["choices"]


@detector("choice_not_in", Mechanic.DECISION_LAB)
def choice_not_in(params: dict, response: Mapping) -> bool:
    return response["choice_id"] not in params["choices"]


@detector("order_position", Mechanic.SEQUENCER)
def order_position(params: dict, response: Mapping) -> bool:
    return response["order"][params["position"]] == params["step"]


@detector("pair_is", Mechanic.MATCH_PAIRS)
def pair_is(params: dict, response: Mapping) -> bool:
    return response["pairs"].get(params["left"]) == params["right"]


@detector("card_in_bin", Mechanic.TRIAGE)
def card_in_bin(params: dict, response: Mapping) -> bool:
    return params["card"] in response["bins"][params["bin"]]
