"""Progression policy: sequential coverage, then remediation of missed items.

Every item is presented once in bank order. After that only items whose most
recent attempt was incorrect come back, skipping the last few items shown
when another candidate exists. The session ends when no missed item remains.
"""

from __future__ import annotations

import random
from typing import AbstractSet, Optional, Sequence

from masterylab.config.settings import SelectionStrategy


def choose_next(
    seen_counts: Sequence[int],
    incorrect_set: AbstractSet[int],
    recent_item_ids: Sequence[str],
    item_ids: Sequence[str],
    strategy: SelectionStrategy = SelectionStrategy.RANDOM,
    rng: Optional[random.Random] = None,
) -> Optional[int]:
    """Return the index of the next item, or None when the session is complete."""
    if not item_ids:
        raise ValueError("Cannot choose from an empty item bank")

    for idx in range(len(item_ids)):
        count = seen_counts[idx] if idx < len(seen_counts) else 0
        if count == 0:
            return idx

    if not incorrect_set:
        return None

    ordered = sorted(incorrect_set)
    recent = set(recent_item_ids)
    candidates = [idx for idx in ordered if item_ids[idx] not in recent]
    if not candidates:
        candidates = ordered

    if strategy is SelectionStrategy.LEAST_SEEN:
        return min(candidates, key=lambda idx: (seen_counts[idx], idx))
    return (rng or random).choice(candidates)


def recent_ids(history_item_ids: Sequence[str], window: int = 2) -> list[str]:
    """Item ids of the trailing ``window`` history entries."""
    if window <= 0:
        return []
    return list(history_item_ids[-window:])
