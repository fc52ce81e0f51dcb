"""Learner-facing feedback for an evaluated attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from masterylab.engine.evaluator import EvalResult
from masterylab.engine.item_bank import Item


@dataclass
class Feedback:
    correct: bool
    message: str
    misconception_id: Optional[str] = None
    why: str = ""
    contrast: str = ""
    next_try: str = ""
    exemplar: str = ""

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "message": self.message,
            "misconceptionId": self.misconception_id,
            "why": self.why,
            "contrast": self.contrast,
            "nextTry": self.next_try,
            "exemplar": self.exemplar,
        }


def build_feedback(item: Item, result: EvalResult) -> Feedback:
    """Turn an evaluation into why/contrast/next-try text for the front-end."""
    if result.correct:
        return Feedback(correct=True, message="Correct!", exemplar=item.exemplar)

    detector = item.detector(result.misconception_id) if result.misconception_id else None
    if detector is not None and detector.feedback is not None:
        fb = detector.feedback
        return Feedback(
            correct=False,
            message=fb.why or "Not quite.",
            misconception_id=detector.id,
            why=fb.why,
            contrast=fb.contrast,
            next_try=fb.next_try,
        )

    return Feedback(
        correct=False,
        message="Not quite. Try again.",
        misconception_id=result.misconception_id,
    )
