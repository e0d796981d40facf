"""Progress of an attempt derived from its persisted answer rows."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .models import UserAnswer


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent(part: int, whole: int) -> int:
    """Whole-number percentage, rounded half up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return _round_half_up(Decimal(100 * part) / Decimal(whole))


def mean_rounded(values: Sequence[int]) -> int:
    """Average of whole numbers, rounded half up; 0 for no values."""
    if not values:
        return 0
    return _round_half_up(Decimal(sum(values)) / Decimal(len(values)))


@dataclass(frozen=True)
class AttemptProgress:
    """How far a user got through an attempt."""

    questions_answered: int
    total_questions: int
    percentage: int
    current_question: int


def answered_question_ids(answers: Iterable[UserAnswer]) -> frozenset[str]:
    """Distinct question IDs that have at least one answer row."""
    return frozenset(a.question_id for a in answers if a.question_id)


def calculate_progress(answers: Iterable[UserAnswer], total_questions: int) -> AttemptProgress:
    """
    Compute progress for one attempt.

    Multi-select questions produce one row per selected option, so
    questions are counted by distinct ID rather than by row. The result
    does not depend on row order or duplicates, and re-answering a
    question leaves it unchanged.

    Returns:
        AttemptProgress where current_question is the 1-indexed next
        question to resume at, clamped to total_questions.
    """
    answered = len(answered_question_ids(answers))
    total = max(total_questions, 0)
    current = min(answered + 1, total) if total else 1
    return AttemptProgress(
        questions_answered=answered,
        total_questions=total,
        percentage=percent(answered, total),
        current_question=current,
    )
