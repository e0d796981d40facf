"""
Attempt deduplication.

Two tabs can start the same exam before either sees the other's attempt.
Rather than merging answer sets, the most recently started attempt wins
and older ones are left alone for the audit trail.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .models import AttemptStatus, ExamAttempt, UserAnswer
from .progress import AttemptProgress, calculate_progress


def _recency_key(attempt: ExamAttempt) -> tuple:
    return (attempt.started_at, attempt.id)


def latest_attempt(attempts: Iterable[ExamAttempt]) -> ExamAttempt | None:
    """The attempt with the greatest started_at (ties broken by ID)."""
    return max(attempts, key=_recency_key, default=None)


def latest_attempts_by_exam(attempts: Iterable[ExamAttempt]) -> dict[str, ExamAttempt]:
    """
    Pick one attempt per exam: the latest started.

    Input order does not matter. The returned dict is ordered by
    started_at descending so callers can render it directly.
    """
    latest: dict[str, ExamAttempt] = {}
    for attempt in attempts:
        current = latest.get(attempt.exam_id)
        if current is None or _recency_key(attempt) > _recency_key(current):
            latest[attempt.exam_id] = attempt
    ordered = sorted(latest.values(), key=_recency_key, reverse=True)
    return {a.exam_id: a for a in ordered}


def active_attempts(attempts: Iterable[ExamAttempt]) -> list[ExamAttempt]:
    """Deduplicated in-progress attempts, newest first."""
    in_progress = [a for a in attempts if a.status == AttemptStatus.IN_PROGRESS]
    return list(latest_attempts_by_exam(in_progress).values())


@dataclass(frozen=True)
class InProgressView:
    """Row of the 'exams in progress' dashboard."""

    attempt: ExamAttempt
    progress: AttemptProgress


def in_progress_views(
    attempts: Iterable[ExamAttempt],
    answers_by_attempt: Mapping[str, Iterable[UserAnswer]],
    question_counts: Mapping[str, int],
) -> list[InProgressView]:
    """
    Build resume rows for the dashboard.

    Args:
        attempts: The user's attempts (any status, any order)
        answers_by_attempt: Answer rows keyed by attempt ID
        question_counts: Total question count keyed by exam ID
    """
    views = []
    for attempt in active_attempts(attempts):
        total = question_counts.get(attempt.exam_id, attempt.total_questions or 0)
        progress = calculate_progress(answers_by_attempt.get(attempt.id, ()), total)
        views.append(InProgressView(attempt=attempt, progress=progress))
    return views
