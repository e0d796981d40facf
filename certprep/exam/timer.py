"""Exam-mode time limit helpers."""

from __future__ import annotations

from datetime import datetime

from .models import ExamAttempt, ExamMode, PracticeExam


def time_remaining_seconds(attempt: ExamAttempt, exam: PracticeExam, now: datetime) -> int | None:
    """
    Seconds left on the clock, or None when the attempt is untimed.

    Practice mode and exams without a limit are untimed. The value never
    goes below zero; the engine does not auto-submit when it reaches it.
    """
    if attempt.mode != ExamMode.EXAM or not exam.time_limit_minutes:
        return None
    elapsed = (now - attempt.started_at).total_seconds()
    return max(0, int(exam.time_limit_minutes * 60 - elapsed))


def is_time_up(attempt: ExamAttempt, exam: PracticeExam, now: datetime) -> bool:
    remaining = time_remaining_seconds(attempt, exam, now)
    return remaining is not None and remaining == 0


def elapsed_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between two instants, rounded to nearest."""
    return max(0, round((ended_at - started_at).total_seconds() / 60))
