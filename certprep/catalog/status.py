"""
Per-user status annotation of catalog exams.

Turns (exam, certification) rows plus the user's enrollments and attempts
into ExamWithStatus rows ready for grouping.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from certprep.exam.dedup import latest_attempt
from certprep.exam.models import (
    AttemptStatus,
    CatalogExam,
    Certification,
    Enrollment,
    ExamAttempt,
    ExamMode,
    ExamStatus,
    PracticeExam,
)


@dataclass
class ExamWithStatus:
    """A catalog exam annotated with one user's progress."""

    exam: PracticeExam
    certification: Certification
    status: ExamStatus = ExamStatus.NOT_STARTED
    is_enrolled: bool = False
    attempt_count: int = 0
    best_score: int | None = None
    latest_attempt: ExamAttempt | None = None
    current_attempt_mode: ExamMode | None = None
    attempts: list[ExamAttempt] = field(default_factory=list, repr=False)

    @property
    def id(self) -> str:
        return self.exam.id

    @property
    def name(self) -> str:
        return self.exam.name

    @property
    def sort_order(self) -> int:
        return self.exam.sort_order

    @property
    def updated_at(self) -> datetime | None:
        return self.exam.updated_at

    @property
    def category_name(self) -> str:
        return self.certification.category.name


def exam_status(latest: ExamAttempt | None) -> ExamStatus:
    """Catalog status follows the most recently started attempt."""
    if latest is None:
        return ExamStatus.NOT_STARTED
    if latest.status == AttemptStatus.IN_PROGRESS:
        return ExamStatus.IN_PROGRESS
    if latest.status == AttemptStatus.COMPLETED:
        return ExamStatus.COMPLETED
    return ExamStatus.NOT_STARTED


def best_score(attempts: Iterable[ExamAttempt]) -> int | None:
    scores = [
        a.score_percentage
        for a in attempts
        if a.status == AttemptStatus.COMPLETED and a.score_percentage is not None
    ]
    return max(scores) if scores else None


def annotate_exams(
    rows: Sequence[CatalogExam],
    enrollments: Iterable[Enrollment],
    attempts: Iterable[ExamAttempt],
    now: datetime,
) -> list[ExamWithStatus]:
    """
    Attach the user's status, best score and enrollment to each exam.

    Args:
        rows: Catalog exams with their certification
        enrollments: The user's enrollments (expired ones are ignored)
        attempts: All of the user's attempts for these exams
        now: Reference time for enrollment expiry
    """
    enrolled = {e.certification_id for e in enrollments if e.is_current(now)}
    by_exam: dict[str, list[ExamAttempt]] = defaultdict(list)
    for attempt in attempts:
        by_exam[attempt.exam_id].append(attempt)

    annotated = []
    for row in rows:
        exam_attempts = by_exam.get(row.exam.id, [])
        latest = latest_attempt(exam_attempts)
        status = exam_status(latest)
        annotated.append(
            ExamWithStatus(
                exam=row.exam,
                certification=row.certification,
                status=status,
                is_enrolled=row.certification.id in enrolled,
                attempt_count=len(exam_attempts),
                best_score=best_score(exam_attempts),
                latest_attempt=latest,
                current_attempt_mode=latest.mode if status == ExamStatus.IN_PROGRESS else None,
                attempts=exam_attempts,
            )
        )
    return annotated
