"""
Storage boundary for the exam session engine.

The engine talks to storage only through this protocol. Implementations
return the domain types from ``models`` and must make these operations atomic with respect to attempt status:

- lock_open_attempt: claim an in-progress attempt for the current transaction
- replace_answers: delete + insert of one (attempt, question) pair, refused
  with AttemptClosed once the attempt has left in_progress
- complete_attempt: only succeeds while the attempt is still in progress
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .models import (
    AttemptStatus,
    CatalogExam,
    CatalogFilters,
    Enrollment,
    ExamAttempt,
    ExamMode,
    PracticeExam,
    Question,
    UserAnswer,
)


class ExamRepository(Protocol):
    """CRUD-style operations the engine needs."""

    def get_exam(self, exam_id: str) -> PracticeExam | None:
        """Return the exam, or None when it does not exist."""
        ...

    def get_questions(self, exam_id: str) -> list[Question]:
        """Questions with options and knowledge areas, ordered by position."""
        ...

    def get_current_enrollment(
        self, user_id: str, certification_id: str, now: datetime
    ) -> Enrollment | None:
        ...

    def list_enrollments(self, user_id: str, now: datetime) -> list[Enrollment]:
        """The user's current (non-expired) enrollments."""
        ...

    def create_attempt(
        self,
        user_id: str,
        exam_id: str,
        mode: ExamMode,
        started_at: datetime,
        total_questions: int,
    ) -> ExamAttempt:
        ...

    def get_attempt(self, attempt_id: str) -> ExamAttempt | None:
        ...

    def list_attempts(
        self,
        user_id: str,
        exam_id: str | None = None,
        status: AttemptStatus | None = None,
    ) -> list[ExamAttempt]:
        """The user's attempts, newest started first."""
        ...

    def list_answers(self, attempt_id: str) -> list[UserAnswer]:
        ...

    def list_answers_for_attempts(self, attempt_ids: Sequence[str]) -> dict[str, list[UserAnswer]]:
        ...

    def replace_answers(
        self, attempt_id: str, question_id: str, answers: Sequence[UserAnswer]
    ) -> list[UserAnswer]:
        """Atomically swap every row of (attempt, question) for ``answers``. Raises AttemptClosed when not in progress."""
        ...

    def lock_open_attempt(self, attempt_id: str) -> bool:
        """Lock the attempt for the current transaction. False when it is no longer in progress."""
        ...

    def complete_attempt(
        self,
        attempt_id: str,
        completed_at: datetime,
        correct_answers: int,
        total_questions: int,
        score_percentage: int,
        passed: bool,
        time_spent_minutes: int,
    ) -> bool:
        """Write aggregates if the attempt is still in progress. False otherwise."""
        ...

    def abandon_attempts(self, user_id: str, exam_id: str, at: datetime) -> int:
        """Mark the user's in-progress attempts for an exam abandoned."""
        ...

    def list_catalog_exams(self, filters: CatalogFilters) -> list[CatalogExam]:
        """Active exams of active certifications matching the storage-level filters."""
        ...
