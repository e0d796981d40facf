"""
SQLAlchemy implementation of the exam repository.

All ORM rows are converted to the frozen domain types before they leave
this module. SQLite drops timezone info on the way back, so datetimes
read from the database are normalized to UTC-aware values.

The repository never commits. Callers own the transaction
(session_scope for scripts and the CLI, get_session for the API).
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, selectinload

from certprep.db import models as orm
from certprep.exam.errors import AttemptClosed
from certprep.exam.models import (
    AnswerOption,
    AttemptStatus,
    CatalogExam,
    CatalogFilters,
    Category,
    Certification,
    Difficulty,
    Enrollment,
    ExamAttempt,
    ExamMode,
    KnowledgeArea,
    PracticeExam,
    Question,
    UserAnswer,
)


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ========================================
# Row -> domain conversion
# ========================================


def _to_exam(row: orm.PracticeExam) -> PracticeExam:
    return PracticeExam(
        id=row.id,
        certification_id=row.certification_id,
        name=row.name,
        question_count=row.question_count or 0,
        time_limit_minutes=row.time_limit_minutes,
        passing_threshold_percentage=row.passing_threshold_percentage or 0,
        sort_order=row.sort_order or 0,
        is_active=bool(row.is_active),
        updated_at=_aware(row.updated_at),
    )


def _to_certification(row: orm.Certification) -> Certification:
    return Certification(
        id=row.id,
        name=row.name,
        slug=row.slug,
        category=Category(id=row.category.id, name=row.category.name, slug=row.category.slug),
        price_cents=row.price_cents or 0,
    )


def _to_question(row: orm.Question) -> Question:
    area = row.knowledge_area
    return Question(
        id=row.id,
        exam_id=row.exam_id,
        knowledge_area_id=row.knowledge_area_id,
        text=row.question_text,
        difficulty=Difficulty(row.difficulty),
        position=row.position,
        required_selections=row.required_selections,
        options=tuple(
            AnswerOption(
                id=o.id,
                question_id=o.question_id,
                text=o.answer_text,
                is_correct=bool(o.is_correct),
                letter=o.letter,
            )
            for o in row.options
        ),
        explanation=row.explanation,
        knowledge_area=(
            KnowledgeArea(id=area.id, name=area.name, weight_percentage=area.weight_percentage or 0.0)
            if area is not None
            else None
        ),
    )


def _to_attempt(row: orm.ExamAttempt) -> ExamAttempt:
    return ExamAttempt(
        id=row.id,
        user_id=row.user_id,
        exam_id=row.exam_id,
        started_at=_aware(row.started_at),
        status=AttemptStatus(row.status),
        mode=ExamMode(row.mode),
        completed_at=_aware(row.completed_at),
        correct_answers=row.correct_answers,
        total_questions=row.total_questions,
        score_percentage=row.score_percentage,
        passed=row.passed,
        time_spent_minutes=row.time_spent_minutes,
    )


def _to_answer(row: orm.UserAnswer) -> UserAnswer:
    return UserAnswer(
        id=row.id,
        attempt_id=row.attempt_id,
        question_id=row.question_id,
        option_id=row.answer_id,
        answered_at=_aware(row.answered_at),
        time_spent_seconds=row.time_spent_seconds or 0,
        is_correct=bool(row.is_correct),
    )


def _to_enrollment(row: orm.UserEnrollment) -> Enrollment:
    return Enrollment(
        user_id=row.user_id,
        certification_id=row.certification_id,
        expires_at=_aware(row.expires_at),
    )


class SqlExamRepository:
    """ExamRepository backed by a SQLAlchemy session."""

    def __init__(self, session: Session, default_passing_threshold: int = 70):
        self.session = session
        self.default_passing_threshold = default_passing_threshold

    # ----------------------------------------
    # Catalog
    # ----------------------------------------

    def _exam(self, row: orm.PracticeExam) -> PracticeExam:
        exam = _to_exam(row)
        if row.passing_threshold_percentage is None:
            exam = replace(exam, passing_threshold_percentage=self.default_passing_threshold)
        return exam

    def get_exam(self, exam_id: str) -> PracticeExam | None:
        row = self.session.get(orm.PracticeExam, exam_id)
        return self._exam(row) if row else None

    def get_questions(self, exam_id: str) -> list[Question]:
        stmt = (
            select(orm.Question)
            .where(orm.Question.exam_id == exam_id)
            .options(selectinload(orm.Question.options), selectinload(orm.Question.knowledge_area))
            .order_by(orm.Question.position, orm.Question.id)
        )
        return [_to_question(row) for row in self.session.scalars(stmt)]

    def list_catalog_exams(self, filters: CatalogFilters) -> list[CatalogExam]:
        stmt = (
            select(orm.PracticeExam, orm.Certification)
            .join(orm.Certification, orm.PracticeExam.certification_id == orm.Certification.id)
            .options(selectinload(orm.Certification.category))
            .where(orm.PracticeExam.is_active.is_(True), orm.Certification.is_active.is_(True))
            .order_by(orm.PracticeExam.sort_order, orm.PracticeExam.id)
        )
        if filters.category_id:
            stmt = stmt.where(orm.Certification.category_id == filters.category_id)
        if filters.certification_id:
            stmt = stmt.where(orm.Certification.id == filters.certification_id)
        if filters.free_only:
            stmt = stmt.where(orm.Certification.price_cents == 0)

        return [
            CatalogExam(exam=self._exam(exam), certification=_to_certification(cert))
            for exam, cert in self.session.execute(stmt)
        ]

    # ----------------------------------------
    # Enrollments
    # ----------------------------------------

    def _enrollments(self, user_id: str, certification_id: str | None = None) -> list[Enrollment]:
        stmt = select(orm.UserEnrollment).where(orm.UserEnrollment.user_id == user_id)
        if certification_id is not None:
            stmt = stmt.where(orm.UserEnrollment.certification_id == certification_id)
        return [_to_enrollment(row) for row in self.session.scalars(stmt)]

    def get_current_enrollment(
        self, user_id: str, certification_id: str, now: datetime
    ) -> Enrollment | None:
        current = [e for e in self._enrollments(user_id, certification_id) if e.is_current(now)]
        return max(current, key=lambda e: e.expires_at, default=None)

    def list_enrollments(self, user_id: str, now: datetime) -> list[Enrollment]:
        return [e for e in self._enrollments(user_id) if e.is_current(now)]

    # ----------------------------------------
    # Attempts
    # ----------------------------------------

    def create_attempt(
        self,
        user_id: str,
        exam_id: str,
        mode: ExamMode,
        started_at: datetime,
        total_questions: int,
    ) -> ExamAttempt:
        row = orm.ExamAttempt(
            user_id=user_id,
            exam_id=exam_id,
            mode=ExamMode(mode).value,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at=started_at,
            total_questions=total_questions,
        )
        self.session.add(row)
        self.session.flush()
        logger.debug("Created attempt row {} ({} questions)", row.id, total_questions)
        return _to_attempt(row)

    def get_attempt(self, attempt_id: str) -> ExamAttempt | None:
        row = self.session.get(orm.ExamAttempt, attempt_id)
        return _to_attempt(row) if row else None

    def list_attempts(
        self,
        user_id: str,
        exam_id: str | None = None,
        status: AttemptStatus | None = None,
    ) -> list[ExamAttempt]:
        stmt = select(orm.ExamAttempt).where(orm.ExamAttempt.user_id == user_id)
        if exam_id is not None:
            stmt = stmt.where(orm.ExamAttempt.exam_id == exam_id)
        if status is not None:
            stmt = stmt.where(orm.ExamAttempt.status == AttemptStatus(status).value)
        stmt = stmt.order_by(orm.ExamAttempt.started_at.desc(), orm.ExamAttempt.id.desc())
        return [_to_attempt(row) for row in self.session.scalars(stmt)]

    def lock_open_attempt(self, attempt_id: str) -> bool:
        """
        Claim the attempt row for this transaction while it is in progress.

        A no-op UPDATE guarded on status takes the row (or database) write
        lock, so a concurrent completion either commits first and this
        returns False, or waits for this transaction to finish.
        """
        stmt = (
            update(orm.ExamAttempt)
            .where(
                orm.ExamAttempt.id == attempt_id,
                orm.ExamAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(status=AttemptStatus.IN_PROGRESS.value)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

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
        stmt = (
            update(orm.ExamAttempt)
            .where(
                orm.ExamAttempt.id == attempt_id,
                orm.ExamAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(
                status=AttemptStatus.COMPLETED.value,
                completed_at=completed_at,
                correct_answers=correct_answers,
                total_questions=total_questions,
                score_percentage=score_percentage,
                passed=passed,
                time_spent_minutes=time_spent_minutes,
            )
            .execution_options(synchronize_session=False)
        )
        updated = self.session.execute(stmt).rowcount == 1
        self.session.expire_all()
        return updated

    def abandon_attempts(self, user_id: str, exam_id: str, at: datetime) -> int:
        stmt = (
            update(orm.ExamAttempt)
            .where(
                orm.ExamAttempt.user_id == user_id,
                orm.ExamAttempt.exam_id == exam_id,
                orm.ExamAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(status=AttemptStatus.ABANDONED.value, completed_at=at)
            .execution_options(synchronize_session=False)
        )
        count = self.session.execute(stmt).rowcount
        self.session.expire_all()
        return count

    # ----------------------------------------
    # Answers
    # ----------------------------------------

    def list_answers(self, attempt_id: str) -> list[UserAnswer]:
        stmt = (
            select(orm.UserAnswer)
            .where(orm.UserAnswer.attempt_id == attempt_id)
            .order_by(orm.UserAnswer.answered_at, orm.UserAnswer.id)
        )
        return [_to_answer(row) for row in self.session.scalars(stmt)]

    def list_answers_for_attempts(self, attempt_ids: Sequence[str]) -> dict[str, list[UserAnswer]]:
        grouped: dict[str, list[UserAnswer]] = defaultdict(list)
        if not attempt_ids:
            return grouped
        stmt = select(orm.UserAnswer).where(orm.UserAnswer.attempt_id.in_(list(attempt_ids)))
        for row in self.session.scalars(stmt):
            grouped[row.attempt_id].append(_to_answer(row))
        return grouped

    def replace_answers(
        self, attempt_id: str, question_id: str, answers: Sequence[UserAnswer]
    ) -> list[UserAnswer]:
        """
        Delete then insert; both land in the caller's transaction.

        Raises:
            AttemptClosed: The attempt left in_progress before this write
        """
        if not self.lock_open_attempt(attempt_id):
            status = self.session.scalar(select(orm.ExamAttempt.status).where(orm.ExamAttempt.id == attempt_id))
            raise AttemptClosed(attempt_id, status or "missing")
        self.session.execute(
            delete(orm.UserAnswer).where(
                orm.UserAnswer.attempt_id == attempt_id,
                orm.UserAnswer.question_id == question_id,
            )
        )
        rows = [
            orm.UserAnswer(
                attempt_id=attempt_id,
                question_id=question_id,
                answer_id=a.option_id,
                is_correct=a.is_correct,
                answered_at=a.answered_at,
                time_spent_seconds=a.time_spent_seconds,
            )
            for a in answers
        ]
        self.session.add_all(rows)
        self.session.flush()
        return [_to_answer(row) for row in rows]
