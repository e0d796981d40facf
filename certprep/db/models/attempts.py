"""
Per-user tables: enrollments, exam attempts and their answers.

user_answers holds one row per selected option, so a multi-select
answer is several rows sharing (attempt_id, question_id).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id


class UserEnrollment(Base):
    """Access grant to a certification until expires_at."""

    __tablename__ = "user_enrollments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    certification_id: Mapped[str] = mapped_column(ForeignKey("certifications.id"), nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ExamAttempt(Base):
    """
    One run through a practice exam.

    Aggregates (correct_answers ... time_spent_minutes) stay NULL until
    the attempt is completed.
    """

    __tablename__ = "exam_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    exam_id: Mapped[str] = mapped_column(ForeignKey("practice_exams.id"), nullable=False, index=True)
    mode: Mapped[str] = mapped_column(String(10), default="exam")
    status: Mapped[str] = mapped_column(String(20), default="in_progress", index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    correct_answers: Mapped[int | None] = mapped_column(Integer)
    total_questions: Mapped[int | None] = mapped_column(Integer)
    score_percentage: Mapped[int | None] = mapped_column(Integer)
    passed: Mapped[bool | None] = mapped_column(Boolean)
    time_spent_minutes: Mapped[int | None] = mapped_column(Integer)

    answers: Mapped[list[UserAnswer]] = relationship(back_populates="attempt")


class UserAnswer(Base):
    __tablename__ = "user_answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    attempt_id: Mapped[str] = mapped_column(ForeignKey("exam_attempts.id"), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(ForeignKey("questions.id"), nullable=False)
    answer_id: Mapped[str] = mapped_column(ForeignKey("answers.id"), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)

    attempt: Mapped[ExamAttempt] = relationship(back_populates="answers")
