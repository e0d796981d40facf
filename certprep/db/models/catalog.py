"""
Catalog tables: what can be studied.

Category -> Certification -> PracticeExam -> Question -> AnswerOption,
with KnowledgeArea tagging questions inside a certification.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id

# ========================================
# CERTIFICATIONS
# ========================================


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)

    certifications: Mapped[list[Certification]] = relationship(back_populates="category")


class Certification(Base):
    """A certification users enroll in; price 0 means free."""

    __tablename__ = "certifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    category_id: Mapped[str] = mapped_column(ForeignKey("categories.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    category: Mapped[Category] = relationship(back_populates="certifications")
    exams: Mapped[list[PracticeExam]] = relationship(back_populates="certification")
    knowledge_areas: Mapped[list[KnowledgeArea]] = relationship(back_populates="certification")


class KnowledgeArea(Base):
    """Exam domain with its weight in the official blueprint."""

    __tablename__ = "knowledge_areas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    certification_id: Mapped[str] = mapped_column(ForeignKey("certifications.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    weight_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    certification: Mapped[Certification] = relationship(back_populates="knowledge_areas")


# ========================================
# EXAMS AND QUESTIONS
# ========================================


class PracticeExam(Base):
    __tablename__ = "practice_exams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    certification_id: Mapped[str] = mapped_column(ForeignKey("certifications.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    question_count: Mapped[int] = mapped_column(Integer, default=0)
    time_limit_minutes: Mapped[int | None] = mapped_column(Integer)
    passing_threshold_percentage: Mapped[int | None] = mapped_column(Integer)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now()
    )

    certification: Mapped[Certification] = relationship(back_populates="exams")
    questions: Mapped[list[Question]] = relationship(
        back_populates="exam", order_by="Question.position"
    )


class Question(Base):
    """
    Exam question.

    required_selections is the exact number of options a complete answer
    marks; 1 renders as single choice.
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    exam_id: Mapped[str] = mapped_column(ForeignKey("practice_exams.id"), nullable=False, index=True)
    knowledge_area_id: Mapped[str] = mapped_column(ForeignKey("knowledge_areas.id"), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text)
    difficulty: Mapped[str] = mapped_column(String(10), default="medium")
    position: Mapped[int] = mapped_column(Integer, default=0)
    required_selections: Mapped[int] = mapped_column(Integer, default=1)

    exam: Mapped[PracticeExam] = relationship(back_populates="questions")
    knowledge_area: Mapped[KnowledgeArea] = relationship()
    options: Mapped[list[AnswerOption]] = relationship(
        back_populates="question", order_by="AnswerOption.letter"
    )


class AnswerOption(Base):
    __tablename__ = "answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    question_id: Mapped[str] = mapped_column(ForeignKey("questions.id"), nullable=False, index=True)
    answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    letter: Mapped[str] = mapped_column(String(1), nullable=False)

    question: Mapped[Question] = relationship(back_populates="options")
