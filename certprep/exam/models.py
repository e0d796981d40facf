"""
Domain types for the exam session engine.

These are the fixed shapes the engine works with. Storage rows are
normalized into them at the repository boundary, so nothing in the
engine branches on how a backend happens to return joined data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Difficulty(str, Enum):
    """Question difficulty, ordered easy < medium < hard."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_RANK[self]


_DIFFICULTY_RANK = {Difficulty.EASY: 0, Difficulty.MEDIUM: 1, Difficulty.HARD: 2}


class AttemptStatus(str, Enum):
    """Persisted lifecycle state of an exam attempt."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ExamMode(str, Enum):
    """Timed exam or untimed practice."""

    EXAM = "exam"
    PRACTICE = "practice"


class ExamStatus(str, Enum):
    """Per-user status of an exam in catalog views."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


OPTION_LETTERS = ("A", "B", "C", "D", "E")


@dataclass(frozen=True)
class KnowledgeArea:
    """Knowledge area a question is tagged with."""

    id: str
    name: str
    weight_percentage: float = 0.0


@dataclass(frozen=True)
class AnswerOption:
    """One selectable answer of a question."""

    id: str
    question_id: str
    text: str
    is_correct: bool
    letter: str


@dataclass(frozen=True)
class Question:
    """
    A question inside a practice exam.

    required_selections == 1 means single choice; k > 1 means the user
    must mark exactly k options.
    """

    id: str
    exam_id: str
    knowledge_area_id: str
    text: str
    difficulty: Difficulty
    position: int
    required_selections: int = 1
    options: tuple[AnswerOption, ...] = ()
    explanation: str | None = None
    knowledge_area: KnowledgeArea | None = None

    @property
    def option_ids(self) -> frozenset[str]:
        return frozenset(o.id for o in self.options)

    @property
    def correct_option_ids(self) -> frozenset[str]:
        return frozenset(o.id for o in self.options if o.is_correct)

    @property
    def is_multi_select(self) -> bool:
        return self.required_selections > 1


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    slug: str = ""


@dataclass(frozen=True)
class Certification:
    id: str
    name: str
    slug: str
    category: Category
    price_cents: int = 0

    @property
    def is_free(self) -> bool:
        return self.price_cents == 0


@dataclass(frozen=True)
class PracticeExam:
    """A practice exam belonging to a certification."""

    id: str
    certification_id: str
    name: str
    question_count: int
    time_limit_minutes: int | None = None
    passing_threshold_percentage: int = 70
    sort_order: int = 0
    is_active: bool = True
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Enrollment:
    """Time-bounded access grant to a certification's exams."""

    user_id: str
    certification_id: str
    expires_at: datetime

    def is_current(self, now: datetime) -> bool:
        return self.expires_at >= now


@dataclass
class ExamAttempt:
    """
    One user's run through a practice exam.

    The aggregate fields stay None until the attempt is completed.
    """

    id: str
    user_id: str
    exam_id: str
    started_at: datetime
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    mode: ExamMode = ExamMode.EXAM
    completed_at: datetime | None = None
    correct_answers: int | None = None
    total_questions: int | None = None
    score_percentage: int | None = None
    passed: bool | None = None
    time_spent_minutes: int | None = None

    @property
    def is_open(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS


@dataclass(frozen=True)
class UserAnswer:
    """A persisted answer row: exactly one selected option per row."""

    attempt_id: str
    question_id: str
    option_id: str
    answered_at: datetime
    time_spent_seconds: int = 0
    is_correct: bool = False
    id: str | None = None


@dataclass(frozen=True)
class AttemptHandle:
    """What a caller gets back from starting or resuming an attempt."""

    attempt_id: str
    exam_id: str
    mode: ExamMode
    started_at: datetime
    total_questions: int
    current_question: int = 1
    time_remaining_seconds: int | None = None
    resumed: bool = False


@dataclass
class CatalogFilters:
    """Filters applied to grouped catalog views."""

    category_id: str | None = None
    certification_id: str | None = None
    free_only: bool = False
    enrolled_only: bool = False
    status: ExamStatus | None = None


@dataclass
class CatalogExam:
    """An active exam joined with its certification, as the catalog returns it."""

    exam: PracticeExam
    certification: Certification
