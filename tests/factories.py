"""Builders for domain objects and the sample catalog used across tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from certprep.catalog.status import ExamWithStatus
from certprep.exam.models import (
    OPTION_LETTERS,
    AnswerOption,
    AttemptStatus,
    Category,
    Certification,
    Difficulty,
    ExamAttempt,
    ExamMode,
    ExamStatus,
    KnowledgeArea,
    PracticeExam,
    Question,
    UserAnswer,
)

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual-time scheduler: advance() fires due callbacks in order."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


# ========================================
# Domain builders
# ========================================


def option_id(question_id: str, letter: str) -> str:
    return f"{question_id}-{letter.lower()}"


def make_question(
    question_id: str,
    correct: str = "A",
    n_options: int = 4,
    required: int | None = None,
    difficulty: Difficulty = Difficulty.MEDIUM,
    position: int = 1,
    area: KnowledgeArea | None = None,
    exam_id: str = "exam-1",
) -> Question:
    area = area or KnowledgeArea(id="ka-1", name="General", weight_percentage=100)
    options = tuple(
        AnswerOption(
            id=option_id(question_id, letter),
            question_id=question_id,
            text=f"Option {letter}",
            is_correct=letter in correct,
            letter=letter,
        )
        for letter in OPTION_LETTERS[:n_options]
    )
    return Question(
        id=question_id,
        exam_id=exam_id,
        knowledge_area_id=area.id,
        text=f"Question {question_id}",
        difficulty=difficulty,
        position=position,
        required_selections=required if required is not None else len(correct),
        options=options,
        knowledge_area=area,
    )


def answer_rows(attempt_id: str, question_id: str, *letters: str, seconds: int = 0, at: datetime = T0) -> list[UserAnswer]:
    return [
        UserAnswer(
            attempt_id=attempt_id,
            question_id=question_id,
            option_id=option_id(question_id, letter),
            answered_at=at,
            time_spent_seconds=seconds,
        )
        for letter in letters
    ]


def make_attempt(
    attempt_id: str,
    exam_id: str = "exam-1",
    started_at: datetime = T0,
    status: AttemptStatus = AttemptStatus.IN_PROGRESS,
    user_id: str = "u1",
    mode: ExamMode = ExamMode.EXAM,
    score: int | None = None,
    total_questions: int | None = None,
) -> ExamAttempt:
    return ExamAttempt(
        id=attempt_id,
        user_id=user_id,
        exam_id=exam_id,
        started_at=started_at,
        status=status,
        mode=mode,
        score_percentage=score,
        total_questions=total_questions,
    )


def make_certification(cert_id: str, name: str, category: str = "Cloud", price_cents: int = 0) -> Certification:
    return Certification(
        id=cert_id,
        name=name,
        slug=cert_id,
        category=Category(id=category.lower(), name=category, slug=category.lower()),
        price_cents=price_cents,
    )


def make_exam(
    exam_id: str,
    certification_id: str = "cert-1",
    name: str | None = None,
    sort_order: int = 0,
    updated_at: datetime | None = None,
    time_limit_minutes: int | None = None,
    question_count: int = 10,
) -> PracticeExam:
    return PracticeExam(
        id=exam_id,
        certification_id=certification_id,
        name=name or exam_id,
        question_count=question_count,
        time_limit_minutes=time_limit_minutes,
        sort_order=sort_order,
        updated_at=updated_at,
    )


def catalog_exam(
    exam_id: str,
    certification: Certification,
    status: ExamStatus = ExamStatus.NOT_STARTED,
    name: str | None = None,
    sort_order: int = 0,
    best_score: int | None = None,
    updated_at: datetime | None = None,
    is_enrolled: bool = False,
) -> ExamWithStatus:
    return ExamWithStatus(
        exam=make_exam(exam_id, certification.id, name, sort_order, updated_at),
        certification=certification,
        status=status,
        is_enrolled=is_enrolled,
        best_score=best_score,
    )


# ========================================
# Sample catalog (seed document)
# ========================================


def _options(question_id: str, correct: str, n: int = 4) -> list[dict]:
    return [
        {"id": option_id(question_id, letter), "text": f"Option {letter}", "is_correct": letter in correct}
        for letter in OPTION_LETTERS[:n]
    ]


def _question(question_id: str, area: str, correct: str, difficulty: str, position: int) -> dict:
    return {
        "id": question_id,
        "knowledge_area_id": area,
        "text": f"Question {question_id}",
        "difficulty": difficulty,
        "position": position,
        "required_selections": len(correct),
        "options": _options(question_id, correct),
    }


CATALOG_DOCUMENT = {
    "categories": [
        {"id": "cloud", "name": "Cloud Computing", "slug": "cloud"},
        {"id": "security", "name": "Security", "slug": "security"},
    ],
    "certifications": [
        {"id": "aws-saa", "category_id": "cloud", "name": "AWS Solutions Architect", "price_cents": 2999},
        {"id": "sec-plus", "category_id": "security", "name": "Security+", "price_cents": 0},
        {"id": "az-900", "category_id": "cloud", "name": "Azure Fundamentals", "price_cents": 1999},
    ],
    "knowledge_areas": [
        {"id": "ka-design", "certification_id": "aws-saa", "name": "Design Resilient Architectures", "weight_percentage": 30},
        {"id": "ka-secure", "certification_id": "aws-saa", "name": "Design Secure Architectures", "weight_percentage": 26},
        {"id": "ka-threats", "certification_id": "sec-plus", "name": "Threats and Attacks", "weight_percentage": 24},
        {"id": "ka-azure", "certification_id": "az-900", "name": "Cloud Concepts", "weight_percentage": 25},
    ],
    "exams": [
        {
            "id": "saa-1",
            "certification_id": "aws-saa",
            "name": "SAA Practice Exam 1",
            "time_limit_minutes": 130,
            "passing_threshold_percentage": 72,
            "sort_order": 1,
            "questions": [
                _question("q1", "ka-design", "A", "easy", 1),
                _question("q2", "ka-design", "C", "medium", 2),
                _question("q3", "ka-secure", "AC", "hard", 3),
                _question("q4", "ka-secure", "B", "medium", 4),
            ],
        },
        {
            "id": "saa-2",
            "certification_id": "aws-saa",
            "name": "SAA Practice Exam 2",
            "sort_order": 2,
            "questions": [_question("q5", "ka-design", "D", "medium", 1)],
        },
        {
            "id": "sec-1",
            "certification_id": "sec-plus",
            "name": "Security+ Practice Exam",
            "sort_order": 1,
            "questions": [
                _question("s1", "ka-threats", "A", "easy", 1),
                _question("s2", "ka-threats", "B", "hard", 2),
            ],
        },
        {
            "id": "az-1",
            "certification_id": "az-900",
            "name": "AZ-900 Practice Exam",
            "sort_order": 1,
            "questions": [_question("z1", "ka-azure", "A", "easy", 1)],
        },
    ],
    "enrollments": [
        {"user_id": "u1", "certification_id": "aws-saa", "days": 30},
        {"user_id": "u1", "certification_id": "az-900", "expires_at": "2025-12-01T00:00:00+00:00"},
        {"user_id": "u1", "certification_id": "sec-plus", "days": 365},
    ],
}
