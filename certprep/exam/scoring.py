"""
Exam scoring.

A question is correct only when the submitted option set equals the
correct option set exactly; there is no partial credit for multi-select
questions. Unanswered questions are wrong and stay in the denominator.

Besides the headline numbers the report carries the breakdowns shown on
the results screens:

- per-question results (review screen)
- knowledge area scores, weightiest area first
- easy / medium / hard breakdown
- performance level and time efficiency labels
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from .models import Difficulty, Question, UserAnswer
from .progress import percent


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    position: int
    selected_option_ids: frozenset[str]
    correct_option_ids: frozenset[str]
    is_correct: bool
    answered: bool
    time_spent_seconds: int
    knowledge_area_id: str


@dataclass(frozen=True)
class KnowledgeAreaScore:
    id: str
    name: str
    weight_percentage: float
    correct_answers: int
    total_questions: int
    score_percentage: int
    performance_level: str


@dataclass(frozen=True)
class DifficultyScore:
    correct: int = 0
    total: int = 0
    percentage: int = 0


@dataclass(frozen=True)
class ScoreReport:
    """Everything computed when an attempt is submitted."""

    correct_answers: int
    total_questions: int
    score_percentage: int
    passed: bool
    passing_threshold: int
    question_results: tuple[QuestionResult, ...] = ()
    knowledge_area_scores: tuple[KnowledgeAreaScore, ...] = ()
    difficulty_breakdown: dict[str, DifficultyScore] = field(default_factory=dict)
    performance_level: str = "poor"
    time_efficiency: str = "adequate"

    @property
    def aggregates(self) -> dict:
        """The fields written back onto the attempt."""
        return {
            "correct_answers": self.correct_answers,
            "total_questions": self.total_questions,
            "score_percentage": self.score_percentage,
            "passed": self.passed,
        }


def performance_level(score_percentage: int) -> str:
    if score_percentage >= 90:
        return "excellent"
    if score_percentage >= 75:
        return "good"
    if score_percentage >= 60:
        return "needs_improvement"
    return "poor"


def time_efficiency(time_spent_minutes: float, question_count: int) -> str:
    """Label the pace of an attempt by average minutes per question."""
    if question_count == 0:
        return "adequate"
    per_question = time_spent_minutes / question_count
    if per_question >= 1.0:
        return "excellent"
    if per_question >= 0.75:
        return "good"
    if per_question >= 0.5:
        return "adequate"
    return "rushed"


def is_selection_correct(selected: frozenset[str], correct: frozenset[str]) -> bool:
    """Exact set match. Change this to introduce partial credit."""
    return bool(correct) and selected == correct


def selections_by_question(answers: Iterable[UserAnswer]) -> dict[str, list[UserAnswer]]:
    grouped: dict[str, list[UserAnswer]] = defaultdict(list)
    for answer in answers:
        if answer.question_id and answer.option_id:
            grouped[answer.question_id].append(answer)
    return grouped


def score_question(question: Question, rows: Sequence[UserAnswer]) -> QuestionResult:
    selected = frozenset(r.option_id for r in rows)
    correct = question.correct_option_ids

    if len(correct) != question.required_selections:
        logger.warning(
            "Question {}: required_selections ({}) does not match correct options ({})",
            question.id,
            question.required_selections,
            len(correct),
        )
    if not correct:
        logger.warning("Question {} has no correct option; scored as incorrect", question.id)

    return QuestionResult(
        question_id=question.id,
        position=question.position,
        selected_option_ids=selected,
        correct_option_ids=correct,
        is_correct=is_selection_correct(selected, correct),
        answered=bool(selected),
        time_spent_seconds=max((r.time_spent_seconds for r in rows), default=0),
        knowledge_area_id=question.knowledge_area_id,
    )


def _knowledge_area_scores(
    questions: Sequence[Question], results: dict[str, QuestionResult]
) -> tuple[KnowledgeAreaScore, ...]:
    areas: dict[str, list[Question]] = defaultdict(list)
    for question in questions:
        areas[question.knowledge_area_id].append(question)

    scores = []
    for area_id, area_questions in areas.items():
        area = area_questions[0].knowledge_area
        correct = sum(1 for q in area_questions if results[q.id].is_correct)
        score = percent(correct, len(area_questions))
        scores.append(
            KnowledgeAreaScore(
                id=area_id,
                name=area.name if area else area_id,
                weight_percentage=area.weight_percentage if area else 0.0,
                correct_answers=correct,
                total_questions=len(area_questions),
                score_percentage=score,
                performance_level=performance_level(score),
            )
        )
    scores.sort(key=lambda s: (-s.weight_percentage, s.name))
    return tuple(scores)


def _difficulty_breakdown(
    questions: Sequence[Question], results: dict[str, QuestionResult]
) -> dict[str, DifficultyScore]:
    counts = {d.value: [0, 0] for d in Difficulty}
    for question in questions:
        bucket = counts[Difficulty(question.difficulty).value]
        bucket[1] += 1
        if results[question.id].is_correct:
            bucket[0] += 1
    return {
        level: DifficultyScore(correct=c, total=t, percentage=percent(c, t))
        for level, (c, t) in counts.items()
    }


def score_attempt(
    questions: Sequence[Question],
    answers: Iterable[UserAnswer],
    passing_threshold: int,
    time_spent_minutes: float = 0,
) -> ScoreReport:
    """
    Score a set of final answers.

    Args:
        questions: Every question of the exam (the denominator)
        answers: The attempt's persisted answer rows
        passing_threshold: Pass mark in percent
        time_spent_minutes: Attempt duration, for the efficiency label

    Returns:
        ScoreReport. The function is pure, so scoring the same answers
        twice gives identical results.
    """
    ordered = sorted(questions, key=lambda q: (q.position, q.id))
    rows = selections_by_question(answers)
    results = {q.id: score_question(q, rows.get(q.id, ())) for q in ordered}

    total = len(ordered)
    correct = sum(1 for r in results.values() if r.is_correct)
    score = percent(correct, total)

    return ScoreReport(
        correct_answers=correct,
        total_questions=total,
        score_percentage=score,
        passed=score >= passing_threshold,
        passing_threshold=passing_threshold,
        question_results=tuple(results[q.id] for q in ordered),
        knowledge_area_scores=_knowledge_area_scores(ordered, results),
        difficulty_breakdown=_difficulty_breakdown(ordered, results),
        performance_level=performance_level(score),
        time_efficiency=time_efficiency(time_spent_minutes, total),
    )
