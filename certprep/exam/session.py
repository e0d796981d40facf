"""
Exam session service.

Drives one user's attempts through their lifecycle:

    not_started -> in_progress -> completed
                               -> abandoned (explicit restart only)

Every read and write goes through an ExamRepository, and time comes from
the injected clock. A completed or abandoned attempt never changes again;
the repository's conditional update makes submission happen at most once
even when two requests race.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from loguru import logger

from certprep.catalog.grouping import CertificationGroup, ExamSort, build_grouped_view
from certprep.catalog.status import annotate_exams
from config import get_settings

from .autosave import AnswerDraft, AutoSaveEngine, SaveCallable
from .dedup import InProgressView, active_attempts, in_progress_views
from .errors import (
    AttemptAlreadyActive,
    AttemptClosed,
    AttemptNotCompleted,
    AttemptNotFound,
    ExamNotFound,
    InvalidRequest,
    InvalidSelection,
    NotEnrolled,
    QuestionNotFound,
)
from .models import (
    AttemptHandle,
    AttemptStatus,
    CatalogFilters,
    ExamAttempt,
    ExamMode,
    PracticeExam,
    Question,
    UserAnswer,
)
from .progress import AttemptProgress, calculate_progress
from .repository import ExamRepository
from .scoring import ScoreReport, score_attempt
from .timer import elapsed_minutes, time_remaining_seconds
from .validator import SelectionResult, validate_selection


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionState:
    """Everything needed to render (or resume) an attempt."""

    attempt: ExamAttempt
    exam: PracticeExam
    questions: list[Question]
    answers: list[UserAnswer]
    progress: AttemptProgress
    time_remaining_seconds: int | None = None

    def selected_option_ids(self, question_id: str) -> tuple[str, ...]:
        return tuple(a.option_id for a in self.answers if a.question_id == question_id)


class ExamSessionService:
    """
    Attempt lifecycle operations for practice exams.

    Args:
        repository: Storage backend (see ExamRepository)
        clock: Returns the current time; defaults to UTC wall clock
    """

    def __init__(self, repository: ExamRepository, clock: Callable[[], datetime] | None = None):
        self.repository = repository
        self.clock = clock or utcnow

    # ========================================
    # Lookups
    # ========================================

    def _get_exam(self, exam_id: str) -> PracticeExam:
        exam = self.repository.get_exam(exam_id)
        if exam is None or not exam.is_active:
            raise ExamNotFound(f"Practice exam {exam_id} not found")
        return exam

    def _require_enrollment(self, user_id: str, exam: PracticeExam, now: datetime) -> None:
        enrollment = self.repository.get_current_enrollment(user_id, exam.certification_id, now)
        if enrollment is None:
            logger.warning("User {} is not enrolled for exam {}", user_id, exam.id)
            raise NotEnrolled(f"No current enrollment for certification {exam.certification_id}")

    def _get_owned_attempt(self, user_id: str, attempt_id: str) -> ExamAttempt:
        attempt = self.repository.get_attempt(attempt_id)
        if attempt is None or attempt.user_id != user_id:
            raise AttemptNotFound(f"Exam attempt {attempt_id} not found")
        return attempt

    @staticmethod
    def _require_open(attempt: ExamAttempt) -> None:
        if not attempt.is_open:
            logger.warning("Rejected change to {} attempt {}", attempt.status.value, attempt.id)
            raise AttemptClosed(attempt.id, attempt.status.value)

    def _raise_closed(self, attempt_id: str) -> None:
        current = self.repository.get_attempt(attempt_id)
        status = current.status.value if current else "missing"
        logger.warning("Attempt {} was closed concurrently ({})", attempt_id, status)
        raise AttemptClosed(attempt_id, status)

    def _active_attempt(self, user_id: str, exam_id: str) -> ExamAttempt | None:
        attempts = self.repository.list_attempts(user_id, exam_id=exam_id, status=AttemptStatus.IN_PROGRESS)
        active = active_attempts(attempts)
        return active[0] if active else None

    def _handle(
        self,
        attempt: ExamAttempt,
        exam: PracticeExam,
        total_questions: int,
        answers: Sequence[UserAnswer] = (),
        resumed: bool = False,
    ) -> AttemptHandle:
        progress = calculate_progress(answers, total_questions)
        return AttemptHandle(
            attempt_id=attempt.id,
            exam_id=exam.id,
            mode=attempt.mode,
            started_at=attempt.started_at,
            total_questions=total_questions,
            current_question=progress.current_question,
            time_remaining_seconds=time_remaining_seconds(attempt, exam, self.clock()),
            resumed=resumed,
        )

    # ========================================
    # Starting
    # ========================================

    def start_attempt(self, user_id: str, exam_id: str, mode: ExamMode = ExamMode.EXAM) -> AttemptHandle:
        """
        Start a new attempt.

        Raises:
            ExamNotFound: Exam missing or inactive
            NotEnrolled: No current enrollment for the exam's certification
            AttemptAlreadyActive: The user already has this exam in progress
        """
        now = self.clock()
        exam = self._get_exam(exam_id)
        self._require_enrollment(user_id, exam, now)

        active = self._active_attempt(user_id, exam_id)
        if active is not None:
            logger.warning("User {} already has attempt {} in progress for exam {}", user_id, active.id, exam_id)
            raise AttemptAlreadyActive(active.id)

        questions = self.repository.get_questions(exam_id)
        attempt = self.repository.create_attempt(
            user_id=user_id,
            exam_id=exam_id,
            mode=ExamMode(mode),
            started_at=now,
            total_questions=len(questions),
        )
        logger.info("Started attempt {} for user {} on exam {} ({} mode)", attempt.id, user_id, exam_id, attempt.mode.value)
        return self._handle(attempt, exam, len(questions))

    def resume_or_start(self, user_id: str, exam_id: str, mode: ExamMode = ExamMode.EXAM) -> AttemptHandle:
        """Resume the user's in-progress attempt for an exam, or start one."""
        now = self.clock()
        exam = self._get_exam(exam_id)
        self._require_enrollment(user_id, exam, now)

        active = self._active_attempt(user_id, exam_id)
        if active is None:
            return self.start_attempt(user_id, exam_id, mode)

        questions = self.repository.get_questions(exam_id)
        answers = self.repository.list_answers(active.id)
        logger.info("Resuming attempt {} for user {}", active.id, user_id)
        return self._handle(active, exam, len(questions), answers, resumed=True)

    # ========================================
    # In-progress operations
    # ========================================

    def get_session_state(self, user_id: str, attempt_id: str) -> SessionState:
        attempt = self._get_owned_attempt(user_id, attempt_id)
        exam = self.repository.get_exam(attempt.exam_id)
        if exam is None:
            raise ExamNotFound(f"Practice exam {attempt.exam_id} not found")

        questions = self.repository.get_questions(exam.id)
        answers = self.repository.list_answers(attempt.id)
        return SessionState(
            attempt=attempt,
            exam=exam,
            questions=questions,
            answers=answers,
            progress=calculate_progress(answers, len(questions)),
            time_remaining_seconds=time_remaining_seconds(attempt, exam, self.clock()),
        )

    def submit_answer(
        self,
        user_id: str,
        attempt_id: str,
        question_id: str,
        option_ids: Sequence[str],
        time_spent_seconds: int = 0,
    ) -> list[UserAnswer]:
        """
        Replace the stored answer for one question.

        An empty option list clears the answer. Otherwise the selection
        must satisfy the question's selection contract.

        Returns:
            The rows now stored for (attempt, question)

        Raises:
            InvalidRequest: Negative time spent
            AttemptNotFound: Attempt missing or owned by another user
            AttemptClosed: Attempt already completed or abandoned
            QuestionNotFound: Question is not part of the attempt's exam
            InvalidSelection: Selection violates the question's contract
        """
        if time_spent_seconds < 0:
            raise InvalidRequest(f"time_spent_seconds must be >= 0, got {time_spent_seconds}")

        attempt = self._get_owned_attempt(user_id, attempt_id)
        self._require_open(attempt)

        questions = {q.id: q for q in self.repository.get_questions(attempt.exam_id)}
        question = questions.get(question_id)
        if question is None:
            raise QuestionNotFound(f"Question {question_id} is not part of exam {attempt.exam_id}")

        selection = list(option_ids)
        if selection:
            result = validate_selection(question.required_selections, selection, question.option_ids)
            if result != SelectionResult.VALID:
                raise InvalidSelection(question_id, result, question.required_selections, len(selection))

        now = self.clock()
        correct = question.correct_option_ids
        rows = [
            UserAnswer(
                attempt_id=attempt.id,
                question_id=question_id,
                option_id=option_id,
                answered_at=now,
                time_spent_seconds=time_spent_seconds,
                is_correct=option_id in correct,
            )
            for option_id in selection
        ]
        stored = self.repository.replace_answers(attempt.id, question_id, rows)
        logger.debug("Saved {} option(s) for question {} in attempt {}", len(stored), question_id, attempt.id)
        return stored

    def answer_saver(self, user_id: str, attempt_id: str) -> SaveCallable:
        """Save callable for an AutoSaveEngine bound to one attempt."""

        async def save(snapshot: Mapping[str, AnswerDraft]) -> None:
            for draft in snapshot.values():
                self.submit_answer(
                    user_id,
                    attempt_id,
                    draft.question_id,
                    draft.option_ids,
                    draft.time_spent_seconds,
                )

        return save

    def open_autosave(self, user_id: str, attempt_id: str, **engine_options) -> AutoSaveEngine:
        """Build an auto-save engine writing through submit_answer. Timing defaults come from settings."""
        self._require_open(self._get_owned_attempt(user_id, attempt_id))
        settings = get_settings()
        engine_options.setdefault("debounce_seconds", settings.autosave_debounce_seconds)
        engine_options.setdefault("saved_display_seconds", settings.autosave_saved_display_seconds)
        return AutoSaveEngine(self.answer_saver(user_id, attempt_id), **engine_options)

    # ========================================
    # Closing
    # ========================================

    def complete_attempt(self, user_id: str, attempt_id: str) -> ScoreReport:
        """
        Score and close an attempt.

        Unanswered questions count as wrong. The aggregates are written
        exactly once; a concurrent submission that loses the race gets
        AttemptClosed.
        """
        attempt = self._get_owned_attempt(user_id, attempt_id)
        self._require_open(attempt)

        exam = self.repository.get_exam(attempt.exam_id)
        if exam is None:
            raise ExamNotFound(f"Practice exam {attempt.exam_id} not found")

        # Answers are read under the attempt lock so no save lands unscored
        if not self.repository.lock_open_attempt(attempt.id):
            self._raise_closed(attempt.id)

        questions = self.repository.get_questions(exam.id)
        answers = self.repository.list_answers(attempt.id)
        now = self.clock()
        minutes = elapsed_minutes(attempt.started_at, now)
        report = score_attempt(questions, answers, exam.passing_threshold_percentage, minutes)

        updated = self.repository.complete_attempt(
            attempt.id,
            completed_at=now,
            time_spent_minutes=minutes,
            **report.aggregates,
        )
        if not updated:
            self._raise_closed(attempt.id)

        logger.info(
            "Completed attempt {}: {}/{} ({}%) passed={}",
            attempt.id,
            report.correct_answers,
            report.total_questions,
            report.score_percentage,
            report.passed,
        )
        return report

    def abandon_active_attempts(self, user_id: str, exam_id: str) -> int:
        """Restart an exam: abandon the user's in-progress attempts for it."""
        self._get_exam(exam_id)
        count = self.repository.abandon_attempts(user_id, exam_id, self.clock())
        if count:
            logger.info("Abandoned {} attempt(s) of exam {} for user {}", count, exam_id, user_id)
        return count

    # ========================================
    # Read models
    # ========================================

    def list_in_progress(self, user_id: str) -> list[InProgressView]:
        """Deduplicated in-progress attempts with progress, newest first."""
        attempts = self.repository.list_attempts(user_id, status=AttemptStatus.IN_PROGRESS)
        active = active_attempts(attempts)
        answers = self.repository.list_answers_for_attempts([a.id for a in active])
        counts = {a.exam_id: a.total_questions or 0 for a in active}
        return in_progress_views(active, answers, counts)

    def get_results(self, user_id: str, attempt_id: str) -> ScoreReport:
        """Detailed score report of a completed attempt."""
        attempt = self._get_owned_attempt(user_id, attempt_id)
        if attempt.status != AttemptStatus.COMPLETED:
            raise AttemptNotCompleted(f"Exam attempt {attempt_id} is {attempt.status.value}")

        exam = self.repository.get_exam(attempt.exam_id)
        if exam is None:
            raise ExamNotFound(f"Practice exam {attempt.exam_id} not found")

        questions = self.repository.get_questions(exam.id)
        answers = self.repository.list_answers(attempt.id)
        return score_attempt(
            questions,
            answers,
            exam.passing_threshold_percentage,
            attempt.time_spent_minutes or 0,
        )

    def list_grouped_exams(
        self,
        user_id: str,
        filters: CatalogFilters | None = None,
        sort: ExamSort | None = None,
    ) -> list[CertificationGroup]:
        """The practice exam catalog grouped by certification, with the user's status."""
        filters = filters or CatalogFilters()
        now = self.clock()
        rows = self.repository.list_catalog_exams(filters)
        enrollments = self.repository.list_enrollments(user_id, now)
        attempts = self.repository.list_attempts(user_id)
        annotated = annotate_exams(rows, enrollments, attempts, now)
        return build_grouped_view(annotated, filters, sort)
