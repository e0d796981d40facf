"""
Exceptions raised by the exam session engine.

Validation errors are raised before anything is written. State errors
name the rule that was broken. Transient save failures never surface
here; the auto-save engine reports them through its status instead.
"""

from __future__ import annotations


class ExamEngineError(Exception):
    """Base class for all engine errors."""

    code = "exam_error"


# Validation


class InvalidRequest(ExamEngineError):
    """Malformed input that is not a selection problem (e.g. negative time)."""

    code = "invalid_request"


class InvalidSelection(ExamEngineError):
    """Selected options do not satisfy the question's selection contract."""

    code = "invalid_selection"

    def __init__(self, question_id: str, result, required_selections: int, submitted_count: int):
        self.question_id = question_id
        self.result = result
        self.required_selections = required_selections
        self.submitted_count = submitted_count
        super().__init__(
            f"Invalid selection for question {question_id}: {result.value} "
            f"(expected {required_selections}, received {submitted_count})"
        )


# Lookup


class NotFoundError(ExamEngineError):
    code = "not_found"


class ExamNotFound(NotFoundError):
    code = "exam_not_found"


class AttemptNotFound(NotFoundError):
    """Attempt does not exist or does not belong to the caller."""

    code = "attempt_not_found"


class QuestionNotFound(NotFoundError):
    code = "question_not_found"


# State


class NotEnrolled(ExamEngineError):
    """Caller has no current enrollment for the exam's certification."""

    code = "not_enrolled"


class AttemptClosed(ExamEngineError):
    """Attempt is completed or abandoned and accepts no further mutation."""

    code = "attempt_closed"

    def __init__(self, attempt_id: str, status: str):
        self.attempt_id = attempt_id
        self.status = status
        super().__init__(f"Exam attempt {attempt_id} is {status}")


class AttemptAlreadyActive(ExamEngineError):
    """An in-progress attempt already exists for this user and exam."""

    code = "attempt_already_active"

    def __init__(self, attempt_id: str):
        self.attempt_id = attempt_id
        super().__init__(f"Exam attempt {attempt_id} is already in progress")


class AttemptNotCompleted(ExamEngineError):
    """Results were requested for an attempt that has not been scored."""

    code = "attempt_not_completed"
