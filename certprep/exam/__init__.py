"""
Exam session engine.

Validation, progress, deduplication, auto-save, scoring and the attempt
lifecycle. The service lives in ``certprep.exam.session``.
"""

from .errors import ExamEngineError
from .models import AttemptStatus, Difficulty, ExamMode, ExamStatus

__all__ = ["AttemptStatus", "Difficulty", "ExamEngineError", "ExamMode", "ExamStatus"]
