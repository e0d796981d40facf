# SQLAlchemy models
from .attempts import ExamAttempt, UserAnswer, UserEnrollment
from .base import Base
from .catalog import (
    AnswerOption,
    Category,
    Certification,
    KnowledgeArea,
    PracticeExam,
    Question,
)

__all__ = [
    "AnswerOption",
    "Base",
    "Category",
    "Certification",
    "ExamAttempt",
    "KnowledgeArea",
    "PracticeExam",
    "Question",
    "UserAnswer",
    "UserEnrollment",
]
