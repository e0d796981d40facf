"""
Exam session router.

Endpoints for:
- Starting, resuming and restarting practice exam attempts
- Saving answers while an attempt is open
- Submitting an attempt for scoring
- The grouped practice exam catalog

Authentication happens upstream; the caller's ID arrives in the
X-User-Id header.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from certprep.catalog.grouping import (
    CertificationGroup,
    ExamSort,
    SortDirection,
    SortField,
    grouped_stats,
    next_recommended_exam,
)
from certprep.db.database import get_session
from certprep.db.repository import SqlExamRepository
from certprep.exam.errors import (
    AttemptAlreadyActive,
    AttemptClosed,
    AttemptNotCompleted,
    ExamEngineError,
    InvalidRequest,
    InvalidSelection,
    NotEnrolled,
    NotFoundError,
)
from certprep.exam.models import CatalogFilters, ExamMode, ExamStatus
from certprep.exam.scoring import ScoreReport
from certprep.exam.session import ExamSessionService
from config import get_settings

router = APIRouter()


# ========================================
# Dependencies
# ========================================


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    return x_user_id


def get_exam_service(session: Session = Depends(get_session)) -> ExamSessionService:
    settings = get_settings()
    repository = SqlExamRepository(session, default_passing_threshold=settings.default_passing_threshold)
    return ExamSessionService(repository)


def _to_http(exc: ExamEngineError) -> HTTPException:
    """Map engine errors to HTTP status codes."""
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, NotEnrolled):
        status = 403
    elif isinstance(exc, (AttemptClosed, AttemptAlreadyActive, AttemptNotCompleted)):
        status = 409
    elif isinstance(exc, (InvalidSelection, InvalidRequest)):
        status = 400
    else:
        status = 500
    detail = {"code": exc.code, "message": str(exc)}
    if isinstance(exc, InvalidSelection):
        detail["result"] = exc.result.value
    if isinstance(exc, AttemptAlreadyActive):
        detail["attempt_id"] = exc.attempt_id
    return HTTPException(status_code=status, detail=detail)


# ========================================
# Request/Response Models
# ========================================


class StartExamRequest(BaseModel):
    """Request model for starting (or resuming) an attempt."""

    exam_id: str = Field(..., description="Practice exam ID")
    mode: Optional[ExamMode] = Field(None, description="exam (timed) or practice; server default if omitted")
    resume: bool = Field(True, description="Resume an in-progress attempt instead of failing")


class AttemptResponse(BaseModel):
    attempt_id: str
    exam_id: str
    mode: ExamMode
    started_at: datetime
    total_questions: int
    current_question: int
    time_remaining_seconds: Optional[int]
    resumed: bool


class OptionResponse(BaseModel):
    id: str
    letter: str
    text: str


class QuestionResponse(BaseModel):
    """Question as shown during an attempt (correct answers withheld)."""

    id: str
    position: int
    text: str
    difficulty: str
    required_selections: int
    knowledge_area: Optional[str]
    options: list[OptionResponse]
    selected_option_ids: list[str]


class ProgressResponse(BaseModel):
    questions_answered: int
    total_questions: int
    percentage: int
    current_question: int


class SessionResponse(BaseModel):
    attempt_id: str
    exam_id: str
    exam_name: str
    status: str
    mode: ExamMode
    started_at: datetime
    time_remaining_seconds: Optional[int]
    progress: ProgressResponse
    questions: list[QuestionResponse]


class SaveAnswerRequest(BaseModel):
    """Request model for saving one question's answer. Empty option_ids clears it."""

    attempt_id: str
    question_id: str
    option_ids: list[str] = Field(default_factory=list)
    time_spent_seconds: int = 0


class SaveAnswerResponse(BaseModel):
    question_id: str
    option_ids: list[str]
    saved_at: Optional[datetime]


class SubmitRequest(BaseModel):
    attempt_id: str


class KnowledgeAreaScoreResponse(BaseModel):
    id: str
    name: str
    weight_percentage: float
    correct_answers: int
    total_questions: int
    score_percentage: int
    performance_level: str


class ScoreResponse(BaseModel):
    correct_answers: int
    total_questions: int
    score_percentage: int
    passed: bool
    passing_threshold: int
    performance_level: str
    time_efficiency: str
    knowledge_areas: list[KnowledgeAreaScoreResponse]


class RestartRequest(BaseModel):
    exam_id: str


class RestartResponse(BaseModel):
    abandoned_attempts: int


class InProgressResponse(BaseModel):
    attempt_id: str
    exam_id: str
    mode: ExamMode
    started_at: datetime
    progress: ProgressResponse


class CatalogExamResponse(BaseModel):
    id: str
    name: str
    status: ExamStatus
    best_score: Optional[int]
    attempt_count: int
    question_count: int
    time_limit_minutes: Optional[int]
    sort_order: int
    current_attempt_mode: Optional[ExamMode]


class CertificationGroupResponse(BaseModel):
    certification_id: str
    certification_name: str
    category: str
    is_enrolled: bool
    is_free: bool
    exams: list[CatalogExamResponse]


class CatalogResponse(BaseModel):
    groups: list[CertificationGroupResponse]
    stats: dict[str, int]
    recommended_exam_id: Optional[str]


def _score_response(report: ScoreReport) -> ScoreResponse:
    return ScoreResponse(
        correct_answers=report.correct_answers,
        total_questions=report.total_questions,
        score_percentage=report.score_percentage,
        passed=report.passed,
        passing_threshold=report.passing_threshold,
        performance_level=report.performance_level,
        time_efficiency=report.time_efficiency,
        knowledge_areas=[KnowledgeAreaScoreResponse(**vars(area)) for area in report.knowledge_area_scores],
    )


def _group_response(group: CertificationGroup) -> CertificationGroupResponse:
    return CertificationGroupResponse(
        certification_id=group.certification.id,
        certification_name=group.certification.name,
        category=group.category.name,
        is_enrolled=group.is_enrolled,
        is_free=group.certification.is_free,
        exams=[
            CatalogExamResponse(
                id=e.id,
                name=e.name,
                status=e.status,
                best_score=e.best_score,
                attempt_count=e.attempt_count,
                question_count=e.exam.question_count,
                time_limit_minutes=e.exam.time_limit_minutes,
                sort_order=e.sort_order,
                current_attempt_mode=e.current_attempt_mode,
            )
            for e in group.exams
        ],
    )


# ========================================
# Attempt Endpoints
# ========================================


@router.post("/exam/start", response_model=AttemptResponse, summary="Start or resume an attempt")
def start_exam(
    request: StartExamRequest,
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> AttemptResponse:
    mode = request.mode or ExamMode(get_settings().exam_default_mode)
    try:
        if request.resume:
            handle = service.resume_or_start(user_id, request.exam_id, mode)
        else:
            handle = service.start_attempt(user_id, request.exam_id, mode)
    except ExamEngineError as exc:
        raise _to_http(exc)
    return AttemptResponse(**vars(handle))


@router.get("/exam/session/{attempt_id}", response_model=SessionResponse, summary="Load an attempt")
def get_exam_session(
    attempt_id: str,
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> SessionResponse:
    try:
        state = service.get_session_state(user_id, attempt_id)
    except ExamEngineError as exc:
        raise _to_http(exc)

    return SessionResponse(
        attempt_id=state.attempt.id,
        exam_id=state.exam.id,
        exam_name=state.exam.name,
        status=state.attempt.status.value,
        mode=state.attempt.mode,
        started_at=state.attempt.started_at,
        time_remaining_seconds=state.time_remaining_seconds,
        progress=ProgressResponse(**vars(state.progress)),
        questions=[
            QuestionResponse(
                id=q.id,
                position=q.position,
                text=q.text,
                difficulty=q.difficulty.value,
                required_selections=q.required_selections,
                knowledge_area=q.knowledge_area.name if q.knowledge_area else None,
                options=[OptionResponse(id=o.id, letter=o.letter, text=o.text) for o in q.options],
                selected_option_ids=list(state.selected_option_ids(q.id)),
            )
            for q in state.questions
        ],
    )


@router.post("/exam/save-answer", response_model=SaveAnswerResponse, summary="Save one answer")
def save_answer(
    request: SaveAnswerRequest,
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> SaveAnswerResponse:
    try:
        rows = service.submit_answer(
            user_id,
            request.attempt_id,
            request.question_id,
            request.option_ids,
            request.time_spent_seconds,
        )
    except ExamEngineError as exc:
        raise _to_http(exc)
    return SaveAnswerResponse(
        question_id=request.question_id,
        option_ids=[r.option_id for r in rows],
        saved_at=rows[0].answered_at if rows else None,
    )


@router.post("/exam/submit", response_model=ScoreResponse, summary="Submit an attempt for scoring")
def submit_exam(
    request: SubmitRequest,
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> ScoreResponse:
    try:
        report = service.complete_attempt(user_id, request.attempt_id)
    except ExamEngineError as exc:
        raise _to_http(exc)
    return _score_response(report)


@router.get("/exam/results/{attempt_id}", response_model=ScoreResponse, summary="Results of a completed attempt")
def get_exam_results(
    attempt_id: str,
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> ScoreResponse:
    try:
        report = service.get_results(user_id, attempt_id)
    except ExamEngineError as exc:
        raise _to_http(exc)
    return _score_response(report)


@router.post("/exam/restart", response_model=RestartResponse, summary="Abandon in-progress attempts")
def restart_exam(
    request: RestartRequest,
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> RestartResponse:
    try:
        count = service.abandon_active_attempts(user_id, request.exam_id)
    except ExamEngineError as exc:
        raise _to_http(exc)
    return RestartResponse(abandoned_attempts=count)


@router.get("/exam/in-progress", response_model=list[InProgressResponse], summary="Attempts to resume")
def list_in_progress(
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> list[InProgressResponse]:
    return [
        InProgressResponse(
            attempt_id=view.attempt.id,
            exam_id=view.attempt.exam_id,
            mode=view.attempt.mode,
            started_at=view.attempt.started_at,
            progress=ProgressResponse(**vars(view.progress)),
        )
        for view in service.list_in_progress(user_id)
    ]


# ========================================
# Catalog Endpoints
# ========================================


@router.get("/practice-exams", response_model=CatalogResponse, summary="Grouped practice exam catalog")
def list_practice_exams(
    category_id: Optional[str] = Query(None),
    certification_id: Optional[str] = Query(None),
    free_only: bool = Query(False),
    enrolled_only: bool = Query(False),
    status: Optional[ExamStatus] = Query(None),
    sort: SortField = Query(SortField.SORT_ORDER),
    direction: SortDirection = Query(SortDirection.ASC),
    user_id: str = Depends(get_user_id),
    service: ExamSessionService = Depends(get_exam_service),
) -> CatalogResponse:
    filters = CatalogFilters(
        category_id=category_id,
        certification_id=certification_id,
        free_only=free_only,
        enrolled_only=enrolled_only,
        status=status,
    )
    logger.debug("Listing practice exams for {} with {}", user_id, filters)
    groups = service.list_grouped_exams(user_id, filters, ExamSort(sort, direction))
    recommended = next_recommended_exam(groups)
    return CatalogResponse(
        groups=[_group_response(g) for g in groups],
        stats=vars(grouped_stats(groups)),
        recommended_exam_id=recommended.id if recommended else None,
    )
