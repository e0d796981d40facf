from datetime import timedelta

from certprep.catalog.status import annotate_exams
from certprep.exam.models import AttemptStatus, CatalogExam, Enrollment, ExamMode, ExamStatus
from factories import T0, make_attempt, make_certification, make_exam

CERT = make_certification("cert-1", "AWS Solutions Architect")


def _rows(*exam_ids):
    return [CatalogExam(exam=make_exam(exam_id, CERT.id), certification=CERT) for exam_id in exam_ids]


class TestAnnotateExams:
    def test_status_follows_latest_attempt(self):
        attempts = [
            make_attempt("a1", "exam-1", T0, AttemptStatus.COMPLETED, score=80),
            make_attempt("a2", "exam-1", T0 + timedelta(hours=1), AttemptStatus.IN_PROGRESS, mode=ExamMode.PRACTICE),
            make_attempt("b1", "exam-2", T0, AttemptStatus.ABANDONED),
        ]
        annotated = annotate_exams(_rows("exam-1", "exam-2", "exam-3"), [], attempts, T0)

        first, second, third = annotated
        assert first.status == ExamStatus.IN_PROGRESS
        assert first.best_score == 80
        assert first.attempt_count == 2
        assert first.current_attempt_mode == ExamMode.PRACTICE
        assert second.status == ExamStatus.NOT_STARTED
        assert second.attempt_count == 1
        assert third.status == ExamStatus.NOT_STARTED
        assert third.best_score is None

    def test_best_score_over_completed_attempts(self):
        attempts = [
            make_attempt("a1", started_at=T0, status=AttemptStatus.COMPLETED, score=55),
            make_attempt("a2", started_at=T0 + timedelta(days=1), status=AttemptStatus.COMPLETED, score=91),
            make_attempt("a3", started_at=T0 + timedelta(days=2), status=AttemptStatus.COMPLETED, score=70),
        ]
        [row] = annotate_exams(_rows("exam-1"), [], attempts, T0)

        assert row.status == ExamStatus.COMPLETED
        assert row.best_score == 91
        assert row.latest_attempt.id == "a3"

    def test_expired_enrollment_is_ignored(self):
        current = Enrollment(user_id="u1", certification_id="cert-1", expires_at=T0 + timedelta(days=1))
        expired = Enrollment(user_id="u1", certification_id="cert-1", expires_at=T0 - timedelta(days=1))

        assert annotate_exams(_rows("exam-1"), [current], [], T0)[0].is_enrolled
        assert not annotate_exams(_rows("exam-1"), [expired], [], T0)[0].is_enrolled
