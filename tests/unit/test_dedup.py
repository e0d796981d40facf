from datetime import timedelta

from certprep.exam.dedup import active_attempts, in_progress_views, latest_attempt, latest_attempts_by_exam
from certprep.exam.models import AttemptStatus
from factories import T0, answer_rows, make_attempt


class TestLatestAttemptsByExam:
    """Concurrent starts resolve to the most recently started attempt."""

    def test_latest_started_wins(self):
        older = make_attempt("att-old", started_at=T0)
        newer = make_attempt("att-new", started_at=T0 + timedelta(seconds=5))

        latest = latest_attempts_by_exam([newer, older])

        assert list(latest) == ["exam-1"]
        assert latest["exam-1"].id == "att-new"

    def test_input_order_does_not_matter(self):
        attempts = [
            make_attempt("a1", started_at=T0),
            make_attempt("a2", started_at=T0 + timedelta(minutes=1)),
            make_attempt("b1", exam_id="exam-2", started_at=T0 + timedelta(minutes=3)),
        ]
        forward = latest_attempts_by_exam(attempts)
        backward = latest_attempts_by_exam(list(reversed(attempts)))

        assert forward == backward
        assert [a.id for a in forward.values()] == ["b1", "a2"]

    def test_equal_start_times_break_ties_by_id(self):
        first = make_attempt("att-a", started_at=T0)
        second = make_attempt("att-b", started_at=T0)

        assert latest_attempt([first, second]).id == "att-b"
        assert latest_attempt([second, first]).id == "att-b"

    def test_empty(self):
        assert latest_attempts_by_exam([]) == {}
        assert latest_attempt([]) is None


class TestActiveAttempts:
    def test_only_in_progress_survive(self):
        attempts = [
            make_attempt("done", started_at=T0 + timedelta(hours=1), status=AttemptStatus.COMPLETED),
            make_attempt("open", started_at=T0),
        ]
        assert [a.id for a in active_attempts(attempts)] == ["open"]


class TestInProgressViews:
    def test_one_row_per_exam_with_progress(self):
        attempts = [
            make_attempt("dup-old", started_at=T0, total_questions=4),
            make_attempt("dup-new", started_at=T0 + timedelta(seconds=1), total_questions=4),
        ]
        answers = {"dup-new": answer_rows("dup-new", "q1", "A")}

        views = in_progress_views(attempts, answers, {"exam-1": 4})

        assert len(views) == 1
        assert views[0].attempt.id == "dup-new"
        assert views[0].progress.questions_answered == 1
        assert views[0].progress.percentage == 25
