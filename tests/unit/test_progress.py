import random

import pytest

from certprep.exam.progress import calculate_progress, percent
from factories import answer_rows


class TestPercent:
    @pytest.mark.parametrize(
        "part, whole, expected",
        [
            (0, 10, 0),
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),  # 12.5 rounds half up
            (5, 8, 63),  # 62.5 rounds half up
            (10, 10, 100),
            (3, 0, 0),
        ],
    )
    def test_rounding(self, part, whole, expected):
        assert percent(part, whole) == expected


class TestCalculateProgress:
    """Progress counts distinct questions, not answer rows."""

    def test_multi_select_rows_count_once(self):
        answers = answer_rows("att-1", "q1", "A") + answer_rows("att-1", "q2", "A", "C")
        progress = calculate_progress(answers, 4)

        assert progress.questions_answered == 2
        assert progress.percentage == 50
        assert progress.current_question == 3

    def test_no_answers(self):
        progress = calculate_progress([], 4)
        assert progress.questions_answered == 0
        assert progress.percentage == 0
        assert progress.current_question == 1

    def test_all_answered_clamps_current_question(self):
        answers = [row for q in ("q1", "q2", "q3") for row in answer_rows("att-1", q, "B")]
        progress = calculate_progress(answers, 3)

        assert progress.percentage == 100
        assert progress.current_question == 3

    def test_zero_questions(self):
        progress = calculate_progress([], 0)
        assert progress.percentage == 0
        assert progress.current_question == 1

    def test_order_and_duplicates_do_not_matter(self):
        answers = answer_rows("att-1", "q1", "A", "B") + answer_rows("att-1", "q3", "C")
        shuffled = answers * 2
        random.Random(7).shuffle(shuffled)

        assert calculate_progress(shuffled, 5) == calculate_progress(answers, 5)

    def test_reanswering_is_idempotent(self):
        first = answer_rows("att-1", "q1", "A")
        second = answer_rows("att-1", "q1", "D")
        assert calculate_progress(first, 4) == calculate_progress(second, 4)

    def test_percentage_never_decreases(self):
        total = 7
        answers = []
        seen = []
        for n in range(1, total + 1):
            answers += answer_rows("att-1", f"q{n}", "A")
            if n % 2 == 0:
                answers += answer_rows("att-1", f"q{n - 1}", "B")
            seen.append(calculate_progress(answers, total).percentage)

        assert seen == sorted(seen)
        assert seen[-1] == 100
