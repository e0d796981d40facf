import copy
import re
from datetime import datetime

import pytest
from sqlalchemy import func, select

from certprep.db import models as orm
from certprep.db.seed import seed_catalog
from factories import CATALOG_DOCUMENT, T0


def _document_with_question(**overrides):
    document = copy.deepcopy(CATALOG_DOCUMENT)
    question = document["exams"][0]["questions"][0]
    question.update(overrides)
    return document


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


class TestQuestionRules:
    """Questions that break the selection contract never reach the database."""

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"options": [{"id": "q1-a", "text": "Only", "is_correct": True}]}, "1 options"),
            ({"options": [{"text": f"Option {i}", "is_correct": i == 0} for i in range(6)]}, "6 options"),
            ({"required_selections": 0}, "required_selections must be >= 1"),
            ({"required_selections": 2}, "1 correct option(s) but required_selections=2"),
        ],
    )
    def test_invalid_question_rejects_document(self, db_session, overrides, message):
        with pytest.raises(ValueError, match=re.escape(message)):
            seed_catalog(db_session, _document_with_question(**overrides), now=T0)

        assert _count(db_session, orm.Category) == 0
        assert _count(db_session, orm.Question) == 0

    def test_sample_catalog_counts(self, db_session):
        counts = seed_catalog(db_session, CATALOG_DOCUMENT, now=T0)

        assert counts["exams"] == 4
        assert counts["questions"] == 8
        assert _count(db_session, orm.AnswerOption) == 32


class TestReseeding:
    def test_same_document_twice_keeps_one_row_each(self, db_session):
        seed_catalog(db_session, CATALOG_DOCUMENT, now=T0)
        db_session.commit()
        seed_catalog(db_session, CATALOG_DOCUMENT, now=T0)
        db_session.commit()

        assert _count(db_session, orm.UserEnrollment) == 3
        assert _count(db_session, orm.PracticeExam) == 4
        assert _count(db_session, orm.Question) == 8

    def test_reseed_updates_enrollment_expiry(self, db_session):
        seed_catalog(db_session, CATALOG_DOCUMENT, now=T0)
        document = copy.deepcopy(CATALOG_DOCUMENT)
        document["enrollments"] = [{"user_id": "u1", "certification_id": "az-900", "days": 30}]

        seed_catalog(db_session, document, now=T0)

        rows = db_session.scalars(
            select(orm.UserEnrollment).where(orm.UserEnrollment.certification_id == "az-900")
        ).all()
        assert len(rows) == 1
        assert rows[0].expires_at.replace(tzinfo=None) == datetime(2026, 2, 4, 9, 0)
