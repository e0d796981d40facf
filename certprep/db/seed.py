"""
Catalog seeding from a JSON document.

Document shape (IDs optional except where referenced):

    {
      "categories":      [{"id", "name", "slug"}],
      "certifications":  [{"id", "category_id", "name", "slug", "price_cents"}],
      "knowledge_areas": [{"id", "certification_id", "name", "weight_percentage"}],
      "exams": [{
          "id", "certification_id", "name", "time_limit_minutes",
          "passing_threshold_percentage", "sort_order",
          "questions": [{
              "id", "knowledge_area_id", "text", "difficulty", "position",
              "required_selections", "explanation",
              "options": [{"id", "text", "is_correct"}]
          }]
      }],
      "enrollments": [{"user_id", "certification_id", "expires_at" | "days"}]
    }

Every question needs 2-5 options, required_selections >= 1 and exactly
required_selections correct options; a document breaking any of these
raises ValueError before rows are written. Option letters are assigned
A-E in list order. Catalog rows are merged by primary key and
enrollments by (user_id, certification_id), so seeding the same document
twice leaves one row of each.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from certprep.db import models as orm
from certprep.db.models.base import new_id
from certprep.exam.models import OPTION_LETTERS, Difficulty


def _question_row(exam_id: str, position: int, data: dict[str, Any]) -> orm.Question:
    label = data.get("id") or data.get("text", "")[:40]
    options = data.get("options", [])
    if not 2 <= len(options) <= len(OPTION_LETTERS):
        raise ValueError(f"Question {label!r} has {len(options)} options; expected 2-{len(OPTION_LETTERS)}")

    required = int(data.get("required_selections", 1))
    if required < 1:
        raise ValueError(f"Question {label!r}: required_selections must be >= 1, got {required}")
    correct = sum(1 for o in options if o.get("is_correct"))
    if correct != required:
        raise ValueError(f"Question {label!r}: {correct} correct option(s) but required_selections={required}")

    question_id = data.get("id") or new_id()
    return orm.Question(
        id=question_id,
        exam_id=exam_id,
        knowledge_area_id=data["knowledge_area_id"],
        question_text=data["text"],
        explanation=data.get("explanation"),
        difficulty=Difficulty(data.get("difficulty", "medium")).value,
        position=int(data.get("position", position)),
        required_selections=required,
        options=[
            orm.AnswerOption(
                id=o.get("id") or new_id(),
                question_id=question_id,
                answer_text=o["text"],
                is_correct=bool(o.get("is_correct", False)),
                letter=letter,
            )
            for letter, o in zip(OPTION_LETTERS, options)
        ],
    )


def _expires_at(data: dict[str, Any], now: datetime) -> datetime:
    if "expires_at" in data:
        return datetime.fromisoformat(data["expires_at"])
    return now + timedelta(days=int(data.get("days", 365)))


def seed_catalog(session: Session, data: dict[str, Any], now: datetime | None = None) -> dict[str, int]:
    """
    Load a catalog document into the database.

    Returns:
        Row counts per section, e.g. {"exams": 2, "questions": 40, ...}
    """
    now = now or datetime.now(timezone.utc)
    counts = {"categories": 0, "certifications": 0, "knowledge_areas": 0, "exams": 0, "questions": 0, "enrollments": 0}

    # Validate every question before anything is written
    exams = []
    for item in data.get("exams", []):
        exam_id = item.get("id") or new_id()
        questions = [_question_row(exam_id, i + 1, q) for i, q in enumerate(item.get("questions", []))]
        exams.append((exam_id, item, questions))

    for item in data.get("categories", []):
        session.merge(orm.Category(id=item["id"], name=item["name"], slug=item.get("slug", item["id"])))
        counts["categories"] += 1

    for item in data.get("certifications", []):
        session.merge(
            orm.Certification(
                id=item["id"],
                category_id=item["category_id"],
                name=item["name"],
                slug=item.get("slug", item["id"]),
                price_cents=int(item.get("price_cents", 0)),
                is_active=item.get("is_active", True),
            )
        )
        counts["certifications"] += 1

    for item in data.get("knowledge_areas", []):
        session.merge(
            orm.KnowledgeArea(
                id=item["id"],
                certification_id=item["certification_id"],
                name=item["name"],
                weight_percentage=float(item.get("weight_percentage", 0)),
            )
        )
        counts["knowledge_areas"] += 1

    for exam_id, item, questions in exams:
        session.merge(
            orm.PracticeExam(
                id=exam_id,
                certification_id=item["certification_id"],
                name=item["name"],
                description=item.get("description"),
                question_count=len(questions),
                time_limit_minutes=item.get("time_limit_minutes"),
                passing_threshold_percentage=item.get("passing_threshold_percentage"),
                sort_order=int(item.get("sort_order", 0)),
                is_active=item.get("is_active", True),
                questions=questions,
            )
        )
        counts["exams"] += 1
        counts["questions"] += len(questions)

    for item in data.get("enrollments", []):
        existing = session.scalars(
            select(orm.UserEnrollment).where(
                orm.UserEnrollment.user_id == item["user_id"],
                orm.UserEnrollment.certification_id == item["certification_id"],
            )
        ).first()
        if existing is None:
            session.add(
                orm.UserEnrollment(
                    user_id=item["user_id"],
                    certification_id=item["certification_id"],
                    enrolled_at=now,
                    expires_at=_expires_at(item, now),
                )
            )
        else:
            existing.expires_at = _expires_at(item, now)
        session.flush()
        counts["enrollments"] += 1

    session.flush()
    logger.info("Seeded catalog: {}", counts)
    return counts


def seed_from_file(session: Session, path: Path) -> dict[str, int]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return seed_catalog(session, data)
