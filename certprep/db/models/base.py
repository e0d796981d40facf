"""Declarative base shared by all ORM models."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    """Primary key default: UUID4 as text, portable across SQLite and Postgres."""
    return str(uuid4())
