"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root and tests dir (for factories) to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

from factories import CATALOG_DOCUMENT, T0, FixedClock  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory SQLite)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Controllable clock starting at T0."""
    return FixedClock(T0)


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all tables."""
    from certprep.db.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session bound to the in-memory database."""
    session = sessionmaker(bind=db_engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_session(db_session):
    """Session with the sample catalog and enrollments loaded."""
    from certprep.db.seed import seed_catalog

    seed_catalog(db_session, CATALOG_DOCUMENT, now=T0)
    db_session.commit()
    return db_session


@pytest.fixture
def repository(seeded_session):
    from certprep.db.repository import SqlExamRepository

    return SqlExamRepository(seeded_session)


@pytest.fixture
def service(repository, clock):
    from certprep.exam.session import ExamSessionService

    return ExamSessionService(repository, clock=clock)
