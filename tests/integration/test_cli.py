"""CLI commands against the seeded in-memory database."""
from contextlib import contextmanager

import pytest
from typer.testing import CliRunner

from certprep.cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def seeded_scope(monkeypatch, seeded_session):
    @contextmanager
    def scope():
        yield seeded_session
        seeded_session.commit()

    monkeypatch.setattr("certprep.db.database.session_scope", scope)


def test_exams_lists_groups(service):
    service.start_attempt("u1", "saa-2")

    result = runner.invoke(app, ["exams", "--user", "u1", "--enrolled"])

    assert result.exit_code == 0
    assert "AWS Solutions Architect" in result.output
    assert "Azure Fundamentals" not in result.output
    assert "Next up: SAA Practice Exam 2" in result.output


def test_exams_with_no_match():
    result = runner.invoke(app, ["exams", "-u", "u1", "--certification", "nope"])

    assert result.exit_code == 0
    assert "No practice exams match" in result.output


def test_in_progress(service):
    service.start_attempt("u1", "sec-1")

    result = runner.invoke(app, ["in-progress", "-u", "u1"])

    assert result.exit_code == 0
    assert "sec-1" in result.output
    assert "0/2 (0%)" in result.output


def test_results(service):
    attempt_id = service.start_attempt("u1", "sec-1").attempt_id
    service.submit_answer("u1", attempt_id, "s1", ["s1-a"])
    service.complete_attempt("u1", attempt_id)

    result = runner.invoke(app, ["results", attempt_id, "-u", "u1"])

    assert result.exit_code == 0
    assert "FAILED 50%" in result.output
    assert "Threats and Attacks" in result.output


def test_results_of_open_attempt_fails(service):
    attempt_id = service.start_attempt("u1", "sec-1").attempt_id

    result = runner.invoke(app, ["results", attempt_id, "-u", "u1"])

    assert result.exit_code == 1
    assert "in_progress" in result.output
