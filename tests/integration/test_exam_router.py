"""
HTTP tests for the exam router.

The database session dependency is overridden with the seeded in-memory
session, and the service clock is pinned to T0.
"""
import pytest
from fastapi.testclient import TestClient

from certprep.api.main import app
from certprep.api.routers.exam_router import get_exam_service
from certprep.db.database import get_session
from certprep.exam.session import ExamSessionService

U1 = {"X-User-Id": "u1"}


@pytest.fixture
def client(seeded_session, repository, clock):
    def override_session():
        yield seeded_session
        seeded_session.commit()

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_exam_service] = lambda: ExamSessionService(repository, clock=clock)
    yield TestClient(app)
    app.dependency_overrides.clear()


def _start(client, exam_id="saa-1", **body):
    return client.post("/api/exam/start", json={"exam_id": exam_id, **body}, headers=U1)


class TestStart:
    def test_start_and_resume(self, client):
        first = _start(client)
        assert first.status_code == 200
        data = first.json()
        assert data["total_questions"] == 4
        assert data["time_remaining_seconds"] == 7800
        assert data["resumed"] is False

        second = _start(client)
        assert second.json()["attempt_id"] == data["attempt_id"]
        assert second.json()["resumed"] is True

    def test_start_without_resume_conflicts(self, client):
        attempt_id = _start(client).json()["attempt_id"]

        response = _start(client, resume=False)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "attempt_already_active"
        assert response.json()["detail"]["attempt_id"] == attempt_id

    def test_practice_mode(self, client):
        response = _start(client, mode="practice")
        assert response.json()["mode"] == "practice"
        assert response.json()["time_remaining_seconds"] is None

    def test_expired_enrollment_is_forbidden(self, client):
        response = _start(client, "az-1")
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "not_enrolled"

    def test_unknown_exam(self, client):
        assert _start(client, "missing").status_code == 404

    def test_user_header_required(self, client):
        response = client.post("/api/exam/start", json={"exam_id": "saa-1"})
        assert response.status_code == 422


class TestAnswerAndSubmit:
    @pytest.fixture
    def attempt_id(self, client):
        return _start(client).json()["attempt_id"]

    def _save(self, client, attempt_id, question_id, option_ids, headers=U1):
        return client.post(
            "/api/exam/save-answer",
            json={"attempt_id": attempt_id, "question_id": question_id, "option_ids": option_ids},
            headers=headers,
        )

    def test_session_hides_correct_answers(self, client, attempt_id):
        self._save(client, attempt_id, "q3", ["q3-a", "q3-c"])

        response = client.get(f"/api/exam/session/{attempt_id}", headers=U1)

        assert response.status_code == 200
        data = response.json()
        assert data["progress"]["questions_answered"] == 1
        q3 = next(q for q in data["questions"] if q["id"] == "q3")
        assert sorted(q3["selected_option_ids"]) == ["q3-a", "q3-c"]
        assert "is_correct" not in q3["options"][0]

    def test_invalid_selection(self, client, attempt_id):
        response = self._save(client, attempt_id, "q3", ["q3-a"])

        assert response.status_code == 400
        assert response.json()["detail"]["result"] == "too_few"

    def test_other_user_cannot_save(self, client, attempt_id):
        response = self._save(client, attempt_id, "q1", ["q1-a"], headers={"X-User-Id": "u2"})
        assert response.status_code == 404

    def test_submit_then_results(self, client, attempt_id, clock):
        self._save(client, attempt_id, "q1", ["q1-a"])
        self._save(client, attempt_id, "q2", ["q2-c"])
        clock.advance(minutes=5)

        submitted = client.post("/api/exam/submit", json={"attempt_id": attempt_id}, headers=U1)
        assert submitted.status_code == 200
        assert submitted.json()["score_percentage"] == 50
        assert submitted.json()["passed"] is False

        results = client.get(f"/api/exam/results/{attempt_id}", headers=U1)
        assert results.json()["correct_answers"] == 2
        assert [a["id"] for a in results.json()["knowledge_areas"]] == ["ka-design", "ka-secure"]

        again = client.post("/api/exam/submit", json={"attempt_id": attempt_id}, headers=U1)
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "attempt_closed"

    def test_results_before_submit(self, client, attempt_id):
        response = client.get(f"/api/exam/results/{attempt_id}", headers=U1)
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "attempt_not_completed"


class TestRestartAndLists:
    def test_restart(self, client):
        _start(client)
        assert len(client.get("/api/exam/in-progress", headers=U1).json()) == 1

        response = client.post("/api/exam/restart", json={"exam_id": "saa-1"}, headers=U1)

        assert response.json() == {"abandoned_attempts": 1}
        assert client.get("/api/exam/in-progress", headers=U1).json() == []

    def test_catalog(self, client):
        _start(client, "saa-2")

        response = client.get("/api/practice-exams", params={"enrolled_only": True}, headers=U1)

        assert response.status_code == 200
        data = response.json()
        assert [g["certification_id"] for g in data["groups"]] == ["aws-saa", "sec-plus"]
        assert data["stats"]["in_progress_exams"] == 1
        assert data["recommended_exam_id"] == "saa-2"

    def test_free_filter(self, client):
        response = client.get("/api/practice-exams", params={"free_only": True}, headers=U1)
        assert [g["is_free"] for g in response.json()["groups"]] == [True]
