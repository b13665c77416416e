"""Tests for the viewer API endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from lesson_viewer.progress.models import Lesson
from lesson_viewer.viewer.session import ViewerSessionRegistry


COURSE_ID = 10


@pytest.fixture
def login_id(client: TestClient) -> str:
    response = client.post("/v1/viewer/logins", json={"user_id": 7})
    assert response.status_code == 201
    return response.json()["login_id"]


@pytest.fixture
def session_id(client: TestClient, login_id: str) -> str:
    response = client.post(
        "/v1/viewer/sessions", json={"login_id": login_id, "course_id": COURSE_ID}
    )
    assert response.status_code == 201
    return response.json()["session_id"]


class TestSessions:
    """Tests for opening and inspecting viewer sessions."""

    def test_open_session(self, client: TestClient, login_id: str) -> None:
        response = client.post(
            "/v1/viewer/sessions", json={"login_id": login_id, "course_id": COURSE_ID}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["enrolled"] is True
        assert data["summary"]["label"] == "0% (0/3)"
        assert [lesson["id"] for lesson in data["lessons"]] == [1, 2, 3]
        assert data["next_lesson_id"] == 1
        assert data["playback_status"] is None

    def test_open_with_unknown_login(self, client: TestClient) -> None:
        response = client.post(
            "/v1/viewer/sessions", json={"login_id": "nope", "course_id": COURSE_ID}
        )
        assert response.status_code == 404
        assert response.json()["code"] == "session_not_found"

    def test_open_validates_body(self, client: TestClient) -> None:
        response = client.post("/v1/viewer/sessions", json={"course_id": 0})
        assert response.status_code == 422
        assert response.json()["message"] == "Validation error"

    def test_storage_failure_is_bad_gateway(
        self, client: TestClient, login_id: str, registry: ViewerSessionRegistry
    ) -> None:
        registry.catalog.list_lessons = AsyncMock(side_effect=ConnectionError("down"))

        response = client.post(
            "/v1/viewer/sessions", json={"login_id": login_id, "course_id": COURSE_ID}
        )

        assert response.status_code == 502
        assert response.json()["code"] == "persistence_failure"

    def test_get_unknown_session(self, client: TestClient) -> None:
        response = client.get("/v1/viewer/sessions/missing")
        assert response.status_code == 404

    def test_close_session(self, client: TestClient, session_id: str) -> None:
        assert client.delete(f"/v1/viewer/sessions/{session_id}").status_code == 204
        assert client.get(f"/v1/viewer/sessions/{session_id}").status_code == 404
        assert client.delete(f"/v1/viewer/sessions/{session_id}").status_code == 404


class TestLessons:
    """Tests for selection and completion endpoints."""

    def test_select_and_complete(self, client: TestClient, session_id: str) -> None:
        base = f"/v1/viewer/sessions/{session_id}"

        selected = client.post(f"{base}/lessons/1/select")
        assert selected.status_code == 200
        assert selected.json()["action"] == "create"
        assert selected.json()["playback_status"] == "initialized"
        assert selected.json()["playback_available"] is True

        completed = client.post(f"{base}/complete")
        assert completed.status_code == 200
        assert completed.json()["summary"]["label"] == "33% (1/3)"
        assert completed.json()["course_completed"] is False

        again = client.post(f"{base}/complete")
        assert again.status_code == 409
        assert again.json()["code"] == "already_completed"

        snapshot = client.get(base).json()
        assert snapshot["current_lesson_id"] == 1
        assert snapshot["next_lesson_id"] == 2
        assert snapshot["lessons"][0]["completed"] is True

    def test_complete_without_selection(
        self, client: TestClient, session_id: str
    ) -> None:
        response = client.post(f"/v1/viewer/sessions/{session_id}/complete")
        assert response.status_code == 409
        assert response.json()["code"] == "no_lesson_selected"

    def test_select_unknown_lesson(self, client: TestClient, session_id: str) -> None:
        response = client.post(f"/v1/viewer/sessions/{session_id}/lessons/99/select")
        assert response.status_code == 404
        assert response.json()["code"] == "lesson_not_found"

    def test_playback_failure_is_reported_and_signalled(
        self, client: TestClient, session_id: str, backend
    ) -> None:
        backend.fail_create.add("a.mp4")
        base = f"/v1/viewer/sessions/{session_id}"

        selected = client.post(f"{base}/lessons/1/select")

        assert selected.status_code == 200
        assert selected.json()["playback_available"] is False
        assert "not found" in selected.json()["playback_error"]

        signals = client.get(f"{base}/signals").json()
        assert signals["total"] == 1
        assert signals["items"][0]["kind"] == "playback_unavailable"
        assert client.get(f"{base}/signals").json()["total"] == 0

    def test_course_completion_signal(self, client: TestClient, session_id: str) -> None:
        base = f"/v1/viewer/sessions/{session_id}"

        results = [
            client.post(f"{base}/lessons/{lesson_id}/complete").json()
            for lesson_id in (1, 2, 3, 3)
        ]

        assert [result["course_completed"] for result in results] == [
            False,
            False,
            True,
            False,
        ]
        assert results[-1]["changed"] is False
        kinds = [item["kind"] for item in client.get(f"{base}/signals").json()["items"]]
        assert kinds == ["course_completed"]

    def test_not_enrolled_is_forbidden(self, client: TestClient) -> None:
        login = client.post("/v1/viewer/logins", json={"user_id": 99}).json()
        session = client.post(
            "/v1/viewer/sessions",
            json={"login_id": login["login_id"], "course_id": COURSE_ID},
        ).json()

        response = client.post(
            f"/v1/viewer/sessions/{session['session_id']}/lessons/1/select"
        )
        assert response.status_code == 403
        assert response.json()["code"] == "not_enrolled"

    def test_unenrolled_preview_completion_is_forbidden(
        self, client: TestClient, registry: ViewerSessionRegistry
    ) -> None:
        registry.catalog.add(
            Lesson(
                id=4,
                course_id=COURSE_ID,
                position=4,
                title="Trailer",
                media_ref="t.mp4",
                is_preview=True,
            )
        )
        registry.gateway.complete_lesson = AsyncMock(return_value=True)
        login = client.post("/v1/viewer/logins", json={"user_id": 99}).json()
        session = client.post(
            "/v1/viewer/sessions",
            json={"login_id": login["login_id"], "course_id": COURSE_ID},
        ).json()
        base = f"/v1/viewer/sessions/{session['session_id']}"

        assert client.post(f"{base}/lessons/4/select").status_code == 200
        response = client.post(f"{base}/complete")

        assert response.status_code == 403
        assert response.json()["code"] == "not_enrolled"
        registry.gateway.complete_lesson.assert_not_called()


class TestLogout:
    """Tests for logging out."""

    def test_logout_closes_viewers(
        self, client: TestClient, login_id: str, session_id: str
    ) -> None:
        response = client.delete(f"/v1/viewer/logins/{login_id}")

        assert response.status_code == 200
        assert response.json()["closed_viewers"] == 1
        assert client.get(f"/v1/viewer/sessions/{session_id}").status_code == 404
        assert client.delete(f"/v1/viewer/logins/{login_id}").status_code == 404


class TestCatalogAdministration:
    """Tests for lesson and enrollment administration."""

    @pytest.fixture
    def staff_headers(self, client: TestClient) -> dict[str, str]:
        login = client.post(
            "/v1/viewer/logins", json={"user_id": 1, "role": "admin"}
        ).json()
        return {"X-Login-ID": login["login_id"]}

    def test_seeded_course_is_viewable(
        self, client: TestClient, staff_headers: dict[str, str]
    ) -> None:
        saved = client.put(
            "/v1/viewer/courses/20/lessons/50",
            json={"position": 1, "title": "Welcome", "media_ref": "w.mp4"},
            headers=staff_headers,
        )
        assert saved.status_code == 200
        assert saved.json()["has_media"] is True

        enrolled = client.post(
            "/v1/viewer/courses/20/enrollments",
            json={"user_id": 42},
            headers=staff_headers,
        )
        assert enrolled.status_code == 201
        assert enrolled.json() == {"user_id": 42, "course_id": 20, "enrolled": True}

        login = client.post("/v1/viewer/logins", json={"user_id": 42}).json()
        session = client.post(
            "/v1/viewer/sessions",
            json={"login_id": login["login_id"], "course_id": 20},
        ).json()
        assert session["enrolled"] is True
        assert session["summary"]["label"] == "0% (0/1)"

        selected = client.post(
            f"/v1/viewer/sessions/{session['session_id']}/lessons/50/select"
        )
        assert selected.json()["playback_available"] is True

    def test_login_header_required(self, client: TestClient) -> None:
        response = client.post("/v1/viewer/courses/20/enrollments", json={"user_id": 42})
        assert response.status_code == 401
        assert response.json()["code"] == "login_required"

        response = client.post(
            "/v1/viewer/courses/20/enrollments",
            json={"user_id": 42},
            headers={"X-Login-ID": "unknown"},
        )
        assert response.status_code == 401

    def test_students_cannot_administer(self, client: TestClient, login_id: str) -> None:
        response = client.put(
            "/v1/viewer/courses/20/lessons/50",
            json={"position": 1, "title": "Sneaky"},
            headers={"X-Login-ID": login_id},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"


def test_lifespan_registry_serves_first_login() -> None:
    """A freshly started app has no sessions and still accepts logins."""
    from lesson_viewer.main import app

    with TestClient(app) as test_client:
        assert len(app.state.viewer_registry) == 0

        login = test_client.post("/v1/viewer/logins", json={"user_id": 5})
        assert login.status_code == 201

        session = test_client.post(
            "/v1/viewer/sessions",
            json={"login_id": login.json()["login_id"], "course_id": 1},
        )
        assert session.status_code == 201
        assert session.json()["lessons"] == []
