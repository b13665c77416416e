"""Tests for logging context variables."""

from lesson_viewer.core.context import (
    ViewerContext,
    clear_context,
    get_context,
    get_request_id,
    set_request_id,
)
from lesson_viewer.core.logging import filter_sensitive_data


def test_set_request_id_generates_one() -> None:
    request_id = set_request_id()
    assert request_id
    assert get_request_id() == request_id
    clear_context()
    assert get_request_id() == ""


def test_viewer_context_binds_and_restores() -> None:
    clear_context()
    set_request_id("req-1")

    with ViewerContext("viewer-1", user_id=7, course_id=10):
        assert get_context() == {
            "request_id": "req-1",
            "user_id": "7",
            "viewer_session_id": "viewer-1",
            "course_id": "10",
        }
        with ViewerContext("viewer-2"):
            assert get_context()["viewer_session_id"] == "viewer-2"
            assert get_context()["user_id"] == "7"
        assert get_context()["viewer_session_id"] == "viewer-1"

    assert get_context() == {"request_id": "req-1"}
    clear_context()


def test_sensitive_fields_are_masked() -> None:
    event = filter_sensitive_data(
        None, "info", {"event": "cassandra_connected", "cassandra_password": "s3cret"}
    )
    assert event["cassandra_password"] != "s3cret"
    assert event["event"] == "cassandra_connected"
