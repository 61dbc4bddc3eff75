"""Tests for the JSON error envelope on framework and unexpected errors."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs


def _assert_envelope(body: dict, status_code: int, error_code: str) -> None:
    assert body["statusCode"] == status_code
    assert body["errorCode"] == error_code
    assert body["message"]
    assert body["timestamp"]
    assert body["correlationId"]


class TestFrameworkErrors:
    """Routing errors raised by Starlette use the same envelope."""

    def test_unknown_route(self, client):
        response = client.get("/api/v1/no-such-route")

        assert response.status_code == 404
        _assert_envelope(response.json(), 404, "NOT_FOUND")
        assert response.headers["X-Correlation-Id"] == response.json()["correlationId"]

    def test_unversioned_path_is_not_routed(self, client):
        response = client.post("/auth/login", json={"email": "a@x.com", "password": "x"})
        assert response.status_code == 404

    def test_wrong_method(self, client):
        response = client.delete("/api/v1/auth/login")

        assert response.status_code == 405
        _assert_envelope(response.json(), 405, "METHOD_NOT_ALLOWED")

    def test_correlation_id_header_is_reused(self, client):
        response = client.get(
            "/api/v1/no-such-route", headers={"X-Correlation-Id": "trace-404"}
        )
        assert response.json()["correlationId"] == "trace-404"


@pytest.fixture
def failing_client():
    """TestClient whose auth service dependency raises an unexpected error."""

    def broken_auth_service():
        raise RuntimeError("connection pool exhausted")

    with (
        patch("backoffice.database.init_database", new_callable=AsyncMock),
        patch("backoffice.database.run_migrations", new_callable=AsyncMock),
        patch("backoffice.database.close_database", new_callable=AsyncMock),
        patch("backoffice.main.configure_logging"),
    ):
        from backoffice.api.dependencies import get_auth_service
        from backoffice.main import app

        app.dependency_overrides[get_auth_service] = broken_auth_service
        with TestClient(app, raise_server_exceptions=False) as tc:
            yield tc
        app.dependency_overrides.pop(get_auth_service, None)


class TestUnexpectedErrors:
    """Unhandled exceptions become a logged 500 envelope."""

    def test_internal_error_envelope(self, failing_client):
        with capture_logs() as logs:
            response = failing_client.post(
                "/api/v1/auth/login",
                json={"email": "a@x.com", "password": "Password123!"},
            )

        assert response.status_code == 500
        body = response.json()
        _assert_envelope(body, 500, "INTERNAL_SERVER_ERROR")
        assert "connection pool exhausted" not in body["message"]

        errors = [entry for entry in logs if entry["event"] == "unhandled_exception"]
        assert len(errors) == 1
        assert errors[0]["log_level"] == "error"
        assert errors[0]["error_type"] == "RuntimeError"
