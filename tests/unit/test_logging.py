"""Unit tests for logging service."""

import structlog
from structlog.testing import capture_logs

from backoffice.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_authorization(self):
        """Test authorization field is redacted."""
        event_dict = {"authorization": "Bearer token123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"

    def test_redacts_secret_in_key_name(self):
        """Test fields containing 'secret' are redacted."""
        event_dict = {"jwt_refresh_secret": "abc123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["jwt_refresh_secret"] == "REDACTED"

    def test_redacts_password(self):
        event_dict = {"password": "mypassword", "password_hash": "$2b$...", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"
        assert result["password_hash"] == "REDACTED"

    def test_redacts_token_values(self):
        """Test raw and hashed token values are redacted."""
        event_dict = {
            "access_token": "eyJ...",
            "refresh_token": "eyJ...",
            "token_hash": "ab12",
            "event": "test",
        }
        result = redact_sensitive(None, None, event_dict)
        assert result["access_token"] == "REDACTED"
        assert result["refresh_token"] == "REDACTED"
        assert result["token_hash"] == "REDACTED"
        assert result["event"] == "test"

    def test_preserves_non_sensitive_fields(self):
        """Test non-sensitive fields are preserved."""
        event_dict = {
            "correlation_id": "abc-123",
            "user_id": "42",
            "duration_ms": 100,
        }
        result = redact_sensitive(None, None, event_dict)
        assert result == {"correlation_id": "abc-123", "user_id": "42", "duration_ms": 100}

    def test_case_insensitive_redaction(self):
        """Test redaction works regardless of case."""
        event_dict = {"Authorization": "secret1", "Refresh_Token": "secret2"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Authorization"] == "REDACTED"
        assert result["Refresh_Token"] == "REDACTED"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_get_logger_returns_bound_logger(self):
        """Test get_logger returns a structlog logger."""
        configure_logging("INFO")
        logger = get_logger("test_module")
        assert logger is not None
        logger.info("test_event", data="value")

    def test_get_logger_without_name(self):
        configure_logging("INFO")
        assert get_logger() is not None

    def test_json_output_is_redacted(self, capsys):
        """Test emitted JSON lines pass through the redaction processor."""
        configure_logging("INFO")
        structlog.get_logger("redaction-check").info(
            "token_issued", refresh_token="super-secret-value", user_id="u1"
        )

        out = capsys.readouterr().out
        assert "super-secret-value" not in out
        assert '"user_id": "u1"' in out


class TestCorrelationIdBinding:
    """Tests for correlation ID context binding."""

    def test_correlation_id_binds_to_context(self):
        """Test correlation ID is properly bound via contextvars."""
        configure_logging("INFO")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id="test-123")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx["correlation_id"] == "test-123"

        structlog.contextvars.clear_contextvars()


class TestSessionLogging:
    """The auth flow never logs refresh-token values."""

    async def test_refresh_tokens_never_logged(self, auth_service):
        with capture_logs() as logs:
            registered = await auth_service.register("a@x.com", "A", "B", "Password123!")
            rotated = await auth_service.refresh_access_token(registered.refresh_token)
            await auth_service.logout(rotated.user.id, rotated.refresh_token)

        assert {entry["event"] for entry in logs} >= {
            "user_registered",
            "refresh_token_rotated",
            "refresh_token_revoked",
        }
        rendered = repr(logs)
        assert registered.refresh_token not in rendered
        assert rotated.refresh_token not in rendered

    def test_http_flow_is_captured_without_token_values(self, client):
        with capture_logs() as logs:
            registered = client.post(
                "/api/v1/auth/register",
                json={
                    "email": "a@x.com",
                    "firstName": "A",
                    "lastName": "B",
                    "password": "Password123!",
                },
            ).json()
            rotated = client.post(
                "/api/v1/auth/refresh",
                json={"refreshToken": registered["refreshToken"]},
            ).json()

        events = [entry["event"] for entry in logs]
        assert "user_registered" in events
        assert "refresh_token_rotated" in events
        assert events.count("http_request") == 2
        rendered = repr(logs)
        assert registered["refreshToken"] not in rendered
        assert rotated["refreshToken"] not in rendered
