"""Unit tests for TokenIssuer (access and refresh JWTs)."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt
import pytest

from backoffice.exceptions import UnauthorizedError
from backoffice.services.token_service import JWT_ALGORITHM, TokenIssuer

ACCESS_SECRET = "access-secret-for-tests"
REFRESH_SECRET = "refresh-secret-for-tests"


@pytest.fixture
def issuer():
    return TokenIssuer(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


def _access_claims(user_id=None):
    return {"sub": user_id or str(uuid4()), "email": "alice@example.com", "role": "viewer"}


class TestAccessToken:
    """Tests for access-token issuance and verification."""

    def test_round_trip_claims(self, issuer):
        user_id = str(uuid4())
        token = issuer.issue_access_token(_access_claims(user_id), "15m")
        payload = issuer.verify_access_token(token)

        assert payload["sub"] == user_id
        assert payload["email"] == "alice@example.com"
        assert payload["role"] == "viewer"
        assert payload["type"] == "access"
        assert payload["jti"]

    def test_expiry_matches_ttl(self, issuer):
        token = issuer.issue_access_token(_access_claims(), "15m")
        payload = issuer.verify_access_token(token)
        assert payload["exp"] - payload["iat"] == 15 * 60

    def test_accepts_timedelta_ttl(self, issuer):
        token = issuer.issue_access_token(_access_claims(), timedelta(hours=1))
        payload = issuer.verify_access_token(token)
        assert payload["exp"] - payload["iat"] == 3600

    def test_missing_required_claims(self, issuer):
        with pytest.raises(ValueError, match="role"):
            issuer.issue_access_token({"sub": "u1", "email": "a@x.com"}, "15m")

    def test_expired_token_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        stale = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=lambda: past)
        token = stale.issue_access_token(_access_claims(), "15m")

        with pytest.raises(UnauthorizedError, match="expired"):
            TokenIssuer(ACCESS_SECRET, REFRESH_SECRET).verify_access_token(token)

    def test_wrong_secret_rejected(self, issuer):
        forged = TokenIssuer("someone-else", REFRESH_SECRET).issue_access_token(
            _access_claims(), "15m"
        )
        with pytest.raises(UnauthorizedError, match="Invalid"):
            issuer.verify_access_token(forged)

    def test_tampered_claims_rejected(self, issuer):
        token = issuer.issue_access_token(_access_claims(), "15m")
        header, payload, signature = token.split(".")
        claims = jwt.decode(token, options={"verify_signature": False})
        claims["role"] = "admin"
        forged_payload = jwt.encode(claims, "x", algorithm=JWT_ALGORITHM).split(".")[1]

        with pytest.raises(UnauthorizedError):
            issuer.verify_access_token(".".join([header, forged_payload, signature]))

    def test_garbage_rejected(self, issuer):
        with pytest.raises(UnauthorizedError, match="Invalid"):
            issuer.verify_access_token("not.a.jwt")

    def test_refresh_token_is_not_an_access_token(self, issuer):
        refresh, _ = issuer.issue_refresh_token({"sub": "u1"}, "7d")
        with pytest.raises(UnauthorizedError):
            issuer.verify_access_token(refresh)

    def test_type_claim_checked_even_with_shared_secret(self):
        shared = TokenIssuer("same-secret", "same-secret")
        refresh, _ = shared.issue_refresh_token({"sub": "u1"}, "7d")
        with pytest.raises(UnauthorizedError):
            shared.verify_access_token(refresh)


class TestRefreshToken:
    """Tests for refresh-token issuance and verification."""

    def test_claims_and_expiry(self, issuer):
        before = datetime.now(timezone.utc)
        token, expires_at = issuer.issue_refresh_token({"sub": "user-1"}, "7d")
        payload = issuer.verify_refresh_token(token)

        assert payload["sub"] == "user-1"
        assert payload["type"] == "refresh"
        assert "email" not in payload
        assert expires_at - before >= timedelta(days=7) - timedelta(seconds=1)
        assert expires_at - before <= timedelta(days=7, seconds=5)

    def test_hour_ttl_gives_real_offset(self, issuer):
        before = datetime.now(timezone.utc)
        _, expires_at = issuer.issue_refresh_token({"sub": "user-1"}, "12h")
        assert expires_at - before >= timedelta(hours=12) - timedelta(seconds=1)

    def test_tokens_unique_within_same_second(self, issuer):
        first, _ = issuer.issue_refresh_token({"sub": "user-1"}, "7d")
        second, _ = issuer.issue_refresh_token({"sub": "user-1"}, "7d")
        assert first != second

    def test_access_token_is_not_a_refresh_token(self, issuer):
        access = issuer.issue_access_token(_access_claims(), "15m")
        with pytest.raises(UnauthorizedError):
            issuer.verify_refresh_token(access)

    def test_requires_subject(self, issuer):
        with pytest.raises(ValueError, match="sub"):
            issuer.issue_refresh_token({}, "7d")
