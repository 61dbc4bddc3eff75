"""Unit tests for AuthService.

Runs the session lifecycle against the in-memory repositories with real
bcrypt (cost 4) and real HS256 tokens.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import asyncio

import jwt
import pytest

from backoffice.exceptions import ConflictError, ConstraintViolation, UnauthorizedError
from backoffice.models.user import Role
from backoffice.repositories.base import hash_token
from backoffice.repositories.memory import MemoryRefreshTokenRepository
from backoffice.services.auth_service import (
    ACCOUNT_INACTIVE,
    INVALID_CREDENTIALS,
    INVALID_REFRESH_TOKEN,
    USER_UNAVAILABLE,
    AuthService,
)
from backoffice.services.token_service import TokenIssuer

EMAIL = "a@x.com"
PASSWORD = "Password123!"


async def _register(auth_service, email=EMAIL, role=None):
    return await auth_service.register(email, "A", "B", PASSWORD, role=role)


def _stored(memory_store, token):
    digest = hash_token(token)
    return next(r for r in memory_store.refresh_tokens.values() if r.token_hash == digest)


async def _deactivate(memory_store, user_id):
    users = memory_store.user_repository()
    user = await users.get_by_id(user_id)
    await users.update(user.with_changes(is_active=False))


class _InterleavingTokens(MemoryRefreshTokenRepository):
    """Yields to the event loop before each read and write."""

    async def find_active(self, token):
        await asyncio.sleep(0)
        return await super().find_active(token)

    async def revoke(self, record):
        await asyncio.sleep(0)
        return await super().revoke(record)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

class TestRegister:
    """Tests for register()."""

    async def test_register_then_duplicate_email(self, auth_service, memory_store):
        response = await _register(auth_service)

        assert response.access_token
        assert response.refresh_token
        assert response.user.email == EMAIL
        assert response.user.role is Role.VIEWER
        assert response.expires_in == "15m"

        with pytest.raises(ConflictError):
            await _register(auth_service)
        assert len(memory_store.users) == 1

    async def test_password_is_hashed(self, auth_service, memory_store):
        response = await _register(auth_service)
        record = memory_store.users[response.user.id]

        assert record.password_hash != PASSWORD
        assert record.password_hash.startswith("$2")
        assert auth_service.hasher.verify(PASSWORD, record.password_hash)

    async def test_accepts_explicit_role(self, auth_service):
        response = await _register(auth_service, role=Role.ADMIN)
        assert response.user.role is Role.ADMIN

    async def test_persists_refresh_token_digest(self, auth_service, memory_store):
        before = datetime.now(timezone.utc)
        response = await _register(auth_service)

        record = _stored(memory_store, response.refresh_token)
        assert record.user_id == response.user.id
        assert record.is_revoked is False
        assert record.token_hash != response.refresh_token
        delta = record.expires_at - before
        assert timedelta(days=7) - timedelta(seconds=5) < delta <= timedelta(days=7, seconds=5)

    async def test_access_token_claims(self, auth_service):
        response = await _register(auth_service, role=Role.MODERATOR)

        claims = auth_service.issuer.verify_access_token(response.access_token)
        assert claims["sub"] == str(response.user.id)
        assert claims["email"] == EMAIL
        assert claims["role"] == "moderator"
        assert claims["exp"] - claims["iat"] == 900

    async def test_store_constraint_maps_to_conflict(self, auth_config):
        users = AsyncMock()
        users.get_by_email.return_value = None
        users.create.side_effect = ConstraintViolation("users.email must be unique")
        tokens = AsyncMock()
        service = AuthService(auth_config, users, tokens)

        with pytest.raises(ConflictError):
            await service.register(EMAIL, "A", "B", PASSWORD)
        tokens.save.assert_not_called()


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for login()."""

    async def test_wrong_password_then_success_updates_last_login(self, auth_service, memory_store):
        registered = await _register(auth_service)

        with pytest.raises(UnauthorizedError, match=INVALID_CREDENTIALS):
            await auth_service.login(EMAIL, "WrongPassword1!")

        response = await auth_service.login(EMAIL, PASSWORD)
        assert response.access_token
        assert response.refresh_token

        stored = memory_store.users[registered.user.id]
        assert stored.last_login is not None
        assert datetime.now(timezone.utc) - stored.last_login < timedelta(seconds=5)
        assert response.user.last_login == stored.last_login

    async def test_unknown_email_matches_bad_password(self, auth_service):
        await _register(auth_service)

        with pytest.raises(UnauthorizedError) as unknown:
            await auth_service.login("nobody@x.com", PASSWORD)
        with pytest.raises(UnauthorizedError) as wrong:
            await auth_service.login(EMAIL, "nope")

        assert unknown.value.message == wrong.value.message == INVALID_CREDENTIALS

    async def test_inactive_user_rejected(self, auth_service, memory_store):
        registered = await _register(auth_service)
        await _deactivate(memory_store, registered.user.id)

        with pytest.raises(UnauthorizedError, match=ACCOUNT_INACTIVE):
            await auth_service.login(EMAIL, PASSWORD)

    async def test_each_login_is_a_new_session(self, auth_service, memory_store):
        await _register(auth_service)
        first = await auth_service.login(EMAIL, PASSWORD)
        second = await auth_service.login(EMAIL, PASSWORD)

        assert first.refresh_token != second.refresh_token
        assert len(memory_store.refresh_tokens) == 3


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

class TestRefreshAccessToken:
    """Tests for refresh_access_token()."""

    async def test_rotation_is_single_use(self, auth_service):
        await _register(auth_service)
        r1 = (await auth_service.login(EMAIL, PASSWORD)).refresh_token

        rotated = await auth_service.refresh_access_token(r1)
        r2 = rotated.refresh_token
        assert r2 != r1

        with pytest.raises(UnauthorizedError, match=INVALID_REFRESH_TOKEN):
            await auth_service.refresh_access_token(r1)

        again = await auth_service.refresh_access_token(r2)
        assert again.refresh_token not in (r1, r2)

    async def test_old_record_revoked_new_record_active(self, auth_service, memory_store):
        r1 = (await _register(auth_service)).refresh_token
        r2 = (await auth_service.refresh_access_token(r1)).refresh_token

        assert _stored(memory_store, r1).is_revoked is True
        assert _stored(memory_store, r2).is_revoked is False

    async def test_unknown_token(self, auth_service):
        with pytest.raises(UnauthorizedError, match=INVALID_REFRESH_TOKEN):
            await auth_service.refresh_access_token("not-a-token")

    async def test_expired_record_rejected(self, auth_service, memory_store):
        token = (await _register(auth_service)).refresh_token
        record = _stored(memory_store, token)
        memory_store.refresh_tokens[record.id] = record.model_copy(
            update={"expires_at": datetime.now(timezone.utc) - timedelta(seconds=1)}
        )

        with pytest.raises(UnauthorizedError, match=INVALID_REFRESH_TOKEN):
            await auth_service.refresh_access_token(token)
        assert memory_store.refresh_tokens[record.id].is_revoked is False

    async def test_inactive_user_rejected(self, auth_service, memory_store):
        registered = await _register(auth_service)
        await _deactivate(memory_store, registered.user.id)

        with pytest.raises(UnauthorizedError, match=USER_UNAVAILABLE):
            await auth_service.refresh_access_token(registered.refresh_token)

    async def test_wrong_signature_rejected(self, auth_service, memory_store):
        registered = await _register(auth_service)
        forged, expires_at = TokenIssuer(
            access_secret="other-access", refresh_secret="other-refresh"
        ).issue_refresh_token({"sub": str(registered.user.id)}, "7d")
        await memory_store.refresh_token_repository().save(
            registered.user.id, forged, expires_at
        )

        with pytest.raises(UnauthorizedError, match=INVALID_REFRESH_TOKEN):
            await auth_service.refresh_access_token(forged)

    async def test_access_token_is_not_a_refresh_token(self, auth_service, memory_store):
        registered = await _register(auth_service)
        access = registered.access_token
        await memory_store.refresh_token_repository().save(
            registered.user.id, access, datetime.now(timezone.utc) + timedelta(days=1)
        )

        with pytest.raises(UnauthorizedError, match=INVALID_REFRESH_TOKEN):
            await auth_service.refresh_access_token(access)

    async def test_concurrent_refresh_of_one_token_rotates_once(
        self, auth_config, memory_store
    ):
        service = AuthService(
            config=auth_config,
            users=memory_store.user_repository(),
            tokens=_InterleavingTokens(memory_store),
        )
        r1 = (await _register(service)).refresh_token

        results = await asyncio.gather(
            service.refresh_access_token(r1),
            service.refresh_access_token(r1),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        failed = [r for r in results if isinstance(r, UnauthorizedError)]
        assert len(succeeded) == 1
        assert len(failed) == 1
        active = [r for r in memory_store.refresh_tokens.values() if not r.is_revoked]
        assert [r.token_hash for r in active] == [hash_token(succeeded[0].refresh_token)]

    async def test_subject_must_match_owner(self, auth_service, memory_store):
        alice = await _register(auth_service, email="alice@x.com")
        bob = await _register(auth_service, email="bob@x.com")
        token, expires_at = auth_service.issuer.issue_refresh_token(
            {"sub": str(alice.user.id)}, "7d"
        )
        await memory_store.refresh_token_repository().save(bob.user.id, token, expires_at)

        with pytest.raises(UnauthorizedError, match=INVALID_REFRESH_TOKEN):
            await auth_service.refresh_access_token(token)


# ---------------------------------------------------------------------------
# Logout and revocation
# ---------------------------------------------------------------------------

class TestLogout:
    """Tests for logout() and revoke_all_tokens()."""

    async def test_unknown_token_is_noop(self, auth_service):
        await auth_service.logout(uuid4(), "does-not-exist")

    async def test_without_token_is_noop(self, auth_service, memory_store):
        registered = await _register(auth_service)
        await auth_service.logout(registered.user.id)
        assert _stored(memory_store, registered.refresh_token).is_revoked is False

    async def test_revokes_only_that_session(self, auth_service):
        await _register(auth_service)
        first = await auth_service.login(EMAIL, PASSWORD)
        second = await auth_service.login(EMAIL, PASSWORD)

        await auth_service.logout(first.user.id, first.refresh_token)

        with pytest.raises(UnauthorizedError):
            await auth_service.refresh_access_token(first.refresh_token)
        assert (await auth_service.refresh_access_token(second.refresh_token)).access_token

    async def test_logout_twice(self, auth_service):
        registered = await _register(auth_service)
        await auth_service.logout(registered.user.id, registered.refresh_token)
        await auth_service.logout(registered.user.id, registered.refresh_token)

    async def test_revoke_all_ends_every_session(self, auth_service):
        await _register(auth_service)
        r1 = (await auth_service.login(EMAIL, PASSWORD)).refresh_token
        r2 = (await auth_service.login(EMAIL, PASSWORD)).refresh_token
        user_id = (await auth_service.users.get_by_email(EMAIL)).id

        revoked = await auth_service.revoke_all_tokens(user_id)

        assert revoked == 3
        for token in (r1, r2):
            with pytest.raises(UnauthorizedError):
                await auth_service.refresh_access_token(token)

    async def test_revoke_all_for_unknown_user(self, auth_service):
        assert await auth_service.revoke_all_tokens(uuid4()) == 0


# ---------------------------------------------------------------------------
# Access-token authentication
# ---------------------------------------------------------------------------

class TestAuthenticate:
    """Tests for validate_user() and authenticate()."""

    async def test_authenticate_resolves_user(self, auth_service):
        registered = await _register(auth_service)
        user = await auth_service.authenticate(registered.access_token)
        assert user.id == registered.user.id

    async def test_authenticate_rejects_refresh_token(self, auth_service):
        registered = await _register(auth_service)
        with pytest.raises(UnauthorizedError):
            await auth_service.authenticate(registered.refresh_token)

    async def test_authenticate_rejects_deleted_user(self, auth_service, memory_store):
        registered = await _register(auth_service)
        await memory_store.user_repository().delete(registered.user.id)

        with pytest.raises(UnauthorizedError, match=USER_UNAVAILABLE):
            await auth_service.authenticate(registered.access_token)

    async def test_authenticate_rejects_non_uuid_subject(self, auth_service):
        token = auth_service.issuer.issue_access_token(
            {"sub": "not-a-uuid", "email": EMAIL, "role": "admin"}, "15m"
        )
        with pytest.raises(UnauthorizedError, match="Invalid token payload"):
            await auth_service.authenticate(token)

    async def test_authenticate_rejects_expired(self, auth_service):
        registered = await _register(auth_service)
        claims = auth_service.issuer.verify_access_token(registered.access_token)
        claims["exp"] = claims["iat"] - 1
        expired = jwt.encode(claims, auth_service.config.access_secret, algorithm="HS256")

        with pytest.raises(UnauthorizedError, match="expired"):
            await auth_service.authenticate(expired)

    async def test_validate_user(self, auth_service, memory_store):
        registered = await _register(auth_service)
        assert (await auth_service.validate_user(registered.user.id)).email == EMAIL

        await _deactivate(memory_store, registered.user.id)
        assert await auth_service.validate_user(registered.user.id) is None
        assert await auth_service.validate_user(uuid4()) is None


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------

class TestSanitization:
    """Every success response hides the password hash."""

    async def test_no_password_in_any_response(self, auth_service):
        responses = [await _register(auth_service)]
        responses.append(await auth_service.login(EMAIL, PASSWORD))
        responses.append(await auth_service.refresh_access_token(responses[-1].refresh_token))

        for response in responses:
            dumped = response.model_dump(by_alias=True)["user"]
            assert not any("password" in key.lower() for key in dumped)
