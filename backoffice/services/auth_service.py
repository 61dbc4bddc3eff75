"""Authentication service: registration, login, and refresh-token lifecycle."""

import asyncio
from typing import Optional
from uuid import UUID, uuid4

import structlog

from backoffice.config import AuthConfig
from backoffice.exceptions import ConflictError, ConstraintViolation, UnauthorizedError
from backoffice.models.auth import AuthResponse
from backoffice.models.user import Role, UserRecord
from backoffice.repositories.base import RefreshTokenRepository, UserRepository
from backoffice.services.password_hasher import PasswordHasher
from backoffice.services.token_service import Clock, TokenIssuer, utcnow

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_INACTIVE = "User account is inactive"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
USER_UNAVAILABLE = "User not found or inactive"


class AuthService:
    """Orchestrates credentials, token issuance and refresh-token rotation.

    Access tokens are stateless: any validly signed, unexpired token
    authenticates. Refresh tokens are checked against persisted revocation
    state and are single-use; every refresh revokes the presented token and
    issues a new pair.

    Args:
        config: Secrets, TTLs and hash cost
        users: User directory
        tokens: Refresh-token store
        hasher: Password hasher (defaults to bcrypt at ``config.hash_cost``)
        issuer: Token issuer (defaults to HS256 with the configured secrets)
        clock: Source of "now" for expiry checks and last-login stamps
    """

    def __init__(
        self,
        config: AuthConfig,
        users: UserRepository,
        tokens: RefreshTokenRepository,
        hasher: Optional[PasswordHasher] = None,
        issuer: Optional[TokenIssuer] = None,
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self.users = users
        self.tokens = tokens
        self.hasher = hasher or PasswordHasher(rounds=config.hash_cost)
        self.issuer = issuer or TokenIssuer(
            access_secret=config.access_secret,
            refresh_secret=config.refresh_secret,
        )
        self._clock = clock or utcnow

    async def register(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
        role: Optional[Role] = None,
    ) -> AuthResponse:
        """Create a user and sign them in.

        Raises:
            ConflictError: If a user with this email already exists, either
                found up front or reported by the store's unique index
        """
        if await self.users.get_by_email(email) is not None:
            logger.info("register_rejected_duplicate")
            raise ConflictError("User with this email already exists")

        password_hash = await asyncio.to_thread(self.hasher.hash, password)
        now = self._clock()
        record = UserRecord(
            id=uuid4(),
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            role=role or Role.VIEWER,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

        try:
            user = await self.users.create(record)
        except ConstraintViolation:
            # Lost a concurrent registration race for the same email.
            logger.info("register_rejected_constraint")
            raise ConflictError("User with this email already exists")

        access_token, refresh_token = await self._generate_tokens(user)
        logger.info("user_registered", user_id=str(user.id), role=user.role.value)
        return self._build_response(user, access_token, refresh_token)

    async def login(self, email: str, password: str) -> AuthResponse:
        """Verify credentials and issue a token pair.

        Unknown email and wrong password produce the same error.

        Raises:
            UnauthorizedError: On bad credentials or an inactive account
        """
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("login_failed", reason="unknown_email")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        valid = await asyncio.to_thread(self.hasher.verify, password, user.password_hash)
        if not valid:
            logger.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user.is_active:
            logger.info("login_failed", reason="inactive", user_id=str(user.id))
            raise UnauthorizedError(ACCOUNT_INACTIVE)

        updated = await self.users.update(user.with_changes(last_login=self._clock()))
        if updated is not None:
            user = updated

        access_token, refresh_token = await self._generate_tokens(user)
        logger.info("user_logged_in", user_id=str(user.id))
        return self._build_response(user, access_token, refresh_token)

    async def refresh_access_token(self, refresh_token: str) -> AuthResponse:
        """Exchange a refresh token for a new pair, revoking the old one.

        Raises:
            UnauthorizedError: If the token is unknown, revoked, expired, or
                badly signed, or its owner is missing or inactive
        """
        record = await self.tokens.find_active(refresh_token)
        if record is None or not record.is_usable(self._clock()):
            logger.warning("refresh_rejected", found=record is not None)
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        try:
            claims = self.issuer.verify_refresh_token(refresh_token)
        except UnauthorizedError:
            logger.warning("refresh_rejected_signature", user_id=str(record.user_id))
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        if claims.get("sub") != str(record.user_id):
            logger.warning("refresh_rejected_subject", user_id=str(record.user_id))
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        user = await self.validate_user(record.user_id)
        if user is None:
            raise UnauthorizedError(USER_UNAVAILABLE)

        # Claim the presented token before issuing its successor, so that
        # concurrent refreshes of one token produce at most one new pair.
        if not await self.tokens.revoke(record):
            logger.warning("refresh_rejected_reused", user_id=str(record.user_id))
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        access_token, new_refresh_token = await self._generate_tokens(user)

        logger.info("refresh_token_rotated", user_id=str(user.id))
        return self._build_response(user, access_token, new_refresh_token)

    async def logout(self, user_id: UUID, refresh_token: Optional[str] = None) -> None:
        """Revoke the supplied refresh token, if any.

        Idempotent: an unknown or already-revoked token is not an error.
        Other sessions of the user are left alone; see ``revoke_all_tokens``.
        """
        if refresh_token:
            record = await self.tokens.find(refresh_token)
            if record is not None and await self.tokens.revoke(record):
                logger.info("refresh_token_revoked", user_id=str(record.user_id))

        logger.info("user_logged_out", user_id=str(user_id))

    async def revoke_all_tokens(self, user_id: UUID) -> int:
        """Revoke every active refresh token of a user (logout everywhere).

        Returns:
            Number of tokens revoked
        """
        revoked = await self.tokens.revoke_all_for_user(user_id)
        logger.info("all_refresh_tokens_revoked", user_id=str(user_id), revoked=revoked)
        return revoked

    async def validate_user(self, user_id: UUID) -> Optional[UserRecord]:
        """Return the user if it exists and is active, else None."""
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user

    async def authenticate(self, access_token: str) -> UserRecord:
        """Resolve the active user behind an access token.

        Raises:
            UnauthorizedError: If the token is invalid or the user is unavailable
        """
        claims = self.issuer.verify_access_token(access_token)
        try:
            user_id = UUID(claims["sub"])
        except (KeyError, TypeError, ValueError):
            raise UnauthorizedError("Invalid token payload")

        user = await self.validate_user(user_id)
        if user is None:
            raise UnauthorizedError(USER_UNAVAILABLE)
        return user

    async def _generate_tokens(self, user: UserRecord) -> tuple[str, str]:
        """Issue an access/refresh pair and persist the refresh token."""
        access_token = self.issuer.issue_access_token(
            {"sub": str(user.id), "email": user.email, "role": user.role.value},
            self.config.access_ttl,
        )
        refresh_token, expires_at = self.issuer.issue_refresh_token(
            {"sub": str(user.id)},
            self.config.refresh_ttl,
        )
        await self.tokens.save(user.id, refresh_token, expires_at)
        return access_token, refresh_token

    def _build_response(
        self, user: UserRecord, access_token: str, refresh_token: str
    ) -> AuthResponse:
        return AuthResponse(
            user=user.to_summary(),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.config.access_ttl,
        )
