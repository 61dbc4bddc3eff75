"""FastAPI dependencies for authentication and authorization."""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backoffice.config import get_settings
from backoffice.database import get_pool
from backoffice.exceptions import ForbiddenError, UnauthorizedError
from backoffice.models.user import Role, UserRecord, allows
from backoffice.repositories.postgres import (
    PostgresArticleRepository,
    PostgresAuditLogRepository,
    PostgresCategoryRepository,
    PostgresRefreshTokenRepository,
    PostgresUserRepository,
)
from backoffice.services.auth_service import AuthService
from backoffice.services.content_service import ContentService
from backoffice.services.user_service import UserService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_service() -> AuthService:
    """Build an AuthService over the Postgres repositories."""
    pool = await get_pool()
    return AuthService(
        config=get_settings().auth_config(),
        users=PostgresUserRepository(pool),
        tokens=PostgresRefreshTokenRepository(pool),
    )


async def get_user_service() -> UserService:
    """Build a UserService over the Postgres repositories."""
    pool = await get_pool()
    return UserService(
        users=PostgresUserRepository(pool),
        tokens=PostgresRefreshTokenRepository(pool),
    )


async def get_content_service() -> ContentService:
    """Build a ContentService over the Postgres repositories."""
    pool = await get_pool()
    return ContentService(
        articles=PostgresArticleRepository(pool),
        categories=PostgresCategoryRepository(pool),
        audit_logs=PostgresAuditLogRepository(pool),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserRecord:
    """Extract and validate the current user from a JWT Bearer token.

    Raises:
        UnauthorizedError: If the token is missing, invalid, expired, or the
            user is not found or inactive
    """
    if credentials is None:
        raise UnauthorizedError("Missing access token")
    return await auth_service.authenticate(credentials.credentials)


def require_roles(*roles: Role):
    """Build a dependency admitting only users whose role is in ``roles``."""

    async def dependency(
        current_user: UserRecord = Depends(get_current_user),
    ) -> UserRecord:
        if not allows(current_user.role, roles):
            raise ForbiddenError("Insufficient role for this operation")
        return current_user

    return dependency


require_admin = require_roles(Role.ADMIN)
require_staff = require_roles(Role.ADMIN, Role.MODERATOR)
