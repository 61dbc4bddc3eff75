"""Authentication API endpoints."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Response, status

from backoffice.api.dependencies import get_auth_service, get_current_user, require_admin
from backoffice.models.auth import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    RevokeTokensResponse,
)
from backoffice.models.user import UserRecord, UserSummary
from backoffice.services.auth_service import AuthService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new user and return a token pair.

    Raises:
        409: If the email is already registered
    """
    return await auth_service.register(
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        password=request.password,
        role=request.role,
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Login with email and password.

    Raises:
        401: If credentials are invalid or the account is inactive
    """
    return await auth_service.login(request.email, request.password)


@router.post("/refresh")
async def refresh(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange a refresh token for a new pair.

    The presented refresh token is revoked; reusing it fails with 401.
    """
    return await auth_service.refresh_access_token(request.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Optional[LogoutRequest] = None,
    current_user: UserRecord = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    """Revoke the supplied refresh token. Unknown tokens are ignored."""
    await auth_service.logout(
        current_user.id,
        request.refresh_token if request is not None else None,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me")
async def get_me(current_user: UserRecord = Depends(get_current_user)) -> UserSummary:
    """Get current authenticated user info."""
    return current_user.to_summary()


@router.post("/users/{user_id}/revoke-tokens")
async def revoke_all_tokens(
    user_id: UUID,
    admin: UserRecord = Depends(require_admin),
    auth_service: AuthService = Depends(get_auth_service),
) -> RevokeTokensResponse:
    """Force logout of every session of a user (admin only)."""
    revoked = await auth_service.revoke_all_tokens(user_id)
    logger.info(
        "admin_revoked_tokens",
        admin_id=str(admin.id),
        target_user_id=str(user_id),
        revoked=revoked,
    )
    return RevokeTokensResponse(user_id=str(user_id), revoked=revoked)
