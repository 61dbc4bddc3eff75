"""Auth request and response models with validation."""

from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from backoffice.models.common import CamelModel, Page
from backoffice.models.user import Role, UserSummary


class RegisterRequest(CamelModel):
    """Self-registration payload.

    Attributes:
        email: Unique email address
        first_name: Display first name
        last_name: Display last name
        password: Plain-text password (min 8 chars)
        role: Optional role; defaults to viewer
    """

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)
    role: Optional[Role] = None

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        return v


class LoginRequest(CamelModel):
    """Login credentials for authentication."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    """Request to exchange a refresh token for a new token pair."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    """Logout payload; the refresh token is optional."""

    refresh_token: Optional[str] = None


class AuthResponse(CamelModel):
    """Successful authentication response with a token pair.

    Attributes:
        user: Sanitized view of the authenticated user
        access_token: Short-lived JWT for API access
        refresh_token: Long-lived, single-use token for obtaining a new pair
        expires_in: Access-token lifetime as configured (e.g. "15m")
    """

    user: UserSummary
    access_token: str
    refresh_token: str
    expires_in: str


class RevokeTokensResponse(CamelModel):
    """Result of a forced logout across all sessions."""

    user_id: str
    revoked: int = Field(ge=0)


class UpdateUserRequest(CamelModel):
    """Request to update an existing user's details.

    All fields are optional; only provided fields are updated.
    """

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UpdateRoleRequest(CamelModel):
    """Request to change a user's role."""

    role: Role


UserPage = Page[UserSummary]


class BulkDeleteRequest(CamelModel):
    """Ids of users to delete in one call."""

    ids: list[UUID]


class BulkUpdateRoleRequest(CamelModel):
    """Ids of users to move to one role."""

    ids: list[UUID]
    role: Role


class BulkDeleteResponse(CamelModel):
    deleted: int = Field(ge=0)


class BulkUpdateResponse(CamelModel):
    updated: int = Field(ge=0)
