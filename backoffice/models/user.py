"""User and refresh-token records."""

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Closed set of back-office roles, highest privilege first."""

    ADMIN = "admin"
    MODERATOR = "moderator"
    VIEWER = "viewer"


def allows(role: Role, required_roles: Iterable[Role]) -> bool:
    """Return True if ``role`` satisfies a route's required roles.

    An empty requirement admits every authenticated role.
    """
    required = set(required_roles)
    if not required:
        return True
    return Role(role) in required


class UserSummary(BaseModel):
    """Sanitized user view for API responses (no credentials, no tokens)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class UserRecord(BaseModel):
    """A back-office user as held by the user directory.

    Records are immutable; use ``with_changes`` to derive an updated value
    and hand it to the repository's ``update``.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    password_hash: str
    role: Role = Role.VIEWER
    is_active: bool = True
    last_login: Optional[datetime] = None
    last_password_change: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    def with_changes(self, **changes: Any) -> "UserRecord":
        """Return a copy of this record with the given fields replaced."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown user fields: {', '.join(sorted(unknown))}")
        return self.model_copy(update=changes)

    def to_summary(self) -> UserSummary:
        return UserSummary(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            role=self.role,
            is_active=self.is_active,
            last_login=self.last_login,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class RefreshToken(BaseModel):
    """A persisted refresh token.

    Only a SHA-256 digest of the signed token is stored. A row is usable
    for refresh iff it is not revoked and has not expired; revocation is
    one-way.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    token_hash: str
    expires_at: datetime
    is_revoked: bool = False
    created_at: datetime

    def is_usable(self, now: datetime) -> bool:
        return not self.is_revoked and self.expires_at > now
