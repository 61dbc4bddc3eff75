"""Repository interfaces for users, refresh tokens and content."""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID

from backoffice.models.content import Article, ArticleStatus, AuditLogEntry, Category
from backoffice.models.user import RefreshToken, Role, UserRecord

# Columns the user listing may be ordered by, keyed by API name.
USER_SORT_COLUMNS = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "email": "email",
    "first_name": "first_name",
    "firstName": "first_name",
    "last_name": "last_name",
    "lastName": "last_name",
    "role": "role",
    "last_login": "last_login",
    "lastLogin": "last_login",
}

ARTICLE_SORT_COLUMNS = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "published_at": "published_at",
    "publishedAt": "published_at",
    "title": "title",
    "status": "status",
}

CATEGORY_SORT_COLUMNS = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "name": "name",
    "order": "display_order",
}


def hash_token(token: str) -> str:
    """SHA-256 digest under which a refresh token is stored and looked up."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class UserRepository(Protocol):
    """Persistence for user records. Email uniqueness is enforced here."""

    async def get_by_email(self, email: str) -> Optional[UserRecord]: ...

    async def get_by_id(self, user_id: UUID) -> Optional[UserRecord]: ...

    async def create(self, record: UserRecord) -> UserRecord:
        """Insert a new user; raises ConstraintViolation on duplicate email."""
        ...

    async def update(self, record: UserRecord) -> Optional[UserRecord]:
        """Persist a changed record; returns None if the user no longer exists."""
        ...

    async def delete(self, user_id: UUID) -> bool:
        """Remove the user and, by cascade, its refresh tokens."""
        ...

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        role: Optional[Role] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[UserRecord], int]: ...

    async def search(self, query: str, limit: int) -> list[UserRecord]:
        """Case-insensitive match on email, first name or last name."""
        ...

    async def delete_many(self, user_ids: list[UUID]) -> int: ...

    async def update_role_many(self, user_ids: list[UUID], role: Role) -> int: ...


class RefreshTokenRepository(Protocol):
    """Persistence for issued refresh tokens.

    ``find_active`` filters on revocation only; callers must check expiry.
    """

    async def save(
        self, user_id: UUID, token: str, expires_at: datetime
    ) -> RefreshToken: ...

    async def find_active(self, token: str) -> Optional[RefreshToken]: ...

    async def find(self, token: str) -> Optional[RefreshToken]: ...

    async def revoke(self, record: RefreshToken) -> bool:
        """Revoke one token if it is still active.

        Returns True only for the caller that flipped the flag; concurrent
        callers racing on the same token see False.
        """

    async def revoke_all_for_user(self, user_id: UUID) -> int: ...


class ArticleRepository(Protocol):
    """Persistence for articles. Slug uniqueness is enforced here."""

    async def get_by_id(self, article_id: UUID) -> Optional[Article]: ...

    async def get_by_slug(self, slug: str) -> Optional[Article]: ...

    async def create(self, record: Article) -> Article:
        """Insert a new article; raises ConstraintViolation on duplicate slug."""
        ...

    async def update(self, record: Article) -> Optional[Article]: ...

    async def delete(self, article_id: UUID) -> bool: ...

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        status: Optional[ArticleStatus] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Article], int]: ...


class CategoryRepository(Protocol):
    """Persistence for categories. Slug uniqueness is enforced here."""

    async def get_by_id(self, category_id: UUID) -> Optional[Category]: ...

    async def create(self, record: Category) -> Category: ...

    async def update(self, record: Category) -> Optional[Category]: ...

    async def delete(self, category_id: UUID) -> bool: ...

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Category], int]:
        """Active categories only, ordered by display order first."""
        ...


class AuditLogRepository(Protocol):
    """Append-only store of audit entries."""

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry: ...

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[AuditLogEntry], int]:
        """Newest first; ``search`` matches the entity name."""
        ...
