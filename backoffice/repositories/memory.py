"""In-process repositories for tests and single-process development.

All state lives in a ``MemoryStore``; each method completes without
awaiting between its read and write, so operations are atomic with
respect to other coroutines on the same event loop.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from backoffice.exceptions import ConstraintViolation
from backoffice.models.content import Article, ArticleStatus, AuditLogEntry, Category
from backoffice.models.user import RefreshToken, Role, UserRecord
from backoffice.repositories.base import (
    ARTICLE_SORT_COLUMNS,
    CATEGORY_SORT_COLUMNS,
    USER_SORT_COLUMNS,
    hash_token,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sorted(rows: list, column: str, descending: bool) -> list:
    # None sorts last in either direction
    present = [r for r in rows if getattr(r, column) is not None]
    missing = [r for r in rows if getattr(r, column) is None]
    present.sort(key=lambda r: getattr(r, column), reverse=descending)
    return present + missing


class MemoryStore:
    """Shared tables for the in-memory repositories."""

    def __init__(self):
        self.users: dict[UUID, UserRecord] = {}
        self.refresh_tokens: dict[UUID, RefreshToken] = {}
        self.articles: dict[UUID, Article] = {}
        self.categories: dict[UUID, Category] = {}
        self.audit_logs: list[AuditLogEntry] = []

    def user_repository(self) -> "MemoryUserRepository":
        return MemoryUserRepository(self)

    def refresh_token_repository(self) -> "MemoryRefreshTokenRepository":
        return MemoryRefreshTokenRepository(self)

    def article_repository(self) -> "MemoryArticleRepository":
        return MemoryArticleRepository(self)

    def category_repository(self) -> "MemoryCategoryRepository":
        return MemoryCategoryRepository(self)

    def audit_log_repository(self) -> "MemoryAuditLogRepository":
        return MemoryAuditLogRepository(self)


class MemoryUserRepository:
    """Dictionary-backed user directory with a unique email index."""

    def __init__(self, store: MemoryStore):
        self._store = store

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self._store.users.values():
            if user.email == email:
                return user
        return None

    async def get_by_id(self, user_id: UUID) -> Optional[UserRecord]:
        return self._store.users.get(user_id)

    async def create(self, record: UserRecord) -> UserRecord:
        if any(u.email == record.email for u in self._store.users.values()):
            raise ConstraintViolation(
                "users.email must be unique", {"field": "email"}
            )
        if record.id in self._store.users:
            raise ConstraintViolation("users.id must be unique", {"field": "id"})
        self._store.users[record.id] = record
        return record

    async def update(self, record: UserRecord) -> Optional[UserRecord]:
        if record.id not in self._store.users:
            return None
        if any(
            u.email == record.email and u.id != record.id
            for u in self._store.users.values()
        ):
            raise ConstraintViolation(
                "users.email must be unique", {"field": "email"}
            )
        stored = record.with_changes(updated_at=_utcnow())
        self._store.users[record.id] = stored
        return stored

    async def delete(self, user_id: UUID) -> bool:
        if self._store.users.pop(user_id, None) is None:
            return False
        # refresh_tokens: ON DELETE CASCADE; audit_logs: ON DELETE SET NULL
        for token_id in [
            t.id for t in self._store.refresh_tokens.values() if t.user_id == user_id
        ]:
            del self._store.refresh_tokens[token_id]
        self._store.audit_logs = [
            entry.with_changes(user_id=None) if entry.user_id == user_id else entry
            for entry in self._store.audit_logs
        ]
        return True

    async def delete_many(self, user_ids: list[UUID]) -> int:
        deleted = 0
        for user_id in dict.fromkeys(user_ids):
            if await self.delete(user_id):
                deleted += 1
        return deleted

    async def update_role_many(self, user_ids: list[UUID], role: Role) -> int:
        now = _utcnow()
        updated = 0
        for user_id in dict.fromkeys(user_ids):
            user = self._store.users.get(user_id)
            if user is None:
                continue
            self._store.users[user_id] = user.with_changes(role=role, updated_at=now)
            updated += 1
        return updated

    async def search(self, query: str, limit: int) -> list[UserRecord]:
        needle = query.lower()
        matches = [
            u
            for u in self._store.users.values()
            if needle in u.email.lower()
            or needle in u.first_name.lower()
            or needle in u.last_name.lower()
        ]
        return matches[:limit]

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        role: Optional[Role] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[UserRecord], int]:
        column = USER_SORT_COLUMNS[sort_by]
        rows = list(self._store.users.values())
        if search:
            needle = search.lower()
            rows = [u for u in rows if needle in u.email.lower()]
        if role is not None:
            rows = [u for u in rows if u.role == role]

        rows = _sorted(rows, column, descending)

        return rows[offset:offset + limit], len(rows)


class MemoryRefreshTokenRepository:
    """Dictionary-backed refresh-token store keyed by token digest."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def _by_hash(self, token: str) -> Optional[RefreshToken]:
        digest = hash_token(token)
        for record in self._store.refresh_tokens.values():
            if record.token_hash == digest:
                return record
        return None

    async def save(
        self, user_id: UUID, token: str, expires_at: datetime
    ) -> RefreshToken:
        if user_id not in self._store.users:
            raise ConstraintViolation(
                "refresh_tokens.user_id must reference users.id",
                {"field": "user_id"},
            )
        record = RefreshToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            is_revoked=False,
            created_at=_utcnow(),
        )
        self._store.refresh_tokens[record.id] = record
        return record

    async def find_active(self, token: str) -> Optional[RefreshToken]:
        record = self._by_hash(token)
        if record is None or record.is_revoked:
            return None
        return record

    async def find(self, token: str) -> Optional[RefreshToken]:
        return self._by_hash(token)

    async def revoke(self, record: RefreshToken) -> bool:
        stored = self._store.refresh_tokens.get(record.id)
        if stored is None or stored.is_revoked:
            return False
        self._store.refresh_tokens[record.id] = stored.model_copy(
            update={"is_revoked": True}
        )
        return True

    async def revoke_all_for_user(self, user_id: UUID) -> int:
        revoked = 0
        for token_id, record in list(self._store.refresh_tokens.items()):
            if record.user_id == user_id and not record.is_revoked:
                self._store.refresh_tokens[token_id] = record.model_copy(
                    update={"is_revoked": True}
                )
                revoked += 1
        return revoked


class MemoryArticleRepository:
    """Dictionary-backed article store with a unique slug index."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def _slug_taken(self, record: Article) -> bool:
        return any(
            a.slug == record.slug and a.id != record.id
            for a in self._store.articles.values()
        )

    async def get_by_id(self, article_id: UUID) -> Optional[Article]:
        return self._store.articles.get(article_id)

    async def get_by_slug(self, slug: str) -> Optional[Article]:
        for article in self._store.articles.values():
            if article.slug == slug:
                return article
        return None

    async def create(self, record: Article) -> Article:
        if self._slug_taken(record):
            raise ConstraintViolation(
                "articles.slug must be unique", {"field": "slug"}
            )
        self._store.articles[record.id] = record
        return record

    async def update(self, record: Article) -> Optional[Article]:
        if record.id not in self._store.articles:
            return None
        if self._slug_taken(record):
            raise ConstraintViolation(
                "articles.slug must be unique", {"field": "slug"}
            )
        stored = record.with_changes(updated_at=_utcnow())
        self._store.articles[record.id] = stored
        return stored

    async def delete(self, article_id: UUID) -> bool:
        return self._store.articles.pop(article_id, None) is not None

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        status: Optional[ArticleStatus] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Article], int]:
        column = ARTICLE_SORT_COLUMNS[sort_by]
        rows = list(self._store.articles.values())
        if search:
            needle = search.lower()
            rows = [a for a in rows if needle in a.title.lower()]
        if status is not None:
            rows = [a for a in rows if a.status == status]

        rows = _sorted(rows, column, descending)

        return rows[offset:offset + limit], len(rows)


class MemoryCategoryRepository:
    """Dictionary-backed category store with a unique slug index."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def _slug_taken(self, record: Category) -> bool:
        return any(
            c.slug == record.slug and c.id != record.id
            for c in self._store.categories.values()
        )

    async def get_by_id(self, category_id: UUID) -> Optional[Category]:
        return self._store.categories.get(category_id)

    async def create(self, record: Category) -> Category:
        if self._slug_taken(record):
            raise ConstraintViolation(
                "categories.slug must be unique", {"field": "slug"}
            )
        self._store.categories[record.id] = record
        return record

    async def update(self, record: Category) -> Optional[Category]:
        if record.id not in self._store.categories:
            return None
        if self._slug_taken(record):
            raise ConstraintViolation(
                "categories.slug must be unique", {"field": "slug"}
            )
        stored = record.with_changes(updated_at=_utcnow())
        self._store.categories[record.id] = stored
        return stored

    async def delete(self, category_id: UUID) -> bool:
        return self._store.categories.pop(category_id, None) is not None

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Category], int]:
        column = CATEGORY_SORT_COLUMNS[sort_by]
        rows = [c for c in self._store.categories.values() if c.is_active]
        if search:
            needle = search.lower()
            rows = [c for c in rows if needle in c.name.lower()]

        # Stable sorts: secondary key first, then display order ascending.
        rows = _sorted(rows, column, descending)
        rows.sort(key=lambda c: c.display_order)

        return rows[offset:offset + limit], len(rows)


class MemoryAuditLogRepository:
    """Append-only list of audit entries."""

    def __init__(self, store: MemoryStore):
        self._store = store

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        if entry.user_id is not None and entry.user_id not in self._store.users:
            raise ConstraintViolation(
                "audit_logs.user_id must reference users.id",
                {"field": "user_id"},
            )
        self._store.audit_logs.append(entry)
        return entry

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[AuditLogEntry], int]:
        rows = list(self._store.audit_logs)
        if search:
            needle = search.lower()
            rows = [e for e in rows if needle in e.entity.lower()]
        # Newest first; insertion order breaks ties.
        rows = list(reversed(rows))
        rows.sort(key=lambda e: e.created_at, reverse=True)

        return rows[offset:offset + limit], len(rows)
