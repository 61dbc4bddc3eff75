"""asyncpg-backed repositories."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from backoffice.exceptions import ConstraintViolation
from backoffice.models.content import (
    Article,
    ArticleStatus,
    AuditAction,
    AuditLogEntry,
    Category,
)
from backoffice.models.user import RefreshToken, Role, UserRecord
from backoffice.repositories.base import (
    ARTICLE_SORT_COLUMNS,
    CATEGORY_SORT_COLUMNS,
    USER_SORT_COLUMNS,
    hash_token,
)

logger = structlog.get_logger(__name__)

_USER_COLUMNS = (
    "id, email, first_name, last_name, password_hash, role, is_active, "
    "last_login, last_password_change, created_at, updated_at"
)

_TOKEN_COLUMNS = "id, user_id, token_hash, expires_at, is_revoked, created_at"

_ARTICLE_COLUMNS = (
    "id, title, slug, content, description, featured_image, status, tags, "
    "metadata, author_id, created_at, updated_at, published_at"
)

_CATEGORY_COLUMNS = (
    "id, name, slug, description, icon, display_order, is_active, "
    "created_at, updated_at"
)

_AUDIT_COLUMNS = (
    "id, action, entity, entity_id, changes, user_id, description, "
    "ip_address, created_at"
)


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        is_active=row["is_active"],
        last_login=row["last_login"],
        last_password_change=row["last_password_change"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_token(row) -> RefreshToken:
    return RefreshToken(
        id=row["id"],
        user_id=row["user_id"],
        token_hash=row["token_hash"],
        expires_at=row["expires_at"],
        is_revoked=row["is_revoked"],
        created_at=row["created_at"],
    )


def _json_value(value):
    """jsonb arrives as text unless a codec is registered on the connection."""
    if isinstance(value, str):
        return json.loads(value)
    return value


def _json_param(value) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _row_to_article(row) -> Article:
    return Article(
        id=row["id"],
        title=row["title"],
        slug=row["slug"],
        content=row["content"],
        description=row["description"],
        featured_image=row["featured_image"],
        status=ArticleStatus(row["status"]),
        tags=list(row["tags"] or []),
        metadata=_json_value(row["metadata"]),
        author_id=row["author_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        published_at=row["published_at"],
    )


def _row_to_category(row) -> Category:
    return Category(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        icon=row["icon"],
        display_order=row["display_order"],
        is_active=row["is_active"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_audit(row) -> AuditLogEntry:
    return AuditLogEntry(
        id=row["id"],
        action=AuditAction(row["action"]),
        entity=row["entity"],
        entity_id=row["entity_id"],
        changes=_json_value(row["changes"]),
        user_id=row["user_id"],
        description=row["description"],
        ip_address=row["ip_address"],
        created_at=row["created_at"],
    )


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command status such as 'UPDATE 3'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgresUserRepository:
    """User directory stored in the ``users`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = $1",
                email,
            )
        return _row_to_user(row) if row is not None else None

    async def get_by_id(self, user_id: UUID) -> Optional[UserRecord]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )
        return _row_to_user(row) if row is not None else None

    async def create(self, record: UserRecord) -> UserRecord:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users ({_USER_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    RETURNING {_USER_COLUMNS}
                    """,
                    record.id,
                    record.email,
                    record.first_name,
                    record.last_name,
                    record.password_hash,
                    record.role.value,
                    record.is_active,
                    record.last_login,
                    record.last_password_change,
                    record.created_at,
                    record.updated_at,
                )
        except asyncpg.UniqueViolationError as e:
            constraint = getattr(e, "constraint_name", None)
            logger.warning("user_insert_conflict", constraint=constraint)
            raise ConstraintViolation(
                "users.email must be unique",
                {"constraint": constraint},
            ) from e

        return _row_to_user(row)

    async def update(self, record: UserRecord) -> Optional[UserRecord]:
        now = datetime.now(timezone.utc)
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE users
                    SET email = $2,
                        first_name = $3,
                        last_name = $4,
                        password_hash = $5,
                        role = $6,
                        is_active = $7,
                        last_login = $8,
                        last_password_change = $9,
                        updated_at = $10
                    WHERE id = $1
                    RETURNING {_USER_COLUMNS}
                    """,
                    record.id,
                    record.email,
                    record.first_name,
                    record.last_name,
                    record.password_hash,
                    record.role.value,
                    record.is_active,
                    record.last_login,
                    record.last_password_change,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            raise ConstraintViolation(
                "users.email must be unique",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return _row_to_user(row) if row is not None else None

    async def delete(self, user_id: UUID) -> bool:
        async with self._pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)
        return result == "DELETE 1"

    async def delete_many(self, user_ids: list[UUID]) -> int:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM users WHERE id = ANY($1::uuid[])",
                list(user_ids),
            )
        return _affected_rows(result)

    async def update_role_many(self, user_ids: list[UUID], role: Role) -> int:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET role = $2, updated_at = $3
                WHERE id = ANY($1::uuid[])
                """,
                list(user_ids),
                role.value,
                datetime.now(timezone.utc),
            )
        return _affected_rows(result)

    async def search(self, query: str, limit: int) -> list[UserRecord]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE email ILIKE $1 OR first_name ILIKE $1 OR last_name ILIKE $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                f"%{query}%",
                limit,
            )
        return [_row_to_user(row) for row in rows]

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
        direction = "DESC" if descending else "ASC"

        where_clauses = []
        params: list = []
        if search:
            params.append(f"%{search}%")
            where_clauses.append(f"email ILIKE ${len(params)}")
        if role is not None:
            params.append(role.value)
            where_clauses.append(f"role = ${len(params)}")
        where = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

        async with self._pool.acquire() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM users {where}", *params)
            rows = await conn.fetch(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                {where}
                ORDER BY {column} {direction} NULLS LAST
                OFFSET ${len(params) + 1} LIMIT ${len(params) + 2}
                """,
                *params,
                offset,
                limit,
            )

        return [_row_to_user(row) for row in rows], total


class PostgresRefreshTokenRepository:
    """Refresh tokens stored in the ``refresh_tokens`` table by SHA-256 digest."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def save(
        self, user_id: UUID, token: str, expires_at: datetime
    ) -> RefreshToken:
        token_id = uuid4()
        now = datetime.now(timezone.utc)

        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO refresh_tokens (id, user_id, token_hash, expires_at, is_revoked, created_at)
                    VALUES ($1, $2, $3, $4, FALSE, $5)
                    """,
                    token_id,
                    user_id,
                    hash_token(token),
                    expires_at,
                    now,
                )
        except asyncpg.ForeignKeyViolationError as e:
            raise ConstraintViolation(
                "refresh_tokens.user_id must reference users.id",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return RefreshToken(
            id=token_id,
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            is_revoked=False,
            created_at=now,
        )

    async def find_active(self, token: str) -> Optional[RefreshToken]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_TOKEN_COLUMNS}
                FROM refresh_tokens
                WHERE token_hash = $1 AND is_revoked = FALSE
                """,
                hash_token(token),
            )
        return _row_to_token(row) if row is not None else None

    async def find(self, token: str) -> Optional[RefreshToken]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_TOKEN_COLUMNS} FROM refresh_tokens WHERE token_hash = $1",
                hash_token(token),
            )
        return _row_to_token(row) if row is not None else None

    async def revoke(self, record: RefreshToken) -> bool:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET is_revoked = TRUE
                WHERE id = $1 AND is_revoked = FALSE
                """,
                record.id,
            )
        return _affected_rows(result) == 1

    async def revoke_all_for_user(self, user_id: UUID) -> int:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE refresh_tokens
                SET is_revoked = TRUE
                WHERE user_id = $1 AND is_revoked = FALSE
                """,
                user_id,
            )
        return _affected_rows(result)


class PostgresArticleRepository:
    """Articles stored in the ``articles`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get_by_id(self, article_id: UUID) -> Optional[Article]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE id = $1",
                article_id,
            )
        return _row_to_article(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Optional[Article]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE slug = $1",
                slug,
            )
        return _row_to_article(row) if row is not None else None

    async def create(self, record: Article) -> Article:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO articles ({_ARTICLE_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10, $11, $12, $13)
                    RETURNING {_ARTICLE_COLUMNS}
                    """,
                    record.id,
                    record.title,
                    record.slug,
                    record.content,
                    record.description,
                    record.featured_image,
                    record.status.value,
                    record.tags,
                    _json_param(record.metadata),
                    record.author_id,
                    record.created_at,
                    record.updated_at,
                    record.published_at,
                )
        except asyncpg.UniqueViolationError as e:
            raise ConstraintViolation(
                "articles.slug must be unique",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return _row_to_article(row)

    async def update(self, record: Article) -> Optional[Article]:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE articles
                    SET title = $2,
                        slug = $3,
                        content = $4,
                        description = $5,
                        featured_image = $6,
                        status = $7,
                        tags = $8,
                        metadata = $9::jsonb,
                        published_at = $10,
                        updated_at = $11
                    WHERE id = $1
                    RETURNING {_ARTICLE_COLUMNS}
                    """,
                    record.id,
                    record.title,
                    record.slug,
                    record.content,
                    record.description,
                    record.featured_image,
                    record.status.value,
                    record.tags,
                    _json_param(record.metadata),
                    record.published_at,
                    datetime.now(timezone.utc),
                )
        except asyncpg.UniqueViolationError as e:
            raise ConstraintViolation(
                "articles.slug must be unique",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return _row_to_article(row) if row is not None else None

    async def delete(self, article_id: UUID) -> bool:
        async with self._pool.acquire() as conn:
            result = await conn.execute("DELETE FROM articles WHERE id = $1", article_id)
        return result == "DELETE 1"

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
        direction = "DESC" if descending else "ASC"

        where_clauses = []
        params: list = []
        if search:
            params.append(f"%{search}%")
            where_clauses.append(f"title ILIKE ${len(params)}")
        if status is not None:
            params.append(status.value)
            where_clauses.append(f"status = ${len(params)}")
        where = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

        async with self._pool.acquire() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM articles {where}", *params)
            rows = await conn.fetch(
                f"""
                SELECT {_ARTICLE_COLUMNS}
                FROM articles
                {where}
                ORDER BY {column} {direction} NULLS LAST
                OFFSET ${len(params) + 1} LIMIT ${len(params) + 2}
                """,
                *params,
                offset,
                limit,
            )

        return [_row_to_article(row) for row in rows], total


class PostgresCategoryRepository:
    """Categories stored in the ``categories`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get_by_id(self, category_id: UUID) -> Optional[Category]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_CATEGORY_COLUMNS} FROM categories WHERE id = $1",
                category_id,
            )
        return _row_to_category(row) if row is not None else None

    async def create(self, record: Category) -> Category:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO categories ({_CATEGORY_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {_CATEGORY_COLUMNS}
                    """,
                    record.id,
                    record.name,
                    record.slug,
                    record.description,
                    record.icon,
                    record.display_order,
                    record.is_active,
                    record.created_at,
                    record.updated_at,
                )
        except asyncpg.UniqueViolationError as e:
            raise ConstraintViolation(
                "categories.slug must be unique",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return _row_to_category(row)

    async def update(self, record: Category) -> Optional[Category]:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE categories
                    SET name = $2,
                        slug = $3,
                        description = $4,
                        icon = $5,
                        display_order = $6,
                        is_active = $7,
                        updated_at = $8
                    WHERE id = $1
                    RETURNING {_CATEGORY_COLUMNS}
                    """,
                    record.id,
                    record.name,
                    record.slug,
                    record.description,
                    record.icon,
                    record.display_order,
                    record.is_active,
                    datetime.now(timezone.utc),
                )
        except asyncpg.UniqueViolationError as e:
            raise ConstraintViolation(
                "categories.slug must be unique",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return _row_to_category(row) if row is not None else None

    async def delete(self, category_id: UUID) -> bool:
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM categories WHERE id = $1", category_id
            )
        return result == "DELETE 1"

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Category], int]:
        column = CATEGORY_SORT_COLUMNS[sort_by]
        direction = "DESC" if descending else "ASC"

        where_clauses = ["is_active = TRUE"]
        params: list = []
        if search:
            params.append(f"%{search}%")
            where_clauses.append(f"name ILIKE ${len(params)}")
        where = f"WHERE {' AND '.join(where_clauses)}"

        async with self._pool.acquire() as conn:
            total = await conn.fetchval(
                f"SELECT COUNT(*) FROM categories {where}", *params
            )
            rows = await conn.fetch(
                f"""
                SELECT {_CATEGORY_COLUMNS}
                FROM categories
                {where}
                ORDER BY display_order ASC, {column} {direction} NULLS LAST
                OFFSET ${len(params) + 1} LIMIT ${len(params) + 2}
                """,
                *params,
                offset,
                limit,
            )

        return [_row_to_category(row) for row in rows], total


class PostgresAuditLogRepository:
    """Audit entries stored in the ``audit_logs`` table."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def add(self, entry: AuditLogEntry) -> AuditLogEntry:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO audit_logs ({_AUDIT_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5::jsonb, $6, $7, $8, $9)
                    """,
                    entry.id,
                    entry.action.value,
                    entry.entity,
                    entry.entity_id,
                    _json_param(entry.changes),
                    entry.user_id,
                    entry.description,
                    entry.ip_address,
                    entry.created_at,
                )
        except asyncpg.ForeignKeyViolationError as e:
            raise ConstraintViolation(
                "audit_logs.user_id must reference users.id",
                {"constraint": getattr(e, "constraint_name", None)},
            ) from e

        return entry

    async def list(
        self,
        offset: int,
        limit: int,
        search: Optional[str] = None,
    ) -> tuple[list[AuditLogEntry], int]:
        where = ""
        params: list = []
        if search:
            params.append(f"%{search}%")
            where = "WHERE entity ILIKE $1"

        async with self._pool.acquire() as conn:
            total = await conn.fetchval(
                f"SELECT COUNT(*) FROM audit_logs {where}", *params
            )
            rows = await conn.fetch(
                f"""
                SELECT {_AUDIT_COLUMNS}
                FROM audit_logs
                {where}
                ORDER BY created_at DESC
                OFFSET ${len(params) + 1} LIMIT ${len(params) + 2}
                """,
                *params,
                offset,
                limit,
            )

        return [_row_to_audit(row) for row in rows], total
