"""Repositories package exports."""

from backoffice.repositories.base import (
    ArticleRepository,
    AuditLogRepository,
    CategoryRepository,
    RefreshTokenRepository,
    UserRepository,
    hash_token,
)
from backoffice.repositories.memory import (
    MemoryArticleRepository,
    MemoryAuditLogRepository,
    MemoryCategoryRepository,
    MemoryRefreshTokenRepository,
    MemoryStore,
    MemoryUserRepository,
)
from backoffice.repositories.postgres import (
    PostgresArticleRepository,
    PostgresAuditLogRepository,
    PostgresCategoryRepository,
    PostgresRefreshTokenRepository,
    PostgresUserRepository,
)

__all__ = [
    "ArticleRepository",
    "AuditLogRepository",
    "CategoryRepository",
    "MemoryArticleRepository",
    "MemoryAuditLogRepository",
    "MemoryCategoryRepository",
    "MemoryRefreshTokenRepository",
    "MemoryStore",
    "MemoryUserRepository",
    "PostgresArticleRepository",
    "PostgresAuditLogRepository",
    "PostgresCategoryRepository",
    "PostgresRefreshTokenRepository",
    "PostgresUserRepository",
    "RefreshTokenRepository",
    "UserRepository",
    "hash_token",
]
