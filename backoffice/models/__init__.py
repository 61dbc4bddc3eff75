"""Models package exports."""

from backoffice.models.auth import (
    AuthResponse,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkUpdateResponse,
    BulkUpdateRoleRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    RevokeTokensResponse,
    UpdateRoleRequest,
    UpdateUserRequest,
    UserPage,
)
from backoffice.models.common import CamelModel, Page
from backoffice.models.content import (
    Article,
    ArticlePage,
    ArticleStatus,
    AuditAction,
    AuditLogEntry,
    AuditLogPage,
    Category,
    CategoryPage,
    CreateArticleRequest,
    CreateCategoryRequest,
    UpdateArticleRequest,
    UpdateCategoryRequest,
)
from backoffice.models.user import RefreshToken, Role, UserRecord, UserSummary, allows

__all__ = [
    "Article",
    "ArticlePage",
    "ArticleStatus",
    "AuditAction",
    "AuditLogEntry",
    "AuditLogPage",
    "AuthResponse",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "BulkUpdateResponse",
    "BulkUpdateRoleRequest",
    "CamelModel",
    "Category",
    "CategoryPage",
    "CreateArticleRequest",
    "CreateCategoryRequest",
    "LoginRequest",
    "LogoutRequest",
    "Page",
    "RefreshRequest",
    "RefreshToken",
    "RegisterRequest",
    "RevokeTokensResponse",
    "Role",
    "UpdateArticleRequest",
    "UpdateCategoryRequest",
    "UpdateRoleRequest",
    "UpdateUserRequest",
    "UserPage",
    "UserRecord",
    "UserSummary",
    "allows",
]
