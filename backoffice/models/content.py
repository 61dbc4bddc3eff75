"""Articles, categories and the audit trail."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import ConfigDict, Field

from backoffice.models.common import CamelModel, Page


class ArticleStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class _Record(CamelModel):
    """Immutable stored value; derive updates with ``with_changes``."""

    model_config = ConfigDict(frozen=True)

    def with_changes(self, **changes: Any):
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
        return self.model_copy(update=changes)


class Article(_Record):
    """A content article.

    Attributes:
        slug: URL identifier, unique across articles
        author_id: User who created the article
        published_at: Set when the article is first published
    """

    id: UUID
    title: str
    slug: str
    content: str
    description: Optional[str] = None
    featured_image: Optional[str] = None
    status: ArticleStatus = ArticleStatus.DRAFT
    tags: list[str] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None
    author_id: UUID
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None


class Category(_Record):
    """A content category; listings show active categories only."""

    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None
    display_order: int = Field(default=0, alias="order")
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class AuditLogEntry(_Record):
    """One recorded change to a content entity."""

    id: UUID
    action: AuditAction
    entity: str
    entity_id: Optional[str] = None
    changes: Optional[dict[str, Any]] = None
    user_id: Optional[UUID] = None
    description: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime


class CreateArticleRequest(CamelModel):
    title: str = Field(..., min_length=5, max_length=255)
    slug: str = Field(..., min_length=5, max_length=255)
    content: str = Field(..., min_length=10)
    description: Optional[str] = None
    featured_image: Optional[str] = None
    status: ArticleStatus = ArticleStatus.DRAFT
    tags: list[str] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None


class UpdateArticleRequest(CamelModel):
    """Partial article update; omitted fields are left unchanged."""

    title: Optional[str] = Field(default=None, min_length=5, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=5, max_length=255)
    content: Optional[str] = Field(default=None, min_length=10)
    description: Optional[str] = None
    featured_image: Optional[str] = None
    status: Optional[ArticleStatus] = None
    tags: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None


class CreateCategoryRequest(CamelModel):
    name: str = Field(..., min_length=3, max_length=100)
    slug: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    display_order: int = Field(default=0, ge=0, alias="order")
    is_active: bool = True


class UpdateCategoryRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    display_order: Optional[int] = Field(default=None, ge=0, alias="order")
    is_active: Optional[bool] = None


ArticlePage = Page[Article]
CategoryPage = Page[Category]
AuditLogPage = Page[AuditLogEntry]
