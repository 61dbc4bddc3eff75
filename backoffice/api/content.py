"""Content API endpoints: articles, categories and the audit log."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, Response, status

from backoffice.api.dependencies import (
    get_content_service,
    get_current_user,
    require_admin,
    require_staff,
)
from backoffice.models.content import (
    Article,
    ArticlePage,
    ArticleStatus,
    AuditLogPage,
    Category,
    CategoryPage,
    CreateArticleRequest,
    CreateCategoryRequest,
    UpdateArticleRequest,
    UpdateCategoryRequest,
)
from backoffice.models.user import UserRecord
from backoffice.services.content_service import ContentService
from backoffice.services.pagination import MAX_PAGE_SIZE

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/content", tags=["Content"])


@router.post("/articles", status_code=status.HTTP_201_CREATED)
async def create_article(
    request: CreateArticleRequest,
    staff: UserRecord = Depends(require_staff),
    content_service: ContentService = Depends(get_content_service),
) -> Article:
    """Create an article authored by the caller (admin or moderator)."""
    return await content_service.create_article(request, author_id=staff.id)


@router.get("/articles")
async def list_articles(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=255),
    article_status: Optional[ArticleStatus] = Query(default=None, alias="status"),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="DESC", alias="sortOrder"),
    current_user: UserRecord = Depends(get_current_user),
    content_service: ContentService = Depends(get_content_service),
) -> ArticlePage:
    """List articles with title search and status filter."""
    return await content_service.list_articles(
        page=page,
        limit=limit,
        search=search,
        status=article_status,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/articles/{article_id}")
async def get_article(
    article_id: UUID,
    current_user: UserRecord = Depends(get_current_user),
    content_service: ContentService = Depends(get_content_service),
) -> Article:
    return await content_service.get_article(article_id)


@router.put("/articles/{article_id}")
async def update_article(
    article_id: UUID,
    request: UpdateArticleRequest,
    staff: UserRecord = Depends(require_staff),
    content_service: ContentService = Depends(get_content_service),
) -> Article:
    return await content_service.update_article(article_id, request, actor_id=staff.id)


@router.delete("/articles/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article(
    article_id: UUID,
    admin: UserRecord = Depends(require_admin),
    content_service: ContentService = Depends(get_content_service),
) -> Response:
    """Delete an article (admin only)."""
    await content_service.delete_article(article_id, actor_id=admin.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/articles/{article_id}/publish")
async def publish_article(
    article_id: UUID,
    staff: UserRecord = Depends(require_staff),
    content_service: ContentService = Depends(get_content_service),
) -> Article:
    return await content_service.publish_article(article_id, actor_id=staff.id)


@router.put("/articles/{article_id}/archive")
async def archive_article(
    article_id: UUID,
    staff: UserRecord = Depends(require_staff),
    content_service: ContentService = Depends(get_content_service),
) -> Article:
    return await content_service.archive_article(article_id, actor_id=staff.id)


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    admin: UserRecord = Depends(require_admin),
    content_service: ContentService = Depends(get_content_service),
) -> Category:
    return await content_service.create_category(request)


@router.get("/categories")
async def list_categories(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=255),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="DESC", alias="sortOrder"),
    current_user: UserRecord = Depends(get_current_user),
    content_service: ContentService = Depends(get_content_service),
) -> CategoryPage:
    """List active categories in display order."""
    return await content_service.list_categories(
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/categories/{category_id}")
async def get_category(
    category_id: UUID,
    current_user: UserRecord = Depends(get_current_user),
    content_service: ContentService = Depends(get_content_service),
) -> Category:
    return await content_service.get_category(category_id)


@router.put("/categories/{category_id}")
async def update_category(
    category_id: UUID,
    request: UpdateCategoryRequest,
    admin: UserRecord = Depends(require_admin),
    content_service: ContentService = Depends(get_content_service),
) -> Category:
    return await content_service.update_category(category_id, request)


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: UUID,
    admin: UserRecord = Depends(require_admin),
    content_service: ContentService = Depends(get_content_service),
) -> Response:
    await content_service.delete_category(category_id)
    logger.info("admin_deleted_category", admin_id=str(admin.id), category_id=str(category_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit-logs")
async def list_audit_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=255),
    admin: UserRecord = Depends(require_admin),
    content_service: ContentService = Depends(get_content_service),
) -> AuditLogPage:
    """Audit trail of article changes, newest first (admin only)."""
    return await content_service.list_audit_logs(page=page, limit=limit, search=search)
