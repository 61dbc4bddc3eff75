"""Content service: articles, categories and their audit trail."""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from backoffice.exceptions import ConflictError, ConstraintViolation, NotFoundError
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
from backoffice.repositories.base import (
    ARTICLE_SORT_COLUMNS,
    CATEGORY_SORT_COLUMNS,
    ArticleRepository,
    AuditLogRepository,
    CategoryRepository,
)
from backoffice.services.pagination import check_page, check_sort, page_count
from backoffice.services.token_service import Clock, utcnow

logger = structlog.get_logger(__name__)

ARTICLE_ENTITY = "Article"
ARTICLE_SLUG_TAKEN = "Article with this slug already exists"
CATEGORY_SLUG_TAKEN = "Category with this slug already exists"


class ContentService:
    """Article and category management.

    Every article mutation appends an audit entry naming the acting user.
    Categories are not audited.

    Args:
        articles: Article store
        categories: Category store
        audit_logs: Audit trail
        clock: Source of "now" for timestamps
    """

    def __init__(
        self,
        articles: ArticleRepository,
        categories: CategoryRepository,
        audit_logs: AuditLogRepository,
        clock: Optional[Clock] = None,
    ):
        self.articles = articles
        self.categories = categories
        self.audit_logs = audit_logs
        self._clock = clock or utcnow

    async def _audit(
        self,
        action: AuditAction,
        article_id: UUID,
        actor_id: UUID,
        changes: dict[str, Any],
    ) -> None:
        await self.audit_logs.add(
            AuditLogEntry(
                id=uuid4(),
                action=action,
                entity=ARTICLE_ENTITY,
                entity_id=str(article_id),
                changes=changes,
                user_id=actor_id,
                created_at=self._clock(),
            )
        )

    # Articles

    async def create_article(
        self, request: CreateArticleRequest, author_id: UUID
    ) -> Article:
        """Create an article owned by ``author_id``.

        Raises:
            ConflictError: If the slug is already used by another article
        """
        if await self.articles.get_by_slug(request.slug) is not None:
            raise ConflictError(ARTICLE_SLUG_TAKEN)

        now = self._clock()
        article = Article(
            id=uuid4(),
            author_id=author_id,
            created_at=now,
            updated_at=now,
            published_at=now if request.status == ArticleStatus.PUBLISHED else None,
            **request.model_dump(),
        )
        try:
            article = await self.articles.create(article)
        except ConstraintViolation:
            raise ConflictError(ARTICLE_SLUG_TAKEN)

        await self._audit(
            AuditAction.CREATE, article.id, author_id, {"title": article.title}
        )
        logger.info("article_created", article_id=str(article.id), author_id=str(author_id))
        return article

    async def list_articles(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[ArticleStatus] = None,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
    ) -> ArticlePage:
        """Return one page of articles, filtered by title and status."""
        offset = check_page(page, limit)
        descending = check_sort(sort_by, sort_order, ARTICLE_SORT_COLUMNS)

        rows, total = await self.articles.list(
            offset=offset,
            limit=limit,
            search=search or None,
            status=status,
            sort_by=sort_by,
            descending=descending,
        )
        return ArticlePage(
            data=rows, total=total, page=page, limit=limit, pages=page_count(total, limit)
        )

    async def get_article(self, article_id: UUID) -> Article:
        article = await self.articles.get_by_id(article_id)
        if article is None:
            raise NotFoundError("Article not found")
        return article

    async def _save_article(self, article: Article) -> Article:
        try:
            saved = await self.articles.update(article)
        except ConstraintViolation:
            raise ConflictError(ARTICLE_SLUG_TAKEN)
        if saved is None:
            raise NotFoundError("Article not found")
        return saved

    async def update_article(
        self, article_id: UUID, request: UpdateArticleRequest, actor_id: UUID
    ) -> Article:
        """Apply the provided fields and record a before/after audit entry.

        Raises:
            NotFoundError: If the article does not exist
            ConflictError: If the new slug belongs to another article
        """
        article = await self.get_article(article_id)
        changes = request.model_dump(exclude_none=True)
        if not changes:
            return article

        if changes.get("slug", article.slug) != article.slug:
            other = await self.articles.get_by_slug(changes["slug"])
            if other is not None and other.id != article.id:
                raise ConflictError(ARTICLE_SLUG_TAKEN)

        if (
            changes.get("status") == ArticleStatus.PUBLISHED
            and article.published_at is None
        ):
            changes["published_at"] = self._clock()

        updated = await self._save_article(article.with_changes(**changes))

        fields = set(changes)
        await self._audit(
            AuditAction.UPDATE,
            article_id,
            actor_id,
            {
                "before": article.model_dump(mode="json", include=fields),
                "after": updated.model_dump(mode="json", include=fields),
            },
        )
        logger.info(
            "article_updated",
            article_id=str(article_id),
            fields_updated=sorted(fields),
        )
        return updated

    async def delete_article(self, article_id: UUID, actor_id: UUID) -> None:
        """Raises NotFoundError if the article does not exist."""
        article = await self.get_article(article_id)
        if not await self.articles.delete(article_id):
            raise NotFoundError("Article not found")

        await self._audit(
            AuditAction.DELETE, article_id, actor_id, {"title": article.title}
        )
        logger.info("article_deleted", article_id=str(article_id))

    async def publish_article(self, article_id: UUID, actor_id: UUID) -> Article:
        """Mark an article published and stamp ``published_at``."""
        article = await self.get_article(article_id)
        updated = await self._save_article(
            article.with_changes(
                status=ArticleStatus.PUBLISHED, published_at=self._clock()
            )
        )
        await self._audit(
            AuditAction.UPDATE, article_id, actor_id, {"action": "published"}
        )
        logger.info("article_published", article_id=str(article_id))
        return updated

    async def archive_article(self, article_id: UUID, actor_id: UUID) -> Article:
        article = await self.get_article(article_id)
        updated = await self._save_article(
            article.with_changes(status=ArticleStatus.ARCHIVED)
        )
        await self._audit(
            AuditAction.UPDATE, article_id, actor_id, {"action": "archived"}
        )
        logger.info("article_archived", article_id=str(article_id))
        return updated

    # Categories

    async def create_category(self, request: CreateCategoryRequest) -> Category:
        """Raises ConflictError if the slug is already taken."""
        now = self._clock()
        category = Category(
            id=uuid4(), created_at=now, updated_at=now, **request.model_dump()
        )
        try:
            category = await self.categories.create(category)
        except ConstraintViolation:
            raise ConflictError(CATEGORY_SLUG_TAKEN)

        logger.info("category_created", category_id=str(category.id))
        return category

    async def list_categories(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
    ) -> CategoryPage:
        """Return one page of active categories in display order."""
        offset = check_page(page, limit)
        descending = check_sort(sort_by, sort_order, CATEGORY_SORT_COLUMNS)

        rows, total = await self.categories.list(
            offset=offset,
            limit=limit,
            search=search or None,
            sort_by=sort_by,
            descending=descending,
        )
        return CategoryPage(
            data=rows, total=total, page=page, limit=limit, pages=page_count(total, limit)
        )

    async def get_category(self, category_id: UUID) -> Category:
        category = await self.categories.get_by_id(category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    async def update_category(
        self, category_id: UUID, request: UpdateCategoryRequest
    ) -> Category:
        category = await self.get_category(category_id)
        changes = request.model_dump(exclude_none=True)
        if not changes:
            return category

        try:
            updated = await self.categories.update(category.with_changes(**changes))
        except ConstraintViolation:
            raise ConflictError(CATEGORY_SLUG_TAKEN)
        if updated is None:
            raise NotFoundError("Category not found")

        logger.info(
            "category_updated",
            category_id=str(category_id),
            fields_updated=sorted(changes),
        )
        return updated

    async def delete_category(self, category_id: UUID) -> None:
        if not await self.categories.delete(category_id):
            raise NotFoundError("Category not found")
        logger.info("category_deleted", category_id=str(category_id))

    # Audit trail

    async def list_audit_logs(
        self, page: int = 1, limit: int = 10, search: Optional[str] = None
    ) -> AuditLogPage:
        """Newest entries first; ``search`` matches the entity name."""
        offset = check_page(page, limit)
        rows, total = await self.audit_logs.list(
            offset=offset, limit=limit, search=search or None
        )
        return AuditLogPage(
            data=rows, total=total, page=page, limit=limit, pages=page_count(total, limit)
        )
