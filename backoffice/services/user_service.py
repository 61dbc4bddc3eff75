"""User management service."""

from typing import Optional
from uuid import UUID

import structlog

from backoffice.exceptions import BadRequestError, ConflictError, ConstraintViolation, NotFoundError
from backoffice.models.auth import UserPage
from backoffice.models.user import Role, UserRecord, UserSummary
from backoffice.repositories.base import USER_SORT_COLUMNS, RefreshTokenRepository, UserRepository
from backoffice.services.pagination import check_page, check_sort, page_count

logger = structlog.get_logger(__name__)

SEARCH_LIMIT = 10


class UserService:
    """Administrative operations over the user directory.

    Deactivating or deleting a user also ends all of their sessions.
    """

    def __init__(self, users: UserRepository, tokens: RefreshTokenRepository):
        self.users = users
        self.tokens = tokens

    async def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        role: Optional[Role] = None,
        sort_by: str = "created_at",
        sort_order: str = "DESC",
    ) -> UserPage:
        """Return one page of users.

        Args:
            page: 1-based page number
            limit: Page size (1..100)
            search: Case-insensitive substring match on email
            role: Restrict to one role
            sort_by: Column to order by
            sort_order: "ASC" or "DESC"

        Raises:
            BadRequestError: On out-of-range paging or unknown sort options
        """
        offset = check_page(page, limit)
        descending = check_sort(sort_by, sort_order, USER_SORT_COLUMNS)

        rows, total = await self.users.list(
            offset=offset,
            limit=limit,
            search=search or None,
            role=role,
            sort_by=sort_by,
            descending=descending,
        )

        return UserPage(
            data=[row.to_summary() for row in rows],
            total=total,
            page=page,
            limit=limit,
            pages=page_count(total, limit),
        )

    async def search_users(self, query: str) -> list[UserSummary]:
        """Quick lookup by email, first name or last name.

        Returns at most SEARCH_LIMIT users; a blank query matches nothing.
        """
        query = query.strip()
        if not query:
            return []
        rows = await self.users.search(query, SEARCH_LIMIT)
        return [row.to_summary() for row in rows]

    async def _get_record(self, user_id: UUID) -> UserRecord:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_user(self, user_id: UUID) -> UserSummary:
        """Raises NotFoundError if the user does not exist."""
        return (await self._get_record(user_id)).to_summary()

    async def update_user(
        self,
        user_id: UUID,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        role: Optional[Role] = None,
        is_active: Optional[bool] = None,
    ) -> UserSummary:
        """Update the provided fields of a user.

        Raises:
            NotFoundError: If the user does not exist
        """
        user = await self._get_record(user_id)

        changes = {
            field: value
            for field, value in (
                ("first_name", first_name),
                ("last_name", last_name),
                ("role", role),
                ("is_active", is_active),
            )
            if value is not None
        }
        if not changes:
            return user.to_summary()

        try:
            updated = await self.users.update(user.with_changes(**changes))
        except ConstraintViolation as e:
            raise ConflictError(e.message)
        if updated is None:
            raise NotFoundError("User not found")

        if user.is_active and updated.is_active is False:
            await self.tokens.revoke_all_for_user(user_id)

        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_updated=sorted(changes),
        )
        return updated.to_summary()

    async def update_role(self, user_id: UUID, role: Role) -> UserSummary:
        return await self.update_user(user_id, role=role)

    async def activate_user(self, user_id: UUID) -> UserSummary:
        return await self.update_user(user_id, is_active=True)

    async def deactivate_user(self, user_id: UUID) -> UserSummary:
        """Disable login for a user and revoke all of their refresh tokens."""
        return await self.update_user(user_id, is_active=False)

    async def delete_user(self, user_id: UUID) -> None:
        """Hard-delete a user; refresh tokens go with it.

        Raises:
            NotFoundError: If the user does not exist
        """
        deleted = await self.users.delete(user_id)
        if not deleted:
            logger.warning("user_delete_not_found", user_id=str(user_id))
            raise NotFoundError("User not found")

        logger.info("user_deleted", user_id=str(user_id))

    async def bulk_delete(self, user_ids: list[UUID]) -> int:
        """Delete every listed user that exists; returns how many were removed.

        Raises:
            BadRequestError: If no ids are given
        """
        if not user_ids:
            raise BadRequestError("No user IDs provided")
        deleted = await self.users.delete_many(user_ids)
        logger.info("users_bulk_deleted", requested=len(user_ids), deleted=deleted)
        return deleted

    async def bulk_update_role(self, user_ids: list[UUID], role: Role) -> int:
        """Assign one role to every listed user; returns how many changed.

        Raises:
            BadRequestError: If no ids are given
        """
        if not user_ids:
            raise BadRequestError("No user IDs provided")
        updated = await self.users.update_role_many(user_ids, role)
        logger.info(
            "users_bulk_role_updated",
            requested=len(user_ids),
            updated=updated,
            role=role.value,
        )
        return updated
