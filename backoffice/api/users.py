"""User administration API endpoints."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, Response, status

from backoffice.api.dependencies import get_user_service, require_admin, require_staff
from backoffice.exceptions import ForbiddenError
from backoffice.models.auth import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkUpdateResponse,
    BulkUpdateRoleRequest,
    UpdateRoleRequest,
    UpdateUserRequest,
    UserPage,
)
from backoffice.models.user import Role, UserRecord, UserSummary
from backoffice.services.pagination import MAX_PAGE_SIZE
from backoffice.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=255),
    role: Optional[Role] = None,
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="DESC", alias="sortOrder"),
    staff: UserRecord = Depends(require_staff),
    user_service: UserService = Depends(get_user_service),
) -> UserPage:
    """List users with pagination, email search and role filter."""
    return await user_service.list_users(
        page=page,
        limit=limit,
        search=search,
        role=role,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/search")
async def search_users(
    q: str = Query(default="", max_length=255),
    staff: UserRecord = Depends(require_staff),
    user_service: UserService = Depends(get_user_service),
) -> list[UserSummary]:
    """Find up to ten users by email, first name or last name."""
    return await user_service.search_users(q)


@router.post("/bulk-delete")
async def bulk_delete_users(
    request: BulkDeleteRequest,
    admin: UserRecord = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> BulkDeleteResponse:
    """Delete several users at once (admin only, never the caller)."""
    if admin.id in request.ids:
        raise ForbiddenError("Cannot delete your own account")
    deleted = await user_service.bulk_delete(request.ids)
    logger.info("admin_bulk_deleted_users", admin_id=str(admin.id), deleted=deleted)
    return BulkDeleteResponse(deleted=deleted)


@router.post("/bulk-update-role")
async def bulk_update_role(
    request: BulkUpdateRoleRequest,
    admin: UserRecord = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> BulkUpdateResponse:
    """Assign one role to several users (admin only)."""
    updated = await user_service.bulk_update_role(request.ids, request.role)
    return BulkUpdateResponse(updated=updated)


@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    staff: UserRecord = Depends(require_staff),
    user_service: UserService = Depends(get_user_service),
) -> UserSummary:
    """Get a user by id (admin or moderator)."""
    return await user_service.get_user(user_id)


@router.put("/{user_id}")
async def update_user(
    user_id: UUID,
    request: UpdateUserRequest,
    staff: UserRecord = Depends(require_staff),
    user_service: UserService = Depends(get_user_service),
) -> UserSummary:
    """Update names, role or active flag.

    Moderators may change names only. Admins cannot deactivate themselves.
    """
    if staff.role != Role.ADMIN and (
        request.role is not None or request.is_active is not None
    ):
        raise ForbiddenError("Only admins can change role or active status")
    if staff.id == user_id and request.is_active is False:
        raise ForbiddenError("Cannot deactivate your own account")

    updated = await user_service.update_user(
        user_id,
        first_name=request.first_name,
        last_name=request.last_name,
        role=request.role,
        is_active=request.is_active,
    )
    logger.info("staff_updated_user", actor_id=str(staff.id), target_user_id=str(user_id))
    return updated


@router.put("/{user_id}/role")
async def update_user_role(
    user_id: UUID,
    request: UpdateRoleRequest,
    admin: UserRecord = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> UserSummary:
    """Change a user's role (admin only)."""
    return await user_service.update_role(user_id, request.role)


@router.put("/{user_id}/activate")
async def activate_user(
    user_id: UUID,
    admin: UserRecord = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> UserSummary:
    return await user_service.activate_user(user_id)


@router.put("/{user_id}/deactivate")
async def deactivate_user(
    user_id: UUID,
    admin: UserRecord = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> UserSummary:
    """Disable a user and end all of their sessions (admin only).

    Admins cannot deactivate themselves to prevent lockout.
    """
    if admin.id == user_id:
        raise ForbiddenError("Cannot deactivate your own account")
    return await user_service.deactivate_user(user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    admin: UserRecord = Depends(require_admin),
    user_service: UserService = Depends(get_user_service),
) -> Response:
    """Delete a user (admin only).

    Admins cannot delete themselves to prevent lockout.
    """
    if admin.id == user_id:
        raise ForbiddenError("Cannot delete your own account")

    await user_service.delete_user(user_id)
    logger.info("admin_deleted_user", admin_id=str(admin.id), deleted_user_id=str(user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
