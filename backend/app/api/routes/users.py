"""API routes for user management."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    AdminUserUpdate,
    PasswordChange,
    ProfileUpdate,
    ok,
    user_admin_view,
    user_public,
)
from app.db import get_db
from app.db.models import User
from app.db.repositories import UserRepository
from app.services import users as user_service
from app.services.auth import ensure_self_or_admin, get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", summary="List users")
async def list_users(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await UserRepository(db).list_users(limit=limit, offset=offset)
    return ok([user_admin_view(u) for u in users])


# Declared before /{user_id} so "profile" is not read as an id.
@router.put("/profile", summary="Update own profile")
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_profile(
        db, current_user, username=body.username, email=body.email
    )
    return ok(user_public(user), "Profile updated successfully")


@router.get("/{user_id}", summary="Get a user")
async def get_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get user by ID

    Users can view their own account; admins can view any account.
    """
    ensure_self_or_admin(current_user, user_id)
    user = await user_service.get_user(db, user_id)
    return ok(user_admin_view(user))


@router.put("/{user_id}", summary="Update a user")
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Update a user (admin only)

    ``role`` accepts ``admin`` or ``user``. Pro follows the assigned
    entitlement token; send ``token_id: null`` to unassign.
    """
    token_id = body.token_id if "token_id" in body.model_fields_set else user_service.UNSET
    user = await user_service.admin_update_user(
        db,
        user_id,
        username=body.username,
        email=body.email,
        role=body.role,
        token_id=token_id,
    )
    return ok(user_admin_view(user), "User updated successfully")


@router.delete("/{user_id}", summary="Delete a user")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, admin, user_id)
    return ok(None, "User deleted successfully")


@router.put("/{user_id}/password", summary="Change a password")
async def change_password(
    user_id: str,
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_self_or_admin(current_user, user_id)
    await user_service.change_password(
        db, user_id, body.current_password, body.new_password
    )
    return ok(None, "Password changed successfully")
