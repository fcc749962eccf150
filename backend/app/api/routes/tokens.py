"""API routes for entitlement tokens."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import TokenCreate, ok, token_view
from app.core.clock import as_utc, utcnow
from app.core.durations import parse_duration
from app.core.errors import ValidationError
from app.db import get_db
from app.db.models import User
from app.db.repositories import EntitlementTokenRepository
from app.services import entitlements
from app.services.auth import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tokens", tags=["tokens"])


@router.get("/me", summary="Caller's own entitlement token")
async def my_token(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the caller's entitlement token

    Pro accounts without 2FA are refused with ``requires2FA`` and a
    ``setupUrl`` pointing at the enrolment endpoint.
    """
    token = await entitlements.token_for_owner(db, current_user)
    return ok({"token": token_view(token, utcnow())}, "Token retrieved successfully")


@router.get("", summary="List entitlement tokens")
async def list_tokens(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    tokens = await EntitlementTokenRepository(db).list_all()
    return ok({"tokens": [token_view(t, now) for t in tokens]})


@router.post("", status_code=status.HTTP_201_CREATED, summary="Provision an entitlement token")
async def create_token(
    body: TokenCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    start = as_utc(body.start_date) or utcnow()
    if body.finish_date is not None:
        finish = as_utc(body.finish_date)
    elif body.duration:
        try:
            finish = start + parse_duration(body.duration)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None
    else:
        raise ValidationError("finish_date or duration is required")

    if finish <= start:
        raise ValidationError("finish_date must be after start_date")

    token = await entitlements.provision_token(
        db, finish, token_type=body.type, value=body.token, start_date=start
    )
    return ok({"token": token_view(token, utcnow())}, "Token created successfully")


@router.delete("/expired", summary="Delete lapsed entitlement tokens")
async def purge_expired(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    removed = await entitlements.purge_expired_tokens(db)
    return ok({"deleted": removed}, f"Removed {removed} expired tokens")


@router.delete("/{token_id}", summary="Delete an entitlement token")
async def delete_token(
    token_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete an entitlement token (admin only)

    Users holding it lose the reference; their Pro role is dropped on their
    next authenticated request.
    """
    await entitlements.delete_token(db, token_id)
    return ok(None, "Token deleted successfully")
