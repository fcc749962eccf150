"""API routes for two-factor authentication and backup codes."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import TwoFactorConfirmRequest, TwoFactorVerifyRequest, ok
from app.core.cache import TTLCache, get_secret_cache
from app.db import get_db
from app.db.models import User
from app.services import two_factor
from app.services.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/2fa", tags=["2fa"])


@router.post("/setup", summary="Start 2FA enrolment")
async def setup_two_factor(
    current_user: User = Depends(get_current_user),
    cache: TTLCache = Depends(get_secret_cache),
):
    """
    Set up two-factor authentication

    Generates a TOTP secret and QR code. The secret only becomes active
    after a code from it is confirmed through /2fa/verify.
    """
    staged = two_factor.setup(cache, current_user)
    return ok(
        {
            "secret": staged.secret,
            "qrCode": staged.qr_code,
            "manualEntry": staged.manual_entry,
        },
        "Scan the QR code and confirm with a code to enable 2FA",
    )


@router.post("/verify", summary="Confirm a TOTP code")
async def verify_two_factor(
    body: TwoFactorVerifyRequest,
    current_user: User = Depends(get_current_user),
    cache: TTLCache = Depends(get_secret_cache),
    db: AsyncSession = Depends(get_db),
):
    """
    Verify a code and enable two-factor authentication

    On first enable the response carries the backup codes. They are shown
    only this once.
    """
    result = await two_factor.verify(db, cache, current_user, body.token)
    if not result.enabled_now:
        return ok(None, "2FA code verified")
    return ok(
        {
            "backupCodes": result.backup_codes,
            "warning": "Save these backup codes in a safe place. Each can only be used once.",
        },
        "2FA enabled successfully",
    )


@router.post("/disable", summary="Disable 2FA")
async def disable_two_factor(
    body: TwoFactorConfirmRequest,
    current_user: User = Depends(get_current_user),
    cache: TTLCache = Depends(get_secret_cache),
    db: AsyncSession = Depends(get_db),
):
    await two_factor.disable(db, cache, current_user, body.password, body.token)
    return ok(None, "2FA disabled successfully")


@router.get("/backup-codes", summary="List unused backup codes")
async def list_backup_codes(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    codes = await two_factor.list_backup_codes(db, current_user)
    return ok({"codes": codes, "count": len(codes)})


@router.post("/backup-codes/regenerate", summary="Replace all backup codes")
async def regenerate_backup_codes(
    body: TwoFactorConfirmRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    codes = await two_factor.regenerate_backup_codes(db, current_user, body.password, body.token)
    return ok(
        {
            "backupCodes": codes,
            "warning": "Old backup codes are now invalid. Save these new codes in a safe place.",
        },
        "Backup codes regenerated successfully",
    )
