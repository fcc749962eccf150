"""Two-factor authentication flows: setup, verify, disable, backup codes.

A candidate secret lives only in the TTL cache until the user proves they
can produce a code from it; only then is it written to the user row and a
first batch of backup codes handed out.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core import totp
from app.core.cache import TTLCache
from app.core.errors import AuthenticationError, ValidationError
from app.core.security import verify_password
from app.db.models import User
from app.db.repositories import UserRepository
from app.services import backup_codes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    qr_code: str
    manual_entry: str


@dataclass(frozen=True)
class TwoFactorVerification:
    enabled_now: bool
    backup_codes: list[str] = field(default_factory=list)


def _check_password(user: User, password: Optional[str]) -> None:
    if not password:
        raise ValidationError("Password is required")
    if not verify_password(password, user.password_hash):
        logger.warning("2FA change refused for user %s: bad password", user.id)
        raise AuthenticationError("Invalid password")


def _check_current_code(user: User, code: Optional[str]) -> None:
    if not code:
        raise ValidationError("2FA code is required")
    if not totp.verify(user.two_factor_secret, code):
        raise ValidationError("Invalid 2FA code")


def setup(cache: TTLCache, user: User) -> TwoFactorSetup:
    """Stage a new secret for the user; nothing is persisted yet."""
    if user.two_factor_enabled:
        raise ValidationError("2FA already enabled")

    enrollment = totp.generate_secret(user.email)
    cache.set(user.id, enrollment.secret, settings.two_factor_setup_ttl)
    logger.info("2FA setup started for user %s", user.id)
    return TwoFactorSetup(
        secret=enrollment.secret,
        qr_code=totp.qr_data_uri(enrollment.provisioning_uri),
        manual_entry=enrollment.provisioning_uri,
    )


async def verify(
    db: AsyncSession, cache: TTLCache, user: User, code: Optional[str]
) -> TwoFactorVerification:
    if not totp.is_code_format(code):
        raise ValidationError("Invalid token format")

    if user.two_factor_enabled and user.two_factor_secret:
        if not totp.verify(user.two_factor_secret, code):
            raise ValidationError("Invalid verification code")
        return TwoFactorVerification(enabled_now=False)

    secret = cache.get(user.id)
    if secret is None:
        raise ValidationError("No 2FA setup found or expired. Please setup 2FA first.")
    if not totp.verify(secret, code):
        raise ValidationError("Invalid verification code")

    await UserRepository(db).enable_two_factor(user.id, secret)
    codes = await backup_codes.generate(db, user.id)
    cache.delete(user.id)
    logger.info("2FA enabled for user %s", user.id)
    return TwoFactorVerification(enabled_now=True, backup_codes=codes)


async def disable(
    db: AsyncSession,
    cache: TTLCache,
    user: User,
    password: Optional[str],
    code: Optional[str],
) -> None:
    _check_password(user, password)
    if user.two_factor_enabled:
        _check_current_code(user, code)

    await UserRepository(db).disable_two_factor(user.id)
    await backup_codes.discard(db, user.id)
    await db.commit()
    cache.delete(user.id)
    logger.info("2FA disabled for user %s", user.id)


async def list_backup_codes(db: AsyncSession, user: User) -> list[str]:
    if not user.two_factor_enabled:
        raise ValidationError("2FA is not enabled")
    return await backup_codes.remaining(db, user.id)


async def regenerate_backup_codes(
    db: AsyncSession, user: User, password: Optional[str], code: Optional[str]
) -> list[str]:
    if not password:
        raise ValidationError("Password is required")
    if not user.two_factor_enabled:
        raise ValidationError("2FA is not enabled")
    _check_password(user, password)
    _check_current_code(user, code)

    codes = await backup_codes.generate(db, user.id)
    logger.info("Backup codes regenerated for user %s", user.id)
    return codes
