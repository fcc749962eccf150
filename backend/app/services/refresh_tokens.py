"""Refresh token lifecycle (issue, redeem, revoke, purge).

A stored refresh token is usable while both hold:
- now < expires_at (absolute lifetime, JWT_REFRESH_EXPIRE)
- now - last_used_at < JWT_REFRESH_INACTIVITY

Redemption never rotates the refresh token; it only bumps last_used_at and
mints a new access token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core import security
from app.core.clock import as_utc, utcnow
from app.core.errors import InvalidTokenError, NotFoundError
from app.db.models import RefreshToken, User
from app.db.repositories import UserRepository
from app.services import entitlements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedRefreshToken:
    refresh_token: str
    expires_at: datetime
    inactivity: str


@dataclass(frozen=True)
class RedeemedAccess:
    access_token: str
    user: User


def is_active(
    record: RefreshToken,
    now: Optional[datetime] = None,
    inactivity: Optional[timedelta] = None,
) -> bool:
    now = now or utcnow()
    inactivity = inactivity or settings.refresh_inactivity
    if now >= as_utc(record.expires_at):
        return False
    return now - as_utc(record.last_used_at) < inactivity


async def find(db: AsyncSession, token: str) -> RefreshToken | None:
    result = await db.execute(select(RefreshToken).where(RefreshToken.token == token))
    return result.scalar_one_or_none()


async def issue(
    db: AsyncSession, user_id: str, now: Optional[datetime] = None
) -> IssuedRefreshToken:
    now = now or utcnow()
    token = security.create_refresh_token(user_id)
    expires_at = now + settings.refresh_token_ttl
    db.add(
        RefreshToken(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            last_used_at=now,
        )
    )
    await db.commit()
    logger.info("Refresh token issued for user %s", user_id)
    return IssuedRefreshToken(
        refresh_token=token,
        expires_at=expires_at,
        inactivity=settings.JWT_REFRESH_INACTIVITY,
    )


async def redeem(
    db: AsyncSession, token: str, now: Optional[datetime] = None
) -> RedeemedAccess:
    """Exchange a stored refresh token for a new access token."""
    now = now or utcnow()

    record = await find(db, token)
    if record is None:
        raise InvalidTokenError("Invalid refresh token")

    if not is_active(record, now):
        logger.info("Purging inactive refresh token of user %s", record.user_id)
        await revoke(db, token)
        raise InvalidTokenError("Refresh token expired or inactive")

    try:
        claims = security.verify(token)
    except security.TokenError:
        raise InvalidTokenError("Invalid refresh token format") from None
    if claims.get("type") != security.REFRESH_TOKEN_TYPE:
        raise InvalidTokenError("Invalid refresh token format")

    user_id = claims.get("sub")
    await entitlements.reconcile(db, user_id, now)
    user = await UserRepository(db).get(user_id)
    if user is None:
        raise NotFoundError("User not found")

    await db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == record.id)
        .values(last_used_at=now)
    )
    await db.commit()

    access_token = security.create_access_token(user.id, user.email, user.role.value)
    return RedeemedAccess(access_token=access_token, user=user)


async def revoke(db: AsyncSession, token: str) -> bool:
    result = await db.execute(delete(RefreshToken).where(RefreshToken.token == token))
    await db.commit()
    return result.rowcount > 0


async def revoke_all_for_user(db: AsyncSession, user_id: str) -> int:
    """Delete every refresh token of a user. Caller commits."""
    result = await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
    return result.rowcount


async def purge_dead(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Delete refresh tokens past absolute expiry or idle too long."""
    now = now or utcnow()
    idle_cutoff = now - settings.refresh_inactivity
    result = await db.execute(
        delete(RefreshToken).where(
            or_(RefreshToken.expires_at <= now, RefreshToken.last_used_at <= idle_cutoff)
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        logger.info("Purged %d dead refresh tokens", result.rowcount)
    return result.rowcount
