"""Backup code vault for single-use 2FA recovery codes.

Codes are 8 uppercase hex characters (4 random bytes). A user has at most
one live batch: generating a new batch deletes every earlier code in the
same transaction, so a concurrent check sees either the old batch or the
new one. Consumption is a conditional UPDATE on ``used = false``; only the
request whose update touches the row succeeds.
"""

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import utcnow
from app.db.models import BackupCode

logger = logging.getLogger(__name__)

CODE_BYTES = 4


def new_code() -> str:
    return secrets.token_hex(CODE_BYTES).upper()


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def generate(
    db: AsyncSession, user_id: str, count: Optional[int] = None
) -> list[str]:
    """Replace the user's backup codes with a fresh batch and return it."""
    if count is None:
        count = settings.BACKUP_CODE_COUNT
    codes: list[str] = []
    while len(codes) < count:
        code = new_code()
        if code not in codes:
            codes.append(code)

    await db.execute(delete(BackupCode).where(BackupCode.user_id == user_id))
    db.add_all([BackupCode(user_id=user_id, code=code) for code in codes])
    await db.commit()

    logger.info("Generated %d backup codes for user %s", count, user_id)
    return codes


async def verify_and_consume(
    db: AsyncSession, user_id: str, code: str, now: Optional[datetime] = None
) -> bool:
    """Mark a matching unused code as used. False if there is none."""
    if not code:
        return False
    result = await db.execute(
        update(BackupCode)
        .where(
            BackupCode.user_id == user_id,
            BackupCode.code == normalize_code(code),
            BackupCode.used.is_(False),
        )
        .values(used=True, used_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    await db.commit()
    logger.info("Backup code consumed for user %s", user_id)
    return True


async def remaining(db: AsyncSession, user_id: str) -> list[str]:
    result = await db.execute(
        select(BackupCode.code)
        .where(BackupCode.user_id == user_id, BackupCode.used.is_(False))
        .order_by(BackupCode.created_at, BackupCode.id)
    )
    return list(result.scalars().all())


async def count_unused(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count(BackupCode.id)).where(
            BackupCode.user_id == user_id, BackupCode.used.is_(False)
        )
    )
    return result.scalar_one()


async def has_backup_codes(db: AsyncSession, user_id: str) -> bool:
    return await count_unused(db, user_id) > 0


async def discard(db: AsyncSession, user_id: str) -> int:
    """Delete every code of the user (used or not). Caller commits."""
    result = await db.execute(delete(BackupCode).where(BackupCode.user_id == user_id))
    return result.rowcount
