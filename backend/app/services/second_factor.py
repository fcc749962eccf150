"""Second-factor verification chain used at login.

Verifiers are tried in order (TOTP, then backup code) and the first success
wins. Callers only learn pass/fail, never which verifier came closer.
"""

import logging
from typing import Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import totp
from app.db.models import User
from app.services import backup_codes

logger = logging.getLogger(__name__)


class SecondFactorVerifier(Protocol):
    name: str

    async def verify(self, db: AsyncSession, user: User, code: str) -> bool: ...


class TotpVerifier:
    name = "totp"

    async def verify(self, db: AsyncSession, user: User, code: str) -> bool:
        return totp.verify(user.two_factor_secret, code)


class BackupCodeVerifier:
    name = "backup_code"

    async def verify(self, db: AsyncSession, user: User, code: str) -> bool:
        return await backup_codes.verify_and_consume(db, user.id, code)


DEFAULT_CHAIN: tuple[SecondFactorVerifier, ...] = (TotpVerifier(), BackupCodeVerifier())


async def verify_second_factor(
    db: AsyncSession,
    user: User,
    code: str,
    chain: Sequence[SecondFactorVerifier] = DEFAULT_CHAIN,
) -> bool:
    for verifier in chain:
        if await verifier.verify(db, user, code):
            logger.debug("Second factor accepted for user %s via %s", user.id, verifier.name)
            return True
    return False
