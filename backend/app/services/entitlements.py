"""Entitlement reconciliation keeps the Pro role in step with token activity.

A non-admin user is Pro exactly when they reference an entitlement token
whose finish date is still in the future. The check runs lazily on every
authenticated request; it is idempotent, so concurrent runs converge.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, utcnow
from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.db.models import EntitlementToken, Role, User
from app.db.repositories import EntitlementTokenRepository, RoleTokenState, UserRepository

logger = logging.getLogger(__name__)

REASON_DOWNGRADE = "Token expired or missing"
REASON_UPGRADE = "Active token detected"


@dataclass(frozen=True)
class ReconcileResult:
    changed: bool
    role: Role
    reason: Optional[str] = None


def has_active_token(state: RoleTokenState, now: datetime) -> bool:
    return (
        state.token_id is not None
        and state.finish_date is not None
        and as_utc(state.finish_date) > now
    )


async def reconcile(
    db: AsyncSession, user_id: str, now: Optional[datetime] = None
) -> ReconcileResult | None:
    """Correct role drift for one user. Returns None if the user is gone."""
    repo = UserRepository(db)
    state = await repo.role_and_token_state(user_id)
    if state is None:
        return None
    if state.role == Role.ADMIN:
        return ReconcileResult(changed=False, role=state.role)

    active = has_active_token(state, now or utcnow())

    if state.role == Role.PRO and not active:
        await repo.set_role(user_id, Role.USER)
        await db.commit()
        logger.info("User %s downgraded to user: %s", user_id, REASON_DOWNGRADE)
        return ReconcileResult(changed=True, role=Role.USER, reason=REASON_DOWNGRADE)

    if state.role == Role.USER and active:
        await repo.set_role(user_id, Role.PRO)
        await db.commit()
        logger.info("User %s upgraded to pro: %s", user_id, REASON_UPGRADE)
        return ReconcileResult(changed=True, role=Role.PRO, reason=REASON_UPGRADE)

    return ReconcileResult(changed=False, role=state.role)


# ── Token access ──────────────────────────────────────────────────────

TWO_FACTOR_SETUP_URL = "/api/auth/2fa/setup"


async def token_for_owner(db: AsyncSession, user: User) -> EntitlementToken:
    """The caller's own entitlement token. Pro accounts must have 2FA on."""
    if user.role == Role.PRO and not user.two_factor_enabled:
        raise ForbiddenError(
            "Pro users must enable 2FA to access their tokens",
            extra={"requires2FA": True, "setupUrl": TWO_FACTOR_SETUP_URL},
        )
    if not user.token_id:
        raise NotFoundError("No token assigned to this user")

    token = await EntitlementTokenRepository(db).get(user.token_id)
    if token is None:
        raise NotFoundError("Token not found")
    return token


async def provision_token(
    db: AsyncSession,
    finish_date: datetime,
    token_type: str = "pro",
    value: Optional[str] = None,
    start_date: Optional[datetime] = None,
) -> EntitlementToken:
    repo = EntitlementTokenRepository(db)
    value = value or secrets.token_urlsafe(24)
    if await repo.get_by_value(value):
        raise ConflictError("Token value already exists")
    token = await repo.create(
        token=value,
        type=token_type,
        start_date=start_date or utcnow(),
        finish_date=finish_date,
    )
    await db.commit()
    logger.info("Provisioned %s token %s", token_type, token.id)
    return token


async def delete_token(db: AsyncSession, token_id: str) -> None:
    if not await EntitlementTokenRepository(db).delete(token_id):
        raise NotFoundError("Token not found")
    await db.commit()
    logger.info("Deleted entitlement token %s", token_id)


async def purge_expired_tokens(db: AsyncSession, now: Optional[datetime] = None) -> int:
    removed = await EntitlementTokenRepository(db).delete_expired(now or utcnow())
    await db.commit()
    if removed:
        logger.info("Removed %d expired entitlement tokens", removed)
    return removed
