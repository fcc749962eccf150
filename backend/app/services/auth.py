"""Authentication: registration, login and bearer-token dependencies.

Provides:
- Register / login flows (login falls back from TOTP to backup codes)
- FastAPI dependency that resolves the caller from the access token and
  reconciles their Pro role on every request
- Role-based enforcement (admin, user, pro)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import security as tokens
from app.core.errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    NotFoundError,
    TwoFactorRequiredError,
)
from app.core.security import hash_password, pwd_context, verify_password
from app.db import get_db
from app.db.models import Role, User
from app.db.repositories import UserRepository
from app.services import entitlements
from app.services.second_factor import verify_second_factor

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

INVALID_CREDENTIALS = "Invalid credentials"


@dataclass(frozen=True)
class AuthResult:
    user: User
    access_token: str


def issue_access_token(user: User) -> str:
    return tokens.create_access_token(user.id, user.email, user.role.value)


# ── Flows ─────────────────────────────────────────────────────────────


async def register_user(
    db: AsyncSession, username: str, email: str, password: str
) -> AuthResult:
    """Create an account. New accounts are always plain users."""
    repo = UserRepository(db)
    if await repo.get_by_email(email):
        raise ConflictError("Email already registered")
    if await repo.get_by_username(username):
        raise ConflictError("Username already taken")

    try:
        user = await repo.create(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=Role.USER,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email or username already registered") from None

    logger.info("Registered user %s", user.id)
    return AuthResult(user=user, access_token=issue_access_token(user))


async def login(
    db: AsyncSession,
    email: str,
    password: str,
    two_factor_code: Optional[str] = None,
) -> AuthResult:
    repo = UserRepository(db)
    user = await repo.get_by_email(email)
    if user is None:
        # Spend the same hashing time as a real check
        pwd_context.dummy_verify()
        logger.warning("Login failed: unknown email")
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not verify_password(password, user.password_hash):
        logger.warning("Login failed for user %s: bad password", user.id)
        raise AuthenticationError(INVALID_CREDENTIALS)

    if user.two_factor_enabled:
        if not two_factor_code:
            raise TwoFactorRequiredError()
        if not await verify_second_factor(db, user, two_factor_code):
            logger.warning("Login failed for user %s: bad second factor", user.id)
            raise AuthenticationError("Invalid 2FA code or backup code")

    await entitlements.reconcile(db, user.id)
    logger.info("User %s logged in", user.id)
    return AuthResult(user=user, access_token=issue_access_token(user))


# ── FastAPI dependencies ──────────────────────────────────────────────


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Extract and validate the current user from the access token.

    The user's Pro role is reconciled against their entitlement token
    before the user is returned.
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Access token required")

    try:
        claims = tokens.verify(credentials.credentials)
    except tokens.TokenError:
        raise InvalidTokenError("Invalid or expired token") from None

    if claims.get("type") == tokens.REFRESH_TOKEN_TYPE:
        raise InvalidTokenError("Invalid or expired token")

    user_id = claims.get("sub")
    if not user_id or await entitlements.reconcile(db, user_id) is None:
        raise NotFoundError("User not found")

    user = await UserRepository(db).get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def require_role(*roles: Role):
    """Dependency factory that requires the current user to have one of the specified roles."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ForbiddenError("Insufficient permissions")
        return user

    return _check


# Convenience dependencies
require_admin = require_role(Role.ADMIN)


def ensure_self_or_admin(user: User, target_user_id: str) -> None:
    if user.id != target_user_id and user.role != Role.ADMIN:
        raise ForbiddenError("Access denied")
