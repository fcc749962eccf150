"""Account management: profile edits, password changes and admin actions."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.security import hash_password, verify_password
from app.db.models import Role, User, role_id_for
from app.db.repositories import EntitlementTokenRepository, UserRepository
from app.services import backup_codes, entitlements, refresh_tokens

logger = logging.getLogger(__name__)

UNSET = object()


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await UserRepository(db).get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def _check_unique(
    repo: UserRepository,
    user: User,
    username: Optional[str],
    email: Optional[str],
) -> None:
    if email and email != user.email and await repo.get_by_email(email):
        raise ConflictError("Email already in use")
    if username and username != user.username and await repo.get_by_username(username):
        raise ConflictError("Username already taken")


async def update_profile(
    db: AsyncSession,
    user: User,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> User:
    repo = UserRepository(db)
    await _check_unique(repo, user, username, email)

    fields = {}
    if username:
        fields["username"] = username
    if email:
        fields["email"] = email
    if fields:
        await repo.update_fields(user, **fields)
        await db.commit()
    return user


async def admin_update_user(
    db: AsyncSession,
    user_id: str,
    username: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[Role] = None,
    token_id=UNSET,
) -> User:
    """Admin edit. Pro is never granted here; it follows token assignment."""
    repo = UserRepository(db)
    user = await get_user(db, user_id)
    await _check_unique(repo, user, username, email)

    if role == Role.PRO:
        raise ValidationError("Pro role is granted by assigning an active token")

    fields = {}
    if username:
        fields["username"] = username
    if email:
        fields["email"] = email
    if role is not None:
        fields["role_id"] = role_id_for(role)
    if token_id is not UNSET:
        if token_id is not None and await EntitlementTokenRepository(db).get(token_id) is None:
            raise NotFoundError("Token not found")
        fields["token_id"] = token_id

    if fields:
        await repo.update_fields(user, **fields)
        await db.commit()
        logger.info("Admin updated user %s: %s", user_id, ", ".join(sorted(fields)))

    await entitlements.reconcile(db, user_id)
    return user


async def change_password(
    db: AsyncSession, user_id: str, current_password: str, new_password: str
) -> None:
    user = await get_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    await UserRepository(db).update_fields(user, password_hash=hash_password(new_password))
    await db.commit()
    logger.info("Password changed for user %s", user_id)


async def delete_user(db: AsyncSession, acting_user: User, user_id: str) -> None:
    if acting_user.id == user_id:
        raise ValidationError("Cannot delete your own account")
    await get_user(db, user_id)

    await refresh_tokens.revoke_all_for_user(db, user_id)
    await backup_codes.discard(db, user_id)
    await UserRepository(db).delete(user_id)
    await db.commit()
    logger.info("Deleted user %s", user_id)
