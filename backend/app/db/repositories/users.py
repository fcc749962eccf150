"""User repository: the credential store for accounts, roles and 2FA state."""

import logging
from datetime import datetime
from typing import NamedTuple, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import EntitlementToken, Role, User, role_for_id, role_id_for

logger = logging.getLogger(__name__)


class RoleTokenState(NamedTuple):
    """Role plus the referenced entitlement token's finish date, from one join."""
    role: Role
    token_id: Optional[str]
    finish_date: Optional[datetime]


class UserRepository:
    """Typed CRUD for User rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ── Lookups ───────────────────────────────────────────────────────

    async def get(self, user_id: str) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def list_users(self, limit: int = 100, offset: int = 0) -> Sequence[User]:
        stmt = select(User).order_by(User.created_at).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def role_and_token_state(self, user_id: str) -> RoleTokenState | None:
        stmt = (
            select(User.role_id, User.token_id, EntitlementToken.finish_date)
            .outerjoin(EntitlementToken, User.token_id == EntitlementToken.id)
            .where(User.id == user_id)
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            return None
        role_id, token_id, finish_date = row
        return RoleTokenState(role_for_id(role_id), token_id, finish_date)

    # ── Mutations ─────────────────────────────────────────────────────

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: Role = Role.USER,
    ) -> User:
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            role_id=role_id_for(role),
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def update_fields(self, user: User, **fields) -> User:
        for key, value in fields.items():
            setattr(user, key, value)
        await self.session.flush()
        return user

    async def set_role(self, user_id: str, role: Role) -> None:
        await self.session.execute(
            update(User).where(User.id == user_id).values(role_id=role_id_for(role))
        )

    async def enable_two_factor(self, user_id: str, secret: str) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(two_factor_enabled=True, two_factor_secret=secret)
        )

    async def disable_two_factor(self, user_id: str) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(two_factor_enabled=False, two_factor_secret=None)
        )

    async def delete(self, user_id: str) -> bool:
        result = await self.session.execute(delete(User).where(User.id == user_id))
        return result.rowcount > 0
