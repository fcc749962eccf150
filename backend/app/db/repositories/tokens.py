"""Entitlement token repository."""

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import EntitlementToken, User

logger = logging.getLogger(__name__)


class EntitlementTokenRepository:
    """Typed CRUD for EntitlementToken rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> Sequence[EntitlementToken]:
        result = await self.session.execute(
            select(EntitlementToken).order_by(EntitlementToken.created_at)
        )
        return result.scalars().all()

    async def get(self, token_id: str) -> EntitlementToken | None:
        result = await self.session.execute(
            select(EntitlementToken).where(EntitlementToken.id == token_id)
        )
        return result.scalar_one_or_none()

    async def get_by_value(self, value: str) -> EntitlementToken | None:
        result = await self.session.execute(
            select(EntitlementToken).where(EntitlementToken.token == value)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> EntitlementToken:
        token = EntitlementToken(**kwargs)
        self.session.add(token)
        await self.session.flush()
        return token

    async def delete(self, token_id: str) -> bool:
        await self._detach([token_id])
        result = await self.session.execute(
            delete(EntitlementToken).where(EntitlementToken.id == token_id)
        )
        return result.rowcount > 0

    async def delete_expired(self, now: datetime) -> int:
        """Remove lapsed tokens. Users pointing at them lose the reference."""
        ids = (
            await self.session.execute(
                select(EntitlementToken.id).where(EntitlementToken.finish_date <= now)
            )
        ).scalars().all()
        if not ids:
            return 0
        await self._detach(ids)
        await self.session.execute(
            delete(EntitlementToken).where(EntitlementToken.id.in_(ids))
        )
        return len(ids)

    async def _detach(self, token_ids) -> None:
        await self.session.execute(
            update(User)
            .where(User.token_id.in_(token_ids))
            .values(token_id=None)
        )
