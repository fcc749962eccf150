"""SQLAlchemy ORM models for zCorvus.

Persistent entities: roles, users, entitlement tokens, refresh tokens and
2FA backup codes.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import as_utc

from .engine import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ── Roles ──────────────────────────────────────────────────────────────


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"
    PRO = "pro"


# Stored ids of the roles lookup table. Only this module converts between
# ids and Role members.
ROLE_IDS: dict[Role, int] = {Role.ADMIN: 1, Role.USER: 2, Role.PRO: 3}
_ROLES_BY_ID: dict[int, Role] = {v: k for k, v in ROLE_IDS.items()}


def role_id_for(role: Role) -> int:
    return ROLE_IDS[role]


def role_for_id(role_id: int) -> Role:
    try:
        return _ROLES_BY_ID[role_id]
    except KeyError:
        raise ValueError(f"Unknown role id: {role_id}") from None


class RoleRecord(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(45), unique=True, nullable=False)


# ── Users ──────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(45), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(45), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.id"), nullable=False, default=ROLE_IDS[Role.USER]
    )
    token_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("tokens.id", ondelete="SET NULL"), nullable=True
    )
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    two_factor_secret: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    @property
    def role(self) -> Role:
        return role_for_id(self.role_id)


# ── Entitlement tokens ─────────────────────────────────────────────────


class EntitlementToken(Base):
    """Time-bounded grant that justifies the Pro role."""
    __tablename__ = "tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(32), default="pro", nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    finish_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def is_active(self, now: datetime) -> bool:
        return as_utc(self.finish_date) > now


# ── Refresh tokens ─────────────────────────────────────────────────────


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_refresh_tokens_token", "token", unique=True),
        Index("ix_refresh_tokens_user", "user_id"),
    )


# ── Backup codes ───────────────────────────────────────────────────────


class BackupCode(Base):
    """Single-use 2FA recovery code."""
    __tablename__ = "backup_codes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(8), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_backup_codes_user_used", "user_id", "used"),
    )
