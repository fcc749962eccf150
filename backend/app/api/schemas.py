"""Request and response bodies shared by the API routes.

JSON field names follow the public API (camelCase where the clients send
camelCase); unknown fields are ignored.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.db.models import EntitlementToken, Role, User


EMAIL_MAX_LENGTH = 45


def _check_email_length(value):
    if value is not None and len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"Email must not exceed {EMAIL_MAX_LENGTH} characters")
    return value


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ── Auth ──────────────────────────────────────────────────────────────


class RegisterRequest(_Body):
    username: str = Field(..., min_length=3, max_length=45)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def limit_email_length(cls, value):
        return _check_email_length(value)


class LoginRequest(_Body):
    email: EmailStr
    password: str = Field(..., min_length=1)
    two_factor_code: Optional[str] = Field(default=None, alias="twoFactorCode")


class RefreshRequest(_Body):
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")


# ── Two-factor ────────────────────────────────────────────────────────


class TwoFactorVerifyRequest(_Body):
    token: str


class TwoFactorConfirmRequest(_Body):
    """Password plus current TOTP code, for disable and regenerate."""
    password: str = Field(..., min_length=1)
    token: Optional[str] = None


# ── Users ─────────────────────────────────────────────────────────────


class ProfileUpdate(_Body):
    username: Optional[str] = Field(default=None, min_length=3, max_length=45)
    email: Optional[EmailStr] = None

    @field_validator("email")
    @classmethod
    def limit_email_length(cls, value):
        return _check_email_length(value)


class AdminUserUpdate(ProfileUpdate):
    role: Optional[Role] = None
    token_id: Optional[str] = None


class PasswordChange(_Body):
    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=6, alias="newPassword")


# ── Entitlement tokens ────────────────────────────────────────────────


class TokenCreate(_Body):
    type: str = Field(default="pro", max_length=32)
    token: Optional[str] = Field(default=None, min_length=8, max_length=128)
    start_date: Optional[datetime] = None
    finish_date: Optional[datetime] = None
    duration: Optional[str] = Field(
        default=None, description="Lifetime from start, e.g. '30d', instead of finish_date"
    )


# ── Envelopes ─────────────────────────────────────────────────────────


def ok(data: Any = None, message: str = "Success") -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def user_public(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role.value,
        "two_factor_enabled": bool(user.two_factor_enabled),
    }


def user_admin_view(user: User) -> dict[str, Any]:
    return {
        **user_public(user),
        "token_id": user.token_id,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def token_view(token: EntitlementToken, now: datetime) -> dict[str, Any]:
    return {
        "id": token.id,
        "token": token.token,
        "type": token.type,
        "start_date": token.start_date.isoformat() if token.start_date else None,
        "finish_date": token.finish_date.isoformat(),
        "is_active": token.is_active(now),
    }
