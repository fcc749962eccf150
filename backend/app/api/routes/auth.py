"""API routes for registration, login and access/refresh tokens."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import LoginRequest, RefreshRequest, RegisterRequest, ok, user_public
from app.db import get_db
from app.db.models import User
from app.services import auth as auth_service
from app.services import refresh_tokens
from app.services.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a new user")
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a new user

    Every new account gets the plain user role. Returns a short-lived access
    token only; use POST /api/auth/refresh-token for a refresh token.
    """
    result = await auth_service.register_user(db, body.username, body.email, body.password)
    return ok(
        {"user": user_public(result.user), "accessToken": result.access_token},
        "User registered successfully",
    )


@router.post("/login", summary="Log in with email and password")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user and return an access token

    Accounts with 2FA enabled must also send ``twoFactorCode``: a current
    TOTP code or one of their unused backup codes.
    """
    result = await auth_service.login(db, body.email, body.password, body.two_factor_code)
    return ok(
        {"user": user_public(result.user), "accessToken": result.access_token},
        "Login successful",
    )


@router.post("/logout", summary="Log out")
async def logout(current_user: User = Depends(get_current_user)):
    # Access tokens are stateless; clients drop them.
    return ok(None, "Logout successful")


@router.get("/profile", summary="Current user profile")
async def profile(current_user: User = Depends(get_current_user)):
    return ok(user_public(current_user), "Profile retrieved successfully")


@router.post("/refresh-token", summary="Issue a refresh token")
async def issue_refresh_token(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    issued = await refresh_tokens.issue(db, current_user.id)
    return ok(
        {
            "refreshToken": issued.refresh_token,
            "expiresAt": issued.expires_at.isoformat(),
            "inactivityTime": issued.inactivity,
        },
        "Refresh token generated successfully",
    )


@router.post("/refresh", summary="Exchange a refresh token for an access token")
async def refresh_access_token(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    redeemed = await refresh_tokens.redeem(db, body.refresh_token)
    return ok({"accessToken": redeemed.access_token}, "Token refreshed successfully")
