import logging
import uuid
from datetime import timedelta
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.core.clock import utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


class TokenError(Exception):
    """Raised for any token that fails verification.

    The message is the same whatever the cause so callers cannot tell an
    expired token from a forged one.
    """

    def __init__(self) -> None:
        super().__init__("Invalid or expired token")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hashed password"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be parsed")
        return False


def sign(claims: dict[str, Any], ttl: timedelta) -> str:
    """
    Sign a set of claims as a JWT

    Args:
        claims: Payload to sign; ``iat`` and ``exp`` are added
        ttl: Lifetime of the token

    Returns:
        Encoded JWT token
    """
    issued_at = utcnow()
    payload = dict(claims)
    payload.update({"iat": issued_at, "exp": issued_at + ttl})
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token

    Args:
        token: JWT token string

    Returns:
        Decoded token payload

    Raises:
        TokenError: signature invalid, structure malformed or token expired
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.debug("Token rejected: expired")
        raise TokenError() from None
    except JWTError as e:
        logger.debug("Token rejected: %s", e)
        raise TokenError() from None


def decode_unchecked(token: str) -> Optional[dict[str, Any]]:
    """Read claims without checking the signature. Diagnostics only."""
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def create_access_token(user_id: str, email: str, role: str) -> str:
    return sign(
        {"sub": user_id, "email": email, "role": role, "type": ACCESS_TOKEN_TYPE},
        settings.access_token_ttl,
    )


def create_refresh_token(user_id: str) -> str:
    return sign(
        {"sub": user_id, "type": REFRESH_TOKEN_TYPE, "jti": uuid.uuid4().hex},
        settings.refresh_token_ttl,
    )
