"""Repositories over the ORM models."""

from .tokens import EntitlementTokenRepository
from .users import RoleTokenState, UserRepository

__all__ = ["EntitlementTokenRepository", "RoleTokenState", "UserRepository"]
