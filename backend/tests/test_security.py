"""Tests for password hashing and the JWT codec."""

from datetime import timedelta

import pytest
from jose import jwt

from app.config import settings
from app.core import security
from app.core.security import TokenError


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = security.hash_password("secret123")
        assert hashed != "secret123"
        assert security.verify_password("secret123", hashed)
        assert not security.verify_password("secret124", hashed)

    def test_hashes_are_salted(self):
        assert security.hash_password("same") != security.hash_password("same")

    def test_unparseable_hash(self):
        assert security.verify_password("secret123", "not-a-bcrypt-hash") is False


class TestTokens:

    def test_access_token_claims(self):
        token = security.create_access_token("u1", "a@example.com", "pro")
        claims = security.verify(token)
        assert claims["sub"] == "u1"
        assert claims["email"] == "a@example.com"
        assert claims["role"] == "pro"
        assert claims["type"] == security.ACCESS_TOKEN_TYPE
        assert claims["exp"] - claims["iat"] == int(settings.access_token_ttl.total_seconds())

    def test_refresh_tokens_are_unique(self):
        first = security.create_refresh_token("u1")
        second = security.create_refresh_token("u1")
        assert first != second
        claims = security.verify(first)
        assert claims["type"] == security.REFRESH_TOKEN_TYPE
        assert claims["jti"]

    def test_expired(self):
        token = security.sign({"sub": "u1"}, timedelta(seconds=-10))
        with pytest.raises(TokenError) as exc:
            security.verify(token)
        assert str(exc.value) == "Invalid or expired token"

    def test_wrong_signature(self):
        forged = jwt.encode({"sub": "u1"}, "another-secret", algorithm="HS256")
        with pytest.raises(TokenError) as exc:
            security.verify(forged)
        assert str(exc.value) == "Invalid or expired token"

    def test_garbage(self):
        with pytest.raises(TokenError):
            security.verify("not.a.jwt")

    def test_decode_unchecked(self):
        forged = jwt.encode({"sub": "u1"}, "another-secret", algorithm="HS256")
        assert security.decode_unchecked(forged)["sub"] == "u1"
        assert security.decode_unchecked("garbage") is None
