"""Tests for user management endpoints."""

import pytest
from httpx import AsyncClient

from tests.conftest import DEFAULT_PASSWORD, auth_header, login, make_admin, register


@pytest.mark.asyncio
class TestListAndGet:

    async def test_list_admin_only(self, client: AsyncClient, db_session):
        _, admin_token = await make_admin(client, db_session)
        user = await register(client)

        resp = await client.get("/api/users", headers=auth_header(admin_token))
        assert resp.status_code == 200
        listed = resp.json()["data"]
        assert {u["username"] for u in listed} == {"root", "alice"}
        assert all("password_hash" not in u and "two_factor_secret" not in u for u in listed)

        resp = await client.get("/api/users", headers=auth_header(user["accessToken"]))
        assert resp.status_code == 403

    async def test_get_self(self, client: AsyncClient):
        user = await register(client)
        resp = await client.get(f"/api/users/{user['user']['id']}", headers=auth_header(user["accessToken"]))
        assert resp.status_code == 200
        assert resp.json()["data"]["email"] == "alice@example.com"

    async def test_get_other_forbidden(self, client: AsyncClient):
        alice = await register(client)
        bob = await register(client, "bob", "bob@example.com")
        resp = await client.get(f"/api/users/{bob['user']['id']}", headers=auth_header(alice["accessToken"]))
        assert resp.status_code == 403

    async def test_admin_gets_any(self, client: AsyncClient, db_session):
        _, admin_token = await make_admin(client, db_session)
        bob = await register(client, "bob", "bob@example.com")
        resp = await client.get(f"/api/users/{bob['user']['id']}", headers=auth_header(admin_token))
        assert resp.status_code == 200

        resp = await client.get("/api/users/missing", headers=auth_header(admin_token))
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestProfileUpdate:

    async def test_update_own_profile(self, client: AsyncClient):
        user = await register(client)
        resp = await client.put(
            "/api/users/profile", json={"username": "alice2"}, headers=auth_header(user["accessToken"])
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["username"] == "alice2"

    async def test_username_taken(self, client: AsyncClient):
        user = await register(client)
        await register(client, "bob", "bob@example.com")
        resp = await client.put(
            "/api/users/profile", json={"username": "bob"}, headers=auth_header(user["accessToken"])
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Username already taken"

    async def test_email_taken(self, client: AsyncClient):
        user = await register(client)
        await register(client, "bob", "bob@example.com")
        resp = await client.put(
            "/api/users/profile", json={"email": "bob@example.com"}, headers=auth_header(user["accessToken"])
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Email already in use"


@pytest.mark.asyncio
class TestAdminUpdate:

    async def test_promote_to_admin(self, client: AsyncClient, db_session):
        _, admin_token = await make_admin(client, db_session)
        user = await register(client)
        resp = await client.put(
            f"/api/users/{user['user']['id']}", json={"role": "admin"}, headers=auth_header(admin_token)
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["role"] == "admin"

    async def test_non_admin_cannot_update(self, client: AsyncClient):
        alice = await register(client)
        resp = await client.put(
            f"/api/users/{alice['user']['id']}", json={"role": "admin"}, headers=auth_header(alice["accessToken"])
        )
        assert resp.status_code == 403

    async def test_unknown_role(self, client: AsyncClient, db_session):
        _, admin_token = await make_admin(client, db_session)
        user = await register(client)
        resp = await client.put(
            f"/api/users/{user['user']['id']}", json={"role": "superuser"}, headers=auth_header(admin_token)
        )
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestDelete:

    async def test_delete_user(self, client: AsyncClient, db_session):
        _, admin_token = await make_admin(client, db_session)
        user = await register(client)
        resp = await client.post("/api/auth/refresh-token", headers=auth_header(user["accessToken"]))
        refresh = resp.json()["data"]["refreshToken"]

        resp = await client.delete(f"/api/users/{user['user']['id']}", headers=auth_header(admin_token))
        assert resp.status_code == 200

        assert (await login(client)).status_code == 401
        resp = await client.post("/api/auth/refresh", json={"refreshToken": refresh})
        assert resp.status_code == 403

    async def test_cannot_delete_self(self, client: AsyncClient, db_session):
        admin, admin_token = await make_admin(client, db_session)
        resp = await client.delete(f"/api/users/{admin['id']}", headers=auth_header(admin_token))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Cannot delete your own account"

    async def test_delete_missing(self, client: AsyncClient, db_session):
        _, admin_token = await make_admin(client, db_session)
        resp = await client.delete("/api/users/missing", headers=auth_header(admin_token))
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestChangePassword:

    async def test_change_password(self, client: AsyncClient):
        user = await register(client)
        resp = await client.put(
            f"/api/users/{user['user']['id']}/password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "brand-new-pw"},
            headers=auth_header(user["accessToken"]),
        )
        assert resp.status_code == 200
        assert (await login(client)).status_code == 401
        assert (await login(client, password="brand-new-pw")).status_code == 200

    async def test_wrong_current_password(self, client: AsyncClient):
        user = await register(client)
        resp = await client.put(
            f"/api/users/{user['user']['id']}/password",
            json={"currentPassword": "nope-nope", "newPassword": "brand-new-pw"},
            headers=auth_header(user["accessToken"]),
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Current password is incorrect"

    async def test_new_password_too_short(self, client: AsyncClient):
        user = await register(client)
        resp = await client.put(
            f"/api/users/{user['user']['id']}/password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "123"},
            headers=auth_header(user["accessToken"]),
        )
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "newPassword"

    async def test_other_users_password(self, client: AsyncClient):
        alice = await register(client)
        bob = await register(client, "bob", "bob@example.com")
        resp = await client.put(
            f"/api/users/{bob['user']['id']}/password",
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "brand-new-pw"},
            headers=auth_header(alice["accessToken"]),
        )
        assert resp.status_code == 403
