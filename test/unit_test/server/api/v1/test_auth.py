import pytest
from httpx import AsyncClient
from starlette.requests import Request

from dumpster_directory.core.database.entities import User
from dumpster_directory.server.services.auth import (
    authenticate,
    create_access_token,
    decode_token,
    hash_password,
    token_from_request,
    verify_password,
)
from test.unit_test.fixtures import TEST_PASSWORD, login_headers, make_user

pytestmark = pytest.mark.asyncio

AUTH = "/api/v1/auth"


def _request(headers: dict) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


class TestAuthService:
    async def test_password_hashing(self):
        password_hash = hash_password("s3cret-pass")
        assert password_hash != "s3cret-pass"
        assert verify_password("s3cret-pass", password_hash)
        assert not verify_password("wrong-pass", password_hash)
        assert not verify_password("s3cret-pass", None)
        assert not verify_password("s3cret-pass", "not-a-hash")

    async def test_token_round_trip(self, auth_config):
        user = User(id="user-1", email="a@b.test", password_hash="x", role="business_owner", business_id="biz-1")
        token, expires_at = create_access_token(user, auth_config)

        claims = decode_token(token, auth_config)
        assert claims["sub"] == "user-1"
        assert claims["role"] == "business_owner"
        assert claims["business_id"] == "biz-1"
        assert decode_token(token + "x", auth_config) is None

    async def test_token_from_cookie_or_bearer(self, auth_config):
        assert token_from_request(_request({"Cookie": "auth-token=from-cookie"}), auth_config) == "from-cookie"
        assert token_from_request(_request({"Authorization": "Bearer from-header"}), auth_config) == "from-header"
        assert token_from_request(_request({"Authorization": "Basic abc"}), auth_config) is None
        assert token_from_request(_request({}), auth_config) is None

    async def test_authenticate_requires_stored_session(self, repos, auth_config):
        user = await make_user(repos)
        unsaved_token, _ = create_access_token(user, auth_config)
        assert await authenticate(repos, unsaved_token, auth_config) is None

        headers = await login_headers(repos, user, auth_config)
        token = headers["Authorization"].split(" ", 1)[1]
        assert (await authenticate(repos, token, auth_config)).id == user.id
        assert await authenticate(repos, None, auth_config) is None


class TestSignupAndLogin:
    async def test_signup_creates_account(self, client: AsyncClient, repos):
        response = await client.post(
            f"{AUTH}/signup",
            json={"email": "New@Example.com", "password": "long-enough", "name": "New User", "role": "business_owner"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["role"] == "business_owner"
        assert "password_hash" not in data["user"]
        assert data["token"]
        assert "auth-token" in response.headers["set-cookie"]
        assert await repos.users.get_by_email("new@example.com") is not None

    async def test_signup_duplicate_email(self, client: AsyncClient, repos):
        await make_user(repos, "taken@example.com")
        response = await client.post(f"{AUTH}/signup", json={"email": "TAKEN@example.com", "password": "long-enough"})
        assert response.status_code == 409

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "not-an-email", "password": "long-enough"},
            {"email": "a@b.test", "password": "short"},
            {"email": "a@b.test", "password": "long-enough", "role": "admin"},
        ],
    )
    async def test_signup_validation(self, client: AsyncClient, payload):
        response = await client.post(f"{AUTH}/signup", json=payload)
        assert response.status_code == 422

    async def test_login_and_me(self, client: AsyncClient, repos):
        await make_user(repos, "owner@example.com", name="Owner")

        response = await client.post(f"{AUTH}/login", json={"email": "OWNER@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 200
        token = response.json()["token"]

        me = await client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["name"] == "Owner"

    async def test_login_wrong_password(self, client: AsyncClient, repos):
        await make_user(repos)
        response = await client.post(f"{AUTH}/login", json={"email": "owner@example.com", "password": "nope-nope"})
        assert response.status_code == 401

    async def test_me_requires_authentication(self, client: AsyncClient):
        response = await client.get(f"{AUTH}/me")
        assert response.status_code == 401

    async def test_logout_revokes_session(self, client: AsyncClient, repos, auth_config):
        user = await make_user(repos)
        headers = await login_headers(repos, user, auth_config)

        response = await client.post(f"{AUTH}/logout", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        client.cookies.clear()
        assert (await client.get(f"{AUTH}/me", headers=headers)).status_code == 401

    async def test_logout_without_session(self, client: AsyncClient):
        response = await client.post(f"{AUTH}/logout")
        assert response.status_code == 200


class TestAccount:
    async def test_change_password(self, client: AsyncClient, repos, auth_config):
        user = await make_user(repos)
        headers = await login_headers(repos, user, auth_config)

        wrong = await client.post(
            f"{AUTH}/change-password",
            json={"current_password": "not-it-at-all", "new_password": "brand-new-pass"},
            headers=headers,
        )
        assert wrong.status_code == 400

        response = await client.post(
            f"{AUTH}/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "brand-new-pass"},
            headers=headers,
        )
        assert response.status_code == 200
        login = await client.post(f"{AUTH}/login", json={"email": user.email, "password": "brand-new-pass"})
        assert login.status_code == 200

    async def test_update_profile(self, client: AsyncClient, repos, auth_config):
        user = await make_user(repos)
        headers = await login_headers(repos, user, auth_config)

        response = await client.patch(
            f"{AUTH}/profile", json={"phone": "555-0100", "company_name": "Acme LLC"}, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "555-0100"
        assert response.json()["company_name"] == "Acme LLC"
        assert response.json()["name"] == "Test User"
