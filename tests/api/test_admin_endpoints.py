"""
API tests for admin endpoints.
"""

import pytest

from koban.core.security import generate_key_id
from tests.factories import ROOT_PASSWORD, ROOT_USERNAME


@pytest.mark.api
class TestLoginEndpoints:

    async def test_login_sets_cookie_and_returns_token_once(self, client):
        response = await client.post(
            "/admin/auth/login",
            json={"username": ROOT_USERNAME, "password": ROOT_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["session_token"]) == 96
        assert data["admin"]["username"] == ROOT_USERNAME
        assert data["admin"]["is_permanent"] is True
        assert "password_hash" not in data["admin"]

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("admin_session=")
        assert "HttpOnly" in cookie

    async def test_missing_fields(self, client):
        response = await client.post("/admin/auth/login", json={"username": ROOT_USERNAME})

        assert response.status_code == 400

    async def test_bad_credentials(self, client):
        response = await client.post(
            "/admin/auth/login",
            json={"username": ROOT_USERNAME, "password": "WrongPass1"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    async def test_rate_limited(self, client, test_settings):
        for _ in range(test_settings.admin_login_max_attempts):
            await client.post("/admin/auth/login", json={"username": ROOT_USERNAME, "password": "WrongPass1"})

        response = await client.post(
            "/admin/auth/login",
            json={"username": ROOT_USERNAME, "password": ROOT_PASSWORD},
        )

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0

    async def test_rotating_forwarded_for_does_not_escape_limit(self, client, test_settings):
        codes = []
        for i in range(test_settings.admin_login_max_attempts + 2):
            response = await client.post(
                "/admin/auth/login",
                json={"username": ROOT_USERNAME, "password": "WrongPass1"},
                headers={"X-Forwarded-For": f"8.8.8.{i}"},
            )
            codes.append(response.status_code)

        assert codes[: test_settings.admin_login_max_attempts] == [401] * test_settings.admin_login_max_attempts
        assert codes[test_settings.admin_login_max_attempts :] == [429, 429]

    async def test_logout_always_succeeds(self, client, admin_headers):
        assert (await client.post("/admin/auth/logout", headers=admin_headers)).status_code == 200
        assert (await client.post("/admin/auth/logout", headers=admin_headers)).status_code == 200
        assert (await client.get("/admin/api/session", headers=admin_headers)).status_code == 401


@pytest.mark.api
class TestSessionEndpoints:

    async def test_requires_session(self, client):
        for path in ("/admin/api/session", "/admin/api/sessions", "/admin/api/stats", "/admin/api/admins"):
            response = await client.get(path)
            assert response.status_code == 401

        response = await client.get("/admin/api/session", headers={"X-Admin-Session": "deadbeef"})
        assert response.status_code == 401

    async def test_session_info(self, client, admin_headers):
        response = await client.get("/admin/api/session", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["admin"]["username"] == ROOT_USERNAME
        assert data["session"]["username"] == ROOT_USERNAME
        assert "session_token_hash" not in data["session"]

    async def test_expired_session(self, client, admin_headers, clock, test_settings):
        clock.advance(hours=test_settings.admin_session_ttl_hours, seconds=1)

        assert (await client.get("/admin/api/session", headers=admin_headers)).status_code == 401

    async def test_list_and_clear(self, client, admin_headers):
        listed = await client.get("/admin/api/sessions", headers=admin_headers)
        assert listed.json()["count"] == 1

        cleared = await client.delete("/admin/api/sessions", headers=admin_headers)
        assert cleared.status_code == 200
        assert cleared.json()["cleared"] == 1

        assert (await client.get("/admin/api/sessions", headers=admin_headers)).status_code == 401


@pytest.mark.api
class TestAdminAccountEndpoints:

    async def test_create_and_get(self, client, admin_headers):
        response = await client.post(
            "/admin/api/admins",
            json={"username": "operator", "password": "Passw0rdX"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        created = response.json()
        assert "password_hash" not in created
        assert created["created_by_id"] is not None

        fetched = await client.get(f"/admin/api/admins/{created['id']}", headers=admin_headers)
        assert fetched.json()["username"] == "operator"

        listed = await client.get("/admin/api/admins", headers=admin_headers)
        assert listed.json()["count"] == 2

    async def test_validation_and_conflict(self, client, admin_headers):
        weak = await client.post(
            "/admin/api/admins",
            json={"username": "operator", "password": "weak"},
            headers=admin_headers,
        )
        assert weak.status_code == 400

        duplicate = await client.post(
            "/admin/api/admins",
            json={"username": ROOT_USERNAME.upper(), "password": "Passw0rdX"},
            headers=admin_headers,
        )
        assert duplicate.status_code == 409

    async def test_unknown_admin(self, client, admin_headers):
        assert (await client.get("/admin/api/admins/missing", headers=admin_headers)).status_code == 404

    async def test_patch_only_touches_sent_fields(self, client, admin_headers):
        created = (
            await client.post(
                "/admin/api/admins",
                json={"username": "operator", "password": "Passw0rdX", "notes": "keep me"},
                headers=admin_headers,
            )
        ).json()

        response = await client.patch(
            f"/admin/api/admins/{created['id']}",
            json={"expires_at": "2030-01-01T00:00:00"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["notes"] == "keep me"
        assert response.json()["expires_at"] == "2030-01-01T00:00:00"

    async def test_disable_then_delete(self, client, admin_headers):
        created = (
            await client.post(
                "/admin/api/admins",
                json={"username": "operator", "password": "Passw0rdX"},
                headers=admin_headers,
            )
        ).json()

        disabled = await client.delete(
            f"/admin/api/admins/{created['id']}",
            params={"reason": "rotation"},
            headers=admin_headers,
        )
        assert disabled.status_code == 200
        assert disabled.json()["status"] == "disabled"
        assert disabled.json()["notes"] == "rotation"

        deleted = await client.delete(
            f"/admin/api/admins/{created['id']}",
            params={"hard": "true"},
            headers=admin_headers,
        )
        assert deleted.status_code == 200
        assert (await client.get(f"/admin/api/admins/{created['id']}", headers=admin_headers)).status_code == 404

    async def test_permanent_admin_guard(self, client, admin_headers):
        root_id = (await client.get("/admin/api/session", headers=admin_headers)).json()["admin"]["id"]

        demote = await client.patch(
            f"/admin/api/admins/{root_id}",
            json={"is_permanent": False},
            headers=admin_headers,
        )
        delete = await client.delete(f"/admin/api/admins/{root_id}", params={"hard": "true"}, headers=admin_headers)

        assert demote.status_code == 409
        assert delete.status_code == 409

        root = (await client.get(f"/admin/api/admins/{root_id}", headers=admin_headers)).json()
        assert root["is_permanent"] is True
        assert root["status"] == "active"


@pytest.mark.api
class TestAdminKeyEndpoints:

    async def test_issue_and_revoke(self, client, admin_headers):
        admin_id = (await client.get("/admin/api/session", headers=admin_headers)).json()["admin"]["id"]

        issued = await client.post("/admin/api/keys", json={"user_id": "alice", "hours": 2}, headers=admin_headers)
        assert issued.status_code == 201
        key_id = issued.json()["key_id"]

        info = (await client.get(f"/api/keys/info/{key_id}")).json()
        assert info["created_by_id"] == admin_id

        conflict = await client.post("/admin/api/keys", json={"user_id": "alice"}, headers=admin_headers)
        assert conflict.status_code == 409

        revoked = await client.post(f"/admin/api/keys/{key_id}/revoke", headers=admin_headers)
        assert revoked.status_code == 200
        assert revoked.json()["status"] == "revoked"

        validated = (await client.get(f"/api/keys/validate/{key_id}")).json()
        assert validated["code"] == 410

    async def test_revoke_unknown_key(self, client, admin_headers):
        response = await client.post(f"/admin/api/keys/{generate_key_id()}/revoke", headers=admin_headers)

        assert response.status_code == 404

    async def test_stats(self, client, admin_headers):
        await client.post("/api/keys/create", json={"user_id": "alice"})
        await client.post("/api/keys/create", json={"user_id": "bob"})

        response = await client.get("/admin/api/stats", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["total"] == 2
        assert data["stats"]["active"] == 2
        assert data["environment"] == "development"
        assert data["uptime_seconds"] >= 0
