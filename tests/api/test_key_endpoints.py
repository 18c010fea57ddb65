"""
API tests for access key endpoints.
"""

import pytest

from koban.core.security import generate_key_id


@pytest.mark.api
class TestCreateKeyEndpoint:

    async def test_create(self, client):
        response = await client.post("/api/keys/create", json={"user_id": "alice", "hours": 1})

        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == "alice"
        assert data["valid_for_hours"] == 1
        assert len(data["key_id"]) == 36

    async def test_conflict_carries_existing_key(self, client, clock):
        first = (await client.post("/api/keys/create", json={"user_id": "alice", "hours": 1})).json()
        clock.advance(minutes=15)

        response = await client.post("/api/keys/create", json={"user_id": "alice"})

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == 409
        assert body["detail"]["data"]["key_id"] == first["key_id"]
        assert body["detail"]["data"]["time_remaining"]["formatted"] == "0h 45m"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"user_id": ""},
            {"user_id": "<>"},
            {"user_id": "alice", "hours": 0},
            {"user_id": "alice", "hours": 169},
            {"user_id": "alice", "hours": "many"},
            {"user_id": "alice", "hours": 2.5},
        ],
    )
    async def test_invalid_input(self, client, payload):
        response = await client.post("/api/keys/create", json=payload)

        assert response.status_code == 400
        assert response.json()["code"] == 400

    async def test_malformed_body(self, client):
        response = await client.post(
            "/api/keys/create",
            content="not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    async def test_records_client_ip(self, client, key_service, db_session, trusted_proxy):
        response = await client.post(
            "/api/keys/create",
            json={"user_id": "alice"},
            headers={"X-Forwarded-For": "10.0.0.1, 8.8.8.8"},
        )

        key = await key_service.get_key(db_session, response.json()["key_id"])
        assert key.ip_address == "8.8.8.8"

    async def test_untrusted_forwarded_for_is_ignored(self, client, key_service, db_session):
        response = await client.post(
            "/api/keys/create",
            json={"user_id": "alice"},
            headers={"X-Forwarded-For": "8.8.8.8"},
        )

        key = await key_service.get_key(db_session, response.json()["key_id"])
        assert key.ip_address == "127.0.0.1"


@pytest.mark.api
class TestValidateAndInfoEndpoints:

    async def test_validate_counts_usage(self, client):
        created = (await client.post("/api/keys/create", json={"user_id": "bob"})).json()

        await client.get(f"/api/keys/validate/{created['key_id']}")
        response = await client.get(f"/api/keys/validate/{created['key_id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["code"] == 200
        assert data["usage_count"] == 2
        assert data["status"] == "active"

    async def test_expired_key_reports_410_in_body(self, client, clock):
        created = (await client.post("/api/keys/create", json={"user_id": "bob", "hours": 24})).json()
        clock.advance(hours=25)

        response = await client.get(f"/api/keys/validate/{created['key_id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["code"] == 410
        assert data["usage_count"] == 0
        assert data["time_remaining"]["formatted"] == "Expired"

    async def test_unknown_key(self, client):
        response = await client.get(f"/api/keys/validate/{generate_key_id()}")

        assert response.status_code == 404
        assert response.json()["code"] == 404

    async def test_malformed_key_id(self, client):
        assert (await client.get("/api/keys/validate/not-a-uuid")).status_code == 400
        assert (await client.get("/api/keys/info/not-a-uuid")).status_code == 400
        assert (await client.delete("/api/keys/not-a-uuid")).status_code == 400

    async def test_info_leaves_usage_alone(self, client):
        created = (await client.post("/api/keys/create", json={"user_id": "carol"})).json()

        await client.get(f"/api/keys/info/{created['key_id']}")
        response = await client.get(f"/api/keys/info/{created['key_id']}")

        assert response.status_code == 200
        assert response.json()["usage_count"] == 0

    async def test_info_unknown_key(self, client):
        assert (await client.get(f"/api/keys/info/{generate_key_id()}")).status_code == 404


@pytest.mark.api
class TestListAndDeleteEndpoints:

    async def test_list_user_keys(self, client, clock):
        first = (await client.post("/api/keys/create", json={"user_id": "dave", "hours": 1})).json()
        clock.advance(hours=2)
        second = (await client.post("/api/keys/create", json={"user_id": "dave", "hours": 1})).json()

        response = await client.get("/api/keys/user/dave")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "dave"
        assert data["count"] == 2
        assert [k["key_id"] for k in data["keys"]] == [second["key_id"], first["key_id"]]

    async def test_list_unknown_user(self, client):
        response = await client.get("/api/keys/user/nobody")

        assert response.status_code == 200
        assert response.json() == {"user_id": "nobody", "count": 0, "keys": []}

    async def test_delete_twice(self, client):
        created = (await client.post("/api/keys/create", json={"user_id": "erin"})).json()

        first = await client.delete(f"/api/keys/{created['key_id']}")
        second = await client.delete(f"/api/keys/{created['key_id']}")

        assert first.status_code == 200
        assert first.json()["key_id"] == created["key_id"]
        assert second.status_code == 404
