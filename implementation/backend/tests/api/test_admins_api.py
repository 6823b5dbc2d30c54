"""REST tests for the /admins router and the console endpoint."""

from __future__ import annotations

from tests.factories import insert_admin


class TestBootstrap:
    async def test_first_admin_needs_no_credentials(self, client):
        response = await client.post("/admins", json={"username": "root", "password": "toor123"})

        assert response.status_code == 201
        assert response.json()["admin"]["username"] == "root"

    async def test_later_admins_need_admin_credentials(self, client, fresh_db):
        admin = await insert_admin(fresh_db)

        anonymous = await client.post("/admins", json={"username": "ops", "password": "x1"})
        assert anonymous.status_code == 401

        response = await client.post(
            "/admins", json={"username": "ops", "password": "x1"}, headers=admin["headers"]
        )
        assert response.status_code == 201

    async def test_duplicate_username(self, client, fresh_db):
        admin = await insert_admin(fresh_db)
        response = await client.post(
            "/admins", json={"username": "root", "password": "x"}, headers=admin["headers"]
        )
        assert response.status_code == 409


class TestSessions:
    async def test_sign_in_authenticate_sign_out(self, client, fresh_db):
        admin = await insert_admin(fresh_db)

        response = await client.put(
            "/admins", json={"username": "root", "password": admin["password"]}
        )
        authentication = response.json()["authentication"]
        assert authentication["_id"] == admin["id"]

        response = await client.post("/admins/authenticate", json=authentication)
        assert response.json() == {"message": "Authenticated successfully"}

        response = await client.request(
            "DELETE", "/admins", json={"username": "root", "token": authentication["token"]}
        )
        assert response.json() == {"message": "Admin signed out successfully"}

        response = await client.post("/admins/authenticate", json=authentication)
        assert response.status_code == 401

    async def test_wrong_password(self, client, fresh_db):
        await insert_admin(fresh_db)
        response = await client.put("/admins", json={"username": "root", "password": "nope"})
        assert response.status_code == 401

    async def test_list_and_get_require_admin(self, client, fresh_db, alice):
        admin = await insert_admin(fresh_db)

        assert (await client.get("/admins")).status_code == 401
        assert (await client.get("/admins", headers=alice["headers"])).status_code == 401

        listed = (await client.get("/admins", headers=admin["headers"])).json()
        assert [a["username"] for a in listed] == ["root"]
        assert "password_hash" not in listed[0]

        response = await client.get(f"/admins/{admin['id']}", headers=admin["headers"])
        assert response.json()["_id"] == admin["id"]


class TestCommand:
    async def test_runs_console_commands(self, client, fresh_db, alice):
        admin = await insert_admin(fresh_db)

        response = await client.post(
            "/admins/command", json={"content": "procrast users"}, headers=admin["headers"]
        )

        assert response.status_code == 200
        assert [user["_id"] for user in response.json()["output"]] == [alice["id"]]

    async def test_unknown_command(self, client, fresh_db):
        admin = await insert_admin(fresh_db)

        response = await client.post(
            "/admins/command", json={"content": "procrast nope"}, headers=admin["headers"]
        )

        assert response.status_code == 404
        assert response.json() == {"output": "Command not found", "error": True}

    async def test_requires_admin(self, client):
        response = await client.post("/admins/command", json={"content": "procrast users"})
        assert response.status_code == 401
