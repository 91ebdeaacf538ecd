"""Tests for profile, password, stats and account deletion endpoints."""

from httpx import AsyncClient


class TestProfile:
    async def test_get_own_profile(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.get("/api/v1/users/me")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == registered_user["user_id"]
        assert data["email"] == registered_user["email"]
        assert "password_hash" not in data

    async def test_profile_is_cached(self, authed_client: AsyncClient):
        first = await authed_client.get("/api/v1/users/me")
        second = await authed_client.get("/api/v1/users/me")
        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"

    async def test_update_invalidates_profile(self, authed_client: AsyncClient):
        await authed_client.get("/api/v1/users/me")

        response = await authed_client.put("/api/v1/users/me", json={"display_name": "  Night Owl ", "phone": "555-0100"})
        assert response.status_code == 200
        assert response.json()["data"]["display_name"] == "Night Owl"

        after = await authed_client.get("/api/v1/users/me")
        assert after.headers["x-cache"] == "MISS"
        assert after.json()["data"]["display_name"] == "Night Owl"
        assert after.json()["data"]["phone"] == "555-0100"

    async def test_empty_phone_clears_it(self, authed_client: AsyncClient):
        await authed_client.put("/api/v1/users/me", json={"phone": "555-0100"})
        response = await authed_client.put("/api/v1/users/me", json={"phone": "  "})
        assert response.json()["data"]["phone"] is None

    async def test_nothing_to_update(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/users/me", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    async def test_short_display_name(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/users/me", json={"display_name": " x "})
        assert response.status_code == 422

    async def test_login_refreshes_cached_profile(self, authed_client: AsyncClient, registered_user: dict):
        first = await authed_client.get("/api/v1/users/me")
        assert (await authed_client.get("/api/v1/users/me")).headers["x-cache"] == "HIT"

        login = await authed_client.post("/api/v1/auth/login", json={
            "email": registered_user["email"], "password": registered_user["password"],
        })
        assert login.status_code == 200
        data = login.json()["data"]
        authed_client.headers["Authorization"] = f"Bearer {data['access_token']}"

        after = await authed_client.get("/api/v1/users/me")
        last_login = after.json()["data"]["last_login"]
        assert after.headers["x-cache"] == "MISS"
        assert last_login != first.json()["data"]["last_login"]
        # SQLite hands back naive UTC, so only the trailing zone marker may differ.
        assert last_login.rstrip("Z") == data["user"]["last_login"].rstrip("Z")

    async def test_profile_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401


class TestChangePassword:
    async def test_change_and_login_with_new(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.put("/api/v1/users/me/password", json={
            "current_password": registered_user["password"],
            "new_password": "BrandNewP@ss2",
        })
        assert response.status_code == 200

        old = await authed_client.post("/api/v1/auth/login", json={
            "email": registered_user["email"], "password": registered_user["password"],
        })
        new = await authed_client.post("/api/v1/auth/login", json={
            "email": registered_user["email"], "password": "BrandNewP@ss2",
        })
        assert old.status_code == 401
        assert new.status_code == 200

    async def test_wrong_current_password(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/users/me/password", json={
            "current_password": "WrongP@ss1",
            "new_password": "BrandNewP@ss2",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Current password is incorrect"

    async def test_weak_new_password(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.put("/api/v1/users/me/password", json={
            "current_password": registered_user["password"],
            "new_password": "short",
        })
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"


class TestStats:
    async def test_stats_follow_route_writes(self, authed_client: AsyncClient, route_payload: dict):
        empty = await authed_client.get("/api/v1/users/me/stats")
        assert empty.json()["data"]["total_routes"] == 0
        assert (await authed_client.get("/api/v1/users/me/stats")).headers["x-cache"] == "HIT"

        await authed_client.post("/api/v1/routes", json=route_payload)

        stats = await authed_client.get("/api/v1/users/me/stats")
        data = stats.json()["data"]
        assert stats.headers["x-cache"] == "MISS"
        assert data["total_routes"] == 1
        assert data["active_routes"] == 1
        assert data["total_distance_km"] == 222.39
        assert data["routes_by_day"]["Monday"] == 1


class TestDeleteAccount:
    async def test_delete_account(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.request(
            "DELETE", "/api/v1/users/me", json={"password": registered_user["password"]}
        )
        assert response.status_code == 200

        # Session revoked: the token stops working at once.
        after = await authed_client.get("/api/v1/users/me")
        assert after.status_code == 401

        login = await authed_client.post("/api/v1/auth/login", json={
            "email": registered_user["email"], "password": registered_user["password"],
        })
        assert login.status_code == 401

    async def test_email_reusable_after_delete(self, authed_client: AsyncClient, registered_user: dict):
        await authed_client.request("DELETE", "/api/v1/users/me", json={"password": registered_user["password"]})
        response = await authed_client.post("/api/v1/auth/register", json={
            "email": registered_user["email"],
            "password": "AnotherP@ss3",
            "display_name": "Second Life",
        })
        assert response.status_code == 201
        assert response.json()["data"]["user"]["id"] != registered_user["user_id"]

    async def test_wrong_password_keeps_account(self, authed_client: AsyncClient):
        response = await authed_client.request("DELETE", "/api/v1/users/me", json={"password": "WrongP@ss1"})
        assert response.status_code == 400
        assert (await authed_client.get("/api/v1/users/me")).status_code == 200

    async def test_delete_drops_cached_responses(self, authed_client: AsyncClient, registered_user: dict, fake_redis):
        await authed_client.get("/api/v1/users/me")
        await authed_client.get("/api/v1/routes")
        uid = registered_user["user_id"]
        assert [k async for k in fake_redis.scan_iter(match=f"cache:{uid}:*")]

        await authed_client.request("DELETE", "/api/v1/users/me", json={"password": registered_user["password"]})

        assert [k async for k in fake_redis.scan_iter(match=f"cache:{uid}:*")] == []
