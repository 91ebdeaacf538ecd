"""API tests for /api/v1/routes, with emphasis on cache consistency."""

import fakeredis
import pytest
from httpx import AsyncClient

from routeplanner.cache.response_cache import ResponseCache
from routeplanner.dependencies import get_response_cache


async def create(client: AsyncClient, payload: dict, **overrides) -> dict:
    response = await client.post("/api/v1/routes", json={**payload, **overrides})
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateRoute:
    async def test_create(self, authed_client: AsyncClient, route_payload: dict):
        response = await authed_client.post("/api/v1/routes", json=route_payload)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["name"] == "Morning Loop"
        assert data["start_time"] == "08:30:00"
        assert data["total_distance"] == 222.39
        assert [w["waypoint_type"] for w in data["waypoints"]] == ["start", "stop", "end"]

    async def test_one_waypoint_rejected(self, authed_client: AsyncClient, route_payload: dict):
        route_payload["waypoints"] = route_payload["waypoints"][:1]
        response = await authed_client.post("/api/v1/routes", json=route_payload)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_route"

    async def test_bad_day_rejected(self, authed_client: AsyncClient, route_payload: dict):
        response = await authed_client.post("/api/v1/routes", json={**route_payload, "day_of_week": 8})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_day"

    async def test_blank_name_rejected(self, authed_client: AsyncClient, route_payload: dict):
        response = await authed_client.post("/api/v1/routes", json={**route_payload, "name": "   "})
        assert response.status_code == 422

    async def test_name_is_stripped(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload, name="  Morning Loop  ")
        assert route["name"] == "Morning Loop"

    async def test_requires_auth(self, client: AsyncClient, route_payload: dict):
        response = await client.post("/api/v1/routes", json=route_payload)
        assert response.status_code == 401

    async def test_distance_override_flag(self, authed_client: AsyncClient, route_payload: dict):
        ignored = await create(authed_client, route_payload, total_distance=3.5)
        trusted = await create(authed_client, route_payload, total_distance=3.5, distance_override=True)
        assert ignored["total_distance"] == 222.39
        assert trusted["total_distance"] == 3.5


class TestReadCaching:
    async def test_detail_miss_then_hit(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)

        first = await authed_client.get(f"/api/v1/routes/{route['id']}")
        second = await authed_client.get(f"/api/v1/routes/{route['id']}")

        assert first.status_code == second.status_code == 200
        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert first.json() == second.json()

    async def test_list_keyed_by_params(self, authed_client: AsyncClient, route_payload: dict):
        await create(authed_client, route_payload)

        a = await authed_client.get("/api/v1/routes", params={"page": 1, "limit": 5})
        b = await authed_client.get("/api/v1/routes", params={"limit": 5, "page": 1})
        c = await authed_client.get("/api/v1/routes", params={"page": 1, "limit": 6})

        assert a.headers["x-cache"] == "MISS"
        assert b.headers["x-cache"] == "HIT"
        assert c.headers["x-cache"] == "MISS"

    async def test_search_never_cached(self, authed_client: AsyncClient, route_payload: dict, fake_redis):
        await create(authed_client, route_payload)

        for _ in range(2):
            response = await authed_client.get("/api/v1/routes", params={"search": "morning"})
            assert response.headers["x-cache"] == "MISS"
            assert response.json()["data"]["pagination"]["total_items"] == 1

        assert [k async for k in fake_redis.scan_iter(match="cache:*search*")] == []

    async def test_errors_not_cached(self, authed_client: AsyncClient, fake_redis):
        response = await authed_client.get("/api/v1/routes/does-not-exist")
        assert response.status_code == 404
        assert response.json()["code"] == "route_not_found"
        assert [k async for k in fake_redis.scan_iter(match="cache:*")] == []

    async def test_pagination_block(self, authed_client: AsyncClient, route_payload: dict):
        for i in range(3):
            await create(authed_client, route_payload, name=f"Route {i}")

        response = await authed_client.get("/api/v1/routes", params={"page": 2, "limit": 2})
        data = response.json()["data"]

        assert len(data["routes"]) == 1
        assert data["pagination"] == {
            "current_page": 2,
            "total_pages": 2,
            "total_items": 3,
            "items_per_page": 2,
            "has_next": False,
            "has_prev": True,
        }

    async def test_by_day(self, authed_client: AsyncClient, route_payload: dict):
        await create(authed_client, route_payload)
        response = await authed_client.get("/api/v1/routes/day/1")
        data = response.json()["data"]
        assert data["day_of_week"] == 1
        assert data["day_name"] == "Monday"
        assert len(data["routes"]) == 1

    async def test_by_day_invalid(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/routes/day/7")
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_day"


class TestWritesInvalidate:
    async def test_update_then_read_sees_new_state(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        url = f"/api/v1/routes/{route['id']}"
        await authed_client.get(url)
        await authed_client.get("/api/v1/routes")
        assert (await authed_client.get(url)).headers["x-cache"] == "HIT"

        response = await authed_client.put(url, json={"name": "Evening Loop"})
        assert response.status_code == 200

        detail = await authed_client.get(url)
        listing = await authed_client.get("/api/v1/routes")
        assert detail.headers["x-cache"] == "MISS"
        assert detail.json()["data"]["name"] == "Evening Loop"
        assert listing.headers["x-cache"] == "MISS"
        assert listing.json()["data"]["routes"][0]["name"] == "Evening Loop"

    async def test_update_without_waypoints_keeps_distance(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        response = await authed_client.put(f"/api/v1/routes/{route['id']}", json={"name": "Renamed"})
        data = response.json()["data"]
        assert data["total_distance"] == 222.39
        assert len(data["waypoints"]) == 3

    async def test_update_replaces_waypoints(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        response = await authed_client.put(f"/api/v1/routes/{route['id']}", json={
            "waypoints": [
                {"name": "X", "latitude": 0, "longitude": 0},
                {"name": "Y", "latitude": 0, "longitude": 1},
            ],
        })
        data = response.json()["data"]
        assert [w["name"] for w in data["waypoints"]] == ["X", "Y"]
        assert data["total_distance"] == pytest.approx(111.19, abs=0.01)

    async def test_delete_then_read_not_found(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        url = f"/api/v1/routes/{route['id']}"
        await authed_client.get(url)

        assert (await authed_client.delete(url)).status_code == 200

        after = await authed_client.get(url)
        assert after.status_code == 404
        again = await authed_client.delete(url)
        assert again.status_code == 404

    async def test_duplicate_shows_up_in_cached_list(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        await authed_client.get("/api/v1/routes/day/1")

        response = await authed_client.post(f"/api/v1/routes/{route['id']}/duplicate")
        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Morning Loop (Copy)"

        listing = await authed_client.get("/api/v1/routes/day/1")
        assert listing.headers["x-cache"] == "MISS"
        assert len(listing.json()["data"]["routes"]) == 2

    async def test_blank_names_rejected_on_update_and_duplicate(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        url = f"/api/v1/routes/{route['id']}"

        assert (await authed_client.put(url, json={"name": " "})).status_code == 422
        assert (await authed_client.post(f"{url}/duplicate", json={"new_name": "  "})).status_code == 422
        assert (await authed_client.get(url)).json()["data"]["name"] == "Morning Loop"

    async def test_duplicate_with_overrides(self, authed_client: AsyncClient, route_payload: dict):
        route = await create(authed_client, route_payload)
        response = await authed_client.post(
            f"/api/v1/routes/{route['id']}/duplicate", json={"new_name": "Friday Loop", "new_day_of_week": 5}
        )
        data = response.json()["data"]
        assert data["name"] == "Friday Loop"
        assert data["day_of_week"] == 5


class TestOwnership:
    async def test_other_users_route_is_not_found(self, client: AsyncClient, register, route_payload: dict):
        alice = await register(email="alice@example.com")
        bob = await register(email="bob@example.com")
        response = await client.post("/api/v1/routes", json=route_payload, headers=alice["headers"])
        url = f"/api/v1/routes/{response.json()['data']['id']}"

        for method in ("GET", "DELETE"):
            r = await client.request(method, url, headers=bob["headers"])
            assert r.status_code == 404
            assert r.json()["code"] == "route_not_found"

        r = await client.put(url, json={"name": "Mine now"}, headers=bob["headers"])
        assert r.status_code == 404

    async def test_caches_are_per_user(self, client: AsyncClient, register, route_payload: dict):
        alice = await register(email="alice@example.com")
        bob = await register(email="bob@example.com")
        await client.post("/api/v1/routes", json=route_payload, headers=alice["headers"])

        a = await client.get("/api/v1/routes", headers=alice["headers"])
        b = await client.get("/api/v1/routes", headers=bob["headers"])

        assert a.json()["data"]["pagination"]["total_items"] == 1
        assert b.headers["x-cache"] == "MISS"
        assert b.json()["data"]["pagination"]["total_items"] == 0


class TestCacheOutage:
    @pytest.fixture
    def down_cache(self, app) -> ResponseCache:
        server = fakeredis.FakeServer()
        server.connected = False
        cache = ResponseCache(fakeredis.FakeAsyncRedis(server=server, decode_responses=True), timeout=0.2)
        app.dependency_overrides[get_response_cache] = lambda: cache
        yield cache
        app.dependency_overrides.clear()

    async def test_reads_and_writes_succeed_without_cache(
        self, authed_client: AsyncClient, route_payload: dict, down_cache
    ):
        route = await create(authed_client, route_payload)
        url = f"/api/v1/routes/{route['id']}"

        for _ in range(2):
            response = await authed_client.get(url)
            assert response.status_code == 200
            assert response.headers["x-cache"] == "MISS"

        assert (await authed_client.put(url, json={"name": "Still works"})).status_code == 200
        assert (await authed_client.get(url)).json()["data"]["name"] == "Still works"

    async def test_session_store_down_fails_closed(
        self, authed_client: AsyncClient, fake_redis, monkeypatch
    ):
        from routeplanner import redis_client

        server = fakeredis.FakeServer()
        server.connected = False
        monkeypatch.setattr(redis_client, "_pool", fakeredis.FakeAsyncRedis(server=server, decode_responses=True))

        response = await authed_client.get("/api/v1/routes")
        assert response.status_code == 401
        assert response.json()["code"] == "session_expired"
