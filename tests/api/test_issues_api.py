"""Dashboard API tests for issue CRUD endpoints."""

from __future__ import annotations

from httpx import ASGITransport, AsyncClient

import lexiboard.dashboard as dash_module
from lexiboard.dashboard import create_app
from tests.conftest import PopulatedDB


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_no_database(self) -> None:
        dash_module._db = None
        transport = ASGITransport(app=create_app())
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.get("/api/board")
        assert resp.status_code == 500


class TestListIssues:
    async def test_board_order(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/api/issues", params={"status": "todo"})
        assert resp.status_code == 200
        ids = dashboard_db.ids
        assert [i["id"] for i in resp.json()] == [ids["a"], ids["b"], ids["c"]]

    async def test_assignee_filter(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/api/issues", params={"assignee": "alice"})
        assert [i["id"] for i in resp.json()] == [dashboard_db.ids["c"]]

    async def test_pagination(self, client: AsyncClient) -> None:
        everything = (await client.get("/api/issues")).json()
        page = (await client.get("/api/issues", params={"limit": 2, "offset": 1})).json()
        assert page == everything[1:3]

    async def test_bad_limit(self, client: AsyncClient) -> None:
        resp = await client.get("/api/issues", params={"limit": "lots"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_zero_limit(self, client: AsyncClient) -> None:
        resp = await client.get("/api/issues", params={"limit": 0})
        assert resp.status_code == 400


class TestCreateIssue:
    async def test_create(self, client: AsyncClient) -> None:
        resp = await client.post("/api/issues", json={"title": "From the web", "status": "todo"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "todo"
        assert data["rank"] == "L"

    async def test_default_actor(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.post("/api/issues", json={"title": "Who made me"})
        events = dashboard_db.db.get_issue_events(resp.json()["id"])
        assert events[0]["actor"] == "dashboard"

    async def test_title_required(self, client: AsyncClient) -> None:
        resp = await client.post("/api/issues", json={"status": "todo"})
        assert resp.status_code == 400
        assert resp.json()["error"]["details"] == {"field": "title"}

    async def test_unknown_column(self, client: AsyncClient) -> None:
        resp = await client.post("/api/issues", json={"title": "Lost", "status": "archived"})
        assert resp.status_code == 400
        assert "Unknown column" in resp.json()["error"]["message"]

    async def test_non_string_field(self, client: AsyncClient) -> None:
        resp = await client.post("/api/issues", json={"title": "Typed", "priority": 3})
        assert resp.status_code == 400
        assert resp.json()["error"]["details"] == {"field": "priority"}

    async def test_invalid_json(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/issues",
            content=b"{nope",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    async def test_array_body(self, client: AsyncClient) -> None:
        resp = await client.post("/api/issues", json=["title"])
        assert resp.status_code == 400
        assert "JSON object" in resp.json()["error"]["message"]

    async def test_bad_actor(self, client: AsyncClient) -> None:
        resp = await client.post("/api/issues", json={"title": "x", "actor": "bad\nactor"})
        assert resp.status_code == 400


class TestIssueDetail:
    async def test_detail_with_events(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get(f"/api/issue/{dashboard_db.ids['a']}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["title"] == "Issue A"
        assert [e["event_type"] for e in data["events"]] == ["created"]

    async def test_missing(self, client: AsyncClient) -> None:
        resp = await client.get("/api/issue/test-nope")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "ISSUE_NOT_FOUND"


class TestUpdateIssue:
    async def test_update(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        issue_id = dashboard_db.ids["b"]
        resp = await client.patch(f"/api/issue/{issue_id}", json={"title": "Renamed", "actor": "web"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "Renamed"
        assert resp.json()["rank"] == "J"
        events = dashboard_db.db.get_issue_events(issue_id)
        assert events[0]["event_type"] == "title_changed"
        assert events[0]["actor"] == "web"

    async def test_rank_is_not_updatable(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.patch(f"/api/issue/{dashboard_db.ids['b']}", json={"rank": "0", "status": "done"})
        assert resp.status_code == 400
        assert resp.json()["error"]["details"] == {"fields": ["rank", "status"]}

    async def test_bad_priority(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.patch(f"/api/issue/{dashboard_db.ids['b']}", json={"priority": "urgent"})
        assert resp.status_code == 400

    async def test_missing(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/issue/test-nope", json={"title": "x"})
        assert resp.status_code == 404


class TestDeleteIssue:
    async def test_delete(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        issue_id = dashboard_db.ids["d"]
        resp = await client.delete(f"/api/issue/{issue_id}")
        assert resp.status_code == 200
        assert resp.json() == {"deleted": issue_id, "status": "in-progress"}
        assert (await client.get(f"/api/issue/{issue_id}")).status_code == 404

    async def test_missing(self, client: AsyncClient) -> None:
        resp = await client.delete("/api/issue/test-nope")
        assert resp.status_code == 404
