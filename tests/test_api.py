"""
Tests for the HTTP API (fokus/web).
"""

from __future__ import annotations

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fokus.core.config import Config
from fokus.web.app import create_app
from tests.helpers import wait_released


@pytest_asyncio.fixture()
async def client(config):
    app = create_app(config)
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            ac.app = app
            yield ac


async def timer_command(client, path, **body):
    r = await client.post(f"/api/timer/{path}", json=body or None)
    await wait_released(client.app.state.reconciler)
    return r


# ── health ───────────────────────────────────────────────────────────────────

class TestHealth:
    async def test_healthy(self, client):
        r = await client.get("/api/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "healthy"
        assert body["database_connected"]
        assert body["shared_store_available"]


# ── focus ────────────────────────────────────────────────────────────────────

class TestFocusEndpoints:
    async def test_idle_state(self, client):
        r = await client.get("/api/focus")
        assert r.status_code == 200
        assert not r.json()["is_active"]

    async def test_session_lifecycle(self, client):
        r = await client.post("/api/focus/start", json={"target_minutes": 25, "task_id": "t1"})
        assert r.status_code == 200
        body = r.json()
        assert body["is_active"]
        assert body["remaining_display"] == "25:00"
        assert body["task_id"] == "t1"

        r = await client.post("/api/focus/start", json={"target_minutes": 5})
        assert r.status_code == 409

        r = await client.post("/api/focus/pause")
        assert r.json()["is_paused"]
        assert (await client.post("/api/focus/pause")).status_code == 409

        r = await client.post("/api/focus/resume")
        assert not r.json()["is_paused"]

        r = await client.post("/api/focus/visibility", json={"visible": False})
        assert r.json()["penalized"]
        assert r.json()["state"]["tab_switches"] == 1

        r = await client.post("/api/focus/stop")
        assert r.status_code == 200
        session = r.json()
        assert session["target_minutes"] == 25
        assert session["tab_switches"] == 1
        assert not session["completed"]

        r = await client.get("/api/focus/sessions")
        assert [s["id"] for s in r.json()] == [session["id"]]

        r = await client.get("/api/focus/sessions", params={"date": session["start_time"][:10]})
        assert [s["id"] for s in r.json()] == [session["id"]]

    async def test_target_out_of_range(self, client):
        for minutes in (0, -1, 1000, 0.5):
            r = await client.post("/api/focus/start", json={"target_minutes": minutes})
            assert r.status_code == 422
        assert not (await client.get("/api/focus")).json()["is_active"]

    async def test_stop_when_idle(self, client):
        assert (await client.post("/api/focus/stop")).status_code == 409

    async def test_reset_discards(self, client):
        await client.post("/api/focus/start", json={"target_minutes": 25})
        r = await client.post("/api/focus/reset")
        assert not r.json()["is_active"]
        assert (await client.get("/api/focus/sessions")).json() == []

    async def test_bad_session_date(self, client):
        r = await client.get("/api/focus/sessions", params={"date": "yesterday"})
        assert r.status_code == 400


# ── shared timer ─────────────────────────────────────────────────────────────

class TestTimerEndpoints:
    async def test_initial_timer(self, client):
        r = await client.get("/api/timer")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "idle"
        assert body["store_available"]

    async def test_commands(self, client):
        r = await timer_command(client, "duration", duration_ms=90000)
        assert r.status_code == 200
        assert r.json()["remaining_display"] == "01:30"

        r = await timer_command(client, "start")
        assert r.status_code == 200
        assert r.json()["status"] == "running"

        r = await timer_command(client, "start")
        assert r.status_code == 409

        r = await timer_command(client, "pause")
        assert r.json()["status"] == "paused"

        r = await timer_command(client, "resume")
        assert r.json()["status"] == "running"

        r = await timer_command(client, "stop")
        assert r.json()["status"] == "completed"

        r = await timer_command(client, "reset")
        assert r.json()["status"] == "idle"
        assert r.json()["remaining_ms"] == 90000

    async def test_start_without_duration_rejected(self, client):
        r = await timer_command(client, "start")
        assert r.status_code == 409
        assert "idle" in r.json()["detail"]

    async def test_negative_duration_rejected(self, client):
        r = await client.post("/api/timer/duration", json={"duration_ms": -5})
        assert r.status_code == 422

    async def test_store_not_configured(self, tmp_path):
        config = Config(data_dir=tmp_path / "data", shared={"backend": "firebase", "database_url": ""})
        app = create_app(config)
        async with app.router.lifespan_context(app):
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as ac:
                r = await ac.post("/api/timer/start")
                assert r.status_code == 503
                assert r.json()["detail"] == "Remote store not configured"

                r = await ac.get("/api/timer")
                assert not r.json()["store_available"]
