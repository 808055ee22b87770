"""Tests for the HTTP API."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from pogo_core.api.routes.updates import task_event
from pogo_core.api.server import create_app
from pogo_core.config import Settings
from pogo_core.data.models import UpdateResult
from pogo_core.updates import UpdateEvent, UpdateQueue, default_sources

from fakes import FakeClock, FakeFeed


@pytest.fixture
def client() -> Iterator[TestClient]:
    """API client backed by a temporary database and the fake feed."""
    with tempfile.TemporaryDirectory() as tmpdir:
        settings = Settings(
            db_path=Path(tmpdir) / "api.sqlite",
            startup_grace_seconds=3600.0,
        )
        with TestClient(create_app(settings, feed=FakeFeed())) as test_client:
            yield test_client


class TestHealth:
    def test_health_after_bootstrap(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "pokemon": 3}


class TestUpdateRoutes:
    """/updates endpoints."""

    def test_status(self, client: TestClient) -> None:
        response = client.get("/updates/status")
        assert response.status_code == 200
        data = response.json()
        assert len(data["sources"]) == 4
        assert data["queue_depth"] == 0
        assert data["scheduler_running"] is True

        sources = {s["id"]: s for s in data["sources"]}
        assert sources["pvpoke-gamemaster"]["version_marker"] == "pvpoke-gamemaster-v1"
        assert sources["pvpoke-gamemaster"]["scheduled"] is True
        assert sources["dialgadex-data"]["scheduled"] is False

    def test_history(self, client: TestClient) -> None:
        response = client.get("/updates/history")
        assert response.status_code == 200
        records = response.json()
        assert len(records) == 3
        assert {r["status"] for r in records} == {"completed"}

        response = client.get("/updates/history", params={"source_id": "pvpoke-rankings"})
        assert [r["source_id"] for r in response.json()] == ["pvpoke-rankings"]

        response = client.get("/updates/history", params={"status": "failed"})
        assert response.json() == []

    def test_history_unknown_source(self, client: TestClient) -> None:
        response = client.get("/updates/history", params={"source_id": "nope"})
        assert response.status_code == 404

    def test_force_and_wait(self, client: TestClient) -> None:
        response = client.post("/updates/force", params={"wait": True})
        assert response.status_code == 200
        data = response.json()
        assert data["queued"] == 3
        assert [t["source_id"] for t in data["tasks"]] == [
            "pvpoke-gamemaster",
            "pvpoke-rankings",
            "pokemon-resources",
        ]
        assert {t["status"] for t in data["tasks"]} == {"completed"}

        history = client.get("/updates/history").json()
        assert len(history) == 6

    def test_toggle_source(self, client: TestClient) -> None:
        response = client.post("/updates/sources/pvpoke-rankings/active", json={"active": False})
        assert response.status_code == 200
        assert response.json() == {"id": "pvpoke-rankings", "is_active": False}

        sources = {s["id"]: s for s in client.get("/updates/status").json()["sources"]}
        assert sources["pvpoke-rankings"]["is_active"] is False
        assert sources["pvpoke-rankings"]["scheduled"] is False

    def test_toggle_unknown_source(self, client: TestClient) -> None:
        response = client.post("/updates/sources/nope/active", json={"active": True})
        assert response.status_code == 404


class TestEventStream:
    def test_task_event_format(self) -> None:
        clock = FakeClock()
        task = UpdateQueue(clock=clock).enqueue(default_sources()[0])
        task.mark_in_progress(clock())
        task.complete(UpdateResult(records_added=4), "abc123", clock())

        message = task_event(UpdateEvent.UPDATE_COMPLETE, task)

        assert message.startswith("data: ")
        assert message.endswith("\n\n")
        data = json.loads(message[len("data: ") :])
        assert data["event"] == "update_complete"
        assert data["source_id"] == "pvpoke-gamemaster"
        assert data["records_added"] == 4
        assert data["version_marker"] == "abc123"
