"""Tests for application startup/shutdown and the background loops."""
import asyncio
import json

from fastapi.testclient import TestClient

from fruitmerge import main
from fruitmerge.tasks import start_background_tasks, stop_background_tasks


def test_lifespan_loads_and_flushes(tmp_path, monkeypatch):
    """Test data saved at shutdown is loaded again on the next startup."""
    data_file = tmp_path / "data.json"
    monkeypatch.setattr(main.settings, "data_file", str(data_file))
    monkeypatch.setattr(main.settings, "storage_backend", "json")
    monkeypatch.setattr(main.settings, "bot_token", "")

    with TestClient(main.app) as client:
        response = client.post("/api/heartbeat", json={"userId": 5, "username": "zed"})
        assert response.status_code == 200

    saved = json.loads(data_file.read_text(encoding="utf-8"))
    assert "5" in saved["users"]

    with TestClient(main.app) as client:
        assert client.get("/").json()["totalUsers"] == 1


def test_background_loop_survives_failures():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    async def scenario():
        tasks = start_background_tasks([("flaky", 0.01, flaky)])
        await asyncio.sleep(0.2)
        await stop_background_tasks(tasks)
        return tasks

    tasks = asyncio.run(scenario())
    assert len(calls) >= 2
    assert all(task.cancelled() for task in tasks)
