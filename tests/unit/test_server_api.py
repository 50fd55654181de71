from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from cognitive_hypermedia.core.store import CognitiveStore
from cognitive_hypermedia.server.app import create_app
from cognitive_hypermedia.server.config import ServerSettings


def _client(store: CognitiveStore) -> TestClient:
    return TestClient(create_app(store=store, settings=ServerSettings()))


def test_health_and_types(store: CognitiveStore) -> None:
    with _client(store) as client:
        health = client.get("/api/health").json()
        assert health["status"] == "ok"
        assert health["types"] == ["task"]
        assert "version" in health

        assert client.get("/api/types").json() == ["task"]


def test_state_machine_endpoints(store: CognitiveStore) -> None:
    with _client(store) as client:
        machine = client.get("/api/types/task/state-machine").json()
        assert machine["initialState"] == "pending"

        transitions = client.get("/api/types/task/states/inProgress/transitions").json()
        assert transitions["currentState"] == "inProgress"
        assert transitions["terminal"] is False
        assert {t["action"]: t["targetState"] for t in transitions["possibleTransitions"]} == {
            "complete": "completed",
            "cancel": "cancelled",
        }

        missing = client.get("/api/types/task/states/limbo/transitions")
        assert missing.status_code == 422
        assert missing.json()["error"]["kind"] == "InvalidRequest"

        unknown = client.get("/api/types/ghost/state-machine")
        assert unknown.status_code == 404
        assert unknown.json()["error"]["kind"] == "UnknownType"


def test_resource_lifecycle(store: CognitiveStore) -> None:
    with _client(store) as client:
        created = client.post("/api/resources/task", json={"properties": {"title": "API"}})
        assert created.status_code == 201
        task_id = created.json()["id"]
        assert created.json()["resource"]["status"] == "pending"

        fetched = client.get(f"/api/resources/task/{task_id}").json()
        assert fetched["properties"]["title"] == "API"
        assert set(fetched["actions"]) == {"start", "cancel"}

        actions = client.get(f"/api/resources/task/{task_id}/actions").json()
        assert set(actions) == {"start", "cancel"}

        started = client.post(f"/api/resources/task/{task_id}/actions/start")
        assert started.status_code == 200
        assert started.json()["status"] == "inProgress"

        done = client.post(
            f"/api/resources/task/{task_id}/actions/complete",
            json={"payload": {"resolution": "merged"}},
        ).json()
        assert done["status"] == "completed"
        assert done["properties"]["resolution"] == "merged"

        patched = client.patch(
            f"/api/resources/task/{task_id}", json={"properties": {"title": "renamed"}}
        ).json()
        assert patched["properties"]["title"] == "renamed"
        assert patched["status"] == "completed"

        assert client.delete(f"/api/resources/task/{task_id}").json() == {"deleted": True}
        assert client.delete(f"/api/resources/task/{task_id}").json() == {"deleted": False}
        assert client.get(f"/api/resources/task/{task_id}").status_code == 404


def test_error_mapping(store: CognitiveStore) -> None:
    with _client(store) as client:
        task_id = client.post("/api/resources/task", json={"properties": {}}).json()["id"]

        invalid_action = client.post(f"/api/resources/task/{task_id}/actions/complete")
        assert invalid_action.status_code == 409
        error = invalid_action.json()["error"]
        assert error["kind"] == "InvalidAction"
        assert error["details"]["state"] == "pending"

        protected = client.patch(
            f"/api/resources/task/{task_id}", json={"properties": {"status": "completed"}}
        )
        assert protected.status_code == 422
        assert protected.json()["error"]["kind"] == "InvalidRequest"

        missing = client.post("/api/resources/task/nope/actions/start")
        assert missing.status_code == 404
        assert missing.json()["error"]["kind"] == "NotFound"

        bad_page = client.get("/api/resources/task", params={"page": 0})
        assert bad_page.status_code == 422


def test_collection_query_parameters(store: CognitiveStore) -> None:
    with _client(store) as client:
        for n in range(4):
            client.post("/api/resources/task", json={"properties": {"title": f"t{n}", "rank": n % 2}})

        page = client.get("/api/resources/task", params={"pageSize": 3}).json()
        assert page["totalItems"] == 4
        assert len(page["items"]) == 3
        assert page["pagination"]["totalPages"] == 2

        filtered = client.get("/api/resources/task", params={"rank": "1"}).json()
        assert filtered["totalItems"] == 2
        assert filtered["filters"] == {"rank": 1}

        ordered = client.get(
            "/api/resources/task", params={"sort": "title", "direction": "desc"}
        ).json()
        assert [i["properties"]["title"] for i in ordered["items"]] == ["t3", "t2", "t1", "t0"]


def test_app_loads_definitions_from_directory(
    monkeypatch, tmp_path: Path, task_definition: dict[str, Any]
) -> None:
    definitions = tmp_path / "machines"
    definitions.mkdir()
    (definitions / "ticket.json").write_text(json.dumps(task_definition), encoding="utf-8")
    monkeypatch.setenv("COGNITIVE_STATE_MACHINE_DIR", str(definitions))
    monkeypatch.setenv("COGNITIVE_STORAGE_BACKEND", "memory")

    with TestClient(create_app()) as client:
        assert client.get("/api/types").json() == ["ticket"]
        created = client.post("/api/resources/ticket", json={"properties": {}})
        assert created.status_code == 201
