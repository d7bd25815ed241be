"""Workflow API 路由测试（TestClient + 内存仓储）"""

from __future__ import annotations

from tests.builders import simple_workflow_doc


def _store(client, document=None) -> dict:
    response = client.post("/api/workflows", json=document or simple_workflow_doc())
    assert response.status_code == 201
    return response.json()


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_validate_valid_document(client) -> None:
    response = client.post("/api/workflows/validate", json=simple_workflow_doc())

    body = response.json()
    assert response.status_code == 200
    assert body["valid"] is True
    assert body["errors"] == []
    assert [w["code"] for w in body["warnings"]] == ["ERROR_HANDLING_RECOMMENDED"]
    assert body["summary"]["nodeCount"] == 2


def test_validate_invalid_document(client) -> None:
    document = simple_workflow_doc()
    document["connections"]["Set"] = {"main": [[{"node": "Ghost", "type": "main", "index": 0}]]}

    body = client.post("/api/workflows/validate", json=document).json()

    assert body["valid"] is False
    assert body["errors"][0]["code"] == "DanglingReference"
    assert body["errors"][0]["severity"] == "error"
    assert body["summary"]["errorCount"] == 1


def test_validate_malformed_position_returns_400(client) -> None:
    document = simple_workflow_doc()
    document["nodes"][0]["position"] = [1]

    response = client.post("/api/workflows/validate", json=document)

    assert response.status_code == 400


def test_node_without_type_returns_422(client) -> None:
    response = client.post("/api/workflows/validate", json={"nodes": [{"name": "Set"}], "connections": {}})

    assert response.status_code == 422


def test_create_and_get_preserves_document(client) -> None:
    document = simple_workflow_doc()
    document["pinData"] = {"Webhook": [{"json": {"ok": True}}]}
    document["nodes"][0]["webhookId"] = "abc"

    created = _store(client, document)
    fetched = client.get("/api/workflows/wf-1").json()

    assert created == document
    assert fetched == document


def test_create_assigns_id(client) -> None:
    document = simple_workflow_doc()
    del document["id"]

    created = _store(client, document)

    assert created["id"]
    assert client.get(f"/api/workflows/{created['id']}").status_code == 200


def test_get_missing_workflow(client) -> None:
    response = client.get("/api/workflows/missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Workflow not found: missing"


def test_list_workflows(client) -> None:
    _store(client)

    response = client.get("/api/workflows")

    assert response.json() == [{"id": "wf-1", "name": "Test workflow", "nodeCount": 2, "connectionCount": 1}]


def test_validate_stored_workflow(client) -> None:
    _store(client)

    assert client.post("/api/workflows/wf-1/validate").json()["valid"] is True
    assert client.post("/api/workflows/missing/validate").status_code == 404


def test_diff_applies_and_saves(client) -> None:
    _store(client)

    response = client.patch(
        "/api/workflows/wf-1/diff",
        json={
            "operations": [
                {"type": "addNode", "node": {"name": "Notify", "type": "n8n-nodes-base.set", "position": [400, 0]}},
                {"type": "addConnection", "source": "Set", "target": "Notify"},
            ]
        },
    )

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["saved"] is True
    assert body["applied"] == [0, 1]
    assert body["validation"]["valid"] is True
    assert "Notify" in [n["name"] for n in client.get("/api/workflows/wf-1").json()["nodes"]]


def test_diff_failure_is_reported_in_body(client) -> None:
    _store(client)

    response = client.patch(
        "/api/workflows/wf-1/diff",
        json={"operations": [{"type": "removeNode", "nodeName": "Missing"}]},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["saved"] is False
    assert body["failed"][0]["code"] == "NODE_NOT_FOUND"
    assert body["error"].startswith("Node not found")


def test_diff_on_missing_workflow(client) -> None:
    response = client.patch("/api/workflows/missing/diff", json={"operations": []})

    assert response.status_code == 404


def test_diff_legacy_validate_only_flag(client) -> None:
    _store(client)

    body = client.patch(
        "/api/workflows/wf-1/diff",
        json={"operations": [{"type": "updateName", "name": "Proposed"}], "validateOnly": True},
    ).json()

    assert body["mode"] == "validate_only"
    assert body["workflow"]["name"] == "Proposed"
    assert body["saved"] is False
    assert client.get("/api/workflows/wf-1").json()["name"] == "Test workflow"


def test_diff_continue_on_error_uses_result_key(client) -> None:
    _store(client)

    body = client.patch(
        "/api/workflows/wf-1/diff",
        json={
            "mode": "continue_on_error",
            "operations": [
                {"type": "removeNode", "nodeName": "Missing"},
                {"type": "addTag", "tag": "prod"},
            ],
        },
    ).json()

    assert body["success"] is True
    assert body["applied"] == [1]
    assert body["result"]["tags"] == ["prod"]
    assert "workflow" not in body


def test_diff_rejects_unknown_mode(client) -> None:
    _store(client)

    response = client.patch("/api/workflows/wf-1/diff", json={"operations": [], "mode": "eventually"})

    assert response.status_code == 422


def test_app_debug_follows_settings(client) -> None:
    from workflow_guard.config import settings
    from workflow_guard.interfaces.api.main import app

    assert app.debug is settings.debug
