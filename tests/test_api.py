"""
API tests for the agent-rag and shared-memory endpoints.

Each test gets its own component graph (in-process memory, no LLM provider).
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from agentrag.core.container import Services, build_services
from agentrag.main import create_app
from agentrag.services.memory_store import MemoryStore
from agentrag.services.strategy_catalog import StrategyCatalog

DOC = (
    "# Battery Guide\n\n"
    "Lithium batteries store energy in cells. They should be charged at room temperature.\n\n"
    "Keep batteries away from heat. Recycle old batteries at a collection point."
)
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148"


@pytest.fixture
def services() -> Services:
    return build_services(memory=MemoryStore(), use_configured_llm=False)


@pytest.fixture
def client(services: Services) -> TestClient:
    return TestClient(create_app(services))


def process(client: TestClient, **overrides) -> dict:
    body = {"content": DOC, "question": "How should batteries be charged?", **overrides}
    response = client.post("/agent-rag/process", json=body)
    assert response.status_code == 200, response.text
    return response.json()


def test_root_and_health(client: TestClient) -> None:
    assert client.get("/").status_code == 200
    assert client.get("/health").json() == {"ok": True}


# --- process ---

def test_process_returns_answer_and_workflow(client: TestClient) -> None:
    """POST /agent-rag/process runs the whole workflow and returns the composite result."""
    data = process(client)
    assert data["workflow"]["state"] == "completed"
    assert data["strategy"] == data["selection"]["selected_strategy"]["name"]
    assert data["answer"]
    assert data["sources"]
    assert 0.1 <= data["confidence"] <= 1.0
    assert data["profile"]["type"] in {"article", "technical", "structured-data", "conversational", "mixed", "unknown"}


def test_process_missing_question_returns_400(client: TestClient) -> None:
    response = client.post("/agent-rag/process", json={"content": DOC})
    assert response.status_code == 400
    assert response.json()["detail"] == "question is required"


def test_process_empty_content_returns_400(client: TestClient) -> None:
    response = client.post("/agent-rag/process", json={"content": "  ", "question": "why?"})
    assert response.status_code == 400


def test_process_duplicate_active_workflow_id_returns_400(client: TestClient, services: Services) -> None:
    services.coordinator.start_workflow("busy")
    response = client.post("/agent-rag/process", json={"content": DOC, "question": "q?", "workflow_id": "busy"})
    assert response.status_code == 400


def test_process_empty_catalog_returns_503() -> None:
    services = build_services(catalog=StrategyCatalog([]), memory=MemoryStore(), use_configured_llm=False)
    response = TestClient(create_app(services)).post("/agent-rag/process", json={"content": DOC, "question": "q?"})
    assert response.status_code == 503


def test_process_unexpected_error_returns_500(client: TestClient, services: Services) -> None:
    with patch.object(services.agent, "run_workflow", side_effect=RuntimeError("boom")):
        response = client.post("/agent-rag/process", json={"content": DOC, "question": "q?"})
    assert response.status_code == 500


def test_process_device_from_user_agent(client: TestClient) -> None:
    response = client.post(
        "/agent-rag/process",
        json={"content": DOC, "question": "How should batteries be charged?"},
        headers={"User-Agent": IPHONE_UA},
    )
    assert response.status_code == 200
    reasoning = response.json()["selection"]["reasoning"]
    assert any(r.startswith("device-optimization bonus applied (mobile)") for r in reasoning)


def test_process_explicit_device_wins_over_user_agent(client: TestClient) -> None:
    response = client.post(
        "/agent-rag/process",
        json={
            "content": DOC,
            "question": "How should batteries be charged?",
            "device": {"processing_power": "high", "form_factor": "desktop", "connectivity": "ethernet"},
        },
        headers={"User-Agent": IPHONE_UA},
    )
    reasoning = response.json()["selection"]["reasoning"]
    assert not any("device-optimization bonus" in r for r in reasoning)


# --- analyze / select / strategies ---

def test_analyze_returns_profile(client: TestClient) -> None:
    response = client.post("/agent-rag/analyze", json={"content": DOC})
    assert response.status_code == 200
    data = response.json()
    assert data["signals"]["heading_count"] == 1
    assert data["analyzed_by"] == "heuristic"


def test_analyze_empty_content_returns_422(client: TestClient) -> None:
    assert client.post("/agent-rag/analyze", json={"content": ""}).status_code == 422


def test_select_strategy(client: TestClient) -> None:
    body = {
        "profile": {"type": "conversational", "complexity": "simple", "confidence": 0.9},
        "device": {"processing_power": "low", "form_factor": "mobile", "connectivity": "cellular"},
    }
    response = client.post("/agent-rag/select-strategy", json=body)
    assert response.status_code == 200
    data = response.json()
    assert data["selected_strategy"]["name"] == "conversational-quick"
    assert len(data["alternatives"]) == 3


def test_list_and_get_strategies(client: TestClient) -> None:
    data = client.get("/agent-rag/strategies").json()
    assert data["count"] == 7
    assert client.get("/agent-rag/strategies/balanced").json()["name"] == "balanced"
    assert client.get("/agent-rag/strategies/nope").status_code == 404


# --- workflow / metrics ---

def test_workflow_status_after_process(client: TestClient) -> None:
    workflow_id = process(client)["workflow"]["workflow_id"]
    response = client.get(f"/agent-rag/workflow/{workflow_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["is_active"] is False
    assert data["state"] == "completed"
    assert data["messages"][0]["data"]["kind"] == "analysis_request"
    assert data["messages"][0]["from"] == "coordinator"


def test_workflow_status_unknown_returns_404(client: TestClient) -> None:
    assert client.get("/agent-rag/workflow/wf-missing").status_code == 404


def test_metrics(client: TestClient) -> None:
    process(client)
    data = client.get("/agent-rag/metrics").json()
    assert data["active_count"] == 0
    assert data["history_count"] == 1
    assert data["config"]["strategies"] == 7
    assert data["memory"]["entry_count"] >= 2


# --- shared memory ---

def test_memory_endpoints_reflect_a_run(client: TestClient) -> None:
    data = process(client)
    strategy = data["strategy"]

    stats = client.get("/shared-memory/stats").json()
    assert stats["entries_by_type"]["performance_record"] == 1
    assert stats["entries_by_type"]["content_pattern"] == 1
    assert stats["entries_by_type"]["content_analysis"] == 1

    query = client.get("/shared-memory/query", params={"type": "performance_record"}).json()
    assert query["count"] == 1
    key = query["entries"][0]["key"]
    assert client.get(f"/shared-memory/entry/{key}").status_code == 200

    perf = client.get("/shared-memory/strategy-performance").json()
    assert perf["total_records"] == 1
    assert perf["strategies"][strategy]["runs"] == 1
    assert perf["strategies"][strategy]["success_rate"] == 1.0

    patterns = client.get("/shared-memory/content-patterns").json()
    assert [p["optimal_strategy"] for p in patterns] == [strategy]


def test_memory_query_by_tag(client: TestClient) -> None:
    process(client, metadata={"user_id": "u7"}, preferences={"prioritize_speed": True})
    data = client.get("/shared-memory/query", params=[("tags", "u7")]).json()
    assert data["count"] == 1
    assert data["entries"][0]["type"] == "user_preferences"


def test_memory_entry_unknown_returns_404(client: TestClient) -> None:
    assert client.get("/shared-memory/entry/nope").status_code == 404


def test_memory_cleanup_and_clear(client: TestClient) -> None:
    process(client)
    assert client.post("/shared-memory/cleanup").json() == {"removed": 0}
    assert client.delete("/shared-memory/clear").json() == {"cleared": True}
    assert client.get("/shared-memory/stats").json()["entry_count"] == 0
