from fastapi.testclient import TestClient

import src.api.main as api_main
from src.orchestration.registry import HealthState
from tests.conftest import FakeProvider, create_api_test_context, teardown_api_test_context


async def _redis_ok():
    return True, None


def test_health_returns_ok_when_services_are_up(monkeypatch) -> None:
    monkeypatch.setattr(api_main, "test_db_connection", lambda: (True, None))
    monkeypatch.setattr(api_main, "test_redis_connection", _redis_ok)
    context = create_api_test_context([FakeProvider("dalleE3")])
    try:
        response = context.client.get("/health")
    finally:
        teardown_api_test_context()

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["services"]["database"]["ok"] is True
    assert payload["services"]["redis"]["ok"] is True
    assert payload["services"]["providers"]["available"] == ["dalleE3"]


def test_health_returns_503_when_any_dependency_fails(monkeypatch) -> None:
    monkeypatch.setattr(api_main, "test_db_connection", lambda: (False, "db unavailable"))
    monkeypatch.setattr(api_main, "test_redis_connection", _redis_ok)
    context = create_api_test_context([FakeProvider("dalleE3")])
    try:
        response = context.client.get("/health")
    finally:
        teardown_api_test_context()

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["services"]["database"]["error"] == "db unavailable"


def test_health_is_degraded_without_available_providers(monkeypatch) -> None:
    monkeypatch.setattr(api_main, "test_db_connection", lambda: (True, None))
    monkeypatch.setattr(api_main, "test_redis_connection", _redis_ok)
    context = create_api_test_context([FakeProvider("dalleE3")])
    context.registry.set_health("dalleE3", HealthState(healthy=False))
    try:
        response = context.client.get("/health")
    finally:
        teardown_api_test_context()

    assert response.status_code == 503
    providers = response.json()["services"]["providers"]
    assert providers["ok"] is False
    assert providers["registered"] == ["dalleE3"]
    assert providers["available"] == []


def test_version_endpoint() -> None:
    client = TestClient(api_main.app)
    response = client.get("/version")

    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "promptlens"
    assert payload["version"]
