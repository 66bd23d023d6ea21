from datetime import datetime, timezone

from fastapi.testclient import TestClient

import src.api.main as api_main
from src.orchestration.registry import HealthState
from tests.conftest import FakeProvider, create_api_test_context, runtime_config, teardown_api_test_context


def test_provider_status_lists_every_registered_provider() -> None:
    checked_at = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
    context = create_api_test_context(
        [FakeProvider("dalleE3"), FakeProvider("stableDiffusion", supports_negative_prompts=True)],
        configs={"dalleE3": runtime_config(2), "stableDiffusion": runtime_config(3, max_retries=5)},
    )
    context.registry.set_health("stableDiffusion", HealthState(healthy=False, last_checked_at=checked_at))
    try:
        response = context.client.get("/providers")
    finally:
        teardown_api_test_context()

    assert response.status_code == 200
    providers = {item["name"]: item for item in response.json()["providers"]}
    assert providers["dalleE3"]["available"] is True
    assert providers["dalleE3"]["last_checked_at"] is None
    assert providers["stableDiffusion"]["healthy"] is False
    assert providers["stableDiffusion"]["available"] is False
    assert providers["stableDiffusion"]["priority"] == 3
    assert providers["stableDiffusion"]["max_retries"] == 5
    assert providers["stableDiffusion"]["last_checked_at"] == "2026-10-19T09:30:00+00:00"
    assert providers["stableDiffusion"]["capabilities"]["supports_negative_prompts"] is True
    assert providers["stableDiffusion"]["capabilities"]["max_image_size"] == [1024, 1024]


def test_enable_and_disable_provider() -> None:
    context = create_api_test_context([FakeProvider("A"), FakeProvider("B")])
    try:
        disabled = context.client.post("/providers/A/disable")
        available_after_disable = context.client.get("/providers/available").json()
        enabled = context.client.post("/providers/A/enable")
        available_after_enable = context.client.get("/providers/available").json()
        missing = context.client.post("/providers/missing/disable")
    finally:
        teardown_api_test_context()

    assert disabled.json() == {"name": "A", "enabled": False}
    assert available_after_disable == {"providers": ["B"]}
    assert enabled.json() == {"name": "A", "enabled": True}
    assert available_after_enable == {"providers": ["A", "B"]}
    assert missing.status_code == 404


def test_provider_routes_return_503_before_startup() -> None:
    teardown_api_test_context()
    client = TestClient(api_main.app)

    response = client.get("/providers")

    assert response.status_code == 503
    assert response.json()["detail"] == "Image providers not initialized"
