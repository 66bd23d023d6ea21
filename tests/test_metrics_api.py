from fastapi.testclient import TestClient

import src.api.main as api_main
from src.core.metrics import (
    provider_attempt_count,
    record_health_check,
    record_provider_attempt,
    render_prometheus_metrics,
    reset_metrics_for_tests,
)


def test_metrics_endpoint_returns_prometheus_payload(monkeypatch) -> None:
    reset_metrics_for_tests()
    monkeypatch.setattr(api_main.settings, "metrics_enabled", True)

    client = TestClient(api_main.app)
    version_response = client.get("/version")
    assert version_response.status_code == 200

    metrics_response = client.get("/metrics")
    assert metrics_response.status_code == 200
    assert metrics_response.headers["content-type"].startswith("text/plain")
    body = metrics_response.text
    assert "promptlens_build_info" in body
    assert 'promptlens_http_requests_total{method="GET",path="/version",status="200"}' in body
    assert "promptlens_http_request_duration_seconds_sum" in body


def test_metrics_endpoint_disabled_returns_404(monkeypatch) -> None:
    monkeypatch.setattr(api_main.settings, "metrics_enabled", False)
    client = TestClient(api_main.app)
    response = client.get("/metrics")
    assert response.status_code == 404


def test_provider_metrics_are_rendered() -> None:
    reset_metrics_for_tests()
    record_provider_attempt(provider="dalleE3", success=True, duration_seconds=1.5, cost_usd=0.04)
    record_provider_attempt(provider="dalleE3", success=False, duration_seconds=0.2)
    record_health_check(provider="imagen4", healthy=False)

    body = render_prometheus_metrics(app_name="promptlens", app_version="0.1.0", env="test")

    assert provider_attempt_count(provider="dalleE3", success=True) == 1
    assert provider_attempt_count(provider="dalleE3", success=False) == 1
    assert 'promptlens_provider_attempts_total{provider="dalleE3",outcome="failure"} 1' in body
    assert 'promptlens_provider_cost_usd_total{provider="dalleE3"} 0.040000' in body
    assert 'promptlens_provider_health_checks_total{provider="imagen4",result="unhealthy"} 1' in body
    reset_metrics_for_tests()
