from datetime import datetime, timezone

import pytest

from src.core.config import Settings
from src.core.runtime import ProviderOverrides
from src.orchestration.registry import (
    DEFAULT_PROVIDER_CONFIGS,
    HealthState,
    ProviderRegistry,
    build_registry,
)
from tests.conftest import FakeProvider, runtime_config


def test_registry_keeps_registration_order_and_defaults() -> None:
    registry = ProviderRegistry([FakeProvider("stableDiffusion"), FakeProvider("dalleE3"), FakeProvider("custom")])

    assert registry.names() == ["stableDiffusion", "dalleE3", "custom"]
    assert registry.config("dalleE3") == DEFAULT_PROVIDER_CONFIGS["dalleE3"]
    assert registry.config("custom").priority == 0
    assert registry.health("custom") == HealthState(healthy=True, last_checked_at=None)
    assert registry.available() == ["stableDiffusion", "dalleE3", "custom"]
    assert registry.get("missing") is None


def test_registry_rejects_duplicate_names() -> None:
    with pytest.raises(ValueError, match="Duplicate provider registration: dalleE3"):
        ProviderRegistry([FakeProvider("dalleE3"), FakeProvider("dalleE3")])


def test_availability_requires_enabled_and_healthy() -> None:
    registry = ProviderRegistry([FakeProvider("a"), FakeProvider("b")], {"a": runtime_config(1), "b": runtime_config(2)})

    assert registry.disable("a") is True
    assert registry.is_available("a") is False
    assert registry.available() == ["b"]

    registry.set_health("b", HealthState(healthy=False))
    assert registry.available() == []

    assert registry.enable("a") is True
    assert registry.available() == ["a"]
    assert registry.enable("missing") is False
    assert registry.is_available("missing") is False


def test_status_reports_config_health_and_capabilities() -> None:
    checked_at = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    registry = ProviderRegistry([FakeProvider("a", max_width=512)], {"a": runtime_config(4, max_retries=2)})
    registry.set_health("a", HealthState(healthy=False, last_checked_at=checked_at))

    status = registry.status()["a"]

    assert status["name"] == "a"
    assert status["enabled"] is True
    assert status["healthy"] is False
    assert status["available"] is False
    assert status["priority"] == 4
    assert status["max_retries"] == 2
    assert status["last_checked_at"] == "2026-10-19T12:00:00+00:00"
    assert status["capabilities"].max_image_size == (512, 512)


def test_build_registry_applies_overrides_to_adapters() -> None:
    settings = Settings(
        _env_file=None,
        openai_api_key="sk-openai",
        google_project_id="",
        stability_api_key="sk-sd",
        mock_provider_enabled=False,
    )
    overrides = ProviderOverrides.model_validate(
        {"providers": {"stableDiffusion": {"max_retries": 6, "enabled": False}, "dalleE3": {"priority": 9}}}
    )

    registry = build_registry(settings, overrides=overrides)

    assert registry.names() == ["dalleE3", "stableDiffusion"]
    assert registry.get("stableDiffusion").max_retries == 6
    assert registry.config("dalleE3").priority == 9
    assert registry.available() == ["dalleE3"]
