import asyncio
from datetime import datetime, timedelta, timezone

from src.core.metrics import render_prometheus_metrics, reset_metrics_for_tests
from src.orchestration.health import HealthMonitor
from src.orchestration.registry import HealthState, ProviderRegistry
from tests.conftest import FakeProvider, runtime_config


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _registry(*providers: FakeProvider) -> ProviderRegistry:
    return ProviderRegistry(
        providers,
        {provider.name: runtime_config(1, health_check_interval_seconds=300) for provider in providers},
    )


def test_check_all_records_health_results() -> None:
    reset_metrics_for_tests()
    good = FakeProvider("good")
    bad = FakeProvider("bad", healthy=False)
    broken = FakeProvider("broken", healthy=RuntimeError("timeout"))
    registry = _registry(good, bad, broken)
    monitor = HealthMonitor(registry, interval_seconds=60, clock=lambda: NOW)

    results = asyncio.run(monitor.check_all())

    assert results == {"good": True, "bad": False, "broken": False}
    assert registry.health("bad") == HealthState(healthy=False, last_checked_at=NOW)
    assert registry.available() == ["good"]
    body = render_prometheus_metrics(app_name="promptlens", app_version="0.1.0", env="test")
    assert 'promptlens_provider_health_checks_total{provider="broken",result="unhealthy"} 1' in body
    reset_metrics_for_tests()


def test_check_all_skips_providers_checked_recently() -> None:
    provider = FakeProvider("good")
    registry = _registry(provider)
    monitor = HealthMonitor(registry, interval_seconds=60, clock=lambda: NOW)

    asyncio.run(monitor.check_all())
    assert asyncio.run(monitor.check_all(NOW + timedelta(seconds=120))) == {}
    assert provider.health_checks == 1

    assert asyncio.run(monitor.check_all(NOW + timedelta(seconds=300))) == {"good": True}
    assert provider.health_checks == 2


def test_unhealthy_provider_recovers_on_next_due_check() -> None:
    provider = FakeProvider("flaky", healthy=False)
    registry = _registry(provider)
    monitor = HealthMonitor(registry, interval_seconds=60, clock=lambda: NOW)

    asyncio.run(monitor.check_all())
    assert registry.is_available("flaky") is False

    provider.healthy = True
    asyncio.run(monitor.check_all(NOW + timedelta(seconds=301)))
    assert registry.is_available("flaky") is True


def test_start_runs_initial_sweep_and_stop_cancels_task() -> None:
    provider = FakeProvider("good")
    registry = _registry(provider)
    monitor = HealthMonitor(registry, interval_seconds=3600, clock=lambda: NOW)

    async def scenario() -> bool:
        await monitor.start()
        running = monitor.running
        await monitor.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert monitor.running is False
    assert provider.health_checks == 1
    assert registry.health("good").last_checked_at == NOW
