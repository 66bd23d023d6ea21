"""Periodic provider health monitoring."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from src.core.logger import get_logger
from src.core.metrics import record_health_check
from src.orchestration.registry import HealthState, ProviderRegistry

Clock = Callable[[], datetime]

logger = get_logger("promptlens.orchestration.health")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HealthMonitor:
    """Refresh each adapter's health once its own check interval has elapsed."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        interval_seconds: float = 60,
        clock: Clock = _utc_now,
    ) -> None:
        self._registry = registry
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

        for name in registry.names():
            config = registry.config(name)
            if config is not None and interval_seconds >= config.health_check_interval_seconds:
                logger.warning(
                    "health_monitor_interval_too_long",
                    provider=name,
                    monitor_interval_seconds=interval_seconds,
                    provider_interval_seconds=config.health_check_interval_seconds,
                )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _is_due(self, name: str, now: datetime) -> bool:
        health = self._registry.health(name)
        config = self._registry.config(name)
        if health is None or config is None:
            return False
        if health.last_checked_at is None:
            return True
        return now - health.last_checked_at >= timedelta(seconds=config.health_check_interval_seconds)

    async def _check_one(self, name: str, now: datetime) -> bool:
        provider = self._registry.get(name)
        if provider is None:
            return False
        try:
            healthy = bool(await provider.check_health())
        except Exception as exc:
            logger.error("health_check_failed", provider=name, error=str(exc))
            healthy = False

        self._registry.set_health(name, HealthState(healthy=healthy, last_checked_at=now))
        record_health_check(provider=name, healthy=healthy)
        if not healthy:
            logger.warning("provider_unhealthy", provider=name)
        return healthy

    async def check_all(self, now: Optional[datetime] = None) -> Dict[str, bool]:
        """Check every due adapter and return the fresh results by name."""

        current = now or self._clock()
        due: List[str] = [name for name in self._registry.names() if self._is_due(name, current)]
        if not due:
            return {}
        results = await asyncio.gather(*(self._check_one(name, current) for name in due))
        return dict(zip(due, results))

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                await self.check_all()
            except Exception as exc:
                logger.error("health_monitor_sweep_failed", error=str(exc))

    async def start(self) -> None:
        if self.running:
            return
        await self.check_all()
        self._task = asyncio.create_task(self._run())
        logger.info("health_monitor_started", interval_seconds=self._interval_seconds)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("health_monitor_stopped")
