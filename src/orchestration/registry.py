"""Provider registry: adapters, runtime config and last-known health."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
import threading
from typing import Any, Dict, Iterable, List, Optional

import httpx

from src.core.config import Settings
from src.core.logger import get_logger
from src.core.runtime import ProviderOverrides, load_provider_overrides
from src.providers.base import ImageProvider
from src.providers.common import SleepFn
from src.providers.factory import build_providers

logger = get_logger("promptlens.orchestration.registry")


@dataclass(frozen=True)
class ProviderRuntimeConfig:
    enabled: bool = True
    priority: int = 0
    max_retries: int = 3
    health_check_interval_seconds: int = 300
    cost_weight: float = 0.4
    quality_weight: float = 0.4
    speed_weight: float = 0.2


@dataclass(frozen=True)
class HealthState:
    healthy: bool = True
    last_checked_at: Optional[datetime] = None


DEFAULT_PROVIDER_CONFIGS: Dict[str, ProviderRuntimeConfig] = {
    "dalleE3": ProviderRuntimeConfig(priority=2, cost_weight=0.3, quality_weight=0.5, speed_weight=0.2),
    "imagen4": ProviderRuntimeConfig(priority=1, cost_weight=0.4, quality_weight=0.4, speed_weight=0.2),
    "stableDiffusion": ProviderRuntimeConfig(priority=3, cost_weight=0.6, quality_weight=0.3, speed_weight=0.1),
    "mock": ProviderRuntimeConfig(priority=0),
}


def resolve_runtime_configs(overrides: Optional[ProviderOverrides] = None) -> Dict[str, ProviderRuntimeConfig]:
    """Merge YAML overrides into the built-in defaults."""

    configs = dict(DEFAULT_PROVIDER_CONFIGS)
    if overrides is None:
        return configs
    for name in overrides.providers:
        base = configs.get(name, ProviderRuntimeConfig())
        configs[name] = replace(base, **overrides.for_provider(name))
    return configs


class ProviderRegistry:
    """Registered adapters keyed by name, in registration order.

    Config and health values are immutable and swapped whole under a lock, so a
    reader never observes a partially updated entry.
    """

    def __init__(
        self,
        providers: Iterable[ImageProvider],
        configs: Optional[Dict[str, ProviderRuntimeConfig]] = None,
    ) -> None:
        known_configs = configs if configs is not None else DEFAULT_PROVIDER_CONFIGS
        self._lock = threading.Lock()
        self._providers: Dict[str, ImageProvider] = {}
        self._configs: Dict[str, ProviderRuntimeConfig] = {}
        self._health: Dict[str, HealthState] = {}
        for provider in providers:
            if provider.name in self._providers:
                raise ValueError(f"Duplicate provider registration: {provider.name}")
            self._providers[provider.name] = provider
            self._configs[provider.name] = known_configs.get(provider.name, ProviderRuntimeConfig())
            self._health[provider.name] = HealthState()

    def names(self) -> List[str]:
        return list(self._providers)

    def get(self, name: str) -> Optional[ImageProvider]:
        return self._providers.get(name)

    def config(self, name: str) -> Optional[ProviderRuntimeConfig]:
        with self._lock:
            return self._configs.get(name)

    def health(self, name: str) -> Optional[HealthState]:
        with self._lock:
            return self._health.get(name)

    def set_health(self, name: str, state: HealthState) -> None:
        if name not in self._providers:
            return
        with self._lock:
            previous = self._health.get(name)
            self._health[name] = state
        if previous is not None and previous.healthy != state.healthy:
            logger.info("provider_health_changed", provider=name, healthy=state.healthy)

    def _set_enabled(self, name: str, enabled: bool) -> bool:
        if name not in self._providers:
            return False
        with self._lock:
            self._configs[name] = replace(self._configs[name], enabled=enabled)
        logger.info("provider_toggled", provider=name, enabled=enabled)
        return True

    def enable(self, name: str) -> bool:
        return self._set_enabled(name, True)

    def disable(self, name: str) -> bool:
        return self._set_enabled(name, False)

    def is_available(self, name: str) -> bool:
        if name not in self._providers:
            return False
        with self._lock:
            return self._configs[name].enabled and self._health[name].healthy

    def available(self) -> List[str]:
        return [name for name in self._providers if self.is_available(name)]

    def status(self) -> Dict[str, Dict[str, Any]]:
        snapshot: Dict[str, Dict[str, Any]] = {}
        for name, provider in self._providers.items():
            config = self.config(name) or ProviderRuntimeConfig()
            health = self.health(name) or HealthState()
            snapshot[name] = {
                "name": name,
                "enabled": config.enabled,
                "healthy": health.healthy,
                "available": config.enabled and health.healthy,
                "priority": config.priority,
                "max_retries": config.max_retries,
                "last_checked_at": health.last_checked_at.isoformat() if health.last_checked_at else None,
                "capabilities": provider.capabilities(),
            }
        return snapshot


def build_registry(
    settings: Settings,
    *,
    overrides: Optional[ProviderOverrides] = None,
    client: Optional[httpx.AsyncClient] = None,
    sleep: SleepFn = asyncio.sleep,
) -> ProviderRegistry:
    """Construct the registry from settings credentials and YAML overrides."""

    configs = resolve_runtime_configs(overrides if overrides is not None else load_provider_overrides())
    providers = build_providers(
        settings,
        max_retries={name: config.max_retries for name, config in configs.items()},
        client=client,
        sleep=sleep,
    )
    return ProviderRegistry(providers, configs)
