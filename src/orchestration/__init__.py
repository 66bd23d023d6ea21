"""Provider selection, health monitoring and fallback orchestration."""

from src.orchestration.health import HealthMonitor
from src.orchestration.manager import AllProvidersFailedError, ProviderManager
from src.orchestration.registry import (
    DEFAULT_PROVIDER_CONFIGS,
    HealthState,
    ProviderRegistry,
    ProviderRuntimeConfig,
    build_registry,
    resolve_runtime_configs,
)
from src.orchestration.scoring import NoProviderAvailableError, Selection, rank_candidates, select_provider

__all__ = [
    "AllProvidersFailedError",
    "DEFAULT_PROVIDER_CONFIGS",
    "HealthMonitor",
    "HealthState",
    "NoProviderAvailableError",
    "ProviderManager",
    "ProviderRegistry",
    "ProviderRuntimeConfig",
    "Selection",
    "build_registry",
    "rank_candidates",
    "resolve_runtime_configs",
    "select_provider",
]
