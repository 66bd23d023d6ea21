"""Provider manager: selection plus priority-ordered fallback."""

from __future__ import annotations

from datetime import datetime, timezone
import time
from typing import Any, Dict, List, Optional, Protocol

from src.core.config import Settings
from src.core.logger import get_logger
from src.core.metrics import record_provider_attempt
from src.core.observability import capture_exception, sentry_scope
from src.orchestration.registry import HealthState, ProviderRegistry
from src.orchestration.scoring import Selection, select_provider
from src.providers.base import (
    CostEstimate,
    ImageProvider,
    ImageResult,
    ProviderError,
    ProviderErrorCode,
    UnifiedRequest,
)
from src.providers.common import new_request_id

logger = get_logger("promptlens.orchestration.manager")


class MetricsCache(Protocol):
    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        ...


class AllProvidersFailedError(RuntimeError):
    """Raised when the primary provider and every fallback failed."""

    def __init__(self, last_error: Optional[BaseException]) -> None:
        detail = str(last_error) if last_error is not None else "no provider attempted"
        super().__init__(f"All providers failed. Last error: {detail}")
        self.last_error = last_error


class ProviderManager:
    """Pick a provider for each request and walk the fallback chain on failure."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        cache: Optional[MetricsCache] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._metrics_ttl_seconds = settings.provider_metrics_ttl_seconds if settings is not None else 86400

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def select(self, request: UnifiedRequest) -> Selection:
        return select_provider(self._registry, request)

    def fallback_order(self, exclude: str) -> List[str]:
        names = [name for name in self._registry.names() if name != exclude]
        return sorted(
            names,
            key=lambda name: (self._registry.config(name).priority if self._registry.config(name) else 0),
            reverse=True,
        )

    async def generate(self, request: UnifiedRequest, *, optimize: bool = False) -> ImageResult:
        request_id = new_request_id("pm")
        selection = self.select(request)
        logger.info(
            "provider_selected",
            provider_request_id=request_id,
            provider=selection.provider,
            reason=selection.reason,
            estimated_cost=selection.estimated_cost,
            confidence=selection.confidence,
            preferred_provider=request.provider,
        )

        last_error: Optional[BaseException] = None
        primary = self._registry.get(selection.provider)
        if primary is not None:
            try:
                return await self._attempt(primary, request, request_id=request_id, optimize=optimize)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "primary_provider_failed",
                    provider_request_id=request_id,
                    provider=selection.provider,
                    error=str(exc),
                )

        for name in self.fallback_order(selection.provider):
            provider = self._registry.get(name)
            if provider is None or not self._registry.is_available(name):
                continue
            if not provider.validate(request).valid:
                continue

            logger.info("fallback_provider_attempt", provider_request_id=request_id, provider=name)
            try:
                return await self._attempt(provider, request, request_id=request_id, optimize=optimize)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "fallback_provider_failed",
                    provider_request_id=request_id,
                    provider=name,
                    error=str(exc),
                )

        error = AllProvidersFailedError(last_error)
        logger.error("all_providers_failed", provider_request_id=request_id, error=str(error))
        raise error

    async def _attempt(
        self,
        provider: ImageProvider,
        request: UnifiedRequest,
        *,
        request_id: str,
        optimize: bool,
    ) -> ImageResult:
        started_at = time.perf_counter()
        outgoing = provider.optimize(request) if optimize else request
        try:
            with sentry_scope(request_id=request_id, provider=provider.name):
                result = await provider.generate(outgoing)
        except ProviderError as exc:
            if exc.code == ProviderErrorCode.UNAUTHORIZED:
                self._registry.set_health(
                    provider.name,
                    HealthState(healthy=False, last_checked_at=datetime.now(timezone.utc)),
                )
                logger.warning("provider_marked_unhealthy", provider=provider.name, reason="unauthorized")
            await self._record_attempt(provider.name, success=False, started_at=started_at)
            raise
        except Exception as exc:
            capture_exception(exc)
            await self._record_attempt(provider.name, success=False, started_at=started_at)
            raise

        await self._record_attempt(provider.name, success=True, started_at=started_at, cost=result.cost)
        return result

    async def _record_attempt(
        self,
        provider: str,
        *,
        success: bool,
        started_at: float,
        cost: Optional[float] = None,
    ) -> None:
        duration_seconds = time.perf_counter() - started_at
        timestamp_ms = int(time.time() * 1000)
        event: Dict[str, Any] = {
            "provider": provider,
            "success": success,
            "duration_ms": int(duration_seconds * 1000),
            "timestamp": timestamp_ms,
        }
        if success and cost is not None:
            event["cost"] = cost

        try:
            record_provider_attempt(
                provider=provider,
                success=success,
                duration_seconds=duration_seconds,
                cost_usd=cost,
            )
            if self._cache is not None:
                await self._cache.set(f"metrics:{provider}:{timestamp_ms}", event, self._metrics_ttl_seconds)
        except Exception as exc:
            logger.warning("provider_metric_record_failed", provider=provider, error=str(exc))

    def estimate_costs(self, request: UnifiedRequest) -> Dict[str, CostEstimate]:
        estimates: Dict[str, CostEstimate] = {}
        for name in self._registry.available():
            provider = self._registry.get(name)
            if provider is not None and provider.validate(request).valid:
                estimates[name] = provider.estimate_cost(request)
        return estimates

    def provider_status(self) -> Dict[str, Dict[str, Any]]:
        return self._registry.status()

    def available_providers(self) -> List[str]:
        return self._registry.available()

    def enable_provider(self, name: str) -> bool:
        return self._registry.enable(name)

    def disable_provider(self, name: str) -> bool:
        return self._registry.disable(name)
