from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import src.api.main as api_main
from src.api.dependencies import AppServices, install_services
from src.core.config import get_settings
from src.orchestration.manager import ProviderManager
from src.orchestration.registry import ProviderRegistry, ProviderRuntimeConfig
from src.prompts.enhancer import PromptEnhancer
from src.prompts.templates import TemplateService
from src.providers.base import (
    CostEstimate,
    ImageProvider,
    ImageResult,
    ProviderCapabilities,
    UnifiedRequest,
    ValidationResult,
)
from src.storage.cache import CacheService
from src.storage.db import Base, build_session_factory, engine_options, get_session, load_models


Outcome = Union[ImageResult, BaseException]


class FakeProvider(ImageProvider):
    def __init__(
        self,
        name: str,
        *,
        cost_per_image: float = 0.04,
        max_width: int = 1024,
        supports_negative_prompts: bool = False,
        supports_style_presets: bool = False,
        max_prompt_length: int = 4000,
        validation_errors: Sequence[str] = (),
        outcomes: Sequence[Outcome] = (),
        healthy: Union[bool, BaseException] = True,
    ) -> None:
        self.name = name
        self.max_retries = 1
        self._cost_per_image = cost_per_image
        self._max_width = max_width
        self._supports_negative_prompts = supports_negative_prompts
        self._supports_style_presets = supports_style_presets
        self._max_prompt_length = max_prompt_length
        self.validation_errors = list(validation_errors)
        self._outcomes = list(outcomes)
        self.healthy = healthy
        self.calls: List[UnifiedRequest] = []
        self.health_checks = 0

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size=(self._max_width, self._max_width),
            supported_sizes=(f"{self._max_width}x{self._max_width}",),
            supported_formats=("png",),
            max_prompt_length=self._max_prompt_length,
            supports_negative_prompts=self._supports_negative_prompts,
            supports_style_presets=self._supports_style_presets,
            max_batch_size=1,
            cost_per_image=self._cost_per_image,
        )

    def validate(self, request: UnifiedRequest) -> ValidationResult:
        return ValidationResult.from_errors(self.validation_errors)

    def estimate_cost(self, request: UnifiedRequest) -> CostEstimate:
        return CostEstimate(total_cost=self._cost_per_image, cost_per_image=self._cost_per_image)

    def optimize(self, request: UnifiedRequest) -> UnifiedRequest:
        return request

    async def generate(self, request: UnifiedRequest) -> ImageResult:
        self.calls.append(request)
        outcome: Optional[Outcome] = self._outcomes.pop(0) if self._outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is not None:
            return outcome
        return make_result(self.name, prompt=request.prompt, cost=self._cost_per_image)

    async def check_health(self) -> bool:
        self.health_checks += 1
        if isinstance(self.healthy, BaseException):
            raise self.healthy
        return self.healthy


def make_result(provider: str, *, prompt: str = "a prompt", cost: float = 0.04) -> ImageResult:
    url = f"https://images.example.com/{provider}.png"
    return ImageResult(
        id=f"{provider}_1",
        provider=provider,
        image_url=url,
        thumbnail_url=url,
        prompt=prompt,
        generation_time_ms=12,
        cost=cost,
        settings={"size": "1024x1024"},
        images=[url],
    )


def runtime_config(priority: int, **overrides: Any) -> ProviderRuntimeConfig:
    return ProviderRuntimeConfig(priority=priority, **overrides)


class FakeCache:
    def __init__(self, *, fail: bool = False) -> None:
        self.store: Dict[str, Any] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail = fail

    async def get(self, key: str) -> Any:
        if self.fail:
            raise ConnectionError("cache down")
        return self.store.get(key)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if self.fail:
            raise ConnectionError("cache down")
        self.store[key] = value
        self.ttls[key] = ttl_seconds
        return True


class FakeAsyncRedis:
    def __init__(self, *, fail: bool = False) -> None:
        self.store: Dict[str, str] = {}
        self.expirations: Dict[str, int] = {}
        self.fail = fail

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def get(self, key: str):
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value: str):
        self._check()
        self.store[key] = value
        return True

    async def setex(self, key: str, ttl: int, value: str):
        self._check()
        self.store[key] = value
        self.expirations[key] = ttl
        return True

    async def delete(self, key: str):
        self._check()
        return 1 if self.store.pop(key, None) is not None else 0

    async def ping(self):
        self._check()
        return True


def build_sqlite_session_factory() -> sessionmaker:
    load_models()
    url = "sqlite+pysqlite://"
    engine = create_engine(url, **engine_options(url))
    Base.metadata.create_all(engine)
    return build_session_factory(engine)


@dataclass
class ApiTestContext:
    client: TestClient
    session_factory: sessionmaker
    registry: ProviderRegistry
    services: AppServices
    cache: CacheService
    redis: FakeAsyncRedis


def create_api_test_context(
    providers: Sequence[ImageProvider],
    *,
    configs: Optional[Dict[str, ProviderRuntimeConfig]] = None,
    enhancer_client: Any = None,
) -> ApiTestContext:
    get_settings.cache_clear()
    settings = get_settings()
    session_factory = build_sqlite_session_factory()
    redis = FakeAsyncRedis()
    cache = CacheService(redis)
    registry = ProviderRegistry(providers, configs)
    services = AppServices(
        registry=registry,
        manager=ProviderManager(registry, cache=cache, settings=settings),
        enhancer=PromptEnhancer(settings=settings, cache=cache, client=enhancer_client),
        templates=TemplateService(),
        cache=cache,
    )

    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    api_main.app.dependency_overrides[get_session] = override_get_session
    install_services(api_main.app, services)

    return ApiTestContext(
        client=TestClient(api_main.app),
        session_factory=session_factory,
        registry=registry,
        services=services,
        cache=cache,
        redis=redis,
    )


def teardown_api_test_context() -> None:
    api_main.app.dependency_overrides.clear()
    install_services(api_main.app, None)
    get_settings.cache_clear()
