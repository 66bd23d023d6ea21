"""Request-scoped accessors for services built at application startup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status

from src.orchestration.health import HealthMonitor
from src.orchestration.manager import ProviderManager
from src.orchestration.registry import ProviderRegistry
from src.prompts.enhancer import PromptEnhancer
from src.prompts.templates import TemplateService
from src.storage.cache import CacheService

SERVICES_STATE_KEY = "services"


@dataclass
class AppServices:
    registry: ProviderRegistry
    manager: ProviderManager
    enhancer: PromptEnhancer
    templates: TemplateService
    cache: Optional[CacheService] = None
    monitor: Optional[HealthMonitor] = None


def install_services(app: FastAPI, services: Optional[AppServices]) -> None:
    setattr(app.state, SERVICES_STATE_KEY, services)


def current_services(app: FastAPI) -> Optional[AppServices]:
    return getattr(app.state, SERVICES_STATE_KEY, None)


def get_services(request: Request) -> AppServices:
    services = current_services(request.app)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Image providers not initialized")
    return services


def get_manager(request: Request) -> ProviderManager:
    return get_services(request).manager


def get_enhancer(request: Request) -> PromptEnhancer:
    return get_services(request).enhancer


def get_templates(request: Request) -> TemplateService:
    return get_services(request).templates
