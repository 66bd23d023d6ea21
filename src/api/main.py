"""FastAPI application entrypoint for promptlens."""

from __future__ import annotations

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from src.api.dependencies import AppServices, current_services, install_services
from src.core.config import Settings, get_settings
from src.core.logger import bind_request_context, clear_request_context, get_logger
from src.core.metrics import record_http_request, render_prometheus_metrics
from src.core.observability import init_sentry, sentry_scope
from src.generation.router import router as images_router
from src.orchestration.health import HealthMonitor
from src.orchestration.manager import ProviderManager
from src.orchestration.registry import build_registry
from src.orchestration.router import router as providers_router
from src.prompts.enhancer import PromptEnhancer
from src.prompts.router import router as prompts_router
from src.prompts.templates import TemplateService
from src.storage.cache import CacheService
from src.storage.db import load_models
from src.storage.db import test_connection as test_db_connection
from src.storage.redis_client import get_client as get_redis_client
from src.storage.redis_client import test_connection as test_redis_connection


settings = get_settings()
logger = get_logger("promptlens.api")


def build_services(app_settings: Settings) -> AppServices:
    cache = CacheService(get_redis_client())
    registry = build_registry(app_settings)
    return AppServices(
        registry=registry,
        manager=ProviderManager(registry, cache=cache, settings=app_settings),
        enhancer=PromptEnhancer(settings=app_settings, cache=cache),
        templates=TemplateService(),
        cache=cache,
        monitor=HealthMonitor(registry, interval_seconds=app_settings.health_monitor_interval_seconds),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_models()
    sentry_enabled = init_sentry()

    services = current_services(app)
    if services is None:
        services = build_services(settings)
        install_services(app, services)
    if services.monitor is not None:
        await services.monitor.start()

    logger.info(
        "application_startup",
        env=settings.env,
        version=settings.app_version,
        sentry_enabled=sentry_enabled,
        metrics_enabled=settings.metrics_enabled,
        providers=services.registry.names(),
        available_providers=services.registry.available(),
    )
    try:
        yield
    finally:
        if services.monitor is not None:
            await services.monitor.stop()
        logger.info("application_shutdown")


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started_at = perf_counter()
    request_id = request.headers.get("x-request-id", str(uuid4()))
    bind_request_context(request_id=request_id)

    response = None
    status_code = 500

    try:
        with sentry_scope(request_id=request_id):
            response = await call_next(request)
        status_code = int(response.status_code)
    finally:
        duration = perf_counter() - started_at
        if settings.metrics_enabled:
            record_http_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_seconds=duration,
            )
        clear_request_context()

    response.headers["x-request-id"] = request_id
    return response


@app.get("/health")
async def health(request: Request) -> JSONResponse:
    db_ok, db_error = test_db_connection()
    redis_ok, redis_error = await test_redis_connection()

    services = current_services(request.app)
    registered = services.registry.names() if services is not None else []
    available = services.registry.available() if services is not None else []

    healthy = db_ok and redis_ok and bool(available)
    status = "ok" if healthy else "degraded"

    payload = {
        "status": status,
        "env": settings.env,
        "services": {
            "database": {"ok": db_ok, "error": db_error},
            "redis": {"ok": redis_ok, "error": redis_error},
            "providers": {"ok": bool(available), "registered": registered, "available": available},
        },
    }

    return JSONResponse(content=payload, status_code=200 if healthy else 503)


@app.get("/version")
def version() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "env": settings.env,
    }


@app.get("/metrics")
def metrics() -> PlainTextResponse:
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled\n", status_code=404)

    payload = render_prometheus_metrics(
        app_name=settings.app_name,
        app_version=settings.app_version,
        env=settings.env,
    )
    return PlainTextResponse(
        payload,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(prompts_router)
app.include_router(images_router)
app.include_router(providers_router)
