"""Provider management API routes."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_manager
from src.orchestration.manager import ProviderManager
from src.schemas.providers import (
    AvailableProvidersResponse,
    ProviderCapabilitiesItem,
    ProviderStatusItem,
    ProviderStatusResponse,
    ProviderToggleResponse,
)


router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("", response_model=ProviderStatusResponse)
def provider_status(manager: ProviderManager = Depends(get_manager)) -> ProviderStatusResponse:
    items = []
    for entry in manager.provider_status().values():
        payload = dict(entry)
        payload["capabilities"] = ProviderCapabilitiesItem(**asdict(entry["capabilities"]))
        items.append(ProviderStatusItem(**payload))
    return ProviderStatusResponse(providers=items)


@router.get("/available", response_model=AvailableProvidersResponse)
def available_providers(manager: ProviderManager = Depends(get_manager)) -> AvailableProvidersResponse:
    return AvailableProvidersResponse(providers=manager.available_providers())


@router.post("/{name}/enable", response_model=ProviderToggleResponse)
def enable_provider(name: str, manager: ProviderManager = Depends(get_manager)) -> ProviderToggleResponse:
    if not manager.enable_provider(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Provider {name} not registered")
    return ProviderToggleResponse(name=name, enabled=True)


@router.post("/{name}/disable", response_model=ProviderToggleResponse)
def disable_provider(name: str, manager: ProviderManager = Depends(get_manager)) -> ProviderToggleResponse:
    if not manager.disable_provider(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Provider {name} not registered")
    return ProviderToggleResponse(name=name, enabled=False)
