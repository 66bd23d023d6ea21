"""Schemas for provider management endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ProviderCapabilitiesItem(BaseModel):
    max_image_size: tuple[int, int]
    supported_sizes: list[str]
    supported_formats: list[str]
    max_prompt_length: int
    supports_negative_prompts: bool
    supports_style_presets: bool
    max_batch_size: int
    cost_per_image: float


class ProviderStatusItem(BaseModel):
    name: str
    enabled: bool
    healthy: bool
    available: bool
    priority: int
    max_retries: int
    last_checked_at: Optional[str] = None
    capabilities: ProviderCapabilitiesItem


class ProviderStatusResponse(BaseModel):
    providers: list[ProviderStatusItem]


class AvailableProvidersResponse(BaseModel):
    providers: list[str]


class ProviderToggleResponse(BaseModel):
    name: str
    enabled: bool
