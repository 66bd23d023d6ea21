"""Schemas for image generation endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from src.prompts.templates import PromptCategory


class StylePreferencesPayload(BaseModel):
    art_style: Optional[str] = Field(default=None, max_length=80)
    lighting: Optional[str] = Field(default=None, max_length=80)
    mood: Optional[str] = Field(default=None, max_length=80)
    color_scheme: Optional[str] = Field(default=None, max_length=80)
    composition: Optional[str] = Field(default=None, max_length=80)
    camera_angle: Optional[str] = Field(default=None, max_length=80)

    def as_mapping(self) -> Dict[str, str]:
        return {key: value for key, value in self.model_dump().items() if value}


class ImageParamsPayload(BaseModel):
    negative_prompt: Optional[str] = Field(default=None, max_length=2000)
    width: Optional[int] = Field(default=None, ge=64, le=4096)
    height: Optional[int] = Field(default=None, ge=64, le=4096)
    quality: Optional[Literal["standard", "hd"]] = None
    style: Optional[str] = Field(default=None, max_length=40)
    count: int = Field(default=1, ge=1, le=10)
    seed: Optional[int] = Field(default=None, ge=0)
    provider: Optional[str] = Field(default=None, max_length=32)


class GenerateImageRequest(ImageParamsPayload):
    input: str = Field(min_length=1, max_length=4000)
    category: PromptCategory = PromptCategory.REALISTIC
    enhance: bool = True
    style_preferences: Optional[StylePreferencesPayload] = None
    template_id: Optional[str] = Field(default=None, max_length=64)
    optimize_for_provider: bool = False


class GenerateImageResponse(BaseModel):
    generation_id: str
    prompt_id: str
    status: str
    provider: str
    prompt: str
    enhanced: bool
    image_url: str
    thumbnail_url: str
    images: list[str]
    generation_time_ms: int
    cost: float
    settings: Dict[str, Any] = Field(default_factory=dict)


class EstimateCostRequest(ImageParamsPayload):
    prompt: str = Field(min_length=1, max_length=4000)


class CostEstimateItem(BaseModel):
    total_cost: float
    cost_per_image: float
    currency: str
    breakdown: Dict[str, float]


class EstimateCostResponse(BaseModel):
    estimates: Dict[str, CostEstimateItem]


class GenerationItem(BaseModel):
    id: str
    prompt_id: str
    status: str
    requested_provider: Optional[str]
    provider: Optional[str]
    image_url: Optional[str]
    thumbnail_url: Optional[str]
    generation_time_ms: Optional[int]
    cost_cents: Optional[int]
    error_message: Optional[str]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
