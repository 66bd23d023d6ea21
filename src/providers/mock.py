"""Deterministic mock image provider for local/dev usage."""

from __future__ import annotations

import hashlib
from typing import List

from src.providers.base import (
    CostEstimate,
    ImageProvider,
    ImageResult,
    ProviderCapabilities,
    ProviderValidationError,
    UnifiedRequest,
    ValidationResult,
)
from src.providers.common import new_request_id, standardize_size


MAX_PROMPT_LENGTH = 4000
MAX_BATCH_SIZE = 4


class MockImageProvider(ImageProvider):
    name = "mock"

    def __init__(self, *, max_retries: int = 1) -> None:
        self.max_retries = max_retries

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size=(2048, 2048),
            supported_sizes=("512x512", "1024x1024", "2048x2048"),
            supported_formats=("jpeg",),
            max_prompt_length=MAX_PROMPT_LENGTH,
            supports_negative_prompts=True,
            supports_style_presets=False,
            max_batch_size=MAX_BATCH_SIZE,
            cost_per_image=0.0,
        )

    def validate(self, request: UnifiedRequest) -> ValidationResult:
        errors: List[str] = []
        if not request.prompt or not request.prompt.strip():
            errors.append("Prompt is required")
        if request.prompt and len(request.prompt) > MAX_PROMPT_LENGTH:
            errors.append(f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters")
        if request.count and request.count > MAX_BATCH_SIZE:
            errors.append(f"Mock provider supports maximum {MAX_BATCH_SIZE} images per request")
        return ValidationResult.from_errors(errors)

    def estimate_cost(self, request: UnifiedRequest) -> CostEstimate:
        return CostEstimate(total_cost=0.0, cost_per_image=0.0, breakdown={"base_images": 0.0})

    def optimize(self, request: UnifiedRequest) -> UnifiedRequest:
        return request

    async def generate(self, request: UnifiedRequest) -> ImageResult:
        validation = self.validate(request)
        if not validation.valid:
            raise ProviderValidationError(self.name, validation.errors)

        width, height = standardize_size(request.width, request.height)
        count = min(request.count or 1, MAX_BATCH_SIZE)
        images = []
        for index in range(count):
            seed_source = f"{request.prompt}:{request.seed}:{width}x{height}:{index}".encode("utf-8")
            seed = hashlib.sha1(seed_source).hexdigest()[:16]
            images.append(f"https://picsum.photos/seed/{seed}/{width}/{height}")

        return ImageResult(
            id=new_request_id(self.name),
            provider=self.name,
            image_url=images[0],
            thumbnail_url=images[0],
            prompt=request.prompt,
            generation_time_ms=0,
            cost=0.0,
            settings={"size": f"{width}x{height}"},
            images=images,
        )

    async def check_health(self) -> bool:
        return True
