"""Stability AI Stable Diffusion image generation provider."""

from __future__ import annotations

import asyncio
from dataclasses import replace
import math
import re
import time
from typing import Any, Dict, List, Optional

import httpx

from src.core.logger import get_logger
from src.providers.base import (
    CostEstimate,
    ImageProvider,
    ImageResult,
    ProviderCapabilities,
    ProviderError,
    ProviderValidationError,
    UnifiedRequest,
    ValidationResult,
)
from src.providers.common import (
    SleepFn,
    elapsed_ms,
    ensure_success,
    new_request_id,
    response_json,
    retry_with_backoff,
    standardize_size,
    truncate_prompt,
)


MAX_PROMPT_LENGTH = 2000
MAX_BATCH_SIZE = 10
MIN_DIMENSION = 128
MAX_DIMENSION = 2048
BASE_CREDITS = 10
COST_PER_CREDIT = 0.002
DEFAULT_NEGATIVE_PROMPT = "blurry, low quality, distorted, bad anatomy"
QUALITY_TERMS = ("masterpiece", "best quality", "highly detailed")
PHRASE_REPLACEMENTS = {
    "high resolution": "8k resolution",
    "good quality": "best quality",
    "nice": "beautiful",
    "photo": "photorealistic",
}
STYLE_PRESETS = (
    "anime",
    "digital-art",
    "photographic",
    "pixel-art",
    "comic-book",
    "fantasy-art",
    "line-art",
    "neon-punk",
    "origami",
)

logger = get_logger("promptlens.providers.stability")


def _credits_per_image(width: int, height: int) -> int:
    pixels = width * height
    base_pixels = 512 * 512
    if pixels <= base_pixels:
        return BASE_CREDITS
    return math.ceil(BASE_CREDITS * pixels / base_pixels)


def style_preset_for(style: Optional[str]) -> Optional[str]:
    if not style:
        return None
    normalized = style.strip().lower()
    return normalized if normalized in STYLE_PRESETS else None


def optimize_prompt_for_sd(prompt: str) -> str:
    optimized = prompt
    lowered = optimized.lower()
    if not any(term in lowered for term in QUALITY_TERMS):
        optimized += ", " + ", ".join(QUALITY_TERMS)
    for source, target in PHRASE_REPLACEMENTS.items():
        optimized = re.sub(rf"\b{re.escape(source)}\b", target, optimized, flags=re.IGNORECASE)
    return re.sub(r"\s+", " ", optimized).strip()


class StabilityImageProvider(ImageProvider):
    name = "stableDiffusion"

    def __init__(
        self,
        *,
        api_key: str,
        engine_id: str = "stable-diffusion-xl-1024-v1-0",
        base_url: str = "https://api.stability.ai/v1",
        timeout_seconds: int = 120,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._api_key = api_key.strip()
        self._engine_id = engine_id.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client
        self._sleep = sleep
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, headers=self._headers(), **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await client.request(method, url, headers=self._headers(), **kwargs)

    @staticmethod
    def normalize_size(width: Optional[int], height: Optional[int]) -> tuple[int, int]:
        return standardize_size(width, height, minimum=MIN_DIMENSION, maximum=MAX_DIMENSION)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size=(MAX_DIMENSION, MAX_DIMENSION),
            supported_sizes=("512x512", "768x768", "1024x1024", "1536x1536", "2048x2048"),
            supported_formats=("png",),
            max_prompt_length=MAX_PROMPT_LENGTH,
            supports_negative_prompts=True,
            supports_style_presets=True,
            max_batch_size=MAX_BATCH_SIZE,
            cost_per_image=0.02,
        )

    def validate(self, request: UnifiedRequest) -> ValidationResult:
        errors: List[str] = []

        if not request.prompt or not request.prompt.strip():
            errors.append("Prompt is required")
        if request.prompt and len(request.prompt) > MAX_PROMPT_LENGTH:
            errors.append(f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters")
        if request.negative_prompt and len(request.negative_prompt) > MAX_PROMPT_LENGTH:
            errors.append(f"Negative prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters")
        if request.count and request.count > MAX_BATCH_SIZE:
            errors.append(f"Stability AI supports maximum {MAX_BATCH_SIZE} images per request")

        width, height = self.normalize_size(request.width, request.height)
        if width < MIN_DIMENSION or height < MIN_DIMENSION:
            errors.append(f"Minimum image size is {MIN_DIMENSION}x{MIN_DIMENSION}")
        if width > MAX_DIMENSION or height > MAX_DIMENSION:
            errors.append(f"Maximum image size is {MAX_DIMENSION}x{MAX_DIMENSION}")
        if width % 64 != 0 or height % 64 != 0:
            errors.append("Image dimensions must be divisible by 64")

        return ValidationResult.from_errors(errors)

    def estimate_cost(self, request: UnifiedRequest) -> CostEstimate:
        width, height = self.normalize_size(request.width, request.height)
        credits = _credits_per_image(width, height)
        cost_per_image = credits * COST_PER_CREDIT
        count = min(request.count or 1, MAX_BATCH_SIZE)

        return CostEstimate(
            total_cost=cost_per_image * count,
            cost_per_image=cost_per_image,
            breakdown={
                "credits": float(credits * count),
                "base_generation": cost_per_image * count,
            },
        )

    def optimize(self, request: UnifiedRequest) -> UnifiedRequest:
        return replace(request, negative_prompt=request.negative_prompt or DEFAULT_NEGATIVE_PROMPT)

    async def generate(self, request: UnifiedRequest) -> ImageResult:
        request_id = new_request_id(self.name)
        started_at = time.perf_counter()
        logger.info(
            "provider_request",
            provider=self.name,
            provider_request_id=request_id,
            prompt=request.prompt[:100],
            size=f"{request.width or 1024}x{request.height or 1024}",
            quality=request.quality,
            count=request.count or 1,
        )

        try:
            validation = self.validate(request)
            if not validation.valid:
                raise ProviderValidationError(self.name, validation.errors)

            width, height = self.normalize_size(request.width, request.height)
            text_prompts = [
                {"text": truncate_prompt(optimize_prompt_for_sd(request.prompt), MAX_PROMPT_LENGTH), "weight": 1.0}
            ]
            if request.negative_prompt:
                text_prompts.append({"text": request.negative_prompt, "weight": -1.0})

            body: Dict[str, Any] = {
                "text_prompts": text_prompts,
                "cfg_scale": 7,
                "height": height,
                "width": width,
                "samples": min(request.count or 1, MAX_BATCH_SIZE),
                "steps": 30,
                "seed": request.seed or 0,
            }
            preset = style_preset_for(request.style)
            if preset:
                body["style_preset"] = preset

            async def _call() -> httpx.Response:
                return ensure_success(
                    await self._request("POST", f"/generation/{self._engine_id}/text-to-image", json=body)
                )

            response = await retry_with_backoff(
                _call,
                provider=self.name,
                max_attempts=self.max_retries,
                base_delay=self.retry_base_delay,
                sleep=self._sleep,
            )
            payload = response_json(response, context="Stability generation")
            artifacts = [
                item
                for item in (payload.get("artifacts") or [])
                if isinstance(item, dict) and item.get("base64")
            ]
            if not artifacts:
                raise ProviderError("No images returned from Stability AI")

            images = [f"data:image/png;base64,{item['base64']}" for item in artifacts]
            cost = _credits_per_image(width, height) * body["samples"] * COST_PER_CREDIT
            result = ImageResult(
                id=request_id,
                provider=self.name,
                image_url=images[0],
                thumbnail_url=images[0],
                prompt=request.prompt,
                generation_time_ms=elapsed_ms(started_at),
                cost=cost,
                settings={
                    "size": f"{width}x{height}",
                    "steps": body["steps"],
                    "cfg_scale": body["cfg_scale"],
                    "seed": artifacts[0].get("seed"),
                    "style_preset": preset,
                },
                images=images,
            )
        except Exception as exc:
            logger.error(
                "provider_request_failed",
                provider=self.name,
                provider_request_id=request_id,
                duration_ms=elapsed_ms(started_at),
                error=str(exc),
            )
            raise

        logger.info(
            "provider_response",
            provider=self.name,
            provider_request_id=request_id,
            image_count=len(result.images),
            cost=result.cost,
            duration_ms=result.generation_time_ms,
        )
        return result

    async def check_health(self) -> bool:
        try:
            response = await self._request("GET", "/user/balance")
            if response.status_code != 200:
                return False
            payload = response_json(response, context="Stability balance")
            return float(payload.get("credits") or 0) > 0
        except Exception as exc:
            logger.error("provider_health_check_failed", provider=self.name, error=str(exc))
            return False
