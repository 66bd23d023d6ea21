"""OpenAI DALL-E 3 image generation provider."""

from __future__ import annotations

import asyncio
from dataclasses import replace
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


SUPPORTED_SIZES = ("1024x1024", "1024x1792", "1792x1024")
MAX_PROMPT_LENGTH = 4000
SD_ONLY_TERMS = ("masterpiece", "best quality", "highly detailed", "ultra realistic")

logger = get_logger("promptlens.providers.dalle")


def _per_image_cost(*, hd: bool, large: bool) -> float:
    if large:
        return 0.12 if hd else 0.08
    return 0.08 if hd else 0.04


def nearest_supported_size(width: int, height: int) -> str:
    best = SUPPORTED_SIZES[0]
    best_distance: Optional[int] = None
    for size in SUPPORTED_SIZES:
        w, h = (int(part) for part in size.split("x"))
        distance = abs(width - w) + abs(height - h)
        if best_distance is None or distance < best_distance:
            best, best_distance = size, distance
    return best


def optimize_prompt_for_dalle(prompt: str) -> str:
    """DALL-E prefers plain descriptions; drop diffusion jargon."""

    optimized = prompt
    for term in SD_ONLY_TERMS:
        optimized = re.sub(re.escape(term), "", optimized, flags=re.IGNORECASE)
    optimized = re.sub(r"\s+", " ", optimized).strip()
    if len(optimized.split(" ")) < 10:
        optimized += ", high quality, detailed"
    return optimized


class DalleImageProvider(ImageProvider):
    name = "dalleE3"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: int = 60,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._api_key = api_key.strip()
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
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        if self._client is not None:
            return await self._client.request(method, url, headers=self._headers(), **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await client.request(method, url, headers=self._headers(), **kwargs)

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size=(1792, 1792),
            supported_sizes=SUPPORTED_SIZES,
            supported_formats=("png",),
            max_prompt_length=MAX_PROMPT_LENGTH,
            supports_negative_prompts=False,
            supports_style_presets=True,
            max_batch_size=1,
            cost_per_image=0.04,
        )

    def validate(self, request: UnifiedRequest) -> ValidationResult:
        errors: List[str] = []

        if not request.prompt or not request.prompt.strip():
            errors.append("Prompt is required")
        if request.prompt and len(request.prompt) > MAX_PROMPT_LENGTH:
            errors.append(f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters")
        if request.count and request.count > 1:
            errors.append("DALL-E 3 only supports generating 1 image at a time")

        width, height = standardize_size(request.width, request.height)
        size = f"{width}x{height}"
        if size not in SUPPORTED_SIZES:
            errors.append(f"Invalid size {size}. Supported sizes: {', '.join(SUPPORTED_SIZES)}")
        if request.negative_prompt:
            errors.append("DALL-E 3 does not support negative prompts")
        if request.seed is not None:
            errors.append("DALL-E 3 does not support seed parameter")

        return ValidationResult.from_errors(errors)

    def estimate_cost(self, request: UnifiedRequest) -> CostEstimate:
        width, height = standardize_size(request.width, request.height)
        hd = request.quality == "hd"
        large = width > 1024 or height > 1024
        cost_per_image = _per_image_cost(hd=hd, large=large)
        count = min(request.count or 1, 1)

        return CostEstimate(
            total_cost=cost_per_image * count,
            cost_per_image=cost_per_image,
            breakdown={
                "base_images": cost_per_image * count,
                "quality_upgrade": cost_per_image * 0.5 * count if hd else 0.0,
                "size_upgrade": cost_per_image * 0.25 * count if large else 0.0,
            },
        )

    def optimize(self, request: UnifiedRequest) -> UnifiedRequest:
        return replace(request, prompt=optimize_prompt_for_dalle(request.prompt))

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

            width, height = standardize_size(request.width, request.height)
            size = nearest_supported_size(width, height)
            body = {
                "model": "dall-e-3",
                "prompt": truncate_prompt(request.prompt, MAX_PROMPT_LENGTH),
                "n": 1,
                "size": size,
                "quality": "hd" if request.quality == "hd" else "standard",
                "style": "natural" if request.style == "natural" else "vivid",
                "response_format": "url",
            }

            async def _call() -> httpx.Response:
                return ensure_success(await self._request("POST", "/images/generations", json=body))

            response = await retry_with_backoff(
                _call,
                provider=self.name,
                max_attempts=self.max_retries,
                base_delay=self.retry_base_delay,
                sleep=self._sleep,
            )
            payload = response_json(response, context="DALL-E generation")
            data = payload.get("data")
            urls = [
                str(item["url"])
                for item in (data if isinstance(data, list) else [])
                if isinstance(item, dict) and item.get("url")
            ]
            if not urls:
                raise ProviderError("No image URL returned from DALL-E")

            cost = _per_image_cost(hd=body["quality"] == "hd", large=size != "1024x1024")
            result = ImageResult(
                id=request_id,
                provider=self.name,
                image_url=urls[0],
                thumbnail_url=urls[0],
                prompt=request.prompt,
                generation_time_ms=elapsed_ms(started_at),
                cost=cost,
                settings={"size": size, "quality": body["quality"], "style": body["style"]},
                images=urls,
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
            response = await self._request("GET", "/models")
            if response.status_code != 200:
                return False
            payload = response_json(response, context="DALL-E model listing")
            models = payload.get("data") or []
            return any("dall-e" in str(model.get("id", "")) for model in models if isinstance(model, dict))
        except Exception as exc:
            logger.error("provider_health_check_failed", provider=self.name, error=str(exc))
            return False
