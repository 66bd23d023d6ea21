"""Google Vertex AI Imagen image generation provider."""

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
    ProviderErrorCode,
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


MAX_PROMPT_LENGTH = 2048
MAX_BATCH_SIZE = 4
BASE_IMAGE_COST = 0.03
COST_PER_1000_CHARS = 0.0008
TOKEN_EXPIRY_SKEW_SECONDS = 60
CAMERA_TERMS = ("ISO", "aperture", "f/1.4", "depth of field")

ASPECT_RATIOS = (
    ("1:1", 1.0),
    ("16:9", 16 / 9),
    ("9:16", 9 / 16),
    ("4:3", 4 / 3),
    ("3:4", 3 / 4),
)

logger = get_logger("promptlens.providers.imagen")


def aspect_ratio_for(width: int, height: int) -> str:
    """Closest supported aspect ratio; ties go to the earlier entry."""

    ratio = width / height
    label, _ = min(ASPECT_RATIOS, key=lambda item: abs(ratio - item[1]))
    return label


def optimize_prompt_for_imagen(prompt: str) -> str:
    optimized = prompt
    for term in CAMERA_TERMS:
        optimized = re.sub(re.escape(term), "", optimized, flags=re.IGNORECASE)
    if len(optimized.split(" ")) < 8:
        optimized += ", detailed, high quality"
    return re.sub(r"\s+", " ", optimized).strip()


def _prompt_cost(prompt: str, negative_prompt: Optional[str]) -> float:
    characters = len(prompt) + len(negative_prompt or "")
    return characters / 1000 * COST_PER_1000_CHARS


class ImagenImageProvider(ImageProvider):
    name = "imagen4"

    def __init__(
        self,
        *,
        project_id: str,
        location: str = "us-central1",
        model: str = "imagen-3.0-generate-002",
        access_token: str = "",
        metadata_token_url: str = (
            "http://metadata.google.internal/computeMetadata/v1/instance/service-accounts/default/token"
        ),
        timeout_seconds: int = 60,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._project_id = project_id.strip()
        self._location = location.strip() or "us-central1"
        self._model = model.strip()
        self._static_token = access_token.strip()
        self._metadata_token_url = metadata_token_url
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client
        self._sleep = sleep
        self._cached_token: Optional[str] = None
        self._cached_token_expires_at = 0.0
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    @property
    def base_url(self) -> str:
        return f"https://{self._location}-aiplatform.googleapis.com/v1"

    def _predict_url(self) -> str:
        return (
            f"{self.base_url}/projects/{self._project_id}/locations/{self._location}"
            f"/publishers/google/models/{self._model}:predict"
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            return await client.request(method, url, **kwargs)

    async def access_token(self) -> str:
        """Return a cloud IAM bearer token, from config or the metadata server."""

        if self._static_token:
            return self._static_token
        if self._cached_token and time.time() < self._cached_token_expires_at:
            return self._cached_token

        response = await self._send("GET", self._metadata_token_url, headers={"Metadata-Flavor": "Google"})
        if response.status_code != 200:
            raise ProviderError(
                f"Failed to obtain Google Cloud access token (status={response.status_code})",
                code=ProviderErrorCode.UNAUTHORIZED,
                status_code=response.status_code,
            )
        payload = response_json(response, context="Google metadata token")
        token = str(payload.get("access_token") or "").strip()
        if not token:
            raise ProviderError("Failed to obtain Google Cloud access token", code=ProviderErrorCode.UNAUTHORIZED)

        expires_in = int(payload.get("expires_in") or 0)
        self._cached_token = token
        self._cached_token_expires_at = time.time() + max(expires_in - TOKEN_EXPIRY_SKEW_SECONDS, 0)
        return token

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            max_image_size=(1536, 1536),
            supported_sizes=tuple(label for label, _ in ASPECT_RATIOS),
            supported_formats=("png", "jpeg"),
            max_prompt_length=MAX_PROMPT_LENGTH,
            supports_negative_prompts=True,
            supports_style_presets=False,
            max_batch_size=MAX_BATCH_SIZE,
            cost_per_image=BASE_IMAGE_COST,
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
            errors.append(f"Imagen supports maximum {MAX_BATCH_SIZE} images per request")
        if request.seed is not None:
            errors.append("Imagen does not support seed parameter")
        if not self._project_id:
            errors.append("Google Cloud project is not configured")

        return ValidationResult.from_errors(errors)

    def estimate_cost(self, request: UnifiedRequest) -> CostEstimate:
        character_cost = _prompt_cost(request.prompt, request.negative_prompt)
        count = min(request.count or 1, MAX_BATCH_SIZE)
        image_cost = BASE_IMAGE_COST * count
        total_cost = character_cost + image_cost

        return CostEstimate(
            total_cost=total_cost,
            cost_per_image=total_cost / count,
            breakdown={
                "character_processing": character_cost,
                "image_generation": image_cost,
            },
        )

    def optimize(self, request: UnifiedRequest) -> UnifiedRequest:
        return replace(request, prompt=optimize_prompt_for_imagen(request.prompt))

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

            token = await self.access_token()
            width, height = standardize_size(request.width, request.height)
            aspect_ratio = aspect_ratio_for(width, height)
            image_count = min(request.count or 1, MAX_BATCH_SIZE)
            prompt = truncate_prompt(request.prompt, MAX_PROMPT_LENGTH)
            instance: Dict[str, Any] = {
                "prompt": prompt,
                "negativePrompt": request.negative_prompt or "",
                "imageCount": image_count,
                "aspectRatio": aspect_ratio,
                "personGeneration": "allow",
                "safetyFilterLevel": "block_some",
                "addWatermark": False,
            }
            body = {"instances": [instance], "parameters": {"sampleCount": image_count}}
            headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

            async def _call() -> httpx.Response:
                return ensure_success(await self._send("POST", self._predict_url(), json=body, headers=headers))

            response = await retry_with_backoff(
                _call,
                provider=self.name,
                max_attempts=self.max_retries,
                base_delay=self.retry_base_delay,
                sleep=self._sleep,
            )
            payload = response_json(response, context="Imagen prediction")
            predictions = payload.get("predictions")
            images = [
                f"data:{item.get('mimeType') or 'image/png'};base64,{item['bytesBase64Encoded']}"
                for item in (predictions if isinstance(predictions, list) else [])
                if isinstance(item, dict) and item.get("bytesBase64Encoded")
            ]
            if not images:
                raise ProviderError("No images returned from Imagen")

            result = ImageResult(
                id=request_id,
                provider=self.name,
                image_url=images[0],
                thumbnail_url=images[0],
                prompt=request.prompt,
                generation_time_ms=elapsed_ms(started_at),
                cost=BASE_IMAGE_COST + _prompt_cost(prompt, request.negative_prompt),
                settings={
                    "aspect_ratio": aspect_ratio,
                    "image_count": image_count,
                    "safety_level": instance["safetyFilterLevel"],
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
            return bool(await self.access_token())
        except Exception as exc:
            logger.error("provider_health_check_failed", provider=self.name, error=str(exc))
            return False
