"""Image generation API routes."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.api.dependencies import get_enhancer, get_manager
from src.generation.service import generate_image_for_prompt, get_generation
from src.orchestration.manager import AllProvidersFailedError, ProviderManager
from src.orchestration.scoring import NoProviderAvailableError
from src.prompts.enhancer import PromptEnhancementError, PromptEnhancer
from src.providers.base import UnifiedRequest
from src.schemas.generation import (
    CostEstimateItem,
    EstimateCostRequest,
    EstimateCostResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    GenerationItem,
)
from src.storage.db import get_session


router = APIRouter(prefix="/images", tags=["images"])


def _safe_json_dict(value: str | None) -> dict:
    if not value:
        return {}
    try:
        payload = json.loads(value)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post("/generate", response_model=GenerateImageResponse)
async def generate_image(
    payload: GenerateImageRequest,
    session: Session = Depends(get_session),
    manager: ProviderManager = Depends(get_manager),
    enhancer: PromptEnhancer = Depends(get_enhancer),
) -> GenerateImageResponse:
    try:
        outcome = await generate_image_for_prompt(
            session,
            manager=manager,
            enhancer=enhancer,
            text=payload.input,
            category=payload.category,
            enhance=payload.enhance,
            style_preferences=payload.style_preferences.as_mapping() if payload.style_preferences else None,
            template_id=payload.template_id,
            negative_prompt=payload.negative_prompt,
            width=payload.width,
            height=payload.height,
            quality=payload.quality,
            style=payload.style,
            count=payload.count,
            seed=payload.seed,
            provider=payload.provider,
            optimize_for_provider=payload.optimize_for_provider,
        )
    except NoProviderAvailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except (AllProvidersFailedError, PromptEnhancementError) as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return GenerateImageResponse(
        generation_id=outcome.generation_id,
        prompt_id=outcome.prompt_id,
        status=outcome.status,
        provider=outcome.provider,
        prompt=outcome.prompt,
        enhanced=outcome.enhanced,
        image_url=outcome.image_url,
        thumbnail_url=outcome.thumbnail_url,
        images=outcome.images,
        generation_time_ms=outcome.generation_time_ms,
        cost=outcome.cost,
        settings=outcome.settings,
    )


@router.post("/estimate", response_model=EstimateCostResponse)
def estimate_cost(
    payload: EstimateCostRequest,
    manager: ProviderManager = Depends(get_manager),
) -> EstimateCostResponse:
    request = UnifiedRequest(
        prompt=payload.prompt,
        negative_prompt=payload.negative_prompt,
        width=payload.width,
        height=payload.height,
        quality=payload.quality,
        style=payload.style,
        count=payload.count,
        seed=payload.seed,
        provider=payload.provider,
    )
    estimates = manager.estimate_costs(request)
    return EstimateCostResponse(
        estimates={
            name: CostEstimateItem(
                total_cost=estimate.total_cost,
                cost_per_image=estimate.cost_per_image,
                currency=estimate.currency,
                breakdown=dict(estimate.breakdown),
            )
            for name, estimate in estimates.items()
        }
    )


@router.get("/{generation_id}", response_model=GenerationItem)
def read_generation(
    generation_id: str,
    session: Session = Depends(get_session),
) -> GenerationItem:
    generation = get_generation(session, generation_id)
    if generation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generation not found")

    return GenerationItem(
        id=generation.id,
        prompt_id=generation.prompt_id,
        status=generation.status,
        requested_provider=generation.requested_provider,
        provider=generation.provider,
        image_url=generation.image_url,
        thumbnail_url=generation.thumbnail_url,
        generation_time_ms=generation.generation_time_ms,
        cost_cents=generation.cost_cents,
        error_message=generation.error_message,
        metadata=_safe_json_dict(generation.metadata_json),
        created_at=generation.created_at,
        completed_at=generation.completed_at,
    )
