"""Prompt-to-image generation flow with persisted generation records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from src.core.logger import get_logger
from src.orchestration.manager import ProviderManager
from src.prompts.enhancer import PromptEnhancer
from src.prompts.templates import PromptCategory
from src.providers.base import ImageResult, UnifiedRequest
from src.storage.models import ImageGeneration, PromptRecord

logger = get_logger("promptlens.generation.service")


@dataclass(frozen=True)
class GenerationOutcome:
    generation_id: str
    prompt_id: str
    status: str
    provider: str
    prompt: str
    image_url: str
    thumbnail_url: str
    images: List[str] = field(default_factory=list)
    generation_time_ms: int = 0
    cost: float = 0.0
    enhanced: bool = False
    settings: Dict[str, Any] = field(default_factory=dict)


def _json_dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(dict(payload), separators=(",", ":"), ensure_ascii=True, sort_keys=True, default=str)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def cost_to_cents(cost: float) -> int:
    return int(round(max(cost, 0.0) * 100))


def _record_pending(
    session: Session,
    *,
    text: str,
    prompt_text: str,
    category: PromptCategory,
    template_id: Optional[str],
    style_preferences: Optional[Mapping[str, Optional[str]]],
    provider: Optional[str],
) -> Tuple[str, str]:
    prompt_record = PromptRecord(
        original_input=text,
        enhanced_prompt=prompt_text,
        category=category.value,
        template_id=template_id,
        style_preferences_json=_json_dumps({k: v for k, v in (style_preferences or {}).items() if v}),
    )
    session.add(prompt_record)
    session.flush()

    generation = ImageGeneration(
        prompt_id=prompt_record.id,
        requested_provider=provider,
        status="processing",
    )
    session.add(generation)
    session.flush()
    ids = (prompt_record.id, generation.id)
    session.commit()
    return ids


def _record_failure(session: Session, generation_id: str, error: str) -> None:
    generation = session.get(ImageGeneration, generation_id)
    if generation is None:
        return
    generation.status = "failed"
    generation.error_message = error
    generation.completed_at = _now_utc()
    session.commit()


def _record_success(session: Session, generation_id: str, image: ImageResult) -> None:
    generation = session.get(ImageGeneration, generation_id)
    if generation is None:
        return
    generation.status = "completed"
    generation.provider = image.provider
    generation.image_url = image.image_url
    generation.thumbnail_url = image.thumbnail_url
    generation.generation_time_ms = image.generation_time_ms
    generation.cost_cents = cost_to_cents(image.cost)
    generation.metadata_json = _json_dumps(
        {
            "provider_result_id": image.id,
            "image_count": len(image.images),
            "cost_usd": image.cost,
            "settings": image.settings,
        }
    )
    generation.completed_at = _now_utc()
    session.commit()


async def generate_image_for_prompt(
    session: Session,
    *,
    manager: ProviderManager,
    text: str,
    category: PromptCategory = PromptCategory.REALISTIC,
    enhancer: Optional[PromptEnhancer] = None,
    enhance: bool = True,
    style_preferences: Optional[Mapping[str, Optional[str]]] = None,
    template_id: Optional[str] = None,
    negative_prompt: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
    quality: Optional[str] = None,
    style: Optional[str] = None,
    count: int = 1,
    seed: Optional[int] = None,
    provider: Optional[str] = None,
    optimize_for_provider: bool = False,
) -> GenerationOutcome:
    """Optionally enhance ``text``, then generate and record the image.

    Database work runs in the threadpool so the event loop only waits on the
    provider call. Orchestration errors propagate after the generation row is
    marked failed.
    """

    prompt_text = text.strip()
    enhanced = False
    if enhance and enhancer is not None:
        result = await enhancer.enhance(prompt_text, category, style_preferences)
        prompt_text = result.enhanced
        enhanced = True

    prompt_id, generation_id = await run_in_threadpool(
        _record_pending,
        session,
        text=text,
        prompt_text=prompt_text,
        category=category,
        template_id=template_id,
        style_preferences=style_preferences,
        provider=provider,
    )

    request = UnifiedRequest(
        prompt=prompt_text,
        negative_prompt=negative_prompt,
        width=width,
        height=height,
        quality=quality,
        style=style,
        count=count,
        seed=seed,
        provider=provider,
    )

    try:
        image = await manager.generate(request, optimize=optimize_for_provider)
    except Exception as exc:
        await run_in_threadpool(_record_failure, session, generation_id, str(exc))
        logger.error(
            "image_generation_failed",
            generation_id=generation_id,
            requested_provider=provider,
            error=str(exc),
        )
        raise

    await run_in_threadpool(_record_success, session, generation_id, image)

    logger.info(
        "image_generation_completed",
        generation_id=generation_id,
        provider=image.provider,
        duration_ms=image.generation_time_ms,
        cost=image.cost,
    )
    return GenerationOutcome(
        generation_id=generation_id,
        prompt_id=prompt_id,
        status="completed",
        provider=image.provider,
        prompt=prompt_text,
        image_url=image.image_url,
        thumbnail_url=image.thumbnail_url,
        images=list(image.images),
        generation_time_ms=image.generation_time_ms,
        cost=image.cost,
        enhanced=enhanced,
        settings=dict(image.settings),
    )


def get_generation(session: Session, generation_id: str) -> Optional[ImageGeneration]:
    return session.scalar(select(ImageGeneration).where(ImageGeneration.id == generation_id))
