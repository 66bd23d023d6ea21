"""Expand short user phrases into detailed image prompts via a hosted LLM."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import re
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx

from src.core.config import Settings
from src.core.logger import get_logger
from src.core.metrics import record_prompt_cache_lookup
from src.prompts.templates import PromptCategory

logger = get_logger("promptlens.prompts.enhancer")

SUGGESTIONS_CACHE_TTL_SECONDS = 86400
MAX_ERROR_DETAIL_CHARS = 240

DESCRIPTIVE_WORDS = ("beautiful", "detailed", "vivid", "stunning", "dramatic", "professional", "high-quality")
TECHNICAL_TERMS = ("lighting", "composition", "depth of field", "bokeh", "resolution", "texture")

STYLE_PREFERENCE_LABELS = {
    "art_style": "Art Style",
    "lighting": "Lighting",
    "mood": "Mood",
    "color_scheme": "Color Scheme",
    "composition": "Composition",
    "camera_angle": "Camera Angle",
}

BASE_SYSTEM_PROMPT = """You are an expert AI image prompt writer specializing in creating detailed, vivid descriptions for AI image generation.

Your task is to enhance simple user inputs into rich, detailed prompts that will produce high-quality images.

CATEGORY: {category}

GUIDELINES:
- Transform simple inputs into detailed, descriptive prompts
- Add specific details about lighting, composition, style, mood
- Include technical photography/art terms when appropriate
- Be specific about colors, textures, materials
- Add atmospheric and environmental details
- Ensure prompts are 30-80 words long
- Maintain the core subject/intent of the original input
- Use vivid, sensory language"""

CATEGORY_GUIDELINES: Dict[PromptCategory, str] = {
    PromptCategory.PORTRAIT: """
- Focus on facial features, expressions, and emotions
- Include details about pose, clothing, and background
- Specify lighting setup (studio, natural, dramatic)
- Add details about hair, skin tone, and accessories""",
    PromptCategory.LANDSCAPE: """
- Describe the environment in detail (mountains, forests, water)
- Include weather conditions and time of day
- Specify the perspective and depth of field
- Add atmospheric elements (mist, clouds, sunlight)""",
    PromptCategory.CONCEPT: """
- Focus on abstract ideas and symbolic elements
- Include surreal or fantastical details
- Emphasize mood and atmosphere
- Use creative and imaginative descriptions""",
    PromptCategory.PRODUCT: """
- Include materials, textures, and finish details
- Specify lighting setup for product photography
- Add background and context information
- Focus on showcasing key features""",
    PromptCategory.ARCHITECTURE: """
- Detail the structural elements and materials
- Include environmental context and surroundings
- Specify architectural style and period
- Add lighting and weather conditions""",
    PromptCategory.ABSTRACT: """
- Focus on colors, shapes, and patterns
- Include motion and energy descriptions
- Emphasize artistic techniques and styles
- Use expressive and creative language""",
    PromptCategory.ANIME: """
- Include character design details and expressions
- Specify art style (studio, manga influence)
- Add clothing and accessory details
- Include background and scene setting""",
    PromptCategory.REALISTIC: """
- Focus on photorealistic details and accuracy
- Include camera settings and photography terms
- Specify materials and surface textures
- Add natural lighting and environmental details""",
}


class PromptEnhancementError(RuntimeError):
    pass


class PromptCache(Protocol):
    async def get(self, key: str) -> Any:
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        ...


@dataclass(frozen=True)
class EnhancedPrompt:
    enhanced: str
    original: str
    category: str
    enhancement_time_ms: int
    words_added: int
    confidence_score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "EnhancedPrompt":
        return cls(
            enhanced=str(payload["enhanced"]),
            original=str(payload["original"]),
            category=str(payload["category"]),
            enhancement_time_ms=int(payload.get("enhancement_time_ms") or 0),
            words_added=int(payload.get("words_added") or 0),
            confidence_score=float(payload.get("confidence_score") or 0.0),
        )


def _word_count(text: str) -> int:
    return len(text.split(" "))


def _clean_preferences(style_preferences: Optional[Mapping[str, Optional[str]]]) -> Dict[str, str]:
    if not style_preferences:
        return {}
    return {key: str(value) for key, value in style_preferences.items() if value}


def confidence_score(enhanced: str, original: str) -> float:
    score = min(_word_count(enhanced) / _word_count(original) * 0.3, 0.5)
    lowered = enhanced.lower()
    score += sum(1 for word in DESCRIPTIVE_WORDS if word in lowered) * 0.1
    score += sum(1 for term in TECHNICAL_TERMS if term in lowered) * 0.15
    return min(score, 1.0)


def cache_key_for(
    text: str,
    category: PromptCategory,
    style_preferences: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    key = f"prompt_enhance:{text}:{category.value}"
    preferences = _clean_preferences(style_preferences)
    if preferences:
        style_key = "|".join(f"{name}:{value}" for name, value in sorted(preferences.items()))
        return f"{key}:{style_key}"
    return key


def build_system_prompt(
    category: PromptCategory,
    style_preferences: Optional[Mapping[str, Optional[str]]] = None,
) -> str:
    prompt = BASE_SYSTEM_PROMPT.format(category=category.value)
    preferences = _clean_preferences(style_preferences)
    if preferences:
        lines = ["", "", "STYLE PREFERENCES:"]
        for name, label in STYLE_PREFERENCE_LABELS.items():
            if name in preferences:
                lines.append(f"- {label}: {preferences[name]}")
        return prompt + "\n".join(lines)
    return prompt + CATEGORY_GUIDELINES.get(category, "")


def build_user_prompt(text: str, category: PromptCategory) -> str:
    return (
        f'Original input: "{text}"\n\n'
        f"Please enhance this into a detailed, vivid prompt for {category.value} image generation. \n\n"
        "Return only the enhanced prompt text, no explanations or additional formatting."
    )


class PromptEnhancer:
    def __init__(
        self,
        *,
        settings: Settings,
        cache: Optional[PromptCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = settings.openai_api_key.strip()
        self._base_url = settings.openai_api_base_url.rstrip("/")
        self._model = settings.prompt_enhancer_model
        self._temperature = settings.prompt_enhancer_temperature
        self._max_tokens = settings.prompt_enhancer_max_tokens
        self._timeout_seconds = max(1, settings.prompt_enhancer_timeout_seconds)
        self._cache_ttl_seconds = settings.prompt_enhancement_cache_ttl_seconds
        self._cache = cache
        self._client = client

    async def _chat(self, messages: List[Dict[str, str]], *, temperature: float, max_tokens: int) -> str:
        if not self._api_key:
            raise PromptEnhancementError("OPENAI_API_KEY is not configured")

        body = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        url = f"{self._base_url}/chat/completions"

        if self._client is not None:
            response = await self._client.post(url, json=body, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.post(url, json=body, headers=headers)

        if response.status_code < 200 or response.status_code >= 300:
            detail = response.text.strip()
            if len(detail) > MAX_ERROR_DETAIL_CHARS:
                detail = detail[:MAX_ERROR_DETAIL_CHARS] + "..."
            raise PromptEnhancementError(f"chat completion failed status={response.status_code} detail={detail}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise PromptEnhancementError("chat completion returned invalid JSON") from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices:
            return ""
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        return str(content or "").strip()

    async def _cache_get(self, key: str) -> Any:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(key)
        except Exception as exc:
            logger.warning("prompt_cache_read_failed", error=str(exc))
            return None

    async def _cache_set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, value, ttl_seconds)
        except Exception as exc:
            logger.warning("prompt_cache_write_failed", error=str(exc))

    async def enhance(
        self,
        text: str,
        category: PromptCategory,
        style_preferences: Optional[Mapping[str, Optional[str]]] = None,
    ) -> EnhancedPrompt:
        started_at = time.perf_counter()
        key = cache_key_for(text, category, style_preferences)

        cached = await self._cache_get(key)
        if isinstance(cached, dict):
            try:
                result = EnhancedPrompt.from_dict(cached)
            except (KeyError, TypeError, ValueError):
                result = None
            if result is not None:
                record_prompt_cache_lookup(hit=True)
                logger.info("prompt_enhancement_cache_hit", input=text[:50])
                return result
        record_prompt_cache_lookup(hit=False)

        messages = [
            {"role": "system", "content": build_system_prompt(category, style_preferences)},
            {"role": "user", "content": build_user_prompt(text, category)},
        ]
        try:
            enhanced = await self._chat(messages, temperature=self._temperature, max_tokens=self._max_tokens)
        except PromptEnhancementError as exc:
            logger.error("prompt_enhancement_failed", error=str(exc))
            raise PromptEnhancementError(f"Prompt enhancement failed: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("prompt_enhancement_failed", error=str(exc))
            raise PromptEnhancementError(f"Prompt enhancement failed: {exc}") from exc

        if not enhanced:
            logger.error("prompt_enhancement_failed", error="empty completion")
            raise PromptEnhancementError("Prompt enhancement failed: No enhancement generated")

        original_words = _word_count(text)
        enhanced_words = _word_count(enhanced)
        result = EnhancedPrompt(
            enhanced=enhanced,
            original=text,
            category=category.value,
            enhancement_time_ms=int((time.perf_counter() - started_at) * 1000),
            words_added=enhanced_words - original_words,
            confidence_score=confidence_score(enhanced, text),
        )
        await self._cache_set(key, result.to_dict(), self._cache_ttl_seconds)

        logger.info(
            "prompt_enhanced",
            original_words=original_words,
            enhanced_words=enhanced_words,
            duration_ms=result.enhancement_time_ms,
        )
        return result

    async def suggestions(self, category: PromptCategory, count: int = 5) -> List[str]:
        key = f"prompt_suggestions:{category.value}:{count}"
        cached = await self._cache_get(key)
        if isinstance(cached, list):
            return [str(item) for item in cached]

        messages = [
            {
                "role": "system",
                "content": (
                    f"Generate {count} creative prompt starters for {category.value} image generation. "
                    "Each should be 3-8 words and inspire detailed enhancement."
                ),
            },
            {"role": "user", "content": f"Create {count} inspiring prompt starters for {category.value} images."},
        ]
        try:
            content = await self._chat(messages, temperature=0.8, max_tokens=200)
        except (PromptEnhancementError, httpx.HTTPError) as exc:
            logger.error("prompt_suggestions_failed", category=category.value, error=str(exc))
            return []

        suggestions = [
            re.sub(r"^\d+\.\s*", "", line).strip() for line in content.split("\n") if line.strip()
        ][:count]
        await self._cache_set(key, suggestions, SUGGESTIONS_CACHE_TTL_SECONDS)
        return suggestions
