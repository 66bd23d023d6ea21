import asyncio
import json

import httpx
import pytest

from src.providers.base import ProviderError, UnifiedRequest
from src.providers.stability import (
    DEFAULT_NEGATIVE_PROMPT,
    StabilityImageProvider,
    optimize_prompt_for_sd,
    style_preset_for,
)


def _provider(handler) -> StabilityImageProvider:
    async def _sleep(seconds: float) -> None:
        del seconds

    return StabilityImageProvider(
        api_key="sk-stability",
        engine_id="sdxl-test",
        base_url="https://stability.test/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=_sleep,
    )


def test_generate_sends_weighted_text_prompts() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"artifacts": [{"base64": "SDXL", "seed": 99, "finishReason": "SUCCESS"}]})

    provider = _provider(handler)
    result = asyncio.run(
        provider.generate(
            UnifiedRequest(
                prompt="a nice photo of a cat",
                negative_prompt="blurry",
                width=900,
                height=1024,
                style="Anime",
                seed=99,
            )
        )
    )

    body = captured["body"]
    assert captured["url"] == "https://stability.test/v1/generation/sdxl-test/text-to-image"
    assert body["text_prompts"][0]["weight"] == 1.0
    assert "photorealistic" in body["text_prompts"][0]["text"]
    assert "masterpiece" in body["text_prompts"][0]["text"]
    assert body["text_prompts"][1] == {"text": "blurry", "weight": -1.0}
    assert body["width"] == 896
    assert body["height"] == 1024
    assert body["cfg_scale"] == 7
    assert body["steps"] == 30
    assert body["seed"] == 99
    assert body["samples"] == 1
    assert body["style_preset"] == "anime"
    assert result.image_url == "data:image/png;base64,SDXL"
    assert result.settings["seed"] == 99


def test_generate_without_artifacts_fails() -> None:
    provider = _provider(lambda request: httpx.Response(200, json={"artifacts": []}))

    with pytest.raises(ProviderError, match="No images returned from Stability AI"):
        asyncio.run(provider.generate(UnifiedRequest(prompt="a cat")))


def test_estimate_cost_scales_with_pixels() -> None:
    provider = _provider(lambda request: httpx.Response(200))

    small = provider.estimate_cost(UnifiedRequest(prompt="cat", width=512, height=512))
    medium = provider.estimate_cost(UnifiedRequest(prompt="cat", width=768, height=768))
    large = provider.estimate_cost(UnifiedRequest(prompt="cat", width=1024, height=1024, count=2))

    assert small.cost_per_image == pytest.approx(0.02)
    assert medium.cost_per_image == pytest.approx(0.046)
    assert large.cost_per_image == pytest.approx(0.08)
    assert large.total_cost == pytest.approx(0.16)
    assert large.breakdown["credits"] == 80.0


def test_validate_rejects_oversized_batches() -> None:
    provider = _provider(lambda request: httpx.Response(200))
    validation = provider.validate(UnifiedRequest(prompt="cat", count=11, negative_prompt="n" * 2001))

    assert validation.valid is False
    assert "Stability AI supports maximum 10 images per request" in validation.errors
    assert "Negative prompt exceeds maximum length of 2000 characters" in validation.errors


def test_optimize_adds_default_negative_prompt() -> None:
    provider = _provider(lambda request: httpx.Response(200))

    optimized = provider.optimize(UnifiedRequest(prompt="cat"))
    kept = provider.optimize(UnifiedRequest(prompt="cat", negative_prompt="dogs"))

    assert optimized.negative_prompt == DEFAULT_NEGATIVE_PROMPT
    assert kept.negative_prompt == "dogs"


def test_check_health_requires_positive_balance() -> None:
    funded = _provider(lambda request: httpx.Response(200, json={"credits": 12.5}))
    empty = _provider(lambda request: httpx.Response(200, json={"credits": 0}))
    unauthorized = _provider(lambda request: httpx.Response(401))

    assert asyncio.run(funded.check_health()) is True
    assert asyncio.run(empty.check_health()) is False
    assert asyncio.run(unauthorized.check_health()) is False


def test_prompt_helpers() -> None:
    assert style_preset_for("Pixel-Art") == "pixel-art"
    assert style_preset_for("vivid") is None
    assert style_preset_for(None) is None

    assert optimize_prompt_for_sd("a nice photo of a cat") == (
        "a beautiful photorealistic of a cat, masterpiece, best quality, highly detailed"
    )
    assert optimize_prompt_for_sd("best quality castle") == "best quality castle"
