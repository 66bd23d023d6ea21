import asyncio
import json

import httpx
import pytest

from src.providers.base import ProviderError, ProviderErrorCode, ProviderValidationError, UnifiedRequest
from src.providers.dalle import DalleImageProvider, nearest_supported_size, optimize_prompt_for_dalle


def _provider(handler, *, delays=None, max_retries=3) -> DalleImageProvider:
    async def _sleep(seconds: float) -> None:
        if delays is not None:
            delays.append(seconds)

    return DalleImageProvider(
        api_key="sk-test",
        base_url="https://openai.test/v1",
        max_retries=max_retries,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=_sleep,
    )


def test_generate_posts_dalle_payload_and_returns_result() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"url": "https://cdn.openai.test/img.png"}]})

    provider = _provider(handler)
    result = asyncio.run(
        provider.generate(UnifiedRequest(prompt="a red fox in snow", width=1792, height=1024, quality="hd"))
    )

    assert captured["url"] == "https://openai.test/v1/images/generations"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"]["model"] == "dall-e-3"
    assert captured["body"]["size"] == "1792x1024"
    assert captured["body"]["quality"] == "hd"
    assert captured["body"]["style"] == "vivid"
    assert result.provider == "dalleE3"
    assert result.image_url == "https://cdn.openai.test/img.png"
    assert result.images == ["https://cdn.openai.test/img.png"]
    assert result.cost == 0.12
    assert result.id.startswith("dalleE3_")


def test_validate_rejects_unsupported_parameters() -> None:
    provider = _provider(lambda request: httpx.Response(200))
    validation = provider.validate(
        UnifiedRequest(prompt="cat", width=512, height=512, count=2, negative_prompt="dogs", seed=42)
    )

    assert validation.valid is False
    assert "DALL-E 3 only supports generating 1 image at a time" in validation.errors
    assert "DALL-E 3 does not support negative prompts" in validation.errors
    assert "DALL-E 3 does not support seed parameter" in validation.errors
    assert any(error.startswith("Invalid size 512x512") for error in validation.errors)


def test_generate_raises_validation_error_without_calling_vendor() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"data": [{"url": "https://cdn.openai.test/img.png"}]})

    provider = _provider(handler)
    with pytest.raises(ProviderValidationError) as excinfo:
        asyncio.run(provider.generate(UnifiedRequest(prompt="  ")))

    assert "Prompt is required" in excinfo.value.errors
    assert calls == []


def test_estimate_cost_by_quality_and_size() -> None:
    provider = _provider(lambda request: httpx.Response(200))

    standard = provider.estimate_cost(UnifiedRequest(prompt="cat"))
    hd_large = provider.estimate_cost(UnifiedRequest(prompt="cat", width=1024, height=1792, quality="hd"))

    assert standard.total_cost == 0.04
    assert hd_large.total_cost == 0.12
    assert hd_large.breakdown["quality_upgrade"] == pytest.approx(0.06)
    assert hd_large.currency == "USD"


def test_generate_retries_server_errors() -> None:
    delays = []
    responses = [
        httpx.Response(500, json={"error": {"message": "overloaded"}}),
        httpx.Response(200, json={"data": [{"url": "https://cdn.openai.test/retry.png"}]}),
    ]

    provider = _provider(lambda request: responses.pop(0), delays=delays)
    result = asyncio.run(provider.generate(UnifiedRequest(prompt="a lighthouse")))

    assert result.image_url == "https://cdn.openai.test/retry.png"
    assert delays == [1.0]


def test_generate_does_not_retry_bad_request() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "content policy violation"}})

    provider = _provider(handler)
    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(provider.generate(UnifiedRequest(prompt="a lighthouse")))

    assert len(calls) == 1
    assert excinfo.value.code == ProviderErrorCode.INVALID_REQUEST


def test_generate_reports_unauthorized() -> None:
    provider = _provider(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(provider.generate(UnifiedRequest(prompt="a lighthouse")))

    assert excinfo.value.code == ProviderErrorCode.UNAUTHORIZED


def test_check_health_looks_for_dalle_models() -> None:
    healthy = _provider(lambda request: httpx.Response(200, json={"data": [{"id": "gpt-4o"}, {"id": "dall-e-3"}]}))
    missing = _provider(lambda request: httpx.Response(200, json={"data": [{"id": "gpt-4o"}]}))
    failing = _provider(lambda request: httpx.Response(503))

    assert asyncio.run(healthy.check_health()) is True
    assert asyncio.run(missing.check_health()) is False
    assert asyncio.run(failing.check_health()) is False


def test_prompt_helpers() -> None:
    assert nearest_supported_size(1700, 1000) == "1792x1024"
    assert nearest_supported_size(1000, 1000) == "1024x1024"

    optimized = optimize_prompt_for_dalle("masterpiece, best quality, a cat")
    assert "masterpiece" not in optimized
    assert optimized.endswith(", high quality, detailed")
