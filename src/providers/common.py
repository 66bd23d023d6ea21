"""Shared request mechanics for image provider adapters.

Error classification, bounded retry with exponential backoff, size
normalization and prompt truncation live here so every adapter applies the
same policy to its vendor calls.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import math
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar
import uuid

import httpx

from src.core.logger import get_logger
from src.providers.base import ProviderError, ProviderErrorCode


T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_IMAGE_SIZE = 1024
MAX_ERROR_DETAIL_CHARS = 240

logger = get_logger("promptlens.providers")


def _error_detail(response: httpx.Response) -> str:
    detail = ""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            detail = str(error["message"])
        elif isinstance(error, str):
            detail = error
        elif body.get("message"):
            detail = str(body["message"])
    if not detail:
        detail = response.text.strip()
    if len(detail) > MAX_ERROR_DETAIL_CHARS:
        detail = detail[:MAX_ERROR_DETAIL_CHARS] + "..."
    return detail


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a `Retry-After` header, either delta-seconds or an HTTP-date."""

    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0.0)


def error_from_response(response: httpx.Response) -> ProviderError:
    """Classify a non-2xx vendor response."""

    status = response.status_code
    detail = _error_detail(response)

    if status == 429:
        return ProviderError(
            f"Rate limit exceeded (status=429): {detail}",
            code=ProviderErrorCode.RATE_LIMIT_EXCEEDED,
            retryable=True,
            retry_after=_parse_retry_after(response.headers.get("retry-after")),
            status_code=status,
        )
    if status >= 500:
        return ProviderError(
            f"Provider server error (status={status}): {detail}",
            code=ProviderErrorCode.SERVER_ERROR,
            retryable=True,
            status_code=status,
        )
    if status == 400:
        return ProviderError(
            detail or "Invalid request parameters",
            code=ProviderErrorCode.INVALID_REQUEST,
            status_code=status,
        )
    if status == 401:
        return ProviderError(
            "Invalid API key or authentication failed",
            code=ProviderErrorCode.UNAUTHORIZED,
            status_code=status,
        )
    return ProviderError(
        f"Provider request failed (status={status}): {detail}",
        code=ProviderErrorCode.UNKNOWN_ERROR,
        status_code=status,
    )


def classify_error(exc: BaseException) -> ProviderError:
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        return error_from_response(exc.response)
    message = str(exc) or exc.__class__.__name__
    return ProviderError(message, code=ProviderErrorCode.UNKNOWN_ERROR)


def ensure_success(response: httpx.Response) -> httpx.Response:
    if response.status_code < 200 or response.status_code >= 300:
        raise error_from_response(response)
    return response


def response_json(response: httpx.Response, *, context: str) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderError(f"{context} returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise ProviderError(f"{context} returned invalid payload format")
    return payload


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    provider: str,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """Run ``operation`` retrying only rate-limit and server failures.

    The wait before attempt ``n + 1`` is the server's retry-after hint when
    present, otherwise ``base_delay * 2 ** (n - 1)``.
    """

    attempts = max(1, max_attempts)
    last_error: ProviderError | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            error = classify_error(exc)
            last_error = error
            if not error.retryable:
                if error is exc:
                    raise
                raise error from exc
            if attempt == attempts:
                raise ProviderError(
                    f"{provider} failed after {attempts} attempts: {error.message}",
                    code=error.code,
                    retryable=error.retryable,
                    retry_after=error.retry_after,
                    status_code=error.status_code,
                ) from exc

            delay = error.retry_after if error.retry_after is not None else base_delay * (2 ** (attempt - 1))
            logger.warning(
                "provider_attempt_retrying",
                provider=provider,
                attempt=attempt,
                delay_seconds=delay,
                code=error.code.value,
                error=error.message,
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise ProviderError(f"{provider} failed: {last_error}")


def round_to_multiple(value: int, *, multiple: int = 64, minimum: int = 256, maximum: int = 2048) -> int:
    clamped = max(minimum, min(maximum, value))
    return int(math.floor(clamped / multiple + 0.5)) * multiple


def standardize_size(
    width: Optional[int],
    height: Optional[int],
    *,
    minimum: int = 256,
    maximum: int = 2048,
    multiple: int = 64,
) -> Tuple[int, int]:
    """Clamp to the adapter bounds and round to the nearest ``multiple``."""

    final_width = (
        round_to_multiple(width, multiple=multiple, minimum=minimum, maximum=maximum) if width else DEFAULT_IMAGE_SIZE
    )
    final_height = (
        round_to_multiple(height, multiple=multiple, minimum=minimum, maximum=maximum) if height else DEFAULT_IMAGE_SIZE
    )
    return final_width, final_height


def truncate_prompt(prompt: str, max_length: int) -> str:
    """Cut ``prompt`` to at most ``max_length`` chars on a word boundary."""

    if len(prompt) <= max_length:
        return prompt
    if prompt[max_length].isspace():
        return prompt[:max_length].rstrip()

    truncated = prompt[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > 0:
        return truncated[:last_space].rstrip()
    return truncated


def new_request_id(provider: str) -> str:
    return f"{provider}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def elapsed_ms(started_at: float) -> int:
    return int((time.perf_counter() - started_at) * 1000)
