"""JSON key/value cache over Redis that degrades to a miss on failure."""

from __future__ import annotations

import json
from typing import Any, Optional

from src.core.logger import get_logger

logger = get_logger("promptlens.storage.cache")


def _json(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, sort_keys=True)


class CacheService:
    """Wrap an async Redis client; backend errors never reach the caller."""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(key)
        except Exception as exc:
            logger.warning("cache_get_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("cache_value_not_json", key=key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        try:
            payload = _json(value)
            if ttl_seconds:
                await self._client.setex(key, ttl_seconds, payload)
            else:
                await self._client.set(key, payload)
        except Exception as exc:
            logger.warning("cache_set_failed", key=key, error=str(exc))
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            await self._client.delete(key)
        except Exception as exc:
            logger.warning("cache_delete_failed", key=key, error=str(exc))
            return False
        return True
