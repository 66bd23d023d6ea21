"""Per-provider runtime overrides loaded from YAML."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.config import get_settings


class ProviderOverride(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: Optional[bool] = None
    priority: Optional[int] = None
    max_retries: Optional[int] = Field(default=None, ge=1)
    health_check_interval_seconds: Optional[int] = Field(default=None, gt=0)
    cost_weight: Optional[float] = Field(default=None, ge=0, le=1)
    quality_weight: Optional[float] = Field(default=None, ge=0, le=1)
    speed_weight: Optional[float] = Field(default=None, ge=0, le=1)

    def as_updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ProviderOverrides(BaseModel):
    providers: Dict[str, ProviderOverride] = Field(default_factory=dict)

    @field_validator("providers", mode="before")
    @classmethod
    def _normalize_providers(cls, value: Any) -> Dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("providers must be a mapping of provider name to overrides")
        return {str(name).strip(): overrides or {} for name, overrides in value.items()}

    def for_provider(self, name: str) -> Dict[str, Any]:
        override = self.providers.get(name)
        return override.as_updates() if override else {}


def _resolve_provider_config_path() -> Path:
    settings = get_settings()
    configured = Path(settings.provider_config_path)
    if configured.is_absolute():
        return configured
    return Path.cwd() / configured


@lru_cache(maxsize=1)
def load_provider_overrides() -> ProviderOverrides:
    path = _resolve_provider_config_path()
    if not path.exists():
        return ProviderOverrides()

    content = path.read_text(encoding="utf-8")
    parsed = yaml.safe_load(content) or {}
    if not isinstance(parsed, dict):
        raise ValueError("Provider config must be a YAML object")

    return ProviderOverrides.model_validate(dict(parsed))


def reset_provider_overrides_cache() -> None:
    load_provider_overrides.cache_clear()
