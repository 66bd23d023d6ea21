"""Build the configured image provider adapters."""

from __future__ import annotations

import asyncio
from typing import List, Mapping, Optional

import httpx

from src.core.config import Settings
from src.core.logger import get_logger
from src.providers.base import ImageProvider
from src.providers.common import SleepFn
from src.providers.dalle import DalleImageProvider
from src.providers.imagen import ImagenImageProvider
from src.providers.mock import MockImageProvider
from src.providers.stability import StabilityImageProvider


logger = get_logger("promptlens.providers.factory")


class NoProvidersConfiguredError(RuntimeError):
    pass


def build_providers(
    settings: Settings,
    *,
    max_retries: Optional[Mapping[str, int]] = None,
    client: Optional[httpx.AsyncClient] = None,
    sleep: SleepFn = asyncio.sleep,
) -> List[ImageProvider]:
    """Instantiate every adapter whose credentials are present, in registration order."""

    retries = dict(max_retries or {})
    base_delay = settings.provider_retry_base_delay_seconds
    providers: List[ImageProvider] = []

    if settings.openai_api_key.strip():
        providers.append(
            DalleImageProvider(
                api_key=settings.openai_api_key,
                base_url=settings.openai_api_base_url,
                timeout_seconds=settings.openai_image_timeout_seconds,
                max_retries=retries.get(DalleImageProvider.name, 3),
                retry_base_delay=base_delay,
                client=client,
                sleep=sleep,
            )
        )
    if settings.google_project_id.strip():
        providers.append(
            ImagenImageProvider(
                project_id=settings.google_project_id,
                location=settings.google_location,
                model=settings.imagen_model,
                access_token=settings.google_access_token,
                metadata_token_url=settings.google_metadata_token_url,
                timeout_seconds=settings.imagen_timeout_seconds,
                max_retries=retries.get(ImagenImageProvider.name, 3),
                retry_base_delay=base_delay,
                client=client,
                sleep=sleep,
            )
        )
    if settings.stability_api_key.strip():
        providers.append(
            StabilityImageProvider(
                api_key=settings.stability_api_key,
                engine_id=settings.sd_engine_id,
                base_url=settings.stability_api_base_url,
                timeout_seconds=settings.stability_timeout_seconds,
                max_retries=retries.get(StabilityImageProvider.name, 3),
                retry_base_delay=base_delay,
                client=client,
                sleep=sleep,
            )
        )
    if settings.mock_provider_enabled:
        providers.append(MockImageProvider(max_retries=retries.get(MockImageProvider.name, 1)))

    if not providers:
        raise NoProvidersConfiguredError(
            "No image providers configured: set OPENAI_API_KEY, GOOGLE_PROJECT_ID, "
            "STABILITY_API_KEY or MOCK_PROVIDER_ENABLED."
        )

    logger.info("providers_configured", providers=[provider.name for provider in providers])
    return providers
