"""Image generation provider integrations."""

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
from src.providers.dalle import DalleImageProvider
from src.providers.factory import NoProvidersConfiguredError, build_providers
from src.providers.imagen import ImagenImageProvider
from src.providers.mock import MockImageProvider
from src.providers.stability import StabilityImageProvider

__all__ = [
    "CostEstimate",
    "DalleImageProvider",
    "ImageProvider",
    "ImageResult",
    "ImagenImageProvider",
    "MockImageProvider",
    "NoProvidersConfiguredError",
    "ProviderCapabilities",
    "ProviderError",
    "ProviderErrorCode",
    "ProviderValidationError",
    "StabilityImageProvider",
    "UnifiedRequest",
    "ValidationResult",
    "build_providers",
]
