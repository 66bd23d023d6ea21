"""Provider contracts for image generation backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Tuple


class ProviderErrorCode(str, Enum):
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVER_ERROR = "SERVER_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ProviderError(RuntimeError):
    """Raised when an image provider cannot fulfill a generation request."""

    def __init__(
        self,
        message: str,
        *,
        code: ProviderErrorCode = ProviderErrorCode.UNKNOWN_ERROR,
        retryable: bool = False,
        retry_after: Optional[float] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.retry_after = retry_after
        self.status_code = status_code


class ProviderValidationError(ProviderError):
    """Raised when a request violates an adapter's constraints."""

    def __init__(self, provider: str, errors: List[str]) -> None:
        super().__init__(
            f"Invalid parameters for {provider}: {', '.join(errors)}",
            code=ProviderErrorCode.INVALID_REQUEST,
        )
        self.provider = provider
        self.errors = list(errors)


@dataclass(frozen=True)
class UnifiedRequest:
    prompt: str
    negative_prompt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    quality: Optional[str] = None
    style: Optional[str] = None
    count: int = 1
    seed: Optional[int] = None
    provider: Optional[str] = None


@dataclass(frozen=True)
class ProviderCapabilities:
    max_image_size: Tuple[int, int]
    supported_sizes: Tuple[str, ...]
    supported_formats: Tuple[str, ...]
    max_prompt_length: int
    supports_negative_prompts: bool
    supports_style_presets: bool
    max_batch_size: int
    cost_per_image: float


@dataclass(frozen=True)
class CostEstimate:
    total_cost: float
    cost_per_image: float
    currency: str = "USD"
    breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors))


@dataclass(frozen=True)
class ImageResult:
    id: str
    provider: str
    image_url: str
    thumbnail_url: str
    prompt: str
    generation_time_ms: int
    cost: float
    settings: Dict[str, Any] = field(default_factory=dict)
    images: List[str] = field(default_factory=list)


class ImageProvider(Protocol):
    name: str

    async def generate(self, request: UnifiedRequest) -> ImageResult:
        raise NotImplementedError

    def validate(self, request: UnifiedRequest) -> ValidationResult:
        raise NotImplementedError

    def capabilities(self) -> ProviderCapabilities:
        raise NotImplementedError

    def estimate_cost(self, request: UnifiedRequest) -> CostEstimate:
        raise NotImplementedError

    def optimize(self, request: UnifiedRequest) -> UnifiedRequest:
        return request

    async def check_health(self) -> bool:
        raise NotImplementedError
