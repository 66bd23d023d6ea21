"""Weighted provider scoring and selection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from src.orchestration.registry import ProviderRegistry, ProviderRuntimeConfig
from src.providers.base import CostEstimate, ProviderCapabilities, UnifiedRequest


MAX_EXPECTED_COST_PER_IMAGE = 0.20
PRIORITY_BONUS = 0.1
UNHEALTHY_PENALTY = 0.5
SPEED_SCORES = {
    "stableDiffusion": 0.6,
    "dalleE3": 0.8,
    "imagen4": 0.7,
}
DEFAULT_SPEED_SCORE = 0.5


class NoProviderAvailableError(RuntimeError):
    """Raised when no registered provider can serve a request."""


@dataclass(frozen=True)
class Selection:
    provider: str
    reason: str
    estimated_cost: float
    confidence: float


@dataclass(frozen=True)
class Candidate:
    provider: str
    score: float
    reason: str
    estimated_cost: float


def cost_score(cost_per_image: float) -> float:
    return max(0.0, (MAX_EXPECTED_COST_PER_IMAGE - cost_per_image) / MAX_EXPECTED_COST_PER_IMAGE)


def quality_score(capabilities: ProviderCapabilities) -> float:
    score = 0.5
    if capabilities.max_image_size[0] >= 1024:
        score += 0.2
    if capabilities.supports_negative_prompts:
        score += 0.1
    if capabilities.supports_style_presets:
        score += 0.1
    if capabilities.max_prompt_length >= 2000:
        score += 0.1
    return min(score, 1.0)


def score_provider(
    name: str,
    capabilities: ProviderCapabilities,
    cost: CostEstimate,
    config: ProviderRuntimeConfig,
    *,
    healthy: bool = True,
) -> float:
    score = cost_score(cost.cost_per_image) * config.cost_weight
    score += quality_score(capabilities) * config.quality_weight
    score += SPEED_SCORES.get(name, DEFAULT_SPEED_SCORE) * config.speed_weight
    score += config.priority * PRIORITY_BONUS
    if not healthy:
        score *= UNHEALTHY_PENALTY
    return min(score, 1.0)


def selection_reason(score: float, cost: CostEstimate, capabilities: ProviderCapabilities) -> str:
    if score > 0.8:
        return "Optimal cost/quality balance"
    if cost.cost_per_image < 0.05:
        return "Best cost efficiency"
    if capabilities.max_image_size[0] >= 1024:
        return "High quality capabilities"
    return "Available and suitable"


def rank_candidates(registry: ProviderRegistry, request: UnifiedRequest) -> List[Candidate]:
    """Score every available provider that accepts ``request``, best first.

    ``sorted`` is stable, so equal scores keep registration order.
    """

    candidates: List[Candidate] = []
    for name in registry.names():
        provider = registry.get(name)
        config = registry.config(name)
        health = registry.health(name)
        if provider is None or config is None or not registry.is_available(name):
            continue
        if not provider.validate(request).valid:
            continue

        capabilities = provider.capabilities()
        cost = provider.estimate_cost(request)
        score = score_provider(
            name,
            capabilities,
            cost,
            config,
            healthy=health.healthy if health is not None else False,
        )
        candidates.append(
            Candidate(
                provider=name,
                score=score,
                reason=selection_reason(score, cost, capabilities),
                estimated_cost=cost.total_cost,
            )
        )
    return sorted(candidates, key=lambda candidate: candidate.score, reverse=True)


def _explicit_selection(registry: ProviderRegistry, request: UnifiedRequest) -> Optional[Selection]:
    if not request.provider or not registry.is_available(request.provider):
        return None
    provider = registry.get(request.provider)
    if provider is None or not provider.validate(request).valid:
        return None
    return Selection(
        provider=request.provider,
        reason="User specified",
        estimated_cost=provider.estimate_cost(request).total_cost,
        confidence=1.0,
    )


def select_provider(registry: ProviderRegistry, request: UnifiedRequest) -> Selection:
    explicit = _explicit_selection(registry, request)
    if explicit is not None:
        return explicit

    candidates = rank_candidates(registry, request)
    if not candidates:
        raise NoProviderAvailableError("No suitable providers available")

    best = candidates[0]
    return Selection(
        provider=best.provider,
        reason=best.reason,
        estimated_cost=best.estimated_cost,
        confidence=best.score,
    )
