"""Schemas for prompt enhancement and template endpoints."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field

from src.prompts.templates import PromptCategory
from src.schemas.generation import StylePreferencesPayload


class EnhancePromptRequest(BaseModel):
    input: str = Field(min_length=1, max_length=1000)
    category: PromptCategory = PromptCategory.REALISTIC
    style_preferences: Optional[StylePreferencesPayload] = None


class EnhancePromptResponse(BaseModel):
    enhanced: str
    original: str
    category: str
    enhancement_time_ms: int
    words_added: int
    confidence_score: float


class SuggestionsResponse(BaseModel):
    category: str
    suggestions: list[str]


class TemplateRuleItem(BaseModel):
    condition: str
    addition: str
    weight: float


class TemplateItem(BaseModel):
    id: str
    name: str
    category: str
    description: str
    base_structure: str
    enhancement_rules: list[TemplateRuleItem]
    providers: list[str]
    is_public: bool
    usage_count: int


class TemplateListResponse(BaseModel):
    items: list[TemplateItem]


class ApplyTemplateRequest(BaseModel):
    variables: Dict[str, str] = Field(default_factory=dict)
    provider: Optional[str] = Field(default=None, max_length=32)


class ApplyTemplateResponse(BaseModel):
    template_id: str
    prompt: str
    provider: Optional[str] = None
