"""Prompt enhancement and template API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.api.dependencies import get_enhancer, get_templates
from src.prompts.enhancer import PromptEnhancementError, PromptEnhancer
from src.prompts.templates import PromptCategory, PromptTemplate, TemplateNotFoundError, TemplateService
from src.schemas.prompts import (
    ApplyTemplateRequest,
    ApplyTemplateResponse,
    EnhancePromptRequest,
    EnhancePromptResponse,
    SuggestionsResponse,
    TemplateItem,
    TemplateListResponse,
    TemplateRuleItem,
)


router = APIRouter(prefix="/prompts", tags=["prompts"])


def _template_item(template: PromptTemplate, templates: TemplateService) -> TemplateItem:
    return TemplateItem(
        id=template.id,
        name=template.name,
        category=template.category.value,
        description=template.description,
        base_structure=template.base_structure,
        enhancement_rules=[
            TemplateRuleItem(condition=rule.condition, addition=rule.addition, weight=rule.weight)
            for rule in template.enhancement_rules
        ],
        providers=sorted(template.provider_adaptations),
        is_public=template.is_public,
        usage_count=templates.usage_count(template.id),
    )


@router.post("/enhance", response_model=EnhancePromptResponse)
async def enhance_prompt(
    payload: EnhancePromptRequest,
    enhancer: PromptEnhancer = Depends(get_enhancer),
) -> EnhancePromptResponse:
    try:
        result = await enhancer.enhance(
            payload.input,
            payload.category,
            payload.style_preferences.as_mapping() if payload.style_preferences else None,
        )
    except PromptEnhancementError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return EnhancePromptResponse(**result.to_dict())


@router.get("/suggestions/{category}", response_model=SuggestionsResponse)
async def prompt_suggestions(
    category: PromptCategory,
    count: int = Query(default=5, ge=1, le=20),
    enhancer: PromptEnhancer = Depends(get_enhancer),
) -> SuggestionsResponse:
    suggestions = await enhancer.suggestions(category, count)
    return SuggestionsResponse(category=category.value, suggestions=suggestions)


@router.get("/templates", response_model=TemplateListResponse)
def list_templates(
    category: PromptCategory | None = None,
    popular: bool = False,
    limit: int = Query(default=10, ge=1, le=50),
    templates: TemplateService = Depends(get_templates),
) -> TemplateListResponse:
    if popular:
        items = templates.popular(limit)
    elif category is not None:
        items = templates.by_category(category)
    else:
        items = templates.public()
    return TemplateListResponse(items=[_template_item(template, templates) for template in items])


@router.get("/templates/{template_id}", response_model=TemplateItem)
def read_template(
    template_id: str,
    templates: TemplateService = Depends(get_templates),
) -> TemplateItem:
    template = templates.get(template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Template {template_id} not found")
    return _template_item(template, templates)


@router.post("/templates/{template_id}/apply", response_model=ApplyTemplateResponse)
def apply_template(
    template_id: str,
    payload: ApplyTemplateRequest,
    templates: TemplateService = Depends(get_templates),
) -> ApplyTemplateResponse:
    try:
        prompt = templates.apply(template_id, payload.variables)
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    if payload.provider:
        prompt = templates.adapt_for_provider(prompt, payload.provider, template_id)
    templates.increment_usage(template_id)
    return ApplyTemplateResponse(template_id=template_id, prompt=prompt, provider=payload.provider)
