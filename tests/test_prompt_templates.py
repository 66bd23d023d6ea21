import pytest

from src.prompts.templates import (
    BUILTIN_TEMPLATES,
    DEFAULT_SD_SUFFIX,
    PromptCategory,
    PromptTemplate,
    TemplateNotFoundError,
    TemplateService,
)


def test_builtin_catalogue_covers_every_category() -> None:
    service = TemplateService()

    assert len(service.all()) == len(BUILTIN_TEMPLATES) == 9
    assert {template.category for template in service.all()} == set(PromptCategory)
    assert [template.id for template in service.by_category(PromptCategory.PORTRAIT)] == [
        "portrait-professional",
        "portrait-artistic",
    ]
    for template in service.all():
        assert set(template.provider_adaptations) == {"dalleE3", "imagen4", "stableDiffusion"}


def test_apply_fills_variables_and_drops_unused_slots() -> None:
    service = TemplateService()

    prompt = service.apply(
        "portrait-professional",
        {"subject": "elderly fisherman", "lighting": "soft window light"},
    )

    assert prompt.startswith("elderly fisherman portrait,")
    assert "professional soft window light" in prompt
    assert prompt.endswith("high-quality photography")
    assert "{" not in prompt
    assert "  " not in prompt


def test_apply_unknown_template_raises() -> None:
    with pytest.raises(TemplateNotFoundError, match="Template missing not found"):
        TemplateService().apply("missing", {})


def test_adapt_for_provider_uses_template_patterns() -> None:
    service = TemplateService()

    assert service.adapt_for_provider("a red barn", "imagen4", "landscape-natural") == "scenic landscape of a red barn"
    assert service.adapt_for_provider("a red barn", "mock", "landscape-natural") == "a red barn"
    assert service.adapt_for_provider("a red barn", "stableDiffusion") == f"a red barn{DEFAULT_SD_SUFFIX}"
    assert service.adapt_for_provider("a red barn", "dalleE3") == "a red barn"
    assert service.adapt_for_provider("a red barn", "stableDiffusion", "missing") == f"a red barn{DEFAULT_SD_SUFFIX}"


def test_usage_counts_drive_popular_ranking() -> None:
    service = TemplateService()
    for _ in range(3):
        service.increment_usage("anime-character")
    service.increment_usage("product-commercial")
    service.increment_usage("missing")

    popular = service.popular(2)

    assert [template.id for template in popular] == ["anime-character", "product-commercial"]
    assert service.usage_count("anime-character") == 3
    assert service.usage_count("missing") == 0


def test_public_excludes_private_templates() -> None:
    private = PromptTemplate(
        id="private-draft",
        name="Draft",
        category=PromptCategory.CONCEPT,
        description="Unpublished",
        base_structure="{subject}",
        is_public=False,
    )
    service = TemplateService(BUILTIN_TEMPLATES + (private,))

    assert service.get("private-draft") is private
    assert "private-draft" not in [template.id for template in service.public()]
    assert "private-draft" not in [template.id for template in service.popular(50)]
