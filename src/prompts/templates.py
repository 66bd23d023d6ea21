"""Built-in prompt templates and provider-specific prompt adaptation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import re
import threading
from typing import Dict, List, Mapping, Optional, Tuple


class PromptCategory(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    CONCEPT = "concept"
    PRODUCT = "product"
    ARCHITECTURE = "architecture"
    ABSTRACT = "abstract"
    ANIME = "anime"
    REALISTIC = "realistic"


class TemplateNotFoundError(LookupError):
    def __init__(self, template_id: str) -> None:
        super().__init__(f"Template {template_id} not found")
        self.template_id = template_id


@dataclass(frozen=True)
class TemplateRule:
    condition: str
    addition: str
    weight: float


@dataclass(frozen=True)
class PromptTemplate:
    id: str
    name: str
    category: PromptCategory
    description: str
    base_structure: str
    enhancement_rules: Tuple[TemplateRule, ...] = ()
    # provider name -> pattern containing "{prompt}"
    provider_adaptations: Mapping[str, str] = field(default_factory=dict)
    is_public: bool = True
    created_by: str = "system"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_PLACEHOLDER_RE = re.compile(r"\{[^}]+\}")
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_SD_SUFFIX = ", masterpiece, best quality, highly detailed, professional"


def _rules(*rules: Tuple[str, str, float]) -> Tuple[TemplateRule, ...]:
    return tuple(TemplateRule(condition=c, addition=a, weight=w) for c, a, w in rules)


BUILTIN_TEMPLATES: Tuple[PromptTemplate, ...] = (
    PromptTemplate(
        id="portrait-professional",
        name="Professional Portrait",
        category=PromptCategory.PORTRAIT,
        description="High-quality professional headshot style",
        base_structure=(
            "{subject} portrait, {pose}, {expression}, {clothing}, professional {lighting}, "
            "{background}, {camera_angle}, high-quality photography"
        ),
        enhancement_rules=_rules(
            ("professional", "studio lighting, sharp focus, 85mm lens, professional makeup", 1.0),
            ("business", "corporate attire, confident expression, neutral background", 0.8),
        ),
        provider_adaptations={
            "dalleE3": "{prompt}, photorealistic, high detail",
            "imagen4": "professional photography of {prompt}",
            "stableDiffusion": "{prompt}, professional portrait photography, masterpiece, best quality, ultra detailed",
        },
    ),
    PromptTemplate(
        id="portrait-artistic",
        name="Artistic Portrait",
        category=PromptCategory.PORTRAIT,
        description="Creative and artistic portrait style",
        base_structure=(
            "{subject} artistic portrait, {artistic_style}, {lighting}, {mood}, {composition}, creative {background}"
        ),
        enhancement_rules=_rules(
            ("artistic", "dramatic lighting, creative composition, artistic vision", 1.0),
            ("creative", "unique perspective, bold colors, experimental style", 0.9),
        ),
        provider_adaptations={
            "dalleE3": "artistic {prompt}, creative photography",
            "imagen4": "artistic portrait of {prompt}, creative style",
            "stableDiffusion": "{prompt}, artistic portrait, creative photography, fine art style",
        },
    ),
    PromptTemplate(
        id="landscape-natural",
        name="Natural Landscape",
        category=PromptCategory.LANDSCAPE,
        description="Beautiful natural scenery and environments",
        base_structure=(
            "{location} landscape, {time_of_day}, {weather}, {season}, {camera_angle}, "
            "natural {lighting}, {atmospheric_effects}"
        ),
        enhancement_rules=_rules(
            ("natural", "pristine nature, untouched wilderness, natural beauty", 1.0),
            ("scenic", "breathtaking views, panoramic vista, scenic beauty", 0.9),
        ),
        provider_adaptations={
            "dalleE3": "beautiful {prompt}, natural photography",
            "imagen4": "scenic landscape of {prompt}",
            "stableDiffusion": "{prompt}, landscape photography, natural lighting, high resolution, detailed",
        },
    ),
    PromptTemplate(
        id="concept-futuristic",
        name="Futuristic Concept",
        category=PromptCategory.CONCEPT,
        description="Sci-fi and futuristic concept art",
        base_structure=(
            "futuristic {subject}, {technology}, {environment}, {lighting}, sci-fi {style}, "
            "{color_scheme}, advanced {details}"
        ),
        enhancement_rules=_rules(
            ("futuristic", "advanced technology, sleek design, neon lighting, cyberpunk elements", 1.0),
            ("sci-fi", "space age, holographic elements, metallic surfaces, glowing accents", 0.9),
        ),
        provider_adaptations={
            "dalleE3": "futuristic concept art of {prompt}",
            "imagen4": "sci-fi concept art featuring {prompt}",
            "stableDiffusion": "{prompt}, futuristic concept art, sci-fi style, digital art, highly detailed",
        },
    ),
    PromptTemplate(
        id="product-commercial",
        name="Commercial Product",
        category=PromptCategory.PRODUCT,
        description="Professional product photography",
        base_structure=(
            "{product} product photography, {materials}, {finish}, professional {lighting}, "
            "{background}, commercial {style}, high-end {presentation}"
        ),
        enhancement_rules=_rules(
            ("commercial", "professional studio lighting, clean background, perfect exposure", 1.0),
            ("luxury", "premium materials, elegant presentation, sophisticated styling", 0.8),
        ),
        provider_adaptations={
            "dalleE3": "professional product photography of {prompt}",
            "imagen4": "commercial photography featuring {prompt}",
            "stableDiffusion": "{prompt}, product photography, commercial lighting, professional, clean background",
        },
    ),
    PromptTemplate(
        id="architecture-modern",
        name="Modern Architecture",
        category=PromptCategory.ARCHITECTURE,
        description="Contemporary architectural photography",
        base_structure=(
            "modern {building_type}, {architectural_style}, {materials}, {environment}, {lighting}, "
            "{perspective}, contemporary {design}"
        ),
        enhancement_rules=_rules(
            ("modern", "clean lines, minimalist design, contemporary materials, geometric forms", 1.0),
            ("sustainable", "eco-friendly design, green architecture, sustainable materials", 0.7),
        ),
        provider_adaptations={
            "dalleE3": "modern architecture photography of {prompt}",
            "imagen4": "contemporary architectural view of {prompt}",
            "stableDiffusion": "{prompt}, modern architecture, architectural photography, clean design",
        },
    ),
    PromptTemplate(
        id="abstract-geometric",
        name="Geometric Abstract",
        category=PromptCategory.ABSTRACT,
        description="Abstract geometric compositions",
        base_structure=(
            "abstract geometric {composition}, {shapes}, {patterns}, {colors}, {style}, {movement}, "
            "artistic {expression}"
        ),
        enhancement_rules=_rules(
            ("geometric", "precise shapes, mathematical patterns, clean lines, structured composition", 1.0),
            ("dynamic", "flowing movement, energy, rhythm, dynamic balance", 0.8),
        ),
        provider_adaptations={
            "dalleE3": "abstract geometric art featuring {prompt}",
            "imagen4": "geometric abstract composition with {prompt}",
            "stableDiffusion": "{prompt}, abstract geometric art, digital art, colorful, high contrast",
        },
    ),
    PromptTemplate(
        id="anime-character",
        name="Anime Character",
        category=PromptCategory.ANIME,
        description="Anime and manga style characters",
        base_structure="anime {character}, {style}, {expression}, {clothing}, {pose}, {background}, {art_style}, {details}",
        enhancement_rules=_rules(
            ("anime", "manga style, cel shading, bright colors, expressive eyes", 1.0),
            ("kawaii", "cute style, soft features, pastel colors, adorable expression", 0.9),
        ),
        provider_adaptations={
            "dalleE3": "anime style illustration of {prompt}",
            "imagen4": "anime character design featuring {prompt}",
            "stableDiffusion": "{prompt}, anime style, manga art, cel shading, vibrant colors",
        },
    ),
    PromptTemplate(
        id="realistic-photography",
        name="Realistic Photography",
        category=PromptCategory.REALISTIC,
        description="Photorealistic imagery",
        base_structure=(
            "realistic {subject}, {lighting}, {composition}, {camera_settings}, {environment}, "
            "photographic {quality}, {details}"
        ),
        enhancement_rules=_rules(
            ("realistic", "photorealistic, natural lighting, authentic details, real-world accuracy", 1.0),
            ("documentary", "documentary style, candid moment, natural environment, authentic emotion", 0.8),
        ),
        provider_adaptations={
            "dalleE3": "photorealistic {prompt}, natural photography",
            "imagen4": "realistic photograph of {prompt}",
            "stableDiffusion": "{prompt}, photorealistic, natural lighting, high detail, professional photography",
        },
    ),
)


class TemplateService:
    """In-memory template catalogue with usage counters."""

    def __init__(self, templates: Optional[Tuple[PromptTemplate, ...]] = None) -> None:
        self._templates: Dict[str, PromptTemplate] = {}
        self._usage: Dict[str, int] = {}
        self._lock = threading.Lock()
        for template in templates if templates is not None else BUILTIN_TEMPLATES:
            self._templates[template.id] = template
            self._usage[template.id] = 0

    def get(self, template_id: str) -> Optional[PromptTemplate]:
        return self._templates.get(template_id)

    def require(self, template_id: str) -> PromptTemplate:
        template = self.get(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def by_category(self, category: PromptCategory) -> List[PromptTemplate]:
        return [template for template in self._templates.values() if template.category == category]

    def all(self) -> List[PromptTemplate]:
        return list(self._templates.values())

    def public(self) -> List[PromptTemplate]:
        return [template for template in self._templates.values() if template.is_public]

    def usage_count(self, template_id: str) -> int:
        with self._lock:
            return self._usage.get(template_id, 0)

    def apply(self, template_id: str, variables: Mapping[str, str]) -> str:
        """Fill the template's slots; unused slots are dropped."""

        result = self.require(template_id).base_structure
        for key, value in variables.items():
            result = result.replace(f"{{{key}}}", str(value))
        result = _PLACEHOLDER_RE.sub("", result)
        return _WHITESPACE_RE.sub(" ", result).strip()

    def adapt_for_provider(self, prompt: str, provider: str, template_id: Optional[str] = None) -> str:
        if template_id:
            template = self.get(template_id)
            if template is not None:
                pattern = template.provider_adaptations.get(provider)
                return pattern.replace("{prompt}", prompt) if pattern else prompt

        if provider == "stableDiffusion":
            return f"{prompt}{DEFAULT_SD_SUFFIX}"
        return prompt

    def increment_usage(self, template_id: str) -> None:
        with self._lock:
            if template_id in self._usage:
                self._usage[template_id] += 1

    def popular(self, limit: int = 10) -> List[PromptTemplate]:
        with self._lock:
            usage = dict(self._usage)
        ranked = sorted(self.public(), key=lambda template: usage.get(template.id, 0), reverse=True)
        return ranked[: max(limit, 0)]
