"""
Artifact records produced by the generation stages.

Each artifact is a plain dataclass with to_dict/from_dict so it can be
persisted to the artifact store as JSON and reloaded. Every artifact carries
a `degraded` flag set when its stage used the rule-based fallback.
"""
from dataclasses import dataclass, field
from typing import Optional

SECTION_TYPES = (
    "hero",
    "value-proposition",
    "features",
    "services",
    "about",
    "testimonials",
    "team",
    "pricing",
    "faq",
    "contact",
    "cta",
    "portfolio",
)

EMOTIONAL_TONES = (
    "professional",
    "friendly",
    "premium",
    "innovative",
    "trustworthy",
    "exciting",
    "playful",
    "authoritative",
)

IMAGE_PURPOSES = ("hero", "supporting", "icon", "background")
IMAGE_PRIORITIES = ("hero", "primary", "supporting")


# =====================
# Design Strategy
# =====================

@dataclass
class DesignStrategy:
    """Derived creative direction for the run."""
    emotional_tone: str
    blueprint_id: str
    section_order: list[str]
    required_sections: list[str] = field(default_factory=list)
    rationale: str = ""
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "emotional_tone": self.emotional_tone,
            "blueprint_id": self.blueprint_id,
            "section_order": self.section_order,
            "required_sections": self.required_sections,
            "rationale": self.rationale,
            "degraded": self.degraded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DesignStrategy":
        return cls(
            emotional_tone=data["emotional_tone"],
            blueprint_id=data["blueprint_id"],
            section_order=list(data.get("section_order", [])),
            required_sections=list(data.get("required_sections", [])),
            rationale=data.get("rationale", ""),
            degraded=data.get("degraded", False),
        )


# =====================
# Layout
# =====================

@dataclass
class Section:
    """One section on a page."""
    id: str
    type: str
    variant_id: str
    component_refs: list[str] = field(default_factory=list)
    responsive_rules: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "variantId": self.variant_id,
            "componentRefs": self.component_refs,
            "responsiveRules": self.responsive_rules,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Section":
        return cls(
            id=data["id"],
            type=data["type"],
            variant_id=data.get("variantId", data.get("variant_id", "")),
            component_refs=list(data.get("componentRefs", [])),
            responsive_rules=dict(data.get("responsiveRules", {})),
        )


@dataclass
class PageLayout:
    """Ordered sections of one output page."""
    slug: str
    name: str
    sections: list[Section] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "name": self.name,
            "sections": [s.to_dict() for s in self.sections],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PageLayout":
        return cls(
            slug=data["slug"],
            name=data["name"],
            sections=[Section.from_dict(s) for s in data.get("sections", [])],
        )


@dataclass
class Layout:
    """Site layout: pages in navigation order."""
    pages: list[PageLayout]
    degraded: bool = False

    @property
    def sections(self) -> list[Section]:
        """All sections in page order, then section order."""
        return [s for page in self.pages for s in page.sections]

    def page_for_section(self, section_id: str) -> Optional[PageLayout]:
        for page in self.pages:
            if any(s.id == section_id for s in page.sections):
                return page
        return None

    def to_dict(self) -> dict:
        return {
            "pages": [p.to_dict() for p in self.pages],
            "degraded": self.degraded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Layout":
        return cls(
            pages=[PageLayout.from_dict(p) for p in data.get("pages", [])],
            degraded=data.get("degraded", False),
        )


# =====================
# Style System
# =====================

@dataclass
class ColorPalette:
    """Site color palette."""
    primary: str
    secondary: str
    accent: str
    neutrals: list[str] = field(default_factory=list)
    gradients: list[str] = field(default_factory=list)

    @property
    def colors(self) -> list[str]:
        return [self.primary, self.secondary, self.accent, *self.neutrals]

    def to_dict(self) -> dict:
        return {
            "primary": self.primary,
            "secondary": self.secondary,
            "accent": self.accent,
            "neutrals": self.neutrals,
            "gradients": self.gradients,
        }


@dataclass
class Typography:
    """Font pairing and modular type scale (px)."""
    heading_font: str
    body_font: str
    base_size: int = 16
    scale_ratio: float = 1.25
    scale: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "heading_font": self.heading_font,
            "body_font": self.body_font,
            "base_size": self.base_size,
            "scale_ratio": self.scale_ratio,
            "scale": self.scale,
        }


@dataclass
class StyleSystem:
    palette: ColorPalette
    typography: Typography
    spacing: list[int] = field(default_factory=list)
    radii: dict[str, str] = field(default_factory=dict)
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "palette": self.palette.to_dict(),
            "typography": self.typography.to_dict(),
            "spacing": self.spacing,
            "radii": self.radii,
            "degraded": self.degraded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StyleSystem":
        palette = data["palette"]
        typography = data["typography"]
        return cls(
            palette=ColorPalette(
                primary=palette["primary"],
                secondary=palette["secondary"],
                accent=palette["accent"],
                neutrals=list(palette.get("neutrals", [])),
                gradients=list(palette.get("gradients", [])),
            ),
            typography=Typography(
                heading_font=typography["heading_font"],
                body_font=typography["body_font"],
                base_size=typography.get("base_size", 16),
                scale_ratio=typography.get("scale_ratio", 1.25),
                scale=dict(typography.get("scale", {})),
            ),
            spacing=list(data.get("spacing", [])),
            radii=dict(data.get("radii", {})),
            degraded=data.get("degraded", False),
        )


# =====================
# Section Copy
# =====================

@dataclass
class CopyBlock:
    """Structured copy for one section."""
    headline: str
    subheadline: str = ""
    body: list[str] = field(default_factory=list)
    cta_primary: Optional[str] = None
    cta_secondary: Optional[str] = None
    items: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "headline": self.headline,
            "subheadline": self.subheadline,
            "body": self.body,
            "ctaPrimary": self.cta_primary,
            "ctaSecondary": self.cta_secondary,
            "items": self.items,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CopyBlock":
        body = data.get("body", [])
        if isinstance(body, str):
            body = [body]
        return cls(
            headline=str(data["headline"]),
            subheadline=str(data.get("subheadline") or ""),
            body=[str(b) for b in body if b],
            cta_primary=data.get("ctaPrimary", data.get("cta_primary")),
            cta_secondary=data.get("ctaSecondary", data.get("cta_secondary")),
            items=[i for i in data.get("items", []) if isinstance(i, dict)],
        )


@dataclass
class SectionCopy:
    """Copy keyed by section id."""
    sections: dict[str, CopyBlock]
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "sections": {k: v.to_dict() for k, v in self.sections.items()},
            "degraded": self.degraded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SectionCopy":
        return cls(
            sections={k: CopyBlock.from_dict(v) for k, v in data.get("sections", {}).items()},
            degraded=data.get("degraded", False),
        )


# =====================
# Images
# =====================

@dataclass
class ImageTask:
    id: str
    section_id: str
    purpose: str
    prompt: str
    dimensions: str
    priority: str

    @property
    def width(self) -> int:
        return int(self.dimensions.split("x")[0])

    @property
    def height(self) -> int:
        return int(self.dimensions.split("x")[1])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sectionId": self.section_id,
            "purpose": self.purpose,
            "prompt": self.prompt,
            "dimensions": self.dimensions,
            "priority": self.priority,
        }


@dataclass
class ImagePlan:
    tasks: list[ImageTask]
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "degraded": self.degraded,
        }


@dataclass
class ImageAsset:
    """Outcome of one ImageTask: a resolved url or a terminal failure."""
    task_id: str
    section_id: str
    url: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.url is not None

    def to_dict(self) -> dict:
        return {
            "taskId": self.task_id,
            "sectionId": self.section_id,
            "url": self.url,
            "success": self.success,
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass
class ImageSet:
    """All assets for an image plan, in task order."""
    assets: list[ImageAsset]
    degraded: bool = False

    @property
    def failures(self) -> list[ImageAsset]:
        return [a for a in self.assets if not a.success]

    def for_section(self, section_id: str) -> Optional[ImageAsset]:
        for asset in self.assets:
            if asset.section_id == section_id:
                return asset
        return None

    def to_dict(self) -> dict:
        return {
            "assets": [a.to_dict() for a in self.assets],
            "degraded": self.degraded,
        }


# =====================
# SEO
# =====================

@dataclass
class PageSEO:
    page_slug: str
    title: str
    description: str
    keywords: list[str] = field(default_factory=list)
    schema: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "keywords": self.keywords,
            "schema": self.schema,
        }


@dataclass
class SEOMetadata:
    pages: dict[str, PageSEO]
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "pages": {slug: p.to_dict() for slug, p in self.pages.items()},
            "degraded": self.degraded,
        }


# =====================
# Package
# =====================

@dataclass
class GeneratedWebsitePackage:
    """Assembled site: relative path -> file content, plus metadata."""
    files: dict[str, str]
    metadata: dict = field(default_factory=dict)
    degraded: bool = False

    @property
    def html_files(self) -> list[str]:
        return [p for p in self.files if p.endswith(".html")]

    @property
    def css_files(self) -> list[str]:
        return [p for p in self.files if p.endswith(".css")]

    def to_dict(self) -> dict:
        return {
            "files": sorted(self.files.keys()),
            "metadata": self.metadata,
            "degraded": self.degraded,
        }
