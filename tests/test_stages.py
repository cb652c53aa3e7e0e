"""
Unit tests for the generation stages.

Tests cover:
- DesignStrategy blueprint and tone selection
- Layout ordering and constraint handling
- StyleSystem contrast and palettes
- SectionCopy completeness and duplicate handling
- ImagePlan task ordering
- SEOMetadata length rules and JSON-LD
"""
import pytest
from unittest.mock import AsyncMock

from quality.contrast import contrast_ratio
from services.providers import ProviderSet
from stages.base import StageContext
from stages.blueprints import detect_blueprint, normalize_tone
from stages.design_strategy import DesignStrategyStage
from stages.image_plan import ImagePlanStage
from stages.layout import LayoutStage, order_sections
from stages.section_copy import SectionCopyStage, _fingerprint
from stages.seo_metadata import (
    DESCRIPTION_MAX,
    DESCRIPTION_MIN,
    TITLE_MAX,
    SEOMetadataStage,
    extract_keywords,
    fit_description,
)
from stages.style_system import StyleSystemStage, type_scale


def ctx_for(requirements, artifacts=None, constraints=None, providers=None):
    return StageContext(
        requirements=requirements,
        providers=providers or ProviderSet(),
        artifacts=artifacts or {},
        constraints=constraints or {},
    )


async def build_upstream(requirements, providers=None):
    """Run the fallback chain up to copy and image plan."""
    artifacts = {}
    for stage in (DesignStrategyStage(), LayoutStage(), StyleSystemStage(), SectionCopyStage(), ImagePlanStage()):
        result = await stage.run(ctx_for(requirements, artifacts, providers=providers))
        artifacts[stage.produces] = result.artifact
    return artifacts


# =====================
# Design Strategy Tests
# =====================

class TestDesignStrategy:
    """Blueprint detection and strategy output."""

    @pytest.mark.parametrize("industry,expected", [
        ("Coffee Shop", "hospitality-warm"),
        ("Family Law Practice", "professional-trust"),
        ("B2B SaaS", "tech-modern"),
        ("Yoga Studio", "wellness-calm"),
        ("Plumbing", "local-service"),
        ("Something Unusual", "local-service"),
    ])
    def test_detect_blueprint(self, industry, expected):
        assert detect_blueprint(industry) == expected

    def test_short_keywords_match_whole_words_only(self):
        # "bar" must not match inside "barber".
        assert detect_blueprint("Barber") != "hospitality-warm"

    def test_normalize_tone(self):
        assert normalize_tone("Friendly") == "friendly"
        assert normalize_tone(None) is None

    @pytest.mark.asyncio
    async def test_fallback(self, requirements):
        result = await DesignStrategyStage().run(ctx_for(requirements))
        strategy = result.artifact

        assert result.degraded is True
        assert strategy.blueprint_id == "hospitality-warm"
        assert strategy.emotional_tone == "friendly"
        assert strategy.section_order[0] == "hero"
        assert {"hero", "cta", "contact", "services", "testimonials"} <= set(strategy.required_sections)

    @pytest.mark.asyncio
    async def test_generate_with_provider(self, requirements, fake_providers):
        result = await DesignStrategyStage(retry_backoff=0).run(ctx_for(requirements, providers=fake_providers))

        assert result.degraded is False
        assert result.artifact.section_order[0] == "hero"
        assert result.artifact.rationale.startswith("Warm")

    @pytest.mark.asyncio
    async def test_invalid_model_output_falls_back(self, requirements):
        content = AsyncMock()
        content.generate_text = AsyncMock(return_value='{"emotional_tone": "grumpy", "blueprint_id": "tech-modern"}')
        providers = ProviderSet(content=content)

        result = await DesignStrategyStage(retry_backoff=0).run(ctx_for(requirements, providers=providers))

        assert result.degraded is True
        assert "grumpy" in result.error
        assert result.artifact.blueprint_id == "hospitality-warm"


# =====================
# Layout Tests
# =====================

class TestLayout:
    """Section ordering and layout constraints."""

    def test_order_sections(self):
        ordered = order_sections(["about", "hero", "cta", "faq", "about", "unknown"], required=["contact"])

        assert ordered == ["hero", "about", "faq", "cta", "contact"]

    def test_hero_always_first(self):
        assert order_sections(["faq"])[0] == "hero"

    @pytest.mark.asyncio
    async def test_pages_and_required_sections(self, requirements):
        artifacts = await build_upstream(requirements)
        layout = artifacts["layout"]

        assert [p.slug for p in layout.pages] == ["index", "about", "contact"]
        home = layout.pages[0]
        types = [s.type for s in home.sections]
        assert types[0] == "hero"
        assert {"services", "testimonials", "cta", "contact"} <= set(types)
        assert "contact" in [s.type for s in layout.pages[2].sections]

        ids = [s.id for s in layout.sections]
        assert len(ids) == len(set(ids))

    @pytest.mark.asyncio
    async def test_constraints(self, requirements):
        artifacts = await build_upstream(requirements)
        stage = LayoutStage()

        base = stage.fallback(ctx_for(requirements, artifacts))
        changed = stage.fallback(ctx_for(
            requirements,
            artifacts,
            constraints={"variant_offset": 1, "add_sections": ["pricing"]},
        ))

        assert "pricing" in [s.type for s in changed.pages[0].sections]
        assert [s.variant_id for s in base.sections] != [s.variant_id for s in changed.sections]


# =====================
# Style System Tests
# =====================

class TestStyleSystem:
    """Palette contrast and type scale."""

    def test_type_scale(self):
        scale = type_scale(16, 1.25)

        assert scale["body"] == 16
        assert scale["small"] < scale["body"] < scale["h2"] < scale["h1"]

    @pytest.mark.asyncio
    async def test_primary_contrast_on_white(self, requirements):
        artifacts = await build_upstream(requirements)
        style = artifacts["style"]

        assert contrast_ratio(style.palette.primary, "#ffffff") >= 4.5
        assert len(style.palette.gradients) == 2

    @pytest.mark.asyncio
    async def test_constraints_raise_contrast_and_rotate_palette(self, requirements):
        artifacts = await build_upstream(requirements)
        stage = StyleSystemStage()

        base = stage.fallback(ctx_for(requirements, artifacts))
        stricter = stage.fallback(ctx_for(
            requirements,
            artifacts,
            constraints={"min_contrast": 7.0, "palette_offset": 1, "bolder": True},
        ))

        assert contrast_ratio(stricter.palette.primary, "#ffffff") >= 7.0
        assert stricter.palette.secondary != base.palette.secondary
        assert stricter.typography.scale["h1"] > base.typography.scale["h1"]

    @pytest.mark.asyncio
    async def test_generate_with_provider(self, requirements, fake_providers):
        artifacts = await build_upstream(requirements)

        result = await StyleSystemStage(retry_backoff=0).run(ctx_for(requirements, artifacts, providers=fake_providers))

        assert result.degraded is False
        assert result.artifact.typography.heading_font == "Playfair Display"


# =====================
# Section Copy Tests
# =====================

class TestSectionCopy:
    """Copy completeness and uniqueness."""

    @pytest.mark.asyncio
    async def test_every_section_has_copy(self, requirements):
        artifacts = await build_upstream(requirements)
        copy = artifacts["copy"]

        for section in artifacts["layout"].sections:
            block = copy.sections[section.id]
            assert block.headline
            assert block.body

    @pytest.mark.asyncio
    async def test_home_hero_mentions_business(self, requirements):
        artifacts = await build_upstream(requirements)

        assert "Acme Roasters" in artifacts["copy"].sections["index-hero"].headline

    @pytest.mark.asyncio
    async def test_headlines_unique_per_page(self, requirements):
        artifacts = await build_upstream(requirements)
        copy = artifacts["copy"]

        for page in artifacts["layout"].pages:
            headlines = [_fingerprint(copy.sections[s.id].headline) for s in page.sections]
            assert len(headlines) == len(set(headlines))

    @pytest.mark.asyncio
    async def test_no_duplicates_and_min_words(self, requirements):
        artifacts = await build_upstream(requirements)

        copy = SectionCopyStage().fallback(ctx_for(
            requirements,
            artifacts,
            constraints={"no_duplicates": True, "min_body_words": 45},
        ))

        paragraphs = [_fingerprint(p) for block in copy.sections.values() for p in block.body]
        assert len(paragraphs) == len(set(paragraphs))

    @pytest.mark.asyncio
    async def test_model_copy_merged_with_templates(self, requirements, fake_providers):
        artifacts = await build_upstream(requirements)

        result = await SectionCopyStage(retry_backoff=0).run(ctx_for(requirements, artifacts, providers=fake_providers))

        assert result.degraded is False
        block = result.artifact.sections["about-about"]
        assert block.headline == "Headline for about-about"
        assert block.body


# =====================
# Image Plan Tests
# =====================

class TestImagePlan:
    """Image task selection and ordering."""

    @pytest.mark.asyncio
    async def test_heroes_first(self, requirements):
        artifacts = await build_upstream(requirements)
        tasks = artifacts["image-plan"].tasks

        assert tasks[0].id == "img-index-hero"
        assert tasks[0].priority == "hero"
        assert tasks[0].dimensions == "1792x1024"
        priorities = [t.priority for t in tasks]
        assert priorities == sorted(priorities, key=["hero", "primary", "supporting"].index)
        assert all(t.prompt for t in tasks)

    @pytest.mark.asyncio
    async def test_only_image_sections(self, requirements):
        artifacts = await build_upstream(requirements)
        image_sections = {t.section_id for t in artifacts["image-plan"].tasks}
        layout_types = {s.id: s.type for s in artifacts["layout"].sections}

        assert all(layout_types[sid] in {"hero", "about", "services", "portfolio", "team"} for sid in image_sections)


# =====================
# SEO Metadata Tests
# =====================

class TestSEOMetadata:
    """Title and description rules."""

    def test_fit_description_pads_short_text(self, requirements):
        text = fit_description("Great coffee.", requirements)

        assert DESCRIPTION_MIN <= len(text) <= DESCRIPTION_MAX

    def test_fit_description_trims_long_text(self, requirements):
        text = fit_description("word " * 100, requirements)

        assert len(text) <= DESCRIPTION_MAX

    def test_keywords(self, requirements):
        keywords = extract_keywords(requirements, "About")
        expanded = extract_keywords(requirements, "About", expand=True)

        assert keywords[0] == "coffee shop"
        assert "coffee shop portland, or" in keywords
        assert "espresso bar" in keywords
        assert len(expanded) > len(keywords)

    @pytest.mark.asyncio
    async def test_pages(self, requirements):
        artifacts = await build_upstream(requirements)

        result = await SEOMetadataStage().run(ctx_for(requirements, artifacts))
        seo = result.artifact

        assert set(seo.pages) == {"index", "about", "contact"}
        titles = [p.title for p in seo.pages.values()]
        assert len(titles) == len(set(titles))
        for page in seo.pages.values():
            assert len(page.title) <= TITLE_MAX
            assert DESCRIPTION_MIN <= len(page.description) <= DESCRIPTION_MAX
            assert page.keywords
        assert seo.pages["index"].schema["@type"] == "LocalBusiness"
        assert seo.pages["index"].schema["telephone"] == "+1 503 555 0100"
        assert seo.pages["contact"].schema["@type"] == "ContactPage"
        assert seo.pages["about"].schema["@type"] == "AboutPage"
