"""
Layout - turns the design strategy into ordered sections per page.
"""
from typing import Optional

import structlog

from schemas.artifacts import DesignStrategy, Layout, PageLayout, Section, SECTION_TYPES
from schemas.requirements import page_slug
from stages.base import BaseStage, StageContext
from stages.blueprints import (
    BLUEPRINTS,
    COMPONENT_REFS,
    PAGE_TEMPLATES,
    page_kind,
    responsive_rules_for,
    variant_for,
)

logger = structlog.get_logger()

# Sections that close a page, in this order.
TRAILING_SECTIONS = ("cta", "contact")


def order_sections(types: list[str], required: Optional[list[str]] = None) -> list[str]:
    """
    Normalize a section list: known types only, no repeats, hero first,
    required sections present, cta/contact last.
    """
    ordered = [t for t in dict.fromkeys(types) if t in SECTION_TYPES]
    for section_type in required or []:
        if section_type not in ordered and section_type in SECTION_TYPES:
            ordered.append(section_type)

    body = [t for t in ordered if t != "hero" and t not in TRAILING_SECTIONS]
    trailing = [t for t in TRAILING_SECTIONS if t in ordered]
    return ["hero"] + body + trailing


class LayoutStage(BaseStage):
    """Produces the layout artifact."""

    name = "layout"
    produces = "layout"
    depends_on = ("design-strategy",)

    async def generate(self, ctx: StageContext) -> Layout:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        pages = self._page_plan(ctx, strategy)

        prompt = f"""Plan the section order for each page of a {strategy.emotional_tone} website
using the "{strategy.blueprint_id}" blueprint.

Allowed section types: {", ".join(SECTION_TYPES)}.
Each page starts with "hero". Keep pages focused (3-8 sections).

Pages and their default plans:
{chr(10).join(f'- {slug}: {", ".join(types)}' for slug, (_, types) in pages.items())}

Respond with JSON: {{"pages": {{"<page slug>": ["hero", ...]}}}}"""

        data = await self.ask_json(ctx, prompt, self.brief(ctx.requirements))
        suggested = data["pages"]
        if not isinstance(suggested, dict):
            raise ValueError("layout: 'pages' must be an object")

        plan = {}
        for slug, (name, default_types) in pages.items():
            types = suggested.get(slug)
            if not isinstance(types, list) or not types:
                types = default_types
            plan[slug] = (name, types)
        return self._build(ctx, strategy, plan)

    def fallback(self, ctx: StageContext) -> Layout:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        return self._build(ctx, strategy, self._page_plan(ctx, strategy))

    def _page_plan(self, ctx: StageContext, strategy: DesignStrategy) -> dict[str, tuple[str, list[str]]]:
        plan = {}
        for name in ctx.requirements.pages:
            slug = page_slug(name)
            kind = page_kind(name, slug)
            if kind == "home":
                types = list(strategy.section_order)
            else:
                types = list(PAGE_TEMPLATES[kind])
            plan[slug] = (name, types)
        return plan

    def _build(
        self,
        ctx: StageContext,
        strategy: DesignStrategy,
        plan: dict[str, tuple[str, list[str]]],
    ) -> Layout:
        offset = list(BLUEPRINTS).index(strategy.blueprint_id) if strategy.blueprint_id in BLUEPRINTS else 0
        offset += int(ctx.constraints.get("variant_offset", 0))
        extra = list(ctx.constraints.get("add_sections", []))

        pages = []
        for slug, (name, types) in plan.items():
            kind = page_kind(name, slug)
            required = []
            if kind == "home":
                required = list(strategy.required_sections) + extra
            elif kind == "contact":
                required = ["contact"]
            ordered = order_sections(types, required)

            sections = [
                Section(
                    id=f"{slug}-{section_type}",
                    type=section_type,
                    variant_id=variant_for(section_type, offset),
                    component_refs=list(COMPONENT_REFS[section_type]),
                    responsive_rules=responsive_rules_for(section_type),
                )
                for section_type in ordered
            ]
            pages.append(PageLayout(slug=slug, name=name, sections=sections))

        logger.debug(
            "Layout built",
            pages=len(pages),
            sections=sum(len(p.sections) for p in pages),
            variant_offset=offset,
        )
        return Layout(pages=pages)
