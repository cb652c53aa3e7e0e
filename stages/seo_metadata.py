"""
SEO Metadata - per-page title, description, keywords and JSON-LD.

Lengths are enforced on every path: titles at most 60 characters and unique
across the site, descriptions between 70 and 160 characters.
"""
from typing import Optional

import structlog

from schemas.artifacts import Layout, PageLayout, PageSEO, SectionCopy, SEOMetadata
from schemas.requirements import Requirements
from stages.base import BaseStage, StageContext
from stages.blueprints import page_kind

logger = structlog.get_logger()

TITLE_MAX = 60
DESCRIPTION_MIN = 70
DESCRIPTION_MAX = 160
MAX_KEYWORDS = 12

PAGE_SCHEMA_TYPES = {
    "home": "LocalBusiness",
    "contact": "ContactPage",
    "about": "AboutPage",
    "faq": "FAQPage",
}


def truncate_words(text: str, limit: int) -> str:
    """Cut at a word boundary so the result fits in limit characters."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[:limit + 1].rsplit(" ", 1)[0].rstrip(" ,;:-|")
    return cut if cut else text[:limit]


def fit_title(title: str) -> str:
    return truncate_words(title, TITLE_MAX)


def fit_description(text: str, requirements: Requirements) -> str:
    """Pad short descriptions, trim long ones on a word boundary."""
    location = f" in {requirements.location}" if requirements.location else ""
    padding = [
        f"{requirements.business_name} offers {requirements.industry.lower()}{location}.",
        "Friendly service, clear pricing and quick replies.",
        "Get in touch today to find out more.",
    ]
    text = " ".join(text.split())
    while len(text) < DESCRIPTION_MIN and padding:
        sentence = padding.pop(0)
        text = f"{text.rstrip('.')}. {sentence}" if text else sentence
    if len(text) > DESCRIPTION_MAX:
        text = truncate_words(text, DESCRIPTION_MAX - 1).rstrip(".") + "."
    return text


def extract_keywords(requirements: Requirements, page_name: Optional[str] = None, expand: bool = False) -> list[str]:
    """Search keywords from industry, location, services and page."""
    industry = requirements.industry.lower()
    location = (requirements.location or "").lower()
    candidates = [industry]
    if location:
        candidates.append(f"{industry} {location}")
    candidates.extend(s.lower() for s in requirements.services)
    if page_name and page_name.lower() not in ("home", "index"):
        candidates.append(f"{industry} {page_name.lower()}")
    candidates.append(requirements.business_name.lower())

    if expand:
        candidates.append(f"{industry} near me")
        if location:
            candidates.append(f"best {industry} in {location}")
            candidates.extend(f"{s.lower()} {location}" for s in requirements.services)
        candidates.extend(f"{industry} for {a.lower()}" for a in requirements.target_audiences)

    return list(dict.fromkeys(c.strip() for c in candidates if c.strip()))[:MAX_KEYWORDS]


def build_schema(requirements: Requirements, page: PageLayout, title: str, description: str) -> dict:
    """JSON-LD object for a page."""
    kind = page_kind(page.name, page.slug)
    schema_type = PAGE_SCHEMA_TYPES.get(kind, "WebPage")
    schema = {
        "@context": "https://schema.org",
        "@type": schema_type,
        "name": requirements.business_name if kind == "home" else title,
        "description": description,
    }
    if kind == "home":
        if requirements.phone:
            schema["telephone"] = requirements.phone
        if requirements.email:
            schema["email"] = requirements.email
        if requirements.address:
            schema["address"] = {"@type": "PostalAddress", "streetAddress": requirements.address}
        if requirements.location:
            schema["areaServed"] = requirements.location
        if requirements.services:
            schema["makesOffer"] = [
                {"@type": "Offer", "itemOffered": {"@type": "Service", "name": s}}
                for s in requirements.services
            ]
    else:
        schema["isPartOf"] = {"@type": "WebSite", "name": requirements.business_name}
    return schema


class SEOMetadataStage(BaseStage):
    """Produces the seo-metadata artifact."""

    name = "seo_metadata"
    produces = "seo-metadata"
    depends_on = ("layout", "copy")

    async def generate(self, ctx: StageContext) -> SEOMetadata:
        layout: Layout = ctx.artifact("layout")

        prompt = f"""Write SEO metadata for each page of the website.
Titles at most {TITLE_MAX} characters and unique; descriptions {DESCRIPTION_MIN}-{DESCRIPTION_MAX} characters.

Pages: {", ".join(f"{p.slug} ({p.name})" for p in layout.pages)}

Respond with JSON: {{"pages": {{"<slug>": {{"title": "...", "description": "...", "keywords": ["..."]}}}}}}"""

        data = await self.ask_json(ctx, prompt, self.brief(ctx.requirements))
        suggested = data["pages"]
        if not isinstance(suggested, dict):
            raise ValueError("seo-metadata: 'pages' must be an object")

        drafts = {}
        for page in layout.pages:
            entry = suggested.get(page.slug)
            if not isinstance(entry, dict) or not entry.get("title") or not entry.get("description"):
                drafts[page.slug] = self._draft(ctx, page)
                continue
            keywords = [str(k) for k in entry.get("keywords", []) if k]
            drafts[page.slug] = (str(entry["title"]), str(entry["description"]), keywords)
        return self._finish(ctx, layout, drafts)

    def fallback(self, ctx: StageContext) -> SEOMetadata:
        layout: Layout = ctx.artifact("layout")
        drafts = {page.slug: self._draft(ctx, page) for page in layout.pages}
        return self._finish(ctx, layout, drafts)

    def _draft(self, ctx: StageContext, page: PageLayout) -> tuple[str, str, list[str]]:
        requirements = ctx.requirements
        copy: SectionCopy = ctx.artifact("copy")
        industry = requirements.industry.strip()
        location = f" in {requirements.location}" if requirements.location else ""

        if page.slug == "index":
            title = f"{requirements.business_name} | {industry.title()}{location}"
        else:
            title = f"{page.name} | {requirements.business_name}"

        description = ""
        hero = copy.sections.get(f"{page.slug}-hero")
        if hero is not None:
            description = hero.subheadline or (hero.body[0] if hero.body else "")
        if not description:
            description = f"{page.name} at {requirements.business_name}, {industry.lower()}{location}."
        return title, description, []

    def _finish(
        self,
        ctx: StageContext,
        layout: Layout,
        drafts: dict[str, tuple[str, str, list[str]]],
    ) -> SEOMetadata:
        requirements = ctx.requirements
        expand = bool(ctx.constraints.get("expand_keywords"))
        pages = {}
        used_titles: set[str] = set()

        for page in layout.pages:
            title, description, keywords = drafts[page.slug]
            title = fit_title(title)
            if title.lower() in used_titles:
                title = fit_title(f"{page.name} | {title}")
            if title.lower() in used_titles:
                title = fit_title(f"{page.name} | {requirements.business_name} {page.slug}")
            used_titles.add(title.lower())

            description = fit_description(description, requirements)
            keywords = list(dict.fromkeys(keywords + extract_keywords(requirements, page.name, expand)))[:MAX_KEYWORDS]

            pages[page.slug] = PageSEO(
                page_slug=page.slug,
                title=title,
                description=description,
                keywords=keywords,
                schema=build_schema(requirements, page, title, description),
            )

        return SEOMetadata(pages=pages)
