"""
Section Copy - headline, body and call-to-action text for every section.

Both paths finish with the same normalization:
- optional expansion to a minimum body length
- stronger calls to action when requested
- unique headlines within a page
- no body block shared verbatim by sections of different types
"""
import re
from typing import Optional

import structlog

from schemas.artifacts import CopyBlock, DesignStrategy, Layout, PageLayout, Section, SectionCopy
from schemas.requirements import Requirements
from stages.base import BaseStage, StageContext
from stages.blueprints import page_kind

logger = structlog.get_logger()

TONE_WORDS = {
    "professional": "reliable",
    "friendly": "welcoming",
    "premium": "refined",
    "innovative": "forward-thinking",
    "trustworthy": "dependable",
    "exciting": "bold",
    "playful": "cheerful",
    "authoritative": "expert",
}

TONE_TAGLINES = {
    "professional": "Reliable {industry}{loc}",
    "friendly": "Your neighbourhood {industry}{loc}",
    "premium": "Exceptional {industry}, crafted with care",
    "innovative": "A smarter approach to {industry}",
    "trustworthy": "{Industry} you can count on",
    "exciting": "{Industry} that stands out",
    "playful": "{Industry} that makes you smile",
    "authoritative": "Expert {industry}{loc}",
}

PAGE_HEADLINES = {
    "about": "Our story at {name}",
    "services": "Services from {name}",
    "contact": "Contact {name}",
    "pricing": "Pricing at {name}",
    "faq": "Questions about {name}",
    "portfolio": "Work by {name}",
    "team": "The {name} team",
    "testimonials": "Reviews of {name}",
    "generic": "{page} at {name}",
}

HEADLINES = {
    "value-proposition": ["Why {audience} choose {name}", "What makes {name} different"],
    "features": ["Built around the way you work", "Details that make a difference"],
    "services": ["Our services", "What we offer{loc}"],
    "about": ["The story behind {name}", "About {name}"],
    "testimonials": ["What our customers say", "Trusted by {audience}"],
    "team": ["Meet the team", "The people behind {name}"],
    "pricing": ["Simple, transparent pricing", "Plans and pricing"],
    "faq": ["Frequently asked questions", "Your questions, answered"],
    "contact": ["Get in touch", "Visit or contact {name}"],
    "cta": ["Ready to get started?", "Let's work together"],
    "portfolio": ["Recent work", "Selected projects"],
}

SUBHEADLINES = {
    "hero": "{Industry} for {audience}{loc}, delivered with {tone_word} attention to every detail.",
    "value-proposition": "A {tone_word} partner for {audience} who value quality and honesty.",
    "features": "Practical touches that make working with {name} easy from the first hello.",
    "services": "Everything {name} offers, explained simply.",
    "about": "Independent, local and proud of the {industry} we deliver{loc}.",
    "testimonials": "Real feedback from people who know us best.",
    "team": "Experienced specialists who care about the details.",
    "pricing": "Choose the option that fits you today and adjust whenever you need.",
    "faq": "Quick answers before you reach out.",
    "contact": "We usually reply within one business day.",
    "cta": "Talk to {name} today and get a clear plan for what comes next.",
    "portfolio": "A look at what we have delivered for customers like you.",
}

BODY_POOLS = {
    "hero": [
        "{name} brings {tone_word} {industry} to {audience}{loc}, with {services} shaped around what you actually need.",
        "From the first conversation to the finished result, our team keeps things clear, on time and focused on the details that matter to you.",
        "Every visit, order and project is handled by people who know {industry} inside out and care about getting it right the first time.",
    ],
    "value-proposition": [
        "We combine hands-on {industry} experience with a {tone_word} approach, so {audience} always know what to expect and when to expect it.",
        "Clear pricing, honest advice and consistent quality mean you never have to second-guess a decision made with {name}.",
        "Small enough to know every customer by name and experienced enough to handle the requests others turn away.",
    ],
    "features": [
        "Each part of what {name} offers is designed to save you time, from simple booking to follow-up that keeps you informed.",
        "Thoughtful touches set us apart: flexible scheduling, transparent updates and a team that answers questions the same day.",
        "We keep refining the way we work based on feedback from {audience}, so every improvement is one you asked for.",
    ],
    "services": [
        "Explore {services}. Every service is delivered by the same team that plans it, so quality stays consistent from start to finish.",
        "Not sure which option fits? Tell us what you need and we will recommend the right mix of services for your goals and budget.",
        "Regular customers{loc} rely on us for both one-off requests and ongoing support, and every engagement gets the same level of care.",
    ],
    "about": [
        "{name} started with a simple idea: {industry} should feel personal. That idea still guides every decision we make{loc}.",
        "Our team has spent years learning the craft, building relationships with suppliers and listening closely to the people we serve.",
        "Today we are proud to be part of the local community, supporting neighbours, partners and {audience} who have trusted us from day one.",
    ],
    "testimonials": [
        "Customers come back because the experience is consistent. Here is what a few of them have shared about working with {name}.",
        "We read every review and use each one to make the next visit better than the last, because your feedback shapes what we do.",
        "Word of mouth has always been our strongest marketing, and we work hard to keep earning those recommendations every single day.",
    ],
    "team": [
        "The people behind {name} combine deep {industry} know-how with a genuine interest in the customers they work with every day.",
        "Each member of the team brings a different specialty, which means your request lands with someone who has solved it before.",
        "We invest in training and fair working conditions because a supported team delivers better results for every customer.",
    ],
    "pricing": [
        "Straightforward packages with no hidden fees, so you can choose the level of service that suits you and change it at any time.",
        "Every plan includes the same commitment to quality; higher tiers simply add more flexibility, priority scheduling and extra support.",
        "Need something bespoke? We are happy to put together a custom quote based on a short conversation about your goals.",
    ],
    "faq": [
        "Answers to the questions we hear most often from {audience}. If yours is not listed, our team is always happy to help directly.",
        "We keep this list up to date as our services evolve, so you always have accurate information before you get in touch.",
        "Still deciding? A quick call is often the fastest way to find out whether {name} is the right fit for what you need.",
    ],
    "contact": [
        "Reach {name} by phone, email or the form below and a member of our team will reply within one business day.",
        "Prefer to talk in person? Visit us{loc} during opening hours and we will walk you through every option on the spot.",
        "Tell us a little about what you are looking for and we will come back with clear next steps, timings and costs.",
    ],
    "cta": [
        "Ready to see what {name} can do for you? Take the first step today and hear back from our team within one business day.",
        "Join the {audience} who already rely on us for {tone_word} {industry} tailored to the way they live and work.",
        "There is no obligation and no pressure, just a friendly conversation about what you need and how we can help.",
    ],
    "portfolio": [
        "A selection of recent {industry} work for {audience}{loc}, each one planned and delivered end to end by our team.",
        "Every project starts with listening. These examples show how different goals led to very different, equally successful results.",
        "Browse the highlights below, then get in touch to talk through how a similar approach could work for you.",
    ],
}

# Used when a body block has to be replaced to keep section text distinct.
TYPE_CLOSERS = {
    "hero": "the place to start if you want {industry} done well{loc}.",
    "value-proposition": "the reasons {audience} keep choosing {name}.",
    "features": "small details that add up to a noticeably better experience.",
    "services": "ask us which of our services suits your situation best.",
    "about": "the values that have shaped {name} from the beginning.",
    "testimonials": "honest words from customers who have worked with us.",
    "team": "the specialists you will meet when you work with {name}.",
    "pricing": "transparent options with no surprises on the final bill.",
    "faq": "more answers are only a quick message away.",
    "contact": "we look forward to hearing from you soon.",
    "cta": "take the next step with {name} whenever you are ready.",
    "portfolio": "a few highlights from our recent projects.",
}

CTA_LABELS = {
    "hero": ("Get in touch", "Explore our services"),
    "services": ("Request a quote", None),
    "pricing": ("Choose a plan", None),
    "cta": ("Contact us today", "See how we work"),
    "contact": ("Send message", None),
}

STRONG_CTA_LABELS = {
    "hero": ("Book your free consultation", "See what we offer"),
    "services": ("Get your free quote today", "Talk to our team"),
    "pricing": ("Start with the plan that fits", "Ask about custom pricing"),
    "cta": ("Get started today", "Call us now"),
    "contact": ("Send your message now", None),
    "about": ("Meet us in person", None),
    "testimonials": ("Join our happy customers", None),
}

DEFAULT_SERVICES = ("consultations", "tailored packages", "ongoing support")
TESTIMONIAL_AUTHORS = (("Sarah M.", "Regular customer"), ("James K.", "Local business owner"), ("Priya R.", "First-time client"))
TEAM_MEMBERS = (("Alex Morgan", "Founder"), ("Jordan Lee", "Operations lead"), ("Sam Patel", "Customer care"))


def _fingerprint(text: str) -> str:
    return re.sub(r"[^a-z0-9 ]", "", re.sub(r"\s+", " ", text.lower())).strip()


def _word_count(block: CopyBlock) -> int:
    return sum(len(b.split()) for b in block.body)


def _join(values: list[str]) -> str:
    if not values:
        return ""
    if len(values) == 1:
        return values[0]
    return f"{', '.join(values[:-1])} and {values[-1]}"


class CopyWriter:
    """Rule-based copywriter for every section type."""

    def __init__(self, requirements: Requirements, tone: str, rotation: int = 0):
        self.requirements = requirements
        self.tone = tone
        self.rotation = rotation
        industry = requirements.industry.strip().lower()
        services = list(requirements.services) or list(DEFAULT_SERVICES)
        audiences = list(requirements.target_audiences)
        self.fields = {
            "name": requirements.business_name,
            "industry": industry,
            "Industry": industry[:1].upper() + industry[1:],
            "loc": f" in {requirements.location}" if requirements.location else "",
            "audience": _join([a.lower() for a in audiences[:2]]) or "local customers",
            "services": _join([s.lower() for s in services[:3]]),
            "tone_word": TONE_WORDS.get(tone, "reliable"),
        }
        self.service_names = services

    def fill(self, template: str, **extra) -> str:
        return template.format(**{**self.fields, **extra})

    def pool(self, section_type: str) -> list[str]:
        """Body paragraphs for a type, rotated so regenerations differ."""
        options = BODY_POOLS[section_type]
        start = self.rotation % len(options)
        return [self.fill(t) for t in options[start:] + options[:start]]

    def block(self, section: Section, page: PageLayout) -> CopyBlock:
        kind = page_kind(page.name, page.slug)
        section_type = section.type

        if section_type == "hero":
            if kind == "home":
                headline = f"{self.fields['name']}: {self.fill(TONE_TAGLINES.get(self.tone, TONE_TAGLINES['professional']))}"
            else:
                headline = self.fill(PAGE_HEADLINES[kind], page=page.name)
        else:
            options = HEADLINES[section_type]
            headline = self.fill(options[self.rotation % len(options)])

        primary, secondary = CTA_LABELS.get(section_type, (None, None))
        return CopyBlock(
            headline=headline,
            subheadline=self.fill(SUBHEADLINES[section_type]),
            body=self.pool(section_type)[:2],
            cta_primary=primary,
            cta_secondary=secondary,
            items=self.items(section_type),
        )

    def items(self, section_type: str) -> list[dict]:
        f = self.fields
        if section_type == "services":
            return [
                {
                    "title": service,
                    "description": f"{service} from {f['name']}, planned around your needs and delivered by our experienced {f['industry']} team.",
                }
                for service in self.service_names[:6]
            ]
        if section_type == "value-proposition":
            return [
                {"title": "Local expertise", "description": f"We know {f['audience']}{f['loc']} and shape every recommendation around them."},
                {"title": "Honest advice", "description": "You get a straight answer on what you need, what it costs and how long it will take."},
                {"title": "Consistent quality", "description": f"The same {f['tone_word']} standard on every order, whether it is your first or your fiftieth."},
            ]
        if section_type == "features":
            return [
                {"title": "Easy booking", "description": "Reserve a time online or by phone in under a minute, with reminders sent automatically."},
                {"title": "Clear updates", "description": "Know exactly where things stand with short progress notes at every important step."},
                {"title": "Flexible options", "description": "Change plans without penalties when life gets busy, because schedules rarely stay fixed."},
            ]
        if section_type == "testimonials":
            quotes = [
                f"{f['name']} is the best {f['industry']} we have found{f['loc']}. Friendly people and consistently excellent results.",
                f"Professional from start to finish. The team listened carefully and delivered exactly what we asked {f['name']} for.",
                "We recommend them to everyone we know. Great value, quick replies and genuinely lovely people to deal with.",
            ]
            return [
                {"quote": quote, "author": author, "role": role}
                for quote, (author, role) in zip(quotes, TESTIMONIAL_AUTHORS)
            ]
        if section_type == "team":
            return [
                {"name": member, "role": role, "bio": f"As {role.lower()}, {member.split()[0]} keeps {f['name']} running smoothly and makes sure every customer is looked after properly."}
                for member, role in TEAM_MEMBERS
            ]
        if section_type == "pricing":
            return [
                {"name": "Essential", "price": "From $49", "description": "A great starting point covering the core service with friendly support when you need it.", "features": ["Core service", "Email support"]},
                {"name": "Popular", "price": "From $99", "description": "Our most requested option with added flexibility, priority booking and regular check-ins.", "features": ["Everything in Essential", "Priority booking", "Check-ins"]},
                {"name": "Complete", "price": "Custom", "description": "A fully tailored package for larger needs, planned together with a dedicated specialist.", "features": ["Everything in Popular", "Dedicated specialist"]},
            ]
        if section_type == "faq":
            location = self.requirements.location or "the local area"
            return [
                {"question": f"How do I book with {f['name']}?", "answer": "Use the contact form, send us an email or give us a call and we will confirm a time that suits you."},
                {"question": f"Do you serve customers outside {location}?", "answer": "Yes, we regularly help customers further afield. Get in touch and we will confirm availability for your area."},
                {"question": "How much does it cost?", "answer": "Pricing depends on what you need. We always provide a clear quote up front, with no hidden extras later."},
            ]
        if section_type == "portfolio":
            return [
                {"title": f"Project {i}", "description": f"A {f['tone_word']} {f['industry']} project delivered for a client who wanted {goal}."}
                for i, goal in enumerate(("a fresh start", "faster turnaround", "a lasting result"), start=1)
            ]
        return []

    def closer(self, section: Section, headline: str) -> str:
        return f"{headline}: {self.fill(TYPE_CLOSERS[section.type])}"


def expand_bodies(blocks: dict[str, CopyBlock], layout: Layout, writer: CopyWriter, min_words: int) -> int:
    """Append further paragraphs until each body reaches min_words."""
    expanded = 0
    for section in layout.sections:
        block = blocks[section.id]
        for paragraph in writer.pool(section.type):
            if _word_count(block) >= min_words:
                break
            if paragraph not in block.body:
                block.body.append(paragraph)
                expanded += 1
    return expanded


def strengthen_ctas(blocks: dict[str, CopyBlock], layout: Layout) -> None:
    for section in layout.sections:
        labels = STRONG_CTA_LABELS.get(section.type)
        if labels is None:
            continue
        block = blocks[section.id]
        block.cta_primary, secondary = labels
        if secondary:
            block.cta_secondary = secondary


def unique_headlines(blocks: dict[str, CopyBlock], layout: Layout) -> None:
    """No two sections on one page share a headline."""
    for page in layout.pages:
        seen = set()
        for section in page.sections:
            block = blocks[section.id]
            key = _fingerprint(block.headline)
            if key in seen:
                label = section.type.replace("-", " ").capitalize()
                block.headline = f"{label}: {block.headline}"
                key = _fingerprint(block.headline)
            seen.add(key)


def enforce_unique_bodies(
    blocks: dict[str, CopyBlock],
    layout: Layout,
    writer: CopyWriter,
    strict: bool = False,
) -> int:
    """
    Replace body blocks already used by a section of a different type.

    With strict, any repeat anywhere on the site is replaced. Returns the
    number of replaced blocks.
    """
    owners: dict[str, tuple[str, str]] = {}
    replaced = 0
    for section in layout.sections:
        block = blocks[section.id]
        body = []
        for paragraph in block.body:
            key = _fingerprint(paragraph)
            owner = owners.get(key)
            clash = owner is not None and (owner[0] != section.type or (strict and owner[1] != section.id))
            if clash:
                paragraph = writer.closer(section, block.headline)
                key = _fingerprint(paragraph)
                replaced += 1
                if key in owners:
                    continue
            owners.setdefault(key, (section.type, section.id))
            body.append(paragraph)
        block.body = body
    return replaced


class SectionCopyStage(BaseStage):
    """Produces the copy artifact."""

    name = "section_copy"
    produces = "copy"
    depends_on = ("design-strategy", "layout")

    async def generate(self, ctx: StageContext) -> SectionCopy:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        layout: Layout = ctx.artifact("layout")
        writer = self._writer(ctx, strategy)

        section_lines = "\n".join(
            f"- {s.id} ({s.type}, page: {page.name})" for page in layout.pages for s in page.sections
        )
        guidance = []
        if ctx.constraints.get("no_duplicates"):
            guidance.append("Never reuse a sentence between sections.")
        if ctx.constraints.get("min_body_words"):
            guidance.append(f"Each body should total at least {ctx.constraints['min_body_words']} words.")
        if ctx.constraints.get("strengthen_ctas"):
            guidance.append("Calls to action must be specific and action-oriented.")

        prompt = f"""Write website copy in a {strategy.emotional_tone} tone for these sections:
{section_lines}

Mention the business name on the home page. Every headline on a page must be unique.
{chr(10).join(guidance)}

Respond with JSON: {{"sections": {{"<section id>": {{"headline": "...", "subheadline": "...",
"body": ["paragraph", ...], "ctaPrimary": "..." | null, "ctaSecondary": "..." | null, "items": [...]}}}}}}"""

        data = await self.ask_json(ctx, prompt, self.brief(ctx.requirements))
        raw = data["sections"]
        if not isinstance(raw, dict):
            raise ValueError("copy: 'sections' must be an object")

        blocks = {}
        from_model = 0
        for page in layout.pages:
            for section in page.sections:
                template = writer.block(section, page)
                block = self._parse_block(raw.get(section.id))
                if block is None:
                    blocks[section.id] = template
                    continue
                if not block.items:
                    block.items = template.items
                if not block.body:
                    block.body = template.body
                if not block.cta_primary:
                    block.cta_primary = template.cta_primary
                blocks[section.id] = block
                from_model += 1

        if from_model == 0:
            raise ValueError("copy: no usable sections in model output")
        if from_model < len(blocks):
            logger.info("Copy gaps filled from templates", missing=len(blocks) - from_model)

        return self._finish(ctx, layout, writer, blocks)

    def fallback(self, ctx: StageContext) -> SectionCopy:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        layout: Layout = ctx.artifact("layout")
        writer = self._writer(ctx, strategy)
        blocks = {s.id: writer.block(s, page) for page in layout.pages for s in page.sections}
        return self._finish(ctx, layout, writer, blocks)

    def _writer(self, ctx: StageContext, strategy: DesignStrategy) -> CopyWriter:
        rotation = ctx.iteration + int(ctx.constraints.get("rotation", 0))
        return CopyWriter(ctx.requirements, strategy.emotional_tone, rotation=rotation)

    @staticmethod
    def _parse_block(entry) -> Optional[CopyBlock]:
        if not isinstance(entry, dict) or not entry.get("headline"):
            return None
        try:
            return CopyBlock.from_dict(entry)
        except (KeyError, TypeError, ValueError):
            return None

    def _finish(
        self,
        ctx: StageContext,
        layout: Layout,
        writer: CopyWriter,
        blocks: dict[str, CopyBlock],
    ) -> SectionCopy:
        min_words = int(ctx.constraints.get("min_body_words", 0))
        if min_words:
            expand_bodies(blocks, layout, writer, min_words)
        if ctx.constraints.get("strengthen_ctas"):
            strengthen_ctas(blocks, layout)
        unique_headlines(blocks, layout)
        replaced = enforce_unique_bodies(blocks, layout, writer, strict=bool(ctx.constraints.get("no_duplicates")))
        if replaced:
            logger.debug("Duplicate copy replaced", stage=self.name, replaced=replaced)
        return SectionCopy(sections=blocks)
