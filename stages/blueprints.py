"""
Blueprints - named section templates that seed the Layout stage, plus the
industry rules used to pick one.
"""
import re
from typing import Optional

from schemas.artifacts import EMOTIONAL_TONES

BLUEPRINTS = {
    "hospitality-warm": {
        "name": "Warm Hospitality",
        "description": "Inviting, image-led layout for cafes, restaurants and venues",
        "home": ["hero", "value-proposition", "services", "about", "testimonials", "faq", "cta", "contact"],
        "tone": "friendly",
    },
    "professional-trust": {
        "name": "Professional Trust",
        "description": "Credibility-first layout for advisors and professional firms",
        "home": ["hero", "value-proposition", "services", "about", "team", "testimonials", "faq", "cta"],
        "tone": "trustworthy",
    },
    "tech-modern": {
        "name": "Modern Product",
        "description": "Feature-driven layout for software and technology companies",
        "home": ["hero", "features", "value-proposition", "pricing", "testimonials", "faq", "cta"],
        "tone": "innovative",
    },
    "wellness-calm": {
        "name": "Calm Wellness",
        "description": "Spacious layout for studios, salons and health practices",
        "home": ["hero", "about", "services", "testimonials", "pricing", "faq", "cta", "contact"],
        "tone": "friendly",
    },
    "local-service": {
        "name": "Local Service",
        "description": "Conversion-focused layout for trades and local services",
        "home": ["hero", "services", "value-proposition", "testimonials", "about", "faq", "cta", "contact"],
        "tone": "professional",
    },
    "creative-portfolio": {
        "name": "Creative Portfolio",
        "description": "Work-first layout for studios, agencies and creators",
        "home": ["hero", "portfolio", "services", "about", "testimonials", "cta", "contact"],
        "tone": "exciting",
    },
}

DEFAULT_BLUEPRINT = "local-service"

# Checked in order; first keyword hit wins.
INDUSTRY_RULES = [
    (("coffee", "cafe", "café", "restaurant", "bakery", "bar", "bistro", "catering", "hotel", "brewery"), "hospitality-warm"),
    (("law", "legal", "attorney", "accounting", "accountant", "consult", "finance", "insurance", "bank", "advis"), "professional-trust"),
    (("software", "saas", "tech", "app", "startup", "ai", "cloud", "data"), "tech-modern"),
    (("salon", "spa", "beauty", "fitness", "yoga", "gym", "wellness", "clinic", "dental", "therapy", "health"), "wellness-calm"),
    (("design", "photo", "agency", "studio", "art", "film", "music", "creative", "architect"), "creative-portfolio"),
    (("plumb", "electric", "roof", "construct", "landscap", "clean", "repair", "hvac", "moving", "auto"), "local-service"),
]

# Non-home pages keyed by page kind.
PAGE_TEMPLATES = {
    "about": ["hero", "about", "team", "value-proposition", "cta"],
    "services": ["hero", "services", "pricing", "faq", "cta"],
    "contact": ["hero", "contact", "faq"],
    "pricing": ["hero", "pricing", "faq", "cta"],
    "faq": ["hero", "faq", "cta"],
    "portfolio": ["hero", "portfolio", "testimonials", "cta"],
    "team": ["hero", "team", "about", "cta"],
    "testimonials": ["hero", "testimonials", "cta"],
    "generic": ["hero", "value-proposition", "features", "cta"],
}

PAGE_KIND_KEYWORDS = [
    (("about", "story", "who we are"), "about"),
    (("service", "menu", "offer", "product", "what we do"), "services"),
    (("contact", "location", "visit", "book"), "contact"),
    (("pricing", "price", "plans", "rates"), "pricing"),
    (("faq", "question"), "faq"),
    (("portfolio", "gallery", "work", "projects", "case"), "portfolio"),
    (("team", "staff", "people"), "team"),
    (("testimonial", "review"), "testimonials"),
]

SECTION_VARIANTS = {
    "hero": ["hero-split", "hero-centered", "hero-fullbleed"],
    "value-proposition": ["value-cards", "value-icons", "value-columns"],
    "features": ["features-grid", "features-alternating", "features-list"],
    "services": ["services-cards", "services-list", "services-tiles"],
    "about": ["about-split", "about-story", "about-stats"],
    "testimonials": ["testimonials-cards", "testimonials-quote", "testimonials-wall"],
    "team": ["team-grid", "team-cards", "team-compact"],
    "pricing": ["pricing-tiers", "pricing-table", "pricing-simple"],
    "faq": ["faq-accordion", "faq-columns", "faq-list"],
    "contact": ["contact-split", "contact-form", "contact-card"],
    "cta": ["cta-banner", "cta-gradient", "cta-minimal"],
    "portfolio": ["portfolio-grid", "portfolio-masonry", "portfolio-carousel"],
}

COMPONENT_REFS = {
    "hero": ["heading", "subheading", "cta-group", "image"],
    "value-proposition": ["heading", "card-list"],
    "features": ["heading", "feature-list"],
    "services": ["heading", "card-list", "image"],
    "about": ["heading", "text", "image"],
    "testimonials": ["heading", "quote-list"],
    "team": ["heading", "profile-list", "image"],
    "pricing": ["heading", "tier-list", "cta"],
    "faq": ["heading", "accordion"],
    "contact": ["heading", "contact-details", "form"],
    "cta": ["heading", "text", "cta-group"],
    "portfolio": ["heading", "gallery", "image"],
}

RESPONSIVE_RULES = {
    "grid": {"mobile": "stack", "tablet": "two-column", "desktop": "three-column"},
    "split": {"mobile": "stack", "tablet": "stack", "desktop": "two-column"},
    "single": {"mobile": "single-column", "tablet": "single-column", "desktop": "single-column"},
}

SECTION_GRIDS = {
    "hero": "split",
    "about": "split",
    "contact": "split",
    "cta": "single",
    "faq": "single",
}

# Free-form tone words mapped onto the fixed emotional tones.
TONE_OVERRIDES = {
    "luxury": "premium",
    "premium": "premium",
    "fun": "playful",
    "bold": "exciting",
    "expert": "authoritative",
    "warm": "friendly",
    "casual": "friendly",
    "modern": "innovative",
}


def _matches(keyword: str, text: str, words: set[str]) -> bool:
    # Short keywords ("ai", "law", "bar") only count as whole words.
    if len(keyword) <= 3:
        return keyword in words
    return keyword in text


def detect_blueprint(industry: str) -> str:
    """Pick the blueprint whose industry keywords match first."""
    text = industry.lower()
    words = set(re.findall(r"\w+", text))
    for keywords, blueprint_id in INDUSTRY_RULES:
        if any(_matches(k, text, words) for k in keywords):
            return blueprint_id
    return DEFAULT_BLUEPRINT


def page_kind(page_name: str, slug: str) -> str:
    """Classify a requested page into a template kind."""
    if slug == "index":
        return "home"
    text = page_name.lower()
    for keywords, kind in PAGE_KIND_KEYWORDS:
        if any(k in text for k in keywords):
            return kind
    return "generic"


def variant_for(section_type: str, offset: int = 0) -> str:
    variants = SECTION_VARIANTS[section_type]
    return variants[offset % len(variants)]


def responsive_rules_for(section_type: str) -> dict[str, str]:
    return dict(RESPONSIVE_RULES[SECTION_GRIDS.get(section_type, "grid")])


def normalize_tone(tone: Optional[str]) -> Optional[str]:
    if not tone:
        return None
    tone = tone.lower().strip()
    if tone in EMOTIONAL_TONES:
        return tone
    return TONE_OVERRIDES.get(tone)
