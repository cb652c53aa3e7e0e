"""
Category scoring heuristics.

Each scorer starts from 10 and subtracts penalties for what the page signals
show is missing or wrong, so every issue that costs points is also listed in
the category's issues.
"""
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

import structlog

from quality.contrast import contrast_ratio, is_hex_color
from quality.signals import PageSignals
from quality.verdict import Category

logger = structlog.get_logger()

GENERIC_FONTS = {"inherit", "initial", "sans-serif", "serif", "system-ui", "monospace", "-apple-system"}
PLACEHOLDER_PATTERNS = re.compile(r"lorem ipsum|\bTODO\b|\[your|your business name|placeholder text", re.IGNORECASE)
GENERIC_HEADLINES = {"welcome", "home", "welcome to our website", "hello", "untitled"}
TRUST_SECTION_TYPES = {"about", "team", "faq", "testimonials"}


@dataclass
class CategoryScore:
    """Score (0-10) for one category with the issues behind it."""
    category: Category
    score: float
    issues: list[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "label": self.category.label,
            "score": self.score,
            "issues": self.issues,
            "details": self.details,
        }


class _Tally:
    """Accumulates penalties and issue descriptions for one category."""

    def __init__(self, category: Category):
        self.category = category
        self.penalty = 0.0
        self.issues: list[str] = []
        self.details: dict = {}

    def deduct(self, points: float, issue: str) -> None:
        if points <= 0:
            return
        self.penalty += points
        self.issues.append(issue)

    def result(self) -> CategoryScore:
        score = round(min(10.0, max(0.0, 10.0 - self.penalty)), 1)
        return CategoryScore(self.category, score, self.issues, self.details)


def _by_page(captures: list[PageSignals], widest: bool = True) -> dict[str, PageSignals]:
    """One capture per page: the widest (or narrowest) viewport."""
    chosen: dict[str, PageSignals] = {}
    for capture in captures:
        current = chosen.get(capture.page)
        if current is None:
            chosen[capture.page] = capture
        elif widest and capture.viewport > current.viewport:
            chosen[capture.page] = capture
        elif not widest and capture.viewport < current.viewport:
            chosen[capture.page] = capture
    return dict(sorted(chosen.items()))


def _home(pages: dict[str, PageSignals]) -> Optional[PageSignals]:
    for path, capture in pages.items():
        if path.endswith("index.html"):
            return capture
    return next(iter(pages.values()), None)


def _normalize(text: str) -> str:
    return re.sub(r"[^a-z0-9 ]", "", text.lower()).strip()


def score_visual_design(captures: list[PageSignals]) -> CategoryScore:
    tally = _Tally(Category.VISUAL_DESIGN)
    pages = _by_page(captures)
    if not pages:
        tally.deduct(10.0, "No pages rendered")
        return tally.result()

    colors = {c.lower() for p in pages.values() for c in p.colors}
    tally.details["palette_size"] = len(colors)
    if len(colors) < 3:
        tally.deduct(2.5, f"Palette too small ({len(colors)} colors)")
    elif len(colors) > 14:
        tally.deduct(1.5, f"Palette too busy ({len(colors)} colors)")

    ratio = None
    for page in pages.values():
        if is_hex_color(page.text_color) and is_hex_color(page.background_color):
            ratio = contrast_ratio(page.text_color, page.background_color)
            break
    tally.details["contrast_ratio"] = ratio
    if ratio is None:
        tally.deduct(0.5, "Body text contrast could not be measured")
    elif ratio < 3.0:
        tally.deduct(3.0, f"Body text contrast {ratio}:1 is below 3:1")
    elif ratio < 4.5:
        tally.deduct(1.5, f"Body text contrast {ratio}:1 is below WCAG AA 4.5:1")

    sizes: dict[str, float] = {}
    for page in pages.values():
        for key, value in page.font_sizes.items():
            sizes.setdefault(key, value)
    h1, h2, body = sizes.get("h1"), sizes.get("h2"), sizes.get("body")
    tally.details["font_sizes"] = sizes
    if not (h1 and h2 and body):
        tally.deduct(1.0, "Typographic scale incomplete (h1/h2/body sizes)")
    else:
        if h1 <= h2:
            tally.deduct(1.5, "h1 is not larger than h2")
        if h2 <= body:
            tally.deduct(1.5, "h2 is not larger than body text")
        if h1 / body < 1.8:
            tally.deduct(1.0, "Weak typographic contrast between headings and body")

    fonts = {f for p in pages.values() for f in p.fonts if f.lower() not in GENERIC_FONTS}
    if len(fonts) > 3:
        tally.deduct(1.0, f"Too many font families ({len(fonts)})")

    if any(c.horizontal_overflow for c in captures if c.viewport <= 400):
        tally.deduct(2.0, "Horizontal overflow at mobile width")

    home = _home(pages)
    if home is not None and home.image_count == 0:
        tally.deduct(0.5, "Home page has no imagery")

    return tally.result()


def score_ux_structure(captures: list[PageSignals]) -> CategoryScore:
    tally = _Tally(Category.UX_STRUCTURE)
    pages = _by_page(captures)
    if not pages:
        tally.deduct(10.0, "No pages rendered")
        return tally.result()
    page_count = len(pages)

    if any(not p.nav_present for p in pages.values()):
        tally.deduct(2.0, "Navigation missing on some pages")
    elif any(p.nav_link_count < page_count for p in pages.values()):
        tally.deduct(1.0, "Navigation does not link every page")
    if any(not p.footer_present for p in pages.values()):
        tally.deduct(1.0, "Footer missing on some pages")

    bad_h1 = [path for path, p in pages.items() if p.h1_count != 1]
    if bad_h1:
        tally.deduct(min(3.0, 1.5 * len(bad_h1)), f"Pages without exactly one h1: {', '.join(bad_h1)}")

    skipped = 0
    for p in pages.values():
        levels = [h["level"] for h in p.headings]
        if any(b - a > 1 for a, b in zip(levels, levels[1:])):
            skipped += 1
    if skipped:
        tally.deduct(min(1.5, 0.5 * skipped), "Heading levels skipped")

    home = _home(pages)
    if home is not None:
        section_types = {s.type for s in home.sections}
        tally.details["home_sections"] = len(home.sections)
        if len(home.sections) < 4:
            tally.deduct(1.5, f"Home page has only {len(home.sections)} sections")
        if "hero" not in section_types:
            tally.deduct(1.0, "Home page has no hero section")
    if any(len(p.sections) < 2 for p in pages.values()):
        tally.deduct(1.0, "Some pages have fewer than two sections")

    all_types = {s.type for p in pages.values() for s in p.sections}
    if "contact" not in all_types:
        tally.deduct(1.0, "No contact section anywhere on the site")

    if any(not p.has_viewport_meta for p in pages.values()):
        tally.deduct(1.5, "Viewport meta tag missing")

    mobile = [c for c in captures if c.viewport <= 400]
    if any(c.horizontal_overflow for c in mobile):
        tally.deduct(1.5, "Content overflows horizontally on mobile")
    small_targets = max((c.small_touch_targets or 0 for c in mobile), default=0)
    if small_targets > 3:
        tally.deduct(1.0, f"{small_targets} touch targets smaller than 24px")
    min_font = min((c.min_font_size for c in mobile if c.min_font_size), default=None)
    if min_font is not None and min_font < 12:
        tally.deduct(0.5, f"Text as small as {min_font}px on mobile")

    return tally.result()


def score_content_quality(captures: list[PageSignals], business_name: Optional[str] = None) -> CategoryScore:
    tally = _Tally(Category.CONTENT_QUALITY)
    pages = _by_page(captures)
    if not pages:
        tally.deduct(10.0, "No pages rendered")
        return tally.result()

    avg_words = sum(p.word_count for p in pages.values()) / len(pages)
    tally.details["avg_words_per_page"] = round(avg_words)
    if avg_words < 150:
        tally.deduct(3.0, f"Thin content ({round(avg_words)} words per page)")
    elif avg_words < 300:
        tally.deduct(1.5, f"Light content ({round(avg_words)} words per page)")

    paragraphs = [para for p in pages.values() for s in p.sections for para in s.paragraphs]
    if paragraphs:
        avg_para = sum(len(para.split()) for para in paragraphs) / len(paragraphs)
        tally.details["avg_paragraph_words"] = round(avg_para, 1)
        if avg_para < 12:
            tally.deduct(1.0, "Paragraphs are too short to be specific")
    else:
        tally.deduct(2.0, "No paragraph content")

    # Same paragraph used by sections of different semantic types.
    owners: dict[str, set[str]] = defaultdict(set)
    for p in pages.values():
        for s in p.sections:
            for para in s.paragraphs:
                key = _normalize(para)
                if len(key.split()) >= 6:
                    owners[key].add(s.type)
    duplicates = [text for text, types in owners.items() if len(types) > 1]
    tally.details["duplicate_blocks"] = len(duplicates)
    if duplicates:
        tally.deduct(min(4.0, 1.5 * len(duplicates)), f"{len(duplicates)} text blocks repeated across different sections")

    duplicate_h2 = 0
    for p in pages.values():
        texts = [_normalize(h["text"]) for h in p.headings if h["level"] == 2 and h["text"]]
        duplicate_h2 += len(texts) - len(set(texts))
    tally.details["duplicate_h2"] = duplicate_h2
    if duplicate_h2:
        tally.deduct(min(2.0, 1.0 * duplicate_h2), f"{duplicate_h2} duplicate h2 headings")

    all_text = " ".join(para for para in paragraphs) + " " + " ".join(
        h["text"] for p in pages.values() for h in p.headings
    )
    if PLACEHOLDER_PATTERNS.search(all_text):
        tally.deduct(3.0, "Placeholder text detected")

    home = _home(pages)
    if business_name and home is not None:
        home_text = " ".join([home.title] + [h["text"] for h in home.headings] + [
            para for s in home.sections for para in s.paragraphs
        ])
        if business_name.lower() not in home_text.lower():
            tally.deduct(1.0, "Business name not mentioned on the home page")

    empty = sum(1 for p in pages.values() for s in p.sections if not s.paragraphs and not s.heading)
    if empty:
        tally.deduct(min(1.5, 0.5 * empty), f"{empty} empty sections")

    return tally.result()


def score_conversion_trust(captures: list[PageSignals]) -> CategoryScore:
    tally = _Tally(Category.CONVERSION_TRUST)
    pages = _by_page(captures)
    if not pages:
        tally.deduct(10.0, "No pages rendered")
        return tally.result()

    avg_ctas = sum(p.cta_count for p in pages.values()) / len(pages)
    tally.details["avg_ctas_per_page"] = round(avg_ctas, 1)
    if avg_ctas == 0:
        tally.deduct(4.0, "No calls to action")
    elif avg_ctas < 2:
        tally.deduct(2.0, "Fewer than two calls to action per page")

    has_links = any(p.contact_links for p in pages.values())
    has_form = any(p.form_count for p in pages.values())
    has_address = any(p.has_address for p in pages.values())
    affordances = sum([has_links, has_form, has_address])
    tally.details["contact_affordances"] = affordances
    if affordances == 0:
        tally.deduct(3.0, "No way to contact the business")
    elif affordances == 1:
        tally.deduct(1.0, "Only one contact channel offered")

    section_types = {s.type for p in pages.values() for s in p.sections}
    if "testimonials" not in section_types:
        tally.deduct(1.5, "No testimonials or social proof")
    if not (section_types & (TRUST_SECTION_TYPES - {"testimonials"})):
        tally.deduct(1.0, "No about, team or FAQ content to build trust")
    if "contact" not in section_types and not has_form:
        tally.deduct(1.0, "No contact section")

    return tally.result()


def score_seo(captures: list[PageSignals]) -> CategoryScore:
    tally = _Tally(Category.SEO)
    pages = _by_page(captures)
    if not pages:
        tally.deduct(10.0, "No pages rendered")
        return tally.result()

    per_page: dict[str, float] = {}
    for path, p in pages.items():
        penalty = 0.0
        problems = []
        if not p.title:
            penalty += 2.0
            problems.append("missing title")
        elif not 10 <= len(p.title) <= 65:
            penalty += 0.5
            problems.append("title length")
        if not p.meta_description:
            penalty += 2.0
            problems.append("missing meta description")
        elif not 50 <= len(p.meta_description) <= 170:
            penalty += 0.5
            problems.append("meta description length")
        if p.h1_count != 1:
            penalty += 1.0
            problems.append("h1 count")
        if not p.schema_types:
            penalty += 1.0
            problems.append("no structured data")
        if not p.has_og_tags:
            penalty += 0.5
            problems.append("no Open Graph tags")
        if not p.lang:
            penalty += 0.5
            problems.append("no lang attribute")
        if p.image_count:
            penalty += p.images_missing_alt / p.image_count
            if p.images_missing_alt:
                problems.append("images without alt text")
        per_page[path] = penalty
        if problems:
            tally.issues.append(f"{path}: {', '.join(problems)}")

    tally.penalty += sum(per_page.values()) / len(per_page)

    titles = [p.title for p in pages.values() if p.title]
    if len(titles) != len(set(titles)):
        tally.deduct(1.0, "Duplicate page titles")

    return tally.result()


def score_creativity(captures: list[PageSignals]) -> CategoryScore:
    tally = _Tally(Category.CREATIVITY)
    pages = _by_page(captures)
    if not pages:
        tally.deduct(10.0, "No pages rendered")
        return tally.result()

    variants = {s.variant for p in pages.values() for s in p.sections if s.variant}
    tally.details["distinct_variants"] = len(variants)
    if len(variants) < 3:
        tally.deduct(2.0, f"Only {len(variants)} distinct section designs")

    if not any(p.gradient_count for p in pages.values()):
        tally.deduct(1.5, "No gradients or layered backgrounds")
    if not any(p.has_motion for p in pages.values()):
        tally.deduct(1.5, "No motion or transitions")
    if not any(p.image_count for p in pages.values()):
        tally.deduct(2.0, "No imagery")

    home = _home(pages)
    if home is not None:
        types = {s.type for s in home.sections}
        if len(types) < 4:
            tally.deduct(1.5, "Home page lacks section variety")
        h1 = next((h["text"] for h in home.headings if h["level"] == 1), "")
        if _normalize(h1) in GENERIC_HEADLINES:
            tally.deduct(1.0, "Generic hero headline")

    return tally.result()


def score_site(captures: list[PageSignals], business_name: Optional[str] = None) -> dict[Category, CategoryScore]:
    """Score all six categories from the captured signals."""
    return {
        Category.VISUAL_DESIGN: score_visual_design(captures),
        Category.UX_STRUCTURE: score_ux_structure(captures),
        Category.CONTENT_QUALITY: score_content_quality(captures, business_name),
        Category.CONVERSION_TRUST: score_conversion_trust(captures),
        Category.SEO: score_seo(captures),
        Category.CREATIVITY: score_creativity(captures),
    }
