"""
Page signals - the structural and visual facts scoring works from.

Signals come from two sources that produce the same PageSignals record:
- the headless browser, which runs SIGNALS_SCRIPT against the live DOM and
  computed styles at each viewport width
- static analysis of the HTML/CSS files with BeautifulSoup, used offline and
  as the degraded fallback when rendering fails

Fields only the browser can measure (overflow, touch targets, minimum font
size) are None in static signals.
"""
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bs4 import BeautifulSoup
import structlog

logger = structlog.get_logger()

CTA_SELECTOR = "a.btn, a.button, button, input[type=submit], [data-cta]"
HEX_COLOR = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")


@dataclass
class SectionSignals:
    """Text facts for one <section> element."""
    type: str
    variant: str = ""
    heading: str = ""
    paragraphs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "variant": self.variant,
            "heading": self.heading,
            "paragraphs": self.paragraphs,
        }


@dataclass
class PageSignals:
    """Everything the scorers need to know about one page at one width."""
    page: str
    viewport: int
    lang: Optional[str] = None
    title: str = ""
    meta_description: str = ""
    has_viewport_meta: bool = False
    has_og_tags: bool = False
    schema_types: list[str] = field(default_factory=list)
    headings: list[dict] = field(default_factory=list)  # [{level, text}]
    sections: list[SectionSignals] = field(default_factory=list)
    word_count: int = 0
    cta_count: int = 0
    contact_links: int = 0
    form_count: int = 0
    has_address: bool = False
    nav_present: bool = False
    nav_link_count: int = 0
    footer_present: bool = False
    image_count: int = 0
    images_missing_alt: int = 0
    colors: list[str] = field(default_factory=list)
    fonts: list[str] = field(default_factory=list)
    font_sizes: dict[str, float] = field(default_factory=dict)  # h1/h2/body px
    text_color: Optional[str] = None
    background_color: Optional[str] = None
    gradient_count: int = 0
    has_motion: bool = False
    horizontal_overflow: Optional[bool] = None
    small_touch_targets: Optional[int] = None
    min_font_size: Optional[float] = None
    screenshot_base64: Optional[str] = None
    static: bool = False

    @property
    def h1_count(self) -> int:
        return sum(1 for h in self.headings if h.get("level") == 1)

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "viewport": self.viewport,
            "title": self.title,
            "h1_count": self.h1_count,
            "sections": len(self.sections),
            "word_count": self.word_count,
            "cta_count": self.cta_count,
            "horizontal_overflow": self.horizontal_overflow,
            "has_screenshot": self.screenshot_base64 is not None,
            "static": self.static,
        }

    @classmethod
    def from_dict(cls, page: str, viewport: int, data: dict) -> "PageSignals":
        """Build from the dict returned by SIGNALS_SCRIPT."""
        return cls(
            page=page,
            viewport=viewport,
            lang=data.get("lang") or None,
            title=data.get("title", ""),
            meta_description=data.get("metaDescription", ""),
            has_viewport_meta=bool(data.get("hasViewportMeta")),
            has_og_tags=bool(data.get("hasOgTags")),
            schema_types=list(data.get("schemaTypes", [])),
            headings=list(data.get("headings", [])),
            sections=[
                SectionSignals(
                    type=s.get("type", ""),
                    variant=s.get("variant", ""),
                    heading=s.get("heading", ""),
                    paragraphs=list(s.get("paragraphs", [])),
                )
                for s in data.get("sections", [])
            ],
            word_count=int(data.get("wordCount", 0)),
            cta_count=int(data.get("ctaCount", 0)),
            contact_links=int(data.get("contactLinks", 0)),
            form_count=int(data.get("formCount", 0)),
            has_address=bool(data.get("hasAddress")),
            nav_present=bool(data.get("navPresent")),
            nav_link_count=int(data.get("navLinkCount", 0)),
            footer_present=bool(data.get("footerPresent")),
            image_count=int(data.get("imageCount", 0)),
            images_missing_alt=int(data.get("imagesMissingAlt", 0)),
            colors=list(data.get("colors", [])),
            fonts=list(data.get("fonts", [])),
            font_sizes={k: float(v) for k, v in data.get("fontSizes", {}).items() if v},
            text_color=data.get("textColor"),
            background_color=data.get("backgroundColor"),
            gradient_count=int(data.get("gradientCount", 0)),
            has_motion=bool(data.get("hasMotion")),
            horizontal_overflow=data.get("horizontalOverflow"),
            small_touch_targets=data.get("smallTouchTargets"),
            min_font_size=data.get("minFontSize"),
        )


# Runs inside the page. Mirrors extract_static_signals field for field.
SIGNALS_SCRIPT = """() => {
    const text = (el) => (el ? el.textContent.replace(/\\s+/g, ' ').trim() : '');
    const toHex = (rgb) => {
        const m = rgb && rgb.match(/rgba?\\((\\d+),\\s*(\\d+),\\s*(\\d+)(?:,\\s*([\\d.]+))?\\)/);
        if (!m || (m[4] !== undefined && parseFloat(m[4]) === 0)) return null;
        return '#' + [m[1], m[2], m[3]].map(x => parseInt(x).toString(16).padStart(2, '0')).join('');
    };
    const px = (el) => (el ? parseFloat(getComputedStyle(el).fontSize) : null);

    const headings = Array.from(document.querySelectorAll('h1, h2, h3, h4, h5, h6'))
        .map(h => ({ level: parseInt(h.tagName.substring(1)), text: text(h) }));

    const sections = Array.from(document.querySelectorAll('section')).map(s => ({
        type: s.dataset.sectionType || s.id || '',
        variant: s.dataset.variant || '',
        heading: text(s.querySelector('h1, h2, h3')),
        paragraphs: Array.from(s.querySelectorAll('p')).map(p => text(p)).filter(Boolean),
    }));

    const colors = new Set();
    const fonts = new Set();
    let gradients = 0;
    let motion = false;
    let minFont = null;
    for (const el of document.querySelectorAll('body *')) {
        const cs = getComputedStyle(el);
        const c = toHex(cs.color);
        const bg = toHex(cs.backgroundColor);
        if (c) colors.add(c);
        if (bg) colors.add(bg);
        if (cs.backgroundImage && cs.backgroundImage.includes('gradient')) gradients++;
        if (parseFloat(cs.transitionDuration) > 0 || cs.animationName !== 'none') motion = true;
        fonts.add(cs.fontFamily.split(',')[0].replace(/["']/g, '').trim());
        if (el.children.length === 0 && text(el)) {
            const size = parseFloat(cs.fontSize);
            if (minFont === null || size < minFont) minFont = size;
        }
    }

    const targets = Array.from(document.querySelectorAll('a, button, input, select, textarea'));
    const smallTargets = targets.filter(el => {
        const r = el.getBoundingClientRect();
        return r.width > 0 && r.height > 0 && (r.width < 24 || r.height < 24);
    }).length;

    const schemaTypes = [];
    for (const s of document.querySelectorAll('script[type="application/ld+json"]')) {
        try {
            const data = JSON.parse(s.textContent);
            (Array.isArray(data) ? data : [data]).forEach(d => d['@type'] && schemaTypes.push(d['@type']));
        } catch (e) {}
    }

    const body = document.body;
    const bodyStyle = getComputedStyle(body);
    const images = Array.from(document.querySelectorAll('img'));
    const nav = document.querySelector('nav');
    const meta = document.querySelector('meta[name="description"]');

    return {
        lang: document.documentElement.getAttribute('lang'),
        title: document.title,
        metaDescription: meta ? meta.getAttribute('content') || '' : '',
        hasViewportMeta: !!document.querySelector('meta[name="viewport"]'),
        hasOgTags: !!document.querySelector('meta[property^="og:"]'),
        schemaTypes,
        headings,
        sections,
        wordCount: text(body).split(' ').filter(Boolean).length,
        ctaCount: document.querySelectorAll('a.btn, a.button, button, input[type=submit], [data-cta]').length,
        contactLinks: document.querySelectorAll('a[href^="tel:"], a[href^="mailto:"]').length,
        formCount: document.querySelectorAll('form').length,
        hasAddress: !!document.querySelector('address'),
        navPresent: !!nav,
        navLinkCount: nav ? nav.querySelectorAll('a').length : 0,
        footerPresent: !!document.querySelector('footer'),
        imageCount: images.length,
        imagesMissingAlt: images.filter(i => !(i.getAttribute('alt') || '').trim()).length,
        colors: Array.from(colors),
        fonts: Array.from(fonts).filter(Boolean),
        fontSizes: {
            h1: px(document.querySelector('h1')),
            h2: px(document.querySelector('h2')),
            body: px(document.querySelector('p')) || parseFloat(bodyStyle.fontSize),
        },
        textColor: toHex(bodyStyle.color),
        backgroundColor: toHex(bodyStyle.backgroundColor) || '#ffffff',
        gradientCount: gradients,
        hasMotion: motion,
        horizontalOverflow: document.documentElement.scrollWidth > window.innerWidth + 1,
        smallTouchTargets: smallTargets,
        minFontSize: minFont,
    };
}"""


def _collapse(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def _css_var(css: str, name: str) -> Optional[str]:
    match = re.search(rf"--{re.escape(name)}\s*:\s*([^;]+);", css)
    return match.group(1).strip() if match else None


def _css_px(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    match = re.match(r"([\d.]+)\s*(px|rem|em)?", value)
    if not match:
        return None
    number = float(match.group(1))
    return number * 16 if match.group(2) in ("rem", "em") else number


def _rule_font_size(css: str, selector: str) -> Optional[float]:
    match = re.search(rf"(?:^|[\s,}}]){selector}\s*{{[^}}]*font-size\s*:\s*([^;}}]+)", css)
    if not match:
        return None
    value = match.group(1).strip()
    if value.startswith("var("):
        var_name = value[4:].split(")")[0].strip().lstrip("-")
        return _css_px(_css_var(css, var_name))
    return _css_px(value)


def extract_static_signals(page: str, html: str, css: str = "", viewport: int = 1440) -> PageSignals:
    """
    Derive page signals from static HTML and CSS.

    Layout-dependent fields stay None; everything else matches what the
    browser script reports.
    """
    soup = BeautifulSoup(html, "html.parser")

    headings = [
        {"level": int(h.name[1]), "text": _collapse(h.get_text())}
        for h in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
    ]

    sections = []
    for s in soup.find_all("section"):
        heading = s.find(["h1", "h2", "h3"])
        sections.append(SectionSignals(
            type=s.get("data-section-type") or s.get("id") or "",
            variant=s.get("data-variant") or "",
            heading=_collapse(heading.get_text()) if heading else "",
            paragraphs=[t for t in (_collapse(p.get_text()) for p in s.find_all("p")) if t],
        ))

    schema_types = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            continue
        for item in data if isinstance(data, list) else [data]:
            if isinstance(item, dict) and item.get("@type"):
                schema_types.append(item["@type"])

    inline_css = "\n".join(s.get_text() for s in soup.find_all("style"))
    all_css = f"{css}\n{inline_css}"

    colors = sorted({c.lower() for c in HEX_COLOR.findall(all_css)})
    fonts = []
    for family in re.findall(r"font-family\s*:\s*([^;}]+)", all_css):
        first = family.split(",")[0].strip().strip("'\"")
        if first.startswith("var("):
            first = (_css_var(all_css, first[4:].split(")")[0].strip().lstrip("-")) or "").split(",")[0].strip().strip("'\"")
        if first and first not in fonts:
            fonts.append(first)

    font_sizes = {}
    for key, selector in (("h1", "h1"), ("h2", "h2"), ("body", "body")):
        size = _rule_font_size(all_css, selector) or _css_px(_css_var(all_css, f"font-size-{key}"))
        if size:
            font_sizes[key] = size

    body = soup.body or soup
    images = soup.find_all("img")
    nav = soup.find("nav")
    meta = soup.find("meta", attrs={"name": "description"})
    html_tag = soup.find("html")

    return PageSignals(
        page=page,
        viewport=viewport,
        lang=html_tag.get("lang") if html_tag else None,
        title=_collapse(soup.title.get_text()) if soup.title else "",
        meta_description=(meta.get("content") or "") if meta else "",
        has_viewport_meta=soup.find("meta", attrs={"name": "viewport"}) is not None,
        has_og_tags=soup.find("meta", attrs={"property": re.compile(r"^og:")}) is not None,
        schema_types=schema_types,
        headings=headings,
        sections=sections,
        word_count=len(_collapse(body.get_text(" ")).split()),
        cta_count=len(soup.select(CTA_SELECTOR)),
        contact_links=len(soup.select('a[href^="tel:"], a[href^="mailto:"]')),
        form_count=len(soup.find_all("form")),
        has_address=soup.find("address") is not None,
        nav_present=nav is not None,
        nav_link_count=len(nav.find_all("a")) if nav else 0,
        footer_present=soup.find("footer") is not None,
        image_count=len(images),
        images_missing_alt=sum(1 for i in images if not (i.get("alt") or "").strip()),
        colors=colors,
        fonts=fonts,
        font_sizes=font_sizes,
        text_color=_css_var(all_css, "color-text"),
        background_color=_css_var(all_css, "color-background"),
        gradient_count=all_css.count("gradient("),
        has_motion=bool(re.search(r"transition\s*:|@keyframes|animation\s*:", all_css)),
        static=True,
    )


class StaticRenderer:
    """
    Renderer that reads files instead of driving a browser.

    Same interface as services.browser.PlaywrightRenderer so the assessor can
    swap one for the other.
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def render(
        self,
        site_dir: Path,
        pages: list[str],
        viewports: tuple[int, ...],
    ) -> list[PageSignals]:
        css_path = Path(site_dir) / "styles.css"
        css = css_path.read_text(encoding="utf-8") if css_path.exists() else ""

        captures = []
        for rel_path in pages:
            html = (Path(site_dir) / rel_path).read_text(encoding="utf-8")
            for width in viewports:
                captures.append(extract_static_signals(rel_path, html, css, viewport=width))
        return captures
