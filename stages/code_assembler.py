"""
Code Assembler - renders the upstream artifacts into a static website.

Output files:
- pages/<slug>.html, one per page
- styles.css, generated from the style system
- script.js, progressive enhancements only

Assembly is pure: the same artifacts always produce byte-identical files, so
nothing time-dependent is written.
"""
import json
from html import escape
from typing import Optional
from urllib.parse import quote

import structlog

from schemas.artifacts import (
    CopyBlock,
    GeneratedWebsitePackage,
    ImageSet,
    Layout,
    PageLayout,
    PageSEO,
    Section,
    SectionCopy,
    SEOMetadata,
    StyleSystem,
)
from schemas.requirements import Requirements
from stages.base import BaseStage, StageContext
from stages.blueprints import page_kind
from stages.image_plan import HERO_DIMENSIONS, IMAGE_SECTION_TYPES, SUPPORTING_DIMENSIONS

logger = structlog.get_logger()

# Generation stages whose artifacts feed the package, by artifact key.
STAGE_ARTIFACTS = (
    ("design_strategy", "design-strategy"),
    ("layout", "layout"),
    ("style_system", "style"),
    ("section_copy", "copy"),
    ("image_plan", "image-plan"),
    ("image_generator", "images"),
    ("seo_metadata", "seo-metadata"),
)

CARD_SECTION_TYPES = ("services", "features", "value-proposition", "portfolio")


def _attr(value: str) -> str:
    return escape(value, quote=True)


def _placeholder_image(width: int, height: int, label: str, fill: str, ink: str) -> str:
    """Inline SVG data URI used when an image could not be generated."""
    svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}"><rect width="100%" height="100%" fill="{fill}"/>'
        f'<text x="50%" y="50%" fill="{ink}" font-family="sans-serif" font-size="48" '
        f'text-anchor="middle" dominant-baseline="middle">{escape(label)}</text></svg>'
    )
    return "data:image/svg+xml;charset=utf-8," + quote(svg, safe="")


class SiteRenderer:
    """Renders one site from its artifacts."""

    def __init__(
        self,
        requirements: Requirements,
        layout: Layout,
        style: StyleSystem,
        copy: SectionCopy,
        images: Optional[ImageSet],
        seo: SEOMetadata,
    ):
        self.requirements = requirements
        self.layout = layout
        self.style = style
        self.copy = copy
        self.images = images or ImageSet(assets=[])
        self.seo = seo

        self.contact_href = self._href_for("contact", "contact")
        self.services_href = self._href_for("services", "services") or self.contact_href
        self.contact_href = self.contact_href or "index.html"
        self.services_href = self.services_href or self.contact_href

    # =====================
    # Links
    # =====================

    def _href_for(self, kind: str, section_type: str) -> Optional[str]:
        """Prefer a dedicated page of this kind, else the first page with the section."""
        for page in self.layout.pages:
            if page_kind(page.name, page.slug) == kind:
                section = self._find(page, section_type)
                return f"{page.slug}.html#{section.id}" if section else f"{page.slug}.html"
        for page in self.layout.pages:
            section = self._find(page, section_type)
            if section:
                return f"{page.slug}.html#{section.id}"
        return None

    @staticmethod
    def _find(page: PageLayout, section_type: str) -> Optional[Section]:
        return next((s for s in page.sections if s.type == section_type), None)

    def nav(self, current: PageLayout) -> str:
        links = []
        for page in self.layout.pages:
            current_attr = ' aria-current="page"' if page.slug == current.slug else ""
            links.append(f'<li><a href="{page.slug}.html"{current_attr}>{escape(page.name)}</a></li>')
        return (
            '<header class="site-header">\n'
            '<nav class="site-nav container" aria-label="Main navigation">\n'
            f'<a class="brand" href="index.html">{escape(self.requirements.business_name)}</a>\n'
            f'<ul class="nav-links">{"".join(links)}</ul>\n'
            "</nav>\n"
            "</header>"
        )

    def footer(self) -> str:
        requirements = self.requirements
        links = "".join(f'<li><a href="{p.slug}.html">{escape(p.name)}</a></li>' for p in self.layout.pages)
        contact = self.contact_details()
        return (
            '<footer class="site-footer">\n'
            '<div class="container footer-grid">\n'
            f'<div><strong class="footer-brand">{escape(requirements.business_name)}</strong>\n'
            f'<span class="footer-tagline">{escape(requirements.industry)}'
            f'{escape(" in " + requirements.location) if requirements.location else ""}</span></div>\n'
            f'<ul class="footer-links">{links}</ul>\n'
            f"{contact}\n"
            "</div>\n"
            f'<small class="container footer-legal">&copy; {escape(requirements.business_name)}</small>\n'
            "</footer>"
        )

    def contact_details(self) -> str:
        requirements = self.requirements
        lines = []
        if requirements.phone:
            tel = "".join(ch for ch in requirements.phone if ch.isdigit() or ch == "+")
            lines.append(f'<a href="tel:{_attr(tel)}">{escape(requirements.phone)}</a>')
        if requirements.email:
            lines.append(f'<a href="mailto:{_attr(requirements.email)}">{escape(requirements.email)}</a>')
        place = requirements.address or requirements.location
        if place:
            lines.append(escape(place))
        if not lines:
            return ""
        return f'<address class="contact-details">{"<br>".join(lines)}</address>'

    # =====================
    # Pages
    # =====================

    def page(self, page: PageLayout) -> str:
        seo = self.seo.pages.get(page.slug) or PageSEO(
            page_slug=page.slug,
            title=f"{page.name} | {self.requirements.business_name}",
            description="",
        )
        schema = json.dumps(seo.schema, sort_keys=True, ensure_ascii=False).replace("</", "<\\/")
        sections = "\n".join(self.section(page, s) for s in page.sections)

        head = [
            '<meta charset="utf-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1">',
            f"<title>{escape(seo.title)}</title>",
            f'<meta name="description" content="{_attr(seo.description)}">',
        ]
        if seo.keywords:
            head.append(f'<meta name="keywords" content="{_attr(", ".join(seo.keywords))}">')
        head += [
            f'<meta property="og:title" content="{_attr(seo.title)}">',
            f'<meta property="og:description" content="{_attr(seo.description)}">',
            '<meta property="og:type" content="website">',
            f'<meta property="og:site_name" content="{_attr(self.requirements.business_name)}">',
            f'<meta name="theme-color" content="{_attr(self.style.palette.primary)}">',
            '<link rel="stylesheet" href="../styles.css">',
            f'<script type="application/ld+json">{schema}</script>',
        ]

        return (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n'
            "<head>\n"
            + "\n".join(head)
            + "\n</head>\n"
            "<body>\n"
            '<a class="skip-link" href="#main">Skip to content</a>\n'
            f"{self.nav(page)}\n"
            '<main id="main">\n'
            f"{sections}\n"
            "</main>\n"
            f"{self.footer()}\n"
            '<script src="../script.js" defer></script>\n'
            "</body>\n"
            "</html>\n"
        )

    def section(self, page: PageLayout, section: Section) -> str:
        block = self.copy.sections.get(section.id) or CopyBlock(
            headline=section.type.replace("-", " ").capitalize()
        )
        is_hero = section.type == "hero"
        tag = "h1" if is_hero else "h2"
        title_id = f"{section.id}-title"
        rules = section.responsive_rules

        content = [f'<{tag} id="{title_id}">{escape(block.headline)}</{tag}>']
        if block.subheadline:
            content.append(f'<p class="lead">{escape(block.subheadline)}</p>')
        content += [f"<p>{escape(paragraph)}</p>" for paragraph in block.body]
        if section.type != "contact":
            content.append(self.ctas(section, block))

        parts = [f'<div class="section-content">\n' + "\n".join(c for c in content if c) + "\n</div>"]
        image = self.image(section, block)
        if image:
            parts.append(image)
        items = self.items(section, block)
        if items:
            parts.append(items)

        return (
            f'<section id="{section.id}" class="section section-{section.type} {section.variant_id}" '
            f'data-section-type="{section.type}" data-variant="{section.variant_id}" '
            f'data-tablet="{_attr(rules.get("tablet", ""))}" data-layout="{_attr(rules.get("desktop", ""))}" '
            f'aria-labelledby="{title_id}">\n'
            '<div class="container section-inner">\n'
            + "\n".join(parts)
            + "\n</div>\n"
            "</section>"
        )

    def ctas(self, section: Section, block: CopyBlock) -> str:
        buttons = []
        if block.cta_primary:
            buttons.append(f'<a class="btn btn-primary" href="{self.contact_href}">{escape(block.cta_primary)}</a>')
        if block.cta_secondary:
            buttons.append(f'<a class="btn btn-secondary" href="{self.services_href}">{escape(block.cta_secondary)}</a>')
        if not buttons:
            return ""
        return f'<div class="cta-group">{"".join(buttons)}</div>'

    def image(self, section: Section, block: CopyBlock) -> str:
        if section.type not in IMAGE_SECTION_TYPES:
            return ""
        asset = self.images.for_section(section.id)
        if asset is None:
            return ""

        is_hero = section.type == "hero"
        width, height = (int(v) for v in (HERO_DIMENSIONS if is_hero else SUPPORTING_DIMENSIONS).split("x"))
        alt = f"{self.requirements.business_name}: {block.headline}"
        if asset.success:
            src = asset.url
        else:
            palette = self.style.palette
            surface = palette.neutrals[3] if len(palette.neutrals) > 3 else "#f8fafc"
            src = _placeholder_image(width, height, self.requirements.business_name, surface, palette.primary)

        loading = 'loading="eager" fetchpriority="high"' if is_hero else 'loading="lazy"'
        return (
            f'<figure class="section-media">'
            f'<img src="{_attr(src)}" alt="{_attr(alt)}" width="{width}" height="{height}" {loading} decoding="async">'
            f"</figure>"
        )

    def items(self, section: Section, block: CopyBlock) -> str:
        section_type = section.type
        if section_type == "contact":
            return self.contact_form(block)
        if not block.items:
            return ""

        if section_type in CARD_SECTION_TYPES:
            cards = [
                f'<li class="card"><h3>{escape(str(item.get("title", "")))}</h3>'
                f'<p>{escape(str(item.get("description", "")))}</p></li>'
                for item in block.items
            ]
            return f'<ul class="card-grid">{"".join(cards)}</ul>'

        if section_type == "testimonials":
            quotes = []
            for item in block.items:
                caption = ", ".join(str(item[k]) for k in ("author", "role") if item.get(k))
                quotes.append(
                    f'<figure class="card quote"><blockquote><p>{escape(str(item.get("quote", "")))}</p></blockquote>'
                    f"<figcaption>{escape(caption)}</figcaption></figure>"
                )
            return f'<div class="card-grid">{"".join(quotes)}</div>'

        if section_type == "team":
            people = [
                f'<li class="card"><h3>{escape(str(item.get("name", "")))}</h3>'
                f'<span class="role">{escape(str(item.get("role", "")))}</span>'
                f'<p>{escape(str(item.get("bio", "")))}</p></li>'
                for item in block.items
            ]
            return f'<ul class="card-grid">{"".join(people)}</ul>'

        if section_type == "pricing":
            tiers = []
            for item in block.items:
                name = str(item.get("name", ""))
                features = "".join(f"<li>{escape(str(f))}</li>" for f in item.get("features", []))
                tiers.append(
                    f'<li class="card tier"><h3>{escape(name)}</h3>'
                    f'<span class="price">{escape(str(item.get("price", "")))}</span>'
                    f'<p>{escape(str(item.get("description", "")))}</p>'
                    f'<ul class="tier-features">{features}</ul>'
                    f'<a class="btn btn-secondary" href="{self.contact_href}">Choose {escape(name)}</a></li>'
                )
            return f'<ul class="card-grid">{"".join(tiers)}</ul>'

        if section_type == "faq":
            entries = [
                f'<details class="faq-item"><summary>{escape(str(item.get("question", "")))}</summary>'
                f'<p>{escape(str(item.get("answer", "")))}</p></details>'
                for item in block.items
            ]
            return f'<div class="faq-list">{"".join(entries)}</div>'

        return ""

    def contact_form(self, block: CopyBlock) -> str:
        submit = block.cta_primary or "Send message"
        return (
            '<div class="contact-panel">\n'
            f"{self.contact_details()}\n"
            '<form class="contact-form card" data-form="contact" action="#" method="post">\n'
            '<label for="contact-name">Name</label>\n'
            '<input id="contact-name" name="name" type="text" autocomplete="name" required>\n'
            '<label for="contact-email">Email</label>\n'
            '<input id="contact-email" name="email" type="email" autocomplete="email" required>\n'
            '<label for="contact-message">Message</label>\n'
            '<textarea id="contact-message" name="message" rows="4" required></textarea>\n'
            f'<button class="btn btn-primary" type="submit">{escape(submit)}</button>\n'
            '<p class="form-status" role="status" aria-live="polite" hidden></p>\n'
            "</form>\n"
            "</div>"
        )

    # =====================
    # Stylesheet
    # =====================

    def stylesheet(self) -> str:
        palette = self.style.palette
        typography = self.style.typography
        neutrals = list(palette.neutrals) + ["#0f172a", "#475569", "#e2e8f0", "#f8fafc", "#ffffff"][len(palette.neutrals):]
        gradients = list(palette.gradients) or [f"linear-gradient(135deg, {palette.primary} 0%, {palette.secondary} 100%)"]
        soft_gradient = gradients[1] if len(gradients) > 1 else gradients[0]
        scale = typography.scale or {"h1": 61, "h2": 49, "h3": 39, "body": typography.base_size, "small": 13}

        spacing = "\n".join(f"  --space-{i}: {value}px;" for i, value in enumerate(self.style.spacing, start=1))
        radii = "\n".join(f"  --radius-{name}: {value};" for name, value in self.style.radii.items())
        sizes = "\n".join(f"  --font-size-{name}: {value}px;" for name, value in sorted(scale.items()))

        return f""":root {{
  --color-primary: {palette.primary};
  --color-secondary: {palette.secondary};
  --color-accent: {palette.accent};
  --color-text: {neutrals[0]};
  --color-muted: {neutrals[1]};
  --color-border: {neutrals[2]};
  --color-surface: {neutrals[3]};
  --color-background: {neutrals[4]};
  --gradient-brand: {gradients[0]};
  --gradient-soft: {soft_gradient};
  --font-heading: "{typography.heading_font}", system-ui, sans-serif;
  --font-body: "{typography.body_font}", system-ui, sans-serif;
{sizes}
{spacing}
{radii}
  --shadow-card: 0 8px 24px rgba(15, 23, 42, 0.08);
}}

*, *::before, *::after {{ box-sizing: border-box; }}

html {{ scroll-behavior: smooth; }}

body {{
  margin: 0;
  font-family: var(--font-body);
  font-size: var(--font-size-body);
  line-height: 1.6;
  color: var(--color-text);
  background-color: var(--color-background);
  overflow-wrap: break-word;
}}

h1 {{ font-size: var(--font-size-h1); }}
h2 {{ font-size: var(--font-size-h2); }}
h3 {{ font-size: var(--font-size-h4); }}

h1, h2, h3 {{
  font-family: var(--font-heading);
  line-height: 1.15;
  margin: 0 0 var(--space-4);
}}

p {{ margin: 0 0 var(--space-4); max-width: 68ch; }}

img {{ max-width: 100%; height: auto; display: block; border-radius: var(--radius-lg); }}

a {{ color: var(--color-primary); }}

.container {{ width: min(1160px, 100% - 2 * var(--space-5)); margin-inline: auto; }}

.skip-link {{
  position: absolute;
  left: var(--space-3);
  top: -100px;
  padding: var(--space-3) var(--space-4);
  background: var(--color-primary);
  color: var(--color-background);
  z-index: 10;
}}
.skip-link:focus {{ top: var(--space-3); }}

.site-header {{
  position: sticky;
  top: 0;
  z-index: 5;
  background: var(--color-background);
  border-bottom: 1px solid var(--color-border);
}}
.site-nav {{
  display: flex;
  flex-wrap: wrap;
  align-items: center;
  justify-content: space-between;
  gap: var(--space-3);
  padding-block: var(--space-3);
}}
.brand {{ font-family: var(--font-heading); font-weight: 700; font-size: var(--font-size-h6); text-decoration: none; color: var(--color-text); }}
.nav-links {{ display: flex; flex-wrap: wrap; gap: var(--space-2); list-style: none; margin: 0; padding: 0; }}
.nav-links a {{
  display: inline-flex;
  align-items: center;
  min-height: 44px;
  padding: 0 var(--space-3);
  color: var(--color-text);
  text-decoration: none;
  border-radius: var(--radius-pill);
  transition: background-color 0.2s ease, color 0.2s ease;
}}
.nav-links a:hover, .nav-links a[aria-current="page"] {{ background: var(--color-surface); color: var(--color-primary); }}

.section {{ padding-block: var(--space-8); }}
.section:nth-of-type(even) {{ background: var(--color-surface); }}
.section-inner {{ display: grid; gap: var(--space-6); }}
.lead {{ font-size: var(--font-size-h6); color: var(--color-muted); }}

.section-hero {{ background: var(--gradient-soft); padding-block: var(--space-9); }}
.section-cta {{ background: var(--gradient-brand); color: var(--color-background); text-align: center; }}
.section-cta .lead, .section-cta p {{ color: var(--color-background); margin-inline: auto; }}
.section-cta .btn-primary {{ background: var(--color-background); color: var(--color-primary); }}
.section-cta .btn-secondary {{ border-color: var(--color-background); color: var(--color-background); }}

[data-variant$="-centered"] .section-inner, [data-variant$="-minimal"] .section-inner {{ text-align: center; justify-items: center; }}
[data-variant$="-fullbleed"] {{ background: var(--gradient-brand); color: var(--color-background); }}
[data-variant$="-fullbleed"] .lead, [data-variant$="-fullbleed"] p {{ color: var(--color-background); }}
[data-variant$="-fullbleed"] .btn-primary {{ background: var(--color-background); color: var(--color-primary); }}
[data-variant$="-fullbleed"] .btn-secondary {{ border-color: var(--color-background); color: var(--color-background); }}
[data-variant$="-gradient"] {{ background: var(--gradient-brand); }}
[data-variant$="-alternating"] .card:nth-child(even) {{ transform: translateY(var(--space-4)); }}

.cta-group {{ display: flex; flex-wrap: wrap; gap: var(--space-3); margin-top: var(--space-5); }}
.btn {{
  display: inline-flex;
  align-items: center;
  justify-content: center;
  min-height: 48px;
  padding: 0 var(--space-5);
  border: 2px solid transparent;
  border-radius: var(--radius-pill);
  font-weight: 600;
  text-decoration: none;
  cursor: pointer;
  transition: transform 0.2s ease, box-shadow 0.2s ease;
}}
.btn:hover {{ transform: translateY(-2px); box-shadow: var(--shadow-card); }}
.btn:focus-visible, a:focus-visible, input:focus-visible, textarea:focus-visible {{ outline: 3px solid var(--color-accent); outline-offset: 2px; }}
.btn-primary {{ background: var(--color-primary); color: var(--color-background); }}
.btn-secondary {{ background: transparent; border-color: var(--color-primary); color: var(--color-primary); }}

.card-grid {{ display: grid; gap: var(--space-5); list-style: none; margin: 0; padding: 0; }}
.card {{
  background: var(--color-background);
  color: var(--color-text);
  border: 1px solid var(--color-border);
  border-radius: var(--radius-lg);
  padding: var(--space-5);
  box-shadow: var(--shadow-card);
  transition: transform 0.3s ease;
}}
.card p {{ color: var(--color-muted); }}
.quote blockquote {{ margin: 0; font-style: italic; }}
.quote figcaption, .role {{ display: block; font-weight: 600; color: var(--color-secondary); margin-bottom: var(--space-3); }}
.price {{ display: block; font-size: var(--font-size-h5); font-weight: 700; color: var(--color-primary); margin-bottom: var(--space-3); }}
.tier-features {{ padding-left: var(--space-5); margin: 0 0 var(--space-5); }}

.faq-list {{ display: grid; gap: var(--space-3); }}
.faq-item {{ border: 1px solid var(--color-border); border-radius: var(--radius-md); padding: var(--space-4); background: var(--color-background); }}
.faq-item summary {{ cursor: pointer; font-weight: 600; min-height: 24px; }}

.contact-panel {{ display: grid; gap: var(--space-5); }}
.contact-details {{ font-style: normal; line-height: 2; }}
.contact-form {{ display: grid; gap: var(--space-2); }}
.contact-form input, .contact-form textarea {{
  width: 100%;
  min-height: 44px;
  padding: var(--space-3);
  border: 1px solid var(--color-border);
  border-radius: var(--radius-md);
  font: inherit;
}}
.contact-form .btn {{ margin-top: var(--space-3); }}

.site-footer {{ background: var(--color-text); color: var(--color-border); padding-block: var(--space-7) var(--space-5); }}
.site-footer a {{ color: var(--color-background); display: inline-block; min-height: 24px; }}
.footer-grid {{ display: grid; gap: var(--space-5); }}
.footer-brand {{ display: block; font-family: var(--font-heading); font-size: var(--font-size-h5); color: var(--color-background); }}
.footer-links {{ list-style: none; margin: 0; padding: 0; display: grid; gap: var(--space-2); }}
.footer-legal {{ display: block; margin-top: var(--space-5); font-size: var(--font-size-small); }}

.is-visible .card {{ animation: rise-in 0.6s ease both; }}

@keyframes rise-in {{
  from {{ opacity: 0; transform: translateY(16px); }}
  to {{ opacity: 1; transform: none; }}
}}

@media (max-width: 600px) {{
  h1 {{ font-size: calc(var(--font-size-h1) * 0.7); }}
  h2 {{ font-size: calc(var(--font-size-h2) * 0.75); }}
  .section {{ padding-block: var(--space-7); }}
}}

@media (min-width: 768px) {{
  [data-tablet="two-column"] .card-grid {{ grid-template-columns: repeat(2, 1fr); }}
  .footer-grid {{ grid-template-columns: 2fr 1fr 1fr; }}
  .contact-panel {{ grid-template-columns: 1fr 2fr; }}
}}

@media (min-width: 1024px) {{
  [data-layout="two-column"] .section-inner {{ grid-template-columns: 1fr 1fr; align-items: center; }}
  [data-layout="three-column"] .card-grid {{ grid-template-columns: repeat(3, 1fr); }}
  [data-layout="two-column"] .section-inner > .card-grid,
  [data-layout="two-column"] .section-inner > .faq-list,
  [data-layout="two-column"] .section-inner > .contact-panel {{ grid-column: 1 / -1; }}
}}

@media (prefers-reduced-motion: reduce) {{
  html {{ scroll-behavior: auto; }}
  *, *::before, *::after {{ animation: none !important; transition: none !important; }}
}}
"""

    def build(self) -> dict[str, str]:
        files = {f"pages/{page.slug}.html": self.page(page) for page in self.layout.pages}
        files["styles.css"] = self.stylesheet()
        files["script.js"] = SCRIPT_JS
        return files


SCRIPT_JS = """(function () {
  'use strict';

  var reduceMotion = window.matchMedia && window.matchMedia('(prefers-reduced-motion: reduce)').matches;

  if (!reduceMotion && 'IntersectionObserver' in window) {
    var observer = new IntersectionObserver(function (entries) {
      entries.forEach(function (entry) {
        if (entry.isIntersecting) {
          entry.target.classList.add('is-visible');
          observer.unobserve(entry.target);
        }
      });
    }, { threshold: 0.15 });
    document.querySelectorAll('.section').forEach(function (section) {
      observer.observe(section);
    });
  }

  document.querySelectorAll('form[data-form="contact"]').forEach(function (form) {
    form.addEventListener('submit', function (event) {
      event.preventDefault();
      var status = form.querySelector('.form-status');
      if (status) {
        status.hidden = false;
        status.textContent = 'Thank you! We will be in touch within one business day.';
      }
      form.reset();
    });
  });
})();
"""


def assemble(requirements: Requirements, artifacts: dict) -> GeneratedWebsitePackage:
    """
    Render artifacts into a website package.

    Args:
        requirements: Validated requirements for the run
        artifacts: Artifact key -> artifact; needs layout, style, copy,
            images and seo-metadata, other keys only feed metadata

    Returns:
        GeneratedWebsitePackage flagged degraded when any upstream
        artifact is degraded or any image failed
    """
    layout: Layout = artifacts["layout"]
    images: Optional[ImageSet] = artifacts.get("images")
    renderer = SiteRenderer(
        requirements,
        layout,
        artifacts["style"],
        artifacts["copy"],
        images,
        artifacts["seo-metadata"],
    )
    files = renderer.build()

    stages = {}
    for stage_name, key in STAGE_ARTIFACTS:
        if key in artifacts:
            stages[stage_name] = {
                "artifact_key": key,
                "degraded": bool(getattr(artifacts[key], "degraded", False)),
            }
    image_failures = [a.task_id for a in images.failures] if images else []

    metadata = {
        "business_name": requirements.business_name,
        "pages": [
            {
                "slug": page.slug,
                "name": page.name,
                "path": f"pages/{page.slug}.html",
                "sections": [s.id for s in page.sections],
            }
            for page in layout.pages
        ],
        "sections": len(layout.sections),
        "stages": stages,
        "degraded_stages": sorted(name for name, info in stages.items() if info["degraded"]),
        "image_failures": image_failures,
    }
    degraded = bool(metadata["degraded_stages"]) or bool(image_failures)

    logger.info(
        "Website assembled",
        pages=len(layout.pages),
        files=len(files),
        degraded=degraded,
        image_failures=len(image_failures),
    )
    return GeneratedWebsitePackage(files=files, metadata=metadata, degraded=degraded)


class CodeAssemblerStage(BaseStage):
    """Produces the website package. Rule-based on both paths."""

    name = "code_assembler"
    produces = "package"
    depends_on = ("layout", "style", "copy", "images", "seo-metadata")

    async def generate(self, ctx: StageContext) -> GeneratedWebsitePackage:
        return assemble(ctx.requirements, ctx.artifacts)

    def fallback(self, ctx: StageContext) -> GeneratedWebsitePackage:
        return assemble(ctx.requirements, ctx.artifacts)
