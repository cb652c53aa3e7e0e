"""
Style System - palette, typography, spacing and radii.
"""
import structlog

from quality.contrast import adjust_lightness, ensure_contrast, is_hex_color
from schemas.artifacts import ColorPalette, DesignStrategy, StyleSystem, Typography
from stages.base import BaseStage, StageContext

logger = structlog.get_logger()

# (primary, secondary, accent) options per tone; constraints rotate through them.
TONE_PALETTES = {
    "professional": [("#1e3a8a", "#0f766e", "#f59e0b"), ("#1f2937", "#2563eb", "#10b981")],
    "friendly": [("#9a3412", "#b45309", "#0d9488"), ("#7c2d12", "#be185d", "#facc15")],
    "premium": [("#111827", "#78350f", "#d4af37"), ("#1c1917", "#581c87", "#e5c07b")],
    "innovative": [("#4338ca", "#0e7490", "#f472b6"), ("#6d28d9", "#0369a1", "#22d3ee")],
    "trustworthy": [("#1d4ed8", "#0f766e", "#f97316"), ("#1e40af", "#334155", "#eab308")],
    "exciting": [("#be123c", "#7c3aed", "#f59e0b"), ("#c2410c", "#db2777", "#22c55e")],
    "playful": [("#7e22ce", "#db2777", "#facc15"), ("#0f766e", "#ea580c", "#a3e635")],
    "authoritative": [("#0f172a", "#1e3a8a", "#b91c1c"), ("#1e293b", "#14532d", "#ca8a04")],
}

TONE_FONTS = {
    "professional": ("Inter", "Source Sans 3"),
    "friendly": ("Poppins", "Nunito"),
    "premium": ("Playfair Display", "Lato"),
    "innovative": ("Space Grotesk", "Inter"),
    "trustworthy": ("Merriweather", "Open Sans"),
    "exciting": ("Montserrat", "Roboto"),
    "playful": ("Fredoka", "Nunito"),
    "authoritative": ("Libre Baskerville", "Source Sans 3"),
}

NEUTRALS = ["#0f172a", "#475569", "#e2e8f0", "#f8fafc", "#ffffff"]
TEXT_COLOR = NEUTRALS[0]
BACKGROUND_COLOR = NEUTRALS[-1]
SPACING_SCALE = [4, 8, 12, 16, 24, 32, 48, 64, 96]
RADII = {"sm": "4px", "md": "8px", "lg": "16px", "pill": "999px"}
SCALE_STEPS = ("small", "body", "h6", "h5", "h4", "h3", "h2", "h1")


def type_scale(base_size: int, ratio: float) -> dict[str, int]:
    """Modular scale: small = base / ratio, body = base, then one step per level."""
    scale = {"small": round(base_size / ratio)}
    for i, step in enumerate(SCALE_STEPS[1:]):
        scale[step] = round(base_size * ratio ** i)
    return scale


def build_style(
    primary: str,
    secondary: str,
    accent: str,
    heading_font: str,
    body_font: str,
    min_contrast: float = 4.5,
    scale_ratio: float = 1.25,
) -> StyleSystem:
    """Derive the full style system from brand colors and fonts."""
    # Buttons put white text on primary; headings sit on white.
    primary = ensure_contrast(primary, BACKGROUND_COLOR, min_contrast)
    secondary = ensure_contrast(secondary, BACKGROUND_COLOR, 3.0)

    palette = ColorPalette(
        primary=primary,
        secondary=secondary,
        accent=accent,
        neutrals=list(NEUTRALS),
        gradients=[
            f"linear-gradient(135deg, {primary} 0%, {secondary} 100%)",
            f"linear-gradient(135deg, {adjust_lightness(primary, 0.45)} 0%, {NEUTRALS[3]} 100%)",
        ],
    )
    typography = Typography(
        heading_font=heading_font,
        body_font=body_font,
        base_size=16 if scale_ratio < 1.3 else 17,
        scale_ratio=scale_ratio,
    )
    typography.scale = type_scale(typography.base_size, scale_ratio)

    return StyleSystem(
        palette=palette,
        typography=typography,
        spacing=list(SPACING_SCALE),
        radii=dict(RADII),
    )


class StyleSystemStage(BaseStage):
    """Produces the style artifact."""

    name = "style_system"
    produces = "style"
    depends_on = ("design-strategy",)

    async def generate(self, ctx: StageContext) -> StyleSystem:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        hints = []
        if ctx.constraints.get("min_contrast"):
            hints.append(f"Text and buttons must reach a {ctx.constraints['min_contrast']}:1 contrast ratio on white.")
        if ctx.constraints.get("bolder"):
            hints.append("Previous palette felt generic: choose a bolder, more distinctive combination.")

        prompt = f"""Design a brand palette and font pairing for a {strategy.emotional_tone} website.
{chr(10).join(hints)}

Respond with JSON: {{"primary": "#RRGGBB", "secondary": "#RRGGBB", "accent": "#RRGGBB",
"heading_font": "Google Font name", "body_font": "Google Font name"}}"""

        data = await self.ask_json(ctx, prompt, self.brief(ctx.requirements))
        for key in ("primary", "secondary", "accent"):
            if not is_hex_color(data.get(key)):
                raise ValueError(f"style: invalid {key} color {data.get(key)!r}")
        heading_font = str(data["heading_font"]).strip()
        body_font = str(data["body_font"]).strip()
        if not heading_font or not body_font:
            raise ValueError("style: fonts must not be blank")

        return build_style(
            data["primary"].lower(),
            data["secondary"].lower(),
            data["accent"].lower(),
            heading_font,
            body_font,
            min_contrast=float(ctx.constraints.get("min_contrast", 4.5)),
            scale_ratio=self._scale_ratio(ctx),
        )

    def fallback(self, ctx: StageContext) -> StyleSystem:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        tone = strategy.emotional_tone if strategy.emotional_tone in TONE_PALETTES else "professional"
        options = TONE_PALETTES[tone]
        primary, secondary, accent = options[int(ctx.constraints.get("palette_offset", 0)) % len(options)]
        heading_font, body_font = TONE_FONTS[tone]

        return build_style(
            primary,
            secondary,
            accent,
            heading_font,
            body_font,
            min_contrast=float(ctx.constraints.get("min_contrast", 4.5)),
            scale_ratio=self._scale_ratio(ctx),
        )

    @staticmethod
    def _scale_ratio(ctx: StageContext) -> float:
        # A bolder system uses a steeper type scale.
        return 1.333 if ctx.constraints.get("bolder") else 1.25
