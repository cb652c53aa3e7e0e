"""
Design Strategy - derives emotional tone, blueprint and section priorities
from the business requirements.
"""
import structlog

from schemas.artifacts import DesignStrategy, EMOTIONAL_TONES, SECTION_TYPES
from stages.base import BaseStage, StageContext
from stages.blueprints import BLUEPRINTS, detect_blueprint, normalize_tone

logger = structlog.get_logger()

ALWAYS_REQUIRED = ["hero", "cta", "contact"]


class DesignStrategyStage(BaseStage):
    """Produces the design-strategy artifact."""

    name = "design_strategy"
    produces = "design-strategy"
    depends_on = ()

    async def generate(self, ctx: StageContext) -> DesignStrategy:
        prompt = f"""Decide the creative direction for a small-business website.

Choose:
- emotional_tone: one of {", ".join(EMOTIONAL_TONES)}
- blueprint_id: one of {", ".join(BLUEPRINTS)}
- section_order: ordered home page sections, drawn from {", ".join(SECTION_TYPES)}, starting with "hero"
- rationale: one or two sentences

Blueprints:
{chr(10).join(f"- {k}: {v['description']}" for k, v in BLUEPRINTS.items())}

Respond with JSON: {{"emotional_tone": "...", "blueprint_id": "...", "section_order": [...], "rationale": "..."}}"""

        data = await self.ask_json(ctx, prompt, self.brief(ctx.requirements))

        tone = data["emotional_tone"]
        blueprint_id = data["blueprint_id"]
        if tone not in EMOTIONAL_TONES:
            raise ValueError(f"Unknown emotional tone: {tone}")
        if blueprint_id not in BLUEPRINTS:
            raise ValueError(f"Unknown blueprint: {blueprint_id}")

        order = [s for s in data.get("section_order", []) if s in SECTION_TYPES]
        order = list(dict.fromkeys(order))
        if not order or order[0] != "hero":
            order = ["hero"] + [s for s in order if s != "hero"]
        if len(order) < 4:
            order = list(BLUEPRINTS[blueprint_id]["home"])

        return DesignStrategy(
            emotional_tone=tone,
            blueprint_id=blueprint_id,
            section_order=order,
            required_sections=self._required_sections(ctx),
            rationale=str(data.get("rationale", "")),
        )

    def fallback(self, ctx: StageContext) -> DesignStrategy:
        requirements = ctx.requirements
        blueprint_id = detect_blueprint(requirements.industry)
        blueprint = BLUEPRINTS[blueprint_id]
        tone = normalize_tone(requirements.tone) or blueprint["tone"]

        return DesignStrategy(
            emotional_tone=tone,
            blueprint_id=blueprint_id,
            section_order=list(blueprint["home"]),
            required_sections=self._required_sections(ctx),
            rationale=(
                f"{blueprint['name']} blueprint selected for the {requirements.industry} industry "
                f"with a {tone} tone."
            ),
        )

    @staticmethod
    def _required_sections(ctx: StageContext) -> list[str]:
        required = list(ALWAYS_REQUIRED)
        if ctx.requirements.services:
            required.append("services")
        required.append("testimonials")
        return required
