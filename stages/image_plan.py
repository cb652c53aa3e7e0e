"""
Image Plan - which sections get an image, at what size and with what prompt.
"""
import structlog

from schemas.artifacts import DesignStrategy, ImagePlan, ImageTask, Layout, PageLayout, Section
from stages.base import BaseStage, StageContext

logger = structlog.get_logger()

IMAGE_SECTION_TYPES = ("hero", "about", "services", "portfolio", "team")
HERO_DIMENSIONS = "1792x1024"
SUPPORTING_DIMENSIONS = "1024x1024"
PRIORITY_ORDER = {"hero": 0, "primary": 1, "supporting": 2}

TONE_MOODS = {
    "professional": "clean, composed and well lit",
    "friendly": "warm, inviting and candid",
    "premium": "elegant, moody and refined",
    "innovative": "bright, modern and minimal",
    "trustworthy": "calm, natural and honest",
    "exciting": "vivid, dynamic and energetic",
    "playful": "colorful, cheerful and light",
    "authoritative": "confident, structured and polished",
}

SUBJECTS = {
    "hero": "a signature scene that captures {industry} at {name}",
    "about": "the people and workspace behind {name}",
    "services": "{industry} services being delivered with care",
    "portfolio": "a finished {industry} project by {name}",
    "team": "the {name} team at work",
}


def _task_for(section: Section, page: PageLayout) -> ImageTask:
    is_hero = section.type == "hero"
    if is_hero:
        priority = "hero" if page.slug == "index" else "primary"
    else:
        priority = "supporting"
    return ImageTask(
        id=f"img-{section.id}",
        section_id=section.id,
        purpose="hero" if is_hero else "supporting",
        prompt="",
        dimensions=HERO_DIMENSIONS if is_hero else SUPPORTING_DIMENSIONS,
        priority=priority,
    )


class ImagePlanStage(BaseStage):
    """Produces the image-plan artifact."""

    name = "image_plan"
    produces = "image-plan"
    depends_on = ("design-strategy", "layout")

    async def generate(self, ctx: StageContext) -> ImagePlan:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        tasks = self._tasks(ctx.artifact("layout"))
        if not tasks:
            return ImagePlan(tasks=[])

        prompt = f"""Write one image-generation prompt per task for a {strategy.emotional_tone} website.
Photographic, no text or logos in the image.

Tasks:
{chr(10).join(f"- {t.id}: {t.purpose} image for section {t.section_id} ({t.dimensions})" for t in tasks)}

Respond with JSON: {{"prompts": {{"<task id>": "prompt"}}}}"""

        data = await self.ask_json(ctx, prompt, self.brief(ctx.requirements))
        prompts = data["prompts"]
        if not isinstance(prompts, dict):
            raise ValueError("image-plan: 'prompts' must be an object")

        for task in tasks:
            text = prompts.get(task.id)
            task.prompt = str(text).strip() if text else self._prompt(ctx, strategy, task)
        return ImagePlan(tasks=tasks)

    def fallback(self, ctx: StageContext) -> ImagePlan:
        strategy: DesignStrategy = ctx.artifact("design-strategy")
        tasks = self._tasks(ctx.artifact("layout"))
        for task in tasks:
            task.prompt = self._prompt(ctx, strategy, task)
        return ImagePlan(tasks=tasks)

    @staticmethod
    def _tasks(layout: Layout) -> list[ImageTask]:
        tasks = [
            _task_for(section, page)
            for page in layout.pages
            for section in page.sections
            if section.type in IMAGE_SECTION_TYPES
        ]
        # Stable sort: hero images are generated first.
        return sorted(tasks, key=lambda t: PRIORITY_ORDER[t.priority])

    @staticmethod
    def _prompt(ctx: StageContext, strategy: DesignStrategy, task: ImageTask) -> str:
        requirements = ctx.requirements
        section_type = next(
            (t for t in IMAGE_SECTION_TYPES if task.section_id.endswith(f"-{t}")),
            "hero",
        )
        subject = SUBJECTS[section_type].format(
            industry=requirements.industry.lower(),
            name=requirements.business_name,
        )
        location = f" in {requirements.location}" if requirements.location else ""
        mood = TONE_MOODS.get(strategy.emotional_tone, TONE_MOODS["professional"])
        return f"Photograph of {subject}{location}. Mood: {mood}. Natural light, no text or logos."
