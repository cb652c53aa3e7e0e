"""
Image Generator - resolves every ImageTask in the plan to an ImageAsset.

Tasks run in sequential batches; inside a batch they run concurrently under a
semaphore. Each task gets its own retry budget and ends as either a url or a
failure marker, so one bad image never fails the run.
"""
import asyncio
from typing import Union

import structlog

from schemas.artifacts import ImageAsset, ImagePlan, ImageSet, ImageTask
from schemas.errors import AssetGenerationFailure, ProviderUnavailable
from services.providers import ImageProvider
from services.retry import with_retry
from stages.base import BaseStage, StageContext

logger = structlog.get_logger()


class ParallelImageGenerator:
    """Batch image generation with bounded concurrency and per-task retry."""

    def __init__(
        self,
        provider: ImageProvider,
        batch_size: int = 10,
        retry_attempts: int = 3,
        retry_backoff: float = 2.0,
        batch_delay: float = 0.5,
    ):
        self.provider = provider
        self.batch_size = batch_size
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.batch_delay = batch_delay

    async def generate(
        self,
        plan: Union[ImagePlan, list[ImageTask]],
        concurrency_limit: int = 10,
    ) -> list[ImageAsset]:
        """
        Generate every task in the plan.

        Args:
            plan: ImagePlan or a plain task list
            concurrency_limit: Max tasks in flight at once

        Returns:
            One ImageAsset per task, in task order
        """
        tasks = plan.tasks if isinstance(plan, ImagePlan) else list(plan)
        if not tasks:
            return []

        limit = max(1, concurrency_limit)
        batch_size = max(1, min(self.batch_size, limit))
        semaphore = asyncio.Semaphore(limit)

        logger.info(
            "Starting image generation",
            task_count=len(tasks),
            batch_size=batch_size,
            concurrency=limit,
        )

        assets: list[ImageAsset] = []
        for start in range(0, len(tasks), batch_size):
            if start and self.batch_delay:
                await asyncio.sleep(self.batch_delay)
            batch = tasks[start:start + batch_size]

            async def run_with_semaphore(task: ImageTask) -> ImageAsset:
                async with semaphore:
                    return await self.generate_one(task)

            results = await asyncio.gather(
                *[run_with_semaphore(task) for task in batch],
                return_exceptions=True,
            )

            # Convert exceptions to failure assets
            for task, result in zip(batch, results):
                if isinstance(result, BaseException):
                    assets.append(ImageAsset(task_id=task.id, section_id=task.section_id, error=str(result)))
                else:
                    assets.append(result)

        success_count = sum(1 for a in assets if a.success)
        logger.info(
            "Image generation completed",
            total=len(tasks),
            success=success_count,
            failed=len(tasks) - success_count,
        )
        return assets

    async def generate_one(self, task: ImageTask) -> ImageAsset:
        """Generate one image, retrying with backoff. Never raises."""
        attempts = 0

        async def call() -> str:
            nonlocal attempts
            attempts += 1
            url = await self.provider.generate_image(task.prompt, task.dimensions)
            if not url:
                raise AssetGenerationFailure("Provider returned no image url", artifact_key="images", attempt=attempts)
            return url

        try:
            url = await with_retry(
                call,
                attempts=self.retry_attempts,
                backoff=self.retry_backoff,
                label=f"image:{task.id}",
            )
        except Exception as e:
            logger.error(
                "Image task failed",
                task_id=task.id,
                section_id=task.section_id,
                attempt=attempts,
                error=str(e),
            )
            return ImageAsset(task_id=task.id, section_id=task.section_id, attempts=attempts, error=str(e))

        return ImageAsset(task_id=task.id, section_id=task.section_id, url=url, attempts=attempts)


class ImageGeneratorStage(BaseStage):
    """Produces the images artifact."""

    name = "image_generator"
    produces = "images"
    depends_on = ("image-plan",)

    def __init__(
        self,
        concurrency: int = 10,
        batch_size: int = 10,
        retry_attempts: int = 3,
        retry_backoff: float = 2.0,
        batch_delay: float = 0.5,
    ):
        # Retries happen per image task, not around the whole stage.
        super().__init__(retry_attempts=1, retry_backoff=0)
        self.concurrency = concurrency
        self.batch_size = batch_size
        self.image_retry_attempts = retry_attempts
        self.image_retry_backoff = retry_backoff
        self.batch_delay = batch_delay

    async def generate(self, ctx: StageContext) -> ImageSet:
        if not ctx.providers.images_available:
            raise ProviderUnavailable("No image provider configured", stage=self.name, artifact_key=self.produces)

        plan: ImagePlan = ctx.artifact("image-plan")
        generator = ParallelImageGenerator(
            ctx.providers.images,
            batch_size=self.batch_size,
            retry_attempts=self.image_retry_attempts,
            retry_backoff=self.image_retry_backoff,
            batch_delay=self.batch_delay,
        )
        assets = await generator.generate(plan, concurrency_limit=self.concurrency)
        self._attempts = sum(a.attempts for a in assets)
        return ImageSet(assets=assets, degraded=any(not a.success for a in assets))

    def fallback(self, ctx: StageContext) -> ImageSet:
        plan: ImagePlan = ctx.artifact("image-plan")
        return ImageSet(assets=[
            ImageAsset(task_id=t.id, section_id=t.section_id, error="image provider unavailable")
            for t in plan.tasks
        ])
