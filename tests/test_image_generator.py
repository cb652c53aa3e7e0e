"""
Tests for parallel image generation.
"""
import pytest

from schemas.artifacts import ImagePlan, ImageTask
from services.providers import ProviderSet, UnavailableImageProvider
from stages.base import StageContext
from stages.image_generator import ImageGeneratorStage, ParallelImageGenerator

from tests.conftest import FailingImageProvider, FakeImageProvider


def make_tasks(count: int) -> list[ImageTask]:
    return [
        ImageTask(
            id=f"img-{i}",
            section_id=f"section-{i}",
            purpose="hero" if i == 0 else "supporting",
            prompt=f"photo {i}",
            dimensions="1792x1024" if i == 0 else "1024x1024",
            priority="hero" if i == 0 else "supporting",
        )
        for i in range(count)
    ]


# =====================
# ParallelImageGenerator Tests
# =====================

class TestParallelImageGenerator:
    """Tests for batching, concurrency and per-task failure."""

    @pytest.mark.asyncio
    async def test_one_asset_per_task_in_order(self):
        provider = FakeImageProvider()
        generator = ParallelImageGenerator(provider, batch_size=4, retry_backoff=0, batch_delay=0)
        tasks = make_tasks(9)

        assets = await generator.generate(ImagePlan(tasks=tasks), concurrency_limit=3)

        assert len(assets) == 9
        assert [a.task_id for a in assets] == [t.id for t in tasks]
        assert all(a.success for a in assets)

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_limit(self):
        provider = FakeImageProvider(delay=0.01)
        generator = ParallelImageGenerator(provider, batch_size=10, retry_backoff=0, batch_delay=0)

        assets = await generator.generate(make_tasks(12), concurrency_limit=3)

        assert len(assets) == 12
        assert provider.max_in_flight <= 3
        assert provider.max_in_flight > 1

    @pytest.mark.asyncio
    async def test_failed_task_does_not_fail_batch(self):
        provider = FakeImageProvider(fail_prompts=("photo 2",))
        generator = ParallelImageGenerator(provider, retry_attempts=3, retry_backoff=0, batch_delay=0)

        assets = await generator.generate(make_tasks(4), concurrency_limit=4)

        assert [a.success for a in assets] == [True, True, False, True]
        failed = assets[2]
        assert failed.attempts == 3
        assert failed.url is None
        assert "rejected" in failed.error

    @pytest.mark.asyncio
    async def test_empty_plan(self):
        generator = ParallelImageGenerator(FakeImageProvider())

        assert await generator.generate([], concurrency_limit=5) == []

    @pytest.mark.asyncio
    async def test_retry_recovers(self):
        class FlakyProvider(FakeImageProvider):
            async def generate_image(self, prompt, dimensions):
                if self.calls == 0:
                    self.calls += 1
                    raise ConnectionError("reset")
                return await super().generate_image(prompt, dimensions)

        generator = ParallelImageGenerator(FlakyProvider(), retry_attempts=2, retry_backoff=0)

        asset = await generator.generate_one(make_tasks(1)[0])

        assert asset.success
        assert asset.attempts == 2


# =====================
# ImageGeneratorStage Tests
# =====================

class TestImageGeneratorStage:
    """Tests for the stage wrapper."""

    def context(self, requirements, images, count=3):
        return StageContext(
            requirements=requirements,
            providers=ProviderSet(images=images),
            artifacts={"image-plan": ImagePlan(tasks=make_tasks(count))},
        )

    @pytest.mark.asyncio
    async def test_all_images_generated(self, requirements):
        stage = ImageGeneratorStage(concurrency=2, retry_backoff=0, batch_delay=0)

        result = await stage.run(self.context(requirements, FakeImageProvider()))

        assert result.key == "images"
        assert result.degraded is False
        assert len(result.artifact.assets) == 3
        assert result.artifact.failures == []

    @pytest.mark.asyncio
    async def test_failures_mark_degraded(self, requirements):
        stage = ImageGeneratorStage(retry_attempts=2, retry_backoff=0, batch_delay=0)

        result = await stage.run(self.context(requirements, FailingImageProvider()))

        assert result.degraded is True
        assert len(result.artifact.failures) == 3

    @pytest.mark.asyncio
    async def test_unavailable_provider_uses_fallback(self, requirements):
        stage = ImageGeneratorStage()

        result = await stage.run(self.context(requirements, UnavailableImageProvider()))

        assert result.degraded is True
        assert result.error is not None
        assert len(result.artifact.assets) == 3
        assert all(not a.success for a in result.artifact.assets)
