"""
Pytest configuration and fixtures.
"""
import asyncio
import json
import os
import re

import pytest
from unittest.mock import MagicMock

# Set test environment variables
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("IMAGE_API_KEY", "")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379")
os.environ.setdefault("ENVIRONMENT", "development")

from pipeline import WebsiteOrchestrator  # noqa: E402
from quality.assessor import QualityAssessor  # noqa: E402
from quality.signals import StaticRenderer  # noqa: E402
from schemas.errors import ProviderUnavailable  # noqa: E402
from schemas.requirements import parse_requirements  # noqa: E402
from services.providers import ContentProvider, ImageProvider, ProviderSet  # noqa: E402
from stages import default_stages  # noqa: E402


# =====================
# Fake providers
# =====================

class ScriptedContentProvider(ContentProvider):
    """Answers each stage prompt with well-formed JSON."""

    def __init__(self):
        self.prompts: list[str] = []

    async def generate_text(self, prompt, context=None):
        self.prompts.append(prompt)

        if "creative direction" in prompt:
            return json.dumps({
                "emotional_tone": "friendly",
                "blueprint_id": "hospitality-warm",
                "section_order": ["hero", "about", "services", "testimonials", "contact"],
                "rationale": "Warm and welcoming for a neighbourhood roastery.",
            })
        if "brand palette" in prompt:
            return "```json\n" + json.dumps({
                "primary": "#7c2d12",
                "secondary": "#1e3a8a",
                "accent": "#b45309",
                "heading_font": "Playfair Display",
                "body_font": "Lato",
            }) + "\n```"
        if "Write website copy" in prompt:
            ids = re.findall(r"^- (\S+) \(", prompt, flags=re.MULTILINE)
            return json.dumps({"sections": {
                section_id: {
                    "headline": f"Headline for {section_id}",
                    "subheadline": f"Subheadline for {section_id}",
                }
                for section_id in ids
            }})
        if "section order" in prompt:
            return json.dumps({"pages": {}})
        if "image-generation prompt" in prompt:
            return json.dumps({"prompts": {}})
        if "SEO metadata" in prompt:
            return json.dumps({"pages": {}})
        return "{}"


class FailingContentProvider(ContentProvider):
    """Every call fails like an unreachable API."""

    def __init__(self):
        self.calls = 0

    async def generate_text(self, prompt, context=None):
        self.calls += 1
        raise ProviderUnavailable("content provider down")


class FakeImageProvider(ImageProvider):
    """Returns deterministic urls and records peak concurrency."""

    def __init__(self, delay: float = 0.0, fail_prompts: tuple[str, ...] = ()):
        self.delay = delay
        self.fail_prompts = fail_prompts
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_image(self, prompt, dimensions):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if any(marker in prompt for marker in self.fail_prompts):
                raise ProviderUnavailable("image provider rejected prompt")
            return f"https://images.test/{self.calls}-{dimensions}.png"
        finally:
            self.in_flight -= 1


class FailingImageProvider(ImageProvider):
    async def generate_image(self, prompt, dimensions):
        raise ProviderUnavailable("image provider down")


# =====================
# Fixtures
# =====================

@pytest.fixture
def requirements_data():
    """Requirements for a small three-page site."""
    return {
        "businessName": "Acme Roasters",
        "industry": "Coffee Shop",
        "location": "Portland, OR",
        "targetAudiences": ["commuters", "remote workers"],
        "services": ["Espresso bar", "Single-origin beans", "Barista classes"],
        "pages": ["Home", "About", "Contact"],
        "email": "hello@acmeroasters.test",
        "phone": "+1 503 555 0100",
    }


@pytest.fixture
def requirements(requirements_data):
    return parse_requirements(requirements_data)


@pytest.fixture
def content_provider():
    return ScriptedContentProvider()


@pytest.fixture
def image_provider():
    return FakeImageProvider()


@pytest.fixture
def fake_providers(content_provider, image_provider):
    return ProviderSet(content=content_provider, images=image_provider)


@pytest.fixture
def failing_providers():
    return ProviderSet(content=FailingContentProvider(), images=FailingImageProvider())


@pytest.fixture
def static_assessor():
    """Assessor scoring files directly, no browser."""
    return QualityAssessor(renderer_factory=StaticRenderer, retry_backoff=0)


@pytest.fixture
def fast_stages():
    """Generation stages with retry waits disabled."""
    return lambda: default_stages(
        retry_attempts=2,
        retry_backoff=0,
        image_concurrency=4,
        image_batch_size=4,
        image_retry_attempts=2,
        image_retry_backoff=0,
        image_batch_delay=0,
    )


@pytest.fixture
def make_orchestrator(tmp_path, static_assessor, fast_stages, fake_providers):
    """Factory for orchestrators writing under a temporary directory."""
    def factory(providers=None, **kwargs):
        kwargs.setdefault("max_iterations", 3)
        kwargs.setdefault("assessor", static_assessor)
        return WebsiteOrchestrator(
            providers=providers or fake_providers,
            artifacts_dir=tmp_path / "output",
            stages=fast_stages(),
            **kwargs,
        )
    return factory


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    mock = MagicMock()
    mock.rpush.return_value = 1
    mock.blpop.return_value = None
    return mock
