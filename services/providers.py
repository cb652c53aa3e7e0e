"""
Provider capability contracts and the ProviderSet handed to the orchestrator.

Stages never construct clients themselves: they receive a ProviderSet and
call generate_text / generate_image through it. Any provider failure is
raised as ProviderUnavailable so stages can fall back uniformly.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import structlog

from schemas.errors import ProviderUnavailable

logger = structlog.get_logger()


class ContentProvider(ABC):
    """Text generation capability."""

    name: str = "content"

    @abstractmethod
    async def generate_text(self, prompt: str, context: Optional[dict] = None) -> str:
        """
        Generate text for a prompt.

        Raises:
            ProviderUnavailable: on any provider-side failure.
        """


class ImageProvider(ABC):
    """Image generation capability."""

    name: str = "images"

    @abstractmethod
    async def generate_image(self, prompt: str, dimensions: str) -> str:
        """
        Generate one image and return its url.

        Raises:
            ProviderUnavailable: on any provider-side failure.
        """


class UnavailableContentProvider(ContentProvider):
    """Stand-in used when no content provider is configured."""

    name = "unavailable"

    def __init__(self, reason: str = "No content provider configured"):
        self.reason = reason

    async def generate_text(self, prompt: str, context: Optional[dict] = None) -> str:
        raise ProviderUnavailable(self.reason)


class UnavailableImageProvider(ImageProvider):
    """Stand-in used when no image provider is configured."""

    name = "unavailable"

    def __init__(self, reason: str = "No image provider configured"):
        self.reason = reason

    async def generate_image(self, prompt: str, dimensions: str) -> str:
        raise ProviderUnavailable(self.reason)


@dataclass
class ProviderSet:
    """Capabilities injected into the orchestrator for one or more runs."""
    content: ContentProvider = field(default_factory=UnavailableContentProvider)
    images: ImageProvider = field(default_factory=UnavailableImageProvider)

    @property
    def content_available(self) -> bool:
        return not isinstance(self.content, UnavailableContentProvider)

    @property
    def images_available(self) -> bool:
        return not isinstance(self.images, UnavailableImageProvider)

    @classmethod
    def from_settings(cls, settings) -> "ProviderSet":
        """Build providers from settings; missing keys yield unavailable providers."""
        from services.anthropic import AnthropicContentProvider
        from services.images import HttpImageProvider

        content: ContentProvider = UnavailableContentProvider()
        images: ImageProvider = UnavailableImageProvider()

        if settings.anthropic_api_key:
            content = AnthropicContentProvider(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
                max_tokens=settings.anthropic_max_tokens,
            )
        else:
            logger.warning("Anthropic API key not set, content stages will use fallbacks")

        if settings.image_api_key:
            images = HttpImageProvider(
                api_key=settings.image_api_key,
                api_url=settings.image_api_url,
                model=settings.image_model,
                timeout_seconds=settings.image_request_timeout_seconds,
            )
        else:
            logger.warning("Image API key not set, images will use placeholders")

        return cls(content=content, images=images)
