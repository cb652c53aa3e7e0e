from .retry import with_retry
from .providers import (
    ContentProvider,
    ImageProvider,
    ProviderSet,
    UnavailableContentProvider,
    UnavailableImageProvider,
)
from .anthropic import AnthropicContentProvider, extract_json
from .images import HttpImageProvider
from .storage import ArtifactStore, ArtifactOwnershipError
from .browser import PlaywrightRenderer

__all__ = [
    "with_retry",
    "ContentProvider",
    "ImageProvider",
    "ProviderSet",
    "UnavailableContentProvider",
    "UnavailableImageProvider",
    "AnthropicContentProvider",
    "extract_json",
    "HttpImageProvider",
    "ArtifactStore",
    "ArtifactOwnershipError",
    "PlaywrightRenderer",
]
