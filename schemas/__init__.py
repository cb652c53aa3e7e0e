from .errors import (
    ErrorCode,
    PipelineError,
    ConfigInvalid,
    ProviderUnavailable,
    RenderError,
    RenderTimeout,
    AssetGenerationFailure,
)
from .events import ProgressEvent, HealthResponse
from .requirements import Requirements, parse_requirements, page_slug, slugify

__all__ = [
    "ErrorCode",
    "PipelineError",
    "ConfigInvalid",
    "ProviderUnavailable",
    "RenderError",
    "RenderTimeout",
    "AssetGenerationFailure",
    "ProgressEvent",
    "HealthResponse",
    "Requirements",
    "parse_requirements",
    "page_slug",
    "slugify",
]
