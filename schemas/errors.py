"""
Pipeline error taxonomy.

Only ConfigInvalid is fatal to a run. Every other error is recovered where it
happens (stage fallback, static scoring, placeholder image) and surfaces as a
degraded flag instead.
"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Stable error codes exposed in events and API responses."""
    CONFIG_INVALID = "CONFIG_INVALID"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    RENDER_FAILED = "RENDER_FAILED"
    RENDER_TIMEOUT = "RENDER_TIMEOUT"
    ASSET_GENERATION_FAILED = "ASSET_GENERATION_FAILED"
    PIPELINE_FAILED = "PIPELINE_FAILED"


class PipelineError(Exception):
    """Base error carrying the context every log line needs."""

    code: ErrorCode = ErrorCode.PIPELINE_FAILED

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        artifact_key: Optional[str] = None,
        attempt: Optional[int] = None,
    ):
        self.message = message
        self.stage = stage
        self.artifact_key = artifact_key
        self.attempt = attempt
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "stage": self.stage,
            "artifact_key": self.artifact_key,
            "attempt": self.attempt,
        }


class ConfigInvalid(PipelineError):
    """Malformed requirements. Raised before any wave starts."""

    code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class ProviderUnavailable(PipelineError):
    """An AI content or image provider failed or is not configured."""

    code = ErrorCode.PROVIDER_UNAVAILABLE


class RenderError(PipelineError):
    """The headless browser could not render the package."""

    code = ErrorCode.RENDER_FAILED


class RenderTimeout(RenderError):
    """Navigation or capture exceeded the render timeout."""

    code = ErrorCode.RENDER_TIMEOUT


class AssetGenerationFailure(PipelineError):
    """A single image task exhausted its attempts."""

    code = ErrorCode.ASSET_GENERATION_FAILED
