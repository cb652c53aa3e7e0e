"""
BaseStage - Abstract base class for all generation stages.

Every stage has two paths:
- generate(): the AI-backed implementation, calling providers through the
  shared retry combinator
- fallback(): a pure, deterministic rule-based implementation

run() tries generate() and, on any provider or parsing failure, returns the
fallback artifact flagged degraded. A stage never raises for provider
trouble; the orchestrator can always move on to the next wave.
"""
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from schemas.errors import ProviderUnavailable
from schemas.requirements import Requirements
from services.anthropic import extract_json
from services.providers import ProviderSet
from services.retry import with_retry

logger = structlog.get_logger()

# Failures that send a stage to its fallback path. ValueError covers JSON
# decoding and pydantic validation; KeyError/TypeError cover malformed
# model output.
FALLBACK_ERRORS = (ProviderUnavailable, ValueError, KeyError, TypeError)


@dataclass
class StageContext:
    """Inputs for one stage execution."""
    requirements: Requirements
    providers: ProviderSet
    artifacts: dict[str, Any] = field(default_factory=dict)
    constraints: dict = field(default_factory=dict)
    iteration: int = 0

    def artifact(self, key: str) -> Any:
        """Upstream artifact by key. Missing dependencies are a wiring bug."""
        if key not in self.artifacts:
            raise LookupError(f"Artifact '{key}' not available to this stage")
        return self.artifacts[key]


@dataclass
class StageResult:
    """Outcome of one stage execution."""
    stage: str
    key: str
    artifact: Any
    degraded: bool = False
    duration_ms: int = 0
    attempts: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "artifact_key": self.key,
            "degraded": self.degraded,
            "duration_ms": self.duration_ms,
            "attempts": self.attempts,
            "error": self.error,
        }


class BaseStage(ABC):
    """
    Abstract base class for generation stages.

    Subclasses set name, produces and depends_on, and implement generate()
    and fallback().
    """

    name: str = ""
    produces: str = ""
    depends_on: tuple[str, ...] = ()

    def __init__(self, retry_attempts: int = 2, retry_backoff: float = 1.0):
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    @abstractmethod
    async def generate(self, ctx: StageContext) -> Any:
        """AI-backed implementation. May raise any FALLBACK_ERRORS."""

    @abstractmethod
    def fallback(self, ctx: StageContext) -> Any:
        """Deterministic rule-based implementation. Must not raise."""

    async def run(self, ctx: StageContext) -> StageResult:
        """Execute the stage, falling back on provider or parsing failure."""
        start_time = time.time()
        self._attempts = 0
        error = None

        try:
            artifact = await self.generate(ctx)
            degraded = bool(getattr(artifact, "degraded", False))
        except FALLBACK_ERRORS as e:
            error = str(e)
            logger.warning(
                "Stage falling back to rule-based path",
                stage=self.name,
                artifact_key=self.produces,
                attempt=self._attempts,
                error=error,
            )
            artifact = self.run_fallback(ctx)
            degraded = True

        if hasattr(artifact, "degraded"):
            artifact.degraded = degraded

        result = StageResult(
            stage=self.name,
            key=self.produces,
            artifact=artifact,
            degraded=degraded,
            duration_ms=int((time.time() - start_time) * 1000),
            attempts=self._attempts,
            error=error,
        )
        logger.info(
            "Stage completed",
            stage=self.name,
            artifact_key=self.produces,
            degraded=degraded,
            duration_ms=result.duration_ms,
        )
        return result

    def run_fallback(self, ctx: StageContext) -> Any:
        """Fallback path flagged degraded (also used on run timeout)."""
        artifact = self.fallback(ctx)
        if hasattr(artifact, "degraded"):
            artifact.degraded = True
        return artifact

    async def ask_json(self, ctx: StageContext, prompt: str, context: Optional[dict] = None) -> Any:
        """Ask the content provider for a JSON object, with retry on provider errors."""
        self._attempts = 0
        if not ctx.providers.content_available:
            raise ProviderUnavailable("No content provider configured", stage=self.name, artifact_key=self.produces)

        async def call() -> str:
            self._attempts += 1
            return await ctx.providers.content.generate_text(prompt, context)

        text = await with_retry(
            call,
            attempts=self.retry_attempts,
            backoff=self.retry_backoff,
            retry_on=(ProviderUnavailable,),
            label=self.name,
        )
        data = extract_json(text)
        if not isinstance(data, dict):
            raise ValueError(f"{self.name}: expected a JSON object")
        return data

    @staticmethod
    def brief(requirements: Requirements) -> dict:
        """Compact requirements summary passed to every prompt."""
        return json.loads(requirements.model_dump_json(exclude_none=True))
