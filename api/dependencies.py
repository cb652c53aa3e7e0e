"""
FastAPI dependencies for the generation pipeline.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import Query

from config import settings
from pipeline import WebsiteOrchestrator
from services.providers import ProviderSet


@lru_cache()
def get_providers() -> ProviderSet:
    """Providers built once from settings; unavailable when unconfigured."""
    return ProviderSet.from_settings(settings)


def get_artifacts_dir() -> Path:
    """Root directory holding one sub-directory per project."""
    return Path(settings.artifacts_dir)


def get_orchestrator(
    auto_improve: bool = Query(default=False, description="Iterate towards a 95 overall score"),
    max_iterations: Optional[int] = Query(default=None, ge=1, le=20, description="Assessment budget"),
) -> WebsiteOrchestrator:
    """Fresh orchestrator per request; runs share nothing but the providers."""
    return WebsiteOrchestrator(
        providers=get_providers(),
        artifacts_dir=get_artifacts_dir(),
        auto_improve=auto_improve,
        max_iterations=max_iterations,
    )
