"""
Quality Assessor - renders a generated package and scores it.

Renders every page at mobile, tablet and desktop widths, scores six
categories from the captured signals, and derives the weighted overall score
and verdict. A render timeout is retried once; if rendering still fails the
static HTML/CSS is scored instead and the report is marked degraded.
"""
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import structlog

from quality.scoring import CategoryScore, score_site
from quality.signals import PageSignals, StaticRenderer
from quality.verdict import (
    CATEGORY_THRESHOLDS,
    Category,
    Verdict,
    determine_verdict,
    failing_categories,
    overall_score,
)
from schemas.artifacts import GeneratedWebsitePackage
from schemas.errors import RenderError, RenderTimeout
from services.retry import with_retry

logger = structlog.get_logger()

DEFAULT_VIEWPORTS = (390, 768, 1440)


@dataclass
class QualityReport:
    """Scores and verdict for one assembled package."""
    scores: dict[Category, CategoryScore]
    overall: float
    verdict: Verdict
    thresholds: dict[Category, float] = field(default_factory=lambda: dict(CATEGORY_THRESHOLDS))
    degraded: bool = False
    package_degraded: bool = False
    render_mode: str = "browser"  # browser | static
    viewports: list[int] = field(default_factory=list)
    pages: list[str] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: int = 0
    assessed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    captures: list[PageSignals] = field(default_factory=list, repr=False)

    @property
    def category_scores(self) -> dict[Category, float]:
        return {category: s.score for category, s in self.scores.items()}

    @property
    def failing(self) -> list[Category]:
        return failing_categories(self.category_scores, self.thresholds)

    @property
    def passed(self) -> bool:
        """
        Every category meets its threshold on a clean assessment of a
        package that is not entirely fallback output.
        """
        return not self.failing and not self.degraded and not self.package_degraded

    def score(self, category: Category) -> float:
        return self.scores[category].score

    def to_dict(self) -> dict:
        return {
            "scores": {c.value: s.to_dict() for c, s in self.scores.items()},
            "overall": self.overall,
            "verdict": self.verdict.value,
            "thresholds": {c.value: t for c, t in self.thresholds.items()},
            "failing": [c.value for c in self.failing],
            "passed": self.passed,
            "degraded": self.degraded,
            "package_degraded": self.package_degraded,
            "render_mode": self.render_mode,
            "viewports": self.viewports,
            "pages": self.pages,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "assessed_at": self.assessed_at,
            "screenshots": sum(1 for c in self.captures if c.screenshot_base64),
        }


def build_report(
    scores: dict[Category, CategoryScore],
    thresholds: Optional[dict[Category, float]] = None,
    degraded: bool = False,
    package_degraded: bool = False,
    **kwargs: Any,
) -> QualityReport:
    """Assemble a report from category scores, applying the verdict gate."""
    thresholds = thresholds or dict(CATEGORY_THRESHOLDS)
    values = {category: s.score for category, s in scores.items()}
    overall = overall_score(values)
    verdict = determine_verdict(
        values,
        overall=overall,
        thresholds=thresholds,
        degraded=degraded or package_degraded,
    )
    return QualityReport(
        scores=scores,
        overall=overall,
        verdict=verdict,
        thresholds=thresholds,
        degraded=degraded,
        package_degraded=package_degraded,
        **kwargs,
    )


def is_fully_degraded(package: GeneratedWebsitePackage) -> bool:
    """True when every generation stage behind the package used its fallback."""
    stages = package.metadata.get("stages", {})
    return bool(stages) and all(info.get("degraded") for info in stages.values())


class QualityAssessor:
    """
    Scores a GeneratedWebsitePackage.

    The renderer factory returns an async context manager exposing
    render(site_dir, pages, viewports); a fresh renderer is opened per
    attempt so the browser is always released before a retry.
    """

    def __init__(
        self,
        renderer_factory: Optional[Callable[[], Any]] = None,
        viewports: tuple[int, ...] = DEFAULT_VIEWPORTS,
        timeout_ms: int = 30000,
        retry_backoff: float = 2.0,
        thresholds: Optional[dict[Category, float]] = None,
    ):
        if renderer_factory is None:
            from services.browser import PlaywrightRenderer

            def renderer_factory():
                return PlaywrightRenderer(timeout_ms=timeout_ms)

        self.renderer_factory = renderer_factory
        self.viewports = tuple(viewports)
        self.retry_backoff = retry_backoff
        self.thresholds = thresholds or dict(CATEGORY_THRESHOLDS)

    async def assess(self, package: GeneratedWebsitePackage) -> QualityReport:
        """
        Render and score a package.

        Never raises for render failures: they yield a degraded report built
        from static analysis.
        """
        start_time = time.time()
        pages = sorted(package.html_files)
        render_mode = "browser"
        degraded = False
        error = None

        with tempfile.TemporaryDirectory(prefix="site-assess-") as tmp:
            site_dir = Path(tmp)
            for rel_path, content in package.files.items():
                target = site_dir / rel_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")

            try:
                captures = await with_retry(
                    lambda: self._render(site_dir, pages),
                    attempts=2,
                    backoff=self.retry_backoff,
                    retry_on=(RenderTimeout,),
                    label="render",
                )
            except RenderError as e:
                logger.warning(
                    "Rendering failed, scoring static files",
                    stage="quality_assessment",
                    artifact_key="quality-report",
                    error=str(e),
                )
                captures = await StaticRenderer().render(site_dir, pages, self.viewports)
                render_mode = "static"
                degraded = True
                error = str(e)

        scores = score_site(captures, business_name=package.metadata.get("business_name"))
        report = build_report(
            scores,
            thresholds=self.thresholds,
            degraded=degraded,
            package_degraded=is_fully_degraded(package),
            render_mode=render_mode,
            viewports=list(self.viewports),
            pages=pages,
            error=error,
            duration_ms=int((time.time() - start_time) * 1000),
            captures=captures,
        )

        logger.info(
            "Quality assessment completed",
            overall=report.overall,
            verdict=report.verdict.value,
            failing=[c.value for c in report.failing],
            render_mode=render_mode,
            duration_ms=report.duration_ms,
        )
        return report

    async def _render(self, site_dir: Path, pages: list[str]) -> list[PageSignals]:
        async with self.renderer_factory() as renderer:
            return await renderer.render(site_dir, pages, self.viewports)
