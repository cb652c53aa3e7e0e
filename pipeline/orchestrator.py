"""
Website Orchestrator - runs a full generation for one set of requirements.

1. Validate requirements (the only error that reaches the caller)
2. Run every generation stage as dependency waves
3. Assemble, assess and improve in a bounded loop
4. Persist the best package, its report and run metadata
"""
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from config import settings as default_settings
from pipeline.graph import StageGraph, WaveRunner
from pipeline.improvement import ImprovementEngine, IssueFix
from pipeline.iteration import IterationController, IterationState, LoopState
from pipeline.progress import ProgressChannel
from quality.assessor import QualityAssessor, QualityReport
from quality.verdict import thresholds_with_default
from schemas.artifacts import GeneratedWebsitePackage
from schemas.errors import ConfigInvalid
from schemas.requirements import Requirements, parse_requirements
from services.providers import ProviderSet
from services.storage import PROJECT_ID_PATTERN, ArtifactStore
from stages import default_stages
from stages.base import BaseStage

logger = structlog.get_logger()

ASSEMBLER_STAGE = "code_assembler"
GENERATION_PERCENT = (0, 60)
LOOP_PERCENT = (60, 98)


@dataclass
class GenerationResult:
    """Outcome of one run: the best package and its report."""
    project_id: str
    package: GeneratedWebsitePackage
    report: QualityReport
    state: LoopState
    iterations: int
    output_dir: Path
    degraded: bool = False
    history: list[dict] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "state": self.state.value,
            "iterations": self.iterations,
            "degraded": self.degraded,
            "output_dir": str(self.output_dir),
            "duration_ms": self.duration_ms,
            "package": self.package.to_dict(),
            "report": self.report.to_dict(),
            "history": self.history,
        }


class WebsiteOrchestrator:
    """
    Generates a website from requirements.

    Providers are injected; missing credentials give unavailable providers
    and every stage falls back to its rule-based path. Constructor arguments
    override the corresponding settings.
    """

    def __init__(
        self,
        providers: Optional[ProviderSet] = None,
        artifacts_dir: Optional[Union[str, Path]] = None,
        assessor: Optional[QualityAssessor] = None,
        stages: Optional[list[BaseStage]] = None,
        max_iterations: Optional[int] = None,
        auto_improve: bool = False,
        target_score: Optional[float] = None,
        run_timeout: Optional[float] = None,
        image_concurrency: Optional[int] = None,
        settings=None,
    ):
        self.settings = settings or default_settings
        s = self.settings

        self.providers = providers or ProviderSet.from_settings(s)
        self.artifacts_dir = Path(artifacts_dir or s.artifacts_dir)
        self.thresholds = thresholds_with_default(s.category_threshold)
        self.assessor = assessor or QualityAssessor(
            timeout_ms=s.render_timeout_ms,
            retry_backoff=s.render_retry_backoff_seconds,
            thresholds=self.thresholds,
        )
        self.auto_improve = auto_improve
        if auto_improve:
            self.max_iterations = max_iterations or s.auto_improve_max_iterations
            self.target_score = target_score if target_score is not None else s.auto_improve_target_score
        else:
            self.max_iterations = max_iterations or s.max_iterations
            self.target_score = target_score
        self.run_timeout = run_timeout if run_timeout is not None else s.run_timeout_seconds

        self.graph = StageGraph(stages or default_stages(
            retry_attempts=s.provider_retry_attempts,
            retry_backoff=s.provider_retry_backoff_seconds,
            image_concurrency=image_concurrency or s.image_concurrency,
            image_batch_size=s.image_batch_size,
            image_retry_attempts=s.image_retry_attempts,
            image_retry_backoff=s.image_retry_backoff_seconds,
            image_batch_delay=s.image_batch_delay_seconds,
        ))
        self.generation_stages = [st.name for st in self.graph.stages if st.name != ASSEMBLER_STAGE]

    async def run(
        self,
        requirements: Union[Requirements, dict],
        progress: Optional[ProgressChannel] = None,
        project_id: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate, assess and iteratively improve a website.

        Args:
            requirements: Requirements model or raw dict (camelCase or snake_case)
            progress: Channel receiving progress, degraded and terminal events
            project_id: Output directory name; generated when omitted

        Returns:
            GenerationResult for the best attempt

        Raises:
            ConfigInvalid: requirements or project id failed validation (before any stage runs)
        """
        start_time = time.time()
        progress = progress or ProgressChannel()

        if not isinstance(requirements, Requirements):
            try:
                requirements = parse_requirements(requirements)
            except ConfigInvalid as e:
                logger.warning("Requirements rejected", errors=e.errors)
                progress.error(str(e), errors=e.errors)
                raise

        if project_id is not None and not (isinstance(project_id, str) and PROJECT_ID_PATTERN.match(project_id)):
            e = ConfigInvalid(
                "Invalid project id",
                errors=[{"loc": ["project_id"], "msg": "must be lowercase letters, digits and hyphens"}],
            )
            logger.warning("Project id rejected", project_id=project_id)
            progress.error(str(e), errors=e.errors)
            raise e

        project_id = project_id or f"{requirements.project_slug}-{uuid.uuid4().hex[:8]}"
        log = logger.bind(project_id=project_id)
        log.info(
            "Generation started",
            business_name=requirements.business_name,
            pages=requirements.page_slugs,
            max_iterations=self.max_iterations,
            auto_improve=self.auto_improve,
        )

        store = ArtifactStore(self.artifacts_dir, project_id)
        deadline = time.monotonic() + self.run_timeout if self.run_timeout else None
        runner = WaveRunner(self.graph, store, progress=progress, deadline=deadline)
        engine = ImprovementEngine(runner)
        artifacts: dict[str, Any] = {}
        reports: list[QualityReport] = []

        try:
            progress.progress(None, 0, "Generation started", project_id=project_id)
            await runner.run(
                requirements,
                self.providers,
                artifacts,
                only=self.generation_stages,
                percent_range=GENERATION_PERCENT,
            )

            loop_span = (LOOP_PERCENT[1] - LOOP_PERCENT[0]) / self.max_iterations

            def loop_percent(iteration: int, fraction: float) -> float:
                return LOOP_PERCENT[0] + loop_span * (iteration - 1 + fraction)

            async def assemble(iteration: int) -> GeneratedWebsitePackage:
                await runner.run(
                    requirements,
                    self.providers,
                    artifacts,
                    only=[ASSEMBLER_STAGE],
                    iteration=iteration,
                    percent_range=(loop_percent(iteration, 0), loop_percent(iteration, 0.2)),
                )
                package = artifacts["package"]
                store.write_site(package.files)
                return package

            async def assess(package: GeneratedWebsitePackage) -> QualityReport:
                iteration = len(reports) + 1
                progress.progress("quality_assessment", loop_percent(iteration, 0.25), "Assessing quality")
                report = await self.assessor.assess(package)
                reports.append(report)
                store.put("quality-report", report.to_dict(), owner="quality_assessment")
                progress.progress(
                    "quality_assessment",
                    loop_percent(iteration, 0.6),
                    f"Scored {report.overall} ({report.verdict.value})",
                    overall=report.overall,
                    verdict=report.verdict.value,
                )
                if report.degraded:
                    progress.degraded("quality_assessment", report.error or "static assessment", render_mode=report.render_mode)
                return report

            async def improve(report: QualityReport, package: GeneratedWebsitePackage, iteration: int) -> list[IssueFix]:
                category_target = self.target_score / 10 if self.target_score is not None else None
                fixes = engine.propose(report, package, category_target=category_target)
                if fixes:
                    progress.progress(
                        "improvement",
                        loop_percent(iteration - 1, 0.7),
                        f"Applying {len(fixes)} fixes",
                        categories=sorted({f.category.value for f in fixes}),
                    )
                    await engine.apply(
                        fixes,
                        artifacts,
                        requirements,
                        self.providers,
                        iteration=iteration,
                        percent_range=(loop_percent(iteration - 1, 0.7), loop_percent(iteration - 1, 0.95)),
                    )
                return fixes

            controller = IterationController(
                assemble,
                assess,
                improve,
                max_iterations=self.max_iterations,
                target_score=self.target_score,
                deadline_passed=runner.deadline_passed,
            )
            state = await controller.run()

            result = self._finish(requirements, project_id, store, state, runner, engine, start_time)
        except Exception as e:
            log.error("Generation failed", error=str(e), exc_info=True)
            progress.error(str(e), project_id=project_id)
            raise

        if result.degraded:
            progress.warning(f"Finished in {state.state.value}: {state.reason}", stage="iteration")
        progress.complete(package=result.package.to_dict(), report=result.report.to_dict())
        log.info(
            "Generation completed",
            state=state.state.value,
            iterations=state.iteration,
            overall=result.report.overall,
            verdict=result.report.verdict.value,
            degraded=result.degraded,
            duration_ms=result.duration_ms,
        )
        return result

    def _finish(
        self,
        requirements: Requirements,
        project_id: str,
        store: ArtifactStore,
        state: IterationState,
        runner: WaveRunner,
        engine: ImprovementEngine,
        start_time: float,
    ) -> GenerationResult:
        package = state.best_package
        report = state.best_report

        # The latest files on disk must be the returned package.
        store.write_site(package.files)
        store.put("quality-report", report.to_dict(), owner="quality_assessment")

        degraded = state.degraded or package.degraded or report.degraded
        duration_ms = int((time.time() - start_time) * 1000)
        store.put("metadata", {
            "project_id": project_id,
            "requirements": requirements.to_dict(),
            "state": state.state.value,
            "reason": state.reason,
            "degraded": degraded,
            "iterations": state.to_dict(),
            "best": {
                "iteration": state.best_iteration,
                "overall": report.overall,
                "verdict": report.verdict.value,
            },
            "package": package.metadata,
            "stage_runs": runner.log,
            "improvements": engine.applied,
            "duration_ms": duration_ms,
        }, owner="orchestrator")

        return GenerationResult(
            project_id=project_id,
            package=package,
            report=report,
            state=state.state,
            iterations=state.iteration,
            output_dir=store.root,
            degraded=degraded,
            history=state.records,
            duration_ms=duration_ms,
        )
