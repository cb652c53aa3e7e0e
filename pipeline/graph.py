"""
Stage graph and wave runner.

The graph is built from each stage's declared `produces` / `depends_on`
artifact keys and validated up front. Waves are maximal groups of stages
whose dependencies are satisfied; the runner executes one wave at a time,
concurrently within the wave, and persists every result before the next
wave starts.
"""
import asyncio
import time
from typing import Any, Iterable, Optional

import structlog

from pipeline.progress import ProgressChannel
from schemas.requirements import Requirements
from services.providers import ProviderSet
from services.storage import ArtifactStore
from stages.base import BaseStage, StageContext, StageResult

logger = structlog.get_logger()


class GraphError(ValueError):
    """Invalid stage graph: duplicate producer, unknown dependency or cycle."""


class StageGraph:
    """Validated dependency graph over generation stages."""

    def __init__(self, stages: Iterable[BaseStage]):
        self.stages: list[BaseStage] = list(stages)
        self.by_key: dict[str, BaseStage] = {}
        self.by_name: dict[str, BaseStage] = {}

        for stage in self.stages:
            if stage.produces in self.by_key:
                raise GraphError(
                    f"Artifact '{stage.produces}' produced by both "
                    f"'{self.by_key[stage.produces].name}' and '{stage.name}'"
                )
            if stage.name in self.by_name:
                raise GraphError(f"Duplicate stage name '{stage.name}'")
            self.by_key[stage.produces] = stage
            self.by_name[stage.name] = stage

        for stage in self.stages:
            for dep in stage.depends_on:
                if dep not in self.by_key:
                    raise GraphError(f"Stage '{stage.name}' depends on unknown artifact '{dep}'")

        # Full ordering doubles as cycle detection.
        self.waves()

    def stage(self, name: str) -> BaseStage:
        return self.by_name[name]

    def dependents(self, name: str) -> list[str]:
        """Stage names that consume the given stage's artifact directly."""
        key = self.by_name[name].produces
        return [s.name for s in self.stages if key in s.depends_on]

    def waves(self, only: Optional[Iterable[str]] = None) -> list[list[BaseStage]]:
        """
        Group stages into waves.

        Args:
            only: Stage names to schedule. Artifacts produced by stages
                outside this subset are treated as already available.

        Returns:
            Waves in execution order, each in declaration order
        """
        if only is None:
            selected = list(self.stages)
        else:
            names = set(only)
            unknown = names - set(self.by_name)
            if unknown:
                raise GraphError(f"Unknown stages: {', '.join(sorted(unknown))}")
            selected = [s for s in self.stages if s.name in names]

        pending_keys = {s.produces for s in selected}
        remaining = list(selected)
        waves = []
        while remaining:
            wave = [s for s in remaining if not any(dep in pending_keys for dep in s.depends_on)]
            if not wave:
                cycle = ", ".join(s.name for s in remaining)
                raise GraphError(f"Dependency cycle between stages: {cycle}")
            waves.append(wave)
            for stage in wave:
                pending_keys.discard(stage.produces)
            remaining = [s for s in remaining if s not in wave]
        return waves


class WaveRunner:
    """
    Executes waves of a StageGraph against a shared artifact dict.

    A run-level deadline (monotonic clock) bounds execution: stages still in
    flight when it passes are cancelled and replaced by their fallback, and
    waves that start after it run the fallback directly.
    """

    def __init__(
        self,
        graph: StageGraph,
        store: ArtifactStore,
        progress: Optional[ProgressChannel] = None,
        deadline: Optional[float] = None,
    ):
        self.graph = graph
        self.store = store
        self.progress = progress
        self.deadline = deadline
        self.log: list[dict] = []

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def deadline_passed(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    async def run(
        self,
        requirements: Requirements,
        providers: ProviderSet,
        artifacts: dict[str, Any],
        only: Optional[Iterable[str]] = None,
        constraints: Optional[dict[str, dict]] = None,
        iteration: int = 0,
        percent_range: tuple[float, float] = (0, 60),
    ) -> dict[str, StageResult]:
        """
        Run the selected stages wave by wave, updating artifacts in place.

        Returns:
            Stage name -> StageResult for every stage that ran
        """
        constraints = constraints or {}
        waves = self.graph.waves(only)
        total = sum(len(w) for w in waves) or 1
        start_pct, end_pct = percent_range
        completed = 0
        results: dict[str, StageResult] = {}

        for wave_index, wave in enumerate(waves):
            logger.info(
                "Starting wave",
                wave=wave_index,
                stages=[s.name for s in wave],
                iteration=iteration,
            )
            contexts = {
                stage.name: StageContext(
                    requirements=requirements,
                    providers=providers,
                    artifacts=dict(artifacts),
                    constraints=dict(constraints.get(stage.name, {})),
                    iteration=iteration,
                )
                for stage in wave
            }

            wave_results = await self._run_wave(wave, contexts)

            for stage in wave:
                result = wave_results[stage.name]
                artifacts[stage.produces] = result.artifact
                self._persist(stage, result)
                results[stage.name] = result
                self.log.append({**result.to_dict(), "iteration": iteration})

                completed += 1
                if self.progress is not None:
                    percent = start_pct + (end_pct - start_pct) * completed / total
                    self.progress.progress(stage.name, percent, f"{stage.name} completed", iteration=iteration)
                    if result.degraded:
                        self.progress.degraded(stage.name, result.error or "built from degraded inputs", artifact_key=stage.produces)

        return results

    async def _run_wave(
        self,
        wave: list[BaseStage],
        contexts: dict[str, StageContext],
    ) -> dict[str, StageResult]:
        if self.deadline_passed():
            logger.warning("Run deadline passed, using fallbacks", stages=[s.name for s in wave])
            return {s.name: self._fallback_result(s, contexts[s.name], "run deadline exceeded") for s in wave}

        tasks = {asyncio.create_task(stage.run(contexts[stage.name])): stage for stage in wave}
        done, pending = await asyncio.wait(list(tasks), timeout=self.remaining())

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results = {}
        for task, stage in tasks.items():
            ctx = contexts[stage.name]
            if task in pending:
                logger.warning(
                    "Stage cancelled at run deadline",
                    stage=stage.name,
                    artifact_key=stage.produces,
                )
                results[stage.name] = self._fallback_result(stage, ctx, "run deadline exceeded")
                continue

            error = task.exception()
            if error is not None:
                logger.error(
                    "Stage raised unexpectedly",
                    stage=stage.name,
                    artifact_key=stage.produces,
                    error=str(error),
                    exc_info=error,
                )
                results[stage.name] = self._fallback_result(stage, ctx, str(error))
                continue
            results[stage.name] = task.result()
        return results

    @staticmethod
    def _fallback_result(stage: BaseStage, ctx: StageContext, reason: str) -> StageResult:
        start_time = time.time()
        artifact = stage.run_fallback(ctx)
        return StageResult(
            stage=stage.name,
            key=stage.produces,
            artifact=artifact,
            degraded=True,
            duration_ms=int((time.time() - start_time) * 1000),
            error=reason,
        )

    def _persist(self, stage: BaseStage, result: StageResult) -> None:
        to_dict = getattr(result.artifact, "to_dict", None)
        value = to_dict() if callable(to_dict) else result.artifact
        self.store.put(stage.produces, value, owner=stage.name)
