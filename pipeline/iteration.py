"""
Iteration Controller - the bounded assemble / assess / improve loop.

    INIT -> ASSEMBLE -> ASSESS -> DONE
                          |
                          +-> IMPROVE -> ASSEMBLE ...
                          +-> DONE_DEGRADED (degraded output, budget,
                                             deadline or no fixes left)

The best package seen so far is what the run returns, whichever terminal
state is reached. Passing attempts rank above failing ones.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

import structlog

from quality.assessor import QualityReport
from schemas.artifacts import GeneratedWebsitePackage

logger = structlog.get_logger()


class LoopState(str, Enum):
    INIT = "init"
    ASSEMBLE = "assemble"
    ASSESS = "assess"
    IMPROVE = "improve"
    DONE = "done"
    DONE_DEGRADED = "done_degraded"

    @property
    def is_terminal(self) -> bool:
        return self in (LoopState.DONE, LoopState.DONE_DEGRADED)


def _rank(report: QualityReport) -> tuple[bool, float]:
    return (report.passed, report.overall)


@dataclass
class IterationState:
    """Progress of the loop: reports so far and the best attempt."""
    iteration: int = 0
    state: LoopState = LoopState.INIT
    transitions: list[LoopState] = field(default_factory=lambda: [LoopState.INIT])
    history: list[QualityReport] = field(default_factory=list)
    records: list[dict] = field(default_factory=list)
    best_package: Optional[GeneratedWebsitePackage] = None
    best_report: Optional[QualityReport] = None
    best_iteration: int = 0
    reason: Optional[str] = None

    def transition(self, state: LoopState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Loop already finished in state {self.state.value}")
        self.state = state
        self.transitions.append(state)

    def consider(self, package: GeneratedWebsitePackage, report: QualityReport) -> bool:
        """
        Keep the attempt if it ranks at least as well as the best so far.

        A passing attempt outranks any failing one; within the same outcome
        the higher overall score wins and ties go to the later attempt.
        """
        if self.best_report is None or _rank(report) >= _rank(self.best_report):
            self.best_package = package
            self.best_report = report
            self.best_iteration = self.iteration
            return True
        return False

    @property
    def degraded(self) -> bool:
        return self.state == LoopState.DONE_DEGRADED

    def to_dict(self) -> dict:
        return {
            "iterations": self.iteration,
            "state": self.state.value,
            "reason": self.reason,
            "best_iteration": self.best_iteration,
            "transitions": [s.value for s in self.transitions],
            "history": self.records,
        }


class IterationController:
    """
    Runs the quality loop over injected assemble/assess/improve steps.

    Args:
        assemble: iteration -> package
        assess: package -> report
        improve: (report, package, iteration) -> fixes applied (empty when
            nothing more can be done)
        max_iterations: Assessment budget
        target_score: Overall score that must also be reached to finish
            cleanly (auto-improve mode); None means thresholds alone decide
        deadline_passed: Run-level deadline check
    """

    def __init__(
        self,
        assemble: Callable[[int], Awaitable[GeneratedWebsitePackage]],
        assess: Callable[[GeneratedWebsitePackage], Awaitable[QualityReport]],
        improve: Callable[[QualityReport, GeneratedWebsitePackage, int], Awaitable[list]],
        max_iterations: int = 3,
        target_score: Optional[float] = None,
        deadline_passed: Callable[[], bool] = lambda: False,
    ):
        self.assemble = assemble
        self.assess = assess
        self.improve = improve
        self.max_iterations = max(1, max_iterations)
        self.target_score = target_score
        self.deadline_passed = deadline_passed

    def meets_target(self, report: QualityReport) -> bool:
        return self.target_score is None or report.overall >= self.target_score

    def satisfied(self, report: QualityReport) -> bool:
        return report.passed and self.meets_target(report)

    def passed_degraded(self, report: QualityReport) -> bool:
        """Thresholds met, but only on fallback output or a static assessment."""
        degraded = report.degraded or report.package_degraded
        return degraded and not report.failing and self.meets_target(report)

    async def run(self) -> IterationState:
        state = IterationState()

        while True:
            state.iteration += 1

            state.transition(LoopState.ASSEMBLE)
            package = await self.assemble(state.iteration)

            state.transition(LoopState.ASSESS)
            report = await self.assess(package)
            state.history.append(report)
            kept = state.consider(package, report)
            state.records.append({
                "iteration": state.iteration,
                "overall": report.overall,
                "verdict": report.verdict.value,
                "scores": {c.value: s for c, s in report.category_scores.items()},
                "failing": [c.value for c in report.failing],
                "degraded": report.degraded,
                "kept": kept,
            })

            logger.info(
                "Iteration assessed",
                iteration=state.iteration,
                overall=report.overall,
                verdict=report.verdict.value,
                best_overall=state.best_report.overall,
            )

            if self.satisfied(report):
                state.reason = "quality targets met"
                state.transition(LoopState.DONE)
                break
            if self.passed_degraded(report):
                state.reason = "thresholds met on degraded output"
                state.transition(LoopState.DONE_DEGRADED)
                break
            if state.iteration >= self.max_iterations:
                state.reason = "iteration budget exhausted"
                state.transition(LoopState.DONE_DEGRADED)
                break
            if self.deadline_passed():
                state.reason = "run deadline exceeded"
                state.transition(LoopState.DONE_DEGRADED)
                break

            state.transition(LoopState.IMPROVE)
            fixes = await self.improve(report, package, state.iteration + 1)
            state.records[-1]["fixes"] = [f.to_dict() if hasattr(f, "to_dict") else f for f in fixes]
            if not fixes:
                state.reason = "no applicable fixes"
                state.transition(LoopState.DONE_DEGRADED)
                break

        logger.info(
            "Quality loop finished",
            state=state.state.value,
            reason=state.reason,
            iterations=state.iteration,
            best_iteration=state.best_iteration,
            best_overall=state.best_report.overall,
        )
        return state
