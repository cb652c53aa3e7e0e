"""
Tests for the bounded quality loop.
"""
import pytest

from pipeline.iteration import IterationController, IterationState, LoopState
from quality.assessor import build_report
from quality.scoring import CategoryScore
from quality.verdict import Category
from schemas.artifacts import GeneratedWebsitePackage


def report_with(content: float, others: float = 9.0):
    scores = {c: CategoryScore(c, others) for c in Category}
    scores[Category.CONTENT_QUALITY] = CategoryScore(Category.CONTENT_QUALITY, content)
    return build_report(scores)


def uniform_report(value: float, **kwargs):
    return build_report({c: CategoryScore(c, value) for c in Category}, **kwargs)


class ScriptedLoop:
    """assemble/assess/improve steps driven by a list of reports."""

    def __init__(self, reports, fixes=("fix",)):
        self.reports = list(reports)
        self.fixes = list(fixes)
        self.assembled = []
        self.improved = []

    async def assemble(self, iteration):
        self.assembled.append(iteration)
        return GeneratedWebsitePackage(files={"pages/index.html": f"<p>{iteration}</p>"})

    async def assess(self, package):
        return self.reports[min(len(self.assembled), len(self.reports)) - 1]

    async def improve(self, report, package, iteration):
        self.improved.append(iteration)
        return self.fixes

    def controller(self, **kwargs):
        return IterationController(self.assemble, self.assess, self.improve, **kwargs)


# =====================
# IterationController Tests
# =====================

class TestIterationController:
    """State machine and best-attempt tracking."""

    @pytest.mark.asyncio
    async def test_passing_first_report_finishes(self):
        loop = ScriptedLoop([report_with(9.0)])

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE
        assert state.iteration == 1
        assert loop.improved == []
        assert state.transitions == [LoopState.INIT, LoopState.ASSEMBLE, LoopState.ASSESS, LoopState.DONE]

    @pytest.mark.asyncio
    async def test_always_failing_content_ends_degraded(self):
        loop = ScriptedLoop([report_with(5.0), report_with(4.0), report_with(6.0)])

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE_DEGRADED
        assert state.iteration == 3
        assert loop.assembled == [1, 2, 3]
        assert loop.improved == [2, 3]
        assert state.best_report.score(Category.CONTENT_QUALITY) >= 5.0
        assert state.best_iteration == 3
        assert state.reason == "iteration budget exhausted"

    @pytest.mark.asyncio
    async def test_best_attempt_is_kept(self):
        loop = ScriptedLoop([report_with(6.0), report_with(2.0)])

        state = await loop.controller(max_iterations=2).run()

        assert state.best_iteration == 1
        assert state.best_report.score(Category.CONTENT_QUALITY) == 6.0
        assert state.best_package.files["pages/index.html"] == "<p>1</p>"
        assert [r["kept"] for r in state.records] == [True, False]

    @pytest.mark.asyncio
    async def test_no_fixes_ends_degraded(self):
        loop = ScriptedLoop([report_with(5.0)], fixes=[])

        state = await loop.controller(max_iterations=5).run()

        assert state.state == LoopState.DONE_DEGRADED
        assert state.iteration == 1
        assert state.reason == "no applicable fixes"

    @pytest.mark.asyncio
    async def test_deadline_ends_degraded(self):
        loop = ScriptedLoop([report_with(5.0)])

        state = await loop.controller(max_iterations=5, deadline_passed=lambda: True).run()

        assert state.state == LoopState.DONE_DEGRADED
        assert state.reason == "run deadline exceeded"
        assert loop.improved == []

    @pytest.mark.asyncio
    async def test_target_score_keeps_iterating(self):
        loop = ScriptedLoop([report_with(8.0, others=8.0), report_with(9.8, others=9.8)])

        state = await loop.controller(max_iterations=10, target_score=95.0).run()

        assert state.state == LoopState.DONE
        assert state.iteration == 2

    @pytest.mark.asyncio
    async def test_transition_after_terminal_raises(self):
        loop = ScriptedLoop([report_with(9.0)])
        state = await loop.controller().run()

        with pytest.raises(RuntimeError):
            state.transition(LoopState.ASSEMBLE)


# =====================
# Best Attempt Tests
# =====================

class TestBestAttempt:
    """Best-attempt selection when scores move in both directions."""

    @pytest.mark.asyncio
    async def test_passing_attempt_beats_higher_failing_one(self):
        failing = report_with(7.0, others=10.0)
        passing = uniform_report(7.6)
        assert failing.overall > passing.overall
        loop = ScriptedLoop([failing, passing])

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE
        assert state.best_iteration == 2
        assert state.best_report is passing
        assert state.best_report.passed is True
        assert state.best_package.files["pages/index.html"] == "<p>2</p>"
        assert [r["kept"] for r in state.records] == [True, True]

    @pytest.mark.asyncio
    async def test_score_drop_keeps_earlier_best(self):
        loop = ScriptedLoop([report_with(5.0), report_with(6.5), report_with(3.0)])

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE_DEGRADED
        assert state.best_iteration == 2
        assert state.best_report.score(Category.CONTENT_QUALITY) == 6.5
        assert state.best_package.files["pages/index.html"] == "<p>2</p>"
        assert [r["kept"] for r in state.records] == [True, True, False]

    def test_failing_attempt_never_replaces_passing_one(self):
        state = IterationState()
        passing = uniform_report(7.6)
        package = GeneratedWebsitePackage(files={})

        state.consider(package, passing)
        state.iteration = 2
        kept = state.consider(GeneratedWebsitePackage(files={}), report_with(7.0, others=10.0))

        assert kept is False
        assert state.best_report is passing
        assert state.best_package is package


# =====================
# Degraded Output Tests
# =====================

class TestDegradedOutput:
    """Thresholds met only on fallback output or a static assessment."""

    @pytest.mark.asyncio
    async def test_fully_degraded_package_ends_degraded(self):
        report = uniform_report(9.0, package_degraded=True)
        assert report.passed is False
        loop = ScriptedLoop([report])

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE_DEGRADED
        assert state.reason == "thresholds met on degraded output"
        assert loop.improved == []

    @pytest.mark.asyncio
    async def test_static_assessment_ends_degraded(self):
        loop = ScriptedLoop([uniform_report(9.0, degraded=True)])

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE_DEGRADED
        assert state.reason == "thresholds met on degraded output"

    @pytest.mark.asyncio
    async def test_degraded_failing_report_keeps_improving(self):
        loop = ScriptedLoop([report_with(5.0), report_with(9.0)])
        loop.reports[0].package_degraded = True

        state = await loop.controller(max_iterations=3).run()

        assert state.state == LoopState.DONE
        assert loop.improved == [2]
