"""
End-to-end tests for the website orchestrator.

Providers are fakes and the assessor scores files statically, so a whole run
completes in-process without network or browser.
"""
import json

import pytest

from pipeline import ProgressChannel
from pipeline.iteration import LoopState
from quality.assessor import build_report
from quality.scoring import CategoryScore
from quality.verdict import Category, Verdict
from schemas.errors import ConfigInvalid


# =====================
# Full Run Tests
# =====================

class TestGeneration:
    """A complete run with working providers."""

    @pytest.mark.asyncio
    async def test_generates_site(self, make_orchestrator, requirements_data):
        result = await make_orchestrator().run(requirements_data, project_id="acme-roasters-test")

        assert sorted(result.package.html_files) == [
            "pages/about.html",
            "pages/contact.html",
            "pages/index.html",
        ]
        assert "styles.css" in result.package.files
        assert set(result.report.scores) == set(Category)
        assert all(0.0 <= s.score <= 10.0 for s in result.report.scores.values())
        assert 1 <= result.iterations <= 3
        assert result.state in (LoopState.DONE, LoopState.DONE_DEGRADED)
        assert len(result.history) == result.iterations

    @pytest.mark.asyncio
    async def test_outputs_on_disk(self, make_orchestrator, requirements_data, tmp_path):
        result = await make_orchestrator().run(requirements_data, project_id="acme-roasters-test")
        root = result.output_dir

        assert root == tmp_path / "output" / "acme-roasters-test"
        for name in ("design-strategy.json", "layout.json", "style.json", "copy.json",
                     "image-plan.json", "seo-metadata.json", "quality-report.json", "metadata.json"):
            assert (root / name).exists(), name

        # Files on disk are the returned (best) package.
        for rel_path, content in result.package.files.items():
            assert (root / rel_path).read_text(encoding="utf-8") == content

        metadata = json.loads((root / "metadata.json").read_text())
        assert metadata["project_id"] == "acme-roasters-test"
        assert metadata["best"]["overall"] == result.report.overall
        assert metadata["state"] == result.state.value
        assert metadata["requirements"]["businessName"] == "Acme Roasters"

        report = json.loads((root / "quality-report.json").read_text())
        assert report["overall"] == result.report.overall

    @pytest.mark.asyncio
    async def test_generated_project_id(self, make_orchestrator, requirements_data):
        result = await make_orchestrator().run(requirements_data)

        assert result.project_id.startswith("acme-roasters-")
        assert result.output_dir.name == result.project_id

    @pytest.mark.asyncio
    async def test_best_attempt_returned(self, make_orchestrator, requirements_data):
        result = await make_orchestrator().run(requirements_data)

        best = result.history[-1] if result.state == LoopState.DONE else max(result.history, key=lambda r: r["overall"])
        assert result.report.overall == best["overall"]


# =====================
# Progress Tests
# =====================

class TestProgressEvents:
    """Event stream emitted during a run."""

    @pytest.mark.asyncio
    async def test_percent_monotonic_and_complete_last(self, make_orchestrator, requirements_data):
        channel = ProgressChannel()

        await make_orchestrator().run(requirements_data, progress=channel)

        events = channel.events
        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert events[-1].type == "complete"
        assert events[-1].percent == 100
        assert all(e.percent < 100 for e in events[:-1])
        assert events[-1].report["overall"] >= 0
        assert channel.closed

    @pytest.mark.asyncio
    async def test_stage_events(self, make_orchestrator, requirements_data):
        channel = ProgressChannel()

        await make_orchestrator().run(requirements_data, progress=channel)

        stages = {e.stage for e in channel.events if e.type == "progress"}
        assert {"design_strategy", "layout", "code_assembler", "quality_assessment"} <= stages


# =====================
# Degraded Run Tests
# =====================

class TestDegradedRun:
    """Runs where every provider fails."""

    @pytest.mark.asyncio
    async def test_completes_with_fallbacks(self, make_orchestrator, failing_providers, requirements_data):
        channel = ProgressChannel()

        result = await make_orchestrator(providers=failing_providers).run(requirements_data, progress=channel)

        assert len(result.package.html_files) == 3
        assert result.degraded is True
        assert result.report.verdict not in (Verdict.EXCELLENT, Verdict.WORLD_CLASS)
        assert result.state == LoopState.DONE_DEGRADED
        stages = result.package.metadata["stages"]
        assert stages and all(info["degraded"] for info in stages.values())

        degraded_events = [e for e in channel.events if e.type == "degraded"]
        assert degraded_events
        assert channel.events[-1].type == "complete"

    @pytest.mark.asyncio
    async def test_no_providers_configured(self, make_orchestrator, requirements_data):
        from services.providers import ProviderSet

        result = await make_orchestrator(providers=ProviderSet()).run(requirements_data)

        assert result.package.degraded is True
        assert result.report.verdict not in (Verdict.EXCELLENT, Verdict.WORLD_CLASS)
        assert result.state == LoopState.DONE_DEGRADED


# =====================
# Improvement Loop Tests
# =====================

class ScriptedAssessor:
    """Scores packages statically, then replaces the scores with scripted ones."""

    def __init__(self, inner, scripted):
        self.inner = inner
        self.scripted = list(scripted)
        self.calls = 0

    async def assess(self, package):
        report = await self.inner.assess(package)
        values = self.scripted[min(self.calls, len(self.scripted) - 1)]
        self.calls += 1
        scores = {c: CategoryScore(c, values.get(c, 9.0)) for c in Category}
        return build_report(scores, render_mode=report.render_mode, pages=report.pages)


class TestImprovementLoop:
    """Failing categories re-run only their owning stages, then re-assemble."""

    @pytest.mark.asyncio
    async def test_failing_content_and_conversion(self, make_orchestrator, static_assessor, requirements_data):
        assessor = ScriptedAssessor(static_assessor, [
            {Category.CONTENT_QUALITY: 5.0, Category.CONVERSION_TRUST: 6.0},
            {},
        ])

        result = await make_orchestrator(assessor=assessor).run(requirements_data, project_id="acme-improve")

        assert result.state == LoopState.DONE
        assert result.iterations == 2
        assert assessor.calls == 2
        assert [r["kept"] for r in result.history] == [True, True]
        assert result.report.passed is True

        metadata = json.loads((result.output_dir / "metadata.json").read_text())
        rerun = {run["stage"] for run in metadata["stage_runs"] if run["iteration"] == 2}
        assert rerun == {"layout", "section_copy", "code_assembler"}
        first_pass = {run["stage"] for run in metadata["stage_runs"] if run["iteration"] == 0}
        assert {"design_strategy", "style_system", "seo_metadata"} <= first_pass

        assert len(metadata["improvements"]) == 1
        improvement = metadata["improvements"][0]
        assert improvement["iteration"] == 2
        assert set(improvement["stages"]) == {"section_copy", "layout"}
        assert {f["category"] for f in improvement["fixes"]} == {"content_quality", "conversion_trust"}
        assert metadata["best"]["iteration"] == 2


# =====================
# Validation Tests
# =====================

class TestInvalidRequirements:
    """Malformed input is rejected before any stage runs."""

    @pytest.mark.asyncio
    async def test_config_invalid(self, make_orchestrator, tmp_path):
        channel = ProgressChannel()

        with pytest.raises(ConfigInvalid) as exc_info:
            await make_orchestrator().run({"businessName": "", "industry": "Coffee"}, progress=channel)

        assert exc_info.value.errors
        assert [e.type for e in channel.events] == ["error"]
        assert channel.closed
        assert not (tmp_path / "output").exists()

    @pytest.mark.asyncio
    async def test_non_object(self, make_orchestrator):
        with pytest.raises(ConfigInvalid):
            await make_orchestrator().run(["not", "an", "object"])

    @pytest.mark.asyncio
    async def test_project_id_escaping_output_dir(self, make_orchestrator, requirements_data, tmp_path):
        channel = ProgressChannel()

        with pytest.raises(ConfigInvalid) as exc_info:
            await make_orchestrator().run(requirements_data, progress=channel, project_id="../evil")

        assert exc_info.value.errors[0]["loc"] == ["project_id"]
        assert [e.type for e in channel.events] == ["error"]
        assert not (tmp_path / "evil").exists()


# =====================
# Mode Tests
# =====================

class TestModes:
    """Iteration budget and auto-improve settings."""

    def test_default_budget(self, make_orchestrator):
        orchestrator = make_orchestrator(max_iterations=None)

        assert orchestrator.max_iterations == 3
        assert orchestrator.target_score is None

    def test_auto_improve_defaults(self, make_orchestrator):
        orchestrator = make_orchestrator(max_iterations=None, auto_improve=True)

        assert orchestrator.max_iterations == 10
        assert orchestrator.target_score == 95.0

    @pytest.mark.asyncio
    async def test_auto_improve_respects_budget(self, make_orchestrator, requirements_data):
        result = await make_orchestrator(auto_improve=True, max_iterations=2).run(requirements_data)

        assert result.iterations <= 2
        if result.report.overall < 95.0:
            assert result.state == LoopState.DONE_DEGRADED
