"""
Tests for the stage graph and wave runner.
"""
import asyncio
import time

import pytest

from pipeline.graph import GraphError, StageGraph, WaveRunner
from pipeline.progress import ProgressChannel
from services.storage import ArtifactStore
from stages import default_stages
from stages.base import BaseStage


class DummyStage(BaseStage):
    """Minimal stage producing a dict."""

    def __init__(self, name, produces, depends_on=(), delay=0.0, explode=False):
        super().__init__(retry_attempts=1, retry_backoff=0)
        self.name = name
        self.produces = produces
        self.depends_on = tuple(depends_on)
        self.delay = delay
        self.explode = explode

    async def generate(self, ctx):
        await asyncio.sleep(self.delay)
        if self.explode:
            raise RuntimeError("unexpected bug")
        return {"from": self.name, "inputs": sorted(ctx.artifacts)}

    def fallback(self, ctx):
        return {"from": self.name, "fallback": True}


def names(waves):
    return [{s.name for s in wave} for wave in waves]


# =====================
# StageGraph Tests
# =====================

class TestStageGraph:
    """Wave planning and validation."""

    def test_default_generation_waves(self):
        graph = StageGraph(default_stages())

        assert names(graph.waves()) == [
            {"design_strategy"},
            {"layout", "style_system"},
            {"section_copy", "image_plan"},
            {"seo_metadata", "image_generator"},
            {"code_assembler"},
        ]

    def test_subset_treats_other_artifacts_as_available(self):
        graph = StageGraph(default_stages())

        assert names(graph.waves(only=["section_copy", "layout"])) == [{"layout"}, {"section_copy"}]
        assert names(graph.waves(only=["code_assembler"])) == [{"code_assembler"}]

    def test_unknown_stage_in_subset(self):
        graph = StageGraph(default_stages())

        with pytest.raises(GraphError):
            graph.waves(only=["nope"])

    def test_duplicate_producer_rejected(self):
        with pytest.raises(GraphError):
            StageGraph([DummyStage("a", "x"), DummyStage("b", "x")])

    def test_unknown_dependency_rejected(self):
        with pytest.raises(GraphError):
            StageGraph([DummyStage("a", "x", depends_on=["missing"])])

    def test_cycle_rejected(self):
        with pytest.raises(GraphError, match="cycle"):
            StageGraph([DummyStage("a", "x", depends_on=["y"]), DummyStage("b", "y", depends_on=["x"])])

    def test_dependents(self):
        graph = StageGraph(default_stages())

        assert set(graph.dependents("layout")) == {"section_copy", "image_plan", "seo_metadata", "code_assembler"}


# =====================
# WaveRunner Tests
# =====================

class TestWaveRunner:
    """Execution, persistence and deadline handling."""

    @pytest.fixture
    def store(self, tmp_path):
        return ArtifactStore(tmp_path, "project")

    @pytest.mark.asyncio
    async def test_waves_see_upstream_artifacts(self, store, requirements, fake_providers):
        graph = StageGraph([
            DummyStage("first", "a"),
            DummyStage("second", "b", depends_on=["a"]),
            DummyStage("third", "c", depends_on=["a", "b"]),
        ])
        runner = WaveRunner(graph, store)
        artifacts = {}

        results = await runner.run(requirements, fake_providers, artifacts)

        assert set(results) == {"first", "second", "third"}
        assert artifacts["c"]["inputs"] == ["a", "b"]
        assert store.version("a") == 1
        assert len(runner.log) == 3

    @pytest.mark.asyncio
    async def test_unexpected_exception_uses_fallback(self, store, requirements, fake_providers):
        runner = WaveRunner(StageGraph([DummyStage("bad", "a", explode=True)]), store)
        artifacts = {}

        results = await runner.run(requirements, fake_providers, artifacts)

        assert results["bad"].degraded is True
        assert "unexpected bug" in results["bad"].error
        assert artifacts["a"] == {"from": "bad", "fallback": True}

    @pytest.mark.asyncio
    async def test_deadline_cancels_in_flight_stages(self, store, requirements, fake_providers):
        graph = StageGraph([DummyStage("fast", "a"), DummyStage("slow", "b", delay=5)])
        runner = WaveRunner(graph, store, deadline=time.monotonic() + 0.2)
        artifacts = {}

        started = time.monotonic()
        results = await runner.run(requirements, fake_providers, artifacts)

        assert time.monotonic() - started < 2
        assert results["fast"].degraded is False
        assert results["slow"].degraded is True
        assert results["slow"].error == "run deadline exceeded"

    @pytest.mark.asyncio
    async def test_waves_after_deadline_run_fallback(self, store, requirements, fake_providers):
        graph = StageGraph([DummyStage("first", "a"), DummyStage("second", "b", depends_on=["a"])])
        runner = WaveRunner(graph, store, deadline=time.monotonic() - 1)
        artifacts = {}

        results = await runner.run(requirements, fake_providers, artifacts)

        assert all(r.degraded for r in results.values())
        assert artifacts["b"]["fallback"] is True

    @pytest.mark.asyncio
    async def test_progress_events(self, store, requirements, fake_providers):
        channel = ProgressChannel()
        graph = StageGraph([DummyStage("first", "a"), DummyStage("bad", "b", explode=True)])
        runner = WaveRunner(graph, store, progress=channel)

        await runner.run(requirements, fake_providers, {}, percent_range=(0, 50))

        types = [e.type for e in channel.events]
        assert types.count("progress") == 2
        assert types.count("degraded") == 1
        assert channel.percent == 50
