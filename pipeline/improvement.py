"""
Improvement Engine - maps failing quality categories to targeted stage
regeneration.

propose() turns a report into ordered IssueFix actions; apply() merges their
constraints per stage and re-runs only the owning stages as graph waves.
The package itself is re-assembled by the iteration loop afterwards.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import structlog

from pipeline.graph import WaveRunner
from quality.assessor import QualityReport
from quality.verdict import Category
from schemas.artifacts import GeneratedWebsitePackage
from schemas.requirements import Requirements
from services.providers import ProviderSet

logger = structlog.get_logger()


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.HIGH: 1, Severity.MEDIUM: 2}

# Tie-break order between categories of equal severity.
CATEGORY_PRIORITY = (
    Category.CONTENT_QUALITY,
    Category.CONVERSION_TRUST,
    Category.SEO,
    Category.UX_STRUCTURE,
    Category.VISUAL_DESIGN,
    Category.CREATIVITY,
)

# Category -> ordered (stage, constraints, description) strategies.
FIX_STRATEGIES: dict[Category, list[tuple[str, dict, str]]] = {
    Category.CONTENT_QUALITY: [
        ("section_copy", {"no_duplicates": True, "min_body_words": 45}, "Rewrite copy with unique, deeper body text"),
    ],
    Category.CONVERSION_TRUST: [
        ("section_copy", {"strengthen_ctas": True}, "Strengthen calls to action"),
        ("layout", {"add_sections": ["testimonials", "cta"]}, "Add testimonials and call-to-action sections"),
    ],
    Category.SEO: [
        ("seo_metadata", {"expand_keywords": True}, "Regenerate titles, descriptions and keywords"),
    ],
    Category.UX_STRUCTURE: [
        ("layout", {"add_sections": ["contact"]}, "Add required sections and enforce ordering"),
    ],
    Category.VISUAL_DESIGN: [
        ("style_system", {"min_contrast": 7.0, "palette_offset": 1}, "Raise contrast and try an alternate palette"),
    ],
    Category.CREATIVITY: [
        ("style_system", {"bolder": True, "palette_offset": 1}, "Bolder palette and steeper type scale"),
        ("layout", {"variant_offset": 1}, "Rotate section variants"),
    ],
}

# Counters that accumulate across iterations so every regeneration differs.
CUMULATIVE_KEYS = ("palette_offset", "variant_offset", "rotation")

# Stages whose output is invalidated when another stage re-runs.
FOLLOW_UPS = {"layout": ["section_copy"]}


def severity_for(score: float) -> Severity:
    if score <= 4:
        return Severity.CRITICAL
    if score <= 6:
        return Severity.HIGH
    return Severity.MEDIUM


@dataclass
class IssueFix:
    """One targeted regeneration action scoped to a single stage."""
    category: Category
    severity: Severity
    stage: str
    constraints: dict = field(default_factory=dict)
    description: str = ""
    score: float = 0.0
    strategy_index: int = 0

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.severity.rank, CATEGORY_PRIORITY.index(self.category), self.strategy_index)

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "stage": self.stage,
            "constraints": self.constraints,
            "description": self.description,
            "score": self.score,
        }


def merge_constraints(current: dict, update: dict, cumulative: bool = True) -> dict:
    """
    Merge one fix's constraints into a stage's accumulated constraints.

    Counters add up (or keep the maximum when not cumulative), lists union
    in order, numbers keep the maximum and flags stay on once set.
    """
    merged = dict(current)
    for key, value in update.items():
        existing = merged.get(key)
        if cumulative and key in CUMULATIVE_KEYS:
            merged[key] = int(existing or 0) + int(value)
        elif isinstance(value, list):
            merged[key] = list(dict.fromkeys((existing or []) + value))
        elif isinstance(value, bool):
            merged[key] = bool(existing) or value
        elif isinstance(value, (int, float)) and isinstance(existing, (int, float)):
            merged[key] = max(existing, value)
        else:
            merged[key] = value
    return merged


class ImprovementEngine:
    """Proposes and applies targeted fixes between quality iterations."""

    def __init__(self, runner: WaveRunner):
        self.runner = runner
        self.constraints: dict[str, dict] = {}
        self.applied: list[dict] = []

    def propose(
        self,
        report: QualityReport,
        package: Optional[GeneratedWebsitePackage] = None,
        category_target: Optional[float] = None,
    ) -> list[IssueFix]:
        """
        Map failing categories to ordered fixes.

        Args:
            report: Latest quality report
            package: Package the report scored (kept for strategy context)
            category_target: When every category already passes, also treat
                categories below this score as failing (auto-improve mode)
        """
        targets = list(report.failing)
        if not targets and category_target is not None:
            targets = [c for c, s in report.category_scores.items() if s < category_target]

        fixes = []
        for category in targets:
            score = report.score(category)
            severity = severity_for(score)
            for index, (stage, constraints, description) in enumerate(FIX_STRATEGIES[category]):
                fixes.append(IssueFix(
                    category=category,
                    severity=severity,
                    stage=stage,
                    constraints=dict(constraints),
                    description=description,
                    score=score,
                    strategy_index=index,
                ))

        fixes.sort(key=lambda f: f.sort_key)
        logger.info(
            "Improvement fixes proposed",
            failing=[c.value for c in targets],
            fixes=[f"{f.category.value}:{f.stage}" for f in fixes],
        )
        return fixes

    def plan(self, fixes: list[IssueFix], iteration: int) -> list[str]:
        """Merge fix constraints and return the stages to re-run."""
        # Counters advance at most once per stage per iteration.
        batch: dict[str, dict] = {}
        for fix in fixes:
            batch[fix.stage] = merge_constraints(batch.get(fix.stage, {}), fix.constraints, cumulative=False)
        for stage, update in batch.items():
            self.constraints[stage] = merge_constraints(self.constraints.get(stage, {}), update)

        stages: list[str] = []
        for fix in fixes:
            if fix.stage not in stages:
                stages.append(fix.stage)
            for follow_up in FOLLOW_UPS.get(fix.stage, []):
                if follow_up not in stages:
                    stages.append(follow_up)

        for stage in stages:
            stage_constraints = self.constraints.setdefault(stage, {})
            stage_constraints["iteration"] = iteration
        return stages

    async def apply(
        self,
        fixes: list[IssueFix],
        artifacts: dict[str, Any],
        requirements: Requirements,
        providers: ProviderSet,
        iteration: int,
        percent_range: tuple[float, float] = (0, 99),
    ) -> dict[str, Any]:
        """
        Re-run the stages owning the fixes and return the updated artifacts.

        Only the named stages (plus their follow-ups) run; every other
        artifact is reused as-is.
        """
        if not fixes:
            return artifacts

        stages = self.plan(fixes, iteration)
        self.applied.append({
            "iteration": iteration,
            "stages": stages,
            "fixes": [f.to_dict() for f in fixes],
        })
        logger.info("Applying fixes", iteration=iteration, stages=stages)

        await self.runner.run(
            requirements,
            providers,
            artifacts,
            only=stages,
            constraints=self.constraints,
            iteration=iteration,
            percent_range=percent_range,
        )
        return artifacts
