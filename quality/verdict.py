"""
Quality categories, weights, thresholds and the verdict gate.

Gate rules:
- Excellent needs overall >= 75 and every gated category (Content, UX,
  Conversion/Trust, SEO) at or above its threshold.
- Visual Design and Creativity must also meet their thresholds, with one
  exception: one of them (never both) may sit up to TOLERANCE_BAND below
  it when the overall score clears the tier cutoff by at least
  TOLERANCE_MARGIN. Gated categories get no tolerance at all.
- WorldClass applies the same rule with the higher tier minimums.
- Below Excellent: overall < 40 Poor, < 60 OK, otherwise Good.
- A degraded assessment or a fully degraded package is capped at Good.
"""
from enum import Enum
from typing import Mapping, Optional


class Category(str, Enum):
    """The six independent quality dimensions."""
    VISUAL_DESIGN = "visual_design"
    UX_STRUCTURE = "ux_structure"
    CONTENT_QUALITY = "content_quality"
    CONVERSION_TRUST = "conversion_trust"
    SEO = "seo"
    CREATIVITY = "creativity"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


class Verdict(str, Enum):
    POOR = "Poor"
    OK = "OK"
    GOOD = "Good"
    EXCELLENT = "Excellent"
    WORLD_CLASS = "WorldClass"


CATEGORY_LABELS = {
    Category.VISUAL_DESIGN: "Visual Design",
    Category.UX_STRUCTURE: "UX/Structure",
    Category.CONTENT_QUALITY: "Content Quality",
    Category.CONVERSION_TRUST: "Conversion/Trust",
    Category.SEO: "SEO",
    Category.CREATIVITY: "Creativity",
}

# Weights sum to 100 so the weighted sum of 0-10 scores divided by 10 is 0-100.
CATEGORY_WEIGHTS = {
    Category.VISUAL_DESIGN: 20,
    Category.UX_STRUCTURE: 15,
    Category.CONTENT_QUALITY: 20,
    Category.CONVERSION_TRUST: 15,
    Category.SEO: 15,
    Category.CREATIVITY: 15,
}

DEFAULT_THRESHOLD = 7.5
CATEGORY_THRESHOLDS = {category: DEFAULT_THRESHOLD for category in Category}

GATED_CATEGORIES = (
    Category.CONTENT_QUALITY,
    Category.UX_STRUCTURE,
    Category.CONVERSION_TRUST,
    Category.SEO,
)
TOLERANT_CATEGORIES = (Category.VISUAL_DESIGN, Category.CREATIVITY)

EXCELLENT_CUTOFF = 75.0
WORLD_CLASS_CUTOFF = 85.0
WORLD_CLASS_CATEGORY_MIN = 8.5
TOLERANCE_BAND = 0.5
TOLERANCE_MARGIN = 5.0

GOOD_CUTOFF = 60.0
OK_CUTOFF = 40.0


def thresholds_with_default(threshold: float) -> dict[Category, float]:
    return {category: threshold for category in Category}


def overall_score(scores: Mapping[Category, float]) -> float:
    """Weighted overall score, 0-100, rounded to one decimal."""
    total = sum(scores.get(category, 0.0) * weight for category, weight in CATEGORY_WEIGHTS.items())
    return round(total / 10, 1)


def _clears_tier(
    scores: Mapping[Category, float],
    overall: float,
    cutoff: float,
    minimums: Mapping[Category, float],
) -> bool:
    if overall < cutoff:
        return False

    for category in GATED_CATEGORIES:
        if scores.get(category, 0.0) < minimums[category]:
            return False

    tolerance_left = 1 if overall >= cutoff + TOLERANCE_MARGIN else 0
    for category in TOLERANT_CATEGORIES:
        score = scores.get(category, 0.0)
        if score >= minimums[category]:
            continue
        if tolerance_left and score >= minimums[category] - TOLERANCE_BAND:
            tolerance_left -= 1
            continue
        return False

    return True


def determine_verdict(
    scores: Mapping[Category, float],
    overall: Optional[float] = None,
    thresholds: Optional[Mapping[Category, float]] = None,
    degraded: bool = False,
) -> Verdict:
    """
    Map category scores to a verdict.

    Args:
        scores: Category -> 0-10 score (missing categories count as 0)
        overall: Precomputed overall score; derived from scores if omitted
        thresholds: Per-category thresholds for the Excellent tier
        degraded: Cap the verdict at Good
    """
    thresholds = thresholds or CATEGORY_THRESHOLDS
    if overall is None:
        overall = overall_score(scores)

    if overall < OK_CUTOFF:
        verdict = Verdict.POOR
    elif overall < GOOD_CUTOFF:
        verdict = Verdict.OK
    else:
        verdict = Verdict.GOOD

    world_class_minimums = {
        category: max(WORLD_CLASS_CATEGORY_MIN, thresholds[category]) for category in Category
    }
    if _clears_tier(scores, overall, WORLD_CLASS_CUTOFF, world_class_minimums):
        verdict = Verdict.WORLD_CLASS
    elif _clears_tier(scores, overall, EXCELLENT_CUTOFF, thresholds):
        verdict = Verdict.EXCELLENT

    if degraded and verdict in (Verdict.EXCELLENT, Verdict.WORLD_CLASS):
        return Verdict.GOOD
    return verdict


def failing_categories(
    scores: Mapping[Category, float],
    thresholds: Optional[Mapping[Category, float]] = None,
) -> list[Category]:
    """Categories strictly below their threshold, in enum order."""
    thresholds = thresholds or CATEGORY_THRESHOLDS
    return [c for c in Category if scores.get(c, 0.0) < thresholds[c]]
