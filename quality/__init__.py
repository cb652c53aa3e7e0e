from .verdict import (
    Category,
    Verdict,
    CATEGORY_WEIGHTS,
    CATEGORY_THRESHOLDS,
    overall_score,
    determine_verdict,
)
from .scoring import CategoryScore, score_site
from .signals import PageSignals, StaticRenderer, extract_static_signals
from .assessor import QualityAssessor, QualityReport, build_report

__all__ = [
    "Category",
    "Verdict",
    "CATEGORY_WEIGHTS",
    "CATEGORY_THRESHOLDS",
    "overall_score",
    "determine_verdict",
    "CategoryScore",
    "score_site",
    "PageSignals",
    "StaticRenderer",
    "extract_static_signals",
    "QualityAssessor",
    "QualityReport",
    "build_report",
]
