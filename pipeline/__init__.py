from .progress import ProgressChannel, ChannelClosed
from .graph import StageGraph, WaveRunner, GraphError
from .improvement import ImprovementEngine, IssueFix, Severity, FIX_STRATEGIES
from .iteration import IterationController, IterationState, LoopState
from .orchestrator import WebsiteOrchestrator, GenerationResult

__all__ = [
    "ProgressChannel",
    "ChannelClosed",
    "StageGraph",
    "WaveRunner",
    "GraphError",
    "ImprovementEngine",
    "IssueFix",
    "Severity",
    "FIX_STRATEGIES",
    "IterationController",
    "IterationState",
    "LoopState",
    "WebsiteOrchestrator",
    "GenerationResult",
]
