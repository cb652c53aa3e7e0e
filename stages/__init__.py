from .base import BaseStage, StageContext, StageResult
from .design_strategy import DesignStrategyStage
from .layout import LayoutStage
from .style_system import StyleSystemStage
from .section_copy import SectionCopyStage
from .image_plan import ImagePlanStage
from .image_generator import ImageGeneratorStage, ParallelImageGenerator
from .seo_metadata import SEOMetadataStage
from .code_assembler import CodeAssemblerStage, assemble


def default_stages(
    retry_attempts: int = 2,
    retry_backoff: float = 1.0,
    image_concurrency: int = 10,
    image_batch_size: int = 10,
    image_retry_attempts: int = 3,
    image_retry_backoff: float = 2.0,
    image_batch_delay: float = 0.5,
) -> list[BaseStage]:
    """The full generation graph, in declaration order."""
    provider_stages = [
        stage_cls(retry_attempts=retry_attempts, retry_backoff=retry_backoff)
        for stage_cls in (
            DesignStrategyStage,
            LayoutStage,
            StyleSystemStage,
            SectionCopyStage,
            ImagePlanStage,
            SEOMetadataStage,
        )
    ]
    return provider_stages + [
        ImageGeneratorStage(
            concurrency=image_concurrency,
            batch_size=image_batch_size,
            retry_attempts=image_retry_attempts,
            retry_backoff=image_retry_backoff,
            batch_delay=image_batch_delay,
        ),
        CodeAssemblerStage(),
    ]


__all__ = [
    "BaseStage",
    "StageContext",
    "StageResult",
    "DesignStrategyStage",
    "LayoutStage",
    "StyleSystemStage",
    "SectionCopyStage",
    "ImagePlanStage",
    "ImageGeneratorStage",
    "ParallelImageGenerator",
    "SEOMetadataStage",
    "CodeAssemblerStage",
    "assemble",
    "default_stages",
]
