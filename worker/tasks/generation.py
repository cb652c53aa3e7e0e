"""
Website generation task for the background worker.
"""
import asyncio
from typing import Optional

import structlog

from pipeline import ProgressChannel, WebsiteOrchestrator
from schemas.errors import ConfigInvalid
from services.storage import PROJECT_ID_PATTERN

logger = structlog.get_logger()


async def _log_events(channel: ProgressChannel, project_id: str) -> None:
    async for event in channel.stream():
        logger.info(
            "Generation event",
            project_id=project_id,
            type=event.type,
            stage=event.stage,
            percent=event.percent,
            message=event.message,
            reason=event.reason,
        )


async def process_generation_job(
    job_data: dict,
    orchestrator: Optional[WebsiteOrchestrator] = None,
) -> dict:
    """
    Generate one website.

    Args:
        job_data: Job data from the Redis queue containing:
            - project_id: Output directory name
            - requirements: Website requirements object
            - auto_improve: Optional, iterate towards the target score
            - max_iterations: Optional assessment budget

    Returns:
        Summary of the run (state, verdict, overall score, output dir)
    """
    project_id = job_data.get("project_id")
    requirements = job_data.get("requirements")

    logger.info("Processing generation job", project_id=project_id)

    if project_id is not None and not (isinstance(project_id, str) and PROJECT_ID_PATTERN.match(project_id)):
        logger.error("Generation job rejected", project_id=project_id, reason="invalid project id")
        return {
            "project_id": project_id,
            "status": "rejected",
            "errors": [{"loc": ["project_id"], "msg": "must be lowercase letters, digits and hyphens"}],
        }

    orchestrator = orchestrator or WebsiteOrchestrator(
        auto_improve=bool(job_data.get("auto_improve", False)),
        max_iterations=job_data.get("max_iterations"),
    )
    channel = ProgressChannel()
    listener = asyncio.create_task(_log_events(channel, project_id or "pending"))

    try:
        result = await orchestrator.run(requirements, progress=channel, project_id=project_id)
    except ConfigInvalid as e:
        logger.error("Generation job rejected", project_id=project_id, errors=e.errors)
        return {"project_id": project_id, "status": "rejected", "errors": e.errors}
    finally:
        await asyncio.gather(listener, return_exceptions=True)

    summary = {
        "project_id": result.project_id,
        "status": result.state.value,
        "degraded": result.degraded,
        "overall": result.report.overall,
        "verdict": result.report.verdict.value,
        "iterations": result.iterations,
        "output_dir": str(result.output_dir),
    }
    logger.info("Generation job finished", **summary)
    return summary
