"""
Generation routes.

POST /generate streams progress as Server-Sent Events; requirements are
validated before the stream opens so bad input gets a plain 422.
"""
import asyncio
import uuid
from pathlib import Path

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
import structlog

from api.dependencies import get_artifacts_dir, get_orchestrator
from pipeline import ProgressChannel, WebsiteOrchestrator
from schemas.requirements import parse_requirements
from services.storage import ARTIFACT_FILES, PROJECT_ID_PATTERN, ArtifactStore

logger = structlog.get_logger()

router = APIRouter(tags=["Generation"])


@router.post(
    "/generate",
    responses={
        200: {"content": {"text/event-stream": {}}, "description": "Progress event stream"},
        422: {"description": "Invalid requirements"},
    },
    summary="Generate a website",
    description="""
Runs the full pipeline for the posted requirements:
1. Design strategy, layout, style, copy, image plan, images and SEO
2. Assemble pages, render and score six quality categories
3. Re-run only the stages behind failing categories, within budget

Each event is one `data:` frame; the stream ends with `complete` or `error`.
    """,
)
async def generate_website(
    payload: dict = Body(..., description="Website requirements (camelCase or snake_case)"),
    orchestrator: WebsiteOrchestrator = Depends(get_orchestrator),
):
    """Validate requirements and stream the generation run."""
    # Raises ConfigInvalid (422) before anything is streamed.
    requirements = parse_requirements(payload)
    project_id = f"{requirements.project_slug}-{uuid.uuid4().hex[:8]}"
    channel = ProgressChannel()

    logger.info("Generation requested", project_id=project_id, business_name=requirements.business_name)

    async def event_stream():
        task = asyncio.create_task(orchestrator.run(requirements, progress=channel, project_id=project_id))
        try:
            async for event in channel.stream():
                yield event.to_sse()
        finally:
            if not task.done():
                task.cancel()
            # Failures were already emitted as the error event.
            await asyncio.gather(task, return_exceptions=True)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "X-Project-Id": project_id,
        },
    )


@router.get(
    "/projects/{project_id}/artifacts/{key}",
    summary="Get a stored artifact",
)
async def get_artifact(
    project_id: str,
    key: str,
    artifacts_dir: Path = Depends(get_artifacts_dir),
):
    """Return the latest stored version of one JSON artifact."""
    if not PROJECT_ID_PATTERN.match(project_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid project id")
    if key not in ARTIFACT_FILES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown artifact '{key}'. Available: {', '.join(ARTIFACT_FILES)}",
        )
    if not (artifacts_dir / project_id).is_dir():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    artifact = ArtifactStore(artifacts_dir, project_id).read_artifact(key)
    if artifact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Artifact '{key}' not written yet")
    return artifact
