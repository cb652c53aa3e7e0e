"""
Pydantic models for progress events streamed during a generation run.
"""
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

EventType = Literal["progress", "degraded", "warning", "complete", "error"]


class ProgressEvent(BaseModel):
    """One event on the progress channel."""
    type: EventType = "progress"
    stage: Optional[str] = None
    percent: int = Field(default=0, ge=0, le=100)
    message: str = ""
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    context: dict = Field(default_factory=dict)

    # Terminal payloads
    package: Optional[dict] = None
    report: Optional[dict] = None
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    def to_sse(self) -> str:
        """Format as a Server-Sent Events frame."""
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"


class HealthResponse(BaseModel):
    """Health check response."""
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime
    version: str
