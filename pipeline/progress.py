"""
Progress channel - ordered event stream for one generation run.

Percent never decreases and stays at or below 99 until the complete event,
which alone carries 100. After a terminal event (complete or error) the
channel is closed and further emits raise ChannelClosed.
"""
import asyncio
from typing import AsyncIterator, Optional

import structlog

from schemas.events import ProgressEvent

logger = structlog.get_logger()

MAX_RUNNING_PERCENT = 99


class ChannelClosed(RuntimeError):
    """Emit after the terminal event."""


class ProgressChannel:
    """Async event channel consumed by the API stream and the worker."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._percent = 0
        self._closed = False
        self.events: list[ProgressEvent] = []

    @property
    def percent(self) -> int:
        return self._percent

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> ProgressEvent:
        if self._closed:
            raise ChannelClosed(f"Channel closed, cannot emit '{event.type}'")

        if event.type == "complete":
            percent = 100
        else:
            percent = min(MAX_RUNNING_PERCENT, max(self._percent, event.percent))
        event = event.model_copy(update={"percent": percent})
        self._percent = percent

        if event.is_terminal:
            self._closed = True
        self.events.append(event)
        self._queue.put_nowait(event)
        return event

    def progress(self, stage: Optional[str], percent: float, message: str = "", **context) -> ProgressEvent:
        return self.emit(ProgressEvent(
            type="progress",
            stage=stage,
            percent=int(percent),
            message=message,
            context=context,
        ))

    def degraded(self, stage: str, reason: str, **context) -> ProgressEvent:
        return self.emit(ProgressEvent(
            type="degraded",
            stage=stage,
            percent=self._percent,
            message=f"{stage} used its fallback",
            reason=reason,
            context=context,
        ))

    def warning(self, message: str, stage: Optional[str] = None, **context) -> ProgressEvent:
        return self.emit(ProgressEvent(
            type="warning",
            stage=stage,
            percent=self._percent,
            message=message,
            context=context,
        ))

    def complete(self, package: dict, report: dict, message: str = "Generation complete") -> ProgressEvent:
        return self.emit(ProgressEvent(
            type="complete",
            percent=100,
            message=message,
            package=package,
            report=report,
        ))

    def error(self, reason: str, **context) -> ProgressEvent:
        return self.emit(ProgressEvent(
            type="error",
            percent=self._percent,
            message="Generation failed",
            reason=reason,
            context=context,
        ))

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        """Yield events as they arrive, ending after the terminal event."""
        while True:
            event = await self._queue.get()
            yield event
            if event.is_terminal:
                return
