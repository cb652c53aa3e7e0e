"""
Shared retry combinator.

Every retried call in the pipeline (provider-backed stages, image tasks,
page rendering) goes through with_retry so the semantics live in one place.
"""
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()


async def with_retry(
    fn: Callable[[], Awaitable[Any]],
    attempts: int = 3,
    backoff: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    max_backoff: float = 30.0,
    label: Optional[str] = None,
) -> Any:
    """
    Await fn() up to `attempts` times with exponential backoff.

    Waits backoff, 2*backoff, 4*backoff... seconds (capped at max_backoff)
    between attempts. Only exceptions matching retry_on are retried; the last
    exception is re-raised once attempts are exhausted.

    Args:
        fn: Zero-argument coroutine factory
        attempts: Total attempts including the first
        backoff: Base wait in seconds (0 disables waiting)
        retry_on: Exception types that trigger another attempt
        max_backoff: Upper bound for a single wait
        label: Name used in retry log lines
    """
    def log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying call",
            label=label,
            attempt=retry_state.attempt_number,
            max_attempts=attempts,
            error=str(exc) if exc else None,
        )

    result = None
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=backoff, min=backoff, max=max(backoff, max_backoff)),
        retry=retry_if_exception_type(retry_on),
        before_sleep=log_retry,
        reraise=True,
    ):
        with attempt:
            result = await fn()
    return result
