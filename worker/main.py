"""
Site Forge generation worker.

Pops website generation jobs off a single Redis list and runs each one through
the orchestrator. A job is a JSON object pushed with RPUSH:

    {"project_id": "acme-1", "requirements": {...}, "auto_improve": false}

Usage:
    python -m worker.main
    python -m worker.main --queue generation_queue --concurrency 2

Queue name and concurrency default to the GENERATION_QUEUE and
WORKER_CONCURRENCY settings.
"""
import argparse
import asyncio
import json
import signal
from typing import Optional

import redis
import structlog

from config import Settings, configure_logging, settings as default_settings
from worker.tasks.generation import process_generation_job

logger = structlog.get_logger()

POP_TIMEOUT_SECONDS = 5
RECONNECT_DELAY_SECONDS = 5


class InvalidJob(ValueError):
    """A queue entry that is not a JSON object."""


def decode_job(raw: str) -> dict:
    try:
        job = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidJob(f"Job is not valid JSON: {e}") from e
    if not isinstance(job, dict):
        raise InvalidJob("Job must be a JSON object")
    return job


class GenerationWorker:
    """
    Consumes the generation queue with bounded concurrency.

    Jobs run as tasks so a long generation never blocks the next pop; the
    semaphore caps how many run at once. stop() lets running jobs finish.
    """

    def __init__(
        self,
        queue: Optional[str] = None,
        concurrency: Optional[int] = None,
        redis_url: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        s = settings or default_settings
        self.queue = queue or s.generation_queue
        self.concurrency = max(1, concurrency or s.worker_concurrency)
        self.redis_url = redis_url or s.redis_url
        self.redis: Optional[redis.Redis] = None
        self.running = False
        self.active: set[str] = set()
        self._slots: Optional[asyncio.Semaphore] = None

    def connect(self) -> None:
        self.redis = redis.from_url(self.redis_url, decode_responses=True)
        # Credentials stay out of the log.
        logger.info("Connected to Redis", url=self.redis_url.split("@")[-1], queue=self.queue)

    def close(self) -> None:
        if self.redis is not None:
            self.redis.close()
            self.redis = None
            logger.info("Redis connection closed")

    async def handle(self, job: dict) -> None:
        """Run one generation job. Failures are logged, never raised."""
        project_id = job.get("project_id") or "unassigned"
        self.active.add(project_id)
        log = logger.bind(queue=self.queue, project_id=project_id)
        log.info("Generation job started")
        try:
            summary = await process_generation_job(job)
            log.info("Generation job done", status=summary.get("status"), overall=summary.get("overall"))
        except Exception as e:
            log.error("Generation job crashed", error=str(e), exc_info=True)
        finally:
            self.active.discard(project_id)

    async def _handle_in_slot(self, job: dict) -> None:
        async with self._slots:
            await self.handle(job)

    async def _pop(self) -> Optional[str]:
        # blpop blocks, so it runs in a thread and in-flight jobs keep going.
        item = await asyncio.to_thread(self.redis.blpop, self.queue, timeout=POP_TIMEOUT_SECONDS)
        return item[1] if item else None

    async def _reconnect(self, error: Exception) -> None:
        logger.error("Redis connection lost", error=str(error))
        await asyncio.sleep(RECONNECT_DELAY_SECONDS)
        try:
            self.connect()
        except redis.RedisError as e:
            logger.error("Redis reconnect failed", error=str(e))

    async def run(self) -> None:
        self.running = True
        self._slots = asyncio.Semaphore(self.concurrency)
        in_flight: set[asyncio.Task] = set()
        logger.info("Generation worker started", queue=self.queue, concurrency=self.concurrency)

        while self.running:
            try:
                raw = await self._pop()
                if raw is None:
                    continue
                task = asyncio.create_task(self._handle_in_slot(decode_job(raw)))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
            except InvalidJob as e:
                logger.error("Discarded queue entry", queue=self.queue, error=str(e))
            except redis.ConnectionError as e:
                await self._reconnect(e)
            except Exception as e:
                logger.error("Worker loop error", error=str(e), exc_info=True)
                await asyncio.sleep(1)

        if in_flight:
            logger.info("Draining running jobs", count=len(in_flight))
            await asyncio.gather(*in_flight, return_exceptions=True)
        logger.info("Generation worker stopped", queue=self.queue)

    def stop(self, signum=None, frame=None) -> None:
        """Stop popping new jobs. Doubles as a signal handler."""
        logger.info("Stopping generation worker", queue=self.queue, signum=signum)
        self.running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Site Forge generation worker")
    parser.add_argument("--queue", help="Redis list to consume (default: GENERATION_QUEUE setting)")
    parser.add_argument("--concurrency", type=int, help="Jobs run at once (default: WORKER_CONCURRENCY setting)")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    configure_logging()
    args = parse_args(argv)
    worker = GenerationWorker(queue=args.queue, concurrency=args.concurrency)

    signal.signal(signal.SIGINT, worker.stop)
    signal.signal(signal.SIGTERM, worker.stop)

    worker.connect()
    try:
        asyncio.run(worker.run())
    finally:
        worker.close()
    logger.info("Worker shutdown complete")


if __name__ == "__main__":
    main()
