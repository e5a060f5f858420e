"""
Background delivery loop for the worker.

Pulls batches from the buffer, hands them to the Worker, and leaves failed
messages unacknowledged so the buffer redelivers them. Runs either inside
the API process (worker.embedded) or standalone via ``logrelay-worker``.
"""

import asyncio
import signal
import sys
from typing import Any, Dict, Optional

import structlog

from ..config import Settings, get_settings
from ..logging_setup import configure_logging
from .buffer import MessageBuffer
from .clients import build_buffer, build_scheduler, build_store
from .exceptions import ConfigurationMissingError
from .metrics import MetricsCollector
from .worker import BatchResult, Worker

logger = structlog.get_logger(__name__)


class WorkerService:
    """
    Background service that drains the buffer.

    Features:
    - Automatic startup/shutdown
    - Continuous polling (long polling on SQS)
    - Health monitoring
    """

    def __init__(
        self,
        buffer: MessageBuffer,
        worker: Worker,
        max_messages: int = 10,
        idle_sleep_seconds: float = 1.0,
    ) -> None:
        self.buffer = buffer
        self.worker = worker
        self.max_messages = max_messages
        self.idle_sleep_seconds = idle_sleep_seconds
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self.batches_processed = 0

        logger.info(
            "Worker Service initialized",
            buffer_backend=buffer.backend,
            max_messages=max_messages,
        )

    async def start(self) -> None:
        """Start the polling loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())

        logger.info("Worker Service started")

    async def stop(self) -> None:
        """Stop the polling loop. A record being processed is abandoned to redelivery."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Worker Service stopped")

    async def run_once(self) -> BatchResult:
        """Receive one batch and process it."""
        messages = await self.buffer.receive(self.max_messages)
        result = await self.worker.process_batch(messages)
        if messages:
            self.batches_processed += 1
        if result.failed:
            logger.warning(
                "Records left for redelivery",
                failed_message_ids=result.failed_message_ids,
            )
        return result

    async def run_forever(self) -> None:
        """Run the loop in the foreground until cancelled."""
        self._running = True
        try:
            await self._run_loop()
        finally:
            self._running = False

    async def _run_loop(self) -> None:
        """Main polling loop."""
        while self._running:
            try:
                result = await self.run_once()

                if not result.outcomes:
                    await asyncio.sleep(self.idle_sleep_seconds)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(
                    "Worker loop error",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                await asyncio.sleep(self.idle_sleep_seconds)

    def is_healthy(self) -> bool:
        """Check if the polling loop is running."""
        return self._running and self._task is not None and not self._task.done()

    def status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "batches_processed": self.batches_processed,
        }


def build_worker_service(
    settings: Settings,
    buffer: MessageBuffer,
    metrics: Optional[MetricsCollector] = None,
) -> WorkerService:
    """Wire a WorkerService from settings around an existing buffer."""
    store = build_store(settings.store)
    worker = Worker(
        store=store,
        scheduler=build_scheduler(settings.processing),
        buffer=buffer,
        metrics=metrics,
        redaction_marker=settings.processing.redaction_marker,
    )
    return WorkerService(
        buffer=buffer,
        worker=worker,
        max_messages=settings.buffer.max_messages,
        idle_sleep_seconds=settings.worker.idle_sleep_seconds,
    )


async def _serve(service: WorkerService) -> None:
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable on some platforms
            pass

    logger.info("Worker process running")
    try:
        await service.run_forever()
    except asyncio.CancelledError:
        logger.info("Worker process shutting down")


def main() -> int:
    """Entry point for the standalone worker process."""
    settings = get_settings()
    configure_logging(settings.log_level)

    buffer = build_buffer(settings.buffer)
    try:
        if buffer is None:
            raise ConfigurationMissingError("buffer.queue_url")
        service = build_worker_service(settings, buffer, metrics=MetricsCollector())
    except ConfigurationMissingError as e:
        logger.error("Worker cannot start", error=str(e), setting=e.details.get("setting"))
        return 1

    asyncio.run(_serve(service))
    return 0


if __name__ == "__main__":
    sys.exit(main())
