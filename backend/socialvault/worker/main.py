"""
SocialVault Worker Entry Point

Long-polls the job queue and dispatches each message to its processor.

Lifecycle:
==========
1. setup_logging(component="worker"), shared adapters created
2. Loop: receive WORKER_BATCH_SIZE messages (default 1) → dispatch each → repeat
3. SIGINT/SIGTERM → finish the current message, close DB and HTTP clients

Scheduled events (guest-retention-cleanup daily at 04:00 UTC,
archive-reminder-dispatch hourly) are published to the same queue by the
scheduler; ``--publish`` sends one by hand, ``--run`` executes one inline.

Usage:
======
    python -m socialvault.worker.main
    python -m socialvault.worker.main --publish guest-retention-cleanup --limit 200
    python -m socialvault.worker.main --run archive-reminder-dispatch
"""

import argparse
import asyncio
import signal
from typing import Optional

from socialvault.config.settings import settings
from socialvault.shared.adapters.sqs_adapter import QueueMessage, SQSAdapter, get_sqs_adapter
from socialvault.shared.core.logging import get_logger, setup_logging
from socialvault.shared.db.session import AsyncSessionLocal, close_db, session_scope
from socialvault.shared.models.enums import JobEventName
from socialvault.worker.dispatcher import Dispatcher
from socialvault.worker.context import WorkerAdapters, WorkerContext
from socialvault.worker.processors import PROCESSORS
from socialvault.worker.processors.base_processor import JobAttempt

logger = get_logger(__name__)

SCHEDULED_EVENTS = (
    JobEventName.GUEST_RETENTION_CLEANUP.value,
    JobEventName.ARCHIVE_REMINDER_DISPATCH.value,
)


class Worker:
    """Queue consumer loop."""

    def __init__(self, queue: SQSAdapter, dispatcher: Dispatcher, batch_size: Optional[int] = None) -> None:
        self.queue = queue
        self.dispatcher = dispatcher
        # Prefetched messages wait unprocessed and would age their queued jobs
        self.batch_size = max(1, batch_size or settings.WORKER_BATCH_SIZE)
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        logger.info("Worker stopping")
        self._stopping.set()

    async def poll_once(self) -> int:
        messages: list[QueueMessage] = await asyncio.to_thread(
            self.queue.receive_messages,
            self.batch_size,
            settings.SQS_WAIT_TIME_SECONDS,
            settings.SQS_VISIBILITY_TIMEOUT_SECONDS,
        )
        for message in messages:
            await self.dispatcher.dispatch(message)
        return len(messages)

    async def run(self) -> None:
        logger.info("Worker started", queue_url=self.queue.queue_url)
        while not self._stopping.is_set():
            try:
                await self.poll_once()
            except Exception as e:
                logger.error("Queue poll failed", error=str(e), exc_info=True)
                await asyncio.sleep(5)


async def run_inline(event_name: str, limit: Optional[int], adapters: WorkerAdapters) -> None:
    """Execute a scheduled event in-process, without the queue."""
    async with session_scope() as session:
        processor = PROCESSORS[event_name](WorkerContext.build(session, adapters, settings))
        data = {"limit": limit} if limit else {}
        result = await processor.process(data, JobAttempt(number=1, max_attempts=1))
    logger.info("Scheduled event finished", event_name=event_name, result=result)


async def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="SocialVault job worker")
    action = parser.add_mutually_exclusive_group()
    action.add_argument("--publish", choices=SCHEDULED_EVENTS, help="Publish a scheduled event and exit")
    action.add_argument("--run", choices=SCHEDULED_EVENTS, help="Run a scheduled event inline and exit")
    parser.add_argument("--limit", type=int, default=None)
    args = parser.parse_args(argv)

    setup_logging(component="worker")
    queue = get_sqs_adapter()

    if args.publish:
        data = {"limit": args.limit} if args.limit else {}
        message_id = await queue.publish_event(args.publish, data)
        logger.info("Scheduled event published", event_name=args.publish, message_id=message_id)
        return

    adapters = WorkerAdapters.default(settings)
    try:
        if args.run:
            await run_inline(args.run, args.limit, adapters)
            return

        worker = Worker(queue, Dispatcher(queue, AsyncSessionLocal, adapters, settings))
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, worker.stop)
        await worker.run()
    finally:
        await adapters.aclose()
        await close_db()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
