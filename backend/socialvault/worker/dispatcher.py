"""
Job dispatcher.

Routes queue messages to processors and applies the retry policy.

RETRIES:
========
    archive-upload.requested     5 retries (6 attempts)
    snapshot-scrape.requested    5 retries
    guest-retention-cleanup      1 retry
    archive-reminder-dispatch    2 retries

SQS counts deliveries in ``ApproximateReceiveCount``. A failed message is
left on the queue (with a growing visibility delay) until the count reaches
the attempt ceiling; then it is deleted. Processors see the attempt number
so they can clean up on the last one.

VISIBILITY:
===========
While a processor runs, the message visibility is re-extended every
``SQS_VISIBILITY_HEARTBEAT_SECONDS`` so a long job is never redelivered to a
second worker that would discard its in-progress backup.
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.adapters.sqs_adapter import QueueMessage, SQSAdapter
from socialvault.shared.core.logging import clear_log_context, get_logger, log_context
from socialvault.shared.models.enums import JobEventName
from socialvault.worker.context import WorkerAdapters, WorkerContext
from socialvault.worker.processors import PROCESSORS
from socialvault.worker.processors.base_processor import BaseProcessor, JobAttempt

logger = get_logger(__name__)

MAX_RETRY_DELAY_SECONDS = 900


class DispatchOutcome(str, Enum):
    COMPLETED = "completed"
    RETRY = "retry"
    EXHAUSTED = "exhausted"
    DROPPED = "dropped"


def event_retries(settings: Settings) -> Dict[str, int]:
    return {
        JobEventName.ARCHIVE_UPLOAD_REQUESTED.value: settings.ARCHIVE_UPLOAD_MAX_RETRIES,
        JobEventName.SNAPSHOT_SCRAPE_REQUESTED.value: settings.SNAPSHOT_SCRAPE_MAX_RETRIES,
        JobEventName.GUEST_RETENTION_CLEANUP.value: settings.GUEST_CLEANUP_MAX_RETRIES,
        JobEventName.ARCHIVE_REMINDER_DISPATCH.value: settings.REMINDER_DISPATCH_MAX_RETRIES,
    }


def retry_delay_seconds(attempt: int) -> int:
    """Exponential backoff: 30s, 60s, 120s, ... capped at 15 minutes."""
    return min(MAX_RETRY_DELAY_SECONDS, 30 * 2 ** max(0, attempt - 1))


ContextFactory = Callable[[AsyncSession], WorkerContext]
ProcessorFactory = Callable[[str, WorkerContext], BaseProcessor]


def default_processor_factory(event_name: str, context: WorkerContext) -> BaseProcessor:
    return PROCESSORS[event_name](context)


class Dispatcher:
    """
    Runs one queue message through its processor.

    Usage:
        dispatcher = Dispatcher(queue, AsyncSessionLocal, adapters)
        outcome = await dispatcher.dispatch(message)
    """

    def __init__(
        self,
        queue: SQSAdapter,
        session_factory: async_sessionmaker,
        adapters: WorkerAdapters,
        settings: Optional[Settings] = None,
        context_factory: Optional[ContextFactory] = None,
        processor_factory: ProcessorFactory = default_processor_factory,
    ) -> None:
        self.queue = queue
        self.session_factory = session_factory
        self.adapters = adapters
        self.settings = settings or default_settings
        self.context_factory = context_factory or (
            lambda session: WorkerContext.build(session, self.adapters, self.settings)
        )
        self.processor_factory = processor_factory
        self.retries = event_retries(self.settings)
        self.heartbeat_seconds = self.settings.SQS_VISIBILITY_HEARTBEAT_SECONDS

    async def dispatch(self, message: QueueMessage) -> DispatchOutcome:
        event_name = message.event_name
        if event_name not in self.retries:
            logger.error("Unknown event dropped", event_name=event_name, message_id=message.message_id)
            await asyncio.to_thread(self.queue.delete_message, message.receipt_handle)
            return DispatchOutcome.DROPPED

        attempt = JobAttempt(number=message.receive_count, max_attempts=self.retries[event_name] + 1)
        clear_log_context()
        log_context(event_name=event_name, attempt=attempt.number, message_id=message.message_id)
        try:
            return await self._run(message, event_name, attempt)
        finally:
            clear_log_context()

    async def _run(self, message: QueueMessage, event_name: str, attempt: JobAttempt) -> DispatchOutcome:
        async with self.session_factory() as session:
            processor = self.processor_factory(event_name, self.context_factory(session))
            try:
                async with self._visibility_heartbeat(message):
                    await processor.process(message.event_data, attempt)
                await session.commit()
            except Exception as e:
                await session.rollback()
                if attempt.is_final:
                    logger.error("Event failed on final attempt", error=str(e), exc_info=True)
                    await asyncio.to_thread(self.queue.delete_message, message.receipt_handle)
                    return DispatchOutcome.EXHAUSTED

                delay = retry_delay_seconds(attempt.number)
                logger.warning("Event failed, will retry", error=str(e), retry_in_seconds=delay)
                try:
                    await asyncio.to_thread(self.queue.change_message_visibility, message.receipt_handle, delay)
                except Exception as visibility_error:
                    logger.warning("Failed to delay retry", error=str(visibility_error))
                return DispatchOutcome.RETRY

        await asyncio.to_thread(self.queue.delete_message, message.receipt_handle)
        logger.info("Event processed")
        return DispatchOutcome.COMPLETED

    @asynccontextmanager
    async def _visibility_heartbeat(self, message: QueueMessage) -> AsyncIterator[None]:
        task = asyncio.create_task(self._extend_visibility(message))
        try:
            yield
        finally:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def _extend_visibility(self, message: QueueMessage) -> None:
        timeout = self.settings.SQS_VISIBILITY_TIMEOUT_SECONDS
        while True:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                await asyncio.to_thread(self.queue.change_message_visibility, message.receipt_handle, timeout)
            except Exception as e:
                logger.warning("Failed to extend message visibility", error=str(e))
                continue
            logger.debug("Message visibility extended", visibility_timeout=timeout)
