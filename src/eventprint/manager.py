"""Print job orchestration: polling, queueing, retries and rate-limit protection."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel

from eventprint.dispatcher import PrintDispatcher
from eventprint.gateway import PhotoGateway, RateLimitedError
from eventprint.models.job import JobStatus, PrintJob
from eventprint.models.photo import PhotoStatus
from eventprint.printers import UnsupportedFormatError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

POLL_BATCH_SIZE = 5
MANUAL_BATCH_SIZE = 50
MAX_ATTEMPTS = 3
RATE_LIMIT_THRESHOLD = 3
CIRCUIT_OPEN_SECONDS = 60.0

# Failures that would repeat identically on every attempt
NON_RETRYABLE_ERRORS = (UnsupportedFormatError, UnsupportedPlatformError)


class CircuitBreakerStatus(BaseModel):
    """State of the rate-limit circuit breaker."""

    open_until: float | None
    consecutive_failures: int
    is_open: bool


class QueueStatus(BaseModel):
    """Snapshot of the job queue for status reporting."""

    queue_length: int
    is_processing: bool
    is_polling: bool
    polling_event_id: str | None
    jobs: list[PrintJob]
    circuit_breaker: CircuitBreakerStatus


def is_rate_limited(error: Exception) -> bool:
    """Check whether a fetch failure means the upstream is rate limiting us."""
    return isinstance(error, RateLimitedError) or getattr(error, "status", None) == 429


class PrintJobManager:
    """Turns pending photos of an event into print jobs and drives them to completion.

    Jobs live in a FIFO queue drained by a single-flight loop: a drain
    triggered while another is running returns immediately. Failed jobs go
    back to the tail of the queue until they have used up MAX_ATTEMPTS.

    Polling runs as one asyncio task per manager. Each cycle is awaited to
    completion before the next interval starts, so cycles never overlap.
    """

    def __init__(
        self,
        gateway: PhotoGateway,
        dispatcher: PrintDispatcher,
        *,
        clock: Callable[[], float] = time.time,
        on_status_change: Callable[[PrintJob], None] | None = None,
    ) -> None:
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._clock = clock
        self._on_status_change = on_status_change
        self._queue: deque[PrintJob] = deque()
        self._processing = False
        self._current_job: PrintJob | None = None
        self._poll_task: asyncio.Task | None = None
        self._poll_event_id: str | None = None
        self._cycle_tasks: set[asyncio.Task] = set()
        # Circuit breaker
        self._rate_limit_failures = 0
        self._open_until: float | None = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def polling_event_id(self) -> str | None:
        return self._poll_event_id if self.is_polling else None

    async def start_polling(self, event_id: str, interval_ms: int = 5000) -> None:
        """Poll an event for pending photos, replacing any running poll loop.

        Fetches once immediately, then every ``interval_ms``.

        Raises:
            ValueError: If no event ID is given or the interval is not positive.
        """
        if not event_id:
            raise ValueError("Event ID is required to start polling")
        if interval_ms <= 0:
            raise ValueError("Polling interval must be positive")

        self._cancel_poll_task()
        logger.info(f"Starting photo polling for event {event_id} every {interval_ms}ms")

        await self._fetch_and_queue(event_id)

        # Another start_polling may have armed a loop while we were fetching
        self._cancel_poll_task()
        self._poll_event_id = event_id
        self._poll_task = asyncio.create_task(
            self._poll_loop(event_id, interval_ms / 1000),
            name=f"photo-poll-{event_id}",
        )

    def stop_polling(self) -> None:
        """Stop polling. Work already in progress runs to completion."""
        if self._cancel_poll_task():
            logger.info("Stopped photo polling")

    def _cancel_poll_task(self) -> bool:
        if self._poll_task is None:
            return False
        self._poll_task.cancel()
        self._poll_task = None
        self._poll_event_id = None
        return True

    async def close(self) -> None:
        """Stop polling and wait for any polling cycle still in flight."""
        self.stop_polling()
        if self._cycle_tasks:
            await asyncio.gather(*self._cycle_tasks, return_exceptions=True)

    async def _poll_loop(self, event_id: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            cycle = asyncio.create_task(self._poll_cycle(event_id), name=f"photo-poll-cycle-{event_id}")
            self._cycle_tasks.add(cycle)
            cycle.add_done_callback(self._cycle_tasks.discard)
            # Cancelling the loop must not interrupt a cycle mid-drain
            await asyncio.shield(cycle)

    async def _poll_cycle(self, event_id: str) -> None:
        try:
            if self._circuit_open():
                logger.debug(f"Circuit breaker open, skipping polling cycle for event {event_id}")
                return
            await self._fetch_and_queue(event_id)
            await self.process_queue()
        except Exception as e:
            logger.error(f"Error in polling cycle for event {event_id}: {e}", exc_info=True)

    def _circuit_open(self) -> bool:
        """Check the breaker, closing it once its window has passed."""
        if self._open_until is None:
            return False
        if self._clock() < self._open_until:
            return True
        self._open_until = None
        self._rate_limit_failures = 0
        logger.info("Circuit breaker closed, resuming photo fetches")
        return False

    def _record_rate_limit(self) -> None:
        self._rate_limit_failures += 1
        logger.warning(
            f"Rate limited while fetching photos ({self._rate_limit_failures}/{RATE_LIMIT_THRESHOLD})"
        )
        if self._rate_limit_failures >= RATE_LIMIT_THRESHOLD:
            self._open_until = self._clock() + CIRCUIT_OPEN_SECONDS
            self._rate_limit_failures = 0
            logger.error(f"Circuit breaker opened for {CIRCUIT_OPEN_SECONDS:.0f}s after repeated rate limiting")

    def _is_tracked(self, photo_id: str) -> bool:
        if self._current_job is not None and self._current_job.photo_id == photo_id:
            return True
        return any(job.photo_id == photo_id for job in self._queue)

    async def _fetch_and_queue(self, event_id: str, batch_size: int = POLL_BATCH_SIZE) -> int:
        """Queue a job for every pending photo not already tracked.

        Returns:
            Number of jobs added to the queue.
        """
        if self._circuit_open():
            logger.warning(f"Circuit breaker open, not fetching photos for event {event_id}")
            return 0

        try:
            response = await self._gateway.fetch_pending(event_id, PhotoStatus.PENDING, batch_size)
        except Exception as e:
            if is_rate_limited(e):
                self._record_rate_limit()
            else:
                logger.error(f"Failed to fetch pending photos for event {event_id}: {e}")
            return 0

        self._rate_limit_failures = 0
        if response.photos:
            logger.info(f"Found {len(response.photos)} pending photos for event {event_id}")

        queued = 0
        for photo in response.photos:
            if self._is_tracked(photo.id):
                continue
            job = PrintJob(photo_id=photo.id, event_id=photo.event_id)
            self._queue.append(job)
            queued += 1
            logger.info(f"Queued print job {job.id} for photo {photo.id}")
            self._notify(job)
        return queued

    async def process_queue(self) -> None:
        """Drain the queue. Returns immediately if a drain is already running."""
        if self._processing or not self._queue:
            return

        self._processing = True
        logger.info(f"Processing print queue with {len(self._queue)} jobs")
        try:
            while self._queue:
                job = self._queue.popleft()
                self._current_job = job
                try:
                    await self._process_job(job)
                except Exception as e:
                    await self._handle_job_failure(job, e)
                finally:
                    self._current_job = None
        finally:
            self._processing = False

    async def _process_job(self, job: PrintJob) -> None:
        job.status = JobStatus.PRINTING
        job.attempts += 1
        self._notify(job)
        logger.info(f"Processing print job {job.id} for photo {job.photo_id} (attempt {job.attempts}/{MAX_ATTEMPTS})")

        photo = await self._gateway.fetch_photo(job.photo_id)
        await self._dispatcher.dispatch(photo)

        job.status = JobStatus.COMPLETED
        job.completed_at = datetime.now()
        await self._gateway.report_status(job.photo_id, PhotoStatus.PRINTED)
        logger.info(f"Successfully completed print job {job.id} for photo {job.photo_id}")
        self._notify(job)

    async def _handle_job_failure(self, job: PrintJob, error: Exception) -> None:
        job.status = JobStatus.FAILED
        job.completed_at = None
        job.error = str(error) or type(error).__name__

        retryable = not isinstance(error, NON_RETRYABLE_ERRORS)
        if retryable and job.attempts < MAX_ATTEMPTS:
            job.status = JobStatus.QUEUED
            self._queue.append(job)
            logger.warning(
                f"Retrying print job {job.id} for photo {job.photo_id} "
                f"(attempt {job.attempts}/{MAX_ATTEMPTS}): {job.error}"
            )
            self._notify(job)
            return

        logger.error(
            f"Print job {job.id} for photo {job.photo_id} permanently failed "
            f"after {job.attempts} attempt(s): {job.error}"
        )
        self._notify(job)
        try:
            await self._gateway.report_status(job.photo_id, PhotoStatus.FAILED)
        except Exception as e:
            logger.error(f"Failed to update print status for failed job {job.id} (photo {job.photo_id}): {e}")

    async def print_event(self, event_id: str) -> int:
        """Queue and print up to MANUAL_BATCH_SIZE pending photos of an event.

        Runs independently of any polling loop.

        Returns:
            Number of jobs added to the queue.

        Raises:
            ValueError: If no event ID is given.
        """
        if not event_id:
            raise ValueError("Event ID is required")
        logger.info(f"Manually printing all pending photos for event {event_id}")
        queued = await self._fetch_and_queue(event_id, MANUAL_BATCH_SIZE)
        await self.process_queue()
        return queued

    def get_queue_status(self) -> QueueStatus:
        """Get a snapshot of the queue and circuit breaker."""
        now = self._clock()
        return QueueStatus(
            queue_length=len(self._queue),
            is_processing=self._processing,
            is_polling=self.is_polling,
            polling_event_id=self.polling_event_id,
            jobs=[job.model_copy() for job in self._queue],
            circuit_breaker=CircuitBreakerStatus(
                open_until=self._open_until,
                consecutive_failures=self._rate_limit_failures,
                is_open=self._open_until is not None and now < self._open_until,
            ),
        )

    def clear_queue(self) -> int:
        """Discard all queued jobs. A job mid-processing is not affected.

        Returns:
            Number of jobs discarded.
        """
        cleared = len(self._queue)
        self._queue.clear()
        logger.info(f"Print queue cleared ({cleared} jobs)")
        return cleared

    def _notify(self, job: PrintJob) -> None:
        if self._on_status_change:
            self._on_status_change(job)
