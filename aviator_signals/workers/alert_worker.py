"""
PURPOSE: Background worker running alert delivery off the request path.

The ingestion route enqueues a job after the signal commit and returns
immediately; this worker drains the queue one job at a time so that a slow
chat provider delays alerts, never ingestion.
"""

import asyncio
from typing import Any, Dict, Optional

from aviator_signals.services.alert_service import AlertDispatcher
from aviator_signals.utils.logger import get_logger

logger = get_logger(__name__)

MAX_PENDING_ALERTS = 1000


class AlertWorker:
    """
    PURPOSE: Queue-fed consumer of alert jobs.

    Attributes:
        _dispatcher: Performs the delivery of one job.
        _queue: Pending serialized signals.
        _task: Consumer task, None until start().
    """

    def __init__(self, dispatcher: AlertDispatcher, maxsize: int = MAX_PENDING_ALERTS) -> None:
        self._dispatcher = dispatcher
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the consumer task on the running loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("alert_worker_started")

    def enqueue(self, signal: Dict[str, Any]) -> bool:
        """
        PURPOSE: Schedule alert delivery for a stored signal.

        CALLED BY: POST /api/signals after commit

        Args:
            signal: Serialized signal.

        Returns:
            bool: False if the queue is full and the job was dropped.
        """
        try:
            self._queue.put_nowait(signal)
        except asyncio.QueueFull:
            logger.error("alert_queue_full_job_dropped", signal_id=signal.get("id"))
            return False
        logger.info("alert_enqueued", signal_id=signal.get("id"), pending=self._queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """
        PURPOSE: Drain pending jobs for up to grace_seconds, then stop the consumer.

        CALLED BY: Application shutdown
        """
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("alert_worker_stop_with_pending", pending=self._queue.qsize())

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("alert_worker_stopped")

    async def _run(self) -> None:
        while True:
            signal = await self._queue.get()
            try:
                await self._dispatcher.dispatch(signal)
            except Exception as e:
                logger.error(
                    "alert_job_failed",
                    signal_id=signal.get("id"),
                    error=str(e),
                    exception_type=type(e).__name__,
                )
            finally:
                self._queue.task_done()
