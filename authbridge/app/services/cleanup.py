"""Periodic cleanup of expired rate limit counters and challenge mappings.

The scheduler runs as a background asyncio task started from the
application lifespan. It holds no thread and no timer of its own, so it
never keeps the process alive after the event loop shuts down.
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from authbridge.app.core.logging import get_logger

logger = get_logger(__name__)

CleanupJob = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass
class _RegisteredJob:
    name: str
    func: CleanupJob


class CleanupScheduler:
    """Runs registered cleanup jobs every ``interval_seconds``.

    Jobs may be plain callables or coroutine functions. A failing job is
    logged and does not stop the loop or the other jobs.
    """

    DEFAULT_INTERVAL_SECONDS = 300.0
    STOP_TIMEOUT_SECONDS = 5.0

    def __init__(self, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval = float(interval_seconds)
        self._jobs: list[_RegisteredJob] = []
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def job_names(self) -> list[str]:
        return [job.name for job in self._jobs]

    def add_job(self, func: CleanupJob, name: Optional[str] = None) -> None:
        """Register a job to run on every sweep."""
        job_name = name or getattr(func, "__qualname__", None) or repr(func)
        self._jobs.append(_RegisteredJob(job_name, func))

    async def run_once(self) -> dict[str, Any]:
        """Run every job once.

        Returns:
            Mapping of job name to its return value, or to the exception it
            raised
        """
        results: dict[str, Any] = {}
        for job in list(self._jobs):
            try:
                value = job.func()
                if inspect.isawaitable(value):
                    value = await value
                results[job.name] = value
            except Exception as e:
                logger.error(f"Cleanup job '{job.name}' failed: {e}", exc_info=True)
                results[job.name] = e
        return results

    async def start(self) -> None:
        """Start the background sweep task.

        Calling start on a running scheduler does nothing.
        """
        if self.is_running:
            logger.debug("Cleanup scheduler already running")
            return

        # Created here so the event binds to the running loop
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="authbridge-cleanup")
        logger.info(
            f"Started cleanup scheduler (interval: {self._interval}s, jobs: {len(self._jobs)})"
        )

    async def stop(self) -> None:
        """Stop the background task, cancelling it if it does not finish in time."""
        if self._task is None:
            return

        if self._stop_event is not None:
            self._stop_event.set()

        try:
            await asyncio.wait_for(self._task, timeout=self.STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Cleanup task did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            self._stop_event = None
            logger.info("Stopped cleanup scheduler")

    async def _run(self) -> None:
        stop_event = self._stop_event
        while not stop_event.is_set():
            # Wait for the next interval or until stopped
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            results = await self.run_once()
            removed = {name: value for name, value in results.items() if isinstance(value, int) and value}
            if removed:
                logger.debug(f"Cleanup sweep removed entries: {removed}")
