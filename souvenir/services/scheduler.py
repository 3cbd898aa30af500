"""
Debounced batch scheduler for background chunk processing.

Each engine owns one scheduler. ``schedule()`` restarts a debounce timer;
when it elapses with no further ``schedule()`` call, or as soon as enough
chunks are pending, the processing callback runs as a background task.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from souvenir.utils.logger import get_logger

logger = get_logger(__name__)

ErrorListener = Callable[[BaseException], None]


class ProcessingScheduler:
    """
    Debounce / batch-size trigger around an async processing callback.

    Background runs are fire-and-forget for the caller of ``schedule()``:
    their failures are logged, kept in ``last_error`` and handed to error
    listeners. ``flush_now()`` is the synchronous path and lets errors
    propagate.

    Usage:
        scheduler = ProcessingScheduler(engine.process_all, delay=1.0, batch_size=10)
        await scheduler.schedule()
        scheduler.add_error_listener(lambda error: print(error))
        await scheduler.flush_now()
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        delay: float = 1.0,
        batch_size: int = 10,
        pending_count: Callable[[], Awaitable[int]] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize scheduler.

        Args:
            callback: Coroutine function that processes pending work
            delay: Debounce delay in seconds
            batch_size: Pending count that triggers a run without waiting
            pending_count: Coroutine function returning the pending work count
            sleep: Sleep function used by the debounce timer (injectable for tests)
        """
        self.callback = callback
        self.delay = delay
        self.batch_size = batch_size
        self.pending_count = pending_count
        self._sleep = sleep

        self._timer_task: asyncio.Task | None = None
        self._batch_task: asyncio.Task | None = None
        self._rerun_requested = False
        self._error_listeners: list[ErrorListener] = []
        self._closed = False

        self.last_error: BaseException | None = None

    @property
    def task(self) -> asyncio.Task | None:
        """The current (or last) background batch task."""
        return self._batch_task

    @property
    def timer_pending(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def running(self) -> bool:
        return self._batch_task is not None and not self._batch_task.done()

    def add_error_listener(self, listener: ErrorListener) -> None:
        """Register a callable receiving every background failure."""
        self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        if listener in self._error_listeners:
            self._error_listeners.remove(listener)

    async def schedule(self) -> None:
        """
        Note new pending work.

        Starts a batch right away once ``pending_count()`` reaches
        ``batch_size``; otherwise (re)starts the debounce timer.
        """
        if self._closed:
            return

        if self.pending_count is not None:
            try:
                pending = await self.pending_count()
            except Exception as e:
                logger.warning(f"Could not count pending work, falling back to debounce: {e}")
                pending = 0

            if pending >= self.batch_size:
                self.cancel()
                self._start_batch()
                return

        self.cancel()
        self._timer_task = asyncio.create_task(self._debounce())

    def cancel(self) -> None:
        """Cancel the debounce timer. A batch already running is left alone."""
        if self._timer_task is not None and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None

    async def flush_now(self, callback: Callable[[], Awaitable[Any]] | None = None) -> Any:
        """
        Run the callback immediately, bypassing the debounce.

        Cancels the timer, waits for an in-flight batch, then awaits the
        callback. Errors propagate to the caller.

        Args:
            callback: Optional override for this run

        Returns:
            Whatever the callback returns
        """
        self.cancel()
        await self._wait_for_batch()
        return await (callback or self.callback)()

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no batch is running."""
        while self.timer_pending or self.running:
            tasks = [t for t in (self._timer_task, self._batch_task) if t is not None and not t.done()]
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting work, cancel the timer and wait for an in-flight batch."""
        self._closed = True
        self.cancel()
        await self._wait_for_batch()

    async def _wait_for_batch(self) -> None:
        if self._batch_task is not None and not self._batch_task.done():
            # Failures were already reported by the batch itself
            await asyncio.gather(self._batch_task, return_exceptions=True)

    async def _debounce(self) -> None:
        await self._sleep(self.delay)
        self._timer_task = None
        self._start_batch()

    def _start_batch(self) -> None:
        if self.running:
            self._rerun_requested = True
            return
        self._batch_task = asyncio.create_task(self._run_batch())

    async def _run_batch(self) -> None:
        while True:
            self._rerun_requested = False
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._report(e)

            if not self._rerun_requested or self._closed:
                return

    def _report(self, error: BaseException) -> None:
        self.last_error = error
        logger.error(f"Background processing failed: {type(error).__name__}: {error}")

        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception as listener_error:
                logger.warning(f"Error listener raised: {listener_error}")
