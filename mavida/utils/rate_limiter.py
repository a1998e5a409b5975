"""
Rate Limiter Utility
FIFO request throttle for API clients
"""
import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Set, Tuple

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]


class RequestThrottle:
    """
    Spaces out the start of queued tasks by a minimum interval

    Tasks are dispatched strictly in submission order. Dispatch does not wait
    for the previous task to finish, so several tasks can be in flight at once;
    only their start times are paced.
    """

    def __init__(
        self,
        rate: float,
        task_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.rate = rate  # requests per second, <= 0 disables spacing
        self.interval = 1.0 / rate if rate > 0 else 0.0
        self.task_timeout = task_timeout
        self._clock = clock
        self._sleep = sleep
        self._queue: Deque[Tuple[Task, asyncio.Future]] = deque()
        self._processing = False
        self._last_dispatch: Optional[float] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()
        self.dispatched = 0

    @property
    def pending(self) -> int:
        """Number of tasks waiting for a dispatch slot"""
        return len(self._queue)

    @property
    def in_flight(self) -> int:
        """Number of dispatched tasks that have not finished yet"""
        return len(self._running)

    async def execute(self, task: Task) -> Any:
        """
        Queue a task and wait for its outcome

        Args:
            task: Zero-argument coroutine function

        Returns:
            Whatever the task returns; its exception is raised here and only here
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((task, future))

        if not self._processing:
            self._processing = True
            self._dispatcher = loop.create_task(self._drain())

        return await future

    async def _drain(self):
        try:
            while self._queue:
                task, future = self._queue.popleft()

                if self._last_dispatch is not None:
                    wait_time = self.interval - (self._clock() - self._last_dispatch)
                    if wait_time > 0:
                        logger.debug("Throttle waiting %.3fs before dispatch", wait_time)
                        await self._sleep(wait_time)

                self._last_dispatch = self._clock()
                self.dispatched += 1
                running = asyncio.ensure_future(self._run(task, future))
                self._running.add(running)
                running.add_done_callback(self._running.discard)
        finally:
            self._processing = False

    async def _run(self, task: Task, future: asyncio.Future):
        # The caller may have stopped waiting; the task still runs to completion.
        try:
            if self.task_timeout:
                result = await asyncio.wait_for(task(), self.task_timeout)
            else:
                result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
            else:
                logger.debug("Discarded failure from abandoned task: %r", exc)
        else:
            if not future.done():
                future.set_result(result)

    async def close(self):
        """Wait for the queue to drain and in-flight tasks to settle"""
        if self._dispatcher and not self._dispatcher.done():
            await self._dispatcher
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
