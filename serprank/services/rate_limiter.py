import asyncio
import math
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from serprank.config.settings import get_settings

log = structlog.get_logger()

T = TypeVar("T")

SUCCESS_STREAK = 5
FAILURE_STREAK = 2
RATE_INCREASE = 1.2
RATE_DECREASE = 0.5
SLOW_TASK_DAMPING = 0.8


@dataclass
class _QueuedTask:
    fn: Callable[[], Awaitable[Any]]
    is_success: Callable[[Any], bool] | None
    future: asyncio.Future


class AdaptiveScheduler:
    """FIFO queue that releases work in adaptively sized, rate-limited batches.

    One instance is shared by every caller in the process, so all outbound
    fetches are throttled together. Batch size and target rate grow after a
    streak of successes and shrink after a streak of failures.
    """

    def __init__(
        self,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.min_batch_size = settings.scheduler_min_batch_size
        self.max_batch_size = settings.scheduler_max_batch_size
        self.min_rate = settings.scheduler_min_rate
        self.max_rate = settings.scheduler_max_rate
        self.min_delay_ms = settings.scheduler_min_delay_ms
        self.max_delay_ms = settings.scheduler_max_delay_ms
        self.slow_task_s = settings.scheduler_slow_task_s

        self.batch_size = settings.scheduler_initial_batch_size
        self.target_rate = settings.scheduler_initial_rate
        self.consecutive_successes = 0
        self.consecutive_failures = 0

        self._sleep = sleep
        self._clock = clock
        self._queue: deque[_QueuedTask] = deque()
        self._worker: asyncio.Task | None = None
        self.log = log.bind(component="scheduler")

    @property
    def pending(self) -> int:
        return len(self._queue)

    def schedule(
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        is_success: Callable[[T], bool] | None = None,
    ) -> asyncio.Future[T]:
        """Enqueue ``fn`` and return a future for its result.

        A task counts as failed when it raises, or when ``is_success``
        returns False for its result.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._queue.append(_QueuedTask(fn=fn, is_success=is_success, future=future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._process_queue())
        return future

    async def join(self) -> None:
        """Wait until the queue has drained."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    def record_outcome(self, success: bool) -> None:
        if success:
            self.consecutive_successes += 1
            self.consecutive_failures = 0
            if self.consecutive_successes >= SUCCESS_STREAK:
                self.batch_size = min(self.batch_size + 1, self.max_batch_size)
                self.target_rate = min(self.target_rate * RATE_INCREASE, self.max_rate)
                self.consecutive_successes = 0
                self._log_adjustment("speed_up")
        else:
            self.consecutive_failures += 1
            self.consecutive_successes = 0
            if self.consecutive_failures >= FAILURE_STREAK:
                self.batch_size = max(self.batch_size - 1, self.min_batch_size)
                self.target_rate = max(self.target_rate * RATE_DECREASE, self.min_rate)
                self.consecutive_failures = 0
                self._log_adjustment("slow_down")

    def record_duration(self, duration_s: float) -> None:
        if duration_s > self.slow_task_s:
            self.target_rate = max(self.target_rate * SLOW_TASK_DAMPING, self.min_rate)
            self._log_adjustment("slow_task", duration_s=round(duration_s, 2))

    def delay_ms(self, batch_len: int) -> int:
        """Pause after a batch of ``batch_len`` tasks at the current target rate."""
        delay = math.ceil(batch_len / self.target_rate) * 1000
        return min(max(delay, self.min_delay_ms), self.max_delay_ms)

    async def _process_queue(self) -> None:
        while self._queue:
            batch = [self._queue.popleft() for _ in range(min(self.batch_size, len(self._queue)))]
            batch = [task for task in batch if not task.future.cancelled()]
            if not batch:
                continue

            await asyncio.gather(*(self._run(task) for task in batch))

            delay = self.delay_ms(len(batch))
            self.log.debug(
                "scheduler_batch_done",
                batch=len(batch),
                pending=len(self._queue),
                delay_ms=delay,
            )
            await self._sleep(delay / 1000)

    async def _run(self, task: _QueuedTask) -> None:
        start = self._clock()
        try:
            result = await task.fn()
            success = task.is_success(result) if task.is_success is not None else True
        except Exception as e:
            self.record_outcome(False)
            self.record_duration(self._clock() - start)
            if not task.future.cancelled():
                task.future.set_exception(e)
            return

        self.record_outcome(success)
        self.record_duration(self._clock() - start)
        if not task.future.cancelled():
            task.future.set_result(result)

    def _log_adjustment(self, reason: str, **extra: Any) -> None:
        self.log.info(
            "scheduler_adjusted",
            reason=reason,
            batch_size=self.batch_size,
            target_rate=round(self.target_rate, 4),
            **extra,
        )
