"""De-duplicating, rate-limited work queue for reconcile keys."""
import asyncio
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Set, Tuple


class ExponentialBackoff:
    """Per-key exponential backoff, capped."""

    def __init__(self, base: float = 0.5, cap: float = 300.0):
        self.base = base
        self.cap = cap
        self._failures: Dict[str, int] = {}

    def when(self, key: str) -> float:
        """Record a failure of `key` and return how long to wait before retrying it."""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        return min(self.base * (2 ** failures), self.cap)

    def forget(self, key: str) -> None:
        self._failures.pop(key, None)

    def num_requeues(self, key: str) -> int:
        return self._failures.get(key, 0)


class WorkQueue:
    """
    Work queue of reconcile keys.

    Adding a key that is already pending is a no-op, so bursts of events
    collapse into one entry. A key handed out by `get` is not handed out
    again until `done` is called for it; if it was re-added meanwhile it is
    queued again at that point. This gives single-flight processing per key
    with any number of consumers.

    Must be used from the event loop that runs the consumers.
    """

    def __init__(self, backoff: Optional[ExponentialBackoff] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.backoff = backoff or ExponentialBackoff()
        self._clock = clock
        self._queue: Deque[str] = deque()
        self._dirty: Set[str] = set()
        self._processing: Set[str] = set()
        self._waiters: Deque[asyncio.Future] = deque()
        self._timers: Dict[str, Tuple[float, asyncio.TimerHandle]] = {}
        self._shutting_down = False
        self._progress_at = clock()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def is_processing(self, key: str) -> bool:
        return key in self._processing

    def add(self, key: str) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._push(key)

    def _push(self, key: str) -> None:
        if not self._queue:
            self._progress_at = self._clock()
        self._queue.append(key)
        self._wake_one()

    def _wake_one(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

    async def get(self) -> Optional[str]:
        """Wait for a key; returns None once the queue is shut down and empty."""
        while not self._queue and not self._shutting_down:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled():
                    # Pass the wakeup on to another consumer
                    self._wake_one()
                raise
        if not self._queue:
            return None
        key = self._queue.popleft()
        self._progress_at = self._clock()
        self._processing.add(key)
        self._dirty.discard(key)
        return key

    def done(self, key: str) -> None:
        self._processing.discard(key)
        if key in self._dirty:
            self._push(key)

    def add_after(self, key: str, delay: float) -> None:
        """Add `key` once `delay` seconds have passed; the earliest pending deadline wins."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return
        loop = asyncio.get_running_loop()
        deadline = loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing[0] <= deadline:
                return
            existing[1].cancel()
        self._timers[key] = (deadline, loop.call_later(delay, self._fire, key))

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        self.add(key)

    def add_rate_limited(self, key: str) -> float:
        delay = self.backoff.when(key)
        self.add_after(key, delay)
        return delay

    def forget(self, key: str) -> None:
        self.backoff.forget(key)

    def num_requeues(self, key: str) -> int:
        return self.backoff.num_requeues(key)

    def pending_after(self, key: str) -> bool:
        return key in self._timers

    def stalled_for(self) -> float:
        """Seconds the queue has held work without any of it being picked up."""
        if not self._queue:
            return 0.0
        return self._clock() - self._progress_at

    def shut_down(self) -> None:
        self._shutting_down = True
        for _, handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
