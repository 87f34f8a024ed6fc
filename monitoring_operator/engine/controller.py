"""Worker pool that drains the work queue and runs reconciles."""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from loguru import logger

from .. import metrics
from ..constants import CONTROLLER_NAME, STALL_THRESHOLD_SECONDS
from ..errors import ConflictError
from ..models.status import Phase
from .workqueue import WorkQueue


@dataclass
class ReconcileResult:
    """Outcome of a reconcile pass that did not raise."""

    requeue_after: Optional[float] = None
    phase: Optional[Phase] = None
    # The instance no longer exists
    gone: bool = False


@dataclass
class ReconcileState:
    """In-memory bookkeeping for one instance key. Never persisted."""

    phase: Optional[Phase] = None
    in_flight: bool = False
    retries: int = 0
    next_eligible: Optional[float] = None


class Controller:
    """
    Runs `reconcile(key)` for queued keys on a pool of workers.

    Each pass runs in a thread so blocking cluster calls never stall the
    event loop. Conflicts are retried immediately without backoff, other
    errors are retried with per-key exponential backoff, and a clean pass
    resets the backoff.
    """

    def __init__(self, reconcile: Callable[[str], ReconcileResult], workers: int = 1,
                 queue: Optional[WorkQueue] = None, stall_threshold: float = STALL_THRESHOLD_SECONDS):
        self.reconcile = reconcile
        self.workers = workers
        self.queue = queue or WorkQueue()
        self.stall_threshold = stall_threshold
        self.states: Dict[str, ReconcileState] = {}
        self._tasks: List[asyncio.Task] = []
        self.log = logger.bind(controller=CONTROLLER_NAME)

    def enqueue(self, key: str) -> None:
        self.queue.add(key)
        metrics.queue_depth.set(len(self.queue))

    async def start(self) -> None:
        if self._tasks:
            return
        self.log.info(f"Starting {self.workers} worker(s)")
        self._tasks = [asyncio.create_task(self._worker(i)) for i in range(self.workers)]

    async def stop(self, grace: float) -> None:
        """Stop accepting work, let in-flight keys finish within `grace`, then cancel."""
        self.queue.shut_down()
        if not self._tasks:
            return
        done, pending = await asyncio.wait(self._tasks, timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            self.log.warning(f"Cancelled {len(pending)} worker(s) still running after {grace:g}s")
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []
        self.log.info("Workers stopped")

    def healthy(self) -> bool:
        """False when queued work has not been picked up for too long."""
        return self.queue.stalled_for() < self.stall_threshold

    async def _worker(self, index: int) -> None:
        while True:
            key = await self.queue.get()
            if key is None:
                return
            metrics.queue_depth.set(len(self.queue))
            await self.process(key)

    async def process(self, key: str) -> None:
        state = self.states.setdefault(key, ReconcileState())
        state.in_flight = True
        log = self.log.bind(key=key)
        started = time.monotonic()
        try:
            result = await asyncio.to_thread(self.reconcile, key)
        except ConflictError as e:
            log.info(f"Conflict reconciling {key}, retrying: {e}")
            metrics.reconcile_total.labels(result="conflict").inc()
            self.queue.add(key)
        except Exception as e:
            delay = self.queue.add_rate_limited(key)
            state.retries = self.queue.num_requeues(key)
            state.next_eligible = time.monotonic() + delay
            log.error(f"Reconcile of {key} failed (attempt {state.retries}), retrying in {delay:.1f}s: {e}")
            metrics.reconcile_total.labels(result="error").inc()
        else:
            self.queue.forget(key)
            state.retries = 0
            state.next_eligible = None
            if result is not None and result.gone:
                self.states.pop(key, None)
            elif result is not None:
                state.phase = result.phase or state.phase
                if result.requeue_after:
                    self.queue.add_after(key, result.requeue_after)
                    state.next_eligible = time.monotonic() + result.requeue_after
            metrics.reconcile_total.labels(result="success").inc()
        finally:
            state.in_flight = False
            self.queue.done(key)
            metrics.reconcile_duration_seconds.observe(time.monotonic() - started)
            metrics.queue_depth.set(len(self.queue))
