"""
Restart pool and cooperative cancellation.

Independent restarts run inline when there is a single restart or worker,
otherwise across a ProcessPoolExecutor. Each worker receives the
read-only ConstraintModel and returns its best candidate; results are
merged by lowest cost with ties going to the lowest restart index.
"""
import logging
import os
import random
import signal
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ProcessPoolExecutor, wait
from dataclasses import replace
from multiprocessing.managers import SyncManager
from typing import List, Optional

from .cost import CostFunction
from .seeding import RotationSeeder
from .strategies import (
    STOP_CANCELLED,
    STOP_DISABLED,
    STOP_TIMEOUT,
    SearchOutcome,
    create_strategy,
)

logger = logging.getLogger("ShiftOptimizer.search")

POLL_SECONDS = 0.05


class CancellationToken:
    """
    Wall-clock deadline plus a cancel event, polled by the search loop.

    The event may be a SyncManager event so the token can be
    shipped to worker processes.
    """

    def __init__(self, deadline: Optional[float] = None, event=None):
        self.deadline = deadline
        self._event = event if event is not None else threading.Event()

    @classmethod
    def with_timeout(cls, seconds: Optional[float], event=None) -> "CancellationToken":
        deadline = time.time() + seconds if seconds else None
        return cls(deadline, event)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._event.is_set()

    @property
    def deadline_passed(self) -> bool:
        return self.deadline is not None and time.time() >= self.deadline

    def is_cancelled(self) -> bool:
        return self.cancel_requested or self.deadline_passed

    @property
    def reason(self) -> Optional[str]:
        if self.cancel_requested:
            return STOP_CANCELLED
        if self.deadline_passed:
            return STOP_TIMEOUT
        return None


def ignore_interrupts() -> None:
    """Initializer for pool and manager processes."""
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def run_restart(model, restart_index: int, seed: int, token: CancellationToken) -> SearchOutcome:
    """
    One independent restart: seed an assignment set, then search.

    Module-level so that it can run in a worker process.
    """
    rng = random.Random(seed + restart_index)
    initial = RotationSeeder(model, rng, shuffle=restart_index > 0).seed()

    if not model.settings.enabled:
        cost = CostFunction(model).evaluate(initial).total
        return SearchOutcome(initial, cost, 0, STOP_DISABLED, restart_index, seed)

    outcome = create_strategy(model, rng).search(initial, token)
    return replace(outcome, restart_index=restart_index, seed=seed)


def merge_outcomes(outcomes: List[SearchOutcome]) -> SearchOutcome:
    """Lowest cost wins; ties go to the lowest restart index."""
    best = min(outcomes, key=lambda o: (o.cost, o.restart_index))
    interrupted = next((o.stop_reason for o in outcomes if o.interrupted), None)
    return replace(
        best,
        iterations=sum(o.iterations for o in outcomes),
        stop_reason=interrupted or best.stop_reason,
    )


def resolve_workers(requested: Optional[int], restarts: int) -> int:
    return max(1, min(requested or os.cpu_count() or 1, restarts))


def run_search(model, token: Optional[CancellationToken] = None,
               seed: Optional[int] = None, workers: Optional[int] = None) -> SearchOutcome:
    """
    Run every restart and merge the results.

    Args:
        model: ConstraintModel
        token: Cancellation token (a fresh one from the timeout setting if None)
        seed: Base random seed (random if None)
        workers: Worker processes (defaults to the settings, then CPU count)

    Returns:
        The merged SearchOutcome
    """
    settings = model.settings
    token = token or CancellationToken.with_timeout(settings.timeout_seconds)
    if seed is None:
        seed = random.randrange(2 ** 31)

    restarts = settings.restarts if settings.enabled else 1
    pool_size = resolve_workers(workers or settings.workers, restarts)

    if restarts == 1 or pool_size == 1:
        outcomes = [run_restart(model, i, seed, token) for i in range(restarts)]
        return merge_outcomes(outcomes)

    logger.info(f"Running {restarts} restarts on {pool_size} worker processes")
    # Child processes ignore Ctrl+C; they only stop through the shared token
    manager = SyncManager()
    manager.start(ignore_interrupts)
    with manager:
        shared = CancellationToken(token.deadline, manager.Event())
        if token.cancel_requested:
            shared.cancel()
        with ProcessPoolExecutor(max_workers=pool_size, initializer=ignore_interrupts) as pool:
            futures = [pool.submit(run_restart, model, i, seed, shared) for i in range(restarts)]
            pending = set(futures)
            while pending:
                if token.cancel_requested and not shared.cancel_requested:
                    shared.cancel()
                done, pending = wait(pending, timeout=POLL_SECONDS, return_when=FIRST_EXCEPTION)
                for future in done:
                    if future.exception() is not None:
                        shared.cancel()
                        raise future.exception()
            outcomes = [future.result() for future in futures]
    return merge_outcomes(outcomes)
