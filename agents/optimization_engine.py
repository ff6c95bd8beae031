"""
Optimization Engine Agent - Owns the run state machine and the search.

States: Pending → Modeling → Searching → Validating → Finalizing →
{Completed | Infeasible | TimedOut}. The engine is the only writer of a
ScheduleRun; every transition is broadcast as a STATUS message.
"""
import random
from typing import Optional

from .base_agent import BaseAgent
from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from config import config
from models.constraints import ValidatorReport
from models.request import ScheduleRequest
from models.run import RunState, ScheduleRun
from optimizer.cost import CostBreakdown, CostFunction
from optimizer.search import CancellationToken, resolve_workers, run_search
from optimizer.strategies import STOP_CANCELLED, STOP_TIMEOUT, SearchOutcome
from benchmark import profile_function


class OptimizationEngineAgent(BaseAgent):
    """
    Agent responsible for running the metaheuristic search.

    Responsibilities:
    - Create and advance the ScheduleRun
    - Run the configured strategy across restarts
    - Honour the timeout and cooperative cancellation
    - Select the terminal state
    """

    def __init__(self, message_bus: MessageBus, workers: Optional[int] = None):
        super().__init__("OptimizationEngine", message_bus)
        self.workers = workers if workers is not None else config.workers
        self._token: Optional[CancellationToken] = None
        self._cancel_requested = False
        self.last_outcome: Optional[SearchOutcome] = None

    # ==================== Run lifecycle ====================

    def start_run(self, request: ScheduleRequest) -> ScheduleRun:
        """Create a run and move it to Modeling."""
        self._cancel_requested = False
        self._token = None
        run = ScheduleRun(request)
        self.log(f"Run {run.run_id} created for '{request.schedule_name}'", "debug")
        self._advance(run, RunState.MODELING)
        return run

    def _advance(self, run: ScheduleRun, state: RunState) -> None:
        run.transition(state)
        self.broadcast(
            {"run_id": run.run_id, "state": state.value},
            MessageType.STATUS,
            correlation_id=run.run_id,
        )

    @profile_function
    def execute(self, run: ScheduleRun, model, **kwargs) -> SearchOutcome:
        """
        Search for the best assignment set.

        Moves the run Modeling → Searching → Validating and records the
        best candidate and iteration count on it.

        Args:
            run: Run in the Modeling state
            model: The run's ConstraintModel

        Returns:
            The merged SearchOutcome
        """
        settings = model.settings
        run.model = model
        self._advance(run, RunState.SEARCHING)

        self._token = CancellationToken.with_timeout(settings.timeout_seconds)
        if self._cancel_requested:
            self._token.cancel()

        seed = settings.random_seed if settings.random_seed is not None else random.randrange(2 ** 31)
        workers = resolve_workers(settings.workers or self.workers,
                                  settings.restarts if settings.enabled else 1)
        self.set_data("seed", seed)
        self.set_data("workers", workers)

        if settings.enabled:
            self.log(
                f"🔎 {settings.strategy.value}: up to {settings.max_iterations} iterations, "
                f"{settings.restarts} restart(s) on {workers} worker(s), seed {seed}"
            )
        else:
            self.log("Optimization disabled - using the rotation seed as the result")

        outcome = run_search(model, self._token, seed=seed, workers=workers)
        self.last_outcome = outcome

        run.record_best(outcome.assignment_set, outcome.cost)
        run.record_iterations(outcome.iterations, outcome.stop_reason)
        self.log(
            f"Search finished: cost {outcome.cost:.2f} after {outcome.iterations} iterations "
            f"({outcome.stop_reason})",
            "success",
        )

        self._advance(run, RunState.VALIDATING)
        return outcome

    def finalize(self, run: ScheduleRun, report: ValidatorReport) -> RunState:
        """
        Select and enter the terminal state.

        Cancelled or timed out → TimedOut; otherwise zero hard violations
        → Completed, else Infeasible.
        """
        self._advance(run, RunState.FINALIZING)
        if run.stop_reason in (STOP_TIMEOUT, STOP_CANCELLED):
            terminal = RunState.TIMED_OUT
        elif report.is_feasible:
            terminal = RunState.COMPLETED
        else:
            terminal = RunState.INFEASIBLE
        self._advance(run, terminal)

        level = "success" if terminal == RunState.COMPLETED else "warning"
        self.log(f"Run {run.run_id} → {terminal.value} in {run.elapsed_seconds:.2f}s", level)
        return terminal

    def cost_breakdown(self, model, run: ScheduleRun) -> CostBreakdown:
        """Full cost breakdown of the run's best assignment set."""
        return CostFunction(model).evaluate(run.best)

    # ==================== Cancellation ====================

    def cancel(self) -> None:
        """Request cooperative cancellation of the current search."""
        self._cancel_requested = True
        if self._token is not None:
            self._token.cancel()
        self.log("Cancellation requested", "warning")

    def _on_cancel(self, message: Message) -> None:
        self.cancel()
