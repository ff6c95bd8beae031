"""
Schedule run lifecycle and the result bundle handed to external collaborators.
"""
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .constraints import ValidatorReport
from .errors import InternalInconsistency
from .reports import FairnessReport, PatternSafetyReport
from .request import ScheduleRequest
from .schedule import Assignment, AssignmentSet


class RunState(Enum):
    """Optimization run lifecycle states."""
    PENDING = "pending"
    MODELING = "modeling"
    SEARCHING = "searching"
    VALIDATING = "validating"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    INFEASIBLE = "infeasible"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = {RunState.COMPLETED, RunState.INFEASIBLE, RunState.TIMED_OUT}

ALLOWED_TRANSITIONS = {
    RunState.PENDING: {RunState.MODELING},
    RunState.MODELING: {RunState.SEARCHING},
    RunState.SEARCHING: {RunState.VALIDATING},
    RunState.VALIDATING: {RunState.FINALIZING},
    RunState.FINALIZING: TERMINAL_STATES,
}


class ScheduleRun:
    """
    Aggregate root of one optimization run.

    Holds the request, the best assignment set found so far, its cost, the
    iteration count and the run state. It is mutated only by the
    optimization engine and becomes read-only once a terminal state is
    reached.
    """

    def __init__(self, request: ScheduleRequest):
        self.run_id = str(uuid.uuid4())[:8]
        self.request = request
        self.state = RunState.PENDING
        self.model: Any = None
        self.best: Optional[AssignmentSet] = None
        self.best_cost = float("inf")
        self.iterations = 0
        self.stop_reason: Optional[str] = None
        self.started_at = time.perf_counter()
        self.finished_at: Optional[float] = None
        self.history: List[Tuple[RunState, datetime]] = [(self.state, datetime.now())]

    @property
    def is_finalized(self) -> bool:
        return self.state.is_terminal

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.perf_counter()
        return end - self.started_at

    def _ensure_mutable(self) -> None:
        if self.is_finalized:
            raise InternalInconsistency(f"run {self.run_id} is finalized ({self.state.value})")

    def transition(self, new_state: RunState) -> None:
        """
        Move to a new state.

        Raises:
            InternalInconsistency: On an illegal transition or a finalized run
        """
        self._ensure_mutable()
        if new_state not in ALLOWED_TRANSITIONS.get(self.state, set()):
            raise InternalInconsistency(
                f"illegal run transition {self.state.value} → {new_state.value}"
            )
        self.state = new_state
        self.history.append((new_state, datetime.now()))
        if new_state.is_terminal:
            self.finished_at = time.perf_counter()

    def record_best(self, assignment_set: AssignmentSet, cost: float) -> None:
        self._ensure_mutable()
        self.best = assignment_set
        self.best_cost = cost

    def record_iterations(self, iterations: int, stop_reason: Optional[str] = None) -> None:
        self._ensure_mutable()
        self.iterations = iterations
        if stop_reason:
            self.stop_reason = stop_reason

    def state_history(self) -> List[str]:
        return [state.value for state, _ in self.history]

    def __repr__(self) -> str:
        return f"<ScheduleRun(id='{self.run_id}', state={self.state.value}, cost={self.best_cost:.2f})>"


@dataclass
class RunMetadata:
    """Run metadata reported with every result."""
    run_id: str
    schedule_name: str
    strategy: str
    state: RunState
    iterations: int
    elapsed_seconds: float
    final_cost: float
    cost_breakdown: Dict[str, float] = field(default_factory=dict)
    restarts: int = 1
    workers: int = 1
    random_seed: Optional[int] = None
    stop_reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "schedule_name": self.schedule_name,
            "strategy": self.strategy,
            "state": self.state.value,
            "iterations": self.iterations,
            "elapsed_seconds": round(self.elapsed_seconds, 4),
            "final_cost": round(self.final_cost, 4),
            "cost_breakdown": {k: round(v, 4) for k, v in self.cost_breakdown.items()},
            "restarts": self.restarts,
            "workers": self.workers,
            "random_seed": self.random_seed,
            "stop_reason": self.stop_reason,
        }


@dataclass
class ScheduleRunResult:
    """
    The sole artifact handed to persistence, presentation and notification.

    Attributes:
        assignment_set: Final assignment set
        fairness_report: Fairness evaluator output
        pattern_safety_report: Pattern safety analyzer output
        validator_report: Hard violations and soft warnings
        run_metadata: Strategy, iterations, timing, cost
        explanations: Human-readable outcome explanation
    """
    assignment_set: AssignmentSet
    fairness_report: FairnessReport
    pattern_safety_report: PatternSafetyReport
    validator_report: ValidatorReport
    run_metadata: RunMetadata
    explanations: List[str] = field(default_factory=list)

    @property
    def assignments(self) -> List[Assignment]:
        return self.assignment_set.assignments()

    @property
    def state(self) -> RunState:
        return self.run_metadata.state

    @property
    def is_feasible(self) -> bool:
        return self.validator_report.is_feasible

    def to_dict(self) -> dict:
        """JSON-serializable form."""
        return {
            "assignments": [
                {
                    "employee_id": a.employee_id,
                    "date": a.slot.date.isoformat(),
                    "shift_type": a.slot.shift_type.value,
                    "start_time": a.slot.start_time.strftime("%H:%M"),
                    "end_time": a.slot.end_time.strftime("%H:%M"),
                    "hours": a.slot.hours,
                }
                for a in self.assignments
            ],
            "fairness_report": self.fairness_report.to_dict(),
            "pattern_safety_report": self.pattern_safety_report.to_dict(),
            "validator_report": self.validator_report.to_dict(),
            "run_metadata": self.run_metadata.to_dict(),
            "explanations": list(self.explanations),
        }
