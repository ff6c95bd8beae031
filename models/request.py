"""
Schedule request models: coverage, generation options and optimization settings.

These are the immutable inputs of one Generate call. Range checks live in
the validate() methods and are run once by the constraint model builder.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, get_args

from .errors import InvalidRequest
from .shift import ShiftType


class SafetyPriority(Enum):
    """How heavily hard-constraint violations weigh against fairness."""
    STRICT = "strict"
    BALANCED = "balanced"
    RELAXED = "relaxed"

    @classmethod
    def from_string(cls, value: str) -> "SafetyPriority":
        try:
            return cls(str(value).lower().strip())
        except ValueError:
            raise InvalidRequest(f"unknown safety priority '{value}'", field="safety_priority")


class SearchStrategyType(Enum):
    """Available metaheuristics."""
    HILL_CLIMBING = "hill_climbing"
    SIMULATED_ANNEALING = "simulated_annealing"
    TABU_SEARCH = "tabu_search"
    GENETIC_ALGORITHM = "genetic_algorithm"

    @classmethod
    def from_string(cls, value: str) -> "SearchStrategyType":
        """Accepts 'SIMULATED_ANNEALING', 'simulated-annealing', 'tabu_search', ..."""
        normalized = str(value).lower().strip().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidRequest(f"unknown search strategy '{value}'", field="strategy")


@dataclass(frozen=True)
class CoverageRequirement:
    """
    Required headcount for one (date, shift type) slot.

    Attributes:
        date: Slot date
        shift_type: Slot shift type
        required_count: Headcount needed (>= 0)
        min_experience_level: Minimum employee level to work this slot
        allow_shortfall: Treat a shortfall as a soft penalty instead of a hard violation
    """
    date: date
    shift_type: ShiftType
    required_count: int
    min_experience_level: Optional[int] = None
    allow_shortfall: bool = False

    @property
    def key(self) -> Tuple[date, ShiftType]:
        return (self.date, self.shift_type)


@dataclass(frozen=True)
class GenerationOptions:
    """Soft-constraint switches for one run."""
    respect_preferences: bool = True
    minimize_consecutive_nights: bool = True
    balance_workload: bool = True
    avoid_dangerous_patterns: bool = True
    enforce_mentorship_pairing: bool = False
    mentorship_priority: int = 5

    def validate(self) -> None:
        if not 1 <= self.mentorship_priority <= 10:
            raise InvalidRequest(
                f"mentorship_priority {self.mentorship_priority} not in 1-10",
                field="mentorship_priority",
            )


@dataclass(frozen=True)
class FairnessTarget:
    """Target Gini coefficient plus the safety priority it is traded against."""
    target_gini: float
    safety_priority: SafetyPriority = SafetyPriority.BALANCED


@dataclass(frozen=True)
class OptimizationSettings:
    """
    Search configuration.

    Attributes:
        enabled: Run the metaheuristic (False = construction heuristic only)
        strategy: Which search strategy to run
        fairness_target: Target Gini coefficient, 0.1-0.5
        safety_priority: Weighting of hard violations
        max_iterations: Outer-iteration budget per restart
        convergence_threshold: Minimum relative improvement over the stall window
        stall_window: Iterations without sufficient improvement before stopping
        timeout_seconds: Wall-clock budget for the whole search
        restarts: Independent restarts merged by lowest cost
        workers: Worker processes for restarts (None = CPU count)
        random_seed: Seed for reproducible runs
    """
    enabled: bool = True
    strategy: SearchStrategyType = SearchStrategyType.SIMULATED_ANNEALING
    fairness_target: float = 0.3
    safety_priority: SafetyPriority = SafetyPriority.BALANCED
    max_iterations: int = 500
    convergence_threshold: float = 0.001
    stall_window: int = 50
    timeout_seconds: Optional[float] = None
    restarts: int = 1
    workers: Optional[int] = None
    random_seed: Optional[int] = None

    @property
    def fairness(self) -> FairnessTarget:
        return FairnessTarget(self.fairness_target, self.safety_priority)

    def validate(self) -> None:
        if not 0.1 <= self.fairness_target <= 0.5:
            raise InvalidRequest(
                f"fairness_target {self.fairness_target} not in [0.1, 0.5]",
                field="fairness_target",
            )
        if self.max_iterations < 0:
            raise InvalidRequest("max_iterations must be >= 0", field="max_iterations")
        if self.convergence_threshold < 0:
            raise InvalidRequest("convergence_threshold must be >= 0", field="convergence_threshold")
        if self.stall_window < 1:
            raise InvalidRequest("stall_window must be >= 1", field="stall_window")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise InvalidRequest("timeout_seconds must be positive", field="timeout_seconds")
        if self.restarts < 1:
            raise InvalidRequest("restarts must be >= 1", field="restarts")
        if self.workers is not None and self.workers < 1:
            raise InvalidRequest("workers must be >= 1", field="workers")


@dataclass(frozen=True)
class LegalLimits:
    """Hard legal limits a schedule must respect."""
    min_rest_hours: float = 11.0
    max_consecutive_nights: int = 3
    max_weekly_hours: float = 52.0
    min_staff_per_shift: int = 1

    def validate(self) -> None:
        if self.min_rest_hours <= 0:
            raise InvalidRequest("min_rest_hours must be positive", field="min_rest_hours")
        if not 2 <= self.max_consecutive_nights <= 5:
            raise InvalidRequest(
                f"max_consecutive_nights {self.max_consecutive_nights} not in 2-5",
                field="max_consecutive_nights",
            )
        if not 40 <= self.max_weekly_hours <= 68:
            raise InvalidRequest(
                f"max_weekly_hours {self.max_weekly_hours} not in 40-68",
                field="max_weekly_hours",
            )
        if self.min_staff_per_shift < 1:
            raise InvalidRequest("min_staff_per_shift must be >= 1", field="min_staff_per_shift")


@dataclass
class ScheduleRequest:
    """
    Input of the Generate operation.

    Employees are not part of the request; they come from a directory
    snapshot passed alongside it.
    """
    schedule_name: str
    start_date: date
    end_date: date
    coverage_requirements: List[CoverageRequirement] = field(default_factory=list)
    team_ids: Optional[List[str]] = None
    generation_options: GenerationOptions = field(default_factory=GenerationOptions)
    optimization_settings: OptimizationSettings = field(default_factory=OptimizationSettings)
    legal_limits: LegalLimits = field(default_factory=LegalLimits)
    shift_times: Optional[Dict[ShiftType, Tuple[time, time]]] = None

    def dates(self) -> List[date]:
        """All dates in the range (inclusive); empty if end precedes start."""
        days = (self.end_date - self.start_date).days + 1
        return [self.start_date + timedelta(days=i) for i in range(max(0, days))]

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ScheduleRequest":
        """
        Build a request from the JSON payload shape:

            {
              "schedule_name": "...",
              "date_range": {"start_date": "2025-03-03", "end_date": "2025-03-09"},
              "team_ids": ["A"],
              "coverage_requirements": [
                  {"date": "...", "shift_type": "night", "required_count": 3,
                   "minimum_experience_level": 2}
              ],
              "generation_options": {...},
              "optimization_settings": {"strategy": "SIMULATED_ANNEALING", ...},
              "legal_limits": {...}
            }

        Top-level start_date/end_date are accepted as well as date_range.
        """
        try:
            date_range = payload.get("date_range", payload)
            start = _parse_date(date_range["start_date"])
            end = _parse_date(date_range["end_date"])
            coverage = [
                CoverageRequirement(
                    date=_parse_date(item["date"]),
                    shift_type=ShiftType.from_code(item["shift_type"]),
                    required_count=int(item["required_count"]),
                    min_experience_level=_optional_int(
                        item.get("min_experience_level", item.get("minimum_experience_level"))
                    ),
                    allow_shortfall=bool(item.get("allow_shortfall", False)),
                )
                for item in payload.get("coverage_requirements", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRequest(f"malformed request payload: {e}") from e

        options = _section(GenerationOptions, payload.get("generation_options", {}))

        settings_data = dict(payload.get("optimization_settings", payload.get("csp_optimization", {})))
        if "strategy" in settings_data:
            settings_data["strategy"] = SearchStrategyType.from_string(settings_data["strategy"])
        if "safety_priority" in settings_data:
            settings_data["safety_priority"] = SafetyPriority.from_string(settings_data["safety_priority"])
        settings = _section(OptimizationSettings, settings_data)

        limits = _section(LegalLimits, payload.get("legal_limits", {}))

        return cls(
            schedule_name=payload.get("schedule_name", "Untitled schedule"),
            start_date=start,
            end_date=end,
            coverage_requirements=coverage,
            team_ids=payload.get("team_ids") or None,
            generation_options=options,
            optimization_settings=settings,
            legal_limits=limits,
        )


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "1"):
        return True
    if text in ("false", "no", "0"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


_CASTS = {bool: _as_bool, int: int, float: float}


def _section(cls, data: Any):
    """Build an options dataclass from JSON, casting scalar fields to their declared types.

    Unknown keys are ignored.
    """
    if not isinstance(data, dict):
        raise InvalidRequest(f"expected an object, got {data!r}", field=cls.__name__)
    values = {}
    for name, spec in cls.__dataclass_fields__.items():
        if name not in data:
            continue
        value = data[name]
        args = get_args(spec.type)
        optional = type(None) in args
        target = next((a for a in args if a is not type(None)), spec.type)
        if value is None:
            if not optional:
                raise InvalidRequest("must not be null", field=name)
        elif target in _CASTS:
            try:
                value = _CASTS[target](value)
            except (TypeError, ValueError):
                raise InvalidRequest(f"invalid value {value!r}", field=name) from None
        values[name] = value
    return cls(**values)
