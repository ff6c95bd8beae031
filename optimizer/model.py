"""
Constraint model builder.

Turns a ScheduleRequest plus an employee directory snapshot into a
ConstraintModel: the normalized, read-only view of the problem that the
validator, evaluators and search strategies work against. Building is a
pure, deterministic transformation; every malformed input is rejected here
with InvalidRequest before any search state exists.
"""
import copy
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from config import OptimizerConfig, SchedulingConfig, config as app_config
from models.constraints import (
    Constraint,
    ConstraintType,
    DangerousPatternRule,
    PatternType,
    Severity,
)
from models.employee import Employee
from models.errors import InternalInconsistency, InvalidRequest
from models.request import (
    CoverageRequirement,
    GenerationOptions,
    LegalLimits,
    OptimizationSettings,
    ScheduleRequest,
)
from models.shift import ShiftSlot, ShiftType


def default_pattern_rules(limits: LegalLimits,
                          scheduling: SchedulingConfig) -> List[DangerousPatternRule]:
    """The dangerous-pattern rules evaluated for every run."""
    return [
        DangerousPatternRule(
            pattern=PatternType.DAY_NIGHT_OFF,
            name="Day → Night → Off",
            severity=Severity.CRITICAL,
            penalty=25.0,
            description="Day shift followed by a night shift the next calendar day",
        ),
        DangerousPatternRule(
            pattern=PatternType.CONSECUTIVE_NIGHTS,
            name="Consecutive nights",
            severity=Severity.CRITICAL,
            penalty=25.0,
            description=f"More than {limits.max_consecutive_nights} night shifts in a row",
        ),
        DangerousPatternRule(
            pattern=PatternType.INSUFFICIENT_REST,
            name="Insufficient rest",
            severity=Severity.HIGH,
            penalty=15.0,
            description=f"Less than {limits.min_rest_hours:g}h between shifts",
        ),
        DangerousPatternRule(
            pattern=PatternType.EXCESSIVE_CHANGES,
            name="Excessive shift changes",
            severity=Severity.HIGH,
            penalty=12.0,
            description=(
                f"More than {scheduling.max_shift_changes_per_week} shift-type "
                f"changes within 7 days"
            ),
        ),
        DangerousPatternRule(
            pattern=PatternType.WEEKEND_OVERLOAD,
            name="Weekend overload",
            severity=Severity.MEDIUM,
            penalty=8.0,
            description=f"Working {scheduling.weekend_overload_run}+ consecutive weekends",
        ),
        DangerousPatternRule(
            pattern=PatternType.CUMULATIVE_FATIGUE,
            name="Cumulative fatigue",
            severity=Severity.MEDIUM,
            penalty=6.0,
            description=(
                f"Weekly hours above {scheduling.standard_weekly_hours:g}h or "
                f"{scheduling.fatigue_streak_days}+ working days in a row"
            ),
        ),
    ]


@dataclass(frozen=True)
class SoftWeights:
    """Cost weights for one run (zero = term disabled)."""
    hard: float
    fairness: float
    safety: float
    preference: float
    night_cluster: float
    mentorship: float
    overstaffing: float
    shortfall: float


@dataclass
class ConstraintModel:
    """
    Normalized, read-only problem definition.

    Attributes:
        schedule_name: Name of the schedule being generated
        dates: Every date in the range, ascending
        employees: Roster snapshot, sorted by id
        slots: Slots with a coverage requirement, in (date, shift) order
        requirements: Coverage requirement per slot
        required: Effective required headcount per slot
        eligible: Employees eligible for each slot, sorted by id
        hard_constraints: Hard constraints in force
        weights: Cost weights
        pattern_rules: Dangerous-pattern rules to evaluate
        limits: Legal limits
        options: Generation options
        settings: Optimization settings
        mentor_pairs: (mentor_id, mentee_id) pairs inside the roster
        scheduling: Fatigue thresholds and request bounds
        tuning: Search tuning parameters
    """
    schedule_name: str
    dates: List[date]
    employees: List[Employee]
    slots: List[ShiftSlot]
    requirements: Dict[ShiftSlot, CoverageRequirement]
    required: Dict[ShiftSlot, int]
    eligible: Dict[ShiftSlot, Tuple[str, ...]]
    hard_constraints: List[Constraint]
    weights: SoftWeights
    pattern_rules: List[DangerousPatternRule]
    limits: LegalLimits
    options: GenerationOptions
    settings: OptimizationSettings
    mentor_pairs: List[Tuple[str, str]] = field(default_factory=list)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    tuning: OptimizerConfig = field(default_factory=OptimizerConfig)

    def __post_init__(self):
        self.employee_index: Dict[str, Employee] = {e.id: e for e in self.employees}
        self.slot_index: Dict[Tuple[date, ShiftType], ShiftSlot] = {s.key: s for s in self.slots}
        self._eligible_sets: Dict[ShiftSlot, FrozenSet[str]] = {
            slot: frozenset(ids) for slot, ids in self.eligible.items()
        }
        self._slot_set = frozenset(self.slots)
        self.date_index: Dict[date, int] = {d: i for i, d in enumerate(self.dates)}
        self.mentor_of: Dict[str, str] = {mentee: mentor for mentor, mentee in self.mentor_pairs}
        self.mentees_of: Dict[str, List[str]] = {}
        for mentor, mentee in self.mentor_pairs:
            self.mentees_of.setdefault(mentor, []).append(mentee)

    @property
    def start_date(self) -> date:
        return self.dates[0]

    @property
    def employee_ids(self) -> List[str]:
        return [e.id for e in self.employees]

    def employee(self, employee_id: str) -> Employee:
        try:
            return self.employee_index[employee_id]
        except KeyError:
            raise InternalInconsistency(f"unknown employee '{employee_id}'") from None

    def has_employee(self, employee_id: str) -> bool:
        return employee_id in self.employee_index

    def has_slot(self, slot: ShiftSlot) -> bool:
        return slot in self._slot_set

    def slot_for(self, shift_date: date, shift_type: ShiftType) -> Optional[ShiftSlot]:
        return self.slot_index.get((shift_date, shift_type))

    def slots_on(self, shift_date: date) -> List[ShiftSlot]:
        return [
            self.slot_index[(shift_date, t)]
            for t in ShiftType
            if (shift_date, t) in self.slot_index
        ]

    def is_eligible(self, employee_id: str, slot: ShiftSlot) -> bool:
        return employee_id in self._eligible_sets.get(slot, frozenset())

    def week_index(self, shift_date: date) -> int:
        """7-day block index counted from the first date of the range."""
        return (shift_date - self.start_date).days // 7

    def demanded_shift_types(self) -> List[ShiftType]:
        """Shift types with a positive requirement somewhere in the range."""
        present = {slot.shift_type for slot, count in self.required.items() if count > 0}
        return [t for t in ShiftType if t in present]

    def partners_of(self, employee_id: str) -> List[str]:
        """Employees whose mentorship term depends on this employee's schedule."""
        partners = list(self.mentees_of.get(employee_id, []))
        mentor = self.mentor_of.get(employee_id)
        if mentor:
            partners.append(mentor)
        return partners

    def summary(self) -> dict:
        return {
            "dates": len(self.dates),
            "employees": len(self.employees),
            "slots": len(self.slots),
            "required_heads": sum(self.required.values()),
            "hard_constraints": len(self.hard_constraints),
            "pattern_rules": len([r for r in self.pattern_rules if r.enabled]),
            "mentor_pairs": len(self.mentor_pairs),
        }


class ConstraintModelBuilder:
    """Builds ConstraintModels from requests. Stateless and deterministic."""

    def __init__(self,
                 scheduling: Optional[SchedulingConfig] = None,
                 tuning: Optional[OptimizerConfig] = None):
        self.scheduling = scheduling or app_config.scheduling
        self.tuning = tuning or app_config.optimizer

    def build(self, request: ScheduleRequest, employees: Sequence[Employee]) -> ConstraintModel:
        """
        Build the constraint model for a request.

        Args:
            request: The schedule request
            employees: Employee directory snapshot

        Returns:
            ConstraintModel

        Raises:
            InvalidRequest: If the request cannot be modeled
        """
        options = request.generation_options
        settings = request.optimization_settings
        limits = request.legal_limits
        options.validate()
        settings.validate()
        limits.validate()

        dates = request.dates()
        if not dates:
            raise InvalidRequest(
                f"empty date range {request.start_date} to {request.end_date}",
                field="date_range",
            )
        if len(dates) > self.scheduling.max_range_days:
            raise InvalidRequest(
                f"date range of {len(dates)} days exceeds {self.scheduling.max_range_days}",
                field="date_range",
            )
        if not request.coverage_requirements:
            raise InvalidRequest("no coverage requirements", field="coverage_requirements")

        roster = self._snapshot_roster(request, employees)
        slots, requirements, required = self._build_slots(request, dates, limits, len(roster))
        eligible = {
            slot: tuple(
                e.id for e in roster
                if e.is_eligible(slot, requirements[slot].min_experience_level)
            )
            for slot in slots
        }
        mentor_pairs = self._mentor_pairs(roster)

        return ConstraintModel(
            schedule_name=request.schedule_name,
            dates=dates,
            employees=roster,
            slots=slots,
            requirements=requirements,
            required=required,
            eligible=eligible,
            hard_constraints=self._hard_constraints(limits, options),
            weights=self._weights(options, settings),
            pattern_rules=default_pattern_rules(limits, self.scheduling),
            limits=limits,
            options=options,
            settings=settings,
            mentor_pairs=mentor_pairs,
            scheduling=self.scheduling,
            tuning=self.tuning,
        )

    def _snapshot_roster(self, request: ScheduleRequest,
                         employees: Sequence[Employee]) -> List[Employee]:
        """Filter by team and deep-copy so the run reads a consistent snapshot."""
        seen = set()
        for employee in employees:
            if employee.id in seen:
                raise InvalidRequest(f"duplicate employee id '{employee.id}'", field="employees")
            seen.add(employee.id)
            if employee.mentor_id == employee.id:
                raise InvalidRequest(f"employee '{employee.id}' is their own mentor", field="mentor_id")

        if request.team_ids:
            teams = set(request.team_ids)
            employees = [e for e in employees if e.team_id in teams]
        roster = sorted(copy.deepcopy(list(employees)), key=lambda e: e.id)
        if not roster:
            raise InvalidRequest("no employees available for the selected teams", field="team_ids")
        return roster

    def _build_slots(self, request: ScheduleRequest, dates: List[date],
                     limits: LegalLimits, roster_size: int):
        first, last = dates[0], dates[-1]
        requirements: Dict[ShiftSlot, CoverageRequirement] = {}
        required: Dict[ShiftSlot, int] = {}
        seen = set()

        for requirement in request.coverage_requirements:
            if requirement.key in seen:
                raise InvalidRequest(
                    f"duplicate coverage requirement for {requirement.date} {requirement.shift_type.value}",
                    field="coverage_requirements",
                )
            seen.add(requirement.key)
            if not first <= requirement.date <= last:
                raise InvalidRequest(
                    f"coverage date {requirement.date} outside {first} to {last}",
                    field="coverage_requirements",
                )
            if requirement.required_count < 0:
                raise InvalidRequest(
                    f"negative required_count for {requirement.date} {requirement.shift_type.value}",
                    field="coverage_requirements",
                )

            slot = ShiftSlot.create(requirement.date, requirement.shift_type, request.shift_times)
            heads = requirement.required_count
            if heads > 0:
                heads = max(heads, limits.min_staff_per_shift)
            if heads > roster_size:
                raise InvalidRequest(
                    f"{slot} requires {heads} staff but only {roster_size} eligible employees exist",
                    field="coverage_requirements",
                )
            requirements[slot] = requirement
            required[slot] = heads

        slots = sorted(requirements, key=lambda s: s.sort_key)
        return slots, requirements, required

    @staticmethod
    def _mentor_pairs(roster: List[Employee]) -> List[Tuple[str, str]]:
        ids = {e.id for e in roster}
        return [
            (e.mentor_id, e.id)
            for e in roster
            if e.mentor_id and e.mentor_id in ids
        ]

    @staticmethod
    def _hard_constraints(limits: LegalLimits, options: GenerationOptions) -> List[Constraint]:
        constraints = [
            Constraint(
                name="min_staff_per_shift",
                constraint_type=ConstraintType.MIN_STAFF,
                is_hard=True,
                description=f"Each demanded shift needs its required headcount (at least {limits.min_staff_per_shift})",
                parameters={"min_staff": limits.min_staff_per_shift},
            ),
            Constraint(
                name="rest_between_shifts",
                constraint_type=ConstraintType.REST_PERIOD,
                is_hard=True,
                description=f"Minimum {limits.min_rest_hours:g}-hour rest period between shifts",
                parameters={"min_rest_hours": limits.min_rest_hours},
            ),
            Constraint(
                name="max_consecutive_nights",
                constraint_type=ConstraintType.CONSECUTIVE_NIGHTS,
                is_hard=True,
                description=f"Maximum {limits.max_consecutive_nights} consecutive night shifts",
                parameters={"max_nights": limits.max_consecutive_nights},
            ),
            Constraint(
                name="max_weekly_hours",
                constraint_type=ConstraintType.HOURS_MAX,
                is_hard=True,
                description=f"Maximum {limits.max_weekly_hours:g} hours per week",
                parameters={"max_hours": limits.max_weekly_hours},
            ),
            Constraint(
                name="personal_max_consecutive_days",
                constraint_type=ConstraintType.CONSECUTIVE_DAYS,
                is_hard=True,
                description="Respect personal maximum consecutive working days",
            ),
            Constraint(
                name="eligibility",
                constraint_type=ConstraintType.ELIGIBILITY,
                is_hard=True,
                description="Experience level, no-night and time-off constraints",
            ),
        ]
        if options.avoid_dangerous_patterns:
            constraints.append(Constraint(
                name="no_critical_patterns",
                constraint_type=ConstraintType.DANGEROUS_PATTERN,
                is_hard=True,
                description="No critical dangerous shift patterns",
            ))
        return constraints

    def _weights(self, options: GenerationOptions, settings: OptimizationSettings) -> SoftWeights:
        tuning = self.tuning
        return SoftWeights(
            hard=tuning.hard_weights[settings.safety_priority.value],
            fairness=tuning.fairness_weight if options.balance_workload else 0.0,
            safety=tuning.safety_weight if options.avoid_dangerous_patterns else 0.0,
            preference=tuning.preference_weight if options.respect_preferences else 0.0,
            night_cluster=tuning.night_cluster_weight if options.minimize_consecutive_nights else 0.0,
            mentorship=(
                tuning.mentorship_weight * options.mentorship_priority
                if options.enforce_mentorship_pairing else 0.0
            ),
            overstaffing=tuning.overstaffing_weight,
            shortfall=tuning.shortfall_weight,
        )
