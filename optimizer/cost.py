"""
Cost function for the optimization engine.

cost = W_hard * hard units
     + w_fair * 100 * max(0, G - target)
     + w_safety * pattern penalties
     + w_pref * unmet preference
     + w_nights * extra consecutive nights
     + w_mentor * separated mentee days
     + w_over * surplus heads
     + w_short * allowed shortfall heads

CostState keeps the per-employee and per-slot terms cached so that a move
only re-scores the employees and slots it touches.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

from models.constraints import ConstraintType, Violation
from models.schedule import AssignmentSet
from models.shift import ShiftSlot, ShiftType

from .fairness import gini_coefficient
from .patterns import PatternSafetyAnalyzer, _runs
from .validation import ScheduleValidator

logger = logging.getLogger("ShiftOptimizer.cost")


def hard_units(violation: Violation, min_rest_hours: float) -> float:
    """Convert a hard violation into penalty units."""
    kind = violation.constraint_type
    if kind == ConstraintType.REST_PERIOD:
        return 1.0 + violation.magnitude / min_rest_hours
    if kind == ConstraintType.HOURS_MAX:
        return 1.0 + violation.magnitude / 8.0
    if kind == ConstraintType.DANGEROUS_PATTERN:
        return 2.0
    return float(violation.magnitude)


@dataclass(frozen=True)
class EmployeeTerms:
    """Unweighted cost terms that depend on one employee's schedule."""
    hard: float = 0.0
    hard_count: int = 0
    safety: float = 0.0
    preference: float = 0.0
    night_cluster: float = 0.0
    mentorship: float = 0.0
    hours: float = 0.0


@dataclass(frozen=True)
class SlotTerms:
    """Unweighted cost terms that depend on one slot's headcount."""
    hard: float = 0.0
    hard_count: int = 0
    overstaffing: float = 0.0
    shortfall: float = 0.0


@dataclass
class CostBreakdown:
    """Weighted cost components."""
    hard: float
    fairness: float
    safety: float
    preference: float
    mentorship: float
    night_cluster: float
    overstaffing: float
    shortfall: float
    total: float
    hard_violation_count: int
    gini: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class CostFunction:
    """Scores assignment sets against a constraint model."""

    def __init__(self, model, analyzer: Optional[PatternSafetyAnalyzer] = None,
                 validator: Optional[ScheduleValidator] = None):
        self.model = model
        self.weights = model.weights
        self.analyzer = analyzer or PatternSafetyAnalyzer(model)
        self.validator = validator or ScheduleValidator(model, self.analyzer)
        self.target = model.settings.fairness_target

    def employee_terms(self, employee_id: str, assignment_set: AssignmentSet) -> EmployeeTerms:
        schedule = assignment_set.employee_schedule(employee_id)
        detections = self.analyzer.scan_employee(employee_id, schedule)
        violations = self.validator.check_employee(employee_id, schedule, detections)
        min_rest = self.model.limits.min_rest_hours

        return EmployeeTerms(
            hard=sum(hard_units(v, min_rest) for v in violations),
            hard_count=len(violations),
            safety=self.analyzer.penalty_total(detections),
            preference=self._preference(employee_id, schedule),
            night_cluster=self._night_cluster(schedule),
            mentorship=self._mentorship(employee_id, schedule, assignment_set),
            hours=sum(slot.hours for slot in schedule.values()),
        )

    def slot_terms(self, slot: ShiftSlot, headcount: int) -> SlotTerms:
        hard = 0.0
        count = 0
        overstaffing = 0.0
        shortfall = 0.0
        for violation in self.validator.check_slot(slot, headcount):
            if violation.constraint_type == ConstraintType.OVERSTAFFING:
                overstaffing += violation.magnitude
            elif violation.constraint_type == ConstraintType.SHORTFALL:
                shortfall += violation.magnitude
            else:
                hard += violation.magnitude
                count += 1
        return SlotTerms(hard=hard, hard_count=count, overstaffing=overstaffing, shortfall=shortfall)

    def _preference(self, employee_id: str, schedule: Dict[date, ShiftSlot]) -> float:
        employee = self.model.employee(employee_id)
        total = 0.0
        for slot in schedule.values():
            total += (10 - employee.shift_preference(slot.shift_type)) / 9.0
            total += 0.5 * (10 - employee.weekday_preference(slot.date.weekday())) / 9.0
            if any(c.prefers_other_shift(slot) for c in employee.constraints):
                total += 1.0
        return total

    def _night_cluster(self, schedule: Dict[date, ShiftSlot]) -> float:
        sequence = [schedule.get(d) for d in self.model.dates]
        runs = _runs(sequence, lambda s: s is not None and s.shift_type == ShiftType.NIGHT)
        return float(sum(len(run) - 1 for run in runs))

    def _mentorship(self, employee_id: str, schedule: Dict[date, ShiftSlot],
                    assignment_set: AssignmentSet) -> float:
        """Days the mentee works without the mentor on the same slot."""
        mentor = self.model.mentor_of.get(employee_id)
        if mentor is None:
            return 0.0
        return float(sum(
            1 for shift_date, slot in schedule.items()
            if assignment_set.shift_on(mentor, shift_date) != slot
        ))

    def combine(self, employee_terms: Dict[str, EmployeeTerms],
                slot_terms: Dict[ShiftSlot, SlotTerms]) -> CostBreakdown:
        """Weight and sum cached terms."""
        w = self.weights
        emp = list(employee_terms.values())
        slots = list(slot_terms.values())
        gini = gini_coefficient(t.hours for t in emp)

        hard = w.hard * (sum(t.hard for t in emp) + sum(t.hard for t in slots))
        fairness = w.fairness * 100.0 * max(0.0, gini - self.target)
        safety = w.safety * sum(t.safety for t in emp)
        preference = w.preference * sum(t.preference for t in emp)
        night_cluster = w.night_cluster * sum(t.night_cluster for t in emp)
        mentorship = w.mentorship * sum(t.mentorship for t in emp)
        overstaffing = w.overstaffing * sum(t.overstaffing for t in slots)
        shortfall = w.shortfall * sum(t.shortfall for t in slots)

        return CostBreakdown(
            hard=hard,
            fairness=fairness,
            safety=safety,
            preference=preference,
            mentorship=mentorship,
            night_cluster=night_cluster,
            overstaffing=overstaffing,
            shortfall=shortfall,
            total=(hard + fairness + safety + preference + night_cluster
                   + mentorship + overstaffing + shortfall),
            hard_violation_count=(sum(t.hard_count for t in emp)
                                  + sum(t.hard_count for t in slots)),
            gini=gini,
        )

    def evaluate(self, assignment_set: AssignmentSet) -> CostBreakdown:
        """Full (non-incremental) evaluation."""
        return CostState(self, assignment_set).breakdown()


class CostState:
    """
    An assignment set together with its cached cost terms.

    apply() mutates the wrapped assignment set; undo() reverts the last
    applied move.
    """

    def __init__(self, cost_function: CostFunction, assignment_set: AssignmentSet):
        self.cost_function = cost_function
        self.model = cost_function.model
        self.assignments = assignment_set
        self._employee_terms: Dict[str, EmployeeTerms] = {
            e.id: cost_function.employee_terms(e.id, assignment_set)
            for e in self.model.employees
        }
        self._slot_terms: Dict[ShiftSlot, SlotTerms] = {
            slot: cost_function.slot_terms(slot, assignment_set.headcount(slot))
            for slot in self.model.slots
        }
        self._breakdown = cost_function.combine(self._employee_terms, self._slot_terms)
        self._last: Optional[Tuple[object, Dict[str, EmployeeTerms], Dict[ShiftSlot, SlotTerms], CostBreakdown]] = None

    @property
    def total(self) -> float:
        return self._breakdown.total

    def breakdown(self) -> CostBreakdown:
        return self._breakdown

    def _affected_employees(self, move) -> List[str]:
        affected = set(move.employees)
        for employee_id in move.employees:
            affected.update(self.model.partners_of(employee_id))
        return sorted(affected)

    def apply(self, move) -> float:
        """
        Apply a move and return the cost delta.

        Only touched employees, their mentorship partners and touched
        slots are re-scored.
        """
        before = self._breakdown
        move.apply(self.assignments)

        saved_employees = {}
        for employee_id in self._affected_employees(move):
            saved_employees[employee_id] = self._employee_terms[employee_id]
            self._employee_terms[employee_id] = self.cost_function.employee_terms(
                employee_id, self.assignments
            )
        saved_slots = {}
        for slot in move.slots:
            saved_slots[slot] = self._slot_terms[slot]
            self._slot_terms[slot] = self.cost_function.slot_terms(
                slot, self.assignments.headcount(slot)
            )

        self._breakdown = self.cost_function.combine(self._employee_terms, self._slot_terms)
        self._last = (move, saved_employees, saved_slots, before)
        return self._breakdown.total - before.total

    def undo(self) -> None:
        """Revert the last applied move."""
        if self._last is None:
            return
        move, saved_employees, saved_slots, before = self._last
        move.inverse().apply(self.assignments)
        self._employee_terms.update(saved_employees)
        self._slot_terms.update(saved_slots)
        self._breakdown = before
        self._last = None

    def copy(self) -> "CostState":
        clone = CostState.__new__(CostState)
        clone.cost_function = self.cost_function
        clone.model = self.model
        clone.assignments = self.assignments.copy()
        clone._employee_terms = dict(self._employee_terms)
        clone._slot_terms = dict(self._slot_terms)
        clone._breakdown = self._breakdown
        clone._last = None
        return clone
