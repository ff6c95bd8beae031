"""
Schedule validator: hard-constraint checks.

The validator never mutates state. check_slot() and check_employee() are
the per-slot and per-employee oracles the cost function calls
incrementally; validate() runs them over the whole assignment set and
produces the ValidatorReport.
"""
from datetime import date
from typing import Dict, List, Optional, Sequence

from models.constraints import (
    ConstraintType,
    PatternDetection,
    Severity,
    ValidatorReport,
    Violation,
)
from models.errors import InternalInconsistency
from models.schedule import AssignmentSet
from models.shift import ShiftSlot, ShiftType

from .patterns import PatternSafetyAnalyzer


class ScheduleValidator:
    """Checks an assignment set against the hard constraints of a model."""

    def __init__(self, model, analyzer: Optional[PatternSafetyAnalyzer] = None):
        self.model = model
        self.analyzer = analyzer or PatternSafetyAnalyzer(model)
        self.limits = model.limits

    # ==================== Slot checks ====================

    def check_slot(self, slot: ShiftSlot, headcount: int) -> List[Violation]:
        """Coverage check for one slot."""
        required = self.model.required[slot]
        requirement = self.model.requirements[slot]
        shortfall = required - headcount

        if shortfall > 0:
            if requirement.allow_shortfall:
                return [Violation(
                    constraint_type=ConstraintType.SHORTFALL,
                    severity=Severity.MEDIUM,
                    description=f"{slot}: {headcount}/{required} staff (shortfall allowed)",
                    affected_date=slot.date,
                    slot=slot,
                    magnitude=shortfall,
                    details={"assigned": headcount, "required": required},
                )]
            eligible = len(self.model.eligible.get(slot, ()))
            suggestions = [f"Add {shortfall} more staff to {slot}"]
            if eligible < required:
                level = requirement.min_experience_level
                suggestions.append(
                    f"Only {eligible} employees are eligible"
                    + (f" at level {level}+" if level else "")
                    + f"; lower required_count or widen the roster"
                )
            return [Violation(
                constraint_type=ConstraintType.MIN_STAFF,
                severity=Severity.CRITICAL,
                description=f"{slot}: {headcount}/{required} staff assigned",
                affected_date=slot.date,
                slot=slot,
                magnitude=shortfall,
                details={"assigned": headcount, "required": required, "eligible": eligible},
                suggestions=suggestions,
            )]

        if headcount > required:
            return [Violation(
                constraint_type=ConstraintType.OVERSTAFFING,
                severity=Severity.LOW,
                description=f"{slot}: {headcount} staff for {required} required",
                affected_date=slot.date,
                slot=slot,
                magnitude=headcount - required,
            )]
        return []

    # ==================== Employee checks ====================

    def check_employee(self, employee_id: str, schedule: Dict[date, ShiftSlot],
                       detections: Optional[Sequence[PatternDetection]] = None) -> List[Violation]:
        """
        Hard-constraint checks for one employee.

        Args:
            employee_id: Employee to check
            schedule: date -> slot for that employee
            detections: Pattern detections for the same schedule, if already computed

        Raises:
            InternalInconsistency: If the employee or a slot is unknown to the model
        """
        employee = self.model.employee(employee_id)
        violations: List[Violation] = []
        ordered = sorted(schedule.values(), key=lambda s: s.sort_key)

        for slot in ordered:
            if not self.model.has_slot(slot):
                raise InternalInconsistency(f"assignment of {employee_id} to unknown slot {slot}")
            if not self.model.is_eligible(employee_id, slot):
                reason = employee.blocked_reason(
                    slot, self.model.requirements[slot].min_experience_level
                ) or "not eligible"
                violations.append(Violation(
                    constraint_type=ConstraintType.ELIGIBILITY,
                    severity=Severity.HIGH,
                    description=f"{employee_id} cannot work {slot}: {reason}",
                    employee_id=employee_id,
                    affected_date=slot.date,
                    slot=slot,
                ))

        violations.extend(self._rest_violations(employee_id, ordered))
        sequence = [schedule.get(d) for d in self.model.dates]
        violations.extend(self._night_run_violations(employee_id, sequence))
        violations.extend(self._weekly_hours_violations(employee_id, ordered))

        cap = employee.max_consecutive_days
        if cap:
            violations.extend(self._consecutive_day_violations(employee_id, sequence, cap))

        if self.model.options.avoid_dangerous_patterns:
            if detections is None:
                detections = self.analyzer.scan_employee(employee_id, schedule)
            for detection in detections:
                if detection.severity == Severity.CRITICAL:
                    violations.append(Violation(
                        constraint_type=ConstraintType.DANGEROUS_PATTERN,
                        severity=Severity.CRITICAL,
                        description=detection.description,
                        employee_id=employee_id,
                        affected_date=detection.start_date,
                        details={"pattern": detection.pattern.value},
                    ))
        return violations

    def _rest_violations(self, employee_id: str, ordered: List[ShiftSlot]) -> List[Violation]:
        found = []
        min_rest = self.limits.min_rest_hours
        for previous, following in zip(ordered, ordered[1:]):
            rest = previous.rest_hours_before(following)
            if rest < min_rest:
                found.append(Violation(
                    constraint_type=ConstraintType.REST_PERIOD,
                    severity=Severity.HIGH,
                    description=(
                        f"{employee_id}: {rest:g}h rest between {previous} and {following} "
                        f"(min {min_rest:g}h)"
                    ),
                    employee_id=employee_id,
                    affected_date=following.date,
                    magnitude=min_rest - rest,
                    details={"rest_hours": rest},
                    suggestions=["Insert a rest day or keep a forward rotation (day → evening → night)"],
                ))
        return found

    def _night_run_violations(self, employee_id: str,
                              sequence: List[Optional[ShiftSlot]]) -> List[Violation]:
        found = []
        max_nights = self.limits.max_consecutive_nights
        run: List[ShiftSlot] = []
        for slot in sequence + [None]:
            if slot is not None and slot.shift_type == ShiftType.NIGHT:
                run.append(slot)
                continue
            if len(run) > max_nights:
                found.append(Violation(
                    constraint_type=ConstraintType.CONSECUTIVE_NIGHTS,
                    severity=Severity.HIGH,
                    description=f"{employee_id}: {len(run)} consecutive nights from {run[0].date} (max {max_nights})",
                    employee_id=employee_id,
                    affected_date=run[0].date,
                    magnitude=len(run) - max_nights,
                ))
            run = []
        return found

    def _weekly_hours_violations(self, employee_id: str, ordered: List[ShiftSlot]) -> List[Violation]:
        found = []
        max_hours = self.limits.max_weekly_hours
        weekly: Dict[int, float] = {}
        for slot in ordered:
            week = self.model.week_index(slot.date)
            weekly[week] = weekly.get(week, 0.0) + slot.hours
        for week, hours in sorted(weekly.items()):
            if hours > max_hours:
                week_start = self.model.dates[min(week * 7, len(self.model.dates) - 1)]
                found.append(Violation(
                    constraint_type=ConstraintType.HOURS_MAX,
                    severity=Severity.HIGH,
                    description=f"{employee_id}: {hours:g}h in week starting {week_start} (max {max_hours:g}h)",
                    employee_id=employee_id,
                    affected_date=week_start,
                    magnitude=hours - max_hours,
                    details={"weekly_hours": hours},
                ))
        return found

    def _consecutive_day_violations(self, employee_id: str,
                                    sequence: List[Optional[ShiftSlot]], cap: int) -> List[Violation]:
        found = []
        run: List[ShiftSlot] = []
        for slot in sequence + [None]:
            if slot is not None:
                run.append(slot)
                continue
            if len(run) > cap:
                found.append(Violation(
                    constraint_type=ConstraintType.CONSECUTIVE_DAYS,
                    severity=Severity.MEDIUM,
                    description=f"{employee_id}: {len(run)} working days in a row from {run[0].date} (max {cap})",
                    employee_id=employee_id,
                    affected_date=run[0].date,
                    magnitude=len(run) - cap,
                ))
            run = []
        return found

    # ==================== Full validation ====================

    def validate(self, assignment_set: AssignmentSet) -> ValidatorReport:
        """
        Validate a full assignment set.

        Raises:
            InternalInconsistency: If an assignment references an unknown
                employee or slot
        """
        for employee_id in assignment_set.employee_ids():
            if not self.model.has_employee(employee_id):
                raise InternalInconsistency(f"assignment references unknown employee '{employee_id}'")
        for slot in assignment_set.occupied_slots():
            if not self.model.has_slot(slot):
                raise InternalInconsistency(f"assignment references unknown slot {slot}")

        report = ValidatorReport()
        for slot in self.model.slots:
            report.extend(self.check_slot(slot, assignment_set.headcount(slot)))
        for employee in self.model.employees:
            report.extend(self.check_employee(employee.id, assignment_set.employee_schedule(employee.id)))
        return report
