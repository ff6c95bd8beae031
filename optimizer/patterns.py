"""
Pattern safety analyzer.

Scans each employee's day-by-day shift sequence for physiologically
dangerous patterns and turns the detections into safety scores. The
analyzer is a pure function of (model, assignments): it is called by the
cost function for every touched employee and by the reporter for the
final result.
"""
from collections import OrderedDict
from datetime import date, timedelta
from statistics import mean
from typing import Dict, List, Optional, Sequence, Tuple

from models.constraints import PatternDetection, PatternType, Severity
from models.reports import EmployeeSafety, PatternSafetyReport, TeamSafety
from models.schedule import AssignmentSet
from models.shift import ShiftSlot, ShiftType

NO_TEAM = "unassigned"


class PatternSafetyAnalyzer:
    """
    Detects dangerous shift patterns.

    Rules (when enabled in the model):
    - day → night next day: critical
    - consecutive nights above the legal max: high, critical beyond max+1
    - rest below the legal minimum: medium, high when short by half or more
    - more than N shift-type changes within 7 days: high
    - working N+ consecutive weekends: medium
    - weekly overtime (low/medium) and long working streaks (medium)
    """

    def __init__(self, model):
        self.model = model
        self.rules = {r.pattern: r for r in model.pattern_rules if r.enabled}
        self.dates: List[date] = list(model.dates)
        self.limits = model.limits
        self.scheduling = model.scheduling
        self._weekends = self._group_weekends(self.dates)
        self._weeks = self._group_weeks(self.dates)

    @staticmethod
    def _group_weekends(dates: Sequence[date]) -> List[Tuple[date, ...]]:
        groups: "OrderedDict[date, List[date]]" = OrderedDict()
        for d in dates:
            if d.weekday() >= 5:
                saturday = d - timedelta(days=d.weekday() - 5)
                groups.setdefault(saturday, []).append(d)
        return [tuple(v) for v in groups.values()]

    def _group_weeks(self, dates: Sequence[date]) -> List[Tuple[date, ...]]:
        groups: "OrderedDict[int, List[date]]" = OrderedDict()
        for d in dates:
            groups.setdefault(self.model.week_index(d), []).append(d)
        return [tuple(v) for v in groups.values()]

    # ==================== Scanning ====================

    def scan_employee(self, employee_id: str,
                      schedule: Dict[date, ShiftSlot]) -> List[PatternDetection]:
        """
        Scan one employee's schedule.

        Args:
            employee_id: Employee being scanned
            schedule: date -> slot for that employee

        Returns:
            Detections ordered by rule, then date
        """
        sequence = [schedule.get(d) for d in self.dates]
        detections: List[PatternDetection] = []

        if PatternType.DAY_NIGHT_OFF in self.rules:
            detections.extend(self._day_then_night(employee_id, sequence))
        if PatternType.CONSECUTIVE_NIGHTS in self.rules:
            detections.extend(self._consecutive_nights(employee_id, sequence))
        if PatternType.INSUFFICIENT_REST in self.rules:
            detections.extend(self._insufficient_rest(employee_id, sequence))
        if PatternType.EXCESSIVE_CHANGES in self.rules:
            detections.extend(self._excessive_changes(employee_id, sequence))
        if PatternType.WEEKEND_OVERLOAD in self.rules:
            detections.extend(self._weekend_overload(employee_id, schedule))
        if PatternType.CUMULATIVE_FATIGUE in self.rules:
            detections.extend(self._cumulative_fatigue(employee_id, schedule, sequence))

        return detections

    def _detection(self, pattern: PatternType, employee_id: str, severity: Severity,
                   dates: Sequence[date], description: str, **details) -> PatternDetection:
        return PatternDetection(
            pattern=pattern,
            employee_id=employee_id,
            severity=severity,
            dates=tuple(dates),
            description=description,
            penalty=self.rules[pattern].penalty_for(severity),
            details=details,
        )

    def _day_then_night(self, employee_id: str,
                        sequence: List[Optional[ShiftSlot]]) -> List[PatternDetection]:
        found = []
        for current, following in zip(sequence, sequence[1:]):
            if (current is not None and following is not None
                    and current.shift_type == ShiftType.DAY
                    and following.shift_type == ShiftType.NIGHT):
                found.append(self._detection(
                    PatternType.DAY_NIGHT_OFF, employee_id, Severity.CRITICAL,
                    (current.date, following.date),
                    f"{employee_id}: day shift on {current.date} followed by night shift on {following.date}",
                ))
        return found

    def _consecutive_nights(self, employee_id: str,
                            sequence: List[Optional[ShiftSlot]]) -> List[PatternDetection]:
        found = []
        max_nights = self.limits.max_consecutive_nights
        for run in _runs(sequence, lambda s: s is not None and s.shift_type == ShiftType.NIGHT):
            if len(run) > max_nights:
                severity = Severity.CRITICAL if len(run) > max_nights + 1 else Severity.HIGH
                found.append(self._detection(
                    PatternType.CONSECUTIVE_NIGHTS, employee_id, severity,
                    [s.date for s in run],
                    f"{employee_id}: {len(run)} consecutive nights from {run[0].date} (max {max_nights})",
                    run_length=len(run),
                ))
        return found

    def _insufficient_rest(self, employee_id: str,
                           sequence: List[Optional[ShiftSlot]]) -> List[PatternDetection]:
        found = []
        min_rest = self.limits.min_rest_hours
        worked = [s for s in sequence if s is not None]
        for previous, following in zip(worked, worked[1:]):
            rest = previous.rest_hours_before(following)
            if rest < min_rest:
                shortfall = min_rest - rest
                severity = Severity.HIGH if shortfall >= min_rest / 2 else Severity.MEDIUM
                found.append(self._detection(
                    PatternType.INSUFFICIENT_REST, employee_id, severity,
                    (previous.date, following.date),
                    f"{employee_id}: only {rest:g}h rest between {previous} and {following}",
                    rest_hours=rest,
                    shortfall_hours=shortfall,
                ))
        return found

    def _excessive_changes(self, employee_id: str,
                           sequence: List[Optional[ShiftSlot]]) -> List[PatternDetection]:
        found = []
        limit = self.scheduling.max_shift_changes_per_week
        last_start = max(0, len(sequence) - 7)
        start = 0
        while start <= last_start:
            window = [s for s in sequence[start:start + 7] if s is not None]
            changes = sum(
                1 for a, b in zip(window, window[1:]) if a.shift_type != b.shift_type
            )
            if changes > limit:
                end = min(start + 6, len(sequence) - 1)
                found.append(self._detection(
                    PatternType.EXCESSIVE_CHANGES, employee_id, Severity.HIGH,
                    (self.dates[start], self.dates[end]),
                    f"{employee_id}: {changes} shift-type changes between "
                    f"{self.dates[start]} and {self.dates[end]}",
                    changes=changes,
                ))
                start += 7
            else:
                start += 1
        return found

    def _weekend_overload(self, employee_id: str,
                          schedule: Dict[date, ShiftSlot]) -> List[PatternDetection]:
        found = []
        threshold = self.scheduling.weekend_overload_run
        worked = [any(d in schedule for d in weekend) for weekend in self._weekends]
        for run in _runs(list(range(len(worked))), lambda i: worked[i]):
            if len(run) >= threshold:
                weekend_dates = [d for i in run for d in self._weekends[i] if d in schedule]
                found.append(self._detection(
                    PatternType.WEEKEND_OVERLOAD, employee_id, Severity.MEDIUM,
                    weekend_dates,
                    f"{employee_id}: works {len(run)} consecutive weekends from {weekend_dates[0]}",
                    weekends=len(run),
                ))
        return found

    def _cumulative_fatigue(self, employee_id: str, schedule: Dict[date, ShiftSlot],
                            sequence: List[Optional[ShiftSlot]]) -> List[PatternDetection]:
        found = []
        standard = self.scheduling.standard_weekly_hours
        medium = self.scheduling.overtime_medium_hours
        for week in self._weeks:
            hours = sum(schedule[d].hours for d in week if d in schedule)
            if hours > standard:
                severity = Severity.MEDIUM if hours > medium else Severity.LOW
                found.append(self._detection(
                    PatternType.CUMULATIVE_FATIGUE, employee_id, severity,
                    (week[0], week[-1]),
                    f"{employee_id}: {hours:g}h in week starting {week[0]}",
                    weekly_hours=hours,
                ))

        streak = self.scheduling.fatigue_streak_days
        for run in _runs(sequence, lambda s: s is not None):
            if len(run) >= streak:
                found.append(self._detection(
                    PatternType.CUMULATIVE_FATIGUE, employee_id, Severity.MEDIUM,
                    (run[0].date, run[-1].date),
                    f"{employee_id}: {len(run)} working days in a row from {run[0].date}",
                    streak_days=len(run),
                ))
        return found

    # ==================== Scoring ====================

    @staticmethod
    def penalty_total(detections: Sequence[PatternDetection]) -> float:
        return sum(d.penalty for d in detections)

    @classmethod
    def safety_score(cls, detections: Sequence[PatternDetection]) -> float:
        """Per-employee safety score: 100 minus penalties, floored at 0."""
        return max(0.0, 100.0 - cls.penalty_total(detections))

    def analyze(self, assignment_set: AssignmentSet) -> PatternSafetyReport:
        """Scan every employee in the roster and aggregate the scores."""
        employees: Dict[str, EmployeeSafety] = {}
        for employee in self.model.employees:
            detections = self.scan_employee(employee.id, assignment_set.employee_schedule(employee.id))
            employees[employee.id] = EmployeeSafety(
                employee_id=employee.id,
                team_id=employee.team_id,
                score=self.safety_score(detections),
                detections=detections,
            )

        counts_by_severity = {severity: 0 for severity in Severity}
        counts_by_pattern: Dict[str, int] = {}
        for safety in employees.values():
            for detection in safety.detections:
                counts_by_severity[detection.severity] += 1
                key = detection.pattern.value
                counts_by_pattern[key] = counts_by_pattern.get(key, 0) + 1

        return PatternSafetyReport(
            fleet_score=mean(s.score for s in employees.values()) if employees else 100.0,
            employees=employees,
            teams=self._team_breakdown(employees),
            counts_by_severity=counts_by_severity,
            counts_by_pattern=counts_by_pattern,
        )

    @staticmethod
    def _team_breakdown(employees: Dict[str, EmployeeSafety]) -> Dict[str, TeamSafety]:
        grouped: Dict[str, List[EmployeeSafety]] = {}
        for safety in employees.values():
            grouped.setdefault(safety.team_id or NO_TEAM, []).append(safety)

        teams = {}
        for team_id in sorted(grouped):
            members = grouped[team_id]
            counts = {severity: 0 for severity in Severity}
            for member in members:
                for detection in member.detections:
                    counts[detection.severity] += 1
            teams[team_id] = TeamSafety(
                team_id=team_id,
                score=mean(m.score for m in members),
                employee_count=len(members),
                detection_counts=counts,
            )
        return teams


def _runs(items, predicate) -> List[list]:
    """Maximal runs of consecutive items satisfying predicate."""
    runs, current = [], []
    for item in items:
        if predicate(item):
            current.append(item)
        elif current:
            runs.append(current)
            current = []
    if current:
        runs.append(current)
    return runs
