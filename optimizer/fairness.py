"""
Fairness evaluator: Gini-based workload equality metrics.
"""
from statistics import mean, pstdev
from typing import Dict, Iterable, List, Sequence

from models.reports import EmployeeWorkload, FairnessReport
from models.schedule import AssignmentSet
from models.shift import ShiftType

NO_TEAM = "unassigned"


def gini_coefficient(values: Iterable[float]) -> float:
    """
    Gini coefficient of a distribution.

    Equivalent to sum_i sum_j |x_i - x_j| / (2 n sum x), computed in
    O(n log n) from the sorted values:

        G = sum_i (2i - n - 1) x_(i) / (n sum x),  i = 1..n

    Returns 0.0 for an empty distribution or one that sums to zero.
    """
    ordered = sorted(values)
    n = len(ordered)
    total = sum(ordered)
    if n == 0 or total <= 0:
        return 0.0
    weighted = sum((2 * i - n - 1) * x for i, x in enumerate(ordered, 1))
    return min(1.0, max(0.0, weighted / (n * total)))


def fairness_score(gini: float, target: float) -> float:
    """100 at or below target, falling linearly to 0 at G = 1."""
    gap = max(0.0, gini - target)
    if gap == 0:
        return 100.0
    return max(0.0, 100.0 * (1.0 - gap / (1.0 - target)))


def fairness_grade(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 80:
        return "good"
    if score >= 60:
        return "fair"
    if score >= 40:
        return "poor"
    return "unacceptable"


def distribution_balance(counts: Dict[ShiftType, int], shift_types: Sequence[ShiftType]) -> float:
    """
    How evenly an employee's shifts spread across the demanded shift types.

    1.0 means perfectly even, 0.0 means everything on a single type while
    others are demanded. Employees without shifts count as balanced.
    """
    considered = [counts.get(t, 0) for t in shift_types]
    total = sum(considered)
    if total == 0 or len(considered) < 2:
        return 1.0
    return 1.0 - (max(considered) - min(considered)) / total


class FairnessEvaluator:
    """
    Computes workload fairness over an assignment set.

    All roster employees take part in the distribution, including those
    with no assignments.
    """

    def __init__(self, model):
        self.model = model
        self.target = model.settings.fairness_target
        self.shift_types = model.demanded_shift_types()

    def hours_by_employee(self, assignment_set: AssignmentSet) -> Dict[str, float]:
        return {e.id: assignment_set.hours_for(e.id) for e in self.model.employees}

    def workloads(self, assignment_set: AssignmentSet) -> List[EmployeeWorkload]:
        result = []
        for employee in self.model.employees:
            schedule = assignment_set.employee_schedule(employee.id)
            counts = {t: 0 for t in ShiftType}
            for slot in schedule.values():
                counts[slot.shift_type] += 1
            result.append(EmployeeWorkload(
                employee_id=employee.id,
                team_id=employee.team_id,
                hours=sum(slot.hours for slot in schedule.values()),
                shift_counts=counts,
                weekend_shifts=sum(1 for slot in schedule.values() if slot.is_weekend),
                distribution_balance=distribution_balance(counts, self.shift_types),
            ))
        return result

    def evaluate(self, assignment_set: AssignmentSet) -> FairnessReport:
        """
        Build the fairness report.

        Deterministic and side-effect free: evaluating the same assignment
        set twice yields equal reports.
        """
        workloads = self.workloads(assignment_set)
        hours = [w.hours for w in workloads]
        gini = gini_coefficient(hours)
        score = fairness_score(gini, self.target)

        by_team: Dict[str, List[float]] = {}
        for workload in workloads:
            by_team.setdefault(workload.team_id or NO_TEAM, []).append(workload.hours)

        working = [w for w in workloads if w.total_shifts > 0]
        balance = mean(w.distribution_balance for w in working) * 100 if working else 100.0

        return FairnessReport(
            gini=gini,
            night_gini=gini_coefficient(w.night_shifts for w in workloads),
            weekend_gini=gini_coefficient(w.weekend_shifts for w in workloads),
            team_gini={team: gini_coefficient(values) for team, values in sorted(by_team.items())},
            shift_distribution_balance=balance,
            fairness_score=score,
            target=self.target,
            gap=max(0.0, gini - self.target),
            grade=fairness_grade(score),
            hours_mean=mean(hours) if hours else 0.0,
            hours_stdev=pstdev(hours) if hours else 0.0,
            hours_min=min(hours) if hours else 0.0,
            hours_max=max(hours) if hours else 0.0,
            workloads=workloads,
        )
