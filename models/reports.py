"""
Fairness and pattern-safety report models.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .constraints import PatternDetection, Severity
from .shift import ShiftType


@dataclass
class EmployeeWorkload:
    """Per-employee workload figures."""
    employee_id: str
    team_id: Optional[str]
    hours: float
    shift_counts: Dict[ShiftType, int]
    weekend_shifts: int
    distribution_balance: float  # 0-1, how evenly shift types are spread

    @property
    def total_shifts(self) -> int:
        return sum(self.shift_counts.values())

    @property
    def night_shifts(self) -> int:
        return self.shift_counts.get(ShiftType.NIGHT, 0)

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "team_id": self.team_id,
            "hours": self.hours,
            "shifts": {k.value: v for k, v in self.shift_counts.items()},
            "total_shifts": self.total_shifts,
            "weekend_shifts": self.weekend_shifts,
            "distribution_balance": round(self.distribution_balance, 4),
        }


@dataclass
class FairnessReport:
    """
    Output of the fairness evaluator.

    Attributes:
        gini: Gini coefficient over total hours
        night_gini: Gini coefficient over night-shift counts
        weekend_gini: Gini coefficient over weekend-shift counts
        team_gini: Gini over hours within each team
        shift_distribution_balance: Percentage (0-100) of even D/E/N spread
        fairness_score: 0-100, decreasing with the gap to target
        target: Requested target Gini
        gap: max(0, gini - target)
        grade: excellent / good / fair / poor / unacceptable
        hours_mean, hours_stdev, hours_min, hours_max: hours distribution
        workloads: Per-employee figures
    """
    gini: float
    night_gini: float
    weekend_gini: float
    team_gini: Dict[str, float]
    shift_distribution_balance: float
    fairness_score: float
    target: float
    gap: float
    grade: str
    hours_mean: float
    hours_stdev: float
    hours_min: float
    hours_max: float
    workloads: List[EmployeeWorkload] = field(default_factory=list)

    @property
    def hours_range(self) -> float:
        return self.hours_max - self.hours_min

    @property
    def meets_target(self) -> bool:
        return self.gap == 0

    def to_dict(self) -> dict:
        return {
            "gini": round(self.gini, 6),
            "night_gini": round(self.night_gini, 6),
            "weekend_gini": round(self.weekend_gini, 6),
            "team_gini": {k: round(v, 6) for k, v in self.team_gini.items()},
            "shift_distribution_balance": round(self.shift_distribution_balance, 2),
            "fairness_score": round(self.fairness_score, 2),
            "target": self.target,
            "gap": round(self.gap, 6),
            "grade": self.grade,
            "hours": {
                "mean": round(self.hours_mean, 2),
                "stdev": round(self.hours_stdev, 2),
                "min": self.hours_min,
                "max": self.hours_max,
                "range": self.hours_range,
            },
            "workloads": [w.to_dict() for w in self.workloads],
        }


@dataclass
class EmployeeSafety:
    """Safety score and detections for one employee."""
    employee_id: str
    team_id: Optional[str]
    score: float
    detections: List[PatternDetection] = field(default_factory=list)

    @property
    def risk_level(self) -> str:
        if not self.detections:
            return "none"
        worst = max(self.detections, key=lambda d: d.severity.rank)
        return worst.severity.value

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "team_id": self.team_id,
            "score": round(self.score, 2),
            "risk_level": self.risk_level,
            "detections": [d.to_dict() for d in self.detections],
        }


@dataclass
class TeamSafety:
    """Team-level safety aggregate."""
    team_id: str
    score: float
    employee_count: int
    detection_counts: Dict[Severity, int]

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "score": round(self.score, 2),
            "employee_count": self.employee_count,
            "detections": {k.value: v for k, v in self.detection_counts.items()},
        }


@dataclass
class PatternSafetyReport:
    """Output of the pattern safety analyzer."""
    fleet_score: float
    employees: Dict[str, EmployeeSafety]
    teams: Dict[str, TeamSafety]
    counts_by_severity: Dict[Severity, int]
    counts_by_pattern: Dict[str, int]

    @property
    def detections(self) -> List[PatternDetection]:
        return [d for emp in self.employees.values() for d in emp.detections]

    def critical_detections(self) -> List[PatternDetection]:
        return [d for d in self.detections if d.severity == Severity.CRITICAL]

    def critical_employees(self) -> List[str]:
        return sorted({d.employee_id for d in self.critical_detections()})

    def to_dict(self) -> dict:
        return {
            "fleet_score": round(self.fleet_score, 2),
            "counts_by_severity": {k.value: v for k, v in self.counts_by_severity.items()},
            "counts_by_pattern": dict(self.counts_by_pattern),
            "critical_employees": self.critical_employees(),
            "teams": {k: v.to_dict() for k, v in self.teams.items()},
            "employees": {k: v.to_dict() for k, v in self.employees.items()},
        }
