"""
Constraint models for the scheduling system.
Defines hard and soft constraints, violations and dangerous-pattern rules.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .shift import ShiftSlot


class ConstraintType(Enum):
    """Categories of constraints."""

    # Hard constraints (must satisfy)
    MIN_STAFF = "min_staff"                    # Required headcount per slot
    REST_PERIOD = "rest_period"                # Minimum rest between shifts
    CONSECUTIVE_NIGHTS = "consecutive_nights"  # Max consecutive night shifts
    HOURS_MAX = "hours_max"                    # Maximum weekly hours
    CONSECUTIVE_DAYS = "consecutive_days"      # Personal max consecutive working days
    ELIGIBILITY = "eligibility"                # Level, no-night, time off
    DANGEROUS_PATTERN = "dangerous_pattern"    # Critical patterns (when avoided)

    # Soft constraints (should optimize)
    PREFERENCE = "preference"                  # Shift / weekday preferences
    FAIRNESS = "fairness"                      # Workload balance
    PATTERN_SAFETY = "pattern_safety"          # Non-critical dangerous patterns
    MENTORSHIP = "mentorship"                  # Mentor/mentee co-scheduling
    NIGHT_CLUSTERING = "night_clustering"      # Consecutive nights minimisation
    OVERSTAFFING = "overstaffing"              # Heads above requirement
    SHORTFALL = "shortfall"                    # Allowed understaffing


HARD_CONSTRAINT_TYPES = {
    ConstraintType.MIN_STAFF,
    ConstraintType.REST_PERIOD,
    ConstraintType.CONSECUTIVE_NIGHTS,
    ConstraintType.HOURS_MAX,
    ConstraintType.CONSECUTIVE_DAYS,
    ConstraintType.ELIGIBILITY,
    ConstraintType.DANGEROUS_PATTERN,
}


class Severity(Enum):
    """Severity tiers shared by violations and pattern detections."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def default_penalty(self) -> float:
        """Safety-score points deducted per detection."""
        return {
            Severity.CRITICAL: 25.0,
            Severity.HIGH: 15.0,
            Severity.MEDIUM: 8.0,
            Severity.LOW: 3.0,
        }[self]

    @property
    def rank(self) -> int:
        """Higher is more severe."""
        return {
            Severity.CRITICAL: 3,
            Severity.HIGH: 2,
            Severity.MEDIUM: 1,
            Severity.LOW: 0,
        }[self]


@dataclass
class Violation:
    """
    Represents a constraint violation.

    Attributes:
        constraint_type: Type of constraint violated
        severity: Severity tier
        description: Human-readable description
        employee_id: Affected employee (None for slot-level violations)
        affected_date: Date of the violation
        slot: Affected slot, for coverage violations
        magnitude: How far the constraint is exceeded (heads, hours, nights ...)
        details: Additional details about the violation
        suggestions: Possible resolution suggestions
    """
    constraint_type: ConstraintType
    severity: Severity
    description: str
    employee_id: Optional[str] = None
    affected_date: Optional[date] = None
    slot: Optional[ShiftSlot] = None
    magnitude: float = 1.0
    details: Dict[str, Any] = field(default_factory=dict)
    suggestions: List[str] = field(default_factory=list)

    def is_hard_constraint(self) -> bool:
        """Check if this is a hard constraint violation."""
        return self.constraint_type in HARD_CONSTRAINT_TYPES

    def to_dict(self) -> dict:
        return {
            "type": self.constraint_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "employee_id": self.employee_id,
            "date": self.affected_date.isoformat() if self.affected_date else None,
            "slot": str(self.slot) if self.slot else None,
            "magnitude": self.magnitude,
            "details": {k: str(v) if isinstance(v, (date, datetime)) else v
                        for k, v in self.details.items()},
            "suggestions": list(self.suggestions),
        }

    def __str__(self) -> str:
        severity_emoji = {
            Severity.CRITICAL: "🔴",
            Severity.HIGH: "🟠",
            Severity.MEDIUM: "🟡",
            Severity.LOW: "🟢",
        }[self.severity]
        return f"{severity_emoji} [{self.constraint_type.value.upper()}] {self.description}"


@dataclass
class ValidatorReport:
    """
    Result of validating an assignment set.

    Attributes:
        violations: Hard-constraint violations
        warnings: Soft-constraint findings (allowed shortfall, overstaffing)
        checked_at: When the check was performed
    """
    violations: List[Violation] = field(default_factory=list)
    warnings: List[Violation] = field(default_factory=list)
    checked_at: datetime = field(default_factory=datetime.now)

    @property
    def is_feasible(self) -> bool:
        return not self.violations

    def add_violation(self, violation: Violation) -> None:
        """Add a violation to the appropriate list."""
        if violation.is_hard_constraint():
            self.violations.append(violation)
        else:
            self.warnings.append(violation)

    def extend(self, violations: List[Violation]) -> None:
        for violation in violations:
            self.add_violation(violation)

    def violations_by_type(self) -> Dict[ConstraintType, List[Violation]]:
        grouped: Dict[ConstraintType, List[Violation]] = {}
        for violation in self.violations:
            grouped.setdefault(violation.constraint_type, []).append(violation)
        return grouped

    def understaffed_slots(self) -> List[Tuple[ShiftSlot, int]]:
        """Slots with a hard headcount shortfall, with the number of missing heads."""
        return [
            (v.slot, int(v.magnitude))
            for v in self.violations
            if v.constraint_type == ConstraintType.MIN_STAFF and v.slot is not None
        ]

    def summary(self) -> dict:
        """Get a summary of the validation result."""
        return {
            "is_feasible": self.is_feasible,
            "hard_violations": len(self.violations),
            "soft_warnings": len(self.warnings),
            "by_type": {t.value: len(v) for t, v in self.violations_by_type().items()},
            "understaffed_slots": [str(slot) for slot, _ in self.understaffed_slots()],
        }

    def to_dict(self) -> dict:
        return {
            **self.summary(),
            "violations": [v.to_dict() for v in self.violations],
            "warnings": [w.to_dict() for w in self.warnings],
        }

    def __str__(self) -> str:
        status = "✅ FEASIBLE" if self.is_feasible else "❌ INFEASIBLE"
        return f"{status} | Violations: {len(self.violations)} hard, {len(self.warnings)} soft"


@dataclass
class Constraint:
    """
    Constraint definition as it appears in a constraint model.

    Attributes:
        name: Constraint name
        constraint_type: Category of constraint
        is_hard: Whether this is a hard constraint
        description: Human-readable description
        parameters: Constraint parameters (e.g., max_hours=52)
    """
    name: str
    constraint_type: ConstraintType
    is_hard: bool
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        hard_soft = "HARD" if self.is_hard else "SOFT"
        return f"[{hard_soft}] {self.name}: {self.description}"


# =============================================================================
# DANGEROUS PATTERNS
# =============================================================================

class PatternType(Enum):
    """Physiologically dangerous shift sequences."""
    DAY_NIGHT_OFF = "day_night_off"
    CONSECUTIVE_NIGHTS = "consecutive_nights"
    INSUFFICIENT_REST = "insufficient_rest"
    EXCESSIVE_CHANGES = "excessive_changes"
    WEEKEND_OVERLOAD = "weekend_overload"
    CUMULATIVE_FATIGUE = "cumulative_fatigue"


@dataclass(frozen=True)
class DangerousPatternRule:
    """
    A named detector with its nominal severity and safety-score penalty.

    Detections at another tier than the rule's nominal one are penalised
    with that tier's default penalty.
    """
    pattern: PatternType
    name: str
    severity: Severity
    penalty: float
    description: str = ""
    enabled: bool = True

    def penalty_for(self, severity: Severity) -> float:
        if severity == self.severity:
            return self.penalty
        return severity.default_penalty


@dataclass
class PatternDetection:
    """One occurrence of a dangerous pattern in an employee's sequence."""
    pattern: PatternType
    employee_id: str
    severity: Severity
    dates: Tuple[date, ...]
    description: str
    penalty: float
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def start_date(self) -> date:
        return self.dates[0]

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern.value,
            "employee_id": self.employee_id,
            "severity": self.severity.value,
            "dates": [d.isoformat() for d in self.dates],
            "description": self.description,
            "penalty": self.penalty,
        }
