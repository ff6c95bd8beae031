"""
Employee data model.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .errors import InvalidRequest
from .shift import ShiftSlot, ShiftType


class EmployeeConstraintType(Enum):
    """Per-employee constraints supplied by the employee directory."""
    NO_NIGHT = "no_night"
    FIXED_DAY = "fixed_day"
    TIME_OFF = "time_off"
    MAX_CONSECUTIVE = "max_consecutive"

    @classmethod
    def from_string(cls, value: str) -> "EmployeeConstraintType":
        """Convert string to EmployeeConstraintType."""
        normalized = value.lower().strip().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.value == normalized:
                return member
        raise InvalidRequest(f"unknown employee constraint '{value}'", field="constraints")


@dataclass
class EmployeeConstraint:
    """
    A personal constraint attached to an employee.

    Attributes:
        constraint_type: Kind of constraint
        value: Parameters, depending on the kind:
            FIXED_DAY: {"day_of_week": 0-6, "shift_type": ShiftType}
            TIME_OFF: {"start_date": date, "end_date": date}
            MAX_CONSECUTIVE: {"days": int}
        reason: Free-text reason from the directory
    """
    constraint_type: EmployeeConstraintType
    value: Dict[str, Any] = field(default_factory=dict)
    reason: str = ""

    def blocks(self, slot: ShiftSlot) -> bool:
        """Whether this constraint makes the employee ineligible for a slot."""
        if self.constraint_type == EmployeeConstraintType.NO_NIGHT:
            return slot.shift_type == ShiftType.NIGHT
        if self.constraint_type == EmployeeConstraintType.TIME_OFF:
            start = self.value.get("start_date")
            end = self.value.get("end_date", start)
            return start is not None and start <= slot.date <= end
        return False

    def prefers_other_shift(self, slot: ShiftSlot) -> bool:
        """Whether a FIXED_DAY constraint asks for a different shift that weekday."""
        if self.constraint_type != EmployeeConstraintType.FIXED_DAY:
            return False
        if self.value.get("day_of_week") != slot.date.weekday():
            return False
        return self.value.get("shift_type") != slot.shift_type


@dataclass
class Employee:
    """
    Employee model representing a staff member.

    Attributes:
        id: Unique employee identifier
        name: Full name
        level: Hierarchy / experience level (1 = most junior)
        team_id: Team the employee belongs to
        certifications: Certifications held
        shift_preferences: Preference score (1-10) per shift type
        weekday_preferences: Preference score (1-10) per weekday (0 = Monday)
        constraints: Personal constraints (no nights, time off, ...)
        mentor_id: ID of this employee's mentor, if any
    """
    id: str
    name: str
    level: int = 1
    team_id: Optional[str] = None
    certifications: Set[str] = field(default_factory=set)
    shift_preferences: Dict[ShiftType, int] = field(default_factory=dict)
    weekday_preferences: Dict[int, int] = field(default_factory=dict)
    constraints: List[EmployeeConstraint] = field(default_factory=list)
    mentor_id: Optional[str] = None

    def __post_init__(self):
        """Validate preference scores."""
        for shift_type, score in self.shift_preferences.items():
            if not 1 <= score <= 10:
                raise InvalidRequest(
                    f"employee {self.id}: {shift_type.value} preference {score} not in 1-10",
                    field="shift_preferences",
                )
        for weekday, score in self.weekday_preferences.items():
            if not 0 <= weekday <= 6 or not 1 <= score <= 10:
                raise InvalidRequest(
                    f"employee {self.id}: weekday preference {weekday}={score} invalid",
                    field="weekday_preferences",
                )
        if self.level < 1:
            raise InvalidRequest(f"employee {self.id}: level must be >= 1", field="level")

    def shift_preference(self, shift_type: ShiftType) -> int:
        return self.shift_preferences.get(shift_type, 5)

    def weekday_preference(self, weekday: int) -> int:
        return self.weekday_preferences.get(weekday, 5)

    def blocked_reason(self, slot: ShiftSlot, min_level: Optional[int] = None) -> Optional[str]:
        """
        Explain why the employee cannot work a slot.

        Returns:
            None if eligible, otherwise a short reason
        """
        if min_level is not None and self.level < min_level:
            return f"level {self.level} below required {min_level}"
        for constraint in self.constraints:
            if constraint.blocks(slot):
                return constraint.reason or constraint.constraint_type.value
        return None

    def is_eligible(self, slot: ShiftSlot, min_level: Optional[int] = None) -> bool:
        return self.blocked_reason(slot, min_level) is None

    def is_on_leave(self, target_date: date) -> bool:
        return any(
            c.constraint_type == EmployeeConstraintType.TIME_OFF
            and c.value.get("start_date") <= target_date <= c.value.get("end_date", c.value.get("start_date"))
            for c in self.constraints
        )

    @property
    def max_consecutive_days(self) -> Optional[int]:
        """Personal cap on consecutive working days, if any."""
        caps = [
            int(c.value.get("days"))
            for c in self.constraints
            if c.constraint_type == EmployeeConstraintType.MAX_CONSECUTIVE and c.value.get("days")
        ]
        return min(caps) if caps else None

    def __str__(self) -> str:
        team = f", team {self.team_id}" if self.team_id else ""
        return f"{self.name} (L{self.level}{team})"

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if isinstance(other, Employee):
            return self.id == other.id
        return False
