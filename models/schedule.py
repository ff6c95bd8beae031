"""
Assignment and AssignmentSet models.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .errors import InternalInconsistency
from .shift import ShiftSlot, ShiftType


@dataclass(frozen=True)
class Assignment:
    """
    Represents an employee assignment to a shift slot.

    Attributes:
        employee_id: The assigned employee
        slot: The slot they work
    """
    employee_id: str
    slot: ShiftSlot

    def __str__(self) -> str:
        return (
            f"{self.employee_id} → {self.slot.shift_type.value} "
            f"on {self.slot.date.strftime('%a %d/%m')}"
        )


class AssignmentSet:
    """
    Complete mapping of employees to shift slots for one run.

    Two indexes are kept in sync:
    - by employee: date -> slot (at most one slot per date)
    - by slot: set of employee ids

    The one-shift-per-day invariant is enforced by assign(); callers that
    want to move an employee within a day must unassign first.
    """

    def __init__(self, assignments: Optional[Iterable[Assignment]] = None):
        self._by_employee: Dict[str, Dict[date, ShiftSlot]] = defaultdict(dict)
        self._by_slot: Dict[ShiftSlot, Set[str]] = defaultdict(set)
        for assignment in assignments or ():
            self.assign(assignment.employee_id, assignment.slot)

    # ==================== Mutation ====================

    def assign(self, employee_id: str, slot: ShiftSlot) -> None:
        """
        Add an assignment.

        Raises:
            InternalInconsistency: If the employee already works that date
        """
        schedule = self._by_employee[employee_id]
        existing = schedule.get(slot.date)
        if existing is not None:
            raise InternalInconsistency(
                f"{employee_id} already assigned to {existing} (attempted {slot})"
            )
        schedule[slot.date] = slot
        self._by_slot[slot].add(employee_id)

    def unassign(self, employee_id: str, shift_date: date) -> ShiftSlot:
        """
        Remove the employee's assignment on a date.

        Returns:
            The slot that was removed

        Raises:
            InternalInconsistency: If there is no assignment to remove
        """
        schedule = self._by_employee.get(employee_id)
        if not schedule or shift_date not in schedule:
            raise InternalInconsistency(f"{employee_id} has no assignment on {shift_date}")
        slot = schedule.pop(shift_date)
        members = self._by_slot[slot]
        members.discard(employee_id)
        if not members:
            del self._by_slot[slot]
        if not schedule:
            del self._by_employee[employee_id]
        return slot

    def clear_date(self, shift_date: date) -> List[Assignment]:
        """Remove every assignment on a date and return them."""
        removed = self.day_assignments(shift_date)
        for assignment in removed:
            self.unassign(assignment.employee_id, shift_date)
        return removed

    # ==================== Queries ====================

    def shift_on(self, employee_id: str, shift_date: date) -> Optional[ShiftSlot]:
        schedule = self._by_employee.get(employee_id)
        if not schedule:
            return None
        return schedule.get(shift_date)

    def is_free(self, employee_id: str, shift_date: date) -> bool:
        return self.shift_on(employee_id, shift_date) is None

    def employees_on(self, slot: ShiftSlot) -> Set[str]:
        return set(self._by_slot.get(slot, ()))

    def headcount(self, slot: ShiftSlot) -> int:
        return len(self._by_slot.get(slot, ()))

    def employee_schedule(self, employee_id: str) -> Dict[date, ShiftSlot]:
        """Date -> slot for one employee (a copy)."""
        return dict(self._by_employee.get(employee_id, {}))

    def employee_ids(self) -> List[str]:
        return sorted(self._by_employee)

    def occupied_slots(self) -> List[ShiftSlot]:
        return sorted(self._by_slot, key=lambda s: s.sort_key)

    def day_assignments(self, shift_date: date) -> List[Assignment]:
        """All assignments on a date, ordered by shift then employee."""
        result = []
        for slot, members in self._by_slot.items():
            if slot.date == shift_date:
                result.extend(Assignment(emp_id, slot) for emp_id in members)
        return sorted(result, key=lambda a: (a.slot.shift_type.order, a.employee_id))

    def hours_for(self, employee_id: str) -> float:
        return sum(slot.hours for slot in self._by_employee.get(employee_id, {}).values())

    def shift_counts(self, employee_id: str) -> Dict[ShiftType, int]:
        counts = {shift_type: 0 for shift_type in ShiftType}
        for slot in self._by_employee.get(employee_id, {}).values():
            counts[slot.shift_type] += 1
        return counts

    def assignments(self) -> List[Assignment]:
        """All assignments in a stable order (date, shift, employee)."""
        return sorted(
            (Assignment(emp_id, slot)
             for emp_id, schedule in self._by_employee.items()
             for slot in schedule.values()),
            key=lambda a: (a.slot.sort_key, a.employee_id),
        )

    def __iter__(self) -> Iterator[Assignment]:
        return iter(self.assignments())

    def __len__(self) -> int:
        return sum(len(schedule) for schedule in self._by_employee.values())

    def __contains__(self, assignment: Assignment) -> bool:
        return self.shift_on(assignment.employee_id, assignment.slot.date) == assignment.slot

    def __eq__(self, other) -> bool:
        if not isinstance(other, AssignmentSet):
            return NotImplemented
        return self._as_key() == other._as_key()

    def _as_key(self) -> Set[Tuple[str, ShiftSlot]]:
        return {(a.employee_id, a.slot) for a in self.assignments()}

    def copy(self) -> "AssignmentSet":
        """Independent copy (slots are immutable and shared)."""
        clone = AssignmentSet()
        for emp_id, schedule in self._by_employee.items():
            clone._by_employee[emp_id] = dict(schedule)
        for slot, members in self._by_slot.items():
            clone._by_slot[slot] = set(members)
        return clone

    def summary(self) -> dict:
        """Get a summary of the assignment set."""
        all_assignments = self.assignments()
        dates = sorted({a.slot.date for a in all_assignments})
        return {
            "total_assignments": len(all_assignments),
            "unique_employees": len(self._by_employee),
            "total_hours": sum(a.slot.hours for a in all_assignments),
            "date_range": f"{dates[0]} to {dates[-1]}" if dates else "empty",
        }

    def __repr__(self) -> str:
        return f"<AssignmentSet(assignments={len(self)}, employees={len(self._by_employee)})>"
