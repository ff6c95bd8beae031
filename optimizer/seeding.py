"""
Construction heuristic: forward-rotation seeding.

Every employee follows the same cyclic work pattern (days, then evenings,
then nights, then rest) at a different offset, so each date sees the
pattern's per-type counts and no one ever rotates backwards without a
rest day. The seed is then repaired against the actual model: surplus
heads are trimmed and shortfalls are filled greedily.
"""
import logging
import math
from datetime import date, timedelta
from typing import Dict, List, Optional

from models.schedule import AssignmentSet
from models.shift import ShiftSlot, ShiftType

logger = logging.getLogger("ShiftOptimizer.seeding")


def _split(total: int, parts: int) -> List[int]:
    """Split total into parts as evenly as possible, larger shares first."""
    if parts <= 0:
        return []
    base, extra = divmod(total, parts)
    return [base + (1 if i < extra else 0) for i in range(parts)]


class RotationSeeder:
    """Builds the initial assignment set for a restart."""

    def __init__(self, model, rng=None, shuffle: bool = False):
        self.model = model
        self.rng = rng
        self.shuffle = shuffle
        self.limits = model.limits
        self.pairs_enforced = bool(model.mentor_pairs) and model.options.enforce_mentorship_pairing

    # ==================== Pattern ====================

    def peak_demand(self) -> Dict[ShiftType, int]:
        peak = {t: 0 for t in ShiftType}
        for slot, heads in self.model.required.items():
            peak[slot.shift_type] = max(peak[slot.shift_type], heads)
        return peak

    def rotation_pattern(self) -> List[Optional[ShiftType]]:
        """
        The cyclic pattern, one entry per employee (None = rest day).

        Working days are capped so the pattern always contains at least one
        rest day. Nights are split into blocks no longer than the legal
        maximum and every block ends with rest.
        """
        length = len(self.model.employees)
        peak = self.peak_demand()
        counts = [peak[ShiftType.DAY], peak[ShiftType.EVENING], peak[ShiftType.NIGHT]]
        while sum(counts) > length - 1 and sum(counts) > 0:
            counts[counts.index(max(counts))] -= 1
        days, evenings, nights = counts
        rest = length - sum(counts)

        blocks = max(1, math.ceil(nights / self.limits.max_consecutive_nights))
        blocks = max(1, min(blocks, rest))

        pattern: List[Optional[ShiftType]] = []
        for d, e, n, o in zip(_split(days, blocks), _split(evenings, blocks),
                              _split(nights, blocks), _split(rest, blocks)):
            block: List[Optional[ShiftType]] = [ShiftType.DAY] * d + [ShiftType.EVENING] * e
            if e == 0 and d > 0 and n > 0 and o >= 2:
                block.append(None)
                o -= 1
            block += [ShiftType.NIGHT] * n + [None] * o
            pattern += block
        return pattern

    def offsets(self, length: int) -> Dict[str, int]:
        """Rotation offset per employee; enforced mentor pairs share one."""
        mentor_of = self.model.mentor_of if self.pairs_enforced else {}
        units = [e.id for e in self.model.employees if e.id not in mentor_of]
        if self.shuffle and self.rng is not None:
            self.rng.shuffle(units)

        offsets = {}
        for k, employee_id in enumerate(units):
            offsets[employee_id] = (k * length) // max(1, len(units))
        for mentee, mentor in sorted(mentor_of.items()):
            offsets[mentee] = offsets.get(mentor, 0)
        return offsets

    # ==================== Seeding ====================

    def seed(self) -> AssignmentSet:
        pattern = self.rotation_pattern()
        length = len(pattern)
        offsets = self.offsets(length)
        assignment_set = AssignmentSet()

        for employee in self.model.employees:
            offset = offsets[employee.id]
            for t, shift_date in enumerate(self.model.dates):
                shift_type = pattern[(offset + t) % length]
                if shift_type is None:
                    continue
                slot = self.model.slot_for(shift_date, shift_type)
                if (slot is None or self.model.required[slot] == 0
                        or not self.model.is_eligible(employee.id, slot)):
                    continue
                assignment_set.assign(employee.id, slot)

        self.trim(assignment_set)
        self.fill(assignment_set)
        logger.debug(f"Seeded {len(assignment_set)} assignments from a {length}-day rotation")
        return assignment_set

    def _protected(self) -> set:
        if not self.pairs_enforced:
            return set()
        return {e for pair in self.model.mentor_pairs for e in pair}

    def trim(self, assignment_set: AssignmentSet) -> None:
        """Remove surplus heads, busiest non-paired employees first."""
        protected = self._protected()
        for slot in self.model.slots:
            surplus = assignment_set.headcount(slot) - self.model.required[slot]
            if surplus <= 0:
                continue
            members = sorted(
                assignment_set.employees_on(slot),
                key=lambda e: (e in protected, -assignment_set.hours_for(e), e),
            )
            for employee_id in members[:surplus]:
                assignment_set.unassign(employee_id, slot.date)

    def fill(self, assignment_set: AssignmentSet) -> None:
        """Greedily fill shortfalls with compatible free employees."""
        for slot in self.model.slots:
            while assignment_set.headcount(slot) < self.model.required[slot]:
                candidates = [
                    e for e in self.model.eligible.get(slot, ())
                    if assignment_set.is_free(e, slot.date)
                    and self.compatible(assignment_set, e, slot)
                ]
                if not candidates:
                    break
                best = min(candidates, key=lambda e: (
                    assignment_set.hours_for(e),
                    -self.model.employee(e).shift_preference(slot.shift_type),
                    e,
                ))
                assignment_set.assign(best, slot)

    def compatible(self, assignment_set: AssignmentSet, employee_id: str, slot: ShiftSlot) -> bool:
        """Whether adding the slot keeps the employee's hard constraints intact."""
        min_rest = self.limits.min_rest_hours
        previous = assignment_set.shift_on(employee_id, slot.date - timedelta(days=1))
        following = assignment_set.shift_on(employee_id, slot.date + timedelta(days=1))

        if previous is not None:
            if previous.rest_hours_before(slot) < min_rest:
                return False
            if previous.shift_type == ShiftType.DAY and slot.shift_type == ShiftType.NIGHT:
                return False
        if following is not None:
            if slot.rest_hours_before(following) < min_rest:
                return False
            if slot.shift_type == ShiftType.DAY and following.shift_type == ShiftType.NIGHT:
                return False

        if slot.shift_type == ShiftType.NIGHT:
            run = 1 + self._streak(assignment_set, employee_id, slot.date, -1, nights_only=True) \
                + self._streak(assignment_set, employee_id, slot.date, 1, nights_only=True)
            if run > self.limits.max_consecutive_nights:
                return False

        cap = self.model.employee(employee_id).max_consecutive_days
        if cap:
            run = 1 + self._streak(assignment_set, employee_id, slot.date, -1) \
                + self._streak(assignment_set, employee_id, slot.date, 1)
            if run > cap:
                return False

        week = self.model.week_index(slot.date)
        hours = sum(
            s.hours for d, s in assignment_set.employee_schedule(employee_id).items()
            if self.model.week_index(d) == week
        )
        return hours + slot.hours <= self.limits.max_weekly_hours

    @staticmethod
    def _streak(assignment_set: AssignmentSet, employee_id: str, start: date,
                step: int, nights_only: bool = False) -> int:
        count = 0
        current = start + timedelta(days=step)
        while True:
            slot = assignment_set.shift_on(employee_id, current)
            if slot is None or (nights_only and slot.shift_type != ShiftType.NIGHT):
                return count
            count += 1
            current += timedelta(days=step)
