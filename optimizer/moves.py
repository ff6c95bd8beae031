"""
Neighbourhood moves over an AssignmentSet.

Every move keeps the one-shift-per-date invariant and only places
employees in slots they are eligible for.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from models.errors import InternalInconsistency
from models.schedule import AssignmentSet
from models.shift import ShiftSlot


class MoveKind(Enum):
    REPLACE = "replace"
    SWAP = "swap"
    FILL = "fill"
    TRIM = "trim"
    SHIFT = "shift"


@dataclass(frozen=True)
class Change:
    """One employee's slot on one date changing from old to new (None = off)."""
    employee_id: str
    date: date
    old: Optional[ShiftSlot]
    new: Optional[ShiftSlot]


@dataclass(frozen=True)
class Move:
    kind: MoveKind
    changes: Tuple[Change, ...]

    def apply(self, assignment_set: AssignmentSet) -> None:
        """Unassign every old slot first, then assign every new one."""
        for change in self.changes:
            if change.old is not None:
                removed = assignment_set.unassign(change.employee_id, change.date)
                if removed != change.old:
                    raise InternalInconsistency(
                        f"{self.kind.value} move expected {change.employee_id} on {change.old}, found {removed}"
                    )
        for change in self.changes:
            if change.new is not None:
                assignment_set.assign(change.employee_id, change.new)

    def inverse(self) -> "Move":
        return Move(self.kind, tuple(
            Change(c.employee_id, c.date, c.new, c.old) for c in self.changes
        ))

    @property
    def employees(self) -> List[str]:
        return sorted({c.employee_id for c in self.changes})

    @property
    def slots(self) -> Set[ShiftSlot]:
        touched = set()
        for change in self.changes:
            if change.old is not None:
                touched.add(change.old)
            if change.new is not None:
                touched.add(change.new)
        return touched

    def removed(self) -> List[Tuple[str, ShiftSlot]]:
        """(employee, slot) attributes this move takes away."""
        return [(c.employee_id, c.old) for c in self.changes if c.old is not None]

    def added(self) -> List[Tuple[str, ShiftSlot]]:
        return [(c.employee_id, c.new) for c in self.changes if c.new is not None]

    def __str__(self) -> str:
        parts = [
            f"{c.employee_id}:{c.old.shift_type.code if c.old else '-'}→{c.new.shift_type.code if c.new else '-'}@{c.date}"
            for c in self.changes
        ]
        return f"{self.kind.value}({', '.join(parts)})"


class Neighborhood:
    """
    Random move generator.

    When slots are understaffed, fill/shift moves are favoured; trims are
    proposed occasionally when slots are overstaffed; otherwise replace and
    swap moves explore the plateau.
    """

    MAX_TRIES = 20

    def __init__(self, model, rng):
        self.model = model
        self.rng = rng
        self._generators: Dict[MoveKind, Callable[..., Optional[Move]]] = {
            MoveKind.REPLACE: self._replace,
            MoveKind.SWAP: self._swap,
            MoveKind.FILL: self._fill,
            MoveKind.TRIM: self._trim,
            MoveKind.SHIFT: self._shift,
        }

    def propose(self, assignment_set: AssignmentSet) -> Optional[Move]:
        """Propose a random move, or None if no move could be found."""
        under, over, staffed = [], [], []
        for slot in self.model.slots:
            heads = assignment_set.headcount(slot)
            required = self.model.required[slot]
            if heads < required:
                under.append(slot)
            elif heads > required:
                over.append(slot)
            if heads > 0:
                staffed.append(slot)

        roll = self.rng.random()
        if under and roll < 0.3:
            order = [MoveKind.FILL, MoveKind.SHIFT]
        elif over and roll < 0.4:
            order = [MoveKind.TRIM]
        else:
            order = [MoveKind.REPLACE, MoveKind.SWAP]
        self.rng.shuffle(order)
        order += [k for k in MoveKind if k not in order]

        for kind in order:
            move = self._generators[kind](assignment_set, under, over, staffed)
            if move is not None:
                return move
        return None

    def _free_eligible(self, assignment_set: AssignmentSet, slot: ShiftSlot,
                       exclude: Optional[str] = None) -> List[str]:
        return [
            employee_id for employee_id in self.model.eligible.get(slot, ())
            if employee_id != exclude and assignment_set.is_free(employee_id, slot.date)
        ]

    def _replace(self, assignment_set, under, over, staffed) -> Optional[Move]:
        if not staffed:
            return None
        for _ in range(self.MAX_TRIES):
            slot = self.rng.choice(staffed)
            current = self.rng.choice(sorted(assignment_set.employees_on(slot)))
            candidates = self._free_eligible(assignment_set, slot, exclude=current)
            if candidates:
                incoming = self.rng.choice(candidates)
                return Move(MoveKind.REPLACE, (
                    Change(current, slot.date, slot, None),
                    Change(incoming, slot.date, None, slot),
                ))
        return None

    def _swap(self, assignment_set, under, over, staffed) -> Optional[Move]:
        if not staffed:
            return None
        for _ in range(self.MAX_TRIES):
            shift_date = self.rng.choice(staffed).date
            day = assignment_set.day_assignments(shift_date)
            if len(day) < 2:
                continue
            first, second = self.rng.sample(day, 2)
            if first.slot == second.slot:
                continue
            if (self.model.is_eligible(first.employee_id, second.slot)
                    and self.model.is_eligible(second.employee_id, first.slot)):
                return Move(MoveKind.SWAP, (
                    Change(first.employee_id, shift_date, first.slot, second.slot),
                    Change(second.employee_id, shift_date, second.slot, first.slot),
                ))
        return None

    def _fill(self, assignment_set, under, over, staffed) -> Optional[Move]:
        if not under:
            return None
        for _ in range(self.MAX_TRIES):
            slot = self.rng.choice(under)
            candidates = self._free_eligible(assignment_set, slot)
            if candidates:
                return Move(MoveKind.FILL, (
                    Change(self.rng.choice(candidates), slot.date, None, slot),
                ))
        return None

    def _trim(self, assignment_set, under, over, staffed) -> Optional[Move]:
        if not over:
            return None
        slot = self.rng.choice(over)
        employee_id = self.rng.choice(sorted(assignment_set.employees_on(slot)))
        return Move(MoveKind.TRIM, (Change(employee_id, slot.date, slot, None),))

    def _shift(self, assignment_set, under, over, staffed) -> Optional[Move]:
        if not under:
            return None
        for _ in range(self.MAX_TRIES):
            target = self.rng.choice(under)
            sources = [s for s in self.model.slots_on(target.date)
                       if s != target and assignment_set.headcount(s) > 0]
            if not sources:
                continue
            surplus = [s for s in sources if s in over]
            source = self.rng.choice(surplus or sources)
            movers = [e for e in sorted(assignment_set.employees_on(source))
                      if self.model.is_eligible(e, target)]
            if movers:
                employee_id = self.rng.choice(movers)
                return Move(MoveKind.SHIFT, (
                    Change(employee_id, target.date, source, target),
                ))
        return None
