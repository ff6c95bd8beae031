"""
Shift types and dated shift slots.
"""
from dataclasses import dataclass
from datetime import date, time, datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple


class ShiftType(Enum):
    """Types of shifts available."""
    DAY = "day"            # 07:00 - 15:00
    EVENING = "evening"    # 15:00 - 23:00
    NIGHT = "night"        # 23:00 - 07:00 (+1 day)

    @classmethod
    def from_code(cls, code: str) -> "ShiftType":
        """
        Convert a shift code or name to ShiftType.

        Accepts one-letter codes (D/E/N) and full names, case-insensitive.

        Raises:
            ValueError: If the code is not recognised
        """
        mapping = {
            "d": cls.DAY,
            "day": cls.DAY,
            "e": cls.EVENING,
            "evening": cls.EVENING,
            "n": cls.NIGHT,
            "night": cls.NIGHT,
        }
        shift_type = mapping.get(str(code).lower().strip())
        if shift_type is None:
            raise ValueError(f"Unknown shift type: {code!r}")
        return shift_type

    @property
    def code(self) -> str:
        """One-letter roster code."""
        return self.value[0].upper()

    @property
    def order(self) -> int:
        """Position in the forward rotation (day → evening → night)."""
        return SHIFT_ORDER[self]


SHIFT_ORDER: Dict[ShiftType, int] = {
    ShiftType.DAY: 0,
    ShiftType.EVENING: 1,
    ShiftType.NIGHT: 2,
}

DEFAULT_SHIFT_TIMES: Dict[ShiftType, Tuple[time, time]] = {
    ShiftType.DAY: (time(7, 0), time(15, 0)),
    ShiftType.EVENING: (time(15, 0), time(23, 0)),
    ShiftType.NIGHT: (time(23, 0), time(7, 0)),
}


@dataclass(frozen=True)
class ShiftSlot:
    """
    A dated shift: the unit employees are assigned to.

    Attributes:
        date: Calendar date the shift starts on
        shift_type: Day, evening or night
        start_time: Wall-clock start
        end_time: Wall-clock end (earlier than start for overnight shifts)
    """
    date: date
    shift_type: ShiftType
    start_time: time
    end_time: time

    @classmethod
    def create(cls, shift_date: date, shift_type: ShiftType,
               shift_times: Optional[Dict[ShiftType, Tuple[time, time]]] = None) -> "ShiftSlot":
        """Create a slot using the default (or overridden) shift times."""
        times = (shift_times or DEFAULT_SHIFT_TIMES)[shift_type]
        return cls(date=shift_date, shift_type=shift_type,
                   start_time=times[0], end_time=times[1])

    @property
    def is_overnight(self) -> bool:
        return self.end_time <= self.start_time

    @property
    def hours(self) -> float:
        """Duration in hours."""
        delta = self.end_datetime() - self.start_datetime()
        return delta.total_seconds() / 3600

    @property
    def is_weekend(self) -> bool:
        return self.date.weekday() >= 5

    @property
    def key(self) -> Tuple[date, ShiftType]:
        return (self.date, self.shift_type)

    @property
    def sort_key(self) -> Tuple[date, int]:
        return (self.date, self.shift_type.order)

    def start_datetime(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    def end_datetime(self) -> datetime:
        end = datetime.combine(self.date, self.end_time)
        if self.is_overnight:
            end += timedelta(days=1)
        return end

    def rest_hours_before(self, next_slot: "ShiftSlot") -> float:
        """Hours between the end of this shift and the start of next_slot."""
        delta = next_slot.start_datetime() - self.end_datetime()
        return delta.total_seconds() / 3600

    def __str__(self) -> str:
        return f"{self.date.isoformat()} {self.shift_type.value}"
