"""Availability index: which slots each doctor already has booked.

The index is a projection of appointments.txt and is never persisted. Build
it from a fresh read right before deciding anything: another session may
have written the store since the last build.
"""
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from clinic_scheduler import config
from clinic_scheduler.shift_calendar import SlotState, classify, format_time, slot_key, slots_for


class AvailabilityIndex:
    """Doctor id -> occupied slot keys ("2025-01-15-09:30")."""

    def __init__(self):
        self._occupied: Dict[str, Set[str]] = defaultdict(set)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "AvailabilityIndex":
        """
        Build from raw appointment lines.

        Every line with a doctor id holds its slot, even when the rest of the
        record is unreadable, so a damaged line can't be double-booked over.
        """
        index = cls()
        for line in lines:
            parts = line.split("|")
            if len(parts) < 7:
                continue
            doctor_id = parts[6].strip()
            if doctor_id:
                index.book(doctor_id, f"{parts[4].strip()}-{parts[5].strip()}")
        return index

    def is_available(self, doctor_id: str, key: str) -> bool:
        return key not in self._occupied.get(doctor_id, ())

    def book(self, doctor_id: str, key: str) -> None:
        self._occupied[doctor_id].add(key)

    def free(self, doctor_id: str, key: str) -> None:
        self._occupied.get(doctor_id, set()).discard(key)

    def occupied(self, doctor_id: str) -> FrozenSet[str]:
        return frozenset(self._occupied.get(doctor_id, ()))

    def open_times(
        self,
        doctor_id: str,
        day: date,
        shift_code: str,
        now: datetime,
        limit: Optional[int] = config.MAX_ALTERNATIVES,
    ) -> List[str]:
        """
        Bookable, free slot times for a doctor on a date ("HH:MM", ascending).

        Used to offer alternatives when a requested slot can't be used.
        """
        times = []
        for slot_time in slots_for(day, shift_code):
            if classify(day, slot_time, now) == SlotState.PAST:
                continue
            if self.is_available(doctor_id, slot_key(day, slot_time)):
                times.append(format_time(slot_time))
                if limit is not None and len(times) >= limit:
                    break
        return times


def count_bookings(lines: Iterable[str]) -> Dict[str, int]:
    """Appointments per doctor id, counted straight from the store lines."""
    counts: Dict[str, int] = defaultdict(int)
    for line in lines:
        parts = line.split("|")
        if len(parts) >= 7 and parts[6].strip():
            counts[parts[6].strip()] += 1
    return dict(counts)
