"""Shift windows and slot generation.

A doctor works one of three fixed shifts. Each shift is cut into 30-minute
slots, both window bounds included:

    Shift A  08:00 - 15:30  (16 slots)
    Shift B  16:00 - 23:30  (16 slots)
    Shift C  00:00 - 07:30  (16 slots)

Slot order is ascending by time of day. Auto-assign and the UIs iterate
slots in this order, so it must stay stable.
"""
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Tuple

from clinic_scheduler import config
from clinic_scheduler.errors import InvalidShift


class SlotState(str, Enum):
    """State of one slot as shown to a user."""
    PAST = "Past"
    BOOKABLE = "Bookable"
    AVAILABLE = "Available"
    TAKEN = "Taken"


def normalize_shift(shift_code: str) -> str:
    """
    Map a shift code to its canonical spelling ("shift a " -> "Shift A").

    Raises:
        InvalidShift: If the code is not a known shift
    """
    key = (shift_code or "").strip().lower()
    for code in config.SHIFT_WINDOWS:
        if code.lower() == key:
            return code
    raise InvalidShift(
        f"Invalid shift '{shift_code}'. Use one of: {', '.join(config.SHIFT_WINDOWS)}"
    )


def bounds(shift_code: str) -> Tuple[time, time]:
    """Return (first slot start, last slot start) for a shift."""
    window = config.SHIFT_WINDOWS[normalize_shift(shift_code)]
    start = datetime.strptime(window["start_time"], config.TIME_FORMAT).time()
    end = datetime.strptime(window["end_time"], config.TIME_FORMAT).time()
    return start, end


def slots_for(day: date, shift_code: str) -> List[time]:
    """
    Generate the slot start times of a shift on a given date.

    Args:
        day: Calendar date
        shift_code: Shift code (case-insensitive)

    Returns:
        Ascending list of slot times, both bounds included

    Raises:
        InvalidShift: If shift_code is unknown
    """
    start, end = bounds(shift_code)
    step = timedelta(minutes=config.SLOT_DURATION_MINUTES)

    current = datetime.combine(day, start)
    last = datetime.combine(day, end)

    slots = []
    while current <= last:
        slots.append(current.time())
        current += step
    return slots


def is_on_shift(slot_time: time, shift_code: str) -> bool:
    """Check whether a time is one of the shift's slot starts."""
    # Slots don't depend on the date, any date works
    return slot_time in slots_for(date(2000, 1, 1), shift_code)


def classify(day: date, slot_time: time, now: datetime) -> SlotState:
    """Past if the slot start is strictly before now, otherwise Bookable."""
    if datetime.combine(day, slot_time) < now:
        return SlotState.PAST
    return SlotState.BOOKABLE


def booking_horizon(today: date, days: int = config.BOOKING_HORIZON_DAYS) -> List[date]:
    """Dates a calendar offers: today through today + days."""
    return [today + timedelta(days=offset) for offset in range(days + 1)]


def slot_key(day: date, slot_time: time) -> str:
    """Canonical per-doctor slot key: "2025-01-15-09:30"."""
    return f"{day.strftime(config.DATE_FORMAT)}-{slot_time.strftime(config.TIME_FORMAT)}"


def format_time(slot_time: time) -> str:
    return slot_time.strftime(config.TIME_FORMAT)


def parse_time(value: str) -> time:
    """Parse "HH:MM" (24h)."""
    return datetime.strptime(value, config.TIME_FORMAT).time()


def parse_date(value: str) -> date:
    """Parse "YYYY-MM-DD"."""
    return datetime.strptime(value, config.DATE_FORMAT).date()
