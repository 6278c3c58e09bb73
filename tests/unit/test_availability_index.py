"""Test the availability index projection."""
from datetime import time

from clinic_scheduler.availability import AvailabilityIndex, count_bookings
from tests.utils.scheduling_data import NOW, TODAY, TOMORROW, appointment_line


def test_from_lines_marks_booked_slots():
    """Each line holds its doctor's slot."""
    index = AvailabilityIndex.from_lines([
        appointment_line("A10001", "D001", TOMORROW, "09:00"),
        appointment_line("A10002", "D002", TOMORROW, "09:30"),
    ])

    assert not index.is_available("D001", f"{TOMORROW}-09:00")
    assert index.is_available("D001", f"{TOMORROW}-09:30")
    assert not index.is_available("D002", f"{TOMORROW}-09:30")


def test_slots_are_per_doctor():
    """Two doctors can hold the same date/time."""
    index = AvailabilityIndex.from_lines([appointment_line("A10001", "D001", TOMORROW, "09:00")])
    assert index.is_available("D002", f"{TOMORROW}-09:00")


def test_short_lines_are_ignored():
    index = AvailabilityIndex.from_lines(["A10001|P001|Alice", ""])
    assert index.occupied("D001") == frozenset()


def test_unparseable_line_with_doctor_still_holds_slot():
    """A damaged status field doesn't free the slot."""
    line = appointment_line("A10001", "D001", TOMORROW, "09:00", status="???")
    index = AvailabilityIndex.from_lines([line])
    assert not index.is_available("D001", f"{TOMORROW}-09:00")


def test_book_and_free_update_incrementally():
    index = AvailabilityIndex()
    key = f"{TOMORROW}-10:00"

    index.book("D001", key)
    assert not index.is_available("D001", key)

    index.free("D001", key)
    assert index.is_available("D001", key)


def test_free_unknown_doctor_is_noop():
    index = AvailabilityIndex()
    index.free("D999", f"{TOMORROW}-10:00")
    assert index.is_available("D999", f"{TOMORROW}-10:00")


def test_open_times_skip_past_and_taken():
    """Alternatives are future, free slots in ascending order."""
    index = AvailabilityIndex.from_lines([appointment_line("A10001", "D001", TODAY, "10:00")])

    times = index.open_times("D001", TODAY, "Shift A", NOW, limit=None)

    # 08:00-09:30 are past, 10:00 is taken
    assert times[0] == "10:30"
    assert "10:00" not in times
    assert times[-1] == "15:30"
    assert len(times) == 11


def test_open_times_respects_limit():
    index = AvailabilityIndex()
    assert index.open_times("D001", TOMORROW, "Shift A", NOW, limit=3) == ["08:00", "08:30", "09:00"]


def test_count_bookings_counts_lines_per_doctor():
    counts = count_bookings([
        appointment_line("A10001", "D001", TOMORROW, "09:00"),
        appointment_line("A10002", "D001", TOMORROW, "09:30"),
        appointment_line("A10003", "D002", TOMORROW, "09:30"),
        "short|line",
    ])
    assert counts == {"D001": 2, "D002": 1}


def test_open_times_unknown_doctor_returns_full_day():
    index = AvailabilityIndex()
    assert len(index.open_times("D404", TOMORROW, "Shift C", NOW, limit=None)) == 16
    assert time(0, 0).strftime("%H:%M") in index.open_times("D404", TOMORROW, "Shift C", NOW)
