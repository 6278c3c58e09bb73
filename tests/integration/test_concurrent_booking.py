"""Concurrent booking against the same flat files."""
import random
import threading
from datetime import time

import pytest

from clinic_scheduler.errors import SlotTaken
from clinic_scheduler.id_generator import IdGenerator
from clinic_scheduler.models import Appointment
from clinic_scheduler.scheduler import ClinicScheduler
from clinic_scheduler.shift_calendar import SlotState, slots_for
from tests.utils.scheduling_data import TOMORROW

pytestmark = pytest.mark.integration


def run_in_threads(count, target):
    """Start count threads on target(i) at once; collect results/errors by index."""
    barrier = threading.Barrier(count)
    results = [None] * count

    def worker(i):
        barrier.wait()
        try:
            results[i] = target(i)
        except SlotTaken as e:
            results[i] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def test_racing_bookings_for_one_slot_admit_exactly_one(scheduler, stored_lines):
    """Ten sessions grab the same slot: one wins, nine get SlotTaken."""
    patients = ["P001", "P002", "P003"]

    results = run_in_threads(
        10,
        lambda i: scheduler.book("D001", TOMORROW, time(9, 0), patients[i % 3], f"desk-{i}")
    )

    booked = [r for r in results if isinstance(r, Appointment)]
    rejected = [r for r in results if isinstance(r, SlotTaken)]
    assert len(booked) == 1
    assert len(rejected) == 9
    assert len(stored_lines()) == 1


def test_parallel_bookings_for_different_slots_all_persist(scheduler, stored_lines):
    """No write is lost when sessions interleave."""
    shift_slots = slots_for(TOMORROW, "Shift A")

    results = run_in_threads(
        len(shift_slots),
        lambda i: scheduler.book("D001", TOMORROW, shift_slots[i], "P001", f"desk-{i}")
    )

    assert all(isinstance(r, Appointment) for r in results)
    lines = stored_lines()
    assert len(lines) == 16
    assert len({Appointment.from_line(line).id for line in lines}) == 16


def test_second_instance_sees_first_instance_writes(settings, clock):
    """A stale calendar in one session can't double-book over another session."""
    front_desk = ClinicScheduler.from_settings(settings, clock=clock, id_generator=IdGenerator(rng=random.Random(1)))
    ward = ClinicScheduler.from_settings(settings, clock=clock, id_generator=IdGenerator(rng=random.Random(2)))

    stale_view = {v.time: v.state for v in front_desk.list_slots("D001", TOMORROW)}
    assert stale_view[time(9, 0)] == SlotState.AVAILABLE

    ward.book("D001", TOMORROW, time(9, 0), "P002", "ward")

    with pytest.raises(SlotTaken):
        front_desk.book("D001", TOMORROW, time(9, 0), "P001", "frontdesk")

    fresh_view = {v.time: v.state for v in front_desk.list_slots("D001", TOMORROW)}
    assert fresh_view[time(9, 0)] == SlotState.TAKEN


def test_delete_in_one_instance_frees_slot_for_the_other(settings, clock):
    first = ClinicScheduler.from_settings(settings, clock=clock)
    second = ClinicScheduler.from_settings(settings, clock=clock)

    appointment = first.book("D001", TOMORROW, time(9, 0), "P001", "frontdesk")
    second.delete(appointment.id, "admin")

    rebooked = first.book("D001", TOMORROW, time(9, 0), "P002", "frontdesk")
    assert rebooked.slot_key == appointment.slot_key
