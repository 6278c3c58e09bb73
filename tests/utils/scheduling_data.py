"""Fixed clock, dates and line builders shared by the scheduler tests."""
from datetime import datetime, timedelta

NOW = datetime(2026, 3, 2, 10, 0)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)
YESTERDAY = TODAY - timedelta(days=1)


def doctor_line(doctor_id, first, last, specialization, shift):
    """doctors.txt line: specialization and shift live in fields 13 and 14."""
    fields = [doctor_id, first.lower(), "secret", first, last] + [""] * 8 + [specialization, shift]
    return "|".join(fields)


def patient_line(patient_id, first, last):
    return "|".join([patient_id, first.lower(), "secret", first, last])


def appointment_line(appointment_id, doctor_id, day, slot, patient_id="P001", status="Upcoming"):
    """appointments.txt line for seeding a store."""
    return "|".join([
        appointment_id, patient_id, "Alice", "Smith", str(day), slot, doctor_id,
        "Seeded Doctor", "Cardiology", "Shift A", "2026-01-01 09:00:00", "seed", status,
    ])


DOCTORS = [
    doctor_line("D001", "Gregory", "House", "Cardiology", "Shift A"),
    doctor_line("D002", "Meredith", "Grey", "Cardiology", "Shift A"),
    doctor_line("D003", "John", "Dorian", "Pediatrics", "Shift B"),
    doctor_line("D004", "Chris", "Turk", "Cardiology", "Shift B"),
]

PATIENTS = [
    patient_line("P001", "Alice", "Smith"),
    patient_line("P002", "Bob", "Jones"),
    patient_line("P003", "Carol", "White"),
]


class FixedClock:
    """Callable clock tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
