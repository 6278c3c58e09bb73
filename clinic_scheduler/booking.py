"""New appointments: explicit doctor or auto-assigned.

Auto-assign picks, among doctors with the requested specialization and shift
who have the slot free, the one with the fewest appointments on file. Ties go
to the doctor listed first in doctors.txt.
"""
from datetime import date, datetime, time
from typing import Callable, List, Optional

from clinic_scheduler import config
from clinic_scheduler.availability import AvailabilityIndex, count_bookings
from clinic_scheduler.errors import NoDoctorAvailable, SlotInPast, SlotOutsideShift, SlotTaken
from clinic_scheduler.id_generator import IdGenerator
from clinic_scheduler.logging_config import get_logger
from clinic_scheduler.models import Appointment, AppointmentStatus, AutoSlotView, Doctor, Patient, line_id
from clinic_scheduler.shift_calendar import (
    SlotState,
    classify,
    format_time,
    is_on_shift,
    normalize_shift,
    slot_key,
    slots_for,
)
from clinic_scheduler.store import DoctorDirectory, PatientDirectory, PersistenceGateway, StoreTransaction

logger = get_logger(__name__)


class BookingEngine:
    """Creates appointments with a freshly checked slot."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        doctors: DoctorDirectory,
        patients: PatientDirectory,
        id_generator: IdGenerator,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.doctors = doctors
        self.patients = patients
        self.id_generator = id_generator
        self.clock = clock

    def book(
        self,
        doctor_id: str,
        day: date,
        slot_time: time,
        patient_id: str,
        actor: str,
    ) -> Appointment:
        """
        Book a slot with a specific doctor.

        Raises:
            NotFound: Unknown doctor or patient
            InvalidShift: Doctor has an unknown shift code
            SlotOutsideShift: Time isn't one of the doctor's slots
            SlotInPast: Slot already started
            SlotTaken: Slot held by another appointment
        """
        doctor = self.doctors.get(doctor_id)
        patient = self.patients.get(patient_id)
        shift = normalize_shift(doctor.shift)
        self._check_on_shift(slot_time, shift, doctor.id)

        with self.gateway.appointments.transaction() as txn:
            now = self.clock()
            index = AvailabilityIndex.from_lines(txn.lines)
            self._check_past(index, doctor.id, day, slot_time, shift, now)

            if not index.is_available(doctor.id, slot_key(day, slot_time)):
                logger.warning(
                    "booking_rejected", reason="slot_taken", doctor_id=doctor.id,
                    date=str(day), time=format_time(slot_time)
                )
                raise SlotTaken(
                    f"{doctor.full_name or doctor.id} is already booked on {day} at "
                    f"{format_time(slot_time)}. Pick another slot.",
                    alternatives=index.open_times(doctor.id, day, shift, now),
                )

            appointment = self._add(txn, doctor, patient, day, slot_time, actor, now)

        logger.info(
            "appointment_booked", appointment_id=appointment.id, doctor_id=doctor.id,
            patient_id=patient.id, slot=appointment.slot_key, actor=actor, auto_assigned=False
        )
        return appointment

    def book_auto(
        self,
        specialization: str,
        shift_code: str,
        day: date,
        slot_time: time,
        patient_id: str,
        actor: str,
    ) -> Appointment:
        """
        Book a slot with the least-loaded matching doctor.

        Raises:
            InvalidShift: Unknown shift code
            NotFound: Unknown patient
            SlotOutsideShift: Time isn't one of the shift's slots
            SlotInPast: Slot already started
            NoDoctorAvailable: No matching doctor has the slot free
        """
        shift = normalize_shift(shift_code)
        self._check_on_shift(slot_time, shift, None)
        patient = self.patients.get(patient_id)
        candidates = self._candidates(specialization, shift)

        with self.gateway.appointments.transaction() as txn:
            now = self.clock()
            index = AvailabilityIndex.from_lines(txn.lines)

            if classify(day, slot_time, now) == SlotState.PAST:
                logger.warning("booking_rejected", reason="slot_in_past", date=str(day),
                               time=format_time(slot_time))
                raise SlotInPast(
                    f"{day} {format_time(slot_time)} has already passed. Pick a later slot."
                )

            doctor = self._least_loaded(candidates, index, txn.lines, slot_key(day, slot_time))
            if doctor is None:
                logger.warning(
                    "booking_rejected", reason="no_doctor_available",
                    specialization=specialization, shift=shift, date=str(day),
                    time=format_time(slot_time)
                )
                raise NoDoctorAvailable(
                    f"No {specialization} doctor on {shift} is free on {day} at "
                    f"{format_time(slot_time)}. Pick another slot."
                )

            appointment = self._add(txn, doctor, patient, day, slot_time, actor, now)

        logger.info(
            "appointment_booked", appointment_id=appointment.id, doctor_id=doctor.id,
            patient_id=patient.id, slot=appointment.slot_key, actor=actor, auto_assigned=True
        )
        return appointment

    def preview_auto(self, specialization: str, shift_code: str, day: date) -> List[AutoSlotView]:
        """Who auto-assign would pick for each slot of the shift on this date."""
        shift = normalize_shift(shift_code)
        candidates = self._candidates(specialization, shift)
        lines = self.gateway.appointments.read_lines()
        index = AvailabilityIndex.from_lines(lines)
        now = self.clock()

        views = []
        for slot_time in slots_for(day, shift):
            if classify(day, slot_time, now) == SlotState.PAST:
                views.append(AutoSlotView(slot_time, SlotState.PAST))
                continue
            doctor = self._least_loaded(candidates, index, lines, slot_key(day, slot_time))
            if doctor is None:
                views.append(AutoSlotView(slot_time, SlotState.TAKEN))
            else:
                views.append(AutoSlotView(slot_time, SlotState.AVAILABLE, doctor.id))
        return views

    def _candidates(self, specialization: str, shift: str) -> List[Doctor]:
        wanted = specialization.strip().lower()
        return [
            d for d in self.doctors.all()
            if d.specialization.lower() == wanted and d.shift.strip().lower() == shift.lower()
        ]

    @staticmethod
    def _least_loaded(
        candidates: List[Doctor],
        index: AvailabilityIndex,
        lines: List[str],
        key: str,
    ) -> Optional[Doctor]:
        counts = count_bookings(lines)
        selected = None
        fewest = None
        for doctor in candidates:
            if not index.is_available(doctor.id, key):
                continue
            count = counts.get(doctor.id, 0)
            # Strict < keeps the first doctor on ties
            if fewest is None or count < fewest:
                selected, fewest = doctor, count
        return selected

    @staticmethod
    def _check_on_shift(slot_time: time, shift: str, doctor_id: Optional[str]) -> None:
        if not is_on_shift(slot_time, shift):
            logger.warning("booking_rejected", reason="slot_outside_shift", doctor_id=doctor_id,
                           shift=shift, time=format_time(slot_time))
            raise SlotOutsideShift(
                f"{format_time(slot_time)} is not a {shift} slot. "
                f"Slots run every {config.SLOT_DURATION_MINUTES} minutes within the shift."
            )

    @staticmethod
    def _check_past(index, doctor_id, day, slot_time, shift, now) -> None:
        if classify(day, slot_time, now) == SlotState.PAST:
            logger.warning("booking_rejected", reason="slot_in_past", doctor_id=doctor_id,
                           date=str(day), time=format_time(slot_time))
            raise SlotInPast(
                f"{day} {format_time(slot_time)} has already passed. Pick a later slot.",
                alternatives=index.open_times(doctor_id, day, shift, now),
            )

    def _add(
        self,
        txn: StoreTransaction,
        doctor: Doctor,
        patient: Patient,
        day: date,
        slot_time: time,
        actor: str,
        now: datetime,
    ) -> Appointment:
        appointment = Appointment(
            id=self.id_generator.random_id(line_id(line) for line in txn.lines),
            patient_id=patient.id,
            patient_first=patient.first_name,
            patient_last=patient.last_name,
            date=day,
            time=slot_time,
            doctor_id=doctor.id,
            doctor_name=doctor.full_name,
            specialization=doctor.specialization,
            shift=doctor.shift,
            created_at=now.strftime(config.TIMESTAMP_FORMAT),
            created_by=actor,
            status=AppointmentStatus.UPCOMING,
        )
        txn.lines.append(appointment.to_line())
        return appointment
