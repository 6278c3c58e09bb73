"""ClinicScheduler: one object wiring the engines to the flat files.

Usage:
    scheduler = ClinicScheduler.from_settings(load_settings())
    slots = scheduler.list_slots("D001", date(2025, 1, 15))
    appointment = scheduler.book("D001", date(2025, 1, 15), time(9, 30), "P001", "frontdesk")
"""
from datetime import date, datetime, time
from typing import Callable, List, Optional

from clinic_scheduler.archive import ArchiveEngine
from clinic_scheduler.availability import AvailabilityIndex
from clinic_scheduler.booking import BookingEngine
from clinic_scheduler.config import Settings
from clinic_scheduler.errors import CorruptRecord
from clinic_scheduler.id_generator import IdGenerator
from clinic_scheduler.logging_config import get_logger
from clinic_scheduler.models import (
    Appointment,
    AppointmentView,
    ArchivedAppointment,
    AutoSlotView,
    SlotView,
    find_line,
)
from clinic_scheduler.reschedule import RescheduleEngine
from clinic_scheduler.shift_calendar import SlotState, booking_horizon, classify, normalize_shift, slot_key, slots_for
from clinic_scheduler.store import DoctorDirectory, PatientDirectory, PersistenceGateway

logger = get_logger(__name__)


class ClinicScheduler:
    """All scheduling operations over one data directory."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        doctors: DoctorDirectory,
        patients: PatientDirectory,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.gateway = gateway
        self.doctors = doctors
        self.patients = patients
        self.id_generator = id_generator or IdGenerator()
        self.clock = clock or datetime.now

        self.booking = BookingEngine(gateway, doctors, patients, self.id_generator, self.clock)
        self.rescheduling = RescheduleEngine(gateway, doctors, self.clock)
        self.archive = ArchiveEngine(gateway, doctors, self.id_generator, self.clock)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ClinicScheduler":
        return cls(
            PersistenceGateway.from_settings(settings),
            DoctorDirectory(settings.doctors_path),
            PatientDirectory(settings.patients_path),
            **kwargs,
        )

    # Calendar views

    def open_dates(self) -> List[date]:
        """Dates the booking calendars offer (today through the horizon)."""
        return booking_horizon(self.clock().date())

    def list_slots(
        self,
        doctor_id: str,
        day: date,
        own_appointment_id: Optional[str] = None,
    ) -> List[SlotView]:
        """
        A doctor's slots on a date as Past / Available / Taken.

        Args:
            doctor_id: Doctor to show
            day: Date to show
            own_appointment_id: When rescheduling, the appointment being
                moved; its current slot is shown as Available

        Raises:
            NotFound: Unknown doctor
            InvalidShift: Doctor has an unknown shift code
        """
        doctor = self.doctors.get(doctor_id)
        shift = normalize_shift(doctor.shift)
        lines = self.gateway.appointments.read_lines()
        index = AvailabilityIndex.from_lines(lines)
        now = self.clock()

        own_key = None
        if own_appointment_id:
            own = Appointment.from_line(lines[find_line(lines, own_appointment_id)])
            if own.doctor_id == doctor.id:
                own_key = own.slot_key

        views = []
        for slot_time in slots_for(day, shift):
            key = slot_key(day, slot_time)
            if classify(day, slot_time, now) == SlotState.PAST:
                state = SlotState.PAST
            elif key == own_key or index.is_available(doctor.id, key):
                state = SlotState.AVAILABLE
            else:
                state = SlotState.TAKEN
            views.append(SlotView(slot_time, state))
        return views

    def preview_auto(self, specialization: str, shift_code: str, day: date) -> List[AutoSlotView]:
        return self.booking.preview_auto(specialization, shift_code, day)

    # Mutations

    def book(self, doctor_id: str, day: date, slot_time: time, patient_id: str, actor: str) -> Appointment:
        return self.booking.book(doctor_id, day, slot_time, patient_id, actor)

    def book_auto(
        self,
        specialization: str,
        shift_code: str,
        day: date,
        slot_time: time,
        patient_id: str,
        actor: str,
    ) -> Appointment:
        return self.booking.book_auto(specialization, shift_code, day, slot_time, patient_id, actor)

    def reschedule(self, appointment_id: str, new_date: date, new_time: time, actor: str) -> Appointment:
        return self.rescheduling.reschedule(appointment_id, new_date, new_time, actor)

    def delete(self, appointment_id: str, actor: str) -> ArchivedAppointment:
        return self.archive.delete(appointment_id, actor)

    def list_archived(self) -> List[ArchivedAppointment]:
        return self.archive.list_archived()

    def restore(
        self,
        ref: str,
        actor: str,
        chosen_date: Optional[date] = None,
        chosen_time: Optional[time] = None,
    ) -> Appointment:
        return self.archive.restore(ref, actor, chosen_date, chosen_time)

    # Lookups

    def list_appointments(
        self,
        patient_id: Optional[str] = None,
        doctor_id: Optional[str] = None,
    ) -> List[AppointmentView]:
        """Active appointments in file order with their effective status."""
        now = self.clock()
        views = []
        for line in self.gateway.appointments.read_lines():
            try:
                appointment = Appointment.from_line(line)
            except CorruptRecord as e:
                logger.warning("appointment_line_skipped", error=e.message)
                continue
            if patient_id and appointment.patient_id != patient_id:
                continue
            if doctor_id and appointment.doctor_id != doctor_id:
                continue
            views.append(AppointmentView(appointment, appointment.effective_status(now)))
        return views

    def get_appointment(self, appointment_id: str) -> AppointmentView:
        """
        Raises:
            NotFound: Unknown appointment id
            CorruptRecord: Its line can't be parsed
        """
        lines = self.gateway.appointments.read_lines()
        appointment = Appointment.from_line(lines[find_line(lines, appointment_id)])
        return AppointmentView(appointment, appointment.effective_status(self.clock()))
