"""Clinic appointment scheduler over flat pipe-delimited files."""
from clinic_scheduler.errors import (
    ArchiveCleanupFailed,
    CorruptRecord,
    IdSpaceExhausted,
    ImmutableCompleted,
    InvalidShift,
    NoDoctorAvailable,
    NotFound,
    PersistenceFailure,
    SchedulingError,
    SlotInPast,
    SlotOutsideShift,
    SlotTaken,
)
from clinic_scheduler.models import Appointment, AppointmentStatus, ArchivedAppointment
from clinic_scheduler.scheduler import ClinicScheduler
from clinic_scheduler.shift_calendar import SlotState

__all__ = [
    "ClinicScheduler",
    "Appointment",
    "AppointmentStatus",
    "ArchivedAppointment",
    "SlotState",
    "SchedulingError",
    "NotFound",
    "SlotTaken",
    "SlotInPast",
    "SlotOutsideShift",
    "NoDoctorAvailable",
    "ImmutableCompleted",
    "InvalidShift",
    "IdSpaceExhausted",
    "CorruptRecord",
    "PersistenceFailure",
    "ArchiveCleanupFailed",
]
