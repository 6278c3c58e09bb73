"""Moving an existing appointment to another slot with the same doctor."""
from datetime import date, datetime, time
from typing import Callable, List

from clinic_scheduler import config
from clinic_scheduler.availability import AvailabilityIndex
from clinic_scheduler.errors import ImmutableCompleted, SlotInPast, SlotOutsideShift, SlotTaken
from clinic_scheduler.logging_config import get_logger
from clinic_scheduler.models import Appointment, AppointmentStatus, find_line
from clinic_scheduler.shift_calendar import SlotState, classify, format_time, is_on_shift, normalize_shift, slot_key
from clinic_scheduler.store import DoctorDirectory, PersistenceGateway

logger = get_logger(__name__)


class RescheduleEngine:
    """Rewrites one appointment line in place under a fresh availability check."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        doctors: DoctorDirectory,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.doctors = doctors
        self.clock = clock

    def reschedule(self, appointment_id: str, new_date: date, new_time: time, actor: str) -> Appointment:
        """
        Move an appointment; its old slot is released in the same write.

        Picking the appointment's own current slot is allowed (it only
        refreshes created_at / created_by / status).

        Raises:
            NotFound: Unknown appointment id
            CorruptRecord: The stored line can't be parsed
            ImmutableCompleted: The appointment has already started
            InvalidShift: The doctor's shift code is unknown
            SlotOutsideShift: New time isn't one of the doctor's slots
            SlotInPast: New slot already started
            SlotTaken: New slot held by another appointment
        """
        with self.gateway.appointments.transaction() as txn:
            now = self.clock()
            position = find_line(txn.lines, appointment_id)
            current = Appointment.from_line(txn.lines[position])

            if current.effective_status(now) == AppointmentStatus.COMPLETED:
                logger.warning("reschedule_rejected", reason="completed", appointment_id=appointment_id)
                raise ImmutableCompleted(
                    f"Appointment {appointment_id} is completed and can no longer be rescheduled"
                )

            shift = self._shift_of(current)
            if not is_on_shift(new_time, shift):
                logger.warning("reschedule_rejected", reason="slot_outside_shift",
                               appointment_id=appointment_id, time=format_time(new_time))
                raise SlotOutsideShift(f"{format_time(new_time)} is not a {shift} slot")

            index = AvailabilityIndex.from_lines(txn.lines)
            new_key = slot_key(new_date, new_time)

            if classify(new_date, new_time, now) == SlotState.PAST:
                logger.warning("reschedule_rejected", reason="slot_in_past",
                               appointment_id=appointment_id, slot=new_key)
                raise SlotInPast(
                    f"{new_date} {format_time(new_time)} has already passed. Pick a later slot.",
                    alternatives=self._alternatives(index, current, new_date, shift, now),
                )

            if new_key != current.slot_key and not index.is_available(current.doctor_id, new_key):
                logger.warning("reschedule_rejected", reason="slot_taken",
                               appointment_id=appointment_id, slot=new_key)
                raise SlotTaken(
                    f"{current.doctor_name or current.doctor_id} is already booked on "
                    f"{new_date} at {format_time(new_time)}. Pick another slot.",
                    alternatives=self._alternatives(index, current, new_date, shift, now),
                )

            updated = current.model_copy(update={
                "date": new_date,
                "time": new_time,
                "created_at": now.strftime(config.TIMESTAMP_FORMAT),
                "created_by": actor,
                "status": AppointmentStatus.RESCHEDULED,
            })
            txn.lines[position] = updated.to_line()

        logger.info(
            "appointment_rescheduled", appointment_id=appointment_id, doctor_id=current.doctor_id,
            old_slot=current.slot_key, new_slot=new_key, actor=actor
        )
        return updated

    def _shift_of(self, appointment: Appointment) -> str:
        # Directory is authoritative; fall back to the shift stored on the record
        doctor = self.doctors.find(appointment.doctor_id)
        return normalize_shift(doctor.shift if doctor else appointment.shift)

    @staticmethod
    def _alternatives(index, current, day, shift, now) -> List[str]:
        # The appointment's own slot counts as open
        own = AvailabilityIndex()
        for key in index.occupied(current.doctor_id):
            if key != current.slot_key:
                own.book(current.doctor_id, key)
        return own.open_times(current.doctor_id, day, shift, now)
