"""Soft delete and restore.

Deleting moves an appointment line into appointments_deleted.txt, prefixed
with when and by whom. Restoring puts it back, either in its original slot
(keeping its id when that id is still free) or in a replacement slot under a
new sequential id.
"""
from datetime import date, datetime, time
from typing import Callable, List, Optional

from clinic_scheduler import config
from clinic_scheduler.availability import AvailabilityIndex
from clinic_scheduler.errors import (
    ArchiveCleanupFailed,
    NotFound,
    PersistenceFailure,
    SchedulingError,
    SlotInPast,
    SlotOutsideShift,
    SlotTaken,
)
from clinic_scheduler.id_generator import IdGenerator
from clinic_scheduler.logging_config import get_logger
from clinic_scheduler.models import (
    Appointment,
    AppointmentStatus,
    ArchivedAppointment,
    clean_field,
    find_line,
    line_id,
)
from clinic_scheduler.shift_calendar import SlotState, classify, format_time, is_on_shift, normalize_shift, slot_key
from clinic_scheduler.store import DoctorDirectory, PersistenceGateway

logger = get_logger(__name__)


class ArchiveEngine:
    """Moves appointments between the active store and the archive."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        doctors: DoctorDirectory,
        id_generator: IdGenerator,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.doctors = doctors
        self.id_generator = id_generator
        self.clock = clock

    def delete(self, appointment_id: str, actor: str) -> ArchivedAppointment:
        """
        Archive an appointment and drop it from the active store.

        The archive entry is written (and fsynced) before the active store is
        rewritten, so a crash in between leaves a duplicate, never a loss.

        Raises:
            NotFound: Unknown appointment id
            PersistenceFailure: Archive append or store rewrite failed
        """
        entry = None
        try:
            with self.gateway.appointments.transaction() as txn:
                position = find_line(txn.lines, appointment_id)
                line = txn.lines.pop(position)
                pending = ArchivedAppointment(
                    timestamp=self.clock().strftime(config.TIMESTAMP_FORMAT),
                    actor=clean_field(actor),
                    original_line=line,
                )
                self.gateway.archive.append_line(pending.line)
                # Archived from here on; a failed rewrite leaves a duplicate
                entry = pending
        except PersistenceFailure:
            if entry is not None:
                logger.error("archive_entry_orphaned", appointment_id=appointment_id, ref=entry.ref)
            raise

        logger.info("appointment_archived", appointment_id=appointment_id, ref=entry.ref, actor=actor)
        return entry

    def list_archived(self) -> List[ArchivedAppointment]:
        """Archive entries, oldest first. Malformed lines are skipped."""
        entries = []
        for line in self.gateway.archive.read_lines():
            entry = ArchivedAppointment.from_line(line)
            if entry is None:
                logger.warning("archive_line_skipped", line=line)
                continue
            entries.append(entry)
        return entries

    def restore(
        self,
        ref: str,
        actor: str,
        chosen_date: Optional[date] = None,
        chosen_time: Optional[time] = None,
    ) -> Appointment:
        """
        Bring an archived appointment back.

        Without a chosen slot, the original slot is used if it is still in
        the future and free. Otherwise SlotInPast / SlotTaken is raised with
        alternatives and the caller retries with chosen_date/chosen_time.

        Raises:
            NotFound: Unknown ref, or the doctor no longer exists
            CorruptRecord: Archived line can't be parsed
            SchedulingError: Only one of chosen_date / chosen_time was given
            SlotInPast / SlotTaken / SlotOutsideShift: Slot can't be used
            ArchiveCleanupFailed: Restored, but the archive entry is still there
        """
        if (chosen_date is None) != (chosen_time is None):
            logger.warning("restore_rejected", reason="incomplete_slot", ref=ref)
            raise SchedulingError("Choose both a date and a time for the restored appointment")

        with self.gateway.lock:
            entry = self._find_entry(ref)
            original = entry.appointment()
            doctor = self.doctors.get(original.doctor_id)
            shift = normalize_shift(doctor.shift)
            chosen = (chosen_date, chosen_time) if chosen_date is not None else None

            with self.gateway.appointments.transaction() as txn:
                now = self.clock()
                index = AvailabilityIndex.from_lines(txn.lines)
                ids = {line_id(line) for line in txn.lines}

                elapsed = classify(original.date, original.time, now) == SlotState.PAST
                original_free = index.is_available(doctor.id, original.slot_key)

                if not elapsed and original_free and chosen in (None, (original.date, original.time)):
                    day, slot_time = original.date, original.time
                    new_id = original.id if original.id not in ids else self.id_generator.next_sequential(ids)
                elif chosen is None:
                    self._reject_original(index, original, shift, elapsed, now)
                else:
                    day, slot_time = chosen
                    self._check_chosen(index, original, shift, day, slot_time, now)
                    # Never hand the original id to a different slot
                    new_id = self.id_generator.next_sequential(ids | {original.id})

                restored = original.model_copy(update={
                    "id": new_id,
                    "date": day,
                    "time": slot_time,
                    "created_at": now.strftime(config.TIMESTAMP_FORMAT),
                    "created_by": actor,
                    "status": AppointmentStatus.UPCOMING,
                })
                txn.lines.append(restored.to_line())

            logger.info(
                "appointment_restored", ref=ref, original_id=original.id, appointment_id=new_id,
                slot=restored.slot_key, actor=actor
            )

            try:
                self._remove_entry(entry)
            except PersistenceFailure as e:
                logger.error("archive_cleanup_failed", ref=ref, appointment_id=new_id, error=e.message)
                raise ArchiveCleanupFailed(
                    f"Appointment {new_id} was restored, but its archive entry could not be "
                    f"removed ({e.message}). Remove entry {ref} by hand.",
                    restored,
                ) from e

        return restored

    def _find_entry(self, ref: str) -> ArchivedAppointment:
        for entry in self.list_archived():
            if entry.ref == ref:
                return entry
        raise NotFound(f"Archived appointment '{ref}' not found")

    def _remove_entry(self, entry: ArchivedAppointment) -> None:
        with self.gateway.archive.transaction() as txn:
            if entry.line in txn.lines:
                txn.lines.remove(entry.line)
            else:
                logger.warning("archive_entry_already_gone", ref=entry.ref)

    @staticmethod
    def _reject_original(index, original, shift, elapsed, now) -> None:
        if elapsed:
            logger.warning("restore_rejected", reason="elapsed", appointment_id=original.id)
            raise SlotInPast(
                f"Appointment {original.id} was for {original.date} "
                f"{format_time(original.time)}, which has passed. Choose a new date and time.",
                alternatives=index.open_times(original.doctor_id, now.date(), shift, now),
            )
        logger.warning("restore_rejected", reason="taken", appointment_id=original.id)
        raise SlotTaken(
            f"The original slot {original.date} {format_time(original.time)} has been "
            "booked since. Choose a new date and time.",
            alternatives=index.open_times(original.doctor_id, original.date, shift, now),
        )

    @staticmethod
    def _check_chosen(index, original, shift, day, slot_time, now) -> None:
        if not is_on_shift(slot_time, shift):
            logger.warning("restore_rejected", reason="slot_outside_shift",
                           appointment_id=original.id, time=format_time(slot_time))
            raise SlotOutsideShift(f"{format_time(slot_time)} is not a {shift} slot")
        key = slot_key(day, slot_time)
        if classify(day, slot_time, now) == SlotState.PAST:
            logger.warning("restore_rejected", reason="slot_in_past", appointment_id=original.id, slot=key)
            raise SlotInPast(
                f"{day} {format_time(slot_time)} has already passed. Pick a later slot.",
                alternatives=index.open_times(original.doctor_id, day, shift, now),
            )
        if not index.is_available(original.doctor_id, key):
            logger.warning("restore_rejected", reason="slot_taken", appointment_id=original.id, slot=key)
            raise SlotTaken(
                f"{original.doctor_name or original.doctor_id} is already booked on {day} at "
                f"{format_time(slot_time)}. Pick another slot.",
                alternatives=index.open_times(original.doctor_id, day, shift, now),
            )
