"""Scheduling error taxonomy.

Every error carries a machine-readable code, the HTTP status the API layer
maps it to, and a message that tells the user what to do next.
"""
from typing import List, Optional


class SchedulingError(Exception):
    """Base class for all scheduling failures."""
    code = "SCHEDULING_ERROR"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message, "code": self.code}


class NotFound(SchedulingError):
    """No such appointment, archive entry, doctor or patient."""
    code = "NOT_FOUND"
    http_status = 404


class _SlotUnusable(SchedulingError):
    """Slot rejected; carries alternative times the caller can pick instead."""

    def __init__(self, message: str, alternatives: Optional[List[str]] = None):
        super().__init__(message)
        self.alternatives = list(alternatives or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["alternatives"] = self.alternatives
        return data


class SlotTaken(_SlotUnusable):
    """Slot already held by another active appointment."""
    code = "SLOT_TAKEN"
    http_status = 409


class SlotInPast(_SlotUnusable):
    """Slot start is before now."""
    code = "SLOT_IN_PAST"
    http_status = 400


class SlotOutsideShift(SchedulingError):
    """Time is not one of the doctor's shift slots."""
    code = "SLOT_OUTSIDE_SHIFT"
    http_status = 400


class NoDoctorAvailable(SchedulingError):
    """Auto-assign found no matching doctor with the slot free."""
    code = "NO_DOCTOR_AVAILABLE"
    http_status = 409


class ImmutableCompleted(SchedulingError):
    """Completed appointments can't be changed."""
    code = "IMMUTABLE_COMPLETED"
    http_status = 400


class InvalidShift(SchedulingError):
    """Unknown shift code."""
    code = "INVALID_SHIFT"
    http_status = 400


class IdSpaceExhausted(SchedulingError):
    """Random id generation gave up after the configured number of draws."""
    code = "ID_SPACE_EXHAUSTED"
    http_status = 503


class CorruptRecord(SchedulingError):
    """Stored line can't be parsed into an appointment."""
    code = "CORRUPT_RECORD"
    http_status = 422


class PersistenceFailure(SchedulingError):
    """I/O error while reading or writing a store file."""
    code = "PERSISTENCE_FAILURE"
    http_status = 500


class ArchiveCleanupFailed(PersistenceFailure):
    """
    Restore was written but its archive entry could not be removed.

    The restore is committed; the archive now holds a stale duplicate
    that has to be removed by hand.
    """
    code = "ARCHIVE_CLEANUP_FAILED"

    def __init__(self, message: str, appointment):
        super().__init__(message)
        self.appointment = appointment

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["appointment"] = self.appointment.to_dict()
        return data
