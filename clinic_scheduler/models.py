"""Domain records and their pipe-delimited line formats.

appointments.txt:
    id|patientId|patientFirst|patientLast|date|time|doctorId|doctorName|
    specialization|shift|createdAt|createdBy|status[|extra...]

appointments_deleted.txt:
    timestamp|actor|<full original appointment line>

doctors.txt and patients.txt are owned by user management; only the fields
the scheduler needs are read.
"""
import datetime as dt
import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from clinic_scheduler import config
from clinic_scheduler.errors import CorruptRecord, NotFound
from clinic_scheduler.shift_calendar import SlotState, slot_key

APPOINTMENT_FIELDS = 13


class AppointmentStatus(str, Enum):
    """Stored appointment status."""
    UPCOMING = "Upcoming"
    RESCHEDULED = "Rescheduled"
    COMPLETED = "Completed"


class Doctor(BaseModel):
    """A bookable doctor (one line of doctors.txt)."""
    id: str = Field(..., min_length=1)
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    specialization: str = ""
    shift: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_line(cls, line: str) -> Optional["Doctor"]:
        """Parse a doctors.txt line; None for short or blank lines."""
        parts = line.split("|")
        if len(parts) < 15 or not parts[0].strip():
            return None
        return cls(
            id=parts[0].strip(),
            username=parts[1],
            first_name=parts[3],
            last_name=parts[4],
            specialization=parts[13].strip(),
            shift=parts[14].strip(),
        )


class Patient(BaseModel):
    """A patient (one line of patients.txt)."""
    id: str = Field(..., min_length=1)
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_line(cls, line: str) -> Optional["Patient"]:
        parts = line.split("|")
        if len(parts) < 5 or not parts[0].strip():
            return None
        return cls(id=parts[0].strip(), first_name=parts[3], last_name=parts[4])


class Appointment(BaseModel):
    """One active appointment line."""
    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., min_length=1, description="Appointment id, e.g. A48213")
    patient_id: str
    patient_first: str = ""
    patient_last: str = ""
    date: dt.date
    time: dt.time
    doctor_id: str = Field(..., min_length=1)
    doctor_name: str = ""
    specialization: str = ""
    shift: str = ""
    created_at: str = Field("", description="yyyy-MM-dd HH:mm:ss")
    created_by: str = ""
    status: AppointmentStatus = AppointmentStatus.UPCOMING
    extra: List[str] = Field(
        default_factory=list,
        description="Fields after status, kept verbatim for other tools"
    )

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        """Accept any casing; blank means Upcoming."""
        if isinstance(v, AppointmentStatus):
            return v
        text = (v or "").strip().lower()
        if not text:
            return AppointmentStatus.UPCOMING
        for status in AppointmentStatus:
            if status.value.lower() == text:
                return status
        raise ValueError(f"Unknown appointment status '{v}'")

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return value.strftime(config.TIME_FORMAT)

    @property
    def slot_key(self) -> str:
        return slot_key(self.date, self.time)

    @property
    def starts_at(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.time)

    def effective_status(self, now: dt.datetime) -> AppointmentStatus:
        """
        Status as users see it.

        Anything whose start is before now is Completed, whatever was stored.
        """
        if self.starts_at < now:
            return AppointmentStatus.COMPLETED
        return self.status

    @classmethod
    def from_line(cls, line: str) -> "Appointment":
        """
        Parse an appointments.txt line.

        Raises:
            CorruptRecord: If the line is too short or has bad date/time/status
        """
        parts = line.rstrip("\r\n").split("|")
        if len(parts) < 7:
            raise CorruptRecord(f"Appointment record has {len(parts)} fields, expected 13: {line!r}")

        fields = parts[:APPOINTMENT_FIELDS] + [""] * (APPOINTMENT_FIELDS - len(parts))
        try:
            return cls(
                id=fields[0].strip(),
                patient_id=fields[1],
                patient_first=fields[2],
                patient_last=fields[3],
                date=dt.datetime.strptime(fields[4].strip(), config.DATE_FORMAT).date(),
                time=dt.datetime.strptime(fields[5].strip(), config.TIME_FORMAT).time(),
                doctor_id=fields[6].strip(),
                doctor_name=fields[7],
                specialization=fields[8],
                shift=fields[9],
                created_at=fields[10],
                created_by=fields[11],
                status=fields[12],
                extra=parts[APPOINTMENT_FIELDS:],
            )
        except (ValueError, ValidationError) as e:
            raise CorruptRecord(f"Unreadable appointment record {line!r}: {e}") from e

    def to_line(self) -> str:
        fields = [
            self.id,
            self.patient_id,
            self.patient_first,
            self.patient_last,
            self.date.strftime(config.DATE_FORMAT),
            self.time.strftime(config.TIME_FORMAT),
            self.doctor_id,
            self.doctor_name,
            self.specialization,
            self.shift,
            self.created_at,
            self.created_by,
            self.status.value,
        ]
        return "|".join([clean_field(f) for f in fields] + list(self.extra))

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", exclude={"extra"})


def line_id(line: str) -> str:
    """Appointment id of a raw line (first field)."""
    return line.split("|", 1)[0].strip()


def find_line(lines: List[str], appointment_id: str) -> int:
    """
    Position of an appointment's line.

    Raises:
        NotFound: If no line has this id
    """
    for position, line in enumerate(lines):
        if line_id(line) == appointment_id:
            return position
    raise NotFound(f"Appointment '{appointment_id}' not found")


def clean_field(value: str) -> str:
    """Make free text safe to store as one field of one line."""
    return " ".join(value.replace("|", " ").splitlines()).strip() if value else ""


class ArchivedAppointment(BaseModel):
    """One soft-deleted appointment in appointments_deleted.txt."""
    timestamp: str
    actor: str
    original_line: str

    @property
    def line(self) -> str:
        return f"{self.timestamp}|{self.actor}|{self.original_line}"

    @property
    def ref(self) -> str:
        """Stable handle for this entry (content hash of the archive line)."""
        return hashlib.sha1(self.line.encode("utf-8")).hexdigest()[:12]

    @classmethod
    def from_line(cls, line: str) -> Optional["ArchivedAppointment"]:
        parts = line.rstrip("\r\n").split("|", 2)
        if len(parts) < 3:
            return None
        return cls(timestamp=parts[0], actor=parts[1], original_line=parts[2])

    def appointment(self) -> Appointment:
        """
        The archived appointment.

        Raises:
            CorruptRecord: If the stored line can't be parsed
        """
        return Appointment.from_line(self.original_line)

    def to_dict(self) -> dict:
        data = {
            "ref": self.ref,
            "deleted_at": self.timestamp,
            "deleted_by": self.actor,
        }
        try:
            data["appointment"] = self.appointment().to_dict()
        except CorruptRecord:
            data["appointment"] = None
            data["original_line"] = self.original_line
        return data


@dataclass(frozen=True)
class SlotView:
    """One slot in a doctor's day."""
    time: dt.time
    state: SlotState

    def to_dict(self) -> dict:
        return {"time": self.time.strftime(config.TIME_FORMAT), "state": self.state.value}


@dataclass(frozen=True)
class AutoSlotView:
    """One slot of an auto-assign calendar: who would get it, if anyone."""
    time: dt.time
    state: SlotState
    doctor_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "time": self.time.strftime(config.TIME_FORMAT),
            "state": self.state.value,
            "doctor_id": self.doctor_id,
        }


@dataclass(frozen=True)
class AppointmentView:
    """An appointment with its effective (derived) status."""
    appointment: Appointment
    effective_status: AppointmentStatus

    @property
    def is_completed(self) -> bool:
        return self.effective_status == AppointmentStatus.COMPLETED

    def to_dict(self) -> dict:
        data = self.appointment.to_dict()
        data["effective_status"] = self.effective_status.value
        return data
