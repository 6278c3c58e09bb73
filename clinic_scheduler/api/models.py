"""Pydantic models for API request validation."""
import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookRequest(BaseModel):
    """Request schema for POST /appointments.

    Either doctor_id (explicit booking) or specialization + shift
    (auto-assign to the least-loaded doctor) must be given.
    """
    patient_id: str = Field(..., min_length=1, max_length=50)
    date: dt.date = Field(..., description="YYYY-MM-DD")
    time: dt.time = Field(..., description="HH:MM, 24h")
    actor: str = Field(..., min_length=1, max_length=100, description="Who is booking")
    doctor_id: Optional[str] = Field(None, min_length=1, max_length=50)
    specialization: Optional[str] = Field(None, min_length=1, max_length=100)
    shift: Optional[str] = Field(None, min_length=1, examples=["Shift A"])

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "patient_id": "P001",
                "doctor_id": "D001",
                "date": "2025-01-15",
                "time": "09:30",
                "actor": "frontdesk"
            }
        }
    )

    @model_validator(mode="after")
    def check_target(self):
        if self.doctor_id is None and not (self.specialization and self.shift):
            raise ValueError("Provide doctor_id, or specialization and shift for auto-assign")
        return self

    @property
    def auto_assign(self) -> bool:
        return self.doctor_id is None


class RescheduleRequest(BaseModel):
    """Request schema for PUT /appointments/<id>/reschedule."""
    date: dt.date
    time: dt.time
    actor: str = Field(..., min_length=1, max_length=100)


class RestoreRequest(BaseModel):
    """Request schema for POST /archive/<ref>/restore.

    date/time are only needed when the original slot can't be reused.
    """
    actor: str = Field(..., min_length=1, max_length=100)
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None

    @model_validator(mode="after")
    def check_pair(self):
        if (self.date is None) != (self.time is None):
            raise ValueError("Provide both date and time, or neither")
        return self
