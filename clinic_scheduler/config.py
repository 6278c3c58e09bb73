"""Configuration for the clinic appointment scheduler.

All scheduling rules are centralized here - modify as needed without touching code.
Deployment settings (paths, logging, HTTP) come from the environment / .env file.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Shift windows: code -> first and last slot start (inclusive)
SHIFT_WINDOWS = {
    "Shift A": {"start_time": "08:00", "end_time": "15:30"},
    "Shift B": {"start_time": "16:00", "end_time": "23:30"},
    "Shift C": {"start_time": "00:00", "end_time": "07:30"},
}

SLOT_DURATION_MINUTES = 30

# Calendars offer today + 30 days
BOOKING_HORIZON_DAYS = 30

# Appointment ids: "A" + digits
APPOINTMENT_ID_PREFIX = "A"
RANDOM_ID_MIN = 10000
RANDOM_ID_MAX = 99999
RESTORED_ID_WIDTH = 5
MAX_ID_ATTEMPTS = 1000

# Alternatives offered when a slot can't be used
MAX_ALTERNATIVES = 5

# Flat files (relative to Settings.data_dir)
APPOINTMENTS_FILE = "appointments.txt"
ARCHIVE_FILE = "appointments_deleted.txt"
DOCTORS_FILE = "doctors.txt"
PATIENTS_FILE = "patients.txt"

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Settings(BaseModel):
    """Deployment settings for one clinic installation."""
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding appointments/doctors/patients files"
    )
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    json_logs: bool = Field(default=True, description="JSON logs (False = console renderer)")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=5000, gt=0, lt=65536)

    @property
    def appointments_path(self) -> Path:
        return self.data_dir / APPOINTMENTS_FILE

    @property
    def archive_path(self) -> Path:
        return self.data_dir / ARCHIVE_FILE

    @property
    def doctors_path(self) -> Path:
        return self.data_dir / DOCTORS_FILE

    @property
    def patients_path(self) -> Path:
        return self.data_dir / PATIENTS_FILE


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from .env and environment variables.

    Args:
        env_file: Optional explicit .env path (default: search from cwd)

    Returns:
        Settings instance
    """
    load_dotenv(env_file)

    return Settings(
        data_dir=Path(os.getenv("CLINIC_DATA_DIR", "data")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_logs=os.getenv("LOG_JSON", "true").lower() == "true",
        api_host=os.getenv("CLINIC_API_HOST", "0.0.0.0"),
        api_port=int(os.getenv("CLINIC_API_PORT", "5000")),
    )
