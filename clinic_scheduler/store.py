"""Flat-file persistence for appointments, the archive and the directories.

Every rewrite goes through a temp file in the same directory that is fsynced
and then os.replace()d over the original, so readers see either the old file
or the new one, never a partial write.

FlatFileStore.transaction() is the one read-validate-replace primitive:

    with store.transaction() as txn:
        ...inspect / edit txn.lines...
    # committed atomically on clean exit, untouched if the block raised
"""
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clinic_scheduler.errors import NotFound, PersistenceFailure
from clinic_scheduler.logging_config import get_logger
from clinic_scheduler.models import Doctor, Patient

logger = get_logger(__name__)
_retry_logger = logging.getLogger(__name__)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
    retry=retry_if_exception_type(PermissionError),
    before_sleep=before_sleep_log(_retry_logger, logging.WARNING),
    reraise=True
)
def _replace(src: str, dst: Path) -> None:
    # Windows refuses the rename while another handle is open; that clears quickly
    os.replace(src, dst)


class StoreTransaction:
    """Snapshot of a store's lines, editable in place."""

    def __init__(self, lines: List[str]):
        self.lines = list(lines)
        self._snapshot = list(lines)

    @property
    def changed(self) -> bool:
        return self.lines != self._snapshot


class FlatFileStore:
    """One pipe-delimited, line-per-record UTF-8 file."""

    def __init__(self, path: Path, lock: Optional[threading.RLock] = None):
        self.path = Path(path)
        self.lock = lock or threading.RLock()

    def read_lines(self) -> List[str]:
        """
        Read all non-blank lines.

        A missing file is an empty store.

        Raises:
            PersistenceFailure: If the file exists but can't be read or isn't UTF-8
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return [line.rstrip("\r\n") for line in f if line.strip()]
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceFailure(f"Could not read {self.path.name}: {e}") from e

    def append_line(self, line: str) -> None:
        """
        Append one record and flush it to disk before returning.

        Raises:
            PersistenceFailure: On an I/O error or a line that can't be encoded
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8", newline="\n") as f:
                f.write(line + "\n")
                f.flush()
                os.fsync(f.fileno())
        except (OSError, UnicodeError) as e:
            raise PersistenceFailure(f"Could not append to {self.path.name}: {e}") from e

    def replace_lines(self, lines: List[str]) -> None:
        """
        Atomically replace the whole file.

        Raises:
            PersistenceFailure: On any I/O or encoding error (the previous file is
                left intact and the temp file removed)
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
        except OSError as e:
            raise PersistenceFailure(f"Could not create temp file for {self.path.name}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                for line in lines:
                    f.write(line + "\n")
                f.flush()
                os.fsync(f.fileno())
            _replace(tmp_name, self.path)
        except (OSError, UnicodeError) as e:
            self._discard(tmp_name)
            raise PersistenceFailure(f"Could not rewrite {self.path.name}: {e}") from e

    def _discard(self, tmp_name: str) -> None:
        try:
            Path(tmp_name).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("temp_file_not_removed", path=tmp_name, error=str(e))

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """
        Read a fresh snapshot under the store lock; commit edits on clean exit.

        Raising inside the block discards the edits.
        """
        with self.lock:
            txn = StoreTransaction(self.read_lines())
            yield txn
            if txn.changed:
                self.replace_lines(txn.lines)


class PersistenceGateway:
    """
    Appointment store + archive store sharing one re-entrant lock.

    The shared lock makes each engine's read-rebuild-write sequence a single
    critical section within this process. Other processes (or other gateways
    on the same files) are only guarded by re-reading before commit.
    """

    def __init__(self, appointments_path: Path, archive_path: Path):
        self.lock = threading.RLock()
        self.appointments = FlatFileStore(appointments_path, self.lock)
        self.archive = FlatFileStore(archive_path, self.lock)

    @classmethod
    def from_settings(cls, settings) -> "PersistenceGateway":
        return cls(settings.appointments_path, settings.archive_path)


class DoctorDirectory:
    """Read-only view of doctors.txt, re-read on every lookup."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._file = FlatFileStore(self.path)

    def all(self) -> List[Doctor]:
        """All doctors in file order (first line wins for a repeated id)."""
        if not self.path.exists():
            logger.warning("doctors_file_missing", path=str(self.path))
            return []

        doctors = []
        seen = set()
        for line in self._file.read_lines():
            doctor = Doctor.from_line(line)
            if doctor is None or doctor.id in seen:
                continue
            seen.add(doctor.id)
            doctors.append(doctor)
        return doctors

    def find(self, doctor_id: str) -> Optional[Doctor]:
        return next((d for d in self.all() if d.id == doctor_id), None)

    def get(self, doctor_id: str) -> Doctor:
        """
        Raises:
            NotFound: If no doctor has this id
        """
        doctor = self.find(doctor_id)
        if doctor is None:
            raise NotFound(f"Doctor '{doctor_id}' not found")
        return doctor


class PatientDirectory:
    """Read-only view of patients.txt."""

    def __init__(self, path: Path):
        self._file = FlatFileStore(Path(path))

    def get(self, patient_id: str) -> Patient:
        """
        Raises:
            NotFound: If no patient has this id
        """
        for line in self._file.read_lines():
            patient = Patient.from_line(line)
            if patient is not None and patient.id == patient_id:
                return patient
        raise NotFound(f"Patient '{patient_id}' not found")
