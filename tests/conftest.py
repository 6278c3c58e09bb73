"""Shared test fixtures."""
import random

import pytest

from clinic_scheduler.config import Settings
from clinic_scheduler.id_generator import IdGenerator
from clinic_scheduler.scheduler import ClinicScheduler
from tests.utils.scheduling_data import DOCTORS, NOW, PATIENTS, FixedClock


@pytest.fixture
def data_dir(tmp_path):
    """Data directory with doctors and patients but no appointments."""
    (tmp_path / "doctors.txt").write_text("\n".join(DOCTORS) + "\n", encoding="utf-8")
    (tmp_path / "patients.txt").write_text("\n".join(PATIENTS) + "\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def settings(data_dir):
    return Settings(data_dir=data_dir, json_logs=False)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def scheduler(settings, clock):
    """Scheduler on the temp data dir with a fixed clock and seeded ids."""
    return ClinicScheduler.from_settings(
        settings,
        id_generator=IdGenerator(rng=random.Random(42)),
        clock=clock,
    )


@pytest.fixture
def seed_appointments(settings):
    """Write raw lines to appointments.txt."""
    def _seed(*lines):
        settings.appointments_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return _seed


@pytest.fixture
def stored_lines(settings):
    """Current non-blank lines of a store file."""
    def _read(path=None):
        path = path or settings.appointments_path
        if not path.exists():
            return []
        return [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    return _read
