"""Test flat-file persistence."""
import os

import pytest

from clinic_scheduler.errors import NotFound, PersistenceFailure
from clinic_scheduler.store import DoctorDirectory, FlatFileStore, PatientDirectory, PersistenceGateway
from tests.utils.scheduling_data import DOCTORS, TOMORROW, appointment_line, doctor_line


@pytest.fixture
def store(tmp_path):
    return FlatFileStore(tmp_path / "appointments.txt")


def test_missing_file_reads_as_empty(store):
    assert store.read_lines() == []


def test_blank_lines_are_skipped(store):
    store.path.write_text("a|b\n\n  \nc|d\n", encoding="utf-8")
    assert store.read_lines() == ["a|b", "c|d"]


def test_append_line_adds_one_record(store):
    store.append_line("first")
    store.append_line("second")
    assert store.read_lines() == ["first", "second"]


def test_unencodable_append_raises_persistence_failure(store):
    store.append_line("first")

    with pytest.raises(PersistenceFailure):
        store.append_line("desk\udc80")

    assert store.read_lines() == ["first"]


def test_invalid_utf8_raises_persistence_failure(store):
    store.path.write_bytes(b"A10001|P001\n\xff\xfe\n")

    with pytest.raises(PersistenceFailure) as exc_info:
        store.read_lines()

    assert "appointments.txt" in str(exc_info.value)


class TestReplaceLines:
    """Atomic whole-file rewrite."""

    def test_replace_writes_new_content(self, store):
        store.append_line("old")
        store.replace_lines(["new-1", "new-2"])
        assert store.read_lines() == ["new-1", "new-2"]

    def test_failed_rename_keeps_original_file(self, store, monkeypatch):
        """A crash before the rename leaves the old content and no temp file."""
        store.append_line("original")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("clinic_scheduler.store.os.replace", broken_replace)

        with pytest.raises(PersistenceFailure) as exc_info:
            store.replace_lines(["partial"])

        assert "disk full" in str(exc_info.value)
        assert store.read_lines() == ["original"]
        assert sorted(p.name for p in store.path.parent.iterdir()) == ["appointments.txt"]

    def test_unencodable_line_keeps_original_file(self, store):
        """A line that can't be written as UTF-8 fails typed and leaves no temp file."""
        store.append_line("original")

        with pytest.raises(PersistenceFailure):
            store.replace_lines(["original", "desk\udc80"])

        assert store.read_lines() == ["original"]
        assert sorted(p.name for p in store.path.parent.iterdir()) == ["appointments.txt"]

    def test_permission_error_on_rename_is_retried(self, store, monkeypatch):
        """Transient PermissionError (file held open elsewhere) is retried."""
        real_replace = os.replace
        calls = {"count": 0}

        def flaky_replace(src, dst):
            calls["count"] += 1
            if calls["count"] < 3:
                raise PermissionError("file in use")
            real_replace(src, dst)

        monkeypatch.setattr("clinic_scheduler.store.os.replace", flaky_replace)

        store.replace_lines(["after-retry"])

        assert calls["count"] == 3
        assert store.read_lines() == ["after-retry"]


class TestTransaction:
    """Read-validate-replace."""

    def test_commit_on_clean_exit(self, store):
        store.append_line("keep")

        with store.transaction() as txn:
            txn.lines.append("added")

        assert store.read_lines() == ["keep", "added"]

    def test_exception_discards_edits(self, store):
        store.append_line("keep")

        with pytest.raises(NotFound):
            with store.transaction() as txn:
                txn.lines.clear()
                raise NotFound("nothing here")

        assert store.read_lines() == ["keep"]

    def test_unchanged_snapshot_is_not_rewritten(self, store, monkeypatch):
        store.append_line("keep")

        def fail(lines):
            raise AssertionError("should not rewrite")

        monkeypatch.setattr(store, "replace_lines", fail)

        with store.transaction() as txn:
            assert txn.lines == ["keep"]
            assert not txn.changed

    def test_transaction_reads_fresh_file(self, store):
        """Edits by another writer since the last read are seen."""
        store.append_line("one")
        FlatFileStore(store.path).append_line("two")

        with store.transaction() as txn:
            assert txn.lines == ["one", "two"]


def test_gateway_stores_share_one_lock(tmp_path):
    gateway = PersistenceGateway(tmp_path / "appointments.txt", tmp_path / "appointments_deleted.txt")
    assert gateway.appointments.lock is gateway.lock
    assert gateway.archive.lock is gateway.lock


class TestDirectories:
    """doctors.txt / patients.txt lookups."""

    def test_all_doctors_in_file_order(self, data_dir):
        doctors = DoctorDirectory(data_dir / "doctors.txt").all()
        assert [d.id for d in doctors] == ["D001", "D002", "D003", "D004"]

    def test_first_line_wins_for_repeated_id(self, tmp_path):
        path = tmp_path / "doctors.txt"
        path.write_text("\n".join([
            DOCTORS[0],
            doctor_line("D001", "Other", "Person", "Pediatrics", "Shift C"),
            "too|short",
        ]) + "\n", encoding="utf-8")

        doctors = DoctorDirectory(path).all()

        assert len(doctors) == 1
        assert doctors[0].specialization == "Cardiology"

    def test_missing_doctors_file_is_empty(self, tmp_path):
        assert DoctorDirectory(tmp_path / "doctors.txt").all() == []

    def test_unknown_doctor_raises_not_found(self, data_dir):
        with pytest.raises(NotFound) as exc_info:
            DoctorDirectory(data_dir / "doctors.txt").get("D999")
        assert "D999" in str(exc_info.value)

    def test_patient_lookup(self, data_dir):
        patients = PatientDirectory(data_dir / "patients.txt")

        assert patients.get("P002").first_name == "Bob"
        with pytest.raises(NotFound):
            patients.get("P999")


def test_appointment_lines_survive_a_rewrite(store):
    lines = [appointment_line("A10001", "D001", TOMORROW, "09:00") + "|"]
    store.replace_lines(lines)
    assert store.read_lines() == lines
