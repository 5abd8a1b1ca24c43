"""Tests for error injection and failure handling.

Tests that verify a failing store leaves both the data and every live
query exactly as they were before the failed call.
"""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from notekeep.exceptions import (
    ConfigurationError,
    ErrorCode,
    NoPendingDeleteError,
    NotekeepError,
    NoteNotFoundError,
    NoteValidationError,
    PersistenceError,
)
from notekeep.models.schema import Note, NotePatch
from notekeep.storage.queries import NoteQuery
from tests.fakes import Recorder


def _disk_failure():
    return OperationalError("COMMIT", {}, Exception("disk I/O error"))


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy and serialization."""

    def test_base_exception_to_dict(self):
        """Test base exception serialization."""
        exc = NotekeepError(
            "Test error", code=ErrorCode.STORAGE_READ_FAILED, details={"key": "value"}
        )
        result = exc.to_dict()

        assert result["error"] == "NotekeepError"
        assert result["code"] == 4001
        assert result["code_name"] == "STORAGE_READ_FAILED"
        assert result["message"] == "Test error"
        assert result["details"] == {"key": "value"}
        assert str(exc) == "[STORAGE_READ_FAILED] Test error (key=value)"

    def test_note_not_found_error(self):
        """Test NoteNotFoundError with note ID."""
        exc = NoteNotFoundError("abc123")

        assert exc.note_id == "abc123"
        assert exc.code == ErrorCode.NOTE_NOT_FOUND
        assert "abc123" in str(exc)

    def test_validation_error_truncates_value(self):
        exc = NoteValidationError("bad", field="title", value="x" * 500)
        assert exc.details["field"] == "title"
        assert len(exc.details["value"]) == 100

    def test_persistence_error_keeps_cause(self):
        cause = RuntimeError("boom")
        exc = PersistenceError("Failed", operation="insert", note_id="n1", original_error=cause)
        assert exc.original_error is cause
        assert exc.details == {"operation": "insert", "note_id": "n1", "original_error": "boom"}
        assert exc.code == ErrorCode.STORAGE_WRITE_FAILED

    def test_no_pending_delete_default_message(self):
        exc = NoPendingDeleteError()
        assert exc.code == ErrorCode.NO_PENDING_DELETE
        assert str(exc) == "[NO_PENDING_DELETE] No recently deleted note to restore"

    def test_configuration_error(self):
        exc = ConfigurationError("Invalid", config_key="undo_window_seconds")
        assert exc.code == ErrorCode.CONFIG_INVALID
        assert exc.details == {"config_key": "undo_window_seconds"}

    def test_all_errors_share_base(self):
        for exc in (
            NoteNotFoundError("x"),
            NoteValidationError("x"),
            PersistenceError("x"),
            NoPendingDeleteError(),
            ConfigurationError("x"),
        ):
            assert isinstance(exc, NotekeepError)

    def test_every_error_code_is_raised_somewhere(self):
        """Each code belongs to an error the package actually produces."""
        produced = {
            NoteNotFoundError("x").code,
            NoteValidationError("x").code,
            PersistenceError("x", code=ErrorCode.STORAGE_READ_FAILED).code,
            PersistenceError("x").code,
            PersistenceError("x", code=ErrorCode.STORAGE_DELETE_FAILED).code,
            NoPendingDeleteError().code,
            ConfigurationError("x").code,
        }
        assert produced == set(ErrorCode)


class TestStorageFailures:
    """A failed write changes nothing and publishes nothing."""

    def test_failed_insert(self, note_repository):
        recorder = Recorder()
        note_repository.subscribe(NoteQuery.all(), recorder)

        with patch.object(Session, "commit", side_effect=_disk_failure()):
            with pytest.raises(PersistenceError) as exc_info:
                note_repository.insert(Note(title="lost"))

        assert exc_info.value.operation == "insert"
        assert isinstance(exc_info.value.original_error, OperationalError)
        assert note_repository.count() == 0
        assert recorder.count == 1

    def test_failed_update(self, note_repository):
        stored = note_repository.insert(Note(title="A"))
        recorder = Recorder()
        note_repository.subscribe(NoteQuery.all(), recorder)

        with patch.object(Session, "commit", side_effect=_disk_failure()):
            with pytest.raises(PersistenceError):
                note_repository.update(stored.id, NotePatch(title="B"))

        assert note_repository.get(stored.id).title == "A"
        assert recorder.count == 1

    def test_failed_delete_keeps_note_and_undo_slot(self, notes_service, timers):
        keep = notes_service.insert(Note(title="keep"))
        notes_service.delete(notes_service.insert(Note(title="pending")))

        with patch.object(Session, "commit", side_effect=_disk_failure()):
            with pytest.raises(PersistenceError) as exc_info:
                notes_service.delete(keep)

        assert exc_info.value.code == ErrorCode.STORAGE_DELETE_FAILED
        assert notes_service.get_note(keep) is not None
        assert notes_service.undo.pending.note.title == "pending"
        assert len(timers.timers) == 1

    def test_failed_delete_all(self, note_repository):
        note_repository.insert(Note(title="A"))
        with patch.object(Session, "commit", side_effect=_disk_failure()):
            with pytest.raises(PersistenceError):
                note_repository.delete_all()
        assert note_repository.count() == 1

    def test_failed_read(self, note_store):
        with patch.object(Session, "execute", side_effect=_disk_failure()):
            with pytest.raises(PersistenceError) as exc_info:
                note_store.fetch(NoteQuery.all())
        assert exc_info.value.code == ErrorCode.STORAGE_READ_FAILED

    def test_store_recovers_after_failure(self, note_repository):
        with patch.object(Session, "commit", side_effect=_disk_failure()):
            with pytest.raises(PersistenceError):
                note_repository.insert(Note(title="lost"))
        stored = note_repository.insert(Note(title="saved"))
        assert [n.id for n in note_repository.snapshot(NoteQuery.all())] == [stored.id]
