"""Tests for the NotesService API."""
import pytest

from notekeep.exceptions import ErrorCode, NoteNotFoundError, NoteValidationError
from notekeep.models.schema import Note, NotePatch, Priority
from notekeep.observability import metrics
from notekeep.services.notes_service import NotesService
from notekeep.storage.queries import NoteQuery
from tests.fakes import Recorder


class TestCreate:
    def test_insert_returns_identity(self, notes_service):
        note_id = notes_service.insert(Note(title="A", content="b"))
        assert notes_service.get_note(note_id).title == "A"
        assert notes_service.count_notes() == 1

    def test_create_note_parses_priority(self, notes_service):
        note = notes_service.create_note("Groceries", "milk", priority="High")
        assert note.id is not None
        assert note.priority == Priority.HIGH

    def test_create_note_rejects_unknown_priority(self, notes_service):
        with pytest.raises(NoteValidationError) as exc_info:
            notes_service.create_note("A", priority="urgent")
        assert exc_info.value.field == "priority"
        assert exc_info.value.code == ErrorCode.NOTE_VALIDATION_FAILED
        assert notes_service.count_notes() == 0

    def test_empty_title_and_content_allowed(self, notes_service):
        note = notes_service.create_note()
        assert note.title == ""
        assert note.content == ""


class TestUpdate:
    def test_update_with_patch(self, notes_service):
        note_id = notes_service.insert(Note(title="A"))
        updated = notes_service.update(note_id, NotePatch(content="new body"))
        assert updated.content == "new body"
        assert updated.title == "A"

    def test_update_with_dict(self, notes_service):
        note_id = notes_service.insert(Note(title="A"))
        updated = notes_service.update(note_id, {"priority": "m", "title": "B"})
        assert updated.priority == Priority.MEDIUM
        assert updated.title == "B"

    def test_update_with_bad_dict(self, notes_service):
        note_id = notes_service.insert(Note(title="A"))
        with pytest.raises(NoteValidationError):
            notes_service.update(note_id, {"colour": "red"})
        with pytest.raises(NoteValidationError):
            notes_service.update(note_id, {"priority": "urgent"})
        assert notes_service.get_note(note_id).title == "A"

    def test_update_missing_note(self, notes_service):
        with pytest.raises(NoteNotFoundError):
            notes_service.update("20240101T000000000000000000", NotePatch(title="x"))


class TestDelete:
    def test_delete_missing_note_leaves_undo_alone(self, notes_service):
        notes_service.delete(notes_service.insert(Note(title="A")))
        with pytest.raises(NoteNotFoundError):
            notes_service.delete("20240101T000000000000000000")
        assert notes_service.undo.pending.note.title == "A"

    def test_double_delete_fails(self, notes_service):
        note_id = notes_service.insert(Note(title="A"))
        notes_service.delete(note_id)
        with pytest.raises(NoteNotFoundError):
            notes_service.delete(note_id)

    def test_delete_all(self, notes_service):
        for title in ("a", "b"):
            notes_service.insert(Note(title=title))
        assert notes_service.delete_all() == 2
        assert notes_service.delete_all() == 0
        assert notes_service.snapshot(NoteQuery.all()) == ()


class TestQueries:
    def test_subscribe_and_snapshot_agree(self, notes_service):
        recorder = Recorder()
        notes_service.subscribe(NoteQuery.by_priority(), recorder)
        notes_service.create_note("low", priority="low")
        notes_service.create_note("high", priority="high")
        assert recorder.latest == notes_service.snapshot(NoteQuery.by_priority())
        assert recorder.titles() == ["high", "low"]


class TestMetrics:
    def test_operations_are_traced(self, notes_service):
        note_id = notes_service.insert(Note(title="A"))
        notes_service.delete(note_id)
        with pytest.raises(NoteNotFoundError):
            notes_service.delete(note_id)

        recorded = metrics.get_metrics()
        assert recorded["insert"]["count"] == 1
        assert recorded["delete"]["count"] == 2
        assert recorded["delete"]["error_count"] == 1


class TestConstruction:
    def test_defaults_come_from_config(self, test_config, engine):
        service = NotesService(engine=engine)
        try:
            assert service.undo.grace_seconds == test_config.undo_window_seconds
            service.insert(Note(title="A"))
            assert service.count_notes() == 1
        finally:
            service.shutdown()
