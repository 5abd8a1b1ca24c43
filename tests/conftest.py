"""Common test fixtures for notekeep."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from notekeep.config import config
from notekeep.models.db_models import init_db
from notekeep.models.schema import Note, Priority
from notekeep.observability import metrics
from notekeep.services.notes_service import NotesService
from notekeep.storage.note_repository import NoteRepository
from notekeep.storage.note_store import NoteStore
from tests.fakes import FakeTimerFactory


@pytest.fixture
def temp_dirs():
    """Create a temporary directory for the database and logs."""
    with tempfile.TemporaryDirectory() as base_dir:
        yield Path(base_dir)


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "base_dir", temp_dirs)
    monkeypatch.setattr(config, "database_path", temp_dirs / "db" / "notes.db")
    monkeypatch.setattr(config, "in_memory_db", True)
    monkeypatch.setattr(config, "undo_window_seconds", 2.75)
    yield config


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
def engine(test_config):
    """A fresh in-memory database."""
    engine = init_db(in_memory=True)
    yield engine
    engine.dispose()


@pytest.fixture
def note_store(engine):
    return NoteStore(engine=engine)


@pytest.fixture
def note_repository(note_store):
    """Create a test note repository."""
    repository = NoteRepository(store=note_store)
    yield repository
    repository.live.close()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def notes_service(note_repository, timers):
    """NotesService whose undo window is driven by fake timers."""
    service = NotesService(
        repository=note_repository, undo_window_seconds=2.75, timer_factory=timers
    )
    yield service
    service.undo.shutdown()


@pytest.fixture
def real_timer_service(note_repository):
    """NotesService with a real, very short undo window."""
    service = NotesService(repository=note_repository, undo_window_seconds=0.05)
    yield service
    service.undo.shutdown()


@pytest.fixture
def make_note():
    """Build drafts with explicit timestamps so ordering tests are exact."""
    base = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def _make(title="", content="", priority=Priority.LOW, minutes=0):
        stamp = base + timedelta(minutes=minutes)
        return Note(
            title=title,
            content=content,
            priority=priority,
            created_at=stamp,
            updated_at=stamp,
        )

    return _make
