"""SQLite-backed note store."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notekeep.exceptions import ErrorCode, NoteNotFoundError, PersistenceError
from notekeep.models.db_models import DBNote, get_session_factory, init_db
from notekeep.models.schema import (
    Note,
    NotePatch,
    Priority,
    ensure_timezone_aware,
    generate_id,
    utc_now,
)
from notekeep.storage.base import Store
from notekeep.storage.queries import NoteQuery

logger = logging.getLogger(__name__)


class NoteStore(Store[Note, NoteQuery, NotePatch]):
    """Durable note storage on top of SQLAlchemy.

    Every mutation runs in its own transaction: either the whole change is
    committed or the session is rolled back and a PersistenceError raised.
    A single re-entrant lock serialises mutations and query evaluation, so
    no reader ever sees a half-applied change even when the store is shared
    between threads.
    """

    def __init__(self, engine: Optional[Engine] = None):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. When omitted, one is
                created from the global config via init_db().
        """
        self.engine = engine if engine is not None else init_db()
        self.session_factory = get_session_factory(self.engine)
        self.lock = threading.RLock()
        logger.info(f"NoteStore initialized: db_url={self.engine.url}")

    @contextmanager
    def _transaction(
        self, operation: str, note_id: Optional[str] = None, code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED
    ) -> Iterator[Session]:
        """Run a unit of work, translating storage failures into PersistenceError."""
        with self.lock:
            session = self.session_factory()
            try:
                yield session
                session.commit()
            except NoteNotFoundError:
                session.rollback()
                raise
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Storage operation '{operation}' failed: {e}")
                raise PersistenceError(
                    f"Failed to {operation} note",
                    operation=operation,
                    note_id=note_id,
                    code=code,
                    original_error=e,
                ) from e
            finally:
                session.close()

    @staticmethod
    def _to_model(db_note: DBNote) -> Note:
        return Note(
            id=db_note.id,
            title=db_note.title or "",
            content=db_note.content or "",
            priority=Priority(db_note.priority),
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
        )

    @staticmethod
    def _apply(db_note: DBNote, note: Note) -> None:
        db_note.title = note.title
        db_note.content = note.content
        db_note.priority = note.priority.value
        db_note.priority_rank = note.priority.rank
        db_note.created_at = note.created_at
        db_note.updated_at = note.updated_at

    def insert(self, note: Note) -> str:
        """Persist a draft note under a new identity.

        Any identity already on the note is ignored: identities are assigned
        by the store, so a restored note always comes back under a new one.
        """
        note_id = generate_id()
        db_note = DBNote(id=note_id)
        self._apply(db_note, note)
        with self._transaction("insert", note_id) as session:
            session.add(db_note)
        logger.debug(f"Inserted note {note_id}")
        return note_id

    def get(self, id: str) -> Optional[Note]:
        with self._transaction("read", id, code=ErrorCode.STORAGE_READ_FAILED) as session:
            db_note = session.get(DBNote, id)
            return self._to_model(db_note) if db_note is not None else None

    def update(self, id: str, patch: NotePatch) -> Note:
        """Apply ``patch`` and refresh the modification time.

        Raises:
            NoteNotFoundError: If no note has this identity.
            PersistenceError: If the write fails; nothing is changed.
        """
        with self._transaction("update", id) as session:
            db_note = session.get(DBNote, id)
            if db_note is None:
                raise NoteNotFoundError(id)
            current = self._to_model(db_note)
            changes = patch.changes()
            changes["updated_at"] = max(utc_now(), current.updated_at)
            updated = current.model_copy(update=changes)
            self._apply(db_note, updated)
        logger.debug(f"Updated note {id}: {sorted(patch.changes())}")
        return updated

    def delete(self, id: str) -> Note:
        """Remove a note and return its last stored state.

        Raises:
            NoteNotFoundError: If no note has this identity (including a
                second delete of the same note).
            PersistenceError: If the delete fails; nothing is changed.
        """
        with self._transaction("delete", id, code=ErrorCode.STORAGE_DELETE_FAILED) as session:
            db_note = session.get(DBNote, id)
            if db_note is None:
                raise NoteNotFoundError(id)
            removed = self._to_model(db_note)
            session.delete(db_note)
        logger.debug(f"Deleted note {id}")
        return removed

    def delete_all(self) -> int:
        with self._transaction("delete all", code=ErrorCode.STORAGE_DELETE_FAILED) as session:
            result = session.execute(delete(DBNote))
            removed = result.rowcount or 0
        logger.info(f"Deleted all notes ({removed} removed)")
        return removed

    def fetch(self, query: NoteQuery) -> Tuple[Note, ...]:
        with self._transaction("query", code=ErrorCode.STORAGE_READ_FAILED) as session:
            db_notes = session.execute(query.to_select()).scalars().all()
            return tuple(self._to_model(db_note) for db_note in db_notes)

    def count(self) -> int:
        """Get total count of notes in the store."""
        with self._transaction("count", code=ErrorCode.STORAGE_READ_FAILED) as session:
            return session.execute(select(func.count(DBNote.id))).scalar() or 0

    def close(self) -> None:
        """Release database connections."""
        with self.lock:
            self.engine.dispose()

    def __enter__(self) -> "NoteStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
