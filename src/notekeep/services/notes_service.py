"""Service layer for note operations.

This is the API the UI talks to. It wires the repository to the undo
coordinator so that every delete can be taken back for a short while.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine

from notekeep.config import config
from notekeep.exceptions import NoteValidationError
from notekeep.models.schema import Note, NotePatch, Priority
from notekeep.observability import traced
from notekeep.services.undo_delete import PendingDelete, TimerFactory, UndoDeleteCoordinator
from notekeep.storage.live_query import Callback, Subscription
from notekeep.storage.note_repository import NoteRepository
from notekeep.storage.queries import NoteQuery

logger = logging.getLogger(__name__)


class NotesService:
    """Service for managing notes."""

    def __init__(
        self,
        repository: Optional[NoteRepository] = None,
        undo: Optional[UndoDeleteCoordinator] = None,
        engine: Optional[Engine] = None,
        undo_window_seconds: Optional[float] = None,
        timer_factory: Optional[TimerFactory] = None,
    ):
        """Initialize the service.

        Args:
            repository: Note repository. Created with defaults if None.
            undo: Undo coordinator. Created over ``repository`` if None.
            engine: Pre-configured SQLAlchemy engine to pass to
                NoteRepository. Only used when repository is None.
            undo_window_seconds: Grace window for undo. Defaults to
                config.undo_window_seconds. Only used when undo is None.
            timer_factory: Timer constructor for the undo coordinator.
                Only used when undo is None.
        """
        if repository is not None:
            self.repository = repository
        else:
            self.repository = NoteRepository(engine=engine)

        if undo is not None:
            self.undo = undo
        else:
            kwargs: Dict[str, Any] = {}
            if timer_factory is not None:
                kwargs["timer_factory"] = timer_factory
            self.undo = UndoDeleteCoordinator(
                self.repository,
                grace_seconds=(
                    undo_window_seconds
                    if undo_window_seconds is not None
                    else config.undo_window_seconds
                ),
                **kwargs,
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def subscribe(self, query: NoteQuery, on_change: Callback) -> Subscription:
        """Open a live query; ``on_change`` gets the ordered notes now and after every change."""
        return self.repository.subscribe(query, on_change)

    @traced("snapshot")
    def snapshot(self, query: NoteQuery) -> Tuple[Note, ...]:
        return self.repository.snapshot(query)

    def get_note(self, note_id: str) -> Optional[Note]:
        """Retrieve a note by ID."""
        return self.repository.get(note_id)

    def count_notes(self) -> int:
        return self.repository.count()

    # =========================================================================
    # Mutations
    # =========================================================================

    @traced("insert")
    def insert(self, draft: Note) -> str:
        """Persist a draft note and return its new identity."""
        return self.repository.insert(draft).id

    def create_note(
        self,
        title: str = "",
        content: str = "",
        priority: Union[Priority, str] = Priority.LOW,
    ) -> Note:
        """Build a draft from plain values and insert it.

        Returns:
            The stored note.
        """
        try:
            priority = Priority.parse(priority)
        except ValueError as e:
            raise NoteValidationError(str(e), field="priority", value=priority) from e
        try:
            draft = Note(title=title, content=content, priority=priority)
        except PydanticValidationError as e:
            raise NoteValidationError(f"Invalid note: {e}") from e
        note_id = self.insert(draft)
        return self.repository.get(note_id) or draft.model_copy(update={"id": note_id})

    @traced("update")
    def update(self, note_id: str, patch: Union[NotePatch, Dict[str, Any]]) -> Note:
        """Apply a partial update to a note.

        Raises:
            NoteNotFoundError: If the note does not exist.
            NoteValidationError: If the patch is malformed.
            PersistenceError: If the write fails.
        """
        if not isinstance(patch, NotePatch):
            try:
                patch = NotePatch(**patch)
            except (ValueError, TypeError, PydanticValidationError) as e:
                raise NoteValidationError(f"Invalid note patch: {e}", value=patch) from e
        return self.repository.update(note_id, patch)

    @traced("delete")
    def delete(self, note_id: str) -> PendingDelete:
        """Delete a note and open the undo window for it.

        The full note is captured by the delete itself, so the undo buffer
        holds exactly what was removed.

        Raises:
            NoteNotFoundError: If the note does not exist; the undo slot is
                left untouched.
            PersistenceError: If the delete fails; the undo slot is left
                untouched.
        """
        # Arm under the store lock so the slot always holds the last committed delete
        with self.repository.store.lock:
            removed = self.repository.delete(note_id)
            return self.undo.arm(removed)

    @traced("undo_last_delete")
    def undo_last_delete(self) -> Note:
        """Restore the most recently deleted note under a new identity.

        Raises:
            NoPendingDeleteError: If there is nothing to restore.
        """
        return self.undo.undo()

    @traced("delete_all")
    def delete_all(self) -> int:
        """Delete every note. Returns the number removed."""
        removed = self.repository.delete_all()
        logger.info(f"Removed all notes ({removed})")
        return removed

    def shutdown(self) -> None:
        """Cancel the undo timer and release the database."""
        self.undo.shutdown()
        self.repository.close()
