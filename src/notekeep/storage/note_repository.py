"""Repository for note storage, retrieval and live queries."""

import logging
from typing import Optional, Tuple

from sqlalchemy.engine import Engine

from notekeep.models.schema import Note, NotePatch
from notekeep.storage.live_query import Callback, LiveQueryRegistry, Subscription
from notekeep.storage.note_store import NoteStore
from notekeep.storage.queries import NoteQuery

logger = logging.getLogger(__name__)


class NoteRepository:
    """The only gateway through which notes are changed.

    Queries are answered as live handles rather than one-shot lists: a
    subscriber sees every later insert, update or delete without asking
    again. Each mutating method publishes to the live queries it affects
    before it returns, so by the time the caller reads anything the views
    are already current. A mutation that fails publishes nothing.
    """

    def __init__(self, store: Optional[NoteStore] = None, engine: Optional[Engine] = None):
        """Initialize the repository.

        Args:
            store: Note storage backend. Created from ``engine`` (or the
                global config) if None.
            engine: Pre-configured SQLAlchemy engine, used only when store
                is None.
        """
        self.store = store if store is not None else NoteStore(engine=engine)
        self.live = LiveQueryRegistry(self.store.fetch, self.store.lock)

    # =========================================================================
    # Queries
    # =========================================================================

    def subscribe(self, query: NoteQuery, callback: Callback) -> Subscription:
        """Open a live query. ``callback`` receives the current result now."""
        return self.live.subscribe(query, callback)

    def snapshot(self, query: NoteQuery) -> Tuple[Note, ...]:
        """Evaluate a query once, without subscribing."""
        return self.store.fetch(query)

    def get(self, note_id: str) -> Optional[Note]:
        return self.store.get(note_id)

    def count(self) -> int:
        return self.store.count()

    # =========================================================================
    # Mutations
    # =========================================================================

    def insert(self, note: Note) -> Note:
        """Persist a draft and return it as stored, with its new identity."""
        with self.store.lock:
            note_id = self.store.insert(note)
            stored = note.model_copy(update={"id": note_id})
            self.live.publish((stored,))
        logger.info(f"Created note {note_id}")
        return stored

    def update(self, note_id: str, patch: NotePatch) -> Note:
        with self.store.lock:
            before = self.store.get(note_id)
            after = self.store.update(note_id, patch)
            self.live.publish(tuple(n for n in (before, after) if n is not None))
        return after

    def delete(self, note_id: str) -> Note:
        """Delete a note and return the full record that was removed."""
        with self.store.lock:
            removed = self.store.delete(note_id)
            self.live.publish((removed,))
        logger.info(f"Deleted note {note_id}")
        return removed

    def delete_all(self) -> int:
        """Delete every note. An already empty repository is not an error."""
        with self.store.lock:
            removed = self.store.delete_all()
            if removed:
                self.live.publish()
        return removed

    def close(self) -> None:
        self.live.close()
        self.store.close()
