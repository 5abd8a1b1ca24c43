"""Undo for swipe-to-delete.

The coordinator keeps a single in-memory copy of the most recently deleted
note for a short grace window. Within the window the note can be put back;
afterwards, or as soon as another note is deleted, it is gone for good.
Nothing here is persisted: if the process exits while a note is pending,
that note stays deleted.
"""

import datetime
import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional

from notekeep.exceptions import NoPendingDeleteError
from notekeep.models.schema import Note, utc_now
from notekeep.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


@dataclass(frozen=True)
class PendingDelete:
    """A deleted note that can still be restored.

    Attributes:
        note: Full payload of the note as it was just before deletion.
        armed_at: When the grace window opened.
        expires_at: When it closes.
    """

    note: Note
    armed_at: datetime.datetime = field(default_factory=utc_now)
    expires_at: Optional[datetime.datetime] = None

    @property
    def message(self) -> str:
        """Text for the undo prompt."""
        return f"Deleted: '{self.note.title}'"

    def remaining_seconds(self) -> float:
        if self.expires_at is None:
            return 0.0
        return max(0.0, (self.expires_at - utc_now()).total_seconds())


class UndoDeleteCoordinator:
    """Single-slot holder for the last deleted note.

    States are Empty (``pending is None``) and PendingRestore. Arming while
    a note is already pending silently replaces it, so only the most recent
    delete can be undone.

    Args:
        repository: Where restored notes are re-inserted.
        grace_seconds: Length of the undo window.
        timer_factory: Builds the expiry timer; threading.Timer by default.
    """

    def __init__(
        self,
        repository: NoteRepository,
        grace_seconds: float,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        if grace_seconds <= 0:
            raise ValueError("grace_seconds must be > 0")
        self._repository = repository
        self._grace_seconds = grace_seconds
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._pending: Optional[PendingDelete] = None
        self._timer: Optional[threading.Timer] = None
        self._shutdown = False

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    @property
    def pending(self) -> Optional[PendingDelete]:
        """The note waiting to be restored, or None."""
        with self._lock:
            return self._pending

    @property
    def has_pending(self) -> bool:
        return self.pending is not None

    def _cancel_timer(self) -> None:
        """Cancel the expiry timer. Caller holds the lock."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def arm(self, note: Note) -> PendingDelete:
        """Open a grace window for a note that has just been deleted.

        Any note already pending is discarded and stays deleted.
        """
        if self._shutdown:
            raise RuntimeError("UndoDeleteCoordinator has been shut down")
        now = utc_now()
        entry = PendingDelete(
            note=note,
            armed_at=now,
            expires_at=now + timedelta(seconds=self._grace_seconds),
        )
        with self._lock:
            replaced = self._pending
            self._cancel_timer()
            self._pending = entry
            timer = self._timer_factory(self._grace_seconds, lambda: self._expire(entry))
            timer.daemon = True  # Don't block process exit
            self._timer = timer
            timer.start()

        if replaced is not None:
            logger.info(
                f"Undo for note {replaced.note.id} discarded by a newer delete"
            )
        logger.debug(f"Undo armed for note {note.id} ({self._grace_seconds}s)")
        return entry

    def _expire(self, entry: PendingDelete) -> None:
        """Timer callback: close the window if ``entry`` still owns the slot."""
        with self._lock:
            if self._pending is not entry:
                # Superseded or already restored
                return
            self._pending = None
            self._timer = None
        logger.info(f"Undo window expired for note {entry.note.id}")

    def undo(self) -> Note:
        """Restore the pending note as a new insert.

        Returns:
            The restored note. It carries a new identity.

        Raises:
            NoPendingDeleteError: If nothing is pending (never armed,
                already restored, replaced or expired).
        """
        with self._lock:
            entry = self._pending
            if entry is None:
                raise NoPendingDeleteError()
            self._pending = None
            self._cancel_timer()

        try:
            restored = self._repository.insert(entry.note.as_draft())
        except Exception:
            # Put it back so the user can try again within what is left of the window
            with self._lock:
                if self._pending is None and not self._shutdown:
                    self._pending = entry
                    remaining = entry.remaining_seconds()
                    if remaining > 0:
                        self._timer = self._timer_factory(
                            remaining, lambda: self._expire(entry)
                        )
                        self._timer.daemon = True
                        self._timer.start()
                    else:
                        self._pending = None
            raise

        logger.info(f"Restored note {entry.note.id} as {restored.id}")
        return restored

    def discard(self) -> Optional[PendingDelete]:
        """Close the window without restoring. Returns what was pending."""
        with self._lock:
            entry = self._pending
            self._pending = None
            self._cancel_timer()
        return entry

    def shutdown(self) -> None:
        """Cancel the timer. A pending note is dropped and stays deleted."""
        with self._lock:
            self._shutdown = True
            dropped = self._pending
            self._pending = None
            self._cancel_timer()
        if dropped is not None:
            logger.warning(
                f"Shutting down with note {dropped.note.id} pending undo; it stays deleted"
            )
