"""Service layer: the note API used by the UI, undo, and list synchronisation."""

from notekeep.services.list_sync import ListOp, ListSyncController, ListUpdate, NoteViewModel
from notekeep.services.notes_service import NotesService
from notekeep.services.undo_delete import PendingDelete, UndoDeleteCoordinator

__all__ = [
    "NotesService",
    "UndoDeleteCoordinator",
    "PendingDelete",
    "ListSyncController",
    "ListUpdate",
    "ListOp",
    "NoteViewModel",
]
