"""Storage layer for the notekeep client."""

from notekeep.storage.base import Store
from notekeep.storage.live_query import LiveQueryRegistry, Subscription
from notekeep.storage.note_repository import NoteRepository
from notekeep.storage.note_store import NoteStore
from notekeep.storage.queries import NoteQuery, QueryKind

__all__ = [
    "Store",
    "NoteStore",
    "NoteRepository",
    "NoteQuery",
    "QueryKind",
    "LiveQueryRegistry",
    "Subscription",
]
