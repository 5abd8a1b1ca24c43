"""Query shapes supported by the note store.

A NoteQuery is a small immutable value: what to match and how to order it.
It can render itself as a SQLAlchemy statement for the store, and can also
check a single note in memory, which the live-query layer uses to tell
whether a mutation touched a query at all.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from sqlalchemy import Select, func, or_, select

from notekeep.models.db_models import DBNote
from notekeep.models.schema import Note
from notekeep.utils import escape_like_pattern

logger = logging.getLogger(__name__)

SEARCHABLE_FIELDS = ("title", "content")


class QueryKind(str, Enum):
    """Shapes of query a list view can ask for."""

    ALL = "all"
    SEARCH = "search"
    PRIORITY = "priority"


@dataclass(frozen=True)
class NoteQuery:
    """An immutable, hashable description of a note query.

    Use the constructors rather than building instances by hand:

        NoteQuery.all()
        NoteQuery.search("gro")
        NoteQuery.by_priority(descending=True)
    """

    kind: QueryKind = QueryKind.ALL
    text: str = ""
    fields: Tuple[str, ...] = SEARCHABLE_FIELDS
    descending: bool = True

    def __post_init__(self) -> None:
        unknown = [f for f in self.fields if f not in SEARCHABLE_FIELDS]
        if unknown or not self.fields:
            raise ValueError(
                f"Search fields must be a non-empty subset of {SEARCHABLE_FIELDS}, "
                f"got {self.fields!r}"
            )

    @classmethod
    def all(cls) -> "NoteQuery":
        """Every note, in insertion order."""
        return cls(kind=QueryKind.ALL)

    @classmethod
    def search(
        cls, text: str, fields: Tuple[str, ...] = SEARCHABLE_FIELDS
    ) -> "NoteQuery":
        """Notes whose title and/or content contain ``text``, ignoring case.

        An empty string matches every note.
        """
        return cls(kind=QueryKind.SEARCH, text=text or "", fields=tuple(fields))

    @classmethod
    def by_priority(cls, descending: bool = True) -> "NoteQuery":
        """Every note ordered by priority.

        descending=True puts HIGH first, False puts LOW first. Ties are
        broken by most recently modified, then by newest ID.
        """
        return cls(kind=QueryKind.PRIORITY, descending=descending)

    @property
    def needle(self) -> str:
        return self.text.casefold()

    def matches(self, note: Note) -> bool:
        """Whether ``note`` belongs in this query's result."""
        if self.kind is not QueryKind.SEARCH or not self.needle:
            return True
        return any(self.needle in getattr(note, f).casefold() for f in self.fields)

    def to_select(self) -> Select:
        """Build the SQL statement that evaluates this query."""
        stmt = select(DBNote)

        if self.kind is QueryKind.SEARCH and self.needle:
            pattern = f"%{escape_like_pattern(self.needle)}%"
            columns = [getattr(DBNote, f) for f in self.fields]
            stmt = stmt.where(
                or_(*(func.casefold(col).like(pattern, escape="\\") for col in columns))
            )

        if self.kind is QueryKind.PRIORITY:
            rank = DBNote.priority_rank.desc() if self.descending else DBNote.priority_rank.asc()
            return stmt.order_by(rank, DBNote.updated_at.desc(), DBNote.id.desc())

        # Generated IDs sort in creation order
        return stmt.order_by(DBNote.id.asc())

    def describe(self) -> str:
        """Short human-readable form, used in logs and the console header."""
        if self.kind is QueryKind.SEARCH:
            return f"search '{self.text}'"
        if self.kind is QueryKind.PRIORITY:
            return "priority high first" if self.descending else "priority low first"
        return "all notes"
