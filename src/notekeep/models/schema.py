"""Data models for the notekeep client."""

import datetime
import threading
from datetime import timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite drops tzinfo on the way back out, so every timestamp read from
    the database passes through here.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


# Thread-safe counter for same-microsecond uniqueness
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = 0
_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = datetime.timedelta(microseconds=1)


def generate_id() -> str:
    """Generate a timestamp-based note ID with guaranteed uniqueness.

    Returns:
        A string in format "YYYYMMDDTHHMMSSsssssscccccc" where:
        - YYYYMMDDTHHMMSS is the UTC date and time
        - ssssss is the 6-digit microsecond component
        - cccccc is a 6-digit counter for same-microsecond uniqueness

    IDs generated by one process sort in creation order, which is what the
    "all notes" query relies on for its stable ordering.
    """
    global _last_timestamp, _counter

    with _id_lock:
        # Integer microseconds since the epoch; floats would lose precision
        current_timestamp = (utc_now() - _EPOCH) // _ONE_MICROSECOND

        if current_timestamp <= _last_timestamp:
            # Same microsecond (or clock stepped back): keep ordering monotonic
            _counter += 1
            if _counter >= 1_000_000:
                _last_timestamp += 1
                _counter = 0
            current_timestamp = _last_timestamp
        else:
            _last_timestamp = current_timestamp
            _counter = 0

        now = _EPOCH + datetime.timedelta(microseconds=current_timestamp)
        date_time = now.strftime("%Y%m%dT%H%M%S")
        return f"{date_time}{now.microsecond:06d}{_counter:06d}"


class Priority(str, Enum):
    """How urgent a note is. Declared from most to least urgent."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank: HIGH is 3, LOW is 1."""
        return _PRIORITY_RANKS[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Accept enum members, values ("high") or names/labels ("High", "H")."""
        if isinstance(value, Priority):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.value[0]):
                return member
        raise ValueError(f"Unknown priority: {value!r}")


_PRIORITY_RANKS: Dict[Priority, int] = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


class Note(BaseModel):
    """A note as seen by queries and subscribers.

    Instances are immutable snapshots: the same object can be handed to
    every subscriber of a live query. Use ``model_copy(update=...)`` to
    derive a changed note.
    """

    id: Optional[str] = Field(
        default=None, description="Store-assigned identity; None until persisted"
    )
    title: str = Field(default="", description="Title of the note (may be empty)")
    content: str = Field(default="", description="Body of the note (may be empty)")
    priority: Priority = Field(default=Priority.LOW, description="Note priority")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last modified (UTC)"
    )

    model_config = {"extra": "forbid", "frozen": True}

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def as_draft(self) -> "Note":
        """Return a copy without identity, ready to be inserted again."""
        return self.model_copy(update={"id": None})


class NotePatch(BaseModel):
    """A partial update to a note. Fields left as None are not touched.

    Identity and creation time are not part of a patch; they never change.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    priority: Optional[Priority] = None

    model_config = {"extra": "forbid", "frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _coerce_priority(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("priority") is not None:
            data = dict(data)
            data["priority"] = Priority.parse(data["priority"])
        return data

    def changes(self) -> Dict[str, Any]:
        """Fields this patch actually sets."""
        return self.model_dump(exclude_none=True)

    def is_empty(self) -> bool:
        return not self.changes()
