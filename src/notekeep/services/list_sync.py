"""Keeps a rendered note list in step with a live query.

The controller remembers what it last handed to the rendering surface. When
the live query pushes a new result it works out the remove / move / insert /
change operations that turn the old list into the new one, so the surface
can animate individual rows instead of redrawing everything.
"""

import logging
from bisect import bisect_left
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from notekeep.config import config
from notekeep.models.schema import Note, Priority
from notekeep.services.notes_service import NotesService
from notekeep.services.undo_delete import PendingDelete
from notekeep.storage.live_query import Subscription
from notekeep.storage.queries import NoteQuery
from notekeep.utils import make_preview

logger = logging.getLogger(__name__)


class OpKind(str, Enum):
    REMOVE = "remove"
    MOVE = "move"
    INSERT = "insert"
    CHANGE = "change"


@dataclass(frozen=True)
class ListOp:
    """One step of a list update.

    Indexes refer to the list as it stands when the step is applied, with
    all previous steps already applied. For MOVE the item at ``index`` ends
    up at ``to_index``.
    """

    kind: OpKind
    index: int
    to_index: Optional[int] = None

    @classmethod
    def remove(cls, index: int) -> "ListOp":
        return cls(OpKind.REMOVE, index)

    @classmethod
    def move(cls, from_index: int, to_index: int) -> "ListOp":
        return cls(OpKind.MOVE, from_index, to_index)

    @classmethod
    def insert(cls, index: int) -> "ListOp":
        return cls(OpKind.INSERT, index)

    @classmethod
    def change(cls, index: int) -> "ListOp":
        return cls(OpKind.CHANGE, index)


@dataclass(frozen=True)
class NoteViewModel:
    """What a list row shows for one note."""

    id: str
    title: str
    preview: str
    priority: Priority

    @property
    def priority_label(self) -> str:
        return self.priority.label

    @classmethod
    def from_note(cls, note: Note, preview_length: int) -> "NoteViewModel":
        return cls(
            id=note.id,
            title=note.title,
            preview=make_preview(note.content, preview_length),
            priority=note.priority,
        )


@dataclass(frozen=True)
class ListUpdate:
    """Everything the rendering surface needs for one refresh."""

    ops: Tuple[ListOp, ...]
    items: Tuple[NoteViewModel, ...]
    query: NoteQuery

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to show (the empty-state placeholder)."""
        return not self.items


RenderSurface = Callable[[ListUpdate], None]


def _stable_items(current: Sequence[str], target: Sequence[str]) -> Set[str]:
    """Largest set of items already in target order: they never need to move.

    ``target`` is a permutation of ``current``. This is the longest increasing
    subsequence of current positions taken in target order (patience sorting).
    """
    position = {item: index for index, item in enumerate(current)}
    tails: List[int] = []  # current position ending each best run, by run length
    tail_at: List[int] = []  # target index holding that tail
    previous: List[int] = [-1] * len(target)

    for index, item in enumerate(target):
        value = position[item]
        length = bisect_left(tails, value)
        if length == len(tails):
            tails.append(value)
            tail_at.append(index)
        else:
            tails[length] = value
            tail_at[length] = index
        previous[index] = tail_at[length - 1] if length else -1

    keep: Set[str] = set()
    index = tail_at[-1] if tail_at else -1
    while index != -1:
        keep.add(target[index])
        index = previous[index]
    return keep


def diff_ids(old: Sequence[str], new: Sequence[str]) -> List[ListOp]:
    """Compute the steps that turn the ``old`` id sequence into ``new``.

    Removes come first (highest index first), then moves, then inserts in
    ascending position. The longest common subsequence of surviving items
    stays put, so the number of moves is minimal. CHANGE steps are not
    produced here; see diff_notes().
    """
    new_set: Set[str] = set(new)
    old_set: Set[str] = set(old)
    ops: List[ListOp] = []

    working = list(old)
    for index in range(len(working) - 1, -1, -1):
        if working[index] not in new_set:
            ops.append(ListOp.remove(index))
            del working[index]

    target = [item for item in new if item in old_set]
    keep = _stable_items(working, target)

    # Each moved item is placed right after its predecessor in the target;
    # once placed, nothing later is inserted between the two.
    for position, item in enumerate(target):
        if item in keep:
            continue
        from_index = working.index(item)
        del working[from_index]
        to_index = working.index(target[position - 1]) + 1 if position else 0
        working.insert(to_index, item)
        if from_index != to_index:
            ops.append(ListOp.move(from_index, to_index))

    for position, item in enumerate(new):
        if item not in old_set:
            ops.append(ListOp.insert(position))
            working.insert(position, item)

    return ops


def diff_notes(old: Sequence[Note], new: Sequence[Note]) -> List[ListOp]:
    """Like diff_ids(), plus a CHANGE step for every surviving note whose fields changed."""
    ops = diff_ids([n.id for n in old], [n.id for n in new])
    previous: Dict[str, Note] = {n.id: n for n in old}
    for index, note in enumerate(new):
        before = previous.get(note.id)
        if before is not None and before != note:
            ops.append(ListOp.change(index))
    return ops


def apply_ops(items: Sequence, ops: Sequence[ListOp], new_items: Sequence) -> list:
    """Replay ``ops`` on a copy of ``items``.

    Inserted and changed positions are filled from ``new_items``. Surfaces
    that keep their own row list can use this to stay in step.
    """
    result = list(items)
    for op in ops:
        if op.kind is OpKind.REMOVE:
            del result[op.index]
        elif op.kind is OpKind.MOVE:
            result.insert(op.to_index, result.pop(op.index))
        elif op.kind is OpKind.INSERT:
            result.insert(op.index, new_items[op.index])
        elif op.kind is OpKind.CHANGE:
            result[op.index] = new_items[op.index]
    return result


class ListSyncController:
    """Binds one live query to one rendering surface.

    Args:
        service: Note service that owns the live queries.
        surface: Called with a ListUpdate on every refresh.
        preview_length: Content preview length; defaults to config.
    """

    def __init__(
        self,
        service: NotesService,
        surface: RenderSurface,
        preview_length: Optional[int] = None,
    ) -> None:
        self._service = service
        self._surface = surface
        self._preview_length = preview_length or config.preview_length
        self._subscription: Optional[Subscription] = None
        self._notes: Tuple[Note, ...] = ()
        self._query: NoteQuery = NoteQuery.all()

    @property
    def query(self) -> NoteQuery:
        return self._query

    @property
    def notes(self) -> Tuple[Note, ...]:
        """Notes currently rendered, in display order."""
        return self._notes

    @property
    def is_empty(self) -> bool:
        return not self._notes

    def show(self, query: NoteQuery) -> None:
        """Switch the list to ``query``; the surface refreshes immediately."""
        previous = self._subscription
        self._subscription = None
        if previous is not None:
            previous.unsubscribe()
        self._query = query
        logger.debug(f"List now showing {query.describe()}")
        self._subscription = self._service.subscribe(query, self._on_change)

    def _on_change(self, notes: Tuple[Note, ...]) -> None:
        ops = diff_notes(self._notes, notes)
        self._notes = tuple(notes)
        items = tuple(
            NoteViewModel.from_note(note, self._preview_length) for note in notes
        )
        self._surface(ListUpdate(ops=tuple(ops), items=items, query=self._query))

    def note_at(self, index: int) -> Note:
        """The note rendered at ``index``.

        Raises:
            IndexError: If nothing is rendered there.
        """
        if not 0 <= index < len(self._notes):
            raise IndexError(f"No note at position {index}")
        return self._notes[index]

    def swipe_delete(self, index: int) -> PendingDelete:
        """Delete the note rendered at ``index``; undo becomes available."""
        return self._service.delete(self.note_at(index).id)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
