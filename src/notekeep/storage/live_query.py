"""Live query handles.

Subscribers register a NoteQuery and a callback. They get the current
result immediately, then a fresh result after every mutation that changes
it, in the order the mutations were applied. Callbacks run synchronously on
the mutating thread; their errors are logged and never reach the mutator,
whose change has already been committed.
"""

import itertools
import logging
import threading
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

from notekeep.models.schema import Note
from notekeep.storage.queries import NoteQuery

logger = logging.getLogger(__name__)

NoteList = Tuple[Note, ...]
Callback = Callable[[NoteList], None]
Evaluator = Callable[[NoteQuery], NoteList]


class Subscription:
    """Handle returned by subscribe().

    ``unsubscribe()`` can be called at any time, any number of times,
    including from inside the subscriber's own callback. It never raises.
    """

    def __init__(self, registry: "LiveQueryRegistry", sub_id: int, query: NoteQuery, callback: Callback):
        self._registry = registry
        self.id = sub_id
        self.query = query
        self.callback = callback
        self.active = True
        self.last_result: Optional[NoteList] = None

    @property
    def current(self) -> NoteList:
        """The last result delivered to this subscriber."""
        return self.last_result or ()

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._registry._remove(self.id)

    close = unsubscribe

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription(id={self.id}, query='{self.query.describe()}', {state})>"


class LiveQueryRegistry:
    """Keeps the set of live queries and pushes results to them.

    Args:
        evaluate: Runs a query against the store and returns the ordered
            result. Called under ``lock``.
        lock: The store's lock. Held for the whole publish round so that
            deliveries follow mutation order across threads.
    """

    def __init__(self, evaluate: Evaluator, lock: threading.RLock):
        self._evaluate = evaluate
        self._lock = lock
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        # Publishes requested from inside a callback wait here
        self._pending: Deque[Sequence[Note]] = deque()
        self._dispatching = False

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, query: NoteQuery, callback: Callback) -> Subscription:
        """Register a live query and deliver its current result synchronously."""
        with self._lock:
            sub = Subscription(self, next(self._ids), query, callback)
            self._subscriptions[sub.id] = sub
            logger.debug(f"Subscribed {sub!r}")
            self._deliver(sub, self._evaluate(query))
            return sub

    def _remove(self, sub_id: int) -> None:
        with self._lock:
            if self._subscriptions.pop(sub_id, None) is not None:
                logger.debug(f"Unsubscribed {sub_id}")

    def publish(self, affected: Sequence[Note] = ()) -> None:
        """Re-evaluate live queries after a committed mutation.

        Args:
            affected: Before/after states of the notes the mutation touched.
                Queries none of them match are skipped. An empty sequence
                (bulk delete) re-evaluates every query.
        """
        with self._lock:
            self._pending.append(tuple(affected))
            if self._dispatching:
                # Re-entrant mutation from a callback; the outer loop delivers it next
                return
            self._dispatching = True
            try:
                while self._pending:
                    self._publish_round(self._pending.popleft())
            finally:
                self._dispatching = False
                self._pending.clear()

    def _publish_round(self, affected: Sequence[Note]) -> None:
        results: Dict[NoteQuery, NoteList] = {}
        for sub in list(self._subscriptions.values()):
            if not sub.active:
                continue
            if affected and not any(sub.query.matches(n) for n in affected):
                continue
            if sub.query not in results:
                results[sub.query] = self._evaluate(sub.query)
            result = results[sub.query]
            if result == sub.last_result:
                continue
            self._deliver(sub, result)

    def _deliver(self, sub: Subscription, result: NoteList) -> None:
        sub.last_result = result
        try:
            sub.callback(result)
        except Exception:
            logger.exception(
                "Subscriber callback %r failed for %s",
                getattr(sub.callback, "__name__", sub.callback),
                sub.query.describe(),
            )

    def close(self) -> None:
        """Drop every subscription."""
        with self._lock:
            subs: List[Subscription] = list(self._subscriptions.values())
            for sub in subs:
                sub.active = False
            self._subscriptions.clear()
