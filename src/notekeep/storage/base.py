"""Base storage contract."""
from abc import ABC, abstractmethod
from typing import Generic, Optional, Tuple, TypeVar

T = TypeVar("T")
Q = TypeVar("Q")
P = TypeVar("P")


class Store(ABC, Generic[T, Q, P]):
    """Durable, identity-keyed record storage.

    Implementations must make every mutation atomic and must leave the
    stored data untouched when a mutation fails.
    """

    @abstractmethod
    def insert(self, item: T) -> str:
        """Persist a new item and return its freshly assigned identity."""

    @abstractmethod
    def get(self, id: str) -> Optional[T]:
        """Return the item with this identity, or None."""

    @abstractmethod
    def update(self, id: str, patch: P) -> T:
        """Apply a patch to an existing item and return the stored result."""

    @abstractmethod
    def delete(self, id: str) -> T:
        """Remove an item and return what was removed."""

    @abstractmethod
    def delete_all(self) -> int:
        """Remove every item and return how many were removed."""

    @abstractmethod
    def fetch(self, query: Q) -> Tuple[T, ...]:
        """Evaluate a query to an ordered snapshot."""
