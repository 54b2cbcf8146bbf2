"""
Contract expected from the ordered-collection client.

pagecursor never talks to a backend directly. It drives any client whose
queries and snapshots look like the protocols below: ordered queries that
compose with start_at / limit_to_first / limit_to_last, one-shot fetches via
once(), and live subscriptions via on() / off().
"""

from collections.abc import Callable, Iterator
from enum import Enum
from typing import Any, Protocol

from .config import KEY_FIELD, PRIORITY_FIELD


class Event(str, Enum):
    """Event names understood by the collection client."""

    VALUE = "value"
    CHILD_ADDED = "child_added"
    CHILD_MOVED = "child_moved"
    CHILD_REMOVED = "child_removed"


class Snapshot(Protocol):
    """A single row, or a result set of rows in sort order."""

    @property
    def key(self) -> str | None: ...

    def val(self) -> Any: ...

    def get_priority(self) -> Any: ...

    def num_children(self) -> int: ...

    def __iter__(self) -> Iterator["Snapshot"]: ...


SnapshotCallback = Callable[[Snapshot], Any]


class OrderedQuery(Protocol):
    """Query handle on an ordered collection."""

    def order_by_key(self) -> "OrderedQuery": ...

    def order_by_priority(self) -> "OrderedQuery": ...

    def order_by_child(self, field: str) -> "OrderedQuery": ...

    def start_at(self, value: Any, key: str | None = None) -> "OrderedQuery": ...

    def limit_to_first(self, limit: int) -> "OrderedQuery": ...

    def limit_to_last(self, limit: int) -> "OrderedQuery": ...

    def once(self, event: str, callback: SnapshotCallback) -> Any: ...

    def on(self, event: str, callback: SnapshotCallback) -> Any: ...

    def off(self, event: str, callback: SnapshotCallback) -> Any: ...


def order_query(ref: OrderedQuery, field: str) -> OrderedQuery:
    """Returns `ref` ordered by row id, priority or the named child field."""
    if field == KEY_FIELD:
        return ref.order_by_key()
    if field == PRIORITY_FIELD:
        return ref.order_by_priority()
    return ref.order_by_child(field)
