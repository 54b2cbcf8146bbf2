"""
Live subscriptions owned by an Offset cursor.

Both handles expose attach() / detach() only. Handlers ignore events that
arrive once a handle is detached.
"""

from collections.abc import Callable
from typing import Any

from ._logging import logger, redact_key
from .collection import Event, OrderedQuery, Snapshot
from .config import DEFAULT_SETTINGS
from .keys import BoundaryKey, KeyCache


def window_start(curr: int, page_size: int, window_rows: int = DEFAULT_SETTINGS.window_rows) -> int:
    """Offset of the first row watched for an offset of `curr`."""
    return max(0, curr - page_size, curr - window_rows)


def window_query(
    base: OrderedQuery,
    cache: KeyCache,
    curr: int,
    page_size: int,
    window_rows: int = DEFAULT_SETTINGS.window_rows,
) -> OrderedQuery:
    """
    Query covering the rows from the window start through `curr`.
    The cache must already cover `curr`.
    """
    start = window_start(curr, page_size, window_rows)
    if start == 0:
        return base.limit_to_first(curr)
    key = cache.get(start)
    if not isinstance(key, BoundaryKey):
        raise ValueError(f"Key cache does not cover window start {start}")
    # The boundary row at `start` is included in the window.
    return base.start_at(key.sort_value, key.row_id).limit_to_first(curr - start + 1)


class LiveWindowSubscription:
    """
    Watches a window of rows for structural changes and reorders.

    Args:
        query: Window query to subscribe to.
        on_change: Called when a row enters or leaves the window.
        on_moved: Called with the row id of a row that changed position.
        on_loaded: Called on every full result delivery of the window.
    """

    def __init__(
        self,
        query: OrderedQuery,
        on_change: Callable[[], Any],
        on_moved: Callable[[str | None], Any],
        on_loaded: Callable[[], Any],
    ) -> None:
        self.query = query
        self.on_change = on_change
        self.on_moved = on_moved
        self.on_loaded = on_loaded
        self.attached = False

    def attach(self) -> None:
        if self.attached:
            return
        self.attached = True
        self.query.on(Event.CHILD_ADDED, self._changed)
        self.query.on(Event.CHILD_MOVED, self._moved)
        self.query.on(Event.CHILD_REMOVED, self._changed)
        self.query.on(Event.VALUE, self._loaded)

    def detach(self) -> None:
        if not self.attached:
            return
        self.attached = False
        self.query.off(Event.CHILD_ADDED, self._changed)
        self.query.off(Event.CHILD_MOVED, self._moved)
        self.query.off(Event.CHILD_REMOVED, self._changed)
        self.query.off(Event.VALUE, self._loaded)

    def _changed(self, snapshot: Snapshot) -> None:
        if self.attached:
            self.on_change()

    def _moved(self, snapshot: Snapshot) -> None:
        if self.attached:
            self.on_moved(snapshot.key)

    def _loaded(self, snapshot: Snapshot) -> None:
        if self.attached:
            self.on_loaded()


class EmptyOffsetMonitor:
    """
    Watches for rows arriving past the last known boundary.

    Fires `on_arrival` once, after detaching itself, as soon as more rows
    exist than the baseline: none from the collection start, or just the
    anchor row itself when starting at a boundary.
    """

    def __init__(
        self, base: OrderedQuery, anchor: BoundaryKey | None, on_arrival: Callable[[], Any]
    ) -> None:
        self.anchor = anchor
        self.on_arrival = on_arrival
        self.baseline = 0 if anchor is None else 1
        self.query = base if anchor is None else base.start_at(anchor.sort_value, anchor.row_id)
        self.attached = False

    def attach(self) -> None:
        if self.attached:
            return
        logger.debug(
            "Watching for new rows",
            extra={
                "operation": "monitor",
                "anchor_hash": redact_key(self.anchor) if self.anchor else None,
            },
        )
        self.attached = True
        self.query.on(Event.VALUE, self._check)

    def detach(self) -> None:
        if not self.attached:
            return
        self.attached = False
        self.query.off(Event.VALUE, self._check)

    def _check(self, snapshot: Snapshot) -> None:
        if not self.attached:
            return
        if snapshot.num_children() > self.baseline:
            self.detach()
            self.on_arrival()
