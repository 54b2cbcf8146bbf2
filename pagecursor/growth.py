"""
Growth engine: extends a KeyCache toward a target offset.

Each step fetches one bounded page starting at the last cached boundary.
When continuing from a boundary, the page is one row larger and its first
row (the anchor itself) is discarded, so consecutive pages never leave a gap.
"""

from collections.abc import Callable, Mapping
from typing import Any

from ._logging import logger, redact_key
from .collection import Event, OrderedQuery, Snapshot
from .config import DEFAULT_SETTINGS, KEY_FIELD, PRIORITY_FIELD
from .exceptions import GrowthLimitExceededError, InvalidFieldValueError
from .keys import BoundaryKey, KeyCache


def extract_key(snapshot: Snapshot, field: str) -> BoundaryKey:
    """
    Builds the boundary key for a single row.

    Raises:
        InvalidFieldValueError: If ordering by a child field and the row
            value is not a mapping.
    """
    if field == KEY_FIELD:
        value = snapshot.key
    elif field == PRIORITY_FIELD:
        value = snapshot.get_priority()
    else:
        record = snapshot.val()
        if not isinstance(record, Mapping):
            raise InvalidFieldValueError(field=field, value=record)
        value = record.get(field)
    return BoundaryKey(sort_value=value, row_id=snapshot.key)


class GrowthOperation:
    """
    One growth run toward `target`, possibly spanning several fetches.

    The step counter belongs to this operation only; `on_settled(changed)`
    fires exactly once unless the operation is cancelled first.
    """

    def __init__(
        self,
        cache: KeyCache,
        query: OrderedQuery,
        field: str,
        target: int,
        page_size: int,
        on_settled: Callable[[bool], Any],
        max_steps: int = DEFAULT_SETTINGS.max_growth_steps,
    ) -> None:
        self.cache = cache
        self.query = query
        self.field = field
        self.target = target
        self.page_size = page_size
        self.on_settled = on_settled
        self.max_steps = max_steps

        self.steps = 0
        self.cancelled = False
        self.settled = False
        self._initial_key = cache.get(target)
        self._awaiting = False
        self._in_step = False
        self._more = False

    def start(self) -> None:
        self._more = True
        self._run()

    def cancel(self) -> None:
        """Stale responses arriving after cancellation are ignored."""
        self.cancelled = True

    def _run(self) -> None:
        # Pages answered synchronously request the next step through _more
        # instead of recursing.
        while self._more and not (self.cancelled or self.settled):
            self._more = False
            self._in_step = True
            try:
                self._step()
            finally:
                self._in_step = False

    def _step(self) -> None:
        cached = len(self.cache)
        needed = self.target - cached
        if needed <= 0:
            self._settle()
            return

        limit = min(needed, self.page_size)
        anchor = self.cache.last()
        query = self.query
        if anchor is not None:
            limit += 1
            query = query.start_at(anchor.sort_value, anchor.row_id)

        logger.debug(
            "Fetching boundary keys",
            extra={
                "operation": "grow",
                "offset": self.target,
                "keys_cached": cached,
                "limit": limit,
                "anchor_hash": redact_key(anchor) if anchor else None,
            },
        )
        self._awaiting = True
        query.limit_to_first(limit).once(
            Event.VALUE, lambda snap: self._on_page(snap, limit, anchor)
        )

    def _on_page(self, snapshot: Snapshot, limit: int, anchor: BoundaryKey | None) -> None:
        if self.cancelled:
            logger.debug("Ignoring page for cancelled growth", extra={"operation": "grow"})
            return
        if self.settled or not self._awaiting:
            logger.debug("Ignoring repeated page delivery", extra={"operation": "grow"})
            return
        self._awaiting = False

        skip_first = anchor is not None
        for child in snapshot:
            if skip_first:
                skip_first = False
                if child.key != anchor.row_id:
                    logger.warning(
                        "First row of page does not match anchor; cache may be stale",
                        extra={"operation": "grow", "anchor_hash": redact_key(anchor)},
                    )
                continue
            self.cache.append(extract_key(child, self.field))

        self.steps += 1
        if self.steps > self.max_steps:
            raise GrowthLimitExceededError(self.max_steps)

        if not self.cache.covers(self.target) and snapshot.num_children() == limit:
            self._more = True
            if not self._in_step:
                self._run()
        else:
            self._settle()

    def _settle(self) -> None:
        if self.settled:
            return
        self.settled = True
        changed = self.cache.get(self.target) != self._initial_key
        logger.debug(
            "Growth settled",
            extra={
                "operation": "grow",
                "offset": self.target,
                "keys_cached": len(self.cache),
                "steps": self.steps,
                "changed": changed,
            },
        )
        self.on_settled(changed)
