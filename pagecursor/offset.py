"""
Offset cursor: a stable boundary key for "row N" of a live ordered collection.

The cursor caches the boundary key of every offset up to the highest one
requested, grows that cache on demand with paged queries, and keeps a single
live subscription on the rows around the current offset. Any change that
could shift the current boundary schedules a debounced recache, and
observers hear about the boundary whenever it actually changes.
"""

from enum import Enum
from typing import Any

from ._logging import logger, redact_key
from .collection import OrderedQuery, order_query
from .config import DEFAULT_SETTINGS, CursorSettings, OffsetOptions
from .debounce import RateLimiter, Scheduler
from .exceptions import CursorDestroyedError, InvalidOffsetError, handle_options_errors
from .growth import GrowthOperation
from .keys import NONE, UNKNOWN, BoundaryKey, KeyCache, KeyResolution
from .notify import NotificationBus, Observer
from .subscription import EmptyOffsetMonitor, LiveWindowSubscription, window_query


class CursorState(str, Enum):
    IDLE = "idle"
    RESOLVING_NONE = "resolving_none"
    SETTLED = "settled"
    GROWING = "growing"
    SETTLED_SUBSCRIBED = "settled_subscribed"
    EMPTY_WATCHING = "empty_watching"
    DESTROYED = "destroyed"


def _check_offset(offset: Any) -> int:
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise InvalidOffsetError(offset)
    return offset


class Offset:
    """
    Tracks the boundary key at the current offset of an ordered collection.

    Args:
        field: Ordering selector: "$key", "$priority" or a child field name.
        ref: Base query handle of the collection.
        page_size: Largest page fetched while growing (the `max` option).
        settings: Optional tuning, see CursorSettings.
        loop: Scheduler for debounced recaches. Defaults to the running asyncio loop.

    Raises:
        OptionsError: If the options fail validation.
        DebounceConfigError: If no loop is given and no asyncio loop is running.

    Usage:
        cursor = Offset(field="score", ref=scores_ref, page_size=25)
        cursor.observe(lambda value, row_id, ref: ...)
        cursor.go_to(50)
    """

    def __init__(
        self,
        field: str,
        ref: OrderedQuery,
        page_size: int,
        *,
        settings: CursorSettings | None = None,
        loop: Scheduler | None = None,
    ) -> None:
        with handle_options_errors():
            options = OffsetOptions(field=field, ref=ref, page_size=page_size)
        settings = settings or DEFAULT_SETTINGS

        self.options = options
        self.settings = settings
        self.field = options.field
        self.page_size = options.page_size
        self.ref = order_query(options.ref, options.field)

        self.cache = KeyCache()
        self.bus = NotificationBus(self.ref)
        self.state = CursorState.IDLE
        self._curr = 0
        self._subscribing = False
        self._growth: GrowthOperation | None = None
        self._window: LiveWindowSubscription | None = None
        self._monitor: EmptyOffsetMonitor | None = None
        self._debounced_recache = RateLimiter(
            self._run_recache,
            settings.recache_wait_ms,
            settings.recache_max_wait_ms,
            loop=loop,
        )

    @classmethod
    def from_options(
        cls,
        options: OffsetOptions | dict[str, Any],
        *,
        settings: CursorSettings | None = None,
        loop: Scheduler | None = None,
    ) -> "Offset":
        """Builds a cursor from an OffsetOptions or a {"field", "ref", "max"} dict."""
        if not isinstance(options, OffsetOptions):
            with handle_options_errors():
                options = OffsetOptions.model_validate(options)
        return cls(options.field, options.ref, options.page_size, settings=settings, loop=loop)

    # --- PUBLIC API ---

    def get_offset(self) -> int:
        return self._curr

    def go_to(self, offset: int) -> None:
        """Moves the cursor to `offset` and starts resolving its boundary key."""
        offset = _check_offset(offset)
        self._ensure_alive()
        if offset == self._curr:
            return

        logger.info(
            "Offset changed",
            extra={"operation": "go_to", "previous": self._curr, "offset": offset},
        )
        self.bus.reset()
        self._curr = offset
        self._resolve()

    def observe(self, callback: Observer, context: Any = None) -> None:
        """
        Registers an observer of boundary key changes.

        The callback is invoked immediately with the current key, then again
        every time the key at the current offset changes.
        """
        self._ensure_alive()
        self.bus.observe(callback, context, self.get_key(self._curr))

    def unobserve(self, callback: Observer, context: Any = None) -> None:
        self.bus.unobserve(callback, context)

    def get_key(self, offset: int) -> KeyResolution:
        """NONE for offset 0, UNKNOWN beyond the cache, otherwise the cached BoundaryKey."""
        return self.cache.get(_check_offset(offset))

    def destroy(self) -> None:
        """Detaches every subscription and resets the cursor. The cursor is unusable afterwards."""
        logger.debug("Destroying cursor", extra={"operation": "destroy", "offset": self._curr})
        self._debounced_recache.cancel()
        self._detach()
        self._curr = 0
        self.cache.clear()
        self.bus.clear()
        self._subscribing = False
        self.state = CursorState.DESTROYED

    @property
    def resolving(self) -> bool:
        """True while growth or the initial window load is in flight."""
        return self.state is CursorState.GROWING or self._subscribing

    # --- RESOLUTION ---

    def _ensure_alive(self) -> None:
        if self.state is CursorState.DESTROYED:
            raise CursorDestroyedError()

    def _detach(self) -> None:
        if self._growth is not None:
            self._growth.cancel()
            self._growth = None
        if self._window is not None:
            self._window.detach()
            self._window = None
        if self._monitor is not None:
            self._monitor.detach()
            self._monitor = None
        self._subscribing = False

    def _resolve(self) -> None:
        self._detach()
        key = self.get_key(self._curr)
        if key is NONE:
            self.state = CursorState.RESOLVING_NONE
            self.state = CursorState.SETTLED
            self._notify()
        elif key is UNKNOWN:
            self._grow()
        else:
            self._subscribe()

    def _grow(self) -> None:
        self.state = CursorState.GROWING
        growth = GrowthOperation(
            cache=self.cache,
            query=self.ref,
            field=self.field,
            target=self._curr,
            page_size=self.page_size,
            on_settled=self._on_grown,
            max_steps=self.settings.max_growth_steps,
        )
        self._growth = growth
        growth.start()

    def _on_grown(self, changed: bool) -> None:
        self._growth = None
        if changed or self.cache.covers(self._curr):
            self._subscribe()
        else:
            self._watch_empty_offset()

    def _subscribe(self) -> None:
        self._detach()
        self.state = CursorState.SETTLED_SUBSCRIBED
        self._subscribing = True
        self._window = LiveWindowSubscription(
            window_query(
                self.ref, self.cache, self._curr, self.page_size, self.settings.window_rows
            ),
            on_change=self._recache,
            on_moved=self._on_row_moved,
            on_loaded=self._on_window_loaded,
        )
        self._window.attach()

    def _on_window_loaded(self) -> None:
        self._subscribing = False
        self._notify()

    def _on_row_moved(self, row_id: str | None) -> None:
        key = self.get_key(self._curr)
        if isinstance(key, BoundaryKey) and key.row_id == row_id:
            self._recache()

    def _watch_empty_offset(self) -> None:
        self._detach()
        self.state = CursorState.EMPTY_WATCHING
        logger.debug(
            "No row at offset, watching for new rows",
            extra={"operation": "monitor", "offset": self._curr, "keys_cached": len(self.cache)},
        )
        self._monitor = EmptyOffsetMonitor(self.ref, self.cache.last(), self._recache)
        self._monitor.attach()
        self._notify()

    def _notify(self) -> None:
        self.bus.notify(self.get_key(self._curr))

    # --- RECACHE ---

    def _recache(self) -> None:
        if self.state is CursorState.DESTROYED:
            return
        if self.resolving:
            logger.debug(
                "Recache skipped, resolution in flight",
                extra={"operation": "recache", "offset": self._curr},
            )
            return
        logger.debug("Scheduling recache", extra={"operation": "recache", "offset": self._curr})
        self._debounced_recache()

    def _run_recache(self) -> None:
        if self.state is CursorState.DESTROYED:
            return
        logger.debug(
            "Recaching keys",
            extra={
                "operation": "recache",
                "offset": self._curr,
                "key_hash": redact_key(self.get_key(self._curr)),
            },
        )
        self._detach()
        self.cache.clear()
        self._resolve()
