from collections.abc import Callable
from typing import Any

from ._logging import logger, redact_key
from .collection import OrderedQuery
from .keys import NONE, BoundaryKey, KeyResolution

Observer = Callable[..., Any]

# Sentinel for "nothing delivered yet"; never equal to any resolution.
_UNSET: Any = object()


def offset_ref(base: OrderedQuery, key: KeyResolution) -> OrderedQuery | None:
    """
    Query positioned to start at `key`.

    The base query for NONE, and None while the key is not yet known.
    """
    if isinstance(key, BoundaryKey):
        return base.start_at(key.sort_value, key.row_id)
    if key is NONE:
        return base
    return None


class NotificationBus:
    """
    Fans boundary key changes out to observers.

    Observers are called as `callback(sort_value, row_id, ref)`, or
    `callback(context, sort_value, row_id, ref)` when registered with a
    context. Equal consecutive keys are delivered once.
    """

    def __init__(self, base: OrderedQuery) -> None:
        self.base = base
        self.observers: list[tuple[Observer, Any]] = []
        self.last_notified: Any = _UNSET

    def observe(self, callback: Observer, context: Any, current: KeyResolution) -> None:
        """Registers `callback` and calls it right away with `current`."""
        self.observers.append((callback, context))
        self._deliver(callback, context, current, offset_ref(self.base, current))

    def unobserve(self, callback: Observer, context: Any = None) -> None:
        self.observers = [
            (cb, ctx) for cb, ctx in self.observers if not (cb == callback and ctx is context)
        ]

    def notify(self, key: KeyResolution) -> bool:
        """Delivers `key` unless it equals the last delivered key. Returns True if delivered."""
        if self.last_notified is not _UNSET and self.last_notified == key:
            return False

        logger.info(
            "Boundary key changed",
            extra={"operation": "notify", "key_hash": redact_key(key), "observers": len(self.observers)},
        )
        self.last_notified = key
        ref = offset_ref(self.base, key)
        for callback, context in list(self.observers):
            self._deliver(callback, context, key, ref)
        return True

    def reset(self) -> None:
        """Forgets the last delivered key so the next notify always delivers."""
        self.last_notified = _UNSET

    def clear(self) -> None:
        self.observers = []
        self.reset()

    @staticmethod
    def _deliver(callback: Observer, context: Any, key: KeyResolution, ref: OrderedQuery | None) -> None:
        if isinstance(key, BoundaryKey):
            value, row_id = key.sort_value, key.row_id
        else:
            value, row_id = None, None
        if context is None:
            callback(value, row_id, ref)
        else:
            callback(context, value, row_id, ref)
