from .collection import Event, OrderedQuery, Snapshot, order_query
from .config import KEY_FIELD, PRIORITY_FIELD, CursorSettings, OffsetOptions
from .debounce import RateLimiter
from .exceptions import (
    CursorDestroyedError,
    DebounceConfigError,
    GrowthLimitExceededError,
    InvalidFieldValueError,
    InvalidOffsetError,
    OptionsError,
    PageCursorError,
)
from .growth import GrowthOperation, extract_key
from .keys import NONE, UNKNOWN, BoundaryKey, KeyCache, KeyMarker, KeyResolution
from .notify import NotificationBus
from .offset import CursorState, Offset
from .subscription import EmptyOffsetMonitor, LiveWindowSubscription, window_start

__all__ = [
    "Offset",
    "CursorState",
    "OffsetOptions",
    "CursorSettings",
    "KEY_FIELD",
    "PRIORITY_FIELD",
    # Keys
    "BoundaryKey",
    "KeyCache",
    "KeyMarker",
    "KeyResolution",
    "NONE",
    "UNKNOWN",
    # Building blocks
    "RateLimiter",
    "GrowthOperation",
    "extract_key",
    "LiveWindowSubscription",
    "EmptyOffsetMonitor",
    "window_start",
    "NotificationBus",
    # Collection contract
    "Event",
    "OrderedQuery",
    "Snapshot",
    "order_query",
    # Exceptions
    "PageCursorError",
    "InvalidFieldValueError",
    "GrowthLimitExceededError",
    "DebounceConfigError",
    "InvalidOffsetError",
    "CursorDestroyedError",
    "OptionsError",
]
