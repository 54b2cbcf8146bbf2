"""
Boundary keys and the offset -> key cache.

A boundary key identifies the row sitting at a given 1-based offset of an
ordered collection. Looking up an offset resolves to one of three things:

* NONE     - offset 0, the position before the first row
* UNKNOWN  - the cache does not reach that far yet
* a BoundaryKey with the row's sort value and id
"""

from collections.abc import Iterator
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class KeyMarker(Enum):
    """Resolutions that do not point at a concrete row."""

    NONE = "none"
    UNKNOWN = "unknown"

    def __repr__(self) -> str:
        return self.name


NONE = KeyMarker.NONE
UNKNOWN = KeyMarker.UNKNOWN


class BoundaryKey(BaseModel):
    """Sort value and row id of the row occupying an offset."""

    model_config = ConfigDict(frozen=True)

    sort_value: Any = None
    row_id: str


KeyResolution = BoundaryKey | KeyMarker


class KeyCache:
    """
    Append-only, ordered store of boundary keys.
    Index i always holds the boundary for offset i + 1.
    """

    def __init__(self) -> None:
        self._keys: list[BoundaryKey] = []

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[BoundaryKey]:
        return iter(self._keys)

    def get(self, offset: int) -> KeyResolution:
        if offset == 0:
            return NONE
        if len(self._keys) < offset:
            return UNKNOWN
        return self._keys[offset - 1]

    def covers(self, offset: int) -> bool:
        return len(self._keys) >= offset

    def last(self) -> BoundaryKey | None:
        return self._keys[-1] if self._keys else None

    def append(self, key: BoundaryKey) -> None:
        self._keys.append(key)

    def clear(self) -> None:
        self._keys = []
