"""
Shared pytest fixtures and configuration for pagecursor tests.

This module provides the in-memory ordered collection, a manual scheduler
for debounce timing, and a factory for cursors wired to both.
"""

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from pagecursor import CursorSettings, Offset
from tests.helpers.memory_collection import MemoryCollection, row_ids
from tests.helpers.scheduler import ManualScheduler


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests with in-memory collaborators")
    config.addinivalue_line("markers", "scenario: End-to-end cursor scenarios")


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def collection() -> MemoryCollection:
    """An empty in-memory collection."""
    return MemoryCollection()


@pytest.fixture
def seeded_collection() -> Callable[[int], MemoryCollection]:
    """
    Returns a factory that builds a collection of `count` rows.

    Rows are named row01, row02, ... and each holds {"score": n}.
    """

    def _build(count: int) -> MemoryCollection:
        return MemoryCollection().seed(
            {row_id: {"score": n} for n, row_id in enumerate(row_ids(count), start=1)}
        )

    return _build


@pytest.fixture
def make_cursor(scheduler: ManualScheduler) -> Callable[..., Offset]:
    """Returns a factory for cursors driven by the manual scheduler."""

    def _make(
        collection: MemoryCollection,
        field: str = "$key",
        page_size: int = 10,
        settings: CursorSettings | None = None,
    ) -> Offset:
        return Offset(field, collection.ref(), page_size, settings=settings, loop=scheduler)

    return _make


@pytest.fixture
def observer() -> MagicMock:
    """A mock observer callback recording (sort_value, row_id, ref) calls."""
    return MagicMock(name="observer")

