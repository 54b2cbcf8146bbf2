"""
Unit tests for live window subscriptions and the empty-offset monitor.
"""

from unittest.mock import MagicMock

import pytest

from pagecursor.keys import BoundaryKey, KeyCache
from pagecursor.subscription import (
    EmptyOffsetMonitor,
    LiveWindowSubscription,
    window_query,
    window_start,
)
from tests.helpers.memory_collection import row_ids


def _cache_for(ids: list[str]) -> KeyCache:
    cache = KeyCache()
    for row_id in ids:
        cache.append(BoundaryKey(sort_value=row_id, row_id=row_id))
    return cache


@pytest.mark.unit
class TestWindowBounds:
    """Test window lower bound and query shape."""

    @pytest.mark.parametrize(
        ("curr", "page_size", "expected"),
        [
            (0, 10, 0),
            (5, 10, 0),
            (25, 10, 15),
            (100, 10, 90),
            (100, 80, 50),  # never more than 50 rows behind
            (30, 100, 0),
        ],
    )
    def test_window_start(self, curr, page_size, expected):
        """Test the window lower bound rule."""
        assert window_start(curr, page_size) == expected

    def test_custom_window_rows(self):
        """Test a custom window size caps the lower bound."""
        assert window_start(100, 80, window_rows=20) == 80

    def test_window_from_collection_start(self, seeded_collection):
        """Test a window from offset 0 uses limit_to_first only."""
        collection = seeded_collection(20)
        query = window_query(collection.ref(), _cache_for(row_ids(5)), curr=5, page_size=10)
        assert query.view() == row_ids(5)

    def test_window_anchored_at_start_boundary(self, seeded_collection):
        """Test a window starts at the cached boundary."""
        collection = seeded_collection(40)
        query = window_query(collection.ref(), _cache_for(row_ids(25)), curr=25, page_size=10)
        # Offsets 15 through 25, boundary row included
        assert query.view() == row_ids(25)[14:]

    def test_window_requires_cached_start(self, seeded_collection):
        """Test an uncached lower bound raises ValueError."""
        collection = seeded_collection(40)
        with pytest.raises(ValueError, match="window start"):
            window_query(collection.ref(), KeyCache(), curr=25, page_size=10)


def _subscription(query):
    on_change, on_moved, on_loaded = MagicMock(), MagicMock(), MagicMock()
    return (
        LiveWindowSubscription(query, on_change=on_change, on_moved=on_moved, on_loaded=on_loaded),
        on_change,
        on_moved,
        on_loaded,
    )


@pytest.mark.unit
class TestLiveWindowSubscription:
    """Test live window listener handling."""

    def test_attach_registers_four_listeners(self, seeded_collection):
        """Test attach registers the four window listeners."""
        collection = seeded_collection(3)
        sub, _, _, on_loaded = _subscription(collection.ref().limit_to_first(3))

        sub.attach()

        assert collection.listener_count() == 4
        on_loaded.assert_called_once()

    def test_attach_twice_is_noop(self, seeded_collection):
        """Test attaching twice registers nothing new."""
        collection = seeded_collection(3)
        sub, *_ = _subscription(collection.ref().limit_to_first(3))

        sub.attach()
        sub.attach()

        assert collection.listener_count() == 4

    def test_detach_removes_listeners(self, seeded_collection):
        """Test detach removes exactly its listeners."""
        collection = seeded_collection(3)
        sub, *_ = _subscription(collection.ref().limit_to_first(3))

        sub.attach()
        sub.detach()

        assert collection.listener_count() == 0
        assert sub.attached is False

    def test_structural_changes(self, seeded_collection):
        """Test adds and removes report a change."""
        collection = seeded_collection(5)
        sub, on_change, on_moved, _ = _subscription(collection.ref().limit_to_first(3))
        sub.attach()
        on_change.reset_mock()  # initial child_added replay

        collection.set("row00", {"score": 0})

        # row00 added, row03 pushed out of the window
        assert on_change.call_count == 2
        on_moved.assert_not_called()

    def test_move_reports_row_id(self, collection):
        """Test a move reports the moved row id."""
        collection.seed({"a": {"score": 1}, "b": {"score": 2}, "c": {"score": 3}})
        sub, on_change, on_moved, _ = _subscription(
            collection.ref().order_by_child("score").limit_to_first(3)
        )
        sub.attach()
        on_change.reset_mock()

        collection.set("a", {"score": 2.5})

        on_moved.assert_called_once_with("a")
        on_change.assert_not_called()

    def test_events_after_detach_are_ignored(self, seeded_collection):
        """Test events after detach are ignored."""
        collection = seeded_collection(3)
        sub, on_change, _, on_loaded = _subscription(collection.ref())
        sub.attach()
        on_change.reset_mock()
        on_loaded.reset_mock()

        sub.detach()
        sub._changed(MagicMock())
        sub._loaded(MagicMock())

        on_change.assert_not_called()
        on_loaded.assert_not_called()


@pytest.mark.unit
class TestEmptyOffsetMonitor:
    """Test the empty-offset monitor handle."""

    def test_fires_when_first_row_arrives(self, collection):
        """Test the monitor fires when the first row arrives."""
        on_arrival = MagicMock()
        monitor = EmptyOffsetMonitor(collection.ref(), None, on_arrival)
        monitor.attach()
        on_arrival.assert_not_called()

        collection.set("a", {"score": 1})

        on_arrival.assert_called_once()
        assert monitor.attached is False
        assert collection.listener_count() == 0

    def test_anchor_row_is_the_baseline(self, seeded_collection):
        """Test the anchor row alone does not fire."""
        collection = seeded_collection(3)
        anchor = BoundaryKey(sort_value="row03", row_id="row03")
        on_arrival = MagicMock()
        monitor = EmptyOffsetMonitor(collection.ref(), anchor, on_arrival)

        monitor.attach()
        assert monitor.baseline == 1
        on_arrival.assert_not_called()

        collection.set("row04", {"score": 4})
        on_arrival.assert_called_once()

    def test_rows_before_anchor_do_not_fire(self, seeded_collection):
        """Test rows before the anchor do not fire."""
        collection = seeded_collection(3)
        anchor = BoundaryKey(sort_value="row03", row_id="row03")
        on_arrival = MagicMock()
        EmptyOffsetMonitor(collection.ref(), anchor, on_arrival).attach()

        collection.set("row00", {"score": 0})

        on_arrival.assert_not_called()

    def test_fires_only_once(self, collection):
        """Test the monitor fires once and detaches."""
        on_arrival = MagicMock()
        EmptyOffsetMonitor(collection.ref(), None, on_arrival).attach()

        collection.set("a", {"score": 1})
        collection.set("b", {"score": 2})

        on_arrival.assert_called_once()

    def test_detach_before_arrival(self, collection):
        """Test a detached monitor never fires."""
        on_arrival = MagicMock()
        monitor = EmptyOffsetMonitor(collection.ref(), None, on_arrival)
        monitor.attach()
        monitor.detach()

        collection.set("a", {"score": 1})

        on_arrival.assert_not_called()
