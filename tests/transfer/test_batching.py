"""Tests for bounded batching."""

from __future__ import annotations

from collections import deque

import pytest

from terraclient.transfer.batching import drain_batches, split_batches, take_batch

LIMIT = 50


class TestDrainBatches:
    """Tests for drain_batches."""

    @pytest.mark.parametrize(
        ("count", "sizes"),
        [
            (0, []),
            (1, [1]),
            (LIMIT - 1, [LIMIT - 1]),
            (LIMIT, [LIMIT]),
            (LIMIT + 1, [LIMIT, 1]),
            (10 * LIMIT, [LIMIT] * 10),
            (120, [50, 50, 20]),
        ],
    )
    def test_batch_sizes(self, count: int, sizes: list[int]) -> None:
        """Should never exceed the limit and cover every item once in order."""
        queue = deque(range(count))
        batches = list(drain_batches(queue, LIMIT))

        assert [len(b) for b in batches] == sizes
        assert [item for batch in batches for item in batch] == list(range(count))
        assert not queue

    def test_stopping_early_keeps_rest(self) -> None:
        """Should leave unyielded items in the queue."""
        queue = deque(range(7))
        batches = drain_batches(queue, 3)

        assert next(batches) == [0, 1, 2]
        assert list(queue) == [3, 4, 5, 6]

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, limit: int) -> None:
        """Should reject non-positive limits."""
        with pytest.raises(ValueError):
            list(drain_batches(deque([1]), limit))


class TestTakeBatch:
    """Tests for take_batch and split_batches."""

    def test_take_removes_front(self) -> None:
        """Should pop items from the front."""
        queue = deque("abcde")
        assert take_batch(queue, 2) == ["a", "b"]
        assert list(queue) == ["c", "d", "e"]

    def test_take_short_queue(self) -> None:
        """Should return fewer items when the queue is short."""
        queue = deque("ab")
        assert take_batch(queue, 5) == ["a", "b"]
        assert take_batch(queue, 5) == []

    def test_split_leaves_input(self) -> None:
        """Should split without modifying the input."""
        items = list(range(5))
        assert split_batches(items, 2) == [[0, 1], [2, 3], [4]]
        assert items == [0, 1, 2, 3, 4]

    def test_split_invalid_limit(self) -> None:
        """Should reject a zero limit."""
        with pytest.raises(ValueError):
            split_batches([1, 2], 0)
