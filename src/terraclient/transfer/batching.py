"""Bounded batching of work queues.

Batches are taken destructively from the front of a deque, so after a
failure the deque still holds exactly the items that were never started.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError(f"Batch limit must be >= 1, got {limit}")


def take_batch(queue: deque[T], limit: int) -> list[T]:
    """Remove and return up to ``limit`` items from the front of the queue."""
    _check_limit(limit)
    return [queue.popleft() for _ in range(min(limit, len(queue)))]


def drain_batches(queue: deque[T], limit: int) -> Iterator[list[T]]:
    """Yield batches from the queue until it is empty.

    Items are removed as each batch is yielded; stopping the iteration
    early leaves the unprocessed items in the queue.
    """
    _check_limit(limit)
    while queue:
        yield take_batch(queue, limit)


def split_batches(items: Sequence[T], limit: int) -> list[list[T]]:
    """Split a sequence into batches without modifying it."""
    _check_limit(limit)
    return [list(items[i : i + limit]) for i in range(0, len(items), limit)]
