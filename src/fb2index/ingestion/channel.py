"""Bounded FIFO channels connecting pipeline stages."""

from __future__ import annotations

import queue
from typing import Generic, Iterator, TypeVar


T = TypeVar("T")

_CLOSED = object()


class Channel(Generic[T]):
    """Bounded queue drained by iteration until the producer closes it.

    Every consumer re-publishes the close marker it receives, so any number
    of consumers can share one channel.
    """

    def __init__(self, maxsize: int = 100) -> None:
        if maxsize < 1:
            raise ValueError("Channel capacity must be positive")
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)

    def put(self, item: T) -> None:
        self._queue.put(item)

    def close(self) -> None:
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return
            yield item  # type: ignore[misc]
