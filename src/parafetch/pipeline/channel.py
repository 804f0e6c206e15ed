"""Closable FIFO channel with an explicit end-of-stream marker."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class _EndOfStream:
    __slots__ = ()

    def __repr__(self) -> str:
        return "END_OF_STREAM"


END_OF_STREAM = _EndOfStream()


class ChannelClosedError(RuntimeError):
    """Raised when putting into a channel that has been closed."""


class Channel(Generic[T]):
    """Thread-safe queue that can be closed by its producers.

    ``get`` returns ``END_OF_STREAM`` once the channel is closed and drained,
    so a closed stream is never confused with a falsy item. ``maxsize=0``
    means unbounded.
    """

    def __init__(self, maxsize: int = 0, *, name: str = "channel") -> None:
        if maxsize < 0:
            raise ValueError("maxsize must be >= 0")
        self.name = name
        self._maxsize = maxsize
        self._items: deque[T] = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def put(self, item: T) -> None:
        """Append ``item``, blocking while the channel is full."""

        with self._not_full:
            while not self._closed and self._maxsize and len(self._items) >= self._maxsize:
                self._not_full.wait()
            if self._closed:
                raise ChannelClosedError(f"put on closed {self.name}")
            self._items.append(item)
            self._not_empty.notify()

    def get(self) -> T | _EndOfStream:
        """Pop the oldest item, or ``END_OF_STREAM`` once closed and drained."""

        with self._not_empty:
            while not self._items and not self._closed:
                self._not_empty.wait()
            if not self._items:
                return END_OF_STREAM
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def close(self) -> None:
        """Close the channel; already queued items stay readable."""

        with self._lock:
            self._closed = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self.get()
            if item is END_OF_STREAM:
                return
            yield item  # type: ignore[misc]
