"""Admission gate and outstanding-work counter."""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager


class ConcurrencyLimiter:
    """Counting gate bounding the number of simultaneously running tasks.

    ``set_capacity`` only throttles future admissions: shrinking below the
    current occupancy never evicts running tasks, ``acquire`` simply blocks
    until enough of them have released their slots.
    """

    def __init__(self, capacity: int) -> None:
        _check_capacity(capacity)
        self._capacity = capacity
        self._occupied = 0
        self._cond = threading.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def occupied(self) -> int:
        return self._occupied

    def acquire(self) -> None:
        with self._cond:
            while self._occupied >= self._capacity:
                self._cond.wait()
            self._occupied += 1

    def release(self) -> None:
        with self._cond:
            if self._occupied == 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._occupied -= 1
            self._cond.notify()

    def set_capacity(self, capacity: int) -> None:
        _check_capacity(capacity)
        with self._cond:
            self._capacity = capacity
            self._cond.notify_all()

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one slot for the duration of the ``with`` block."""

        self.acquire()
        try:
            yield
        finally:
            self.release()


class OutstandingWork:
    """Count of accepted-but-unfinished work with a blocking wait-for-zero."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        return self._count

    def add(self, n: int = 1) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            if self._count == 0:
                raise RuntimeError("done() called more times than add()")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the count reaches zero; False if ``timeout`` expired first."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._count:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True


def _check_capacity(capacity: int) -> None:
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")
