"""Typed runtime control of the concurrency limit."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass

from parafetch.pipeline.limiter import ConcurrencyLimiter

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY_INCREMENT = 10

_SENTINEL = object()


@dataclass(frozen=True, slots=True)
class SetCapacity:
    capacity: int


@dataclass(frozen=True, slots=True)
class HalveCapacity:
    pass


@dataclass(frozen=True, slots=True)
class IncreaseCapacity:
    by: int = DEFAULT_CAPACITY_INCREMENT


ControlCommand = SetCapacity | HalveCapacity | IncreaseCapacity


def apply_command(limiter: ConcurrencyLimiter, command: ControlCommand) -> int:
    """Apply ``command`` to ``limiter`` and return the new capacity."""

    if isinstance(command, SetCapacity):
        target = command.capacity
    elif isinstance(command, HalveCapacity):
        target = max(1, limiter.capacity // 2)
    elif isinstance(command, IncreaseCapacity):
        target = limiter.capacity + command.by
    else:
        raise TypeError(f"Unsupported control command: {command!r}")
    previous = limiter.capacity
    limiter.set_capacity(target)
    logger.info("Capacity changed %d -> %d (%s)", previous, target, type(command).__name__)
    return target


class ControlChannel:
    """Queue of capacity commands applied to a limiter by a background thread.

    ``send`` is safe to call from signal handlers and other threads.
    Invalid commands are logged and skipped.
    """

    def __init__(self, limiter: ConcurrencyLimiter) -> None:
        self.limiter = limiter
        self._queue: queue.Queue[ControlCommand | object] = queue.Queue()
        self._thread: threading.Thread | None = None

    def send(self, command: ControlCommand) -> None:
        self._queue.put(command)

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, daemon=True, name="capacity-control")
        self._thread.start()

    def close(self, timeout: float | None = 5.0) -> None:
        self._queue.put(_SENTINEL)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while True:
            command = self._queue.get()
            if command is _SENTINEL:
                return
            try:
                apply_command(self.limiter, command)  # type: ignore[arg-type]
            except (TypeError, ValueError) as exc:
                logger.warning("Ignoring control command %r: %s", command, exc)
