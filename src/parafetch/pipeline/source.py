"""Reads identifiers, one per line, from a text stream."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import TextIO

from parafetch.pipeline.channel import ChannelClosedError
from parafetch.pipeline.models import Identifier, Submission
from parafetch.pipeline.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


class SourceReadError(RuntimeError):
    """Raised when the source stream cannot be read at all."""


def iter_identifiers(stream: TextIO) -> Iterator[Identifier]:
    """Yield trimmed, non-blank lines of ``stream``."""

    for line in stream:
        identifier = line.strip()
        if identifier:
            yield identifier


class SourceReader:
    """Feeds identifiers from a text stream into the pipeline.

    ``prime`` performs the first read in the caller's thread so that an
    unreadable source fails the run before any worker starts; ``start`` then
    pumps the rest from a background thread.
    """

    def __init__(self, stream: TextIO, coordinator: ShutdownCoordinator) -> None:
        self._identifiers = iter_identifiers(stream)
        self._coordinator = coordinator
        self._first: Identifier | None = None
        self._thread: threading.Thread | None = None
        self.read_count = 0
        self.error: Exception | None = None

    def prime(self) -> None:
        try:
            self._first = next(self._identifiers, None)
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceReadError(f"Cannot read identifiers: {exc}") from exc

    def start(self) -> None:
        self._thread = threading.Thread(target=self._pump, daemon=True, name="source-reader")
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _pump(self) -> None:
        try:
            if self._first is not None:
                self._submit(self._first)
            for identifier in self._identifiers:
                if self._coordinator.stopping:
                    logger.warning("Stop requested; no further identifiers are read")
                    break
                self._submit(identifier)
        except ChannelClosedError:
            logger.debug("Input closed by stop request; source reader exits")
        except (OSError, UnicodeDecodeError) as exc:
            self.error = exc
            logger.error("Source read failed after %d identifier(s): %s", self.read_count, exc)
        finally:
            self._coordinator.source_exhausted()

    def _submit(self, identifier: Identifier) -> None:
        self._coordinator.submit(Submission(identifier))
        self.read_count += 1
