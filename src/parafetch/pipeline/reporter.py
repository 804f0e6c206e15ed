"""Periodic progress reporting beside the running pipeline."""

from __future__ import annotations

import logging
import threading
from typing import TextIO

from parafetch.pipeline.limiter import ConcurrencyLimiter
from parafetch.pipeline.models import PipelineCounters, ProgressSnapshot

logger = logging.getLogger(__name__)

HEADER = f"{'cap':>8} {'len':>8} {'done':<8} {'+diff':<9} {'retry':<8} {'+rdiff':<9} {'fail':<8}"


def format_snapshot(snapshot: ProgressSnapshot) -> str:
    return (
        f"{snapshot.capacity:>8} {snapshot.occupied:>8} "
        f"{snapshot.completed:<8} +{snapshot.completed_delta:<8} "
        f"{snapshot.retried:<8} +{snapshot.retried_delta:<8} "
        f"{snapshot.failed:<8}"
    ).rstrip()


class Reporter:
    """Writes a header, then one snapshot line per tick, until stopped.

    The tick wait and the cancellation share one ``threading.Event``, so
    ``cancel`` and ``stop`` interrupt a pending tick at once. Snapshot lines are serialized
    with a lock; the final line written by ``stop`` never interleaves with a
    tick.
    """

    def __init__(
        self,
        *,
        limiter: ConcurrencyLimiter,
        counters: PipelineCounters,
        writer: TextIO,
    ) -> None:
        self.limiter = limiter
        self.counters = counters
        self.writer = writer
        self._cancel = threading.Event()
        self._emit_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._prev_completed = 0
        self._prev_retried = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        if self._thread is not None:
            raise RuntimeError("Reporter already started")
        self._emit(HEADER)
        self._thread = threading.Thread(
            target=self._loop,
            args=(interval_seconds,),
            daemon=True,
            name="progress-reporter",
        )
        self._thread.start()

    def cancel(self) -> None:
        """End ticking without writing the final line."""

        self._cancel.set()

    def stop(self) -> None:
        """Cancel ticking, wait for the thread, then write one final snapshot."""

        self.cancel()
        if self._thread is not None:
            self._thread.join()
        self.report_once()

    def snapshot(self) -> ProgressSnapshot:
        """Take a snapshot and advance the delta baselines."""

        completed, retried, failed = self.counters.read()
        snapshot = ProgressSnapshot(
            capacity=self.limiter.capacity,
            occupied=self.limiter.occupied,
            completed=completed,
            completed_delta=completed - self._prev_completed,
            retried=retried,
            retried_delta=retried - self._prev_retried,
            failed=failed,
        )
        self._prev_completed = completed
        self._prev_retried = retried
        return snapshot

    def report_once(self) -> None:
        with self._emit_lock:
            line = format_snapshot(self.snapshot())
            self._write(line)

    def _loop(self, interval_seconds: float) -> None:
        while True:
            self.report_once()
            if self._cancel.wait(interval_seconds):
                return

    def _emit(self, line: str) -> None:
        with self._emit_lock:
            self._write(line)

    def _write(self, line: str) -> None:
        try:
            self.writer.write(line + "\n")
            self.writer.flush()
        except (OSError, ValueError) as exc:
            logger.warning("Progress report could not be written: %s", exc)
