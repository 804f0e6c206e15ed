from __future__ import annotations

import io
import threading
import time

import allure
import pytest

from parafetch.pipeline.limiter import ConcurrencyLimiter
from parafetch.pipeline.models import PipelineCounters, ProgressSnapshot
from parafetch.pipeline.reporter import HEADER, Reporter, format_snapshot

pytestmark = [
    allure.epic("Fetch Pipeline"),
    allure.feature("Progress Reporting"),
]


class _LockedWriter(io.StringIO):
    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.Lock()

    def write(self, text: str) -> int:
        with self._lock:
            return super().write(text)

    def lines(self) -> list[str]:
        with self._lock:
            return self.getvalue().splitlines()


def _reporter(capacity: int = 3) -> tuple[Reporter, ConcurrencyLimiter, PipelineCounters, _LockedWriter]:
    limiter = ConcurrencyLimiter(capacity)
    counters = PipelineCounters()
    writer = _LockedWriter()
    return Reporter(limiter=limiter, counters=counters, writer=writer), limiter, counters, writer


def test_snapshot_reports_deltas_since_previous_snapshot() -> None:
    reporter, limiter, counters, _ = _reporter()
    limiter.acquire()
    for _ in range(3):
        counters.record_completed()
    counters.record_retry()

    first = reporter.snapshot()
    counters.record_completed()
    counters.record_failed()
    second = reporter.snapshot()

    assert first == ProgressSnapshot(
        capacity=3,
        occupied=1,
        completed=3,
        completed_delta=3,
        retried=1,
        retried_delta=1,
        failed=0,
    )
    assert second.completed == 4
    assert second.completed_delta == 1
    assert second.retried_delta == 0
    assert second.failed == 1


def test_format_snapshot_aligns_with_header() -> None:
    line = format_snapshot(
        ProgressSnapshot(
            capacity=10,
            occupied=4,
            completed=120,
            completed_delta=7,
            retried=3,
            retried_delta=1,
            failed=2,
        ),
    )

    assert line.split() == ["10", "4", "120", "+7", "3", "+1", "2"]
    assert HEADER.split() == ["cap", "len", "done", "+diff", "retry", "+rdiff", "fail"]


def test_start_writes_header_then_ticks_and_stop_writes_final_line() -> None:
    reporter, _, counters, writer = _reporter()

    reporter.start(0.02)
    time.sleep(0.15)
    counters.record_completed()
    reporter.stop()

    lines = writer.lines()
    assert lines[0] == HEADER
    assert len(lines) >= 3
    assert lines[-1].split()[2] == "1"
    assert reporter.running is False


def test_stop_interrupts_a_long_tick_immediately() -> None:
    reporter, _, _, writer = _reporter()
    reporter.start(60)

    started = time.monotonic()
    reporter.stop()

    assert time.monotonic() - started < 2
    assert writer.lines()[0] == HEADER
    assert len(writer.lines()) == 3


def test_cancel_ends_ticks_and_stop_adds_exactly_one_final_line() -> None:
    reporter, _, _, writer = _reporter()
    reporter.start(0.01)
    time.sleep(0.05)

    reporter.cancel()
    time.sleep(0.05)
    after_cancel = len(writer.lines())
    time.sleep(0.1)

    assert len(writer.lines()) == after_cancel
    reporter.stop()
    assert len(writer.lines()) == after_cancel + 1
    assert reporter.running is False


def test_start_rejects_non_positive_interval() -> None:
    reporter, *_ = _reporter()
    with pytest.raises(ValueError, match="interval_seconds"):
        reporter.start(0)


def test_start_twice_is_rejected() -> None:
    reporter, *_ = _reporter()
    reporter.start(60)
    try:
        with pytest.raises(RuntimeError, match="already started"):
            reporter.start(60)
    finally:
        reporter.stop()


def test_reporter_never_blocks_counter_writers() -> None:
    reporter, _, counters, _ = _reporter()
    reporter.start(0.001)
    try:
        started = time.monotonic()
        for _ in range(5_000):
            counters.record_completed()
        assert time.monotonic() - started < 5
    finally:
        reporter.stop()
    assert counters.completed == 5_000
