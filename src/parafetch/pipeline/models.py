"""Domain models shared by the pipeline components."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum

Identifier = str


class Outcome(str, Enum):
    """Normalized outcome of one task execution."""

    SUCCESS = "success"
    TRANSPORT_FAILURE = "transport_failure"
    RATE_LIMITED = "rate_limited"
    BODY_READ_FAILURE = "body_read_failure"


@dataclass(slots=True)
class Task:
    """One resolved request plus its execution timestamps."""

    id: Identifier
    target: str
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


@dataclass(frozen=True, slots=True)
class Result:
    """Value produced by a successful task."""

    id: Identifier
    value: str


@dataclass(frozen=True, slots=True)
class Submission:
    """Identifier travelling through the input channel.

    ``attempt`` is the number of executions already spent on the identifier,
    so a requeued identifier keeps its retry budget across admissions.
    """

    identifier: Identifier
    attempt: int = 0


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """One reading of limiter occupancy and pipeline counters."""

    capacity: int
    occupied: int
    completed: int
    completed_delta: int
    retried: int
    retried_delta: int
    failed: int


class PipelineCounters:
    """Monotonic run counters shared by workers, sink and reporter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._completed = 0
        self._retried = 0
        self._failed = 0

    def record_completed(self) -> None:
        with self._lock:
            self._completed += 1

    def record_retry(self) -> None:
        with self._lock:
            self._retried += 1

    def record_failed(self) -> None:
        with self._lock:
            self._failed += 1

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def retried(self) -> int:
        with self._lock:
            return self._retried

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    def read(self) -> tuple[int, int, int]:
        """Return ``(completed, retried, failed)`` as one consistent reading."""

        with self._lock:
            return self._completed, self._retried, self._failed


@dataclass(slots=True)
class PipelineRunSummary:
    """Aggregate counters of a finished pipeline run for CLI reporting."""

    read: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0
    stopped: bool = False
