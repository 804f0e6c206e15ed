"""Unified retry policy for failed task executions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from parafetch.pipeline.models import Outcome

DEFAULT_BOUNDED_ATTEMPTS = 4
DEFAULT_RETRY_DELAY_SECONDS = 1.0
RATE_LIMIT_ATTEMPTS = 4


class RetryKind(str, Enum):
    """Retry strategies selectable at startup."""

    NONE = "none"
    BOUNDED = "bounded"
    INDEFINITE = "indefinite"
    REQUEUE = "requeue"


class RetryAction(str, Enum):
    """What the dispatcher does with a failed execution."""

    RETRY = "retry"
    REQUEUE = "requeue"
    ABANDON = "abandon"


@dataclass(frozen=True, slots=True)
class RetryDecision:
    action: RetryAction
    delay_seconds: float = 0.0


_ABANDON = RetryDecision(RetryAction.ABANDON)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry strategy plus its parameter.

    ``max_attempts`` counts executions, including the first one, and bounds
    ``BOUNDED`` and (when set) ``REQUEUE``. ``delay_seconds`` is the pause
    before the next execution for ``INDEFINITE`` and ``REQUEUE`` and for
    rate-limited retries under ``NONE``.
    """

    kind: RetryKind = RetryKind.NONE
    max_attempts: int | None = None
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")
        if self.kind is RetryKind.BOUNDED and self.max_attempts is None:
            raise ValueError("bounded retry policy requires max_attempts")

    @classmethod
    def none(cls) -> RetryPolicy:
        return cls(RetryKind.NONE)

    @classmethod
    def bounded(cls, attempts: int = DEFAULT_BOUNDED_ATTEMPTS) -> RetryPolicy:
        return cls(RetryKind.BOUNDED, max_attempts=attempts, delay_seconds=0.0)

    @classmethod
    def indefinite(cls, delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS) -> RetryPolicy:
        return cls(RetryKind.INDEFINITE, delay_seconds=delay_seconds)

    @classmethod
    def requeue(
        cls,
        delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        max_attempts: int | None = None,
    ) -> RetryPolicy:
        return cls(RetryKind.REQUEUE, max_attempts=max_attempts, delay_seconds=delay_seconds)

    @classmethod
    def parse(cls, raw: str) -> RetryPolicy:
        """Parse ``none``, ``bounded[:N]``, ``indefinite[:S]`` or ``requeue[:S[:N]]``."""

        name, *params = [part.strip() for part in raw.strip().split(":")]
        try:
            kind = RetryKind(name.lower())
        except ValueError as error:
            raise ValueError(
                f"Invalid retry policy {raw!r}. "
                "Expected none, bounded[:N], indefinite[:SECONDS] or requeue[:SECONDS[:N]].",
            ) from error

        max_params = {
            RetryKind.NONE: 0,
            RetryKind.BOUNDED: 1,
            RetryKind.INDEFINITE: 1,
            RetryKind.REQUEUE: 2,
        }[kind]
        if len(params) > max_params:
            raise ValueError(f"Too many parameters in retry policy {raw!r}.")

        try:
            if kind is RetryKind.NONE:
                return cls.none()
            if kind is RetryKind.BOUNDED:
                return cls.bounded(int(params[0]) if params else DEFAULT_BOUNDED_ATTEMPTS)
            if kind is RetryKind.INDEFINITE:
                return cls.indefinite(float(params[0]) if params else DEFAULT_RETRY_DELAY_SECONDS)
            delay = float(params[0]) if params else DEFAULT_RETRY_DELAY_SECONDS
            attempts = int(params[1]) if len(params) > 1 else None
            return cls.requeue(delay, attempts)
        except ValueError as error:
            raise ValueError(f"Invalid retry policy {raw!r}: {error}") from error

    def decide(self, outcome: Outcome, *, attempt: int, stopping: bool = False) -> RetryDecision:
        """Decide what follows a failed execution.

        ``attempt`` is the number of executions spent so far, including the
        one that just failed.
        """

        if outcome is Outcome.SUCCESS:
            raise ValueError("decide() is only defined for failed outcomes")
        if stopping:
            return _ABANDON

        if self.kind is RetryKind.NONE:
            if outcome is Outcome.RATE_LIMITED and attempt < RATE_LIMIT_ATTEMPTS:
                return RetryDecision(RetryAction.RETRY, self.delay_seconds)
            return _ABANDON
        if self.kind is RetryKind.BOUNDED:
            if attempt < (self.max_attempts or DEFAULT_BOUNDED_ATTEMPTS):
                return RetryDecision(RetryAction.RETRY)
            return _ABANDON
        if self.kind is RetryKind.INDEFINITE:
            return RetryDecision(RetryAction.RETRY, self.delay_seconds)
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return _ABANDON
        return RetryDecision(RetryAction.REQUEUE, self.delay_seconds)

    def describe(self) -> str:
        if self.kind is RetryKind.NONE:
            return "none"
        if self.kind is RetryKind.BOUNDED:
            return f"bounded:{self.max_attempts}"
        if self.kind is RetryKind.INDEFINITE:
            return f"indefinite:{self.delay_seconds:g}"
        if self.max_attempts is None:
            return f"requeue:{self.delay_seconds:g}"
        return f"requeue:{self.delay_seconds:g}:{self.max_attempts}"
