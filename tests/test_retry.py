from __future__ import annotations

import allure
import pytest

from parafetch.pipeline.models import Outcome
from parafetch.pipeline.retry import (
    RATE_LIMIT_ATTEMPTS,
    RetryAction,
    RetryKind,
    RetryPolicy,
)

pytestmark = [
    allure.epic("Fetch Pipeline"),
    allure.feature("Retry Policy"),
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("none", RetryPolicy.none()),
        ("bounded", RetryPolicy.bounded(4)),
        ("bounded:2", RetryPolicy.bounded(2)),
        ("indefinite", RetryPolicy.indefinite(1.0)),
        ("indefinite:0.25", RetryPolicy.indefinite(0.25)),
        ("requeue", RetryPolicy.requeue(1.0)),
        ("requeue:0.5:3", RetryPolicy.requeue(0.5, 3)),
        (" Bounded : 5 ", RetryPolicy.bounded(5)),
    ],
)
def test_parse(raw: str, expected: RetryPolicy) -> None:
    assert RetryPolicy.parse(raw) == expected


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("forever", "Invalid retry policy"),
        ("", "Invalid retry policy"),
        ("none:1", "Too many parameters"),
        ("bounded:x", "Invalid retry policy 'bounded:x'"),
        ("bounded:0", "max_attempts must be >= 1"),
        ("indefinite:-1", "delay_seconds must be >= 0"),
        ("requeue:1:2:3", "Too many parameters"),
    ],
)
def test_parse_rejects_invalid_policies(raw: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        RetryPolicy.parse(raw)


@pytest.mark.parametrize(
    "policy",
    [
        RetryPolicy.none(),
        RetryPolicy.bounded(3),
        RetryPolicy.indefinite(0.5),
        RetryPolicy.requeue(0.5),
        RetryPolicy.requeue(0.5, 4),
    ],
)
def test_describe_round_trips_through_parse(policy: RetryPolicy) -> None:
    assert RetryPolicy.parse(policy.describe()) == policy


def test_none_drops_transport_failures() -> None:
    decision = RetryPolicy.none().decide(Outcome.TRANSPORT_FAILURE, attempt=1)
    assert decision.action is RetryAction.ABANDON


def test_none_still_retries_rate_limited_outcomes() -> None:
    policy = RetryPolicy.none()

    for attempt in range(1, RATE_LIMIT_ATTEMPTS):
        decision = policy.decide(Outcome.RATE_LIMITED, attempt=attempt)
        assert decision.action is RetryAction.RETRY
        assert decision.delay_seconds == policy.delay_seconds

    last = policy.decide(Outcome.RATE_LIMITED, attempt=RATE_LIMIT_ATTEMPTS)
    assert last.action is RetryAction.ABANDON


def test_bounded_retries_without_delay_until_budget_is_spent() -> None:
    policy = RetryPolicy.bounded(4)

    actions = [
        policy.decide(Outcome.BODY_READ_FAILURE, attempt=attempt).action for attempt in range(1, 5)
    ]

    assert actions == [RetryAction.RETRY] * 3 + [RetryAction.ABANDON]
    assert policy.decide(Outcome.RATE_LIMITED, attempt=1).delay_seconds == 0.0


def test_indefinite_never_gives_up_unless_stopping() -> None:
    policy = RetryPolicy.indefinite(0.2)

    decision = policy.decide(Outcome.TRANSPORT_FAILURE, attempt=10_000)
    assert decision.action is RetryAction.RETRY
    assert decision.delay_seconds == 0.2

    stopped = policy.decide(Outcome.TRANSPORT_FAILURE, attempt=1, stopping=True)
    assert stopped.action is RetryAction.ABANDON


def test_requeue_respects_optional_attempt_budget() -> None:
    unbounded = RetryPolicy.requeue(0.1)
    assert unbounded.decide(Outcome.RATE_LIMITED, attempt=50).action is RetryAction.REQUEUE

    bounded = RetryPolicy.requeue(0.1, 2)
    assert bounded.decide(Outcome.RATE_LIMITED, attempt=1).action is RetryAction.REQUEUE
    assert bounded.decide(Outcome.RATE_LIMITED, attempt=2).action is RetryAction.ABANDON


def test_decide_rejects_success() -> None:
    with pytest.raises(ValueError, match="failed outcomes"):
        RetryPolicy.none().decide(Outcome.SUCCESS, attempt=1)


def test_bounded_policy_requires_attempts() -> None:
    with pytest.raises(ValueError, match="requires max_attempts"):
        RetryPolicy(RetryKind.BOUNDED)
