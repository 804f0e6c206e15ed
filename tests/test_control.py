from __future__ import annotations

import time

import allure
import pytest

from parafetch.pipeline.control import (
    ControlChannel,
    HalveCapacity,
    IncreaseCapacity,
    SetCapacity,
    apply_command,
)
from parafetch.pipeline.limiter import ConcurrencyLimiter

pytestmark = [
    allure.epic("Fetch Pipeline"),
    allure.feature("Live Control"),
]


def test_apply_command_variants() -> None:
    limiter = ConcurrencyLimiter(8)

    assert apply_command(limiter, HalveCapacity()) == 4
    assert apply_command(limiter, IncreaseCapacity()) == 14
    assert apply_command(limiter, IncreaseCapacity(by=1)) == 15
    assert apply_command(limiter, SetCapacity(2)) == 2
    assert limiter.capacity == 2


def test_halving_never_drops_below_one() -> None:
    limiter = ConcurrencyLimiter(1)

    assert apply_command(limiter, HalveCapacity()) == 1


def test_apply_command_rejects_unknown_commands() -> None:
    with pytest.raises(TypeError, match="Unsupported control command"):
        apply_command(ConcurrencyLimiter(1), "halve")  # type: ignore[arg-type]


def test_control_channel_applies_commands_in_order_and_skips_invalid_ones() -> None:
    limiter = ConcurrencyLimiter(4)
    control = ControlChannel(limiter)
    control.start()

    control.send(SetCapacity(0))
    control.send(IncreaseCapacity(by=6))
    control.send(HalveCapacity())
    control.close()

    assert limiter.capacity == 5


def test_control_channel_resizes_a_busy_limiter() -> None:
    limiter = ConcurrencyLimiter(2)
    limiter.acquire()
    limiter.acquire()
    control = ControlChannel(limiter)
    control.start()
    try:
        control.send(SetCapacity(3))
        deadline = time.monotonic() + 2
        while limiter.capacity != 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert limiter.capacity == 3
        assert limiter.occupied == 2
    finally:
        control.close()
