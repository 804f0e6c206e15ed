from __future__ import annotations

import threading

import allure
import pytest

from parafetch.pipeline.channel import END_OF_STREAM, Channel, ChannelClosedError

pytestmark = [
    allure.epic("Fetch Pipeline"),
    allure.feature("Shutdown Protocol"),
]


def test_items_come_out_in_fifo_order() -> None:
    channel: Channel[str] = Channel()
    for item in ("a", "b", "c"):
        channel.put(item)
    channel.close()

    assert list(channel) == ["a", "b", "c"]


def test_end_of_stream_is_distinct_from_empty_string() -> None:
    channel: Channel[str] = Channel()
    channel.put("")
    channel.close()

    assert channel.get() == ""
    assert channel.get() is END_OF_STREAM
    assert channel.get() is END_OF_STREAM


def test_put_after_close_raises() -> None:
    channel: Channel[int] = Channel(name="result channel")
    channel.close()

    with pytest.raises(ChannelClosedError, match="put on closed result channel"):
        channel.put(1)
    assert channel.closed is True


def test_close_wakes_blocked_reader() -> None:
    channel: Channel[int] = Channel()
    received: list[object] = []

    thread = threading.Thread(target=lambda: received.append(channel.get()))
    thread.start()
    channel.close()
    thread.join(timeout=2)

    assert received == [END_OF_STREAM]


def test_bounded_channel_blocks_writer_until_read() -> None:
    channel: Channel[int] = Channel(maxsize=1)
    channel.put(1)
    written = threading.Event()

    def _writer() -> None:
        channel.put(2)
        written.set()

    thread = threading.Thread(target=_writer)
    thread.start()
    assert not written.wait(0.1)
    assert len(channel) == 1

    assert channel.get() == 1
    assert written.wait(2)
    thread.join(timeout=2)
    assert channel.get() == 2


def test_close_fails_blocked_writer() -> None:
    channel: Channel[int] = Channel(maxsize=1)
    channel.put(1)
    errors: list[Exception] = []

    def _writer() -> None:
        try:
            channel.put(2)
        except ChannelClosedError as exc:
            errors.append(exc)

    thread = threading.Thread(target=_writer)
    thread.start()
    channel.close()
    thread.join(timeout=2)

    assert len(errors) == 1
    assert list(channel) == [1]


def test_negative_maxsize_is_rejected() -> None:
    with pytest.raises(ValueError, match="maxsize"):
        Channel(maxsize=-1)
