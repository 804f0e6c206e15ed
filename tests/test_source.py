from __future__ import annotations

import io

import allure
import pytest

from parafetch.pipeline.channel import END_OF_STREAM, Channel
from parafetch.pipeline.models import Result, Submission
from parafetch.pipeline.shutdown import ShutdownCoordinator
from parafetch.pipeline.source import SourceReader, SourceReadError, iter_identifiers

pytestmark = [
    allure.epic("Fetch Pipeline"),
    allure.feature("Source Stream"),
]


def _coordinator() -> ShutdownCoordinator:
    return ShutdownCoordinator(inbox=Channel[Submission](), outbox=Channel[Result]())


def test_iter_identifiers_trims_and_skips_blank_lines() -> None:
    stream = io.StringIO("  1 \n\n\t\n2\r\n   \n3")

    assert list(iter_identifiers(stream)) == ["1", "2", "3"]


def test_reader_feeds_submissions_and_counts_them_as_outstanding() -> None:
    coordinator = _coordinator()
    reader = SourceReader(io.StringIO("a\nb\n"), coordinator)
    reader.prime()
    reader.start()

    first = coordinator.inbox.get()
    second = coordinator.inbox.get()

    assert first == Submission("a")
    assert second == Submission("b")
    assert coordinator.outstanding.count == 2
    assert coordinator.inbox.closed is False

    coordinator.task_finished()
    coordinator.task_finished()
    reader.join(timeout=2)

    assert coordinator.inbox.get() is END_OF_STREAM
    assert reader.read_count == 2


def test_empty_source_closes_input_immediately() -> None:
    coordinator = _coordinator()
    reader = SourceReader(io.StringIO("\n \n"), coordinator)
    reader.prime()
    reader.start()
    reader.join(timeout=2)

    assert coordinator.inbox.get() is END_OF_STREAM
    assert reader.read_count == 0


class _UnreadableStream(io.StringIO):
    def __iter__(self):
        return self

    def __next__(self) -> str:
        raise OSError("Input/output error")


def test_unreadable_source_fails_on_first_read() -> None:
    reader = SourceReader(_UnreadableStream(), _coordinator())

    with pytest.raises(SourceReadError, match="Input/output error"):
        reader.prime()


class _FailsAfterFirstLine(io.StringIO):
    def __init__(self) -> None:
        super().__init__()
        self._served = False

    def __iter__(self):
        return self

    def __next__(self) -> str:
        if not self._served:
            self._served = True
            return "first\n"
        raise OSError("connection reset")


def test_later_read_error_is_treated_as_end_of_input() -> None:
    coordinator = _coordinator()
    reader = SourceReader(_FailsAfterFirstLine(), coordinator)
    reader.prime()
    reader.start()

    assert coordinator.inbox.get() == Submission("first")
    coordinator.task_finished()
    reader.join(timeout=2)

    assert isinstance(reader.error, OSError)
    assert coordinator.inbox.get() is END_OF_STREAM
