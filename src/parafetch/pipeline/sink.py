"""Writes completed results to the output stream in arrival order."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import TextIO

from parafetch.pipeline.channel import Channel
from parafetch.pipeline.models import PipelineCounters, Result

logger = logging.getLogger(__name__)

ResultFormatter = Callable[[Result], str]


class OutputFormat(str, Enum):
    JSON = "json"
    TEXT = "text"


def format_json(result: Result) -> str:
    """Compact one-line JSON record ``{"id":...,"value":...}``."""

    return json.dumps(
        {"id": result.id, "value": result.value},
        ensure_ascii=False,
        separators=(",", ":"),
    )


def format_text(result: Result) -> str:
    """Tab-separated ``id`` and ``value``; the value is escaped onto one line."""

    value = result.value.replace("\\", "\\\\").replace("\r", "\\r").replace("\n", "\\n")
    return f"{result.id}\t{value}"


FORMATTERS: dict[OutputFormat, ResultFormatter] = {
    OutputFormat.JSON: format_json,
    OutputFormat.TEXT: format_text,
}


class ResultSink:
    """Drains the output channel into ``writer``, one record per line.

    ``done`` is set only after the channel has been closed and fully drained.
    """

    def __init__(
        self,
        *,
        outbox: Channel[Result],
        writer: TextIO,
        counters: PipelineCounters,
        formatter: ResultFormatter = format_json,
    ) -> None:
        self.outbox = outbox
        self.writer = writer
        self.counters = counters
        self.formatter = formatter
        self.done = threading.Event()
        self.error: Exception | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, daemon=True, name="result-sink")
        self._thread.start()

    def run(self) -> None:
        try:
            for result in self.outbox:
                self._write(result)
        finally:
            self.done.set()

    def wait(self, timeout: float | None = None) -> bool:
        return self.done.wait(timeout)

    def _write(self, result: Result) -> None:
        if self.error is not None:
            # The writer is gone; keep draining so workers never block on a full outbox.
            return
        try:
            self.writer.write(self.formatter(result) + "\n")
            self.writer.flush()
        except (OSError, ValueError) as exc:
            self.error = exc
            logger.error("Output stream failed; further results are discarded: %s", exc)
            return
        self.counters.record_completed()
