"""Executes one task and classifies its outcome."""

from __future__ import annotations

import logging
import time
from typing import NamedTuple

from parafetch.http.fetcher import FetchFailure, Fetcher
from parafetch.pipeline.models import Outcome, Result, Task

logger = logging.getLogger(__name__)

DEFAULT_FILTER_TEXT = "Too Many Requests (HAP429).\n"


class Execution(NamedTuple):
    result: Result | None
    outcome: Outcome


class TaskExecutor:
    """Runs a task through a fetcher and maps the response to an ``Outcome``.

    A body equal to ``filter_text`` is the server's throttling signal and is
    reported as ``RATE_LIMITED``; an empty ``filter_text`` disables the check.
    Non-success outcomes never carry a ``Result``.
    """

    def __init__(self, fetcher: Fetcher, *, filter_text: str = DEFAULT_FILTER_TEXT) -> None:
        self.fetcher = fetcher
        self.filter_text = filter_text

    def execute(self, task: Task) -> Execution:
        task.started_at = time.monotonic()
        try:
            fetched = self.fetcher.fetch(task.target)
        finally:
            task.finished_at = time.monotonic()

        if fetched.failure is FetchFailure.TRANSPORT:
            logger.warning("Transport failure id=%s url=%s: %s", task.id, task.target, fetched.error)
            return Execution(None, Outcome.TRANSPORT_FAILURE)
        if fetched.failure is FetchFailure.BODY_READ:
            logger.warning("Body read failure id=%s url=%s: %s", task.id, task.target, fetched.error)
            return Execution(None, Outcome.BODY_READ_FAILURE)
        if self.filter_text and fetched.content == self.filter_text:
            logger.info("Rate limited id=%s url=%s", task.id, task.target)
            return Execution(None, Outcome.RATE_LIMITED)
        return Execution(Result(id=task.id, value=fetched.content), Outcome.SUCCESS)
