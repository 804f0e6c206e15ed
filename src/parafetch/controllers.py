"""Controller for the fetch CLI command."""

from __future__ import annotations

import logging
import os
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import TextIO

from parafetch.config import Settings, unescape
from parafetch.http.fetcher import Fetcher, HttpFetcher
from parafetch.pipeline.control import HalveCapacity, IncreaseCapacity
from parafetch.pipeline.executor import TaskExecutor
from parafetch.pipeline.models import PipelineRunSummary
from parafetch.pipeline.retry import RetryPolicy
from parafetch.pipeline.runner import PipelineRunner
from parafetch.pipeline.sink import FORMATTERS, OutputFormat

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FetchRunCommand:
    """CLI inputs for the run command; ``None`` keeps the environment value."""

    template: str | None = None
    jobs: int | None = None
    retry_policy: str | None = None
    filter_text: str | None = None
    report: bool | None = None
    report_interval_ms: int | None = None
    output_format: str | None = None
    connect_timeout_seconds: float | None = None
    request_timeout_seconds: float | None = None
    print_pid: bool | None = None
    control_signals: bool | None = None


class FetchCliController:
    """Builds a pipeline from settings and runs it over the given streams."""

    def __init__(self, fetcher: Fetcher | None = None) -> None:
        self._fetcher = fetcher

    def run(
        self,
        command: FetchRunCommand,
        *,
        reader: TextIO,
        writer: TextIO,
        report_writer: TextIO,
    ) -> PipelineRunSummary:
        settings = resolve_settings(command)
        settings.validate()

        if settings.print_pid:
            logger.warning("pid: %d", os.getpid())

        http = settings.http
        fetcher = self._fetcher or HttpFetcher(
            connect_timeout_seconds=http.connect_timeout_seconds,
            request_timeout_seconds=http.request_timeout_seconds,
        )
        pipeline = settings.pipeline
        runner = PipelineRunner(
            executor=TaskExecutor(fetcher, filter_text=pipeline.filter_text),
            template=pipeline.template,
            max_concurrency=pipeline.max_concurrency,
            retry_policy=pipeline.retry_policy,
            formatter=FORMATTERS[pipeline.output_format],
            report_writer=report_writer if settings.reporting.enabled else None,
            report_interval_seconds=settings.reporting.interval_ms / 1000,
            queue_size=pipeline.queue_size,
        )
        logger.info(
            "Starting pipeline template=%s jobs=%d retry=%s",
            pipeline.template,
            pipeline.max_concurrency,
            pipeline.retry_policy.describe(),
        )
        try:
            with _signal_handlers(runner, control_signals=settings.control_signals):
                return runner.run(reader, writer)
        finally:
            if self._fetcher is None and isinstance(fetcher, HttpFetcher):
                fetcher.close()


def resolve_settings(command: FetchRunCommand) -> Settings:
    """Environment settings with the command's explicit values applied on top."""

    settings = Settings.from_env()
    pipeline = settings.pipeline
    if command.template is not None:
        pipeline = replace(pipeline, template=command.template)
    if command.jobs is not None:
        pipeline = replace(pipeline, max_concurrency=command.jobs)
    if command.retry_policy is not None:
        pipeline = replace(pipeline, retry_policy=RetryPolicy.parse(command.retry_policy))
    if command.filter_text is not None:
        pipeline = replace(pipeline, filter_text=unescape(command.filter_text))
    if command.output_format is not None:
        pipeline = replace(pipeline, output_format=OutputFormat(command.output_format))

    http = settings.http
    if command.connect_timeout_seconds is not None:
        http = replace(http, connect_timeout_seconds=command.connect_timeout_seconds)
    if command.request_timeout_seconds is not None:
        http = replace(http, request_timeout_seconds=command.request_timeout_seconds)

    reporting = settings.reporting
    if command.report is not None:
        reporting = replace(reporting, enabled=command.report)
    if command.report_interval_ms is not None:
        reporting = replace(reporting, interval_ms=command.report_interval_ms)

    return replace(
        settings,
        pipeline=pipeline,
        http=http,
        reporting=reporting,
        print_pid=settings.print_pid if command.print_pid is None else command.print_pid,
        control_signals=(
            settings.control_signals if command.control_signals is None else command.control_signals
        ),
    )


@contextmanager
def _signal_handlers(runner: PipelineRunner, *, control_signals: bool) -> Iterator[None]:
    handlers = {
        signal.SIGINT: lambda _signum, _frame: runner.request_stop(),
        signal.SIGTERM: lambda _signum, _frame: runner.request_stop(),
    }
    if control_signals and hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = lambda _signum, _frame: runner.send_control(HalveCapacity())
        handlers[signal.SIGUSR2] = lambda _signum, _frame: runner.send_control(IncreaseCapacity())

    originals: dict[signal.Signals, object] = {}
    try:
        for signum, handler in handlers.items():
            originals[signum] = signal.getsignal(signum)
            signal.signal(signum, handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        originals.clear()
    try:
        yield
    finally:
        for signum, original in originals.items():
            signal.signal(signum, original)  # type: ignore[arg-type]
