"""Top-level coordinator owning one pipeline run."""

from __future__ import annotations

import logging
import threading
from typing import TextIO

from parafetch.pipeline.channel import Channel
from parafetch.pipeline.control import ControlChannel, ControlCommand
from parafetch.pipeline.dispatcher import Dispatcher
from parafetch.pipeline.executor import DEFAULT_FILTER_TEXT, TaskExecutor
from parafetch.pipeline.factory import DEFAULT_TEMPLATE, TaskFactory, validate_template
from parafetch.pipeline.limiter import ConcurrencyLimiter
from parafetch.pipeline.models import PipelineCounters, PipelineRunSummary, Result, Submission
from parafetch.pipeline.reporter import Reporter
from parafetch.pipeline.retry import RetryPolicy
from parafetch.pipeline.shutdown import ShutdownCoordinator
from parafetch.pipeline.sink import ResultFormatter, ResultSink, format_json
from parafetch.pipeline.source import SourceReader

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_QUEUE_SIZE = 64


class PipelineRunner:
    """Wires source, dispatcher, sink, reporter and control into one run.

    data flow: reader -> SourceReader -> inbox -> Dispatcher -> outbox ->
    ResultSink -> writer
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        executor: TaskExecutor,
        template: str = DEFAULT_TEMPLATE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retry_policy: RetryPolicy | None = None,
        formatter: ResultFormatter = format_json,
        report_writer: TextIO | None = None,
        report_interval_seconds: float = 1.0,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        validate_template(template)
        if report_writer is not None and report_interval_seconds <= 0:
            raise ValueError("report_interval_seconds must be > 0")
        self.executor = executor
        self.factory = TaskFactory(template)
        self.limiter = ConcurrencyLimiter(max_concurrency)
        self.retry_policy = retry_policy or RetryPolicy.none()
        self.formatter = formatter
        self.counters = PipelineCounters()
        self.report_writer = report_writer
        self.report_interval_seconds = report_interval_seconds
        self.queue_size = queue_size
        self.stop_event = threading.Event()
        self.control = ControlChannel(self.limiter)
        self._coordinator: ShutdownCoordinator | None = None
        self._reporter: Reporter | None = None

    def request_stop(self) -> None:
        """Stop reading input and end retries; in-flight requests still finish."""

        if self.stop_event.is_set():
            return
        logger.warning("Stop requested; draining in-flight work")
        self.stop_event.set()
        reporter = self._reporter
        if reporter is not None:
            reporter.cancel()
        coordinator = self._coordinator
        if coordinator is not None:
            # The source thread may be blocked on a read that never returns.
            threading.Thread(
                target=coordinator.source_exhausted,
                daemon=True,
                name="stop-drain",
            ).start()

    def send_control(self, command: ControlCommand) -> None:
        self.control.send(command)

    def run(self, reader: TextIO, writer: TextIO) -> PipelineRunSummary:
        """Run the pipeline until ``reader`` is exhausted and every result is written."""

        coordinator = ShutdownCoordinator(
            inbox=Channel[Submission](self.queue_size, name="identifier channel"),
            outbox=Channel[Result](name="result channel"),
            stop_event=self.stop_event,
        )
        source = SourceReader(reader, coordinator)
        source.prime()

        sink = ResultSink(
            outbox=coordinator.outbox,
            writer=writer,
            counters=self.counters,
            formatter=self.formatter,
        )
        dispatcher = Dispatcher(
            coordinator=coordinator,
            limiter=self.limiter,
            factory=self.factory,
            executor=self.executor,
            retry_policy=self.retry_policy,
            counters=self.counters,
        )
        reporter = None
        if self.report_writer is not None:
            reporter = Reporter(
                limiter=self.limiter,
                counters=self.counters,
                writer=self.report_writer,
            )

        self._coordinator = coordinator
        self.control.start()
        sink.start()
        if reporter is not None:
            reporter.start(self.report_interval_seconds)
            self._reporter = reporter
            if self.stop_event.is_set():
                reporter.cancel()
        try:
            source.start()
            dispatcher.run()
            sink.wait()
        finally:
            if reporter is not None:
                reporter.stop()
            self.control.close()
            self._coordinator = None
            self._reporter = None

        if sink.error is not None:
            raise sink.error

        completed, retried, failed = self.counters.read()
        summary = PipelineRunSummary(
            read=source.read_count,
            completed=completed,
            retried=retried,
            failed=failed,
            stopped=self.stop_event.is_set(),
        )
        logger.info(
            "Pipeline finished: read=%d completed=%d retried=%d failed=%d",
            summary.read,
            summary.completed,
            summary.retried,
            summary.failed,
        )
        return summary
