"""Bounded-concurrency dispatch pipeline.

data flow: source stream -> SourceReader -> identifier channel -> Dispatcher
(ConcurrencyLimiter, TaskFactory, TaskExecutor) -> result channel ->
ResultSink -> sink stream. The Reporter and the ControlChannel run beside it.
"""

from parafetch.pipeline.channel import END_OF_STREAM, Channel, ChannelClosedError
from parafetch.pipeline.control import (
    ControlChannel,
    ControlCommand,
    HalveCapacity,
    IncreaseCapacity,
    SetCapacity,
)
from parafetch.pipeline.dispatcher import Dispatcher
from parafetch.pipeline.executor import Execution, TaskExecutor
from parafetch.pipeline.factory import TaskFactory, TemplateError, validate_template
from parafetch.pipeline.limiter import ConcurrencyLimiter, OutstandingWork
from parafetch.pipeline.models import (
    Outcome,
    PipelineCounters,
    PipelineRunSummary,
    ProgressSnapshot,
    Result,
    Submission,
    Task,
)
from parafetch.pipeline.reporter import Reporter
from parafetch.pipeline.retry import RetryKind, RetryPolicy
from parafetch.pipeline.runner import PipelineRunner
from parafetch.pipeline.shutdown import ShutdownCoordinator
from parafetch.pipeline.sink import OutputFormat, ResultSink, format_json, format_text
from parafetch.pipeline.source import SourceReader, SourceReadError

__all__ = [
    "END_OF_STREAM",
    "Channel",
    "ChannelClosedError",
    "ConcurrencyLimiter",
    "ControlChannel",
    "ControlCommand",
    "Dispatcher",
    "Execution",
    "HalveCapacity",
    "IncreaseCapacity",
    "Outcome",
    "OutputFormat",
    "OutstandingWork",
    "PipelineCounters",
    "PipelineRunSummary",
    "PipelineRunner",
    "ProgressSnapshot",
    "Reporter",
    "Result",
    "ResultSink",
    "RetryKind",
    "RetryPolicy",
    "SetCapacity",
    "ShutdownCoordinator",
    "SourceReadError",
    "SourceReader",
    "Submission",
    "Task",
    "TaskExecutor",
    "TaskFactory",
    "TemplateError",
    "format_json",
    "format_text",
    "validate_template",
]
