"""Runtime configuration for the fetch pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from parafetch.http.fetcher import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
)
from parafetch.pipeline.executor import DEFAULT_FILTER_TEXT
from parafetch.pipeline.factory import DEFAULT_TEMPLATE, validate_template
from parafetch.pipeline.retry import RetryPolicy
from parafetch.pipeline.runner import DEFAULT_MAX_CONCURRENCY, DEFAULT_QUEUE_SIZE
from parafetch.pipeline.sink import OutputFormat


@dataclass(slots=True)
class HttpSettings:
    """Transport timeouts."""

    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS


@dataclass(slots=True)
class ReportingSettings:
    """Live progress reporting settings."""

    enabled: bool = False
    interval_ms: int = 1_000


@dataclass(slots=True)
class PipelineSettings:
    """Settings consumed by the pipeline core."""

    template: str = DEFAULT_TEMPLATE
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    filter_text: str = DEFAULT_FILTER_TEXT
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy.none)
    output_format: OutputFormat = OutputFormat.JSON
    queue_size: int = DEFAULT_QUEUE_SIZE


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)
    print_pid: bool = False
    control_signals: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from ``PARAFETCH_*`` environment variables."""

        return cls(
            pipeline=PipelineSettings(
                template=os.getenv("PARAFETCH_TEMPLATE", DEFAULT_TEMPLATE),
                max_concurrency=_env_int("PARAFETCH_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
                filter_text=_env_text("PARAFETCH_FILTER", DEFAULT_FILTER_TEXT),
                retry_policy=RetryPolicy.parse(os.getenv("PARAFETCH_RETRY_POLICY", "none")),
                output_format=_env_output_format("PARAFETCH_OUTPUT_FORMAT"),
                queue_size=_env_int("PARAFETCH_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            ),
            http=HttpSettings(
                connect_timeout_seconds=_env_float(
                    "PARAFETCH_CONNECT_TIMEOUT_SECONDS",
                    DEFAULT_CONNECT_TIMEOUT_SECONDS,
                ),
                request_timeout_seconds=_env_float(
                    "PARAFETCH_REQUEST_TIMEOUT_SECONDS",
                    DEFAULT_REQUEST_TIMEOUT_SECONDS,
                ),
            ),
            reporting=ReportingSettings(
                enabled=_env_bool("PARAFETCH_REPORT", default=False),
                interval_ms=_env_int("PARAFETCH_REPORT_INTERVAL_MS", 1_000),
            ),
            print_pid=_env_bool("PARAFETCH_PRINT_PID", default=False),
            control_signals=_env_bool("PARAFETCH_CONTROL_SIGNALS", default=False),
        )

    def validate(self) -> None:
        """Raise ``ValueError`` for settings the pipeline cannot start with."""

        validate_template(self.pipeline.template)
        if self.pipeline.max_concurrency <= 0:
            raise ValueError("PARAFETCH_MAX_CONCURRENCY must be a positive integer.")
        if self.pipeline.queue_size < 0:
            raise ValueError("PARAFETCH_QUEUE_SIZE must be >= 0.")
        if self.reporting.interval_ms <= 0:
            raise ValueError("PARAFETCH_REPORT_INTERVAL_MS must be a positive integer.")
        if self.http.connect_timeout_seconds <= 0:
            raise ValueError("PARAFETCH_CONNECT_TIMEOUT_SECONDS must be > 0.")
        if self.http.request_timeout_seconds <= 0:
            raise ValueError("PARAFETCH_REQUEST_TIMEOUT_SECONDS must be > 0.")


def _env_text(name: str, default: str) -> str:
    """Read a string allowing ``\\n``, ``\\t`` and ``\\\\`` escapes."""

    value = os.getenv(name)
    if value is None:
        return default
    return unescape(value)


def unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for char in chars:
        if char != "\\":
            out.append(char)
            continue
        nxt = next(chars, "")
        out.append({"n": "\n", "t": "\t", "r": "\r", "\\": "\\"}.get(nxt, char + nxt))
    return "".join(out)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error


def _env_output_format(name: str) -> OutputFormat:
    value = os.getenv(name)
    if value is None or not value.strip():
        return OutputFormat.JSON
    try:
        return OutputFormat(value.strip().lower())
    except ValueError as error:
        raise ValueError(f"Invalid output format for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
