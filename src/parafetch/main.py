"""CLI entrypoint for parafetch."""

from __future__ import annotations

import logging
import sys

import rich_click as click

from parafetch import __version__
from parafetch.controllers import FetchCliController, FetchRunCommand
from parafetch.pipeline.source import SourceReadError

click.rich_click.USE_MARKDOWN = True
FETCH_CONTROLLER = FetchCliController()

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="parafetch")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Diagnostics level written to stderr.",
)
def parafetch(log_level: str) -> None:
    """Fetch one URL per input identifier with bounded concurrency.

    Identifiers are read from **stdin**, one per line; results are written to
    **stdout** as one record per line, in completion order.
    """

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@parafetch.command("run")
@click.option(
    "-t",
    "--template",
    default=None,
    help="URL template with exactly one `%s`, for example https://example.com/%s.json.",
)
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Max number of parallel requests. [default: 3]",
)
@click.option(
    "--retry",
    "retry_policy",
    default=None,
    help="Retry policy: none, bounded[:N], indefinite[:SECONDS] or requeue[:SECONDS[:N]].",
)
@click.option(
    "-f",
    "--filter",
    "filter_text",
    default=None,
    help=r"Response body that means 'rate limited' (supports \n escapes).",
)
@click.option("-r", "--report/--no-report", default=None, help="Write progress lines to stderr.")
@click.option(
    "-i",
    "--report-interval",
    "report_interval_ms",
    type=click.IntRange(min=1),
    default=None,
    help="Report interval in milliseconds. [default: 1000]",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default=None,
    help="Record format. [default: json]",
)
@click.option("--connect-timeout", type=click.FloatRange(min=0, min_open=True), default=None)
@click.option("--request-timeout", type=click.FloatRange(min=0, min_open=True), default=None)
@click.option("-p", "--print-pid/--no-print-pid", default=None, help="Print pid at startup.")
@click.option(
    "--control-signals/--no-control-signals",
    default=None,
    help="SIGUSR1 halves the concurrency limit, SIGUSR2 raises it by 10.",
)
def run(  # noqa: PLR0913
    template: str | None,
    jobs: int | None,
    retry_policy: str | None,
    filter_text: str | None,
    report: bool | None,
    report_interval_ms: int | None,
    output_format: str | None,
    connect_timeout: float | None,
    request_timeout: float | None,
    print_pid: bool | None,
    control_signals: bool | None,
) -> None:
    """Read identifiers from stdin and write fetched results to stdout."""

    command = FetchRunCommand(
        template=template,
        jobs=jobs,
        retry_policy=retry_policy,
        filter_text=filter_text,
        report=report,
        report_interval_ms=report_interval_ms,
        output_format=output_format,
        connect_timeout_seconds=connect_timeout,
        request_timeout_seconds=request_timeout,
        print_pid=print_pid,
        control_signals=control_signals,
    )
    try:
        summary = FETCH_CONTROLLER.run(
            command,
            reader=sys.stdin,
            writer=sys.stdout,
            report_writer=sys.stderr,
        )
    except (SourceReadError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    except OSError as error:
        raise click.ClickException(f"Output failed: {error}") from error
    if summary.stopped:
        raise SystemExit(130)


if __name__ == "__main__":  # pragma: no cover
    parafetch()
