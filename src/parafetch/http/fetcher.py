"""HTTP client with connect and overall request timeouts."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 3.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 6.0
DEFAULT_USER_AGENT = "parafetch/1.0 (+https://github.com/parafetch/parafetch)"


class FetchFailure(str, Enum):
    """Where a failed fetch broke down."""

    TRANSPORT = "transport"
    BODY_READ = "body_read"


@dataclass(slots=True)
class FetchResult:
    """Result of an HTTP fetch operation."""

    url: str
    status_code: int
    content: str
    failure: FetchFailure | None = None
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.failure is None


class Fetcher(Protocol):
    """Protocol implemented by task transports."""

    def fetch(self, url: str) -> FetchResult:
        """Fetch ``url`` and report failures in the returned result."""


class HttpFetcher:
    """Thread-safe ``httpx`` wrapper shared by all pipeline workers.

    The overall request timeout is a wall-clock deadline for the whole
    exchange, so a slow-dripping body cannot hold a limiter slot forever.
    """

    def __init__(
        self,
        *,
        connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: dict[str, str] | None = None,
        max_connections: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._request_timeout = request_timeout_seconds
        self._timeout = httpx.Timeout(request_timeout_seconds, connect=connect_timeout_seconds)
        base_headers = {"User-Agent": user_agent}
        if headers:
            base_headers.update(headers)
        limits = httpx.Limits(max_connections=max_connections)
        self._client = httpx.Client(
            timeout=self._timeout,
            headers=base_headers,
            transport=transport or httpx.HTTPTransport(limits=limits),
            follow_redirects=True,
            trust_env=True,
        )

    def fetch(self, url: str) -> FetchResult:
        """Fetch URL content, returning structured result."""

        deadline = time.monotonic() + self._request_timeout
        try:
            with self._client.stream("GET", url) as response:
                try:
                    body = _read_body(response, deadline)
                except (httpx.HTTPError, TimeoutError) as exc:
                    logger.debug("Body read failed for %s: %s", url, exc)
                    return FetchResult(
                        url=url,
                        status_code=response.status_code,
                        content="",
                        failure=FetchFailure.BODY_READ,
                        error=str(exc) or type(exc).__name__,
                    )
                return FetchResult(
                    url=url,
                    status_code=response.status_code,
                    content=body,
                )
        except httpx.TimeoutException as exc:
            logger.debug("Timeout fetching %s", url)
            return FetchResult(
                url=url,
                status_code=0,
                content="",
                failure=FetchFailure.TRANSPORT,
                error=f"timeout: {exc}" if str(exc) else "timeout",
            )
        except httpx.HTTPError as exc:
            logger.debug("HTTP error fetching %s: %s", url, exc)
            return FetchResult(
                url=url,
                status_code=0,
                content="",
                failure=FetchFailure.TRANSPORT,
                error=str(exc) or type(exc).__name__,
            )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _read_body(response: httpx.Response, deadline: float) -> str:
    chunks: list[bytes] = []
    for chunk in response.iter_bytes():
        chunks.append(chunk)
        if time.monotonic() > deadline:
            raise TimeoutError("request deadline exceeded while reading body")
    body = b"".join(chunks)
    try:
        return body.decode(response.encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
