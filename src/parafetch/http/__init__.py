"""HTTP transport used to execute pipeline tasks."""

from parafetch.http.fetcher import FetchFailure, Fetcher, FetchResult, HttpFetcher

__all__ = [
    "FetchFailure",
    "FetchResult",
    "Fetcher",
    "HttpFetcher",
]
