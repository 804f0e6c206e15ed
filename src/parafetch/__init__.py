"""Bounded-concurrency line-oriented fetch pipeline."""

__version__ = "0.1.0"
