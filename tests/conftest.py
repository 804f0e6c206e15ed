"""Shared test fixtures."""

from __future__ import annotations

import pytest

from fakes import FakeFetcher


@pytest.fixture()
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()
