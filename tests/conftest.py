"""Shared test fixtures for the tubesig test suite."""

from __future__ import annotations

import sys
from typing import Iterator

import pytest
import respx
import structlog
from helpers import FakeClock


@pytest.fixture(autouse=True)
def _structlog_to_stderr() -> Iterator[None]:
    """Keep stdout for command output; log lines go to stderr."""
    structlog.reset_defaults()
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(file=sys.stderr))
    yield
    structlog.reset_defaults()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router
