"""Shared fixtures."""

from collections.abc import Generator

import pytest
import structlog

from src.assembler.metrics import FeedMetrics
from src.ranker.metrics import RankerMetrics


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None]:
    """Reset metrics singletons and logging config around each test."""
    FeedMetrics.reset()
    RankerMetrics.reset()
    yield
    FeedMetrics.reset()
    RankerMetrics.reset()
    structlog.reset_defaults()
