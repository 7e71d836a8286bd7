"""Root test configuration."""

import logging

import pytest
import structlog
from fakes import FakeCluster

from stagehand.config import Settings


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def settings():
    """Settings with no retry or poll delays."""
    return Settings(
        namespace="test",
        max_attempts=3,
        retry_backoff=0,
        retry_max_delay=0,
        poll_interval=0,
        poll_backoff=1,
        poll_max_interval=0,
        poll_timeout=5,
    )


@pytest.fixture
def cluster():
    return FakeCluster(namespace="test")
