import os

import pytest

# Keep the health check subprocess and loggers quiet and deterministic
os.environ.setdefault("DEBUG", "false")

from hanna_irc.logging_config import error_aggregator  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_error_aggregator():
    """Start every test with an empty error summary."""
    error_aggregator.reset()
    yield
    error_aggregator.reset()
