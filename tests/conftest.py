"""
Shared test configuration.
"""

import pytest

from nexus_gateway.cli import configure_logging


@pytest.fixture(autouse=True, scope="session")
def stderr_logging():
    """Route structlog to stderr so stdout stays clean for CLI output."""
    configure_logging("DEBUG")
