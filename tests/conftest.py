# conftest.py
import logging

import pytest

from dbexplorer.provider import InMemorySchemaProvider


# Custom test markers
def pytest_configure(config):
    """Configure custom markers."""
    markers = [
        "sql: marks tests that need a SQLAlchemy engine",
        "cli: marks command line tests",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


@pytest.fixture(autouse=True)
def explorer_logs(caplog):
    """Capture explorer logs at debug level for assertions."""
    caplog.set_level(logging.DEBUG, logger="Explorer")
    yield caplog


@pytest.fixture
def provider():
    """Provide a fresh in-memory provider."""
    return InMemorySchemaProvider()
