"""Shared pytest fixtures for the graphlog test suite.

Provides environment isolation, transport options and graph store doubles
used across all test modules.
"""

import logging
import os
from typing import Any

import pytest

from graphlog.common.config import get_config
from graphlog.common.tracing import clear_correlation_id
from tests.utils.mocks import RecordingStore, create_mock_async_driver, create_mock_graph_store

# ========== Test Environment Setup ==========


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Strip GRAPHLOG_* variables so settings only see what a test sets."""
    for key in list(os.environ):
        if key.startswith("GRAPHLOG_"):
            monkeypatch.delenv(key, raising=False)
    get_config.cache_clear()
    clear_correlation_id()

    yield

    get_config.cache_clear()
    clear_correlation_id()


@pytest.fixture(autouse=True)
def reset_library_logger():
    """Undo setup_logging() changes to the graphlog logger between tests."""
    yield
    library_logger = logging.getLogger("graphlog")
    library_logger.handlers.clear()
    library_logger.propagate = True
    library_logger.setLevel(logging.NOTSET)


# ========== Configuration Fixtures ==========


@pytest.fixture
def transport_options() -> dict[str, Any]:
    """Minimal valid transport options.

    Returns:
        dict[str, Any]: Options accepted by Neo4jTransport.
    """
    return {
        "endpoint": "bolt://test-graph:7687",
        "username": "neo4j",
        "password": "test-password",
    }


# ========== Mock Service Fixtures ==========


@pytest.fixture
def mock_graph_store(mocker: Any) -> Any:
    """Mock graph store whose create() succeeds.

    Args:
        mocker: pytest-mock fixture.
    """
    return create_mock_graph_store(mocker)


@pytest.fixture
def mock_async_driver(mocker: Any) -> Any:
    """Mock neo4j AsyncDriver."""
    return create_mock_async_driver(mocker)


@pytest.fixture
def recording_store() -> RecordingStore:
    """In-memory graph store that validates and keeps created nodes."""
    return RecordingStore()


# ========== Pytest Configuration ==========


def pytest_configure(config: Any) -> None:
    """Configure pytest markers.

    Args:
        config: pytest config object.
    """
    config.addinivalue_line(
        "markers",
        "unit: Fast unit tests with mocked dependencies (no Neo4j required)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Integration tests requiring a reachable Neo4j server",
    )
