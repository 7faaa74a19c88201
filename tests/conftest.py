"""
Shared pytest fixtures and configuration for safeop tests.

This module provides:
- structlog / contextvars reset between tests
- Settings cache isolation (SAFEOP_* environment)
- Small resource fakes for scope and retry tests

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    def test_release(tracked_resource):
        ...
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import structlog

# Ensure safeop package is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import safeop.core.settings as settings_module  # noqa: E402
from safeop.core.errors import UnavailableFailure  # noqa: E402


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore structlog defaults and drop bound context after each test."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Drop the cached settings and any SAFEOP_* variables from the host."""
    monkeypatch.setattr(settings_module, "_settings", None)
    for name in list(os.environ):
        if name.startswith("SAFEOP_"):
            monkeypatch.delenv(name)
    yield


# =============================================================================
# Fakes
# =============================================================================


class FlakyOperation:
    """Callable that raises ``failures`` in order, then returns ``result``."""

    def __init__(self, failures, result="ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


@pytest.fixture
def flaky():
    """Factory for FlakyOperation instances."""
    return FlakyOperation


@pytest.fixture
def always_unavailable():
    """Operation that always raises a retryable RESOURCE_UNAVAILABLE failure."""
    op = MagicMock(side_effect=UnavailableFailure("pool exhausted", pool="primary"))
    return op


@pytest.fixture
def tracked_resource():
    """A resource object plus a release mock that records calls."""
    resource = MagicMock(name="resource")
    release = MagicMock(name="release")
    return resource, release
