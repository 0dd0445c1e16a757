"""
Shared pytest fixtures for provisor tests.

- Logging isolation (structlog + stdlib handlers reset after each test)
- A recording sleep so retry tests never consume wall-clock time
- Scripted actions that fail a set number of times before succeeding
"""

import os
import sys
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

# Ensure provisor package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from provisor.core.logging import reset_logging
from provisor.core.settings import get_settings


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_logging() -> Generator[None, None, None]:
    """Undo any configure_logging() a test (or the CLI callback) performed."""
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Fresh settings per test, unaffected by the developer's PROVISOR_* env."""
    for key in list(os.environ):
        if key.startswith("PROVISOR_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Retry helpers
# =============================================================================


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class AsyncRecordingSleep(RecordingSleep):
    """Stand-in for asyncio.sleep that records requested delays."""

    async def __call__(self, seconds: float) -> None:  # type: ignore[override]
        self.calls.append(seconds)


class FlakyAction:
    """Action that raises ``error`` for its first ``failures`` calls, then returns ``value``."""

    def __init__(self, failures: int, error: Exception | None = None, value: Any = "ok") -> None:
        self.failures = failures
        self.error = error or RuntimeError("transient")
        self.value = value
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def async_recording_sleep() -> AsyncRecordingSleep:
    return AsyncRecordingSleep()


@pytest.fixture
def flaky() -> Callable[..., FlakyAction]:
    """Factory: ``flaky(2)`` fails twice then succeeds."""
    return FlakyAction
