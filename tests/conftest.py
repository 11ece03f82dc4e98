"""
Shared fixtures for stylesnap tests.

Browser interaction is exercised against the fakes in
``tests.helpers.fake_browser``; no Chromium is launched.
"""

# Standard library imports
from typing import Callable

# Third-party imports
import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

# Local imports
from stylesnap.config import Config

from tests.helpers.fake_browser import FakeLease, FakePage

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fast_config() -> Config:
    """Default configuration with every pause and backoff removed."""
    config = Config()
    config.navigation.backoff_step = 0
    config.stability.settle_delay = 0
    config.authentication.field_pause = 0
    config.authentication.keystroke_delay_ms = 0
    config.extraction.context_retry_delay = 0
    config.screenshot.retry_delay = 0
    return config


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def fake_lease() -> FakeLease:
    return FakeLease()


@pytest.fixture
def playwright_timeout() -> Callable[..., PlaywrightTimeoutError]:
    return lambda message="Timeout 30000ms exceeded.": PlaywrightTimeoutError(message)


@pytest.fixture
def playwright_error() -> Callable[[str], PlaywrightError]:
    return lambda message: PlaywrightError(message)
