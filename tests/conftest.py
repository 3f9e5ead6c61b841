"""
Pytest configuration and fixtures for funnel_bot tests.

This module provides reusable test fixtures including:
- Mock Playwright page and locator factories
- Screen signal builders for classifier tests
- Fast interactor/config instances (no settle delays)
- Integration test fixtures (browser manager)

Playwright objects are replaced by MagicMock with AsyncMock for the
methods that are coroutines in the async API (page.locator() is sync,
locator.click() is async, and so on).
"""
from __future__ import annotations

import os
from unittest.mock import AsyncMock, MagicMock

import pytest


# =============================================================================
# PLAYWRIGHT DOUBLES
# =============================================================================

def make_locator(
    count: int = 1,
    visible: bool = True,
    enabled: bool = True,
    checked: bool = False,
    evaluate_result=True,
) -> MagicMock:
    """
    Build a mock Locator.

    ``first`` and ``nth()`` return the locator itself, so a single mock
    stands for a whole match set.
    """
    locator = MagicMock()
    locator.count = AsyncMock(return_value=count)
    locator.is_visible = AsyncMock(return_value=visible)
    locator.is_enabled = AsyncMock(return_value=enabled)
    locator.is_checked = AsyncMock(return_value=checked)
    locator.click = AsyncMock()
    locator.check = AsyncMock()
    locator.fill = AsyncMock()
    locator.press_sequentially = AsyncMock()
    locator.scroll_into_view_if_needed = AsyncMock()
    locator.get_attribute = AsyncMock(return_value=None)
    locator.evaluate = AsyncMock(return_value=evaluate_result)
    locator.first = locator
    locator.nth.return_value = locator
    locator.filter.return_value = locator
    locator.locator.return_value = locator
    return locator


def make_page(
    url: str = "https://quiz.example.com/step",
    content: str = "<html><body><p>Question</p></body></html>",
    locator: MagicMock | None = None,
    evaluate_result=None,
) -> MagicMock:
    """
    Build a mock Page whose locator()/get_by_text() return ``locator``.

    ``page.content`` is an AsyncMock; change its return_value (or
    side_effect) to simulate a changing document.
    """
    page = MagicMock()
    page.url = url
    page.is_closed.return_value = False
    page.content = AsyncMock(return_value=content)
    page.evaluate = AsyncMock(return_value=evaluate_result)
    page.goto = AsyncMock()
    page.close = AsyncMock()
    page.screenshot = AsyncMock(return_value=b"\x89PNG fake")
    page.wait_for_timeout = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_url = AsyncMock()
    page.keyboard = MagicMock()
    page.keyboard.press = AsyncMock()

    default_locator = locator if locator is not None else make_locator(count=0, visible=False)
    page.locator.return_value = default_locator
    page.get_by_text.return_value = default_locator
    return page


@pytest.fixture
def locator_factory():
    """Factory for mock Locators."""
    return make_locator


@pytest.fixture
def page_factory():
    """Factory for mock Pages."""
    return make_page


@pytest.fixture
def empty_page() -> MagicMock:
    """A page where no selector matches anything."""
    return make_page()


# =============================================================================
# DOMAIN FIXTURES
# =============================================================================

@pytest.fixture
def signals_factory():
    """Build ScreenSignals with sensible empty defaults."""
    from src.funnel_bot.models.screen import ScreenSignals

    def _create(**overrides) -> ScreenSignals:
        return ScreenSignals(**overrides)

    return _create


@pytest.fixture
def fast_interactor():
    """PageInteractor with every delay disabled."""
    from src.funnel_bot.browser.interactor import PageInteractor
    return PageInteractor(human_like=False, settle=False)


@pytest.fixture
def run_config():
    """RunConfig with all waits set to zero."""
    from src.funnel_bot.models.run_config import RunConfig
    return RunConfig(
        step_settle_ms=0,
        transition_settle_ms=0,
        transition_timeout_ms=0,
        rescue_wait_ms=0,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every FUNNEL_*, BROWSER_* and SCREENSHOT_* variable for the test."""
    for key in list(os.environ):
        if key.startswith(("FUNNEL_", "BROWSER_", "SCREENSHOT_")):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


# =============================================================================
# INTEGRATION TEST FIXTURES
# =============================================================================

@pytest.fixture
def headless_browser_manager():
    """Create a headless BrowserManager for tests."""
    from src.funnel_bot.browser.launcher import BrowserManager
    return BrowserManager(headless=True, screenshot_on_error=False)


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires browser + mock server)"
    )
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end test (requires network access)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration and e2e tests unless explicitly requested."""
    marker_option = config.getoption("-m", default="")

    run_integration = (
        "integration" in marker_option or
        os.environ.get("RUN_INTEGRATION_TESTS", "").lower() == "true"
    )
    run_e2e = (
        "e2e" in marker_option or
        os.environ.get("RUN_E2E_TESTS", "").lower() == "true"
    )

    skip_integration = pytest.mark.skip(
        reason="Integration tests skipped by default. Use -m integration or set RUN_INTEGRATION_TESTS=true"
    )
    skip_e2e = pytest.mark.skip(
        reason="E2E tests skipped by default. Use -m e2e or set RUN_E2E_TESTS=true"
    )

    for item in items:
        if "integration" in item.keywords and not run_integration:
            item.add_marker(skip_integration)
        if "e2e" in item.keywords and not run_e2e:
            item.add_marker(skip_e2e)
