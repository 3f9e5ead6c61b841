"""
Test suite for BrowserManager configuration and navigation retry.

No browser is launched here; see test_integration.py for that.

Run with: pytest tests/test_launcher.py -v
"""
from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.funnel_bot.browser.launcher import BrowserManager, navigate_with_retry
from src.funnel_bot.utils.errors import NavigationError


class TestBrowserManagerConfig:
    """Test parameter > environment > default resolution."""

    def test_defaults(self, clean_env):
        manager = BrowserManager()

        assert manager.headless is True
        assert manager.engine == "chromium"
        assert manager.device == "iPhone 13"
        assert manager.slow_mo == 0
        assert manager.timeout == 20000

    def test_headful_slows_down(self, clean_env):
        assert BrowserManager(headless=False).slow_mo == 200

    def test_env_values(self, clean_env):
        clean_env.setenv("BROWSER_HEADLESS", "false")
        clean_env.setenv("BROWSER_ENGINE", "webkit")
        clean_env.setenv("BROWSER_DEVICE", "Pixel 5")
        clean_env.setenv("BROWSER_TIMEOUT", "5000")

        manager = BrowserManager()

        assert manager.headless is False
        assert manager.engine == "webkit"
        assert manager.device == "Pixel 5"
        assert manager.timeout == 5000

    def test_parameter_beats_env(self, clean_env):
        clean_env.setenv("BROWSER_HEADLESS", "false")
        assert BrowserManager(headless=True).headless is True

    def test_safari_flag(self, clean_env):
        assert BrowserManager(safari=True).engine == "webkit"

    def test_unknown_engine_falls_back(self, clean_env):
        clean_env.setenv("BROWSER_ENGINE", "firefox-nightly")
        assert BrowserManager().engine == "chromium"

    def test_crash_dir_default(self, clean_env):
        assert BrowserManager().crash_dir == Path("results") / "_crashes"


class TestNavigateWithRetry:
    """Test the lenient second navigation attempt."""

    @pytest.mark.asyncio
    async def test_first_attempt(self, page_factory):
        page = page_factory()

        await navigate_with_retry(page, "https://a.io", timeout=1000, retry_timeout=2000)

        page.goto.assert_awaited_once_with("https://a.io", wait_until="domcontentloaded", timeout=1000)

    @pytest.mark.asyncio
    async def test_retry_with_networkidle(self, page_factory):
        page = page_factory()
        page.goto = AsyncMock(side_effect=[Exception("Timeout 1000ms exceeded"), None])

        await navigate_with_retry(page, "https://a.io", timeout=1000, retry_timeout=2000)

        page.goto.assert_awaited_with("https://a.io", wait_until="networkidle", timeout=2000)

    @pytest.mark.asyncio
    async def test_both_fail(self, page_factory):
        page = page_factory()
        page.goto = AsyncMock(side_effect=Exception("net::ERR_CONNECTION_REFUSED"))

        with pytest.raises(NavigationError):
            await navigate_with_retry(page, "https://a.io")


class TestSessionExit:
    """Test crash capture and teardown without a real browser."""

    @pytest.mark.asyncio
    async def test_crash_writes_capture(self, clean_env, page_factory, tmp_path):
        manager = BrowserManager(crash_dir=tmp_path / "crashes")
        page = page_factory()
        manager._page = page

        await manager.__aexit__(RuntimeError, RuntimeError("boom"), None)

        page.screenshot.assert_awaited_once()
        target = page.screenshot.await_args.kwargs["path"]
        assert target.startswith(str(tmp_path / "crashes" / "crash_"))
        page.close.assert_awaited_once()
        assert manager._page is None

    @pytest.mark.asyncio
    async def test_clean_exit_skips_capture(self, clean_env, page_factory):
        manager = BrowserManager()
        page = page_factory()
        manager._page = page

        assert await manager.__aexit__(None, None, None) is False
        page.screenshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_teardown_survives_close_errors(self, clean_env):
        manager = BrowserManager()
        browser = MagicMock()
        browser.close = AsyncMock(side_effect=RuntimeError("already closed"))
        playwright = MagicMock()
        playwright.stop = AsyncMock()
        manager._browser = browser
        manager._playwright = playwright

        await manager._teardown()

        playwright.stop.assert_awaited_once()
        assert manager._browser is None
        assert manager._playwright is None
