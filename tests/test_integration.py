"""
Integration tests for the funnel runner.

These tests drive a real browser against the mock funnel server:
1. Browser launch with mobile emulation
2. Screen classification of every funnel page
3. Popup dismissal
4. A full run from the first question to the paywall

Run with:
    pytest tests/test_integration.py -v -m integration

    # Run with visible browser (for debugging)
    BROWSER_HEADLESS=false pytest tests/test_integration.py -v -m integration

Requirements:
    - Flask (for mock server)
    - Playwright browsers installed (playwright install chromium)
"""
from __future__ import annotations

import json

import pytest

from src.funnel_bot.agents.classifier import ScreenClassifier
from src.funnel_bot.agents.runner import FunnelRunner, StopReason
from src.funnel_bot.browser.launcher import BrowserManager
from src.funnel_bot.browser.popups import PopupCloser
from src.funnel_bot.main import FunnelBot
from src.funnel_bot.models.run_config import RunConfig
from src.funnel_bot.models.screen import ScreenType
from tests.mock_server import run_server_in_thread, stop_server


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(scope="module")
def mock_server_url():
    """Start the mock funnel server for testing."""
    url = run_server_in_thread(host="127.0.0.1", port=5556)
    yield url
    stop_server()


@pytest.fixture
def quick_config():
    """Short settle times so a full run takes seconds."""
    return RunConfig(
        max_steps=12,
        step_settle_ms=300,
        transition_settle_ms=500,
        transition_timeout_ms=3000,
        rescue_wait_ms=300,
    )


# =============================================================================
# INTEGRATION TESTS
# =============================================================================

@pytest.mark.integration
@pytest.mark.asyncio
async def test_browser_manager_launches(mock_server_url, headless_browser_manager):
    """BrowserManager opens an emulated mobile page."""
    async with headless_browser_manager as page:
        await page.goto(f"{mock_server_url}/quiz")
        title = await page.title()
        width = await page.evaluate("() => window.innerWidth")

        assert "Quiz" in title
        assert width < 500


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("path,expected", [
    ("/quiz", ScreenType.QUESTION),
    ("/quiz/height", ScreenType.INPUT),
    ("/quiz/info", ScreenType.INFO),
    ("/quiz/email", ScreenType.EMAIL),
    ("/quiz/plan", ScreenType.PAYWALL),
    ("/dead-end", ScreenType.OTHER),
])
async def test_classifier_on_funnel_pages(mock_server_url, path, expected):
    """Each mock page is classified as its archetype (past step 1)."""
    async with BrowserManager(headless=True, screenshot_on_error=False) as page:
        await page.goto(f"{mock_server_url}{path}")
        result = await ScreenClassifier().classify(page, step=5)

        assert result.archetype == expected, str(result)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_paywall_page_on_first_step_is_not_paywall(mock_server_url):
    async with BrowserManager(headless=True, screenshot_on_error=False) as page:
        await page.goto(f"{mock_server_url}/quiz/plan")
        result = await ScreenClassifier().classify(page, step=1)

        assert result.archetype == ScreenType.OTHER


@pytest.mark.integration
@pytest.mark.asyncio
async def test_popup_closer_dismisses_cookie_banner(mock_server_url):
    async with BrowserManager(headless=True, screenshot_on_error=False) as page:
        await page.goto(f"{mock_server_url}/quiz")

        trace = await PopupCloser(settle_ms=100).close(page)

        assert trace[0] == "popup: clicked consent 'accept all'"
        assert await page.locator("#cookies").count() == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_funnel_reaches_paywall(mock_server_url, quick_config, tmp_path):
    """Question, input, info and email screens lead to the paywall."""
    async with BrowserManager(headless=True, screenshot_on_error=False) as page:
        runner = FunnelRunner(config=quick_config, results_dir=tmp_path)
        summary = await runner.run(page, f"{mock_server_url}/quiz")

    assert summary.reached_paywall is True
    assert summary.stop_reason == StopReason.PAYWALL_REACHED
    assert summary.detected_types == ["question", "input", "info", "email", "paywall"]
    assert summary.prices == ["$29.99", "$9.99"]

    funnel_dir = tmp_path / "127-0-0-1-quiz"
    assert (funnel_dir / "01_question.png").exists()
    assert (funnel_dir / "05_paywall.png").exists()
    saved = json.loads((funnel_dir / "summary.json").read_text(encoding="utf-8"))
    assert saved["reachedPaywall"] is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_dead_end_stops_with_no_action(mock_server_url, quick_config, tmp_path):
    async with BrowserManager(headless=True, screenshot_on_error=False) as page:
        runner = FunnelRunner(config=quick_config, results_dir=tmp_path)
        summary = await runner.run(page, f"{mock_server_url}/dead-end")

    assert summary.reached_paywall is False
    assert summary.stop_reason == StopReason.NO_ACTION
    assert summary.total_steps == quick_config.no_action_limit


@pytest.mark.integration
@pytest.mark.asyncio
async def test_funnel_bot_batch(mock_server_url, quick_config, tmp_path):
    """The batch runner writes one aggregate summary for all funnels."""
    bot = FunnelBot(
        config=quick_config,
        results_dir=tmp_path,
        headless=True,
        verbose=False,
    )

    runs, aggregate = await bot.run([f"{mock_server_url}/quiz", f"{mock_server_url}/dead-end"])

    assert [run.reached_paywall for run in runs] == [True, False]
    assert aggregate.total_funnels == 2
    assert aggregate.funnels_reached_paywall == 1
    assert (tmp_path / "summary.json").exists()
