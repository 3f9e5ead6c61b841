"""
Playwright session for one funnel run.

BrowserManager opens a phone-sized page (quiz funnels are designed for
mobile first) and tears the whole session down again on exit. When the
session dies with an exception a full-page capture of the last screen is
written next to the run results.

Environment knobs (constructor arguments win over these):
- BROWSER_HEADLESS: true/false (default: true)
- BROWSER_ENGINE: chromium or webkit (default: chromium)
- BROWSER_DEVICE: Playwright device descriptor (default: iPhone 13)
- BROWSER_SLOW_MO: delay per action in ms (default: 200 headful, 0 headless)
- BROWSER_TIMEOUT: default locator timeout in ms (default: 20000)
- SCREENSHOT_ON_ERROR: capture the page when a run crashes (default: true)

    >>> async with BrowserManager(headless=True) as page:
    ...     await navigate_with_retry(page, "https://quiz.example.com")
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from ..utils.errors import NavigationError


if TYPE_CHECKING:
    from types import TracebackType
    from ..utils.step_logger import StepLogger


__all__ = ["BrowserManager", "navigate_with_retry"]

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 20000
DEFAULT_RETRY_TIMEOUT = 25000
DEFAULT_DEVICE = "iPhone 13"
HEADFUL_SLOW_MO = 200
SUPPORTED_ENGINES = ("chromium", "webkit")
DEFAULT_CRASH_DIR = Path("results") / "_crashes"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

CHROMIUM_FLAGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]

# Some funnels refuse to render for navigator.webdriver == true
HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"


def _flag(explicit: Optional[bool], env_var: str, fallback: bool) -> bool:
    if explicit is not None:
        return explicit
    raw = os.environ.get(env_var, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return fallback


def _millis(explicit: Optional[int], env_var: str, fallback: int) -> int:
    if explicit is not None:
        return explicit
    raw = os.environ.get(env_var, "").strip()
    return int(raw) if raw.isdigit() else fallback


class BrowserManager:
    """
    ``async with`` wrapper yielding a single emulated-device Page.

    Attributes:
        headless: Run without a visible window.
        engine: ``chromium`` or ``webkit``.
        device: Playwright device descriptor name.
        slow_mo: Delay Playwright inserts before each action, in ms.
        screenshot_on_error: Capture the page when the session crashes.
        timeout: Default locator and action timeout, in ms.
        crash_dir: Where crash captures go.
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        safari: bool = False,
        device: Optional[str] = None,
        slow_mo: Optional[int] = None,
        screenshot_on_error: Optional[bool] = None,
        timeout: Optional[int] = None,
        crash_dir: Optional[Path] = None,
    ) -> None:
        self.headless = _flag(headless, "BROWSER_HEADLESS", True)

        requested = "webkit" if safari else os.environ.get("BROWSER_ENGINE", "chromium").lower()
        if requested not in SUPPORTED_ENGINES:
            logger.warning(f"Unsupported engine '{requested}', falling back to chromium")
            requested = "chromium"
        self.engine = requested

        self.device = device or os.environ.get("BROWSER_DEVICE", DEFAULT_DEVICE)
        self.slow_mo = _millis(slow_mo, "BROWSER_SLOW_MO", 0 if self.headless else HEADFUL_SLOW_MO)
        self.screenshot_on_error = _flag(screenshot_on_error, "SCREENSHOT_ON_ERROR", True)
        self.timeout = _millis(timeout, "BROWSER_TIMEOUT", DEFAULT_TIMEOUT)
        self.crash_dir = Path(crash_dir) if crash_dir else DEFAULT_CRASH_DIR

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def _launch_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"headless": self.headless, "slow_mo": self.slow_mo}
        if self.engine == "chromium":
            options["args"] = list(CHROMIUM_FLAGS)
        return options

    def _context_options(self) -> dict[str, Any]:
        """Device descriptor minus the keys new_context() does not accept."""
        assert self._playwright is not None
        descriptor = dict(self._playwright.devices.get(self.device) or {})
        if not descriptor:
            logger.warning(f"Unknown device '{self.device}', using desktop defaults")
        descriptor.pop("default_browser_type", None)
        # WebKit rejects is_mobile on some platforms
        if self.engine == "webkit":
            descriptor.pop("is_mobile", None)
        descriptor.setdefault("locale", "en-US")
        return descriptor

    async def __aenter__(self) -> Page:
        logger.info(f"Starting {self.engine} as '{self.device}' (headless={self.headless})")
        try:
            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self.engine)
            self._browser = await launcher.launch(**self._launch_options())
            self._context = await self._browser.new_context(**self._context_options())
            self._context.set_default_timeout(self.timeout)
            self._page = await self._context.new_page()
            await self._page.add_init_script(HIDE_WEBDRIVER)
        except Exception as e:
            logger.error(f"Could not start {self.engine}: {e}")
            await self._teardown()
            raise RuntimeError(f"Browser launch failed: {e}") from e
        return self._page

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> bool:
        if exc_type is not None:
            logger.error(f"Funnel session crashed: {exc_val}")
            if self.screenshot_on_error:
                await self._capture_crash()
        await self._teardown()
        return False

    async def _teardown(self) -> None:
        """Close page, context and browser in that order, then stop Playwright."""
        for attr in ("_page", "_context", "_browser"):
            handle = getattr(self, attr)
            if handle is None:
                continue
            try:
                await handle.close()
            except Exception as e:
                logger.debug(f"Ignoring close failure on {attr.lstrip('_')}: {e}")
            setattr(self, attr, None)

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Ignoring Playwright stop failure: {e}")
            self._playwright = None

    async def _capture_crash(self) -> Optional[Path]:
        page = self._page
        if page is None or page.is_closed():
            return None
        target = self.crash_dir / f"crash_{int(time.time())}.png"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(target), full_page=True)
        except Exception as e:
            logger.warning(f"Crash capture failed: {e}")
            return None
        logger.info(f"Crash capture written to {target}")
        return target


async def navigate_with_retry(
    page: Page,
    url: str,
    timeout: int = DEFAULT_TIMEOUT,
    retry_timeout: int = DEFAULT_RETRY_TIMEOUT,
    step_logger: Optional[StepLogger] = None,
) -> None:
    """
    Load a funnel's first page.

    Tries ``domcontentloaded`` first; on failure retries once waiting for
    ``networkidle`` with a longer timeout.

    Args:
        page: Playwright Page object.
        url: Funnel start URL.
        timeout: First attempt timeout in ms.
        retry_timeout: Second attempt timeout in ms.
        step_logger: Optional run log that receives both attempts.

    Raises:
        NavigationError: If both attempts fail.
    """
    def note(message: str) -> None:
        if step_logger is not None:
            step_logger.event(message)

    logger.info(f"Navigating to: {url}")
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
        note(f"Navigated to {url} (domcontentloaded)")
        return
    except Exception as e:
        logger.warning(f"First navigation attempt failed for {url}: {e}")
        note(f"Navigation failed ({e}); retrying with networkidle")

    try:
        await page.goto(url, wait_until="networkidle", timeout=retry_timeout)
        note(f"Navigated to {url} (networkidle)")
    except Exception as e:
        logger.error(f"Navigation error for {url}: {e}")
        note(f"Navigation retry failed: {e}")
        raise NavigationError(f"Could not load {url}: {e}") from e
