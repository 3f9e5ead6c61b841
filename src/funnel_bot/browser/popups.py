from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional


if TYPE_CHECKING:
    from playwright.async_api import Page, Locator


__all__ = ["PopupCloser"]

logger = logging.getLogger(__name__)


POPUP_SETTLE_MS = 500
POPUP_CLICK_TIMEOUT = 2000

# Whole-text consent phrases, never bare words like "ok" that quiz answers use
CONSENT_PHRASES = [
    "accept all cookies",
    "accept all",
    "allow all",
    "alle akzeptieren",
    "got it",
    "continue without accepting",
    "continue without",
    "alle ablehnen",
    "i agree",
    "i accept",
]

# Known consent-framework buttons
CONSENT_SELECTORS = [
    "#onetrust-accept-btn-handler",
    ".cc-btn.cc-allow",
    "[data-testid*='cookie-accept']",
    ".cookie-banner button",
    ".consent-banner button",
    "#truste-consent-button",
    ".truste_overlay button",
]

# Generic close icons
CLOSE_SELECTORS = [
    '[aria-label="close"]',
    "[aria-label='Close']",
    '[aria-label="Close dialog"]',
    "[data-testid*='close']",
    ".modal-close",
    ".popup-close",
]

PHRASE_CONTROL_SELECTOR = "button, [role='button'], a"


class PopupCloser:
    """
    Best-effort dismissal of cookie/consent overlays.

    Runs three stages: whole-phrase consent buttons, known consent
    framework selectors, then generic close icons. Each stage clicks
    at most one element. Nothing here raises; a page without popups is
    the normal case.
    """

    def __init__(self, settle_ms: int = POPUP_SETTLE_MS) -> None:
        self.settle_ms = settle_ms

    async def close(self, page: Page) -> list[str]:
        """
        Dismiss whatever overlay can be found.

        Args:
            page: Playwright Page object.

        Returns:
            Trace lines, one per dismissed element.
        """
        trace: list[str] = []

        for phrase in CONSENT_PHRASES:
            pattern = re.compile(rf"^\s*{re.escape(phrase)}\s*$", re.IGNORECASE)
            locator = page.locator(PHRASE_CONTROL_SELECTOR).filter(has_text=pattern)
            if await self._click_if_visible(page, locator.first):
                trace.append(f"popup: clicked consent '{phrase}'")
                break

        selector = await self._click_first(page, CONSENT_SELECTORS)
        if selector:
            trace.append(f"popup: clicked consent selector {selector}")

        selector = await self._click_first(page, CLOSE_SELECTORS)
        if selector:
            trace.append(f"popup: clicked close {selector}")

        return trace

    async def _click_first(self, page: Page, selectors: list[str]) -> Optional[str]:
        for selector in selectors:
            if await self._click_if_visible(page, page.locator(selector).first):
                return selector
        return None

    async def _click_if_visible(self, page: Page, locator: Locator) -> bool:
        try:
            if not await locator.is_visible():
                return False
            await locator.click(timeout=POPUP_CLICK_TIMEOUT)
            logger.debug("Dismissed popup element")
            await page.wait_for_timeout(self.settle_ms)
            return True
        except Exception as e:
            # Vanished popup or detached page
            logger.debug(f"Popup dismissal skipped: {e}")
            return False
