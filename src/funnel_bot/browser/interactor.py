from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import TYPE_CHECKING, Optional, Sequence

from .strategies import (
    ElementTraits,
    Strategy,
    StrategyStatus,
    find_clickable_ancestor,
    run_strategies,
)
from ..utils.errors import SessionClosedError, is_session_closed_error


if TYPE_CHECKING:
    from playwright.async_api import Page, Locator


__all__ = ["PageInteractor", "CTA_CONTROL_SELECTOR"]

logger = logging.getLogger(__name__)


DEFAULT_CLICK_TIMEOUT = 3000
DEFAULT_TYPE_DELAY = 50
DEFAULT_ACTION_DELAY = (100, 300)
SCROLL_SETTLE_MS = 500
OPTION_ANCESTOR_DEPTH = 5

# Controls that can carry a call-to-action text
CTA_CONTROL_SELECTOR = "button, [role='button'], a, input[type='submit']"

NATIVE_VALUE_SETTER_SCRIPT = """
(el, value) => {
    const proto = el instanceof HTMLTextAreaElement
        ? HTMLTextAreaElement.prototype
        : HTMLInputElement.prototype;
    const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
    if (descriptor && descriptor.set) {
        descriptor.set.call(el, value);
    } else {
        el.value = value;
    }
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return el.value === String(value);
}
"""

DISPATCH_INPUT_EVENTS_SCRIPT = """
(el) => {
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    el.dispatchEvent(new Event('blur', { bubbles: true }));
    return true;
}
"""

DIRECT_CLICK_SCRIPT = """
(el) => {
    if (el instanceof HTMLElement) {
        el.click();
        return true;
    }
    return false;
}
"""

SYNTHETIC_CLICK_SCRIPT = """
(el) => el.dispatchEvent(new MouseEvent('click', { bubbles: true, cancelable: true }))
"""

ANCESTOR_TRAITS_SCRIPT = """
(el, maxDepth) => {
    const traits = [];
    let current = el.parentElement;
    for (let depth = 0; current && depth < maxDepth; depth += 1) {
        const role = current.getAttribute('role');
        traits.push({
            tag: current.tagName,
            hasPointerStyle: window.getComputedStyle(current).cursor === 'pointer',
            hasClickHandler: typeof current.onclick === 'function' || current.hasAttribute('onclick'),
            isLabelRole: current.tagName === 'LABEL'
                || role === 'option' || role === 'checkbox' || role === 'radio',
        });
        current = current.parentElement;
    }
    return traits;
}
"""

CLICK_ANCESTOR_SCRIPT = """
(el, args) => {
    let target = el.parentElement;
    for (let depth = 0; target && depth < args.depth; depth += 1) {
        target = target.parentElement;
    }
    if (!target) return false;
    if (args.synthetic) {
        target.dispatchEvent(new MouseEvent('click', { bubbles: true, cancelable: true }));
    } else {
        target.click();
    }
    return true;
}
"""


class PageInteractor:
    """
    Resilient interaction primitives for unknown funnel markup.

    Every primitive swallows ordinary Playwright failures and reports
    success as a boolean (or the matched text), so callers can chain
    fallbacks. Session-closed failures are raised as SessionClosedError.

    Attributes:
        click_timeout: Timeout for a single click attempt in ms.
        type_delay: Delay between keystrokes in ms.
        action_delay: (min, max) pause in ms after clicks.
        human_like: Jitter pauses and keystroke timing.
        settle: Whether to honour settle pauses (scroll, popup close).
    """

    def __init__(
        self,
        click_timeout: int = DEFAULT_CLICK_TIMEOUT,
        type_delay: int = DEFAULT_TYPE_DELAY,
        action_delay: tuple[int, int] = DEFAULT_ACTION_DELAY,
        human_like: bool = True,
        settle: bool = True,
    ) -> None:
        self.click_timeout = click_timeout
        self.type_delay = type_delay
        self.action_delay = action_delay
        self.human_like = human_like
        self.settle = settle

    async def _jitter(self, low: Optional[int] = None, high: Optional[int] = None) -> None:
        if self.human_like:
            span = (low or self.action_delay[0], high or self.action_delay[1])
            await asyncio.sleep(random.randint(*span) / 1000)

    async def pause(self, ms: int) -> None:
        """Settle pause after an action that changes the page."""
        if self.settle and ms > 0:
            await asyncio.sleep(ms / 1000)

    def _keystroke_delay(self) -> int:
        return max(10, self.type_delay + random.randint(-20, 40)) if self.human_like else 0

    # =========================================================================
    # STATE PROBES
    # =========================================================================

    async def is_visible(self, locator: Locator) -> bool:
        """Visibility check that never raises for ordinary failures."""
        try:
            return bool(await locator.is_visible())
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            return False

    async def exists(self, locator: Locator) -> bool:
        try:
            return await locator.count() > 0
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            return False

    async def first_visible(self, locator: Locator) -> Optional[Locator]:
        """Return ``locator.first`` if it exists and is visible."""
        first = locator.first
        if not await self.exists(first):
            return None
        if not await self.is_visible(first):
            return None
        return first

    # =========================================================================
    # RESILIENT CLICK
    # =========================================================================

    async def click_locator(self, locator: Locator) -> bool:
        """
        Click with escalation: normal, forced, then in-page click().

        Args:
            locator: Element to click.

        Returns:
            True if any of the three attempts went through.
        """
        async def normal() -> bool:
            await locator.scroll_into_view_if_needed(timeout=self.click_timeout)
            await self.pause(SCROLL_SETTLE_MS)
            await locator.click(timeout=self.click_timeout)
            return True

        async def forced() -> bool:
            await locator.click(timeout=self.click_timeout, force=True)
            return True

        async def script() -> bool:
            return bool(await locator.evaluate(DIRECT_CLICK_SCRIPT))

        await self._jitter()
        result = await run_strategies([
            Strategy("click", normal),
            Strategy("force_click", forced),
            Strategy("script_click", script),
        ])
        if result.succeeded:
            logger.debug(f"Click succeeded via {result.winner}")
        else:
            logger.warning(f"Click failed: {result.describe()}")
        return result.succeeded

    async def click_by_text(self, page: Page, texts: Sequence[str]) -> Optional[str]:
        """
        Click the first visible CTA control whose text matches.

        Searches button, [role=button], a and submit inputs only.

        Returns:
            The matched text pattern, or None.
        """
        for text in texts:
            control = page.locator(CTA_CONTROL_SELECTOR).filter(
                has_text=re.compile(text, re.IGNORECASE)
            )
            target = await self.first_visible(control)
            if target is None:
                continue
            if await self.click_locator(target):
                logger.info(f"Clicked CTA matching '{text}'")
                return text
        return None

    async def click_any_by_text(self, page: Page, texts: Sequence[str]) -> Optional[str]:
        """Click any visible element whose text matches, whatever its tag."""
        for text in texts:
            target = await self.first_visible(page.get_by_text(re.compile(text, re.IGNORECASE)))
            if target is None:
                continue
            if await self.click_locator(target):
                logger.info(f"Clicked element with loose text '{text}'")
                return text
        return None

    async def click_first_visible(self, page: Page, selectors: Sequence[str]) -> Optional[str]:
        """Click the first visible match of the first selector that has one."""
        for selector in selectors:
            target = await self.first_visible(page.locator(selector))
            if target is None:
                continue
            if await self.click_locator(target):
                logger.info(f"Clicked first visible '{selector}'")
                return selector
        return None

    async def find_cta(self, page: Page, texts: Sequence[str]) -> Optional[Locator]:
        """Locate, without clicking, the first visible CTA matching texts."""
        for text in texts:
            control = page.locator(CTA_CONTROL_SELECTOR).filter(
                has_text=re.compile(text, re.IGNORECASE)
            )
            target = await self.first_visible(control)
            if target is not None:
                return target
        return None

    async def is_enabled(self, locator: Locator) -> bool:
        try:
            return bool(await locator.is_enabled())
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            return False

    # =========================================================================
    # RESILIENT FILL
    # =========================================================================

    async def fill_locator(self, locator: Locator, value: str) -> bool:
        """
        Type a value the way reactive front-ends accept it.

        Focuses, clears and types per character, then forces the value
        through the native setter and fires input/change so frameworks
        that ignore programmatic assignment still see the change.

        Returns:
            True if either typing or the native setter succeeded.
        """
        typed = False
        try:
            await locator.scroll_into_view_if_needed(timeout=self.click_timeout)
            await locator.click(timeout=self.click_timeout)
            await locator.fill("", timeout=self.click_timeout)
            await locator.press_sequentially(value, delay=self._keystroke_delay())
            typed = True
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            logger.debug(f"Keystroke fill failed, relying on native setter: {e}")

        forced = False
        try:
            forced = bool(await locator.evaluate(NATIVE_VALUE_SETTER_SCRIPT, value))
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            logger.debug(f"Native value setter failed: {e}")

        if not (typed or forced):
            logger.warning(f"Could not fill value '{value}'")
        return typed or forced

    async def dispatch_input_events(self, locator: Locator) -> bool:
        """Fire input/change/blur on a field to wake up framework validation."""
        try:
            return bool(await locator.evaluate(DISPATCH_INPUT_EVENTS_SCRIPT))
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            return False

    async def press_key(self, page: Page, key: str) -> bool:
        """
        Press a keyboard key.

        Args:
            page: Playwright Page object.
            key: Key to press (e.g., 'Enter', 'Tab', 'Escape').

        Returns:
            True if successful.
        """
        try:
            await self._jitter(50, 100)
            await page.keyboard.press(key)
            logger.debug(f"Pressed key: {key}")
            return True
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            logger.warning(f"Key press failed: {e}")
            return False

    # =========================================================================
    # OPTION ACTIVATION
    # =========================================================================

    async def ancestor_traits(self, locator: Locator, max_depth: int) -> list[ElementTraits]:
        raw = await locator.evaluate(ANCESTOR_TRAITS_SCRIPT, max_depth)
        return [ElementTraits.from_dict(item) for item in raw or []]

    async def click_clickable_ancestor(
        self,
        locator: Locator,
        max_depth: int = OPTION_ANCESTOR_DEPTH,
        *,
        synthetic: bool = False,
    ) -> bool:
        """
        Click the nearest ancestor that has pointer styling, a click
        handler, or a label/option role.

        Args:
            locator: The control whose ancestors are inspected.
            max_depth: Levels to walk up.
            synthetic: Dispatch a MouseEvent instead of calling click().

        Returns:
            True if an ancestor was found and clicked.
        """
        depth = find_clickable_ancestor(await self.ancestor_traits(locator, max_depth), max_depth)
        if depth is None:
            return False
        return bool(await locator.evaluate(
            CLICK_ANCESTOR_SCRIPT, {"depth": depth, "synthetic": synthetic}
        ))

    async def dispatch_synthetic_click(self, locator: Locator) -> bool:
        return bool(await locator.evaluate(SYNTHETIC_CLICK_SCRIPT))

    async def activate_choice(self, page: Page, locator: Locator) -> Optional[str]:
        """
        Select a radio/checkbox-like control.

        Tries, in order: native check on the control, its <label for>,
        the nearest clickable ancestor, then a direct in-page click.

        Returns:
            Name of the strategy that worked, or None.
        """
        async def native() -> StrategyStatus:
            if not await self.is_visible(locator):
                return StrategyStatus.SOFT_FAILURE
            await locator.check(timeout=self.click_timeout)
            return StrategyStatus.SUCCESS

        async def label() -> bool:
            control_id = await locator.get_attribute("id")
            if not control_id or '"' in control_id:
                return False
            target = await self.first_visible(page.locator(f'label[for="{control_id}"]'))
            return target is not None and await self.click_locator(target)

        async def ancestor() -> bool:
            return await self.click_clickable_ancestor(locator, OPTION_ANCESTOR_DEPTH)

        async def direct() -> bool:
            return bool(await locator.evaluate(DIRECT_CLICK_SCRIPT))

        await self._jitter()
        result = await run_strategies(
            [
                Strategy("native_check", native),
                Strategy("label_click", label),
                Strategy("ancestor_click", ancestor),
                Strategy("direct_click", direct),
            ],
            page=page,
        )
        if not result.succeeded:
            logger.warning(f"Could not activate option: {result.describe()}")
        return result.winner
