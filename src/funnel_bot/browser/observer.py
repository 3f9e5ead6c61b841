"""
Screen Observer for read-only probes of a funnel page.

This module provides the ScreenObserver class which collects everything
the screen classifier needs in a single in-page pass, plus the cheap
document fingerprint used by the driver loop to detect stagnation.

The observer can:
- Snapshot inputs, options, buttons and cards into ScreenSignals
- Tag pointer-styled option cards so they can be clicked later
- Fingerprint the current document (address + normalized markup)
- Extract price tokens for paywall diagnostics

Example Usage:
    >>> observer = ScreenObserver()
    >>> signals = await observer.collect(page)
    >>> print(f"{signals.radio_count} radios, {signals.option_card_count} cards")
    >>> fingerprint = await page_fingerprint(page)
"""
from __future__ import annotations

import itertools
import logging
import re
import time
from typing import TYPE_CHECKING

from ..models.screen import ScreenSignals
from ..utils.errors import SessionClosedError, is_session_closed_error


if TYPE_CHECKING:
    from playwright.async_api import Page


__all__ = [
    "ScreenObserver",
    "build_fingerprint",
    "extract_prices",
    "page_fingerprint",
    "CARD_ATTRIBUTE",
]

logger = logging.getLogger(__name__)


CARD_ATTRIBUTE = "data-funnel-card"
FINGERPRINT_PREFIX_LENGTH = 300
CLOSED_PAGE_PREFIX = "CLOSED_PAGE_HASH_"
MAX_VISIBLE_BUTTON_TEXTS = 20

_closed_tokens = itertools.count(1)

# Price tokens reported in the run summary
PRICE_TOKEN_PATTERN = re.compile(r"[$€£]\s?\d+(?:[.,]\d{1,2})?")

# Shared in-page helpers, inlined into every probe script
_PAGE_HELPERS = """
    const isVisible = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    const textOf = (el) => String(el.innerText || el.value || el.textContent || '')
        .replace(/\\s+/g, ' ').trim();
    const descriptorOf = (el) => ['placeholder', 'name', 'id', 'aria-label', 'autocomplete']
        .map((attr) => el.getAttribute(attr) || '').join(' ').toLowerCase();
    const findCards = () => {
        const skip = new Set(['BUTTON', 'A', 'INPUT', 'SELECT', 'LABEL']);
        const seen = new Set();
        const cards = [];
        for (const el of document.querySelectorAll('body *')) {
            if (skip.has(el.tagName)) continue;
            if (window.getComputedStyle(el).cursor !== 'pointer') continue;
            const text = textOf(el);
            if (text.length < 1 || text.length >= 60 || seen.has(text)) continue;
            const rect = el.getBoundingClientRect();
            if (rect.width < 40 || rect.height < 30) continue;
            seen.add(text);
            cards.push(el);
        }
        return cards;
    };
"""

SIGNALS_SCRIPT = ("""
() => {
""" + _PAGE_HELPERS + """
    const inputs = Array.from(document.querySelectorAll('input, textarea, select')).filter(isVisible);
    const typeOf = (el) => (el.getAttribute('type') || '').toLowerCase();
    const plainInputs = inputs.filter((el) => el.tagName === 'INPUT');

    const emailTyped = plainInputs.filter((el) => typeOf(el) === 'email');
    const emailLike = plainInputs.filter((el) => /e-?mail/.test(descriptorOf(el)));
    const textInputs = plainInputs.filter((el) => ['', 'text', 'number'].includes(typeOf(el)));
    const profileHints = plainInputs.filter((el) =>
        /(height|weight|age|name|cm|kg|lbs)/.test((el.getAttribute('placeholder') || '').toLowerCase()));

    const controls = Array.from(document.querySelectorAll(
        "button, [role='button'], a, input[type='submit']"));
    const visibleButtons = Array.from(document.querySelectorAll("button, [role='button']"))
        .filter(isVisible);

    return {
        bodyText: document.body ? textOf(document.body) : '',
        controlTexts: controls.map(textOf).filter((text) => text.length > 0),
        visibleButtonTexts: visibleButtons.slice(0, %d).map(textOf),
        emailTypedCount: emailTyped.length,
        emailLikeCount: emailLike.length,
        textInputCount: textInputs.length,
        profileHintCount: profileHints.length,
        radioCount: document.querySelectorAll("input[type='radio'], [role='radio']").length,
        checkboxCount: document.querySelectorAll("input[type='checkbox'], [role='checkbox']").length,
        optionCardCount: findCards().length,
        anyInputCount: inputs.length,
        visibleButtonCount: visibleButtons.length,
    };
}
""" % MAX_VISIBLE_BUTTON_TEXTS)

TAG_CARDS_SCRIPT = """
(attribute) => {
""" + _PAGE_HELPERS + """
    document.querySelectorAll('[' + attribute + ']').forEach((el) => el.removeAttribute(attribute));
    const cards = findCards();
    cards.forEach((el, index) => el.setAttribute(attribute, String(index)));
    return cards.map(textOf);
}
"""

BODY_TEXT_SCRIPT = """
() => document.body ? String(document.body.innerText || '').replace(/\\s+/g, ' ').trim() : ''
"""


def _closed_token() -> str:
    return f"{CLOSED_PAGE_PREFIX}{time.time_ns()}_{next(_closed_tokens)}"


def build_fingerprint(url: str, html: str) -> str:
    """
    Cheap equality key over address and markup.

    Example:
        >>> build_fingerprint("https://a.io/q1", "<p>  hi </p>")
        'https://a.io/q1|11:<p> hi </p>'
    """
    normalized = re.sub(r"\s+", " ", html).strip()
    return f"{url}|{len(normalized)}:{normalized[:FINGERPRINT_PREFIX_LENGTH]}"


async def page_fingerprint(page: Page) -> str:
    """
    Fingerprint the current document.

    A page that can no longer be read yields a unique token, so a
    closed session never looks like a stalled one.
    """
    try:
        if page.is_closed():
            return _closed_token()
        return build_fingerprint(page.url, await page.content())
    except Exception as e:
        logger.debug(f"Could not fingerprint page: {e}")
        return _closed_token()


def extract_prices(text: str) -> list[str]:
    """Distinct price tokens in order of appearance."""
    prices: list[str] = []
    for match in PRICE_TOKEN_PATTERN.findall(text or ""):
        token = re.sub(r"\s+", "", match)
        if token not in prices:
            prices.append(token)
    return prices


class ScreenObserver:
    """
    Collects read-only screen signals from a Playwright page.

    One in-page script gathers all counts and texts; the markup comes
    from ``page.content()``. Nothing here clicks or types.
    """

    async def collect(self, page: Page) -> ScreenSignals:
        """
        Snapshot the page into ScreenSignals.

        Args:
            page: Playwright Page object.

        Returns:
            ScreenSignals for the current document state.

        Raises:
            SessionClosedError: If the page is gone.
        """
        try:
            raw = await page.evaluate(SIGNALS_SCRIPT) or {}
            content = (await page.content()).lower()
        except Exception as e:
            if is_session_closed_error(e, page):
                raise SessionClosedError(str(e)) from e
            raise

        signals = ScreenSignals(
            url=page.url,
            content=content,
            body_text=raw.get("bodyText", ""),
            control_texts=raw.get("controlTexts", []),
            visible_button_texts=raw.get("visibleButtonTexts", []),
            email_typed_count=raw.get("emailTypedCount", 0),
            email_like_count=raw.get("emailLikeCount", 0),
            text_input_count=raw.get("textInputCount", 0),
            profile_hint_count=raw.get("profileHintCount", 0),
            radio_count=raw.get("radioCount", 0),
            checkbox_count=raw.get("checkboxCount", 0),
            option_card_count=raw.get("optionCardCount", 0),
            any_input_count=raw.get("anyInputCount", 0),
            visible_button_count=raw.get("visibleButtonCount", 0),
        )
        logger.debug(
            f"Signals: inputs={signals.any_input_count} radios={signals.radio_count} "
            f"checkboxes={signals.checkbox_count} buttons={signals.visible_button_count} "
            f"cards={signals.option_card_count}"
        )
        return signals

    async def tag_option_cards(self, page: Page) -> list[str]:
        """
        Mark option cards with CARD_ATTRIBUTE and return their texts.

        The attribute value is the card's index, so card ``i`` can be
        located with ``[data-funnel-card="i"]``.
        """
        texts = await page.evaluate(TAG_CARDS_SCRIPT, CARD_ATTRIBUTE)
        return list(texts or [])

    async def get_body_text(self, page: Page) -> str:
        try:
            return await page.evaluate(BODY_TEXT_SCRIPT) or ""
        except Exception as e:
            if is_session_closed_error(e, page):
                raise SessionClosedError(str(e)) from e
            logger.debug(f"Could not read body text: {e}")
            return ""
