"""
Screen Classifier for quiz funnel pages.

This agent labels the current page with one ScreenType archetype plus
a justification. The page is probed once by the ScreenObserver; the
rules below then run on the ScreenSignals snapshot only, so they are
deterministic and testable without a browser.

Rule priority (first match wins):
1. Paywall  - prices + purchase controls, thresholds relax deeper into the funnel
2. Email    - visible email-typed or email-described input
3. Input    - visible text/number input (or profile hints) and no radios/checkboxes
4. Question - radios/checkboxes, option-like buttons, or option cards
5. Input    - body text asking for height/weight/age/name
6. Info     - no inputs or options, one visible button, some body text
7. Other    - nothing matched

Example Usage:
    >>> classifier = ScreenClassifier()
    >>> result = await classifier.classify(page, step=3)
    >>> print(result)  # question: 2+ radio/checkbox controls (4)
"""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Optional, Sequence

from ..browser.observer import ScreenObserver
from ..models.screen import ScreenClassification, ScreenSignals, ScreenType
from ..utils.errors import SessionClosedError


if TYPE_CHECKING:
    from playwright.async_api import Page


__all__ = [
    "ScreenClassifier",
    "classify_signals",
    "count_option_like_buttons",
    "detect_paywall",
    "has_price_and_purchase",
    "option_like_indices",
]

logger = logging.getLogger(__name__)


# Paywall vocabulary
PRICE_PATTERN = re.compile(r"(\$|€|£|usd|eur)\s*\d+", re.IGNORECASE)
PURCHASE_CTA_PATTERN = re.compile(
    r"subscribe|buy now|purchase|continue to payment|start my plan|get my plan|unlock"
    r"|try now|start plan|see your plan|show my plan|get plan|get access"
    r"|start (?:my |your )?(?:free )?trial|claim (?:my |your )?(?:plan|offer|discount)",
    re.IGNORECASE,
)
SUBSCRIPTION_PATTERN = re.compile(
    r"subscription|per\s*month|your plan|unlock your plan|choose your plan|personalized plan"
    r"|show my plan|see your plan|get your plan|premium|trial",
    re.IGNORECASE,
)
BROAD_PURCHASE_CTA_PATTERN = re.compile(
    r"start|subscribe|buy|continue|unlock|get access", re.IGNORECASE
)
COMMERCE_PATTERN = re.compile(
    r"today|limited|offer|save|off|discount|trial|month|week|year|billed|payment|checkout|access",
    re.IGNORECASE,
)

# Staged paywall thresholds
BROAD_PAYWALL_MIN_STEP = 10
OFFER_PAYWALL_MIN_STEP = 15
PRICELESS_PAYWALL_MIN_STEP = 20

# Buttons that are never quiz answers
NAVIGATION_BUTTON_PATTERN = re.compile(
    r"^(accept|reject|allow|agree|cookie|close|skip|settings?|einstellung|datenschutz"
    r"|terms|privacy|ablehnen|akzeptieren|adjust|back|continue|next)",
    re.IGNORECASE,
)
MAX_OPTION_TEXT_LENGTH = 40

LANGUAGE_NAMES = {
    "english", "espanol", "español", "deutsch", "francais", "français",
    "italiano", "portuguese", "português", "polski", "nederlands",
    "turkce", "tuerkce", "turkish", "ukrainian", "русский", "russian",
}
LANGUAGE_SWITCHER_MIN = 4

PROFILE_QUESTION_PATTERN = re.compile(
    r"(your height|your weight|your age|how old|how tall|what.*height|what.*weight"
    r"|enter your name|your name)",
    re.IGNORECASE,
)

MIN_INFO_TEXT_LENGTH = 20


def _count_matches(pattern: re.Pattern, texts: Sequence[str]) -> int:
    return sum(1 for text in texts if pattern.search(text or ""))


def detect_paywall(signals: ScreenSignals, step: int) -> Optional[str]:
    """
    Evaluate the staged paywall thresholds.

    Args:
        signals: Screen snapshot.
        step: 1-based step number.

    Returns:
        Justification if the screen looks like a paywall, else None.
    """
    text = signals.body_text or signals.content
    prices = len(PRICE_PATTERN.findall(text))
    purchase = _count_matches(PURCHASE_CTA_PATTERN, signals.control_texts)
    subscription = bool(SUBSCRIPTION_PATTERN.search(text))

    if purchase >= 1 and (prices >= 2 or (prices >= 1 and subscription)):
        return f"{prices} price(s) with {purchase} purchase control(s)"

    if (
        step >= BROAD_PAYWALL_MIN_STEP
        and prices >= 1
        and purchase >= 1
        and BROAD_PURCHASE_CTA_PATTERN.search(text)
    ):
        return f"step {step}: price with {purchase} purchase control(s) and commerce wording"

    if step >= OFFER_PAYWALL_MIN_STEP and prices >= 1 and COMMERCE_PATTERN.search(text):
        return f"step {step}: price with offer wording"

    if step >= PRICELESS_PAYWALL_MIN_STEP and purchase >= 1 and subscription:
        return f"step {step}: purchase control with subscription wording"

    return None


def has_price_and_purchase(signals: ScreenSignals) -> bool:
    """Weakest paywall evidence: one price and one purchase control."""
    text = signals.body_text or signals.content
    return bool(PRICE_PATTERN.search(text)) and _count_matches(
        PURCHASE_CTA_PATTERN, signals.control_texts
    ) >= 1


def option_like_indices(texts: Sequence[str]) -> list[int]:
    """
    Indices of button texts that look like quiz answers.

    Navigation/consent buttons never count. Language names are dropped
    only when there are enough of them to be a language switcher.
    """
    indices = [
        index for index, text in enumerate(texts)
        if text and 0 < len(text.strip()) <= MAX_OPTION_TEXT_LENGTH
        and not NAVIGATION_BUTTON_PATTERN.search(text.strip())
    ]
    languages = [i for i in indices if texts[i].strip().lower() in LANGUAGE_NAMES]
    if len(languages) >= LANGUAGE_SWITCHER_MIN:
        indices = [i for i in indices if i not in languages]
    return indices


def count_option_like_buttons(texts: Sequence[str]) -> int:
    return len(option_like_indices(texts))


def classify_signals(signals: ScreenSignals, step: int) -> ScreenClassification:
    """
    Apply the rule chain to a screen snapshot.

    Args:
        signals: Screen snapshot.
        step: 1-based step number.

    Returns:
        ScreenClassification; OTHER when nothing matched.
    """
    if step <= 1:
        if has_price_and_purchase(signals):
            return ScreenClassification(
                archetype=ScreenType.OTHER,
                justification="paywall signals ignored on first screen",
            )
    else:
        paywall_reason = detect_paywall(signals, step)
        if paywall_reason:
            return ScreenClassification(archetype=ScreenType.PAYWALL, justification=paywall_reason)

    if signals.email_typed_count >= 1:
        return ScreenClassification(
            archetype=ScreenType.EMAIL,
            justification=f"{signals.email_typed_count} visible email input(s)",
        )
    if signals.email_like_count >= 1:
        return ScreenClassification(
            archetype=ScreenType.EMAIL,
            justification=f"{signals.email_like_count} input(s) described as email",
        )

    options = signals.option_control_count
    if (signals.text_input_count >= 1 or signals.profile_hint_count >= 1) and options == 0:
        return ScreenClassification(
            archetype=ScreenType.INPUT,
            justification=(
                f"{signals.text_input_count} text/number input(s), "
                f"{signals.profile_hint_count} profile hint(s)"
            ),
        )

    if options >= 2:
        return ScreenClassification(
            archetype=ScreenType.QUESTION,
            justification=f"2+ radio/checkbox controls ({options})",
        )

    option_buttons = count_option_like_buttons(signals.visible_button_texts)
    if option_buttons >= 2:
        return ScreenClassification(
            archetype=ScreenType.QUESTION,
            justification=f"{option_buttons} option-like buttons",
        )

    if signals.option_card_count >= 2:
        return ScreenClassification(
            archetype=ScreenType.QUESTION,
            justification=f"{signals.option_card_count} option cards",
        )

    if PROFILE_QUESTION_PATTERN.search(signals.body_text):
        return ScreenClassification(
            archetype=ScreenType.INPUT,
            justification="body text asks for profile data",
        )

    if (
        signals.any_input_count == 0
        and options == 0
        and signals.visible_button_count == 1
        and len(signals.body_text) > MIN_INFO_TEXT_LENGTH
    ):
        return ScreenClassification(
            archetype=ScreenType.INFO,
            justification="text with a single call-to-action",
        )

    return ScreenClassification(archetype=ScreenType.OTHER, justification="no rule matched")


class ScreenClassifier:
    """
    Classifies the live page into a ScreenType.

    Attributes:
        observer: Probe used to snapshot the page.
    """

    def __init__(self, observer: Optional[ScreenObserver] = None) -> None:
        self.observer = observer or ScreenObserver()

    async def classify(self, page: Page, step: int) -> ScreenClassification:
        """
        Classify the current document.

        A failed probe yields OTHER rather than an error; only a closed
        session propagates.

        Args:
            page: Playwright Page object.
            step: 1-based step number.

        Returns:
            ScreenClassification for this step.

        Raises:
            SessionClosedError: If the page is gone.
        """
        try:
            signals = await self.observer.collect(page)
        except SessionClosedError:
            raise
        except Exception as e:
            logger.warning(f"Screen probe failed at step {step}: {e}")
            return ScreenClassification(
                archetype=ScreenType.OTHER,
                justification=f"probe failed: {str(e)[:120]}",
            )

        result = classify_signals(signals, step)
        logger.info(f"Step {step} classified as {result}")
        return result
