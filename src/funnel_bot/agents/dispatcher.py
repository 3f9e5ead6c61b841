"""
Action Dispatcher for classified funnel screens.

Given the archetype of the current screen, the dispatcher runs the
matching procedure and reports an ActionOutcome: whether anything
meaningful was done, and an ordered trace of what was tried.

Procedures:
- question: pick an option (radio/checkbox, else buttons, else cards),
  then a strict CTA click, else press Enter
- input: fill every visible text/number field by hint, then CTA
  (re-firing input events once if the CTA is disabled)
- email: fill the email field, submit until the page changes, tick
  consent checkboxes, then CTA
- info: CTA, else any visible button
- other: CTA, loose text, option button, option card, structural selectors
- paywall: nothing, the driver stops there

Example Usage:
    >>> dispatcher = ActionDispatcher(inputs=InputDefaults())
    >>> outcome = await dispatcher.dispatch(page, ScreenType.QUESTION)
    >>> print(outcome.performed, outcome.trace)
"""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from .classifier import option_like_indices
from .selection import OptionSelector, RotationCursor
from ..browser.interactor import PageInteractor
from ..browser.observer import CARD_ATTRIBUTE, ScreenObserver, page_fingerprint
from ..browser.strategies import Strategy, StrategyStatus, run_strategies
from ..models.run_config import InputDefaults
from ..models.screen import ActionOutcome, ScreenType
from ..utils.errors import SessionClosedError, is_session_closed_error


if TYPE_CHECKING:
    from playwright.async_api import Page, Locator


__all__ = ["ActionDispatcher"]

logger = logging.getLogger(__name__)


# =============================================================================
# VOCABULARY
# =============================================================================

# Affirmative, progress-advancing control texts
CTA_TEXTS = [
    "continue", "next", "start", "begin", "get started", "unlock", "let's go",
    "go on", "submit", "see", "get", "show", "claim", "yes",
]

# CTA texts accepted after an option was picked
STRICT_QUESTION_CTA_TEXTS = [
    "continue", "next", "see results", "get plan", "show my plan", "unlock",
    "start", "begin", "get started", "claim", "yes", "submit",
]

EMAIL_SUBMIT_TEXTS = [
    "continue", "next", "see", "start", "submit", "get plan", "unlock",
    "send", "sign up", "register",
]

STRUCTURAL_CTA_SELECTORS = [
    "button[type='submit']",
    "input[type='submit']",
    "button:has-text('>')",
    "[data-testid*='next']",
    "[class*='next']",
]

SUBMIT_CONTROL_SELECTORS = [
    "button[type='submit']",
    "input[type='submit']",
]

GENERIC_BUTTON_SELECTORS = [
    "button:visible",
    "[role='button']:visible",
]

OTHER_FALLBACK_SELECTORS = [
    "button:visible",
    "[role='button']:visible",
    "a[onclick]",
    "div[onclick]",
    "[class*='button' i]",
    "[class*='cta' i]",
]

CHOICE_SELECTOR = "input[type='radio'], input[type='checkbox'], [role='radio'], [role='checkbox']"
OPTION_BUTTON_SELECTOR = "button, [role='button']"
TEXT_FIELD_SELECTOR = "input[type='text'], input[type='number'], input:not([type])"
EMAIL_FIELD_SELECTOR = "input[type='email']"
ANY_FIELD_SELECTOR = "input:not([type='hidden']):not([type='checkbox']):not([type='radio'])"

# Descriptor hints, checked in order
FIELD_HINTS = [
    ("name", re.compile(r"(name|first name|your name)", re.IGNORECASE)),
    ("height", re.compile(r"(height|cm)", re.IGNORECASE)),
    ("weight", re.compile(r"(weight|kg|lbs)", re.IGNORECASE)),
    ("age", re.compile(r"(\bage\b|years old|\byo\b)", re.IGNORECASE)),
]
EMAIL_HINT_PATTERN = re.compile(r"e-?mail", re.IGNORECASE)

MAX_CANDIDATES = 12
MAX_FIELDS = 10
MAX_CONSENT_BOXES = 5
CONSENT_ANCESTOR_DEPTH = 6
ACTION_SETTLE_MS = 800
OPTION_SETTLE_MS = 400

OPTIONS_SCRIPT = """
(selector) => {
    const isVisible = (node) => {
        if (!node) return false;
        const style = window.getComputedStyle(node);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = node.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };
    return Array.from(document.querySelectorAll(selector)).map((el) => {
        const label = (el.labels && el.labels[0]) || el.closest('label');
        const raw = (label ? label.innerText : '')
            || el.getAttribute('aria-label')
            || el.innerText
            || (el.parentElement ? el.parentElement.innerText : '')
            || '';
        return {
            text: String(raw).replace(/\\s+/g, ' ').trim(),
            visible: isVisible(el) || isVisible(label) || isVisible(el.parentElement),
        };
    });
}
"""

DESCRIPTOR_SCRIPT = """
(el) => {
    const label = el.labels && el.labels[0] ? el.labels[0].innerText : '';
    return ['placeholder', 'name', 'id', 'aria-label', 'autocomplete']
        .map((attr) => el.getAttribute(attr) || '')
        .concat([label])
        .join(' ')
        .toLowerCase();
}
"""

FORM_SUBMIT_SCRIPT = """
(el) => {
    const form = el.form || el.closest('form');
    if (!form) return false;
    if (typeof form.requestSubmit === 'function') {
        form.requestSubmit();
    } else {
        form.submit();
    }
    return true;
}
"""


class ActionDispatcher:
    """
    Runs the per-archetype interaction procedure.

    Attributes:
        interactor: Resilient click/fill primitives.
        observer: Used to tag option cards.
        selector: Option selection policy (owns the rotation cursor).
        inputs: Values typed into forms.
        retry_count: Extra CTA attempts after re-firing input events.
    """

    def __init__(
        self,
        interactor: Optional[PageInteractor] = None,
        observer: Optional[ScreenObserver] = None,
        selector: Optional[OptionSelector] = None,
        inputs: Optional[InputDefaults] = None,
        cursor: Optional[RotationCursor] = None,
        retry_count: int = 1,
    ) -> None:
        self.interactor = interactor or PageInteractor()
        self.observer = observer or ScreenObserver()
        self.selector = selector or OptionSelector(cursor)
        self.inputs = inputs or InputDefaults()
        self.retry_count = retry_count

        self._handlers: dict[ScreenType, Callable[[Page, list[str]], Awaitable[bool]]] = {
            ScreenType.QUESTION: self._handle_question,
            ScreenType.INPUT: self._handle_input,
            ScreenType.EMAIL: self._handle_email,
            ScreenType.INFO: self._handle_info,
            ScreenType.OTHER: self._handle_other,
        }

    async def dispatch(self, page: Page, archetype: ScreenType) -> ActionOutcome:
        """
        Act on the current screen.

        Args:
            page: Playwright Page object.
            archetype: Classified screen type.

        Returns:
            ActionOutcome with performed flag and trace.

        Raises:
            SessionClosedError: If the page went away mid-action.
        """
        archetype = ScreenType(archetype)
        if archetype is ScreenType.PAYWALL:
            return ActionOutcome(performed=False, trace=["paywall: no action"])

        trace: list[str] = []
        handler = self._handlers[archetype]
        try:
            performed = await handler(page, trace)
        except SessionClosedError:
            raise
        except Exception as e:
            if is_session_closed_error(e, page):
                raise SessionClosedError(str(e)) from e
            logger.warning(f"{archetype.value} action failed: {e}")
            trace.append(f"{archetype.value}: error {str(e)[:120]}")
            performed = False

        if not performed:
            trace.append(f"{archetype.value}: no action performed")
        logger.info(f"Dispatched {archetype.value}: performed={performed}")
        return ActionOutcome(performed=performed, trace=trace)

    # =========================================================================
    # SHARED PROCEDURES
    # =========================================================================

    async def click_cta(self, page: Page, trace: list[str], texts: list[str] = CTA_TEXTS) -> bool:
        """CTA by control text, then by loose text, then by structure."""
        matched: dict[str, str] = {}

        async def by_control() -> bool:
            matched["value"] = await self.interactor.click_by_text(page, texts) or ""
            return bool(matched["value"])

        async def by_loose_text() -> bool:
            matched["value"] = await self.interactor.click_any_by_text(page, texts) or ""
            return bool(matched["value"])

        async def by_structure() -> bool:
            matched["value"] = await self.interactor.click_first_visible(
                page, STRUCTURAL_CTA_SELECTORS
            ) or ""
            return bool(matched["value"])

        result = await run_strategies(
            [
                Strategy("cta_text", by_control),
                Strategy("cta_loose_text", by_loose_text),
                Strategy("cta_structural", by_structure),
            ],
            page=page,
        )
        if result.succeeded:
            trace.append(f"cta: {result.winner} '{matched['value']}'")
        return result.succeeded

    async def _visible_options(self, page: Page, selector: str) -> list[tuple[int, str]]:
        raw = await page.evaluate(OPTIONS_SCRIPT, selector) or []
        return [
            (index, item.get("text", ""))
            for index, item in enumerate(raw[:MAX_CANDIDATES * 2])
            if item.get("visible")
        ][:MAX_CANDIDATES]

    async def select_choice_option(self, page: Page, trace: list[str]) -> bool:
        """Radio/checkbox (native or ARIA) option."""
        options = await self._visible_options(page, CHOICE_SELECTOR)
        if not options:
            return False

        texts = [text for _, text in options]
        choice = self.selector.choose(texts)
        dom_index = options[choice.index][0]
        control = page.locator(CHOICE_SELECTOR).nth(dom_index)
        winner = await self.interactor.activate_choice(page, control)
        if not winner:
            trace.append(f"question: could not activate {choice.describe(texts)}")
            return False
        trace.append(f"question: selected {choice.describe(texts)} via {winner}")
        return True

    async def select_button_option(self, page: Page, trace: list[str]) -> bool:
        """Short-text buttons that are not navigation or consent controls."""
        options = await self._visible_options(page, OPTION_BUTTON_SELECTOR)
        keep = option_like_indices([text for _, text in options])
        options = [options[i] for i in keep]
        if len(options) < 1:
            return False

        texts = [text for _, text in options]
        choice = self.selector.choose(texts)
        button = page.locator(OPTION_BUTTON_SELECTOR).nth(options[choice.index][0])
        if not await self.interactor.click_locator(button):
            return False
        trace.append(f"question: clicked button {choice.describe(texts)}")
        return True

    async def select_card_option(self, page: Page, trace: list[str]) -> bool:
        """Pointer-styled cards tagged by the observer."""
        texts = await self.observer.tag_option_cards(page)
        if not texts:
            return False

        choice = self.selector.choose(texts)
        card = page.locator(f'[{CARD_ATTRIBUTE}="{choice.index}"]').first
        if not await self.interactor.click_locator(card):
            return False
        trace.append(f"question: clicked card {choice.describe(texts)}")
        return True

    async def select_option(self, page: Page, trace: list[str]) -> bool:
        for attempt in (self.select_choice_option, self.select_button_option, self.select_card_option):
            if await attempt(page, trace):
                await self.interactor.pause(OPTION_SETTLE_MS)
                return True
        return False

    async def _descriptor(self, locator: Locator) -> str:
        return str(await locator.evaluate(DESCRIPTOR_SCRIPT) or "")

    def _value_for(self, descriptor: str, body_text: str, used: set[str], position: int, numeric: bool) -> tuple[str, str]:
        """Pick a value for one field: descriptor hint, body guess, then position."""
        for field_name, pattern in FIELD_HINTS:
            if pattern.search(descriptor):
                return field_name, getattr(self.inputs, field_name)

        for field_name, pattern in FIELD_HINTS:
            if field_name not in used and pattern.search(body_text):
                if not (numeric and field_name == "name"):
                    return field_name, getattr(self.inputs, field_name)

        fallbacks = self.inputs.ordered_fallbacks()
        if numeric:
            fallbacks = [value for value in fallbacks if value.isdigit()] or [self.inputs.age]
        return "fallback", fallbacks[position % len(fallbacks)]

    async def fill_profile_fields(self, page: Page, trace: list[str]) -> list[Locator]:
        """
        Fill every visible text/number field.

        Returns:
            Locators of the fields that were filled.
        """
        fields = page.locator(TEXT_FIELD_SELECTOR)
        count = min(await fields.count(), MAX_FIELDS)
        body_text = ""
        used: set[str] = set()
        filled: list[Locator] = []

        for index in range(count):
            field = fields.nth(index)
            if not await self.interactor.is_visible(field):
                continue
            if not body_text:
                body_text = await self.observer.get_body_text(page)

            descriptor = await self._descriptor(field)
            numeric = (await field.get_attribute("type") or "").lower() == "number"
            field_name, value = self._value_for(descriptor, body_text, used, len(filled), numeric)
            used.add(field_name)

            if await self.interactor.fill_locator(field, value):
                trace.append(f"input: filled {field_name}='{value}'")
                filled.append(field)
            else:
                trace.append(f"input: could not fill field #{index}")

        return filled

    # =========================================================================
    # PER-ARCHETYPE PROCEDURES
    # =========================================================================

    async def _handle_question(self, page: Page, trace: list[str]) -> bool:
        selected = await self.select_option(page, trace)

        clicked = await self.interactor.click_by_text(page, STRICT_QUESTION_CTA_TEXTS)
        if clicked:
            trace.append(f"question: clicked CTA '{clicked}'")
            return True

        # Styled div/span continues
        clicked = await self.interactor.click_any_by_text(page, STRICT_QUESTION_CTA_TEXTS)
        if clicked:
            trace.append(f"question: clicked text '{clicked}'")
            return True

        if await self.interactor.press_key(page, "Enter"):
            trace.append("question: no CTA, pressed Enter")
            return True

        return selected

    async def _handle_input(self, page: Page, trace: list[str]) -> bool:
        filled = await self.fill_profile_fields(page, trace)
        if not filled:
            trace.append("input: no eligible fields, treating as info")
            return await self._handle_info(page, trace)

        cta = await self.interactor.find_cta(page, CTA_TEXTS)
        attempts = 0
        while cta is not None and not await self.interactor.is_enabled(cta) and attempts < self.retry_count:
            attempts += 1
            trace.append("input: CTA disabled, re-firing input events")
            for field in filled:
                await self.interactor.dispatch_input_events(field)
            await self.interactor.pause(ACTION_SETTLE_MS)

        await self.click_cta(page, trace)
        return True

    async def _find_email_field(self, page: Page, trace: list[str]) -> Optional[Locator]:
        email = page.locator(EMAIL_FIELD_SELECTOR).first
        if await self.interactor.exists(email) and await self.interactor.is_visible(email):
            return email

        candidates = page.locator(ANY_FIELD_SELECTOR)
        best: Optional[Locator] = None
        best_score = 0
        for index in range(min(await candidates.count(), MAX_FIELDS)):
            field = candidates.nth(index)
            if not await self.interactor.is_visible(field):
                continue
            descriptor = await self._descriptor(field)
            score = len(EMAIL_HINT_PATTERN.findall(descriptor))
            if score > best_score:
                best, best_score = field, score

        if best is not None:
            trace.append(f"email: using email-like field (score {best_score})")
        return best

    async def submit_email(self, page: Page, field: Locator, trace: list[str]) -> bool:
        """Try submission routes until the document fingerprint changes."""
        before = await page_fingerprint(page)

        def until_changed(action: Callable[[], Awaitable[object]]) -> Callable[[], Awaitable[StrategyStatus]]:
            async def run() -> StrategyStatus:
                if not await action():
                    return StrategyStatus.SOFT_FAILURE
                await self.interactor.pause(ACTION_SETTLE_MS)
                if await page_fingerprint(page) != before:
                    return StrategyStatus.SUCCESS
                return StrategyStatus.SOFT_FAILURE
            return run

        async def form_submit() -> bool:
            return bool(await field.evaluate(FORM_SUBMIT_SCRIPT))

        result = await run_strategies(
            [
                Strategy("tab", until_changed(lambda: self.interactor.press_key(page, "Tab"))),
                Strategy("enter", until_changed(lambda: self.interactor.press_key(page, "Enter"))),
                Strategy("submit_text", until_changed(
                    lambda: self.interactor.click_by_text(page, EMAIL_SUBMIT_TEXTS))),
                Strategy("submit_control", until_changed(
                    lambda: self.interactor.click_first_visible(page, SUBMIT_CONTROL_SELECTORS))),
                Strategy("form_submit", until_changed(form_submit)),
            ],
            page=page,
        )
        if result.succeeded:
            trace.append(f"email: submitted via {result.winner}")
        else:
            trace.append(f"email: page unchanged after {result.describe()}")
        return result.succeeded

    async def accept_consent(self, page: Page, trace: list[str]) -> bool:
        """
        Tick consent checkboxes.

        Prefers labels that wrap a checkbox; otherwise walks up from each
        unchecked checkbox to a pointer-styled ancestor.
        """
        ticked = False
        labels = page.locator("label:has(input[type='checkbox'])")
        label_count = min(await labels.count(), MAX_CONSENT_BOXES)

        if label_count:
            for index in range(label_count):
                label = labels.nth(index)
                box = label.locator("input[type='checkbox']").first
                if await self._is_checked(box):
                    continue
                if await self.interactor.click_locator(label):
                    trace.append(f"email: ticked consent label #{index}")
                    ticked = True
            return ticked

        boxes = page.locator("input[type='checkbox'], [role='checkbox']")
        for index in range(min(await boxes.count(), MAX_CONSENT_BOXES)):
            box = boxes.nth(index)
            if await self._is_checked(box):
                continue
            if await self.interactor.click_clickable_ancestor(box, CONSENT_ANCESTOR_DEPTH, synthetic=True):
                trace.append(f"email: ticked consent #{index} via ancestor")
                ticked = True
            elif await self.interactor.dispatch_synthetic_click(box):
                trace.append(f"email: ticked consent #{index} directly")
                ticked = True
        return ticked

    async def _is_checked(self, locator: Locator) -> bool:
        try:
            return bool(await locator.is_checked())
        except Exception as e:
            if is_session_closed_error(e):
                raise SessionClosedError(str(e)) from e
            return False

    async def _handle_email(self, page: Page, trace: list[str]) -> bool:
        performed = False
        field = await self._find_email_field(page, trace)

        if field is None:
            trace.append("email: no email field, filling by hint")
            performed = bool(await self.fill_profile_fields(page, trace))
        elif await self.interactor.fill_locator(field, self.inputs.email):
            trace.append(f"email: filled '{self.inputs.email}'")
            performed = True
            await self.submit_email(page, field, trace)

        if await self.accept_consent(page, trace):
            performed = True
        if await self.click_cta(page, trace):
            performed = True
        return performed

    async def _handle_info(self, page: Page, trace: list[str]) -> bool:
        if await self.click_cta(page, trace):
            return True
        selector = await self.interactor.click_first_visible(page, GENERIC_BUTTON_SELECTORS)
        if selector:
            trace.append(f"info: clicked first visible {selector}")
            return True
        return False

    async def _handle_other(self, page: Page, trace: list[str]) -> bool:
        matched: dict[str, str] = {}

        async def cta_text() -> bool:
            matched["value"] = await self.interactor.click_by_text(page, CTA_TEXTS) or ""
            return bool(matched["value"])

        async def loose_text() -> bool:
            matched["value"] = await self.interactor.click_any_by_text(page, CTA_TEXTS) or ""
            return bool(matched["value"])

        async def fallback_selector() -> bool:
            matched["value"] = await self.interactor.click_first_visible(
                page, OTHER_FALLBACK_SELECTORS
            ) or ""
            return bool(matched["value"])

        result = await run_strategies(
            [
                Strategy("cta_text", cta_text),
                Strategy("loose_text", loose_text),
                Strategy("option_button", lambda: self.select_button_option(page, trace)),
                Strategy("option_card", lambda: self.select_card_option(page, trace)),
                Strategy("fallback_selector", fallback_selector),
            ],
            page=page,
        )
        if result.succeeded and matched.get("value"):
            trace.append(f"other: {result.winner} '{matched['value']}'")
        elif not result.succeeded:
            trace.append(f"other: nothing clickable ({result.describe()})")
        return result.succeeded
