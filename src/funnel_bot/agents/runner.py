"""
Funnel Runner - the closed-loop driver for one funnel.

Per step: settle, classify, record evidence, close popups, stop on a
paywall, check the document fingerprint for stagnation, dispatch an
action, then wait for the screen to change.

Stop reasons:
- paywall_reached: a paywall was classified (step > 1)
- loop_detected: same fingerprint past the limit and repeated no-action
- no_action: nothing actionable several steps in a row
- step_budget_exhausted: ran out of steps
- navigation_failed: the start page never loaded
- session_closed: the page/browser went away mid-run

Example Usage:
    >>> runner = FunnelRunner(RunConfig.from_env(), results_dir="results")
    >>> summary = await runner.run(page, "https://quiz.example.com/start")
    >>> print(summary.reached_paywall, summary.stop_reason)
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from .classifier import ScreenClassifier
from .dispatcher import ActionDispatcher
from .selection import OptionSelector, RotationCursor
from ..browser.interactor import PageInteractor
from ..browser.launcher import navigate_with_retry
from ..browser.observer import ScreenObserver, extract_prices, page_fingerprint
from ..browser.popups import PopupCloser
from ..models.run_config import RunConfig
from ..models.run_result import FunnelRunSummary
from ..models.screen import ScreenClassification, ScreenType
from ..utils.errors import NavigationError, SessionClosedError, is_session_closed_error
from ..utils.files import FunnelArtifacts
from ..utils.step_logger import StepLogger


if TYPE_CHECKING:
    from playwright.async_api import Page


__all__ = ["FunnelRunner", "RunState", "StopReason"]

logger = logging.getLogger(__name__)


LOAD_AFTER_NAVIGATION_MS = 5000
TRANSITION_FALLBACK_MS = 2000


class StopReason:
    PAYWALL_REACHED = "paywall_reached"
    LOOP_DETECTED = "loop_detected"
    NO_ACTION = "no_action"
    STEP_BUDGET_EXHAUSTED = "step_budget_exhausted"
    NAVIGATION_FAILED = "navigation_failed"
    SESSION_CLOSED = "session_closed"
    ERROR = "error"


@dataclass
class RunState:
    """Mutable state of one funnel run, owned by the runner."""
    step: int = 0
    previous_fingerprint: Optional[str] = None
    same_fingerprint_count: int = 0
    no_action_count: int = 0
    email_seen: bool = False
    detected_types: list[ScreenType] = field(default_factory=list)
    reached_paywall: bool = False
    prices: list[str] = field(default_factory=list)
    stop_reason: Optional[str] = None

    def record_type(self, screen_type: ScreenType) -> None:
        if screen_type not in self.detected_types:
            self.detected_types.append(screen_type)
        if screen_type is ScreenType.EMAIL:
            self.email_seen = True

    def observe_fingerprint(self, fingerprint: str) -> int:
        """Update the same-fingerprint counter and return it."""
        if fingerprint == self.previous_fingerprint:
            self.same_fingerprint_count += 1
        else:
            self.same_fingerprint_count = 1
        self.previous_fingerprint = fingerprint
        return self.same_fingerprint_count

    def reset_progress(self, fingerprint: str) -> None:
        self.previous_fingerprint = fingerprint
        self.same_fingerprint_count = 1
        self.no_action_count = 0


StepCallback = Callable[[int, ScreenClassification], None]


class FunnelRunner:
    """
    Drives one page through a funnel until a stop condition.

    Attributes:
        config: Budgets, thresholds and timeouts.
        results_dir: Root of the evidence tree.
        classifier: Screen classifier.
        dispatcher: Per-archetype action procedures.
        popups: Consent/overlay closer.
        interactor: Used for rescue key presses and settle pauses.
    """

    def __init__(
        self,
        config: Optional[RunConfig] = None,
        results_dir: Union[Path, str] = "results",
        cursor: Optional[RotationCursor] = None,
        interactor: Optional[PageInteractor] = None,
        classifier: Optional[ScreenClassifier] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        popups: Optional[PopupCloser] = None,
        on_step: Optional[StepCallback] = None,
    ) -> None:
        self.config = config or RunConfig()
        self.results_dir = Path(results_dir)
        self.interactor = interactor or PageInteractor()
        self.observer = ScreenObserver()
        self.classifier = classifier or ScreenClassifier(self.observer)
        self.dispatcher = dispatcher or ActionDispatcher(
            interactor=self.interactor,
            observer=self.observer,
            selector=OptionSelector(cursor),
            inputs=self.config.inputs,
            retry_count=self.config.action_retry_count,
        )
        self.popups = popups or PopupCloser()
        self.on_step = on_step

    async def run(self, page: Page, url: str) -> FunnelRunSummary:
        """
        Drive the funnel at ``url`` and write its summary.

        Never raises for run failures; the reason is recorded in the
        returned summary instead.
        """
        artifacts = FunnelArtifacts(url, self.results_dir).prepare()
        step_logger = StepLogger(artifacts.log_path)
        step_logger.init(url)
        state = RunState()
        started = time.monotonic()

        try:
            await navigate_with_retry(
                page,
                url,
                timeout=self.config.default_timeout_ms,
                retry_timeout=self.config.navigation_retry_timeout_ms,
                step_logger=step_logger,
            )
            await self._drive(page, state, artifacts, step_logger)
        except NavigationError as e:
            state.stop_reason = StopReason.NAVIGATION_FAILED
            step_logger.event(f"FATAL: {e}")
        except SessionClosedError as e:
            state.stop_reason = StopReason.SESSION_CLOSED
            step_logger.event(f"Session closed: {e}")
        except Exception as e:
            logger.exception(f"Run failed for {url}")
            state.stop_reason = StopReason.ERROR
            step_logger.event(f"FATAL: {e}")

        summary = FunnelRunSummary(
            url=url,
            total_steps=state.step,
            detected_types=state.detected_types,
            reached_paywall=state.reached_paywall,
            execution_time_seconds=round(time.monotonic() - started, 1),
            stop_reason=state.stop_reason,
            prices=state.prices,
        )
        artifacts.write_summary(summary.to_json_dict())
        step_logger.event(f"Stopped: {state.stop_reason} after {state.step} step(s)")
        logger.info(
            f"Funnel {artifacts.slug}: {state.step} steps, "
            f"paywall={state.reached_paywall}, reason={state.stop_reason}"
        )
        return summary

    async def _drive(
        self,
        page: Page,
        state: RunState,
        artifacts: FunnelArtifacts,
        step_logger: StepLogger,
    ) -> None:
        while state.step < self.config.step_budget(state.email_seen):
            state.step += 1
            try:
                reason = await self.run_step(page, state, artifacts, step_logger)
            except SessionClosedError:
                raise
            except Exception as e:
                if is_session_closed_error(e, page):
                    raise SessionClosedError(str(e)) from e
                logger.warning(f"Step {state.step} failed: {e}")
                step_logger.event(f"[STEP {state.step:02d}] error: {e}")
                continue

            if reason:
                state.stop_reason = reason
                return

        state.stop_reason = StopReason.STEP_BUDGET_EXHAUSTED

    async def run_step(
        self,
        page: Page,
        state: RunState,
        artifacts: FunnelArtifacts,
        step_logger: StepLogger,
    ) -> Optional[str]:
        """
        Execute one iteration.

        Returns:
            A stop reason, or None to continue.
        """
        step = state.step
        await self.interactor.pause(self.config.step_settle_ms)

        classification = await self.classifier.classify(page, step)
        if step == 1 and classification.archetype is ScreenType.PAYWALL:
            classification = ScreenClassification(
                archetype=ScreenType.OTHER,
                justification=f"first screen never a paywall ({classification.justification})",
            )
        archetype = classification.archetype
        lines = [f"classified: {classification.justification}"]

        await self._save_screenshot(page, artifacts, step, archetype)
        state.record_type(archetype)
        if self.on_step:
            self.on_step(step, classification)

        lines.extend(await self.popups.close(page))

        if archetype is ScreenType.PAYWALL:
            state.reached_paywall = True
            state.prices = extract_prices(await self.observer.get_body_text(page))
            lines.append(f"paywall reached, prices: {', '.join(state.prices) or 'none'}")
            step_logger.step(step, archetype.value, lines)
            return StopReason.PAYWALL_REACHED

        fingerprint = await page_fingerprint(page)
        same = state.observe_fingerprint(fingerprint)

        if archetype is ScreenType.EMAIL and same >= self.config.email_stuck_threshold:
            lines.append(f"email stuck ({same}x), pressing Enter")
            if await self._rescue_changed(page, fingerprint):
                state.reset_progress(await page_fingerprint(page))
                lines.append("email rescue: page changed")

        if (
            state.same_fingerprint_count >= self.config.same_dom_hash_limit
            and state.no_action_count >= self.config.loop_no_action_threshold
        ):
            if step >= self.config.loop_rescue_min_step and await self._rescue_changed(page, fingerprint):
                state.reset_progress(await page_fingerprint(page))
                lines.append("loop rescue: Enter changed the page")
                step_logger.step(step, archetype.value, lines)
                return None
            lines.append(f"loop detected: fingerprint repeated {state.same_fingerprint_count}x")
            step_logger.step(step, archetype.value, lines)
            return StopReason.LOOP_DETECTED

        url_before = page.url
        outcome = await self.dispatcher.dispatch(page, archetype)
        lines.extend(outcome.trace)
        step_logger.step(step, archetype.value, lines)

        if not outcome.performed:
            state.no_action_count += 1
            if state.no_action_count >= self.config.no_action_limit:
                return StopReason.NO_ACTION
            return None

        state.no_action_count = 0
        await self.wait_for_transition(page, url_before)
        return None

    async def _save_screenshot(
        self,
        page: Page,
        artifacts: FunnelArtifacts,
        step: int,
        archetype: ScreenType,
    ) -> None:
        try:
            await artifacts.save_screenshot(page, step, archetype)
        except Exception as e:
            if is_session_closed_error(e, page):
                raise SessionClosedError(str(e)) from e
            logger.warning(f"Screenshot failed at step {step}: {e}")

    async def _rescue_changed(self, page: Page, fingerprint: str) -> bool:
        """Press Enter and report whether the document changed."""
        await self.interactor.press_key(page, "Enter")
        await self.interactor.pause(self.config.rescue_wait_ms)
        return await page_fingerprint(page) != fingerprint

    async def wait_for_transition(self, page: Page, url_before: str) -> None:
        """
        Wait for the screen to change after an action.

        A changed URL gets a bounded load wait. Otherwise load state, a
        URL change and a fixed delay race, since client-side routing may
        never touch the URL.
        """
        await self.interactor.pause(self.config.transition_settle_ms)

        if page.url != url_before:
            try:
                await page.wait_for_load_state("domcontentloaded", timeout=LOAD_AFTER_NAVIGATION_MS)
            except Exception as e:
                if is_session_closed_error(e, page):
                    raise SessionClosedError(str(e)) from e
                logger.debug(f"Load wait after navigation timed out: {e}")
            return

        timeout = self.config.transition_timeout_ms
        tasks = [
            asyncio.ensure_future(page.wait_for_load_state("domcontentloaded", timeout=timeout)),
            asyncio.ensure_future(page.wait_for_url(lambda current: current != url_before, timeout=timeout)),
            asyncio.ensure_future(self.interactor.pause(TRANSITION_FALLBACK_MS)),
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            error = task.exception()
            if error is not None and is_session_closed_error(error, page):
                raise SessionClosedError(str(error)) from error
