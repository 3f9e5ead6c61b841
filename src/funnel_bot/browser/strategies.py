"""
Ordered fallback strategies.

Interaction code on unknown pages is a chain of "try this, else that".
Instead of nesting try/except blocks, each attempt is a named Strategy
and a StrategyRunner executes them in order, stopping at the first
success. Every attempt is recorded so the caller can log exactly which
fallback finally worked.

A strategy coroutine may return:
- True / StrategyStatus.SUCCESS: done, stop the chain
- False / None / StrategyStatus.SOFT_FAILURE: not applicable, try the next one
- StrategyStatus.HARD_FAILURE, or raise: it broke, try the next one

Session-closed errors are never absorbed: they are re-raised as
SessionClosedError so the driver loop can stop the run.

Example Usage:
    >>> async def plain_click():
    ...     await locator.click(timeout=3000)
    ...     return True
    >>> result = await run_strategies([Strategy("click", plain_click)])
    >>> result.succeeded, result.winner
    (True, 'click')
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from ..utils.errors import SessionClosedError, is_session_closed_error


__all__ = [
    "ChainResult",
    "ElementTraits",
    "Strategy",
    "StrategyAttempt",
    "StrategyStatus",
    "find_clickable_ancestor",
    "run_strategies",
]

logger = logging.getLogger(__name__)


class StrategyStatus(str, Enum):
    """Outcome of a single strategy attempt."""
    SUCCESS = "success"
    SOFT_FAILURE = "soft_failure"   # Nothing to act on
    HARD_FAILURE = "hard_failure"   # Tried and broke


StrategyReturn = Union[bool, None, StrategyStatus]


@dataclass
class Strategy:
    """A named, zero-argument coroutine factory."""
    name: str
    run: Callable[[], Awaitable[Any]]


@dataclass
class StrategyAttempt:
    """Record of one executed strategy."""
    name: str
    status: StrategyStatus
    detail: str = ""


@dataclass
class ChainResult:
    """All attempts of one strategy chain, in execution order."""
    attempts: list[StrategyAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].status is StrategyStatus.SUCCESS

    @property
    def winner(self) -> Optional[str]:
        """Name of the strategy that succeeded, if any."""
        return self.attempts[-1].name if self.succeeded else None

    def describe(self) -> str:
        return ", ".join(f"{a.name}={a.status.value}" for a in self.attempts)


def _to_status(value: Any) -> StrategyStatus:
    if isinstance(value, StrategyStatus):
        return value
    return StrategyStatus.SUCCESS if value else StrategyStatus.SOFT_FAILURE


async def run_strategies(
    strategies: Sequence[Strategy],
    *,
    page: Any = None,
) -> ChainResult:
    """
    Execute strategies in order until one succeeds.

    Args:
        strategies: Ordered strategies to try.
        page: Page used to double-check session closure on errors.

    Returns:
        ChainResult with every attempt made.

    Raises:
        SessionClosedError: If an attempt failed because the page is gone.
    """
    result = ChainResult()

    for strategy in strategies:
        try:
            status = _to_status(await strategy.run())
            attempt = StrategyAttempt(strategy.name, status)
        except SessionClosedError:
            raise
        except Exception as e:
            if is_session_closed_error(e, page):
                raise SessionClosedError(str(e)) from e
            logger.debug(f"Strategy '{strategy.name}' failed: {e}")
            attempt = StrategyAttempt(strategy.name, StrategyStatus.HARD_FAILURE, str(e)[:200])

        result.attempts.append(attempt)
        if attempt.status is StrategyStatus.SUCCESS:
            break

    logger.debug(f"Strategy chain: {result.describe() or 'empty'}")
    return result


# =============================================================================
# CLICKABLE ANCESTOR WALK
# =============================================================================

@dataclass
class ElementTraits:
    """
    The capabilities of an element that matter for click routing.

    Produced in-page for each ancestor of a control, nearest first.
    """
    tag: str = ""
    has_pointer_style: bool = False
    has_click_handler: bool = False
    is_label_role: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ElementTraits":
        return cls(
            tag=str(data.get("tag", "")),
            has_pointer_style=bool(data.get("hasPointerStyle")),
            has_click_handler=bool(data.get("hasClickHandler")),
            is_label_role=bool(data.get("isLabelRole")),
        )

    @property
    def is_clickable(self) -> bool:
        return self.has_pointer_style or self.has_click_handler or self.is_label_role


def find_clickable_ancestor(
    ancestors: Sequence[ElementTraits],
    max_depth: int = 5,
) -> Optional[int]:
    """
    Find the nearest ancestor that looks like it receives the click.

    Args:
        ancestors: Ancestor traits ordered from parent outwards.
        max_depth: How many levels to inspect.

    Returns:
        Depth index (0 = parent) of the first clickable ancestor, or None.
    """
    for depth, traits in enumerate(ancestors[:max_depth]):
        if traits.is_clickable:
            return depth
    return None
