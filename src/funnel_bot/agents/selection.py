"""
Option selection policy for question screens.

Given the visible answer options of a screen, pick one:
1. The first option whose text contains a smart keyword
2. Otherwise, with two or more options, the option at the rotation
   cursor modulo min(count, 4)
3. Otherwise the only option

The RotationCursor is an explicit object. The orchestrator creates one
per process and hands the same instance to every run, so fallback
choices keep rotating across funnels instead of restarting at 0.

Example Usage:
    >>> cursor = RotationCursor()
    >>> selector = OptionSelector(cursor)
    >>> selector.choose(["Lose weight", "Gain muscle"]).index
    0
    >>> selector.choose(["Lose weight", "Gain muscle"]).index
    1
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Sequence


__all__ = [
    "OptionChoice",
    "OptionSelector",
    "RotationCursor",
    "SMART_KEYWORDS",
]

logger = logging.getLogger(__name__)


# Option texts that usually lead to the personalised/premium path
SMART_KEYWORDS = [
    "personal",
    "plan",
    "result",
    "unlock",
    "recommend",
    "custom",
    "tailored",
]

ROTATION_WINDOW = 4


class RotationCursor:
    """Monotonic counter shared by every fallback option selection."""

    def __init__(self, start: int = 0) -> None:
        self._value = start
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def advance(self) -> int:
        """Return the current value and move the cursor forward."""
        with self._lock:
            current = self._value
            self._value += 1
            return current


@dataclass(frozen=True)
class OptionChoice:
    """Which option was picked and why."""
    index: int
    reason: str  # "keyword", "rotation" or "single"
    keyword: Optional[str] = None

    def describe(self, texts: Sequence[str]) -> str:
        text = texts[self.index] if self.index < len(texts) else ""
        if self.keyword:
            return f"option #{self.index} '{text}' (keyword '{self.keyword}')"
        return f"option #{self.index} '{text}' ({self.reason})"


class OptionSelector:
    """
    Chooses among candidate option texts.

    Attributes:
        cursor: Rotation cursor used when no keyword matches.
        keywords: Smart keywords, checked in order per option.
    """

    def __init__(
        self,
        cursor: Optional[RotationCursor] = None,
        keywords: Sequence[str] = SMART_KEYWORDS,
    ) -> None:
        self.cursor = cursor or RotationCursor()
        self.keywords = [k.lower() for k in keywords]

    def match_keyword(self, text: str) -> Optional[str]:
        lowered = (text or "").lower()
        for keyword in self.keywords:
            if keyword in lowered:
                return keyword
        return None

    def choose(self, texts: Sequence[str]) -> Optional[OptionChoice]:
        """
        Pick one of the candidate texts.

        Args:
            texts: Option label texts, in page order.

        Returns:
            OptionChoice, or None when there are no candidates.
        """
        if not texts:
            return None

        for index, text in enumerate(texts):
            keyword = self.match_keyword(text)
            if keyword:
                logger.debug(f"Smart keyword '{keyword}' matched option #{index}")
                return OptionChoice(index=index, reason="keyword", keyword=keyword)

        if len(texts) >= 2:
            index = self.cursor.advance() % min(len(texts), ROTATION_WINDOW)
            logger.debug(f"Rotation picked option #{index} of {len(texts)}")
            return OptionChoice(index=index, reason="rotation")

        return OptionChoice(index=0, reason="single")
